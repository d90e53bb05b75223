# -*- coding: utf-8 -*-
"""Per-transformation context, and the configuration defaults.

Configuration uses dynamic variables, so a default can be overridden for
the dynamic extent of a block::

    from unpythonic import dyn
    with dyn.let(unrecurse_warn_nontail=False):
        tree = transform(tree)

Explicit keyword arguments to `unrecurse.transform` (and the decorator)
take precedence over the dynamic defaults.
"""

__all__ = ["RewriteContext"]

from unpythonic.dynassign import dyn, make_dynvar

from .astutil import get_names_in_store_context
from .signature import extract_signature

make_dynvar(unrecurse_implicit_return=True,  # trailing expression statement = return value
            unrecurse_respect_shadowing=False,  # locally rebound own name = no self-calls
            unrecurse_warn_nontail=True)  # warn about self-calls left in non-tail positions

def _option(value, dynvar):
    return getattr(dyn, dynvar) if value is None else value

class RewriteContext:
    """What the rewriter needs to know about the function being transformed.

    Read-only for the duration of one transformation.
    """
    def __init__(self, signature, *, shadowed=False,
                 implicit_return=None, respect_shadowing=None, warn_nontail=None):
        self.signature = signature
        self.name = signature.name
        self.receiver = signature.receiver
        self.implicit_return = _option(implicit_return, "unrecurse_implicit_return")
        self.respect_shadowing = _option(respect_shadowing, "unrecurse_respect_shadowing")
        self.warn_nontail = _option(warn_nontail, "unrecurse_warn_nontail")
        self.shadowed = shadowed
        self.detect_selfcalls = not (self.respect_shadowing and shadowed)

        # Generated identifiers. Derived from the function name, so that
        # the output is deterministic.
        name = self.name
        self.inner_name = f"{name}_inner"
        self.action_name = f"_{name}_Action"
        self.state_name = f"_{name}_state"
        self.binder_name = f"_{name}_bind"
        self.rebind_name = f"_{name}_rebind"
        self.defaults_name = f"_{name}_defaults"
        self.temp_name = f"_{name}_tmp"
        self.result_name = f"_{name}_result"

    @classmethod
    def for_function(cls, tree, **options):
        """Create the context for transforming the function definition ``tree``."""
        signature = extract_signature(tree)
        shadowed = (signature.name in signature.patterns or
                    signature.name in get_names_in_store_context(tree.body))
        return cls(signature, shadowed=shadowed, **options)

    def __repr__(self):  # pragma: no cover
        return f"<RewriteContext for {self.name!r}>"
