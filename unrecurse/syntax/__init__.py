# -*- coding: utf-8 -*-
"""unrecurse.syntax: tail recursion to loops, as a macro.

Requires `mcpyrate`. Usage::

    from unrecurse.syntax import macros, recursive

    @recursive
    def sum_to(n, acc):
        if n == 0:
            return acc
        return sum_to(n - 1, acc + n)

The module using the macro must be run with macros enabled, e.g. with the
`macropython` wrapper from `mcpyrate`, or after ``import mcpyrate.activate``.
"""

# This module only re-exports the macro interfaces so the macros can be imported
# by `from unrecurse.syntax import macros, ...`. The syntax transformers
# themselves live in the `unrecurse` package proper, and need no macro expander.

from .recursion import *  # noqa: F401, F403
