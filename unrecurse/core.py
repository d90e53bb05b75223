# -*- coding: utf-8 -*-
"""Transform a self-recursive function definition into a loop.

The entry point is `transform`, which takes and returns an `ast.FunctionDef`.
The collaborators `parse_function` and `to_source` go from source text to an
AST and back.
"""

__all__ = ["transform", "parse_function", "to_source"]

from ast import FunctionDef, AsyncFunctionDef, Expr, Constant, parse, walk
from copy import deepcopy
from textwrap import dedent

from mcpyrate import unparse

from .astutil import get_nonlocal_declarations, is_generator
from .context import RewriteContext
from .markers import is_transformed
from .rebuild import rebuild
from .tailtools import rewrite_body, warn_nontail_selfcalls

def _split_docstring(body):
    first = body[0] if body else None
    if type(first) is Expr and type(first.value) is Constant and isinstance(first.value.value, str):
        return first, body[1:]
    return None, body

def transform(tree, *, implicit_return=None, respect_shadowing=None, warn_nontail=None):
    """Rewrite the function definition ``tree`` so that its self-tail-calls become a loop.

    Return a new ``FunctionDef`` with the same name, parameters, defaults,
    decorators, return annotation and docstring. Its body drives an inner
    function, holding the original body, with a ``while`` loop; each
    self-call in tail position becomes an iteration of the loop instead of
    a new stack frame. See `unrecurse.tailtools` for what counts as a tail
    position.

    Any other calls, including self-calls in non-tail positions, are left
    as-is. By default, the latter emit a `NonTailRecursionWarning`.

    Options (``None`` means use the dynamic default; see `unrecurse.context`):

        - ``implicit_return``: if true, an expression statement in tail position
          is the return value, as in `unpythonic.syntax.autoreturn`. Default ``True``.

        - ``respect_shadowing``: if true, and the function's own name is rebound
          locally (parameter, assignment, import, nested def...), no call is
          considered a self-call. Default ``False``: only the name is compared.

        - ``warn_nontail``: warn about self-calls left in non-tail positions.
          Default ``True``.

    ``tree`` itself is not modified. If ``tree`` is already the output of
    `transform`, an unmodified copy is returned.

    Raises ``TypeError`` if ``tree`` is not a function definition, and
    ``SyntaxError`` for ``async def`` and generator functions, which cannot
    be driven by a loop.
    """
    if type(tree) is AsyncFunctionDef:
        raise SyntaxError(f"{tree.name}: cannot transform an async function")
    if type(tree) is not FunctionDef:
        raise TypeError(f"Expected an ast.FunctionDef, got {type(tree)}")
    if is_transformed(tree):
        return deepcopy(tree)
    if is_generator(tree):
        raise SyntaxError(f"{tree.name}: cannot transform a generator function")

    tree = deepcopy(tree)
    ctx = RewriteContext.for_function(tree,
                                      implicit_return=implicit_return,
                                      respect_shadowing=respect_shadowing,
                                      warn_nontail=warn_nontail)
    docstring, body = _split_docstring(tree.body)
    nonlocals = get_nonlocal_declarations(body)
    body = rewrite_body(body, ctx)
    warn_nontail_selfcalls(body, ctx)
    return rebuild(tree, body, ctx, docstring=docstring, nonlocals=nonlocals)

def parse_function(source, name=None):
    """Parse ``source`` and return the AST of the function definition ``name``.

    If ``name`` is ``None``, return the first function definition found.
    The source may be indented (e.g. a method extracted from a class body).

    Raises ``ValueError`` if there is no such function definition.
    """
    module = parse(dedent(source))
    for node in walk(module):
        if type(node) in (FunctionDef, AsyncFunctionDef) and (name is None or node.name == name):
            return node
    what = f"function definition {name!r}" if name is not None else "function definition"
    raise ValueError(f"No {what} found in source")

def to_source(tree):
    """Convert the AST ``tree`` back into Python source code."""
    return unparse(tree)
