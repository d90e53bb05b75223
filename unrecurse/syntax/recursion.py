# -*- coding: utf-8 -*-
"""The `recursive` macro."""

__all__ = ["recursive"]

from ast import FunctionDef, AsyncFunctionDef, ClassDef

from ..astutil import is_generator, walk_scope
from ..context import RewriteContext
from ..core import transform
from ..tailtools import is_selfcall

def recursive(tree, *, syntax, expander, **kw):
    """[syntax, decorator/block] Turn self-tail-recursion into a loop, at compile time.

    As a decorator::

        @recursive
        def is_even(n):
            if n == 0:
                True
            else:
                is_even(n - 1)
        assert is_even(10000) is True

    As a block, every function definition at the top level of the block
    that calls itself is transformed, as are such methods of classes
    defined there::

        with recursive:
            def sum_to(n, acc):
                if n == 0:
                    return acc
                return sum_to(n - 1, acc + n)

            class Countdown:
                def run(self, n):
                    return n if n == 0 else self.run(n - 1)

    Anything else in the block is left as-is: functions that do not call
    themselves (e.g. an ``__init__`` that uses ``super()``), generators, and
    ``async def``s. Functions nested inside the definitions are not
    transformed, either; use another ``@recursive`` on them if needed.

    Unlike the run-time decorator `unrecurse.recursive`, this works also for
    closures, because the transformation happens before Python compiles the code.

    Configuration is via the dynamic variables described in `unrecurse.context`;
    these are read at macro expansion time.

    See `unrecurse.transform` for the details of the transformation.
    """
    if syntax not in ("decorator", "block"):
        raise SyntaxError("recursive is a decorator and block macro only")  # pragma: no cover
    if syntax == "block" and kw['optional_vars'] is not None:
        raise SyntaxError("recursive (block mode) does not take an as-part")  # pragma: no cover

    # Expand inside out. We want to see clean standard Python, so that
    # self-calls produced by any nested macros are visible to the analysis.
    tree = expander.visit(tree)

    if syntax == "decorator":
        if type(tree) not in (FunctionDef, AsyncFunctionDef):
            raise SyntaxError("@recursive: expected a function definition")  # pragma: no cover
        return transform(tree)
    return _recursive_block(block_body=tree)

def _is_recursive(tree):
    """Return whether ``tree`` is a plain function definition that calls itself in its own scope."""
    if type(tree) is not FunctionDef or is_generator(tree):
        return False
    ctx = RewriteContext.for_function(tree)
    return any(is_selfcall(node, ctx) for node in walk_scope(tree))

def _recursive_block(block_body):
    def transform_def(stmt):
        if _is_recursive(stmt):
            return transform(stmt)
        if type(stmt) is ClassDef:
            stmt.body = [transform_def(x) for x in stmt.body]
        return stmt
    return [transform_def(stmt) for stmt in block_body]
