# -*- coding: utf-8 -*-
"""Run-time decorator: transform a function, given its source code.

This is the no-macros way to use `unrecurse`::

    from unrecurse import recursive

    @recursive
    def sum_to(n, acc):
        if n == 0:
            return acc
        return sum_to(n - 1, acc + n)

    assert sum_to(100000, 0) == 5000050000

The source code of the function is read using `inspect`, transformed with
`unrecurse.transform`, and compiled. The new function lives in the same
globals as the original one.

**CAUTION**: This needs the source code, so it does not work for functions
typed into the REPL. It does not work for closures, either; a closure's free
variables live in cells of the enclosing function, which the recompiled
function has no access to. (A method that uses the zero-argument ``super()``
is a closure, too.) For those cases, use the macro `unrecurse.syntax.recursive`,
which transforms the code before Python compiles it.

``@recursive`` must be the innermost decorator, i.e. listed last, directly
above the ``def``. Decorators listed above it are applied normally.
"""

__all__ = ["recursive"]

import __future__
from ast import Module, increment_lineno
from functools import partial
from inspect import getsource, getsourcefile
from types import FunctionType

from .core import parse_function, transform

def recursive(func=None, *, implicit_return=None, respect_shadowing=None, warn_nontail=None):
    """[decorator] Transform a self-tail-recursive function into a loop.

    Usage::

        @recursive
        def f(...):
            ...

        @recursive(implicit_return=False)
        def f(...):
            ...

    The options are passed to `unrecurse.transform`.
    """
    if func is None:
        return partial(recursive,
                       implicit_return=implicit_return,
                       respect_shadowing=respect_shadowing,
                       warn_nontail=warn_nontail)
    if not isinstance(func, FunctionType):
        raise TypeError(f"@recursive: expected a function, got {type(func)} with value {repr(func)}")
    if hasattr(func, "__wrapped__"):
        raise TypeError(f"@recursive: {func.__qualname__} is already wrapped by another decorator; @recursive must be the innermost decorator")
    if func.__code__.co_freevars:
        raise TypeError(f"@recursive: {func.__qualname__} is a closure (free variables {func.__code__.co_freevars}); use the macro `unrecurse.syntax.recursive` instead")

    tree = parse_function(getsource(func), func.__name__)
    tree.decorator_list = []  # already being applied
    tree = transform(tree,
                     implicit_return=implicit_return,
                     respect_shadowing=respect_shadowing,
                     warn_nontail=warn_nontail)
    # `getsource` starts at the first decorator, which is what `co_firstlineno` points to.
    increment_lineno(tree, func.__code__.co_firstlineno - 1)

    filename = getsourcefile(func) or func.__code__.co_filename
    # Same `from __future__ import annotations` setting as the original definition.
    flags = func.__code__.co_flags & __future__.annotations.compiler_flag
    code = compile(Module(body=[tree], type_ignores=[]), filename, "exec",
                   flags=flags, dont_inherit=True)
    namespace = {}
    exec(code, func.__globals__, namespace)
    newfunc = namespace[func.__name__]

    # Keep the identity of the default values (important for mutable defaults),
    # and anything else the function object carries.
    newfunc.__defaults__ = func.__defaults__
    newfunc.__kwdefaults__ = func.__kwdefaults__
    newfunc.__module__ = func.__module__
    newfunc.__qualname__ = func.__qualname__
    newfunc.__dict__.update(func.__dict__)
    return newfunc
