# -*- coding: utf-8 -*-
"""Run-time support for transformed functions.

The generated code imports from here only when some self-call needs Python's
own argument binding (keyword arguments, ``*args``, omitted defaults). See
`unrecurse.rebuild`.
"""

__all__ = ["rebind"]

from inspect import CO_VARARGS, CO_VARKEYWORDS

def _parameters(f):
    """Return a hashable description of the parameter list of function ``f``, or ``None``.

    Two functions with the same description bind arguments the same way,
    given the same default values.
    """
    code = getattr(f, "__code__", None)
    if code is None:
        return None
    flags = code.co_flags & (CO_VARARGS | CO_VARKEYWORDS)
    n = code.co_argcount + code.co_kwonlyargcount + bool(flags & CO_VARARGS) + bool(flags & CO_VARKEYWORDS)
    defaults = getattr(f, "__defaults__", None) or ()
    kwdefaults = getattr(f, "__kwdefaults__", None) or {}
    return (code.co_posonlyargcount, code.co_argcount, code.co_kwonlyargcount, flags,
            code.co_varnames[:n], len(defaults), tuple(sorted(kwdefaults)))

def resolve(callee, binder):
    """Find the function behind ``callee`` whose parameters match those of ``binder``.

    Bound methods are looked through via ``__func__``, and decorator wrappers
    via ``__wrapped__`` (as set by `functools.wraps`). Return ``None`` if
    there is no such function.
    """
    target = _parameters(binder)
    seen = set()
    f = callee
    while f is not None and id(f) not in seen:
        seen.add(id(f))
        f = getattr(f, "__func__", f)
        if _parameters(f) == target:
            return f
        f = getattr(f, "__wrapped__", None)
    return None

def rebind(binder, defaults, callee):
    """Prepare ``binder`` for binding the arguments of a self-call to ``callee``, and return it.

    ``binder`` has the same parameter list as the function being called.
    It receives the default values held by ``callee``, so an omitted argument
    gets the very object the original call would have got, not a fresh
    evaluation of the default expression.

    If ``callee`` cannot be resolved (e.g. it is a wrapper that does not
    set ``__wrapped__``), ``defaults()`` is called instead. It must return
    ``(positional_defaults, keyword_only_defaults)``, evaluated from the
    default expressions.
    """
    f = resolve(callee, binder)
    if f is not None:
        binder.__defaults__ = f.__defaults__
        binder.__kwdefaults__ = f.__kwdefaults__
    else:
        binder.__defaults__, binder.__kwdefaults__ = defaults()
    return binder
