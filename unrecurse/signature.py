# -*- coding: utf-8 -*-
"""Decompose a function signature into parameter patterns, parameter types and a return type."""

__all__ = ["Param", "FunctionSignature", "extract_signature",
           "POSONLY", "POSITIONAL", "VARARGS", "KWONLY", "VARKW"]

from ast import FunctionDef, AsyncFunctionDef, Name, Subscript, Tuple, Constant, Load
from collections import namedtuple
from copy import deepcopy

POSONLY = "positional-only"
POSITIONAL = "positional"
VARARGS = "varargs"
KWONLY = "keyword-only"
VARKW = "varkw"

Param = namedtuple("Param", ["pattern", "type", "kind"])
Param.__doc__ = """A formal parameter: name, annotation AST (or ``None``), kind."""

class FunctionSignature(namedtuple("FunctionSignature", ["name", "params", "returns"])):
    """The signature of a function definition, decomposed.

    ``name`` is the function name (str), ``params`` an ordered tuple of `Param`,
    and ``returns`` the return annotation AST, or ``None`` if absent.

    The order of ``params`` is Python's parameter order: positional-only,
    positional-or-keyword, ``*args``, keyword-only, ``**kwargs``. This order
    is also the order of the elements in the state tuple of the rebuilt function.
    """
    __slots__ = ()

    @property
    def patterns(self):
        """The parameter names, in order."""
        return [p.pattern for p in self.params]

    @property
    def types(self):
        """The parameter annotations, in order. ``None`` where not annotated."""
        return [p.type for p in self.params]

    @property
    def return_type(self):
        """The return annotation. An absent annotation means ``None`` (unit)."""
        if self.returns is None:
            return Constant(value=None)
        return self.returns

    @property
    def positional(self):
        """Names of the parameters that can be passed positionally (excluding ``*args``)."""
        return [p.pattern for p in self.params if p.kind in (POSONLY, POSITIONAL)]

    @property
    def is_simple(self):
        """Whether all parameters are positional (no ``*args``, keyword-only or ``**kwargs``)."""
        return all(p.kind in (POSONLY, POSITIONAL) for p in self.params)

    @property
    def receiver(self):
        """Name of the receiver parameter, if the function follows the method convention.

        That is, if the first positional parameter is named ``self`` or ``cls``,
        return that name; else ``None``.
        """
        positional = self.positional
        if positional and positional[0] in ("self", "cls"):
            return positional[0]
        return None

    def state_type(self):
        """Return an annotation AST for the state tuple, ``tuple[T1, ..., Tn]``.

        If any parameter is unannotated, return ``None``; a partially
        annotated tuple type would be a lie.
        """
        elts = []
        for p in self.params:
            if p.type is None:
                return None
            t = deepcopy(p.type)
            if p.kind == VARARGS:  # `*args: T` means `args: tuple[T, ...]`
                t = Subscript(value=Name(id="tuple", ctx=Load()),
                              slice=Tuple(elts=[t, Constant(value=...)], ctx=Load()),
                              ctx=Load())
            elif p.kind == VARKW:  # `**kwargs: T` means `kwargs: dict[str, T]`
                t = Subscript(value=Name(id="dict", ctx=Load()),
                              slice=Tuple(elts=[Name(id="str", ctx=Load()), t], ctx=Load()),
                              ctx=Load())
            elts.append(t)
        return Subscript(value=Name(id="tuple", ctx=Load()),
                         slice=Tuple(elts=elts, ctx=Load()),
                         ctx=Load())

def extract_signature(tree):
    """Extract the `FunctionSignature` of the function definition ``tree``.

    Pure function; ``tree`` is not modified, and the returned signature
    shares no AST nodes with it.
    """
    if type(tree) not in (FunctionDef, AsyncFunctionDef):
        raise TypeError(f"Expected a function definition, got {type(tree)}")
    args = tree.args
    params = []
    def add(arg, kind):
        params.append(Param(arg.arg, deepcopy(arg.annotation), kind))
    for arg in args.posonlyargs:
        add(arg, POSONLY)
    for arg in args.args:
        add(arg, POSITIONAL)
    if args.vararg is not None:
        add(args.vararg, VARARGS)
    for arg in args.kwonlyargs:
        add(arg, KWONLY)
    if args.kwarg is not None:
        add(args.kwarg, VARKW)
    return FunctionSignature(tree.name, tuple(params), deepcopy(tree.returns))
