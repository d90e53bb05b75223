# -*- coding: utf-8 -*-
"""Assemble the loop-driven function definition.

Given a function ``f`` and its rewritten body, the output looks like this::

    def f(a, b):
        class _f_Action:
            class Continue:
                ...  # holds .state
            class Return:
                ...  # holds .value
        def f_inner(_f_state):
            (a, b) = _f_state
            ...  # the rewritten body, returning _f_Action.Continue(...) or _f_Action.Return(...)
        _f_state = (a, b)
        while True:
            _f_result = f_inner(_f_state)
            if type(_f_result) is _f_Action.Return:
                return _f_result.value
            _f_state = _f_result.state

If some self-call cannot be mapped positionally onto the parameters (keyword
arguments, ``*args``, omitted defaults), a binder ``_f_bind`` with the same
parameter list as ``f`` is emitted, too; it just returns the state tuple.
At each such self-call, `unrecurse.runtime.rebind` gives the binder the
default values held by the function object being called, so omitted
arguments get the same objects as in the original call. The default
expressions are evaluated again (by ``_f_defaults``) only if that function
object cannot be found.

The annotation of ``_f_state`` is a string, so it is never evaluated.
"""

__all__ = ["rebuild", "make_action_class", "make_driver_loop"]

from ast import (FunctionDef, Return, Assign, Nonlocal, ImportFrom, alias,
                 Tuple, Dict, Name, Attribute, Constant,
                 BinOp, BitOr, Load, Store, arguments, arg,
                 copy_location, fix_missing_locations, parse, walk)
from copy import deepcopy

from mcpyrate import unparse

from .markers import delete_opaque_markers
from .tailtools import rewrite_body

_action_template = """
class {action}:
    class Continue:
        __slots__ = __match_args__ = ("state",)
        def __init__(self, state):
            self.state = state
    class Return:
        __slots__ = __match_args__ = ("value",)
        def __init__(self, value):
            self.value = value
"""

_loop_template = """
while True:
    {result} = {inner}({state})
    if type({result}) is {action}.Return:
        return {result}.value
    {state} = {result}.state
"""

def _relocate(tree, locref):
    """Give every node in ``tree`` the source location of ``locref``."""
    if locref is not None:
        for node in walk(tree):
            copy_location(node, locref)
    return tree

def make_action_class(ctx, locref=None):
    """Return the ``ClassDef`` of the two-variant action type for ``ctx``."""
    return _relocate(parse(_action_template.format(action=ctx.action_name)).body[0], locref)

def make_driver_loop(ctx, locref=None):
    """Return the ``While`` node that drives the inner function of ``ctx``."""
    source = _loop_template.format(action=ctx.action_name,
                                   inner=ctx.inner_name,
                                   state=ctx.state_name,
                                   result=ctx.result_name)
    return _relocate(parse(source).body[0], locref)

def _state_tuple(ctx, store=False):
    c = Store if store else Load
    return Tuple(elts=[Name(id=name, ctx=c()) for name in ctx.signature.patterns], ctx=c())

def _action_annotation(ctx):
    def variant(name):
        return Attribute(value=Name(id=ctx.action_name, ctx=Load()), attr=name, ctx=Load())
    return BinOp(left=variant("Continue"), op=BitOr(), right=variant("Return"))

def _make_inner(body, ctx):
    annotation = ctx.signature.state_type()
    if annotation is not None:
        annotation = Constant(value=unparse(annotation))
    statevar = arg(arg=ctx.state_name, annotation=annotation)
    if ctx.signature.params:
        unpack = Assign(targets=[_state_tuple(ctx, store=True)],
                        value=Name(id=ctx.state_name, ctx=Load()))
        body = [unpack] + body
    return FunctionDef(name=ctx.inner_name,
                       args=arguments(posonlyargs=[], args=[statevar], vararg=None,
                                      kwonlyargs=[], kw_defaults=[], kwarg=None, defaults=[]),
                       body=body,
                       decorator_list=[],
                       returns=_action_annotation(ctx),
                       type_comment=None,
                       type_params=[])

def _make_binder(tree, ctx):
    """Return the statements setting up the binder.

    These are the import of `rebind`, the binder itself, and the function
    evaluating the default expressions (used only as a fallback).

    The binder gets placeholder defaults; the real ones are installed at
    each use, see `unrecurse.runtime.rebind`.
    """
    args = deepcopy(tree.args)
    for a in walk(args):
        if type(a) is arg:
            a.annotation = None
    args.defaults = [Constant(value=None) for _ in args.defaults]
    args.kw_defaults = [None if d is None else Constant(value=None) for d in args.kw_defaults]
    binder = FunctionDef(name=ctx.binder_name,
                         args=args,
                         body=[Return(value=_state_tuple(ctx))],
                         decorator_list=[],
                         returns=None,
                         type_comment=None,
                         type_params=[])

    kwdefaults = [(a.arg, d) for a, d in zip(tree.args.kwonlyargs, tree.args.kw_defaults)
                  if d is not None]
    values = Tuple(elts=[Tuple(elts=deepcopy(tree.args.defaults), ctx=Load()),
                         Dict(keys=[Constant(value=name) for name, _ in kwdefaults],
                              values=[deepcopy(d) for _, d in kwdefaults])],
                   ctx=Load())
    defaults = FunctionDef(name=ctx.defaults_name,
                           args=arguments(posonlyargs=[], args=[], vararg=None,
                                          kwonlyargs=[], kw_defaults=[], kwarg=None, defaults=[]),
                           body=[Return(value=values)],
                           decorator_list=[],
                           returns=None,
                           type_comment=None,
                           type_params=[])

    runtime = ImportFrom(module="unrecurse.runtime",
                         names=[alias(name="rebind", asname=ctx.rebind_name)],
                         level=0)
    return [runtime, binder, defaults]

def _uses_binder(body, ctx):
    return any(type(node) is Name and node.id == ctx.binder_name
               for stmt in body for node in walk(stmt))

def rebuild(tree, body, ctx, *, docstring=None, nonlocals=()):
    """Assemble the loop-driven version of the function definition ``tree``.

    ``body`` is the rewritten body (see `unrecurse.tailtools.rewrite_body`),
    not including the docstring. ``docstring``, if given, is the docstring
    statement of the original function; it stays on the outer function.
    ``nonlocals`` are names the original body declared ``nonlocal``; the
    outer function re-declares them so they keep referring to the same
    enclosing scope.

    The signature of ``tree`` (name, parameters, defaults, decorators,
    return annotation) is kept as-is. ``tree`` is modified in place, and
    also returned.
    """
    # Re-applying the rewrite is a no-op on finalized nodes; this catches any
    # tail position that would otherwise remain unwrapped.
    body = rewrite_body(body, ctx)

    outer = []
    if docstring is not None:
        outer.append(docstring)
    if nonlocals:
        outer.append(Nonlocal(names=list(nonlocals)))
    outer.append(make_action_class(ctx, tree))
    if _uses_binder(body, ctx):
        outer.extend(_make_binder(tree, ctx))
    outer.append(_make_inner(body, ctx))
    outer.append(Assign(targets=[Name(id=ctx.state_name, ctx=Store())],
                        value=_state_tuple(ctx)))
    outer.append(make_driver_loop(ctx, tree))

    tree.body = outer
    tree = delete_opaque_markers(tree)
    return fix_missing_locations(tree)
