# -*- coding: utf-8 -*-
"""Tail-position analysis, and the rewriting of tail expressions.

A function body is rewritten so that every path out of it returns an
*action*: ``Continue(state)`` for a self-call in tail position, where
``state`` is the argument tuple of the call, and ``Return(value)`` for
anything else. The rebuilder then drives these actions with a loop.

Tail positions are:

    - The operand of any ``return`` in the function's own scope, at any
      nesting depth, also inside loops. A bare ``return`` means ``return None``.

    - The last statement of the function body, if it is an expression
      statement (implicit return, like `unpythonic.syntax.autoreturn`).

    - Recursively, the last statement of each branch of an ``if``/``elif``/
      ``else``, of each ``case`` of a ``match``, of a ``with`` body, and of the
      ``try`` body (or ``else`` clause, if present) and each ``except``
      handler of a ``try``. The ``finally`` clause is never in tail position.

    - Both branches of ``a if p else b`` (but not ``p``).

    - The last item of an ``and``/``or``. If these are nested, only the last
      item of the whole expression, as in unpythonic's TCO.

Nested scopes (``def``, ``lambda``, ``class``, comprehensions) are other
functions, and are left alone.

**CAUTION**: A self-call is not a tail call if something still has to happen
after it returns. Hence a ``return`` lexically inside a ``with`` block, or
inside a ``try`` whose handlers (or ``finally``) would still see exceptions
raised by the call, is treated as a plain ``Return``; the recursive call
there remains an ordinary call.
"""

__all__ = ["rewrite_body", "rewrite_tail_expr", "is_selfcall",
           "find_nontail_selfcalls", "NonTailRecursionWarning"]

from ast import (Return, Expr, If, IfExp, BoolOp, And, Or, Match, MatchAs,
                 With, AsyncWith, For, AsyncFor, While, Raise,
                 FunctionDef, AsyncFunctionDef, ClassDef,
                 Call, Name, Attribute, Tuple, Starred, NamedExpr,
                 Constant, Load, Store,
                 copy_location, walk)
from copy import deepcopy
from warnings import warn

from .astcompat import TryStar, try_types
from .astutil import getname
from .markers import mark_opaque, is_opaque

class NonTailRecursionWarning(UserWarning):
    """A self-call was left in a non-tail position; it still grows the call stack."""

# --------------------------------------------------------------------------------
# Classification

def _selfcall_args(tree, ctx):
    """If ``tree`` is a self-call, return ``(args, keywords)`` of the call. Else ``None``.

    For a function following the method convention (first parameter ``self``
    or ``cls``), only ``self.f(...)`` counts, and ``self`` becomes the first
    argument. For any other function, ``f(...)`` counts, and so does
    ``o.f(...)`` for any receiver ``o``, which is dropped.
    """
    if type(tree) is not Call or not ctx.detect_selfcalls:
        return None
    func = tree.func
    if type(func) is Attribute:
        if func.attr != ctx.name:
            return None
        if ctx.receiver is None:
            return tree.args, tree.keywords
        if getname(func.value, accept_attr=False) != ctx.receiver:
            return None
        return [func.value] + tree.args, tree.keywords
    if ctx.receiver is None and getname(func, accept_attr=False) == ctx.name:
        return tree.args, tree.keywords
    return None

def is_selfcall(tree, ctx):
    """Return whether ``tree`` is a call to the function being transformed (see ``ctx``)."""
    return _selfcall_args(tree, ctx) is not None

def _has_tail_selfcall(tree, ctx):
    """Return whether the expression ``tree`` has a self-call in a tail position."""
    if is_opaque(tree, ctx):
        return False
    if is_selfcall(tree, ctx):
        return True
    if type(tree) is IfExp:
        return _has_tail_selfcall(tree.body, ctx) or _has_tail_selfcall(tree.orelse, ctx)
    if type(tree) is BoolOp:
        return _has_tail_selfcall(tree.values[-1], ctx)
    return False

# --------------------------------------------------------------------------------
# Rewriting expressions

def _action(ctx, variant, value, locref=None):
    tree = Call(func=Attribute(value=Name(id=ctx.action_name, ctx=Load()),
                               attr=variant, ctx=Load()),
                args=[value], keywords=[])
    return copy_location(tree, locref) if locref is not None else tree

def _state(args, keywords, callee, ctx, locref):
    """Build the state tuple for a self-call with the given arguments.

    When the arguments map one-to-one onto the parameters, this is just a tuple.
    Otherwise Python's own argument binding does the work, through the binder
    function the rebuilder emits::

        _f_rebind(_f_bind, _f_defaults, callee)(*args, **keywords)

    where ``callee`` is the function expression of the original call, so that
    omitted arguments get the default values held by the function actually called.
    """
    plain = not keywords and not any(type(x) is Starred for x in args)
    if ctx.signature.is_simple and plain and len(args) == len(ctx.signature.params):
        return copy_location(Tuple(elts=list(args), ctx=Load()), locref)
    binder = Call(func=Name(id=ctx.rebind_name, ctx=Load()),
                  args=[Name(id=ctx.binder_name, ctx=Load()),
                        Name(id=ctx.defaults_name, ctx=Load()),
                        deepcopy(callee)],
                  keywords=[])
    return copy_location(Call(func=binder, args=list(args), keywords=list(keywords)),
                         locref)

def rewrite_tail_expr(tree, ctx, *, protected=False):
    """Rewrite an expression in tail position into an action.

    A self-call becomes ``Continue(state)``. Anything else becomes ``Return(tree)``.
    Conditional expressions and ``and``/``or`` are analyzed recursively.

    If ``protected``, the expression is inside a ``with`` or ``try`` block,
    so a self-call is not a tail call; everything becomes ``Return``.

    The result is marked opaque, so rewriting it again is a no-op.
    """
    def transform(tree):
        if is_opaque(tree, ctx):
            return tree
        if protected:
            return _action(ctx, "Return", tree, tree)
        selfcall = _selfcall_args(tree, ctx)
        if selfcall is not None:
            args, keywords = selfcall
            return _action(ctx, "Continue", _state(args, keywords, tree.func, ctx, tree), tree)
        elif type(tree) is IfExp:
            # Only either body or orelse runs, so both of them are in tail position.
            # test is not in tail position.
            tree.body = transform(tree.body)
            tree.orelse = transform(tree.orelse)
            return tree
        elif type(tree) is BoolOp and _has_tail_selfcall(tree.values[-1], ctx):
            # The other items are evaluated exactly once, into a temporary,
            # so that a short-circuited value is returned as-is.
            if len(tree.values) > 2:
                others = copy_location(BoolOp(op=tree.op, values=tree.values[:-1]), tree)
            else:
                others = tree.values[0]
            test = copy_location(NamedExpr(target=Name(id=ctx.temp_name, ctx=Store()),
                                           value=others),
                                 tree)
            shortcircuit = _action(ctx, "Return", Name(id=ctx.temp_name, ctx=Load()), tree)
            tail = transform(tree.values[-1])
            if type(tree.op) is Or:
                # or(others..., tail) --> Return(t) if (t := or(others...)) else tail
                return copy_location(IfExp(test=test, body=shortcircuit, orelse=tail), tree)
            elif type(tree.op) is And:
                # and(others..., tail) --> tail if (t := and(others...)) else Return(t)
                return copy_location(IfExp(test=test, body=tail, orelse=shortcircuit), tree)
            else:  # cannot happen
                raise SyntaxError(f"unknown BoolOp type {tree.op}")  # pragma: no cover
        return _action(ctx, "Return", tree, tree)
    return mark_opaque(transform(tree))

# --------------------------------------------------------------------------------
# Rewriting statements

def _rewrite_return(tree, ctx, *, protected):
    value = tree.value
    if value is None:  # return --> return None
        value = copy_location(Constant(value=None), tree)
    return copy_location(Return(value=rewrite_tail_expr(value, ctx, protected=protected)), tree)

def _rewrite_block(body, ctx, *, tail, protected):
    """Rewrite a list of statements. If ``tail``, the last one is in tail position."""
    n = len(body)
    return [_rewrite_stmt(stmt, ctx, tail=(tail and k == n - 1), protected=protected)
            for k, stmt in enumerate(body)]

def _rewrite_stmt(tree, ctx, *, tail, protected):
    T = type(tree)
    if T in (FunctionDef, AsyncFunctionDef, ClassDef):  # another scope
        return tree
    if T is Return:
        return _rewrite_return(tree, ctx, protected=protected)
    if T is Expr:
        if tail and ctx.implicit_return and not is_opaque(tree.value, ctx):
            value = rewrite_tail_expr(tree.value, ctx, protected=protected)
            return copy_location(Return(value=value), tree)
        return tree
    if T is If:
        tree.body = _rewrite_block(tree.body, ctx, tail=tail, protected=protected)
        tree.orelse = _rewrite_block(tree.orelse, ctx, tail=tail, protected=protected)
    elif T is Match:
        for case in tree.cases:
            case.body = _rewrite_block(case.body, ctx, tail=tail, protected=protected)
    elif T in (With, AsyncWith):
        # The context manager must see the recursive call, so this is not a tail call.
        tree.body = _rewrite_block(tree.body, ctx, tail=tail, protected=True)
    elif T in try_types:
        # tail position is in else clause if present; otherwise in the body of the "try"
        finalized = protected or bool(tree.finalbody)
        tree.body = _rewrite_block(tree.body, ctx, tail=(tail and not tree.orelse), protected=True)
        tree.orelse = _rewrite_block(tree.orelse, ctx, tail=tail, protected=finalized)
        # additionally, tail position is in each "except" handler (but `except*` cannot `return`)
        handler_tail = tail and T is not TryStar
        for handler in tree.handlers:
            handler.body = _rewrite_block(handler.body, ctx, tail=handler_tail, protected=finalized)
        # We don't care about finalbody; typically used for unwinding only.
        tree.finalbody = _rewrite_block(tree.finalbody, ctx, tail=False, protected=True)
    elif T in (For, AsyncFor, While):
        # A loop body is never in tail position, but it may contain a `return`.
        tree.body = _rewrite_block(tree.body, ctx, tail=False, protected=protected)
        tree.orelse = _rewrite_block(tree.orelse, ctx, tail=False, protected=protected)
    return tree

def _is_irrefutable(case):
    return type(case.pattern) is MatchAs and case.pattern.pattern is None and case.guard is None

def _falls_through(body):
    """Return whether control may run off the end of the statement list ``body``.

    Conservative: when in doubt, assume it does.
    """
    if not body:
        return True
    last = body[-1]
    T = type(last)
    if T in (Return, Raise):
        return False
    if T is If:
        return _falls_through(last.body) or _falls_through(last.orelse)
    if T is Match:
        if not last.cases or not _is_irrefutable(last.cases[-1]):
            return True
        return any(_falls_through(case.body) for case in last.cases)
    if T in (With, AsyncWith):
        return _falls_through(last.body)
    if T in try_types:
        if last.finalbody and not _falls_through(last.finalbody):
            return False
        main = _falls_through(last.body) and (not last.orelse or _falls_through(last.orelse))
        return main or any(_falls_through(handler.body) for handler in last.handlers)
    return True

def rewrite_body(body, ctx):
    """Rewrite a function body (list of statements) for the loop-driven form.

    Every exit from the returned body is a ``return`` of an action. If control
    could fall off the end, ``return Return(None)`` is appended.

    Syntax transformer; ``body`` is modified in place, and also returned.
    Applying this twice is the same as applying it once.
    """
    body[:] = _rewrite_block(body, ctx, tail=True, protected=False)
    if _falls_through(body):
        locref = body[-1] if body else None
        ret = Return(value=mark_opaque(_action(ctx, "Return", Constant(value=None))))
        body.append(copy_location(ret, locref) if locref is not None else ret)
    return body

# --------------------------------------------------------------------------------
# Diagnostics

def find_nontail_selfcalls(tree, ctx):
    """Find self-calls in ``tree`` (an AST or a list of statements).

    Run on a rewritten body, this finds the self-calls that the rewrite left
    alone, i.e. those not in tail position. Closures are searched, too.
    """
    trees = tree if isinstance(tree, list) else [tree]
    return [node for t in trees for node in walk(t)
            if is_selfcall(node, ctx) and not is_opaque(node, ctx)]

def warn_nontail_selfcalls(body, ctx):
    """Emit a `NonTailRecursionWarning` for each self-call left in ``body``."""
    if not ctx.warn_nontail:
        return
    for call in find_nontail_selfcalls(body, ctx):
        lineno = getattr(call, "lineno", "?")
        warn(f"{ctx.name}: recursive call on line {lineno} is not in tail position; "
             "it remains an ordinary call, and still grows the call stack.",
             NonTailRecursionWarning, stacklevel=3)
