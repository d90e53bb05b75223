# -*- coding: utf-8 -*-
"""Tail-position analysis and rewriting."""

from unpythonic.syntax import macros, test, the  # noqa: F401
from unpythonic.test.fixtures import session, testset

from ast import (Return, Expr, If, IfExp, For, While, With, Match, FunctionDef,
                 Call, Name, Tuple, Constant, Lambda, NamedExpr, dump, parse)
from copy import deepcopy

from ..context import RewriteContext
from ..core import parse_function
from ..markers import OpaqueMarker, delete_opaque_markers, is_action_call
from ..tailtools import (rewrite_body, rewrite_tail_expr, is_selfcall,
                         find_nontail_selfcalls)

def rewritten(source, **options):
    """Parse a function, rewrite its body, and return the body and the context."""
    tree = parse_function(source)
    ctx = RewriteContext.for_function(tree, **options)
    rewrite_body(tree.body, ctx)
    return delete_opaque_markers(tree).body, ctx

def variant(tree, ctx):
    """``"Continue"`` or ``"Return"`` if ``tree`` is an action constructor call, else ``None``."""
    if is_action_call(tree, ctx.action_name):
        return tree.func.attr
    return None

def payload(tree):
    return tree.args[0]

def expr(source):
    return parse(source, mode="eval").body

def runtests():
    with testset("self-call detection"):
        ctx = RewriteContext.for_function(parse_function("def f(n): pass"))
        test[is_selfcall(expr("f(1)"), ctx)]
        test[is_selfcall(expr("f()"), ctx)]
        test[is_selfcall(expr("obj.f(1)"), ctx)]  # method-style call, receiver dropped
        test[not is_selfcall(expr("g(1)"), ctx)]
        test[not is_selfcall(expr("obj.g(1)"), ctx)]
        test[not is_selfcall(expr("f"), ctx)]
        test[not is_selfcall(expr("f(1)(2)"), ctx)]  # the outer call calls whatever f returns

        # method convention: only calls through the receiver count
        ctx = RewriteContext.for_function(parse_function("def down(self, n): pass"))
        test[is_selfcall(expr("self.down(1)"), ctx)]
        test[not is_selfcall(expr("other.down(1)"), ctx)]
        test[not is_selfcall(expr("down(1)"), ctx)]

    with testset("tail expressions"):
        ctx = RewriteContext.for_function(parse_function("def f(a, b): pass"))

        out = rewrite_tail_expr(expr("f(a - 1, b + 1)"), ctx)
        test[type(out) is OpaqueMarker]
        test[variant(out.body, ctx) == "Continue"]
        test[type(payload(out.body)) is Tuple]
        test[dump(payload(out.body)) == dump(expr("(a - 1, b + 1)"))]

        out = rewrite_tail_expr(expr("g(a)"), ctx)  # a call to some other function is a value
        test[variant(out.body, ctx) == "Return"]
        test[dump(payload(out.body)) == dump(expr("g(a)"))]

        out = rewrite_tail_expr(expr("a + f(a, b)"), ctx)  # self-call in a non-tail position
        test[variant(out.body, ctx) == "Return"]

        out = rewrite_tail_expr(expr("a if b else f(b, a)"), ctx)
        test[type(out.body) is IfExp]
        test[variant(out.body.body, ctx) == "Return"]
        test[variant(out.body.orelse, ctx) == "Continue"]
        test[variant(out.body.test, ctx) is None]  # not in tail position

        # protected region: nothing is a tail call
        out = rewrite_tail_expr(expr("f(a, b)"), ctx, protected=True)
        test[variant(out.body, ctx) == "Return"]
        test[type(payload(out.body)) is Call and is_selfcall(payload(out.body), ctx)]

        # already rewritten: no change
        once = rewrite_tail_expr(expr("f(a, b)"), ctx)
        test[rewrite_tail_expr(once, ctx) is once]
        bare = once.body
        test[the[rewrite_tail_expr(bare, ctx).body] is bare]

    with testset("and/or"):
        ctx = RewriteContext.for_function(parse_function("def f(xs): pass"))
        out = rewrite_tail_expr(expr("xs and f(xs[1:])"), ctx).body
        # xs and f(...) --> f(...) if (t := xs) else Return(t)
        test[type(out) is IfExp]
        test[type(out.test) is NamedExpr and out.test.target.id == ctx.temp_name]
        test[variant(out.body, ctx) == "Continue"]
        test[variant(out.orelse, ctx) == "Return"]
        test[type(payload(out.orelse)) is Name and payload(out.orelse).id == ctx.temp_name]

        out = rewrite_tail_expr(expr("a or b or f(xs)"), ctx).body
        # a or b or f(...) --> Return(t) if (t := a or b) else f(...)
        test[type(out) is IfExp]
        test[variant(out.body, ctx) == "Return"]
        test[variant(out.orelse, ctx) == "Continue"]
        test[dump(out.test.value) == dump(expr("a or b"))]

        # only the last item is in tail position
        out = rewrite_tail_expr(expr("f(xs) or a"), ctx).body
        test[variant(out, ctx) == "Return"]
        test[type(payload(out)) is not IfExp]

    with testset("explicit return, implicit return, fall-through"):
        body, ctx = rewritten("""
            def sum_to(n, acc):
                if n == 0:
                    return acc
                return sum_to(n - 1, acc + n)
            """)
        test[type(body[0]) is If]
        test[variant(body[0].body[0].value, ctx) == "Return"]
        test[variant(body[1].value, ctx) == "Continue"]
        test[len(body) == 2]  # no fall-through

        body, ctx = rewritten("""
            def is_even(n):
                if n == 0:
                    True
                else:
                    is_even(n - 1)
            """)
        then, otherwise = body[0].body[0], body[0].orelse[0]
        test[type(then) is Return and variant(then.value, ctx) == "Return"]
        test[type(otherwise) is Return and variant(otherwise.value, ctx) == "Continue"]
        test[dump(payload(otherwise.value)) == dump(expr("(n - 1,)"))]
        test[len(body) == 1]

        body, ctx = rewritten("""
            def f(n):
                if n == 0:
                    return
                print(n)
                x = n
            """)
        test[dump(body[0].body[0].value) == dump(expr(f"{ctx.action_name}.Return(None)"))]
        test[type(body[1]) is Expr]  # not the last statement
        test[dump(body[-1].value) == dump(expr(f"{ctx.action_name}.Return(None)"))]  # appended
        test[len(body) == 4]

        body, ctx = rewritten("""
            def is_even(n):
                if n == 0:
                    True
                else:
                    is_even(n - 1)
            """, implicit_return=False)
        test[type(body[0].body[0]) is Expr]
        test[type(body[0].orelse[0]) is Expr]
        test[variant(body[-1].value, ctx) == "Return"]

    with testset("match arms"):
        body, ctx = rewritten("""
            def f(x: int) -> int:
                match x:
                    case 0:
                        1
                    case n:
                        f(n - 1)
            """)
        test[type(body[0]) is Match]
        zero, other = body[0].cases
        test[variant(zero.body[0].value, ctx) == "Return"]
        test[dump(payload(zero.body[0].value)) == dump(Constant(value=1))]
        test[variant(other.body[0].value, ctx) == "Continue"]
        test[dump(payload(other.body[0].value)) == dump(expr("(n - 1,)"))]
        test[len(body) == 1]  # irrefutable last case, no fall-through

        body, ctx = rewritten("""
            def f(x):
                match x:
                    case 0:
                        return 1
                    case [y]:
                        return f(y)
            """)
        test[variant(body[0].cases[1].body[0].value, ctx) == "Continue"]
        test[variant(body[-1].value, ctx) == "Return"]  # no case may match

    with testset("loops"):
        body, ctx = rewritten("""
            def first_even(xs):
                for x in xs:
                    if x % 2 == 0:
                        return x
                    f(x)
                while xs:
                    return first_even(xs[1:])
            """)
        loop = body[0]
        test[type(loop) is For]
        test[variant(loop.body[0].body[0].value, ctx) == "Return"]
        test[type(loop.body[1]) is Expr]  # a loop body is never in tail position
        test[type(body[1]) is While]
        test[variant(body[1].body[0].value, ctx) == "Continue"]  # but `return` always is

    with testset("protected regions"):
        body, ctx = rewritten("""
            def f(n):
                with lock:
                    return f(n - 1)
            """)
        test[type(body[0]) is With]
        ret = body[0].body[0].value
        test[variant(ret, ctx) == "Return"]
        test[is_selfcall(payload(ret), ctx)]

        body, ctx = rewritten("""
            def g(n):
                try:
                    x = int(n)
                except ValueError:
                    return g(0)
                else:
                    return g(x - 1) if x > 0 else "done"
            """)
        handler = body[0].handlers[0].body[0].value
        otherwise = body[0].orelse[0].value
        test[variant(handler, ctx) == "Continue"]
        test[variant(otherwise.body, ctx) == "Continue"]
        test[variant(otherwise.orelse, ctx) == "Return"]

        body, ctx = rewritten("""
            def g(n):
                try:
                    return g(n - 1)
                except ValueError:
                    return g(0)
                finally:
                    cleanup()
            """)
        test[variant(body[0].body[0].value, ctx) == "Return"]
        test[variant(body[0].handlers[0].body[0].value, ctx) == "Return"]
        test[type(body[0].finalbody[0]) is Expr]  # never in tail position
        test[len(find_nontail_selfcalls(body, ctx)) == 2]

    with testset("nested scopes are left alone"):
        body, ctx = rewritten("""
            def f(n):
                def g():
                    return f(n - 1)
                h = lambda: f(n - 2)
                return h
            """)
        test[type(body[0]) is FunctionDef]
        test[type(body[0].body[0].value) is Call]
        test[is_selfcall(body[0].body[0].value, ctx)]
        test[type(body[1].value) is Lambda]
        # the calls are still there, and found as non-tail calls
        test[len(find_nontail_selfcalls(body, ctx)) == 2]

    with testset("non-tail self-calls are preserved verbatim"):
        source = """
            def countdown(n):
                if n == 0:
                    return 0
                return helper(countdown(n - 1))
            """
        original = parse_function(source).body[1].value.args[0]
        body, ctx = rewritten(source)
        ret = body[1].value
        test[variant(ret, ctx) == "Return"]
        test[dump(payload(ret)) == dump(expr("helper(countdown(n - 1))"))]
        found = find_nontail_selfcalls(body, ctx)
        test[len(found) == 1]
        test[dump(found[0]) == dump(original)]

    with testset("state tuple via the binder"):
        body, ctx = rewritten("""
            def power(base, exp, acc=1):
                if exp == 0:
                    return acc
                return power(base, exp - 1, acc=acc * base)
            """)
        def binds(state, ctx, callee):
            # _f_rebind(_f_bind, _f_defaults, callee)(...)
            return (type(state) is Call and type(state.func) is Call and
                    state.func.func.id == ctx.rebind_name and
                    [x.id for x in state.func.args[:2]] == [ctx.binder_name, ctx.defaults_name] and
                    dump(state.func.args[2]) == dump(expr(callee)))

        state = payload(body[1].value)
        test[binds(state, ctx, "power")]
        test[len(state.keywords) == 1]

        body, ctx = rewritten("def power(base, exp, acc=1):\n    return power(base, exp - 1)")
        test[binds(payload(body[0].value), ctx, "power")]  # omitted default

        body, ctx = rewritten("def total(*xs):\n    return total(*xs[1:])")
        test[binds(payload(body[0].value), ctx, "total")]  # not simple

        # the callee expression is kept, so its default values can be looked up
        body, ctx = rewritten("def down(self, n, acc=0):\n    return self.down(n - 1)")
        state = payload(body[0].value)
        test[binds(state, ctx, "self.down")]
        test[[dump(x) for x in state.args] == [dump(expr("self")), dump(expr("n - 1"))]]

    with testset("methods"):
        body, ctx = rewritten("""
            def down(self, n):
                if n == 0:
                    return self
                return self.down(n - 1)
            """)
        state = payload(body[1].value)
        test[variant(body[1].value, ctx) == "Continue"]
        test[dump(state) == dump(expr("(self, n - 1)"))]

    with testset("idempotence"):
        source = """
            def f(xs, acc):
                match xs:
                    case []:
                        acc
                    case [x, *rest]:
                        if x and f(rest, acc):
                            return None
                        return (acc and f(rest, acc + x)) if x else f(rest, acc, extra=1)
                try:
                    pass
                except Exception:
                    return f(xs, acc)
            """
        tree = parse_function(source)
        ctx = RewriteContext.for_function(tree)
        rewrite_body(tree.body, ctx)
        once = dump(tree)
        rewrite_body(tree.body, ctx)
        test[dump(tree) == once]

        # also once the markers are gone, since the action constructors are recognized
        cleaned = delete_opaque_markers(deepcopy(tree))
        once = dump(cleaned)
        rewrite_body(cleaned.body, ctx)
        test[dump(delete_opaque_markers(cleaned)) == once]

if __name__ == '__main__':  # pragma: no cover
    with session(__file__):
        runtests()
