# -*- coding: utf-8 -*-
"""Idempotence guard: mark rewritten subtrees as finalized.

A rewritten tail expression is wrapped in an `OpaqueMarker`. Any later
rewriting pass over the same tree treats the marked node as a terminator,
so applying the rewrite twice gives the same tree as applying it once.

`OpaqueMarker` is an `mcpyrate` AST marker, which is a compile-time thing
only; it must be deleted before the tree is handed to Python's `compile`.
After deletion, the rewritten nodes are still recognizable: they are calls
to the generated ``Continue``/``Return`` constructors.
"""

__all__ = ["OpaqueMarker", "mark_opaque", "is_opaque", "delete_opaque_markers",
           "is_action_call", "is_transformed"]

from ast import Call, Attribute, ClassDef, FunctionDef, While

from mcpyrate.markers import ASTMarker, delete_markers

from .astutil import getname
from .context import RewriteContext

class OpaqueMarker(ASTMarker):
    """AST marker for an already rewritten tail expression."""

def mark_opaque(tree):
    """Wrap ``tree`` in an `OpaqueMarker`, unless already wrapped."""
    if isinstance(tree, OpaqueMarker):
        return tree
    return OpaqueMarker(tree)

def is_action_call(tree, action_name, variants=("Continue", "Return")):
    """Return whether ``tree`` is ``<action_name>.<variant>(...)``."""
    return (type(tree) is Call and type(tree.func) is Attribute and
            tree.func.attr in variants and
            getname(tree.func.value, accept_attr=False) == action_name)

def is_opaque(tree, ctx):
    """Return whether ``tree`` is finalized with respect to the rewrite of ``ctx``.

    ``ctx`` is the `unrecurse.context.RewriteContext` of the transformation.
    """
    return isinstance(tree, OpaqueMarker) or is_action_call(tree, ctx.action_name)

def delete_opaque_markers(tree):
    """Delete all `OpaqueMarker` nodes from ``tree``, splicing in their contents."""
    return delete_markers(tree, cls=OpaqueMarker)

def is_transformed(tree):
    """Return whether the function definition ``tree`` is already the output of `transform`.

    Recognized by the shape the rebuilder emits: the local action class and
    the inner function, followed later by the driving loop.
    """
    if type(tree) is not FunctionDef:
        return False
    ctx = RewriteContext.for_function(tree)
    kinds = {(type(stmt), getattr(stmt, "name", None)) for stmt in tree.body}
    return ((ClassDef, ctx.action_name) in kinds and
            (FunctionDef, ctx.inner_name) in kinds and
            (While, None) in kinds)
