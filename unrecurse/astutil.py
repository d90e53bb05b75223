# -*- coding: utf-8 -*-
"""AST utilities: name extraction, scope boundaries, binding analysis.

Everything here stops at the boundary of nested scopes. From the viewpoint
of the function being transformed, a nested ``def`` or ``lambda`` is another
function; its ``return`` statements and its calls are none of our business.
"""

__all__ = ["getname", "isnewscope",
           "get_names_in_store_context", "get_nonlocal_declarations",
           "is_generator", "walk_scope"]

from ast import (Name, Attribute, Lambda, FunctionDef, AsyncFunctionDef, ClassDef,
                 Import, ImportFrom, ListComp, SetComp, GeneratorExp, DictComp,
                 Store, Nonlocal, Yield, YieldFrom, iter_child_nodes)

from mcpyrate.core import Done
from mcpyrate.quotes import is_captured_value
from mcpyrate.walkers import ASTVisitor

from .astcompat import try_types

_scope_types = (Lambda, FunctionDef, AsyncFunctionDef, ClassDef,
                ListComp, SetComp, GeneratorExp, DictComp)

def getname(tree, accept_attr=True):
    """Extract the name, as str, from a name-like AST node.

    We support:

        - bare name ``x``

        - the name ``x`` inside a `mcpyrate.core.Done`, which may be produced
          by expanded `@namemacro`s

        - the name ``x`` inside a `mcpyrate` hygienic capture

        - ``x`` as an attribute ``o.x`` (if ``accept_attr=True``)

    If no match on ``tree``, return ``None``.
    """
    if isinstance(tree, Done):
        return getname(tree.body, accept_attr=accept_attr)
    if type(tree) is Name:
        return tree.id
    key = is_captured_value(tree)  # AST -> (name, frozen_value) or False
    if key:
        name, frozen_value = key
        return name
    if accept_attr and type(tree) is Attribute:
        return tree.attr
    return None

def isnewscope(tree):
    """Return whether tree introduces a new lexical scope."""
    return type(tree) in _scope_types

def walk_scope(tree):
    """Like `ast.walk`, but do not descend into nested scopes.

    If ``tree`` itself is a scope (e.g. the function definition being
    analyzed), its own body is walked; nested scopes inside it are yielded
    but not entered.
    """
    def walk(node):
        yield node
        if isnewscope(node):
            return
        for child in iter_child_nodes(node):
            yield from walk(child)
    if isnewscope(tree):
        for child in iter_child_nodes(tree):
            yield from walk(child)
    else:
        yield from walk(tree)

def get_names_in_store_context(tree):
    """In a tree representing a function body, get the names bound in it.

    This includes:

        - Any ``Name`` in store context (LHS of an ``Assign``, a ``NamedExpr``,
          the targets of ``for``, the as-part of ``with``)

        - The names of nested ``FunctionDef``, ``AsyncFunctionDef`` or ``ClassDef``

        - The names (or asnames where applicable) of ``Import``

        - The exception name of any ``except`` handlers

    Duplicates may be returned. This stops at the boundary of any nested scopes.
    """
    class StoreNamesCollector(ASTVisitor):
        def examine(self, tree):
            if type(tree) in (FunctionDef, AsyncFunctionDef, ClassDef):
                self.collect(tree.name)
            elif type(tree) in (Import, ImportFrom):
                for x in tree.names:
                    # `import a.b` binds `a`
                    self.collect(x.asname if x.asname is not None else x.name.split(".")[0])
            elif type(tree) in try_types:
                for h in tree.handlers:
                    if h.name is not None:
                        self.collect(h.name)
            # macro-created nodes might not have a ctx
            if type(tree) is Name and type(getattr(tree, "ctx", None)) is Store:
                self.collect(tree.id)
            if not isnewscope(tree):
                self.generic_visit(tree)
    nc = StoreNamesCollector()
    if isinstance(tree, list):
        for stmt in tree:
            nc.visit(stmt)
    else:
        nc.visit(tree)
    return nc.collected

def get_nonlocal_declarations(body):
    """Return the names declared ``nonlocal`` in a function body (list of statements)."""
    names = []
    for stmt in body:
        for node in walk_scope(stmt):
            if type(node) is Nonlocal:
                names.extend(node.names)
    return names

def is_generator(tree):
    """Return whether the function definition ``tree`` is a generator function.

    A ``yield`` inside a nested scope does not count.
    """
    return any(type(node) in (Yield, YieldFrom) for node in walk_scope(tree))
