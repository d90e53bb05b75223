# -*- coding: utf-8 -*-
"""Conditionally import AST node types only supported by recent enough Python versions."""

__all__ = ["TryStar", "try_types"]

import ast

from unpythonic.symbol import gensym

_NoSuchNodeType = gensym("_NoSuchNodeType")

# Minimum language version supported by this module is Python 3.10,
# which introduced `ast.Match`.

try:  # Python 3.11+
    from ast import TryStar  # try/except*
except ImportError:  # pragma: no cover
    TryStar = _NoSuchNodeType

try_types = (ast.Try, TryStar)
