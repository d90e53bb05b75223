# -*- coding: utf-8 -*
"""Turn self-tail-recursion into loops, by transforming the AST.

The main entry point is ``unrecurse.transform``, which takes and returns
an ``ast.FunctionDef``. For everyday use, see the run-time decorator
``unrecurse.recursive``, and the macro ``unrecurse.syntax.recursive``
(requires `mcpyrate`).

See ``dir(unrecurse)`` and submodule docstrings for more.
"""

__version__ = '0.1.0'

from .core import *  # noqa: F401, F403
from .decorator import *  # noqa: F401, F403
from .markers import is_transformed  # noqa: F401
from .signature import extract_signature, FunctionSignature, Param  # noqa: F401
from .tailtools import NonTailRecursionWarning  # noqa: F401
