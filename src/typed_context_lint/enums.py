"""
Enumerations for typed-context-lint.

This module defines the enumerations shared by the program model and the
analysis passes.
"""

from enum import Enum


class ProblemKind(str, Enum):
  """
  Categories of findings reported for a tracked context variable.

  Only one finding is reported per variable; the precedence is the
  declaration order below.
  """

  ALL_UNUSED = "all_unused"
  UNREQUESTED = "unrequested"
  UNUSED = "unused"


class ParamKind(str, Enum):
  """
  Binding behaviour of a function parameter.
  """

  POSITIONAL = "positional"  # positional-only or positional-or-keyword
  KEYWORD_ONLY = "keyword_only"
  VAR_POSITIONAL = "var_positional"  # *args
  VAR_KEYWORD = "var_keyword"  # **kwargs


class FunctionKind(str, Enum):
  """
  How a ``def`` binds its leading parameter when accessed.
  """

  FUNCTION = "function"
  METHOD = "method"
  STATICMETHOD = "staticmethod"
  CLASSMETHOD = "classmethod"


class ScopeKind(str, Enum):
  """
  Lexical scope categories used by the name binder.
  """

  MODULE = "module"
  CLASS = "class"
  FUNCTION = "function"
  COMPREHENSION = "comprehension"
