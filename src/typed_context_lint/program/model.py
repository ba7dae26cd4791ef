"""
Resolved Program Model.

Type-system and symbol nodes produced by the loader and consumed by the
analysis passes. All nodes compare by identity (``eq=False``): two interface
values are the same interface only if they come from the same declaration,
which is what composition sets are computed against.

Type values:
    - ``InterfaceType``: a protocol class, an opaque external protocol, or an
      anonymous method-only remainder synthesized for display.
    - ``ClassType``: a concrete (non-protocol) class.
    - ``Signature``: a callable; the type of functions, bound methods and
      ``Callable[...]`` annotations.

Symbol values (what a name refers to):
    - ``Variable``, ``FunctionInfo``, ``ClassDecl``, ``ImportRef``, plus the
      resolved ``ModuleRef`` and ``ExternalRef``.
"""

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from typed_context_lint.enums import FunctionKind, ParamKind


@dataclass(eq=False)
class InterfaceType:
  """
  A structural interface: a set of explicit methods plus composed interfaces.
  """

  name: Optional[str]
  """Declared class name; None for anonymous interfaces."""

  module: Optional[str] = None
  """Qualified name of the defining module (None when anonymous)."""

  package: Optional[str] = None
  """The visibility boundary the interface belongs to."""

  methods: Dict[str, Optional["FunctionInfo"]] = field(default_factory=dict)
  """Explicitly declared methods, in declaration order."""

  embeds: List["InterfaceType"] = field(default_factory=list)
  """Directly composed interfaces, in base-list order."""

  opaque: bool = False
  """True for interfaces referenced from modules that were not loaded."""

  node: Optional[ast.ClassDef] = None

  @property
  def exported(self) -> bool:
    """Whether code outside the defining package may name this interface."""
    return self.name is not None and not self.name.startswith("_")

  @property
  def qualified_name(self) -> str:
    if self.name is None:
      return f"Protocol[{', '.join(f'{m}()' for m in self.methods)}]"
    if self.module:
      return f"{self.module}.{self.name}"
    return self.name

  def __repr__(self) -> str:
    return f"InterfaceType({self.qualified_name})"


@dataclass
class RecordField:
  """
  A declared field of a dataclass or NamedTuple.
  """

  name: str
  annotation: ast.expr


@dataclass(eq=False)
class ClassType:
  """
  A concrete class. Its methods are candidates for interface implementations.
  """

  name: str
  module: str
  package: str
  node: ast.ClassDef
  methods: Dict[str, "FunctionInfo"] = field(default_factory=dict)
  bases: List[Union["ClassType", InterfaceType]] = field(default_factory=list)
  fields: List[RecordField] = field(default_factory=list)
  is_record: bool = False
  complete: bool = True
  """False if some base could not be resolved, so the member set is partial."""

  @property
  def qualified_name(self) -> str:
    return f"{self.module}.{self.name}"

  def __repr__(self) -> str:
    return f"ClassType({self.qualified_name})"


@dataclass(eq=False)
class SignatureParam:
  name: Optional[str]
  kind: ParamKind
  type: Optional["TypeLike"] = None
  variable: Optional["Variable"] = None


@dataclass(eq=False)
class Signature:
  """
  The type of a callable value.

  Attributes:
      params: Parameters in declaration order (after binding, if bound).
      returns: The resolved return type, if known.
      accepts_any: True for ``Callable[..., R]``, whose parameters are unknown.
      function: The ``def`` this signature was built from, if any.
  """

  params: List[SignatureParam] = field(default_factory=list)
  returns: Optional["TypeLike"] = None
  accepts_any: bool = False
  function: Optional["FunctionInfo"] = None

  def param_at(self, index: int) -> Optional[SignatureParam]:
    """
    Gets the parameter to which the index'th positional argument is assigned.

    Arguments beyond the positional parameters land in ``*args``, if any.

    Args:
        index (int): Zero-based position among the positional arguments.

    Returns:
        The receiving parameter, or None if there is none.
    """
    positional = [p for p in self.params if p.kind == ParamKind.POSITIONAL]
    if index < len(positional):
      return positional[index]
    for param in self.params:
      if param.kind == ParamKind.VAR_POSITIONAL:
        return param
    return None

  def param_named(self, name: str) -> Optional[SignatureParam]:
    """
    Gets the parameter to which the keyword argument ``name`` is assigned.

    Args:
        name (str): The keyword.

    Returns:
        The receiving parameter (``**kwargs`` as a fallback), or None.
    """
    for param in self.params:
      if param.name == name and param.kind in (ParamKind.POSITIONAL, ParamKind.KEYWORD_ONLY):
        return param
    for param in self.params:
      if param.kind == ParamKind.VAR_KEYWORD:
        return param
    return None

  def first_param(self) -> Optional[SignatureParam]:
    """Returns the first positional parameter, if any."""
    for param in self.params:
      if param.kind == ParamKind.POSITIONAL:
        return param
    return None


TypeLike = Union[InterfaceType, ClassType, Signature]


@dataclass(eq=False)
class Variable:
  """
  A declared identifier: parameter, annotated name, or call-inferred local.

  The type is resolved lazily by the ``Program`` from whichever of
  ``annotation``, ``value`` or ``self_of`` is set.
  """

  name: str
  node: ast.AST
  """The defining node (an ``ast.arg`` or a ``Name`` in store context)."""

  module: "ModuleInfo"
  line: int
  column: int
  is_param: bool = False
  annotation: Optional[ast.expr] = None
  value: Optional[ast.expr] = None
  self_of: Optional["ClassDecl"] = None

  @property
  def package(self) -> str:
    return self.module.package

  @property
  def path(self) -> Path:
    return self.module.path

  def __repr__(self) -> str:
    return f"Variable({self.name} @ {self.module.name}:{self.line})"


@dataclass(eq=False)
class Param:
  name: str
  kind: ParamKind
  variable: Variable


@dataclass(eq=False)
class FunctionInfo:
  """
  A ``def`` statement, with its parameters bound to Variables.
  """

  name: str
  qualified_name: str
  node: Union[ast.FunctionDef, ast.AsyncFunctionDef]
  module: "ModuleInfo"
  kind: FunctionKind = FunctionKind.FUNCTION
  params: List[Param] = field(default_factory=list)
  owner: Optional["ClassDecl"] = None
  is_property: bool = False

  def __repr__(self) -> str:
    return f"FunctionInfo({self.qualified_name})"


@dataclass(eq=False)
class ClassDecl:
  """
  A ``class`` statement before linking; resolved into a ClassType or InterfaceType.
  """

  name: str
  qualified_name: str
  node: ast.ClassDef
  module: "ModuleInfo"
  methods: Dict[str, FunctionInfo] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportRef:
  """An imported name; ``target`` is the qualified name it refers to."""

  target: str


@dataclass(frozen=True)
class ModuleRef:
  """A loaded module used as a value (``import pkg.mod``)."""

  name: str


@dataclass(frozen=True)
class ExternalRef:
  """A qualified name that resolves outside the loaded modules."""

  qualified_name: str


Symbol = Union[Variable, FunctionInfo, ClassDecl, ImportRef]


@dataclass(eq=False)
class ModuleInfo:
  """
  One parsed source file.
  """

  name: str
  package: str
  path: Path
  tree: ast.Module
  is_test: bool = False
  symbols: Dict[str, Symbol] = field(default_factory=dict)
  classes: List[ClassDecl] = field(default_factory=list)

  def __repr__(self) -> str:
    return f"ModuleInfo({self.name})"
