"""
Program: Linked Modules with Lazy Type Resolution.

After every module has been bound, the Program links class statements into
interface and class types and then answers the questions the analysis passes
ask about expressions:

- ``symbol_of``: what does this name or attribute chain refer to?
- ``type_of``: what is the static type of this expression?
- ``callee_signature``: which parameters does this call bind its arguments to?

Types are resolved from annotations, ``self`` binding, and (for unannotated
locals) the return type of the call that initialized them.
"""

import ast
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from typed_context_lint.config import LintConfig
from typed_context_lint.enums import FunctionKind, ParamKind
from typed_context_lint.errors import InvariantViolation
from typed_context_lint.program.binder import Scope
from typed_context_lint.program.lattice import find_method, is_complete
from typed_context_lint.program.model import (
  ClassDecl,
  ClassType,
  ExternalRef,
  FunctionInfo,
  ImportRef,
  InterfaceType,
  ModuleInfo,
  ModuleRef,
  RecordField,
  Signature,
  SignatureParam,
  Symbol,
  TypeLike,
  Variable,
)

Value = Union[Variable, FunctionInfo, InterfaceType, ClassType, ModuleRef, ExternalRef]

_TYPING_MODULES = ("typing", "typing_extensions", "abc", "builtins", "collections.abc")
_ANNOTATED = {"typing.Annotated", "typing_extensions.Annotated"}
_CALLABLE = {"typing.Callable", "collections.abc.Callable"}
_CLASS_VAR = {"typing.ClassVar", "typing_extensions.ClassVar"}
_NAMED_TUPLE = {"typing.NamedTuple", "typing_extensions.NamedTuple"}
_DATACLASS = {"dataclasses.dataclass"}
_MAX_IMPORT_DEPTH = 32


def _is_typing_name(qualified_name: str) -> bool:
  module = qualified_name.rpartition(".")[0]
  return module in _TYPING_MODULES


def _instance_fields(init: FunctionInfo) -> List[RecordField]:
  """
  Collects ``self.x: T = ...`` and ``self.x = param`` from an ``__init__``,
  typing the latter by the parameter's annotation.
  """
  receiver = init.params[0].name
  annotated = {p.name: p.variable.annotation for p in init.params[1:] if p.variable.annotation is not None}

  def _self_attr(target: ast.expr) -> Optional[str]:
    if isinstance(target, ast.Attribute) and isinstance(target.value, ast.Name) and target.value.id == receiver:
      return target.attr
    return None

  fields = []
  for stmt in ast.walk(init.node):
    if isinstance(stmt, ast.AnnAssign):
      name = _self_attr(stmt.target)
      if name is not None:
        fields.append(RecordField(name, stmt.annotation))
    elif isinstance(stmt, ast.Assign) and len(stmt.targets) == 1 and isinstance(stmt.value, ast.Name):
      name = _self_attr(stmt.targets[0])
      if name is not None and stmt.value.id in annotated:
        fields.append(RecordField(name, annotated[stmt.value.id]))
  return fields


class Program:
  """
  The loaded, bound and linked set of modules.
  """

  def __init__(
    self,
    modules: Iterable[ModuleInfo],
    config: LintConfig,
    node_scopes: Dict[ast.AST, Scope],
    definitions: Dict[ast.AST, Variable],
    functions: Dict[ast.AST, FunctionInfo],
  ):
    """
    Args:
        modules: Bound modules.
        config: Lint settings (protocol bases, base contexts).
        node_scopes: Name -> Scope map produced by binding.
        definitions: Defining node -> Variable map produced by binding.
        functions: def node -> FunctionInfo map produced by binding.
    """
    self.config = config
    self._modules: Dict[str, ModuleInfo] = {m.name: m for m in modules}
    self._node_scopes = node_scopes
    self._definitions = definitions
    self._functions = functions

    self._types: Dict[ClassDecl, Union[InterfaceType, ClassType]] = {}
    self._types_by_node: Dict[ast.ClassDef, Union[InterfaceType, ClassType]] = {}
    self._opaque: Dict[str, InterfaceType] = {}
    self._variable_types: Dict[Variable, Optional[TypeLike]] = {}
    self._resolving: Set[Variable] = set()
    self._signatures: Dict[Tuple[FunctionInfo, bool], Signature] = {}

    self._link()
    self.base_contexts: List[InterfaceType] = [self.interface_named(q) for q in config.base_context]

  # --- Modules ---

  def modules(self, package: Optional[str] = None) -> List[ModuleInfo]:
    """
    Returns loaded modules sorted by name, optionally restricted to a package.
    """
    found = [m for m in self._modules.values() if package is None or m.package == package]
    return sorted(found, key=lambda m: m.name)

  @property
  def packages(self) -> List[str]:
    return sorted({m.package for m in self._modules.values()})

  def module(self, name: str) -> Optional[ModuleInfo]:
    return self._modules.get(name)

  # --- Linking ---

  def _link(self) -> None:
    decls = [decl for module in self.modules() for decl in module.classes]

    for decl in decls:
      if self._is_protocol(decl):
        typ: Union[InterfaceType, ClassType] = InterfaceType(
          name=decl.name,
          module=decl.module.name,
          package=decl.module.package,
          methods=dict(decl.methods),
          node=decl.node,
        )
      else:
        typ = ClassType(
          name=decl.name,
          module=decl.module.name,
          package=decl.module.package,
          node=decl.node,
          methods=dict(decl.methods),
        )
      self._types[decl] = typ
      self._types_by_node[decl.node] = typ

    for decl in decls:
      typ = self._types[decl]
      if isinstance(typ, InterfaceType):
        self._link_interface(decl, typ)
    for decl in decls:
      typ = self._types[decl]
      if isinstance(typ, ClassType):
        self._link_class(decl, typ)

  def _is_protocol(self, decl: ClassDecl) -> bool:
    for base in decl.node.bases:
      if isinstance(base, ast.Subscript):
        base = base.value
      if self.qualified_name_of(base) in self.config.protocol_bases:
        return True
    return False

  def _base_target(self, base: ast.expr) -> Optional[Value]:
    if isinstance(base, ast.Subscript):
      base = base.value
    return self.symbol_of(base)

  def _link_interface(self, decl: ClassDecl, iface: InterfaceType) -> None:
    for base in decl.node.bases:
      target = self._base_target(base)
      if isinstance(target, InterfaceType):
        iface.embeds.append(target)
      elif isinstance(target, ExternalRef) and not _is_typing_name(target.qualified_name):
        iface.embeds.append(self._opaque_interface(target.qualified_name))

  def _link_class(self, decl: ClassDecl, cls: ClassType) -> None:
    for base in decl.node.bases:
      target = self._base_target(base)
      if isinstance(target, (InterfaceType, ClassType)):
        cls.bases.append(target)
      elif isinstance(target, ExternalRef):
        qualified = target.qualified_name
        if qualified in _NAMED_TUPLE:
          cls.is_record = True
        elif qualified in self._opaque or qualified in self.config.base_context:
          cls.bases.append(self._opaque_interface(qualified))
        elif not _is_typing_name(qualified):
          cls.complete = False
      elif not (isinstance(base, ast.Name) and base.id == "object"):
        cls.complete = False

    for decorator in decl.node.decorator_list:
      func = decorator.func if isinstance(decorator, ast.Call) else decorator
      if self.qualified_name_of(func) in _DATACLASS:
        cls.is_record = True

    for stmt in decl.node.body:
      if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
        annotation = stmt.annotation
        origin = annotation.value if isinstance(annotation, ast.Subscript) else annotation
        if self.qualified_name_of(origin) in _CLASS_VAR:
          continue
        cls.fields.append(RecordField(stmt.target.id, annotation))

    init = decl.methods.get("__init__")
    if init is not None and init.params:
      cls.fields.extend(_instance_fields(init))

  def _opaque_interface(self, qualified_name: str) -> InterfaceType:
    iface = self._opaque.get(qualified_name)
    if iface is None:
      module, _, name = qualified_name.rpartition(".")
      iface = InterfaceType(name=name, module=module or None, package=module or name, opaque=True)
      self._opaque[qualified_name] = iface
    return iface

  def interface_named(self, qualified_name: str) -> InterfaceType:
    """
    Resolves a qualified protocol name, falling back to an opaque interface.

    Args:
        qualified_name (str): e.g. ``context.Context``.

    Returns:
        InterfaceType: The loaded protocol, or the unique opaque stand-in.
    """
    value = self.lookup_qualified(qualified_name)
    if isinstance(value, InterfaceType):
      return value
    return self._opaque_interface(qualified_name)

  def type_for_class(self, node: ast.ClassDef) -> Optional[Union[InterfaceType, ClassType]]:
    return self._types_by_node.get(node)

  def interfaces_in(self, package: str) -> List[InterfaceType]:
    """Protocols declared in the package, in module then source order."""
    return [t for t in self._types_in(package) if isinstance(t, InterfaceType)]

  def classes_in(self, package: str) -> List[ClassType]:
    """Concrete classes declared in the package, in module then source order."""
    return [t for t in self._types_in(package) if isinstance(t, ClassType)]

  def _types_in(self, package: str) -> List[Union[InterfaceType, ClassType]]:
    return [self._types[decl] for module in self.modules(package) for decl in module.classes]

  # --- Symbols ---

  def lookup_qualified(self, qualified_name: str, _depth: int = 0) -> Optional[Value]:
    """
    Resolves a dotted name against the loaded modules.

    Args:
        qualified_name (str): Module path plus attribute chain.

    Returns:
        The resolved value; an ExternalRef if no loaded module prefixes the
        name; None if a loaded module lacks it.
    """
    if _depth > _MAX_IMPORT_DEPTH:
      return ExternalRef(qualified_name)
    if qualified_name in self._modules:
      return ModuleRef(qualified_name)

    parts = qualified_name.split(".")
    for split in range(len(parts) - 1, 0, -1):
      module = self._modules.get(".".join(parts[:split]))
      if module is None:
        continue
      value = self._normalize(module.symbols.get(parts[split]), _depth + 1)
      for attr in parts[split + 1 :]:
        value = self._member_of(value, attr, _depth + 1)
      return value
    return ExternalRef(qualified_name)

  def _normalize(self, symbol: Optional[Symbol], depth: int = 0) -> Optional[Value]:
    if isinstance(symbol, ClassDecl):
      # None while linking has not reached the class yet.
      return self._types.get(symbol)
    if isinstance(symbol, ImportRef):
      return self.lookup_qualified(symbol.target, depth)
    return symbol

  def _member_of(self, value: Optional[Value], attr: str, depth: int = 0) -> Optional[Value]:
    if isinstance(value, ModuleRef):
      return self.lookup_qualified(f"{value.name}.{attr}", depth)
    if isinstance(value, ExternalRef):
      return ExternalRef(f"{value.qualified_name}.{attr}")
    if isinstance(value, (InterfaceType, ClassType)):
      return find_method(value, attr)
    return None

  def symbol_of(self, expr: ast.expr, scope: Optional[Scope] = None) -> Optional[Value]:
    """
    Resolves a Name or attribute chain to what it statically refers to.

    Instance attributes (``self.x``) are not symbols; see ``type_of``.

    Args:
        expr: The expression.
        scope: Scope to resolve from, for nodes not seen during binding
            (parsed string annotations).

    Returns:
        The referenced value, or None.
    """
    if isinstance(expr, ast.Name):
      scope = scope or self._node_scopes.get(expr)
      if scope is None:
        return None
      return self._normalize(scope.lookup(expr.id))
    if isinstance(expr, ast.Attribute):
      return self._member_of(self.symbol_of(expr.value, scope), expr.attr)
    return None

  def qualified_name_of(self, expr: ast.expr, scope: Optional[Scope] = None) -> Optional[str]:
    """
    Returns the qualified name an expression refers to (``cache.cache``), if any.
    """
    value = self.symbol_of(expr, scope)
    if isinstance(value, (FunctionInfo, ExternalRef, InterfaceType, ClassType)):
      return value.qualified_name
    if isinstance(value, ModuleRef):
      return value.name
    return None

  def definition_of(self, node: ast.AST) -> Optional[Variable]:
    """Returns the Variable defined by an ``ast.arg`` or store-context Name."""
    return self._definitions.get(node)

  def variable_of(self, expr: ast.expr) -> Optional[Variable]:
    """Returns the Variable a Name refers to, if it refers to one."""
    if not isinstance(expr, ast.Name):
      return None
    value = self.symbol_of(expr)
    return value if isinstance(value, Variable) else None

  def function_for(self, node: ast.AST) -> Optional[FunctionInfo]:
    return self._functions.get(node)

  # --- Types ---

  def resolve_annotation(self, expr: Optional[ast.expr], scope: Optional[Scope] = None) -> Optional[TypeLike]:
    """
    Resolves a type annotation.

    Handles forward-reference strings, ``Annotated[T, ...]`` and
    ``Callable[[...], R]``. Other generics are not modelled.

    Args:
        expr: The annotation expression.
        scope: Scope override for parsed string annotations.

    Returns:
        The type, or None if it is not one the analysis models.
    """
    if expr is None:
      return None

    if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
      scope = scope or self._node_scopes.get(expr)
      try:
        parsed = ast.parse(expr.value.strip(), mode="eval").body
      except SyntaxError:
        return None
      return self.resolve_annotation(parsed, scope)

    if isinstance(expr, ast.Subscript):
      origin = self.qualified_name_of(expr.value, scope)
      if origin in _ANNOTATED and isinstance(expr.slice, ast.Tuple) and expr.slice.elts:
        return self.resolve_annotation(expr.slice.elts[0], scope)
      if origin in _CALLABLE:
        return self._callable_signature(expr.slice, scope)
      return None

    value = self.symbol_of(expr, scope)
    if isinstance(value, (InterfaceType, ClassType)):
      return value
    if isinstance(value, ExternalRef):
      qualified = value.qualified_name
      if qualified in self._opaque or qualified in self.config.base_context:
        return self._opaque_interface(qualified)
    return None

  def _callable_signature(self, slice_expr: ast.expr, scope: Optional[Scope]) -> Signature:
    if not (isinstance(slice_expr, ast.Tuple) and len(slice_expr.elts) == 2):
      return Signature(accepts_any=True)
    args, ret = slice_expr.elts
    returns = self.resolve_annotation(ret, scope)
    if isinstance(args, ast.List):
      params = [SignatureParam(None, ParamKind.POSITIONAL, self.resolve_annotation(a, scope)) for a in args.elts]
      return Signature(params, returns)
    return Signature(returns=returns, accepts_any=True)

  def variable_type(self, variable: Variable) -> Optional[TypeLike]:
    """
    Returns the static type of a variable (memoized).

    Args:
        variable: The variable.

    Returns:
        The annotated type; else the enclosing class for ``self``; else the
        type of the initializing expression; else None.
    """
    if variable in self._variable_types:
      return self._variable_types[variable]
    if variable in self._resolving:
      return None

    self._resolving.add(variable)
    try:
      if variable.annotation is not None:
        typ = self.resolve_annotation(variable.annotation)
      elif variable.self_of is not None:
        typ = self._types.get(variable.self_of)
      elif variable.value is not None:
        typ = self.type_of(variable.value)
      else:
        typ = None
    finally:
      self._resolving.discard(variable)

    self._variable_types[variable] = typ
    return typ

  def signature_of(self, function: FunctionInfo, bound: bool) -> Signature:
    """
    Builds the signature of a ``def``.

    Args:
        function: The function.
        bound: Whether it is accessed through an instance. Classmethods are
            always bound; staticmethods never are.

    Returns:
        Signature: Parameters with the receiver dropped when bound.
    """
    key = (function, bound)
    cached = self._signatures.get(key)
    if cached is not None:
      return cached

    params = [SignatureParam(p.name, p.kind, self.variable_type(p.variable), p.variable) for p in function.params]
    drop_receiver = function.kind == FunctionKind.CLASSMETHOD or (bound and function.kind == FunctionKind.METHOD)
    if drop_receiver and params and params[0].kind == ParamKind.POSITIONAL:
      params = params[1:]

    signature = Signature(params, self.resolve_annotation(function.node.returns), function=function)
    self._signatures[key] = signature
    return signature

  def type_of(self, expr: ast.expr) -> Optional[TypeLike]:
    """
    Returns the static type of an expression, if the analysis can tell.
    """
    if isinstance(expr, ast.Name):
      return self._value_type(self.symbol_of(expr))

    if isinstance(expr, ast.Attribute):
      value = self.symbol_of(expr)
      if value is not None:
        return self._value_type(value)
      return self.member_type(self.type_of(expr.value), expr.attr)

    if isinstance(expr, ast.Call):
      callee = self.symbol_of(expr.func)
      if isinstance(callee, ClassType):
        return callee
      signature = self.callee_signature(expr.func)
      return signature.returns if signature is not None else None

    return None

  def _value_type(self, value: Optional[Value]) -> Optional[TypeLike]:
    if isinstance(value, Variable):
      return self.variable_type(value)
    if isinstance(value, FunctionInfo):
      return self.signature_of(value, bound=False)
    return None

  def member_type(self, owner: Optional[TypeLike], attr: str) -> Optional[TypeLike]:
    """
    Returns the type of ``instance.attr`` for an instance of ``owner``.

    Methods give their bound signature, properties their return type and
    declared fields their annotation.
    """
    if owner is None:
      return None
    method = find_method(owner, attr)
    if method is not None:
      signature = self.signature_of(method, bound=True)
      return signature.returns if method.is_property else signature
    if isinstance(owner, ClassType):
      for record_field in self.record_fields(owner):
        if record_field.name == attr:
          return self.resolve_annotation(record_field.annotation)
    return None

  def record_fields(self, cls: ClassType) -> List[RecordField]:
    """
    Returns declared fields in constructor order: inherited ones first.
    """
    fields: List[RecordField] = []
    seen: Set[str] = set()
    chain: List[ClassType] = []
    pending = [cls]
    while pending:
      current = pending.pop()
      if current in chain:
        continue
      chain.append(current)
      pending.extend(b for b in current.bases if isinstance(b, ClassType))
    for current in reversed(chain):
      for record_field in current.fields:
        if record_field.name not in seen:
          seen.add(record_field.name)
          fields.append(record_field)
    return fields

  def record_class_of(self, func: ast.expr) -> Optional[ClassType]:
    """
    Returns the class if ``func(...)`` is a record literal: a dataclass or
    NamedTuple constructed through its generated ``__init__``.
    """
    value = self.symbol_of(func)
    if isinstance(value, ClassType) and value.is_record and find_method(value, "__init__") is None:
      return value
    return None

  def callee_signature(self, func: ast.expr) -> Optional[Signature]:
    """
    Determines the signature a call expression binds its arguments against.

    Args:
        func: The ``Call.func`` expression.

    Returns:
        The signature, or None when the callee is unknown or takes record
        fields rather than parameters.

    Raises:
        InvariantViolation: If the callee is statically known not to be callable.
    """
    value = self.symbol_of(func)

    if isinstance(value, FunctionInfo):
      return self.signature_of(value, bound=False)
    if isinstance(value, ClassType):
      return self.constructor_signature(value)
    if isinstance(value, InterfaceType):
      raise InvariantViolation(f"protocol {value.qualified_name} is called as a constructor")
    if isinstance(value, ModuleRef):
      raise InvariantViolation(f"module {value.name} is called")
    if isinstance(value, ExternalRef):
      return None

    typ = self.variable_type(value) if isinstance(value, Variable) else self.type_of(func)
    if typ is None:
      return None
    if isinstance(typ, Signature):
      return typ
    call = find_method(typ, "__call__")
    if call is not None:
      return self.signature_of(call, bound=True)
    if is_complete(typ):
      raise InvariantViolation(f"value of type {typ.qualified_name} is called but defines no __call__")
    return None

  def constructor_signature(self, cls: ClassType) -> Optional[Signature]:
    init = find_method(cls, "__init__")
    if init is not None:
      signature = self.signature_of(init, bound=True)
      return Signature(signature.params, returns=cls, function=init)
    if cls.is_record:
      return None
    if is_complete(cls):
      return Signature(returns=cls)
    return None


