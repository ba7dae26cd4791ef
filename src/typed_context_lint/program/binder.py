"""
Scope Binding for Parsed Modules.

The `ScopeBinder` walks one module and records:

1.  **Declarations**: parameters, annotated names, assigned names, functions,
    classes and imports, each in the scope Python would bind it in.
2.  **Definitions**: the defining node (``ast.arg`` or store-context ``Name``)
    of every declared variable, mapped to its `Variable`.
3.  **Name Scopes**: for every ``Name`` (and string constant, which may be a
    forward-reference annotation) the scope it is looked up from.

No types are resolved here; the `Program` does that lazily once every module
has been bound.
"""

import ast
from typing import Dict, Iterable, List, Optional, Union

from typed_context_lint.enums import FunctionKind, ParamKind, ScopeKind
from typed_context_lint.program.model import (
  ClassDecl,
  FunctionInfo,
  ImportRef,
  ModuleInfo,
  Param,
  Symbol,
  Variable,
)

_FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class Scope:
  """
  Represents a lexical scope (Module, Class, Function or Comprehension).
  """

  def __init__(
    self,
    kind: ScopeKind,
    parent: Optional["Scope"] = None,
    name: str = "<module>",
    owner: Optional[Union[ClassDecl, FunctionInfo]] = None,
  ):
    """
    Initialize the scope.

    Args:
        kind: The scope category.
        parent: The enclosing scope (None for the module).
        name: Debug name for the scope.
        owner: The class or function that opened the scope, if any.
    """
    self.kind = kind
    self.parent = parent
    self.name = name
    self.owner = owner
    self.symbols: Dict[str, Symbol] = {}

  def declare(self, name: str, symbol: Symbol) -> bool:
    """
    Register a symbol unless the name is already bound in this scope.

    Args:
        name: Identifier.
        symbol: What it refers to.

    Returns:
        True if this call introduced the binding.
    """
    if name in self.symbols:
      return False
    self.symbols[name] = symbol
    return True

  def lookup(self, name: str) -> Optional[Symbol]:
    """
    Resolve a name, traversing parent scopes.

    Class scopes are only consulted when the lookup starts in them; code
    nested in a class body does not see the class's names.

    Args:
        name: Identifier to lookup.

    Returns:
        The Symbol if found, else None.
    """
    if name in self.symbols:
      return self.symbols[name]
    scope = self.parent
    while scope is not None:
      if scope.kind != ScopeKind.CLASS and name in scope.symbols:
        return scope.symbols[name]
      scope = scope.parent
    return None

  def __repr__(self) -> str:
    return f"Scope({self.kind.value}:{self.name})"


def _decorator_name(node: ast.expr) -> str:
  """Returns the trailing name of a decorator expression (``functools.cache(...)`` -> ``cache``)."""
  if isinstance(node, ast.Call):
    node = node.func
  if isinstance(node, ast.Name):
    return node.id
  if isinstance(node, ast.Attribute):
    return node.attr
  return ""


class ScopeBinder(ast.NodeVisitor):
  """
  Binds the names of one module.

  The binder visits expressions that Python evaluates in the enclosing scope
  (decorators, defaults, annotations, base classes) before opening the new
  scope, so their names resolve where the interpreter would resolve them.
  """

  def __init__(
    self,
    module: ModuleInfo,
    import_base: str,
    node_scopes: Dict[ast.AST, Scope],
    definitions: Dict[ast.AST, Variable],
    functions: Dict[ast.AST, FunctionInfo],
  ):
    """
    Args:
        module: The module to bind; its ``symbols`` become the module scope.
        import_base: Package that relative imports are resolved against.
        node_scopes: Shared map receiving Name -> Scope entries.
        definitions: Shared map receiving defining node -> Variable entries.
        functions: Shared map receiving def node -> FunctionInfo entries.
    """
    self.module = module
    self.import_base = import_base
    self.node_scopes = node_scopes
    self.definitions = definitions
    self.functions = functions
    self.scope = Scope(ScopeKind.MODULE, name=module.name)
    module.symbols = self.scope.symbols

  def bind(self) -> Scope:
    """
    Binds the whole module.

    Returns:
        The module scope.
    """
    self.visit(self.module.tree)
    return self.scope

  # --- Scoping ---

  def _push(self, scope: Scope) -> None:
    self.scope = scope

  def _pop(self) -> None:
    if self.scope.parent is not None:
      self.scope = self.scope.parent

  def _qualify(self, name: str) -> str:
    parts = [name]
    scope = self.scope
    while scope is not None and scope.kind != ScopeKind.MODULE:
      parts.append(scope.name)
      scope = scope.parent
    parts.append(self.module.name)
    return ".".join(reversed(parts))

  def _visit_all(self, nodes: Iterable[Optional[ast.AST]]) -> None:
    for node in nodes:
      if node is not None:
        self.visit(node)

  def visit_ClassDef(self, node: ast.ClassDef) -> None:
    decl = ClassDecl(name=node.name, qualified_name=self._qualify(node.name), node=node, module=self.module)
    self.module.classes.append(decl)
    self.scope.declare(node.name, decl)

    self._visit_all(node.decorator_list)
    self._visit_all(node.bases)
    self._visit_all(k.value for k in node.keywords)

    self._push(Scope(ScopeKind.CLASS, self.scope, node.name, owner=decl))
    self._visit_all(node.body)
    self._pop()

  def visit_FunctionDef(self, node: _FunctionNode) -> None:
    owner = self.scope.owner if self.scope.kind == ScopeKind.CLASS else None
    decorators = {_decorator_name(d) for d in node.decorator_list}

    if owner is None:
      kind = FunctionKind.FUNCTION
    elif "staticmethod" in decorators:
      kind = FunctionKind.STATICMETHOD
    elif "classmethod" in decorators:
      kind = FunctionKind.CLASSMETHOD
    else:
      kind = FunctionKind.METHOD

    info = FunctionInfo(
      name=node.name,
      qualified_name=self._qualify(node.name),
      node=node,
      module=self.module,
      kind=kind,
      owner=owner,
      is_property=bool(decorators & {"property", "cached_property"}),
    )
    self.functions[node] = info
    if owner is not None:
      owner.methods.setdefault(node.name, info)
    self.scope.declare(node.name, info)

    args = node.args
    self._visit_all(node.decorator_list)
    self._visit_all(args.defaults)
    self._visit_all(args.kw_defaults)
    self._visit_all(a.annotation for a in self._all_args(args))
    self._visit_all([node.returns])

    self._push(Scope(ScopeKind.FUNCTION, self.scope, node.name, owner=info))
    info.params = self._declare_params(args, self_of=owner if kind == FunctionKind.METHOD else None)
    self._visit_all(node.body)
    self._pop()

  visit_AsyncFunctionDef = visit_FunctionDef

  def visit_Lambda(self, node: ast.Lambda) -> None:
    self._visit_all(node.args.defaults)
    self._visit_all(node.args.kw_defaults)
    self._push(Scope(ScopeKind.FUNCTION, self.scope, "<lambda>"))
    self._declare_params(node.args)
    self.visit(node.body)
    self._pop()

  def _visit_comprehension(self, generators: List[ast.comprehension], elements: List[ast.expr]) -> None:
    # The first iterable is evaluated in the enclosing scope.
    self.visit(generators[0].iter)
    self._push(Scope(ScopeKind.COMPREHENSION, self.scope, "<comprehension>"))
    for index, generator in enumerate(generators):
      if index:
        self.visit(generator.iter)
      self._declare_target(generator.target)
      self.visit(generator.target)
      self._visit_all(generator.ifs)
    self._visit_all(elements)
    self._pop()

  def visit_ListComp(self, node: ast.ListComp) -> None:
    self._visit_comprehension(node.generators, [node.elt])

  visit_SetComp = visit_ListComp
  visit_GeneratorExp = visit_ListComp

  def visit_DictComp(self, node: ast.DictComp) -> None:
    self._visit_comprehension(node.generators, [node.key, node.value])

  # --- Declarations ---

  @staticmethod
  def _all_args(args: ast.arguments) -> List[ast.arg]:
    extra = [a for a in (args.vararg, args.kwarg) if a is not None]
    return list(args.posonlyargs) + list(args.args) + list(args.kwonlyargs) + extra

  def _declare_params(self, args: ast.arguments, self_of: Optional[ClassDecl] = None) -> List[Param]:
    params = []
    for index, arg in enumerate(list(args.posonlyargs) + list(args.args)):
      implicit = self_of if index == 0 and arg.annotation is None else None
      params.append(Param(arg.arg, ParamKind.POSITIONAL, self._declare_arg(arg, implicit)))
    if args.vararg is not None:
      params.append(Param(args.vararg.arg, ParamKind.VAR_POSITIONAL, self._declare_arg(args.vararg)))
    for arg in args.kwonlyargs:
      params.append(Param(arg.arg, ParamKind.KEYWORD_ONLY, self._declare_arg(arg)))
    if args.kwarg is not None:
      params.append(Param(args.kwarg.arg, ParamKind.VAR_KEYWORD, self._declare_arg(args.kwarg)))
    return params

  def _declare_arg(self, arg: ast.arg, self_of: Optional[ClassDecl] = None) -> Variable:
    variable = Variable(
      name=arg.arg,
      node=arg,
      module=self.module,
      line=arg.lineno,
      column=arg.col_offset + 1,
      is_param=True,
      annotation=arg.annotation,
      self_of=self_of,
    )
    self.definitions[arg] = variable
    self.scope.declare(arg.arg, variable)
    return variable

  def _declare_name(
    self,
    node: ast.Name,
    annotation: Optional[ast.expr] = None,
    value: Optional[ast.expr] = None,
  ) -> None:
    variable = Variable(
      name=node.id,
      node=node,
      module=self.module,
      line=node.lineno,
      column=node.col_offset + 1,
      annotation=annotation,
      value=value,
    )
    if self.scope.declare(node.id, variable):
      self.definitions[node] = variable

  def _declare_target(self, target: ast.expr, value: Optional[ast.expr] = None) -> None:
    if isinstance(target, ast.Name):
      self._declare_name(target, value=value)
    elif isinstance(target, (ast.Tuple, ast.List)):
      for element in target.elts:
        self._declare_target(element)
    elif isinstance(target, ast.Starred):
      self._declare_target(target.value)

  def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
    # Class-level annotations are fields, not variables.
    if self.scope.kind != ScopeKind.CLASS and isinstance(node.target, ast.Name):
      self._declare_name(node.target, annotation=node.annotation, value=node.value)
    self.generic_visit(node)

  def visit_Assign(self, node: ast.Assign) -> None:
    if self.scope.kind != ScopeKind.CLASS:
      single = len(node.targets) == 1 and isinstance(node.targets[0], ast.Name)
      for target in node.targets:
        self._declare_target(target, value=node.value if single else None)
    self.generic_visit(node)

  def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
    self._declare_target(node.target, value=node.value)
    self.generic_visit(node)

  def visit_For(self, node: Union[ast.For, ast.AsyncFor]) -> None:
    self._declare_target(node.target)
    self.generic_visit(node)

  visit_AsyncFor = visit_For

  def visit_withitem(self, node: ast.withitem) -> None:
    if node.optional_vars is not None:
      self._declare_target(node.optional_vars)
    self.generic_visit(node)

  def visit_Import(self, node: ast.Import) -> None:
    for alias in node.names:
      if alias.asname:
        self.scope.declare(alias.asname, ImportRef(alias.name))
      else:
        root = alias.name.split(".")[0]
        self.scope.declare(root, ImportRef(root))

  def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
    base = self._import_source(node)
    for alias in node.names:
      if alias.name == "*":
        continue
      target = f"{base}.{alias.name}" if base else alias.name
      self.scope.declare(alias.asname or alias.name, ImportRef(target))

  def _import_source(self, node: ast.ImportFrom) -> str:
    if not node.level:
      return node.module or ""
    parts = self.import_base.split(".") if self.import_base else []
    parts = parts[: len(parts) - (node.level - 1)] if node.level > 1 else parts
    if node.module:
      parts.append(node.module)
    return ".".join(parts)

  # --- Usage ---

  def visit_Name(self, node: ast.Name) -> None:
    self.node_scopes.setdefault(node, self.scope)

  def visit_Constant(self, node: ast.Constant) -> None:
    # Possible forward-reference annotation.
    if isinstance(node.value, str):
      self.node_scopes.setdefault(node, self.scope)
