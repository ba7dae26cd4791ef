"""
Identifier Collection.

Finds every declared variable whose type is a context-like protocol and starts
tracking it with an empty usage record.

The walk carries an immutable `_CollectContext` down the tree instead of
flipping flags on the visitor:

- ``in_type_declaration``: inside a declaration-only ``def`` (``@overload``,
  ``@abstractmethod``), whose parameters never have uses of their own.
- ``in_signature``: directly inside the parameter list that introduces the
  enclosing ``def`` or ``lambda``; only those parameters are tracked.

Protocol class bodies are skipped entirely; their method stubs declare
parameters that are only ever implemented, never used.
"""

import ast
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from typed_context_lint.analysis.graph import is_context_type, leaf_groups
from typed_context_lint.analysis.records import TrackingTable
from typed_context_lint.program.model import InterfaceType, ModuleInfo, Variable
from typed_context_lint.program.program import Program

_DECLARATION_DECORATORS = {"overload", "abstractmethod"}


@dataclass(frozen=True)
class _CollectContext:
  in_type_declaration: bool = False
  in_signature: bool = False


def _decorator_names(node: ast.AST) -> set:
  names = set()
  for decorator in getattr(node, "decorator_list", []):
    if isinstance(decorator, ast.Call):
      decorator = decorator.func
    if isinstance(decorator, ast.Name):
      names.add(decorator.id)
    elif isinstance(decorator, ast.Attribute):
      names.add(decorator.attr)
  return names


class IdentifierCollector:
  """
  Populates a `TrackingTable` with the context-typed variables of some modules.
  """

  def __init__(self, program: Program, table: TrackingTable):
    self.program = program
    self.table = table
    self._discard = set(program.config.discard_names)

  def collect(self, modules: Iterable[ModuleInfo]) -> None:
    for module in modules:
      self._walk(module.tree, _CollectContext())

  def _walk(self, node: ast.AST, ctx: _CollectContext) -> None:
    if isinstance(node, ast.ClassDef):
      if isinstance(self.program.type_for_class(node), InterfaceType):
        return

    elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
      declaration = ctx.in_type_declaration or bool(_decorator_names(node) & _DECLARATION_DECORATORS)
      inner = replace(ctx, in_type_declaration=declaration, in_signature=False)
      self._walk(node.args, replace(inner, in_signature=not declaration))
      for child in ast.iter_child_nodes(node):
        if child is not node.args:
          self._walk(child, inner)
      return

    elif isinstance(node, ast.arg):
      if ctx.in_signature:
        self._track(self.program.definition_of(node))
      return

    elif isinstance(node, ast.Name):
      if isinstance(node.ctx, ast.Store) and not ctx.in_type_declaration:
        self._track(self.program.definition_of(node))
      return

    for child in ast.iter_child_nodes(node):
      self._walk(child, ctx)

  def _track(self, variable: Optional[Variable]) -> None:
    if variable is None or variable.name in self._discard or variable in self.table:
      return

    typ = self.program.variable_type(variable)
    bases = self.program.base_contexts
    if not is_context_type(typ, bases):
      return

    leaves = leaf_groups(typ)
    if not leaves:
      return
    # A bare base context is left to unused-argument checks.
    if len(leaves) == 1 and any(leaves[0] is base for base in bases):
      return

    self.table.track(variable)
