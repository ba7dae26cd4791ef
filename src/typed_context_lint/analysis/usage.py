"""
Usage Tracking.

Re-walks the package and records, for every tracked variable appearing as a
bare name at a use site, the type or member it was used as:

1.  **Arguments**: ``f(ctx)`` / ``f(x=ctx)`` mark the receiving parameter's type.
2.  **Receivers**: ``ctx.m(...)`` and ``ctx.m`` mark member ``m``.
3.  **Casts**: ``cast(T, ctx)`` marks ``T``.
4.  **Records**: ``Record(ctx)`` / ``Record(field=ctx)`` for dataclasses and
    NamedTuples mark the field's type.
5.  **Memoization**: the memoized function's first parameter is flagged cached;
    a cache-key function's first parameter is dropped from tracking.
"""

import ast
from typing import Iterable, Optional, Union

from typed_context_lint.analysis.records import TrackingTable, UsageRecord
from typed_context_lint.program.model import ModuleInfo, Signature, Variable
from typed_context_lint.program.program import Program

_FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class UsageTracker(ast.NodeVisitor):
  """
  Marks usage records. Produces no diagnostics.
  """

  def __init__(self, program: Program, table: TrackingTable):
    self.program = program
    self.table = table
    self.config = program.config

  def run(self, modules: Iterable[ModuleInfo]) -> None:
    for module in modules:
      self.visit(module.tree)

  def _record_of(self, expr: ast.expr) -> Optional[UsageRecord]:
    return self.table.record_for(self.program.variable_of(expr))

  def visit_Call(self, node: ast.Call) -> None:
    self._mark_args_used(node)
    self._mark_cast_used(node)
    self._mark_record_fields_used(node)
    self._mark_cached_function_used(node)
    self._mark_key_params_function_used(node)
    self.generic_visit(node)

  def visit_Attribute(self, node: ast.Attribute) -> None:
    self._mark_receiver_used(node)
    self.generic_visit(node)

  def visit_FunctionDef(self, node: _FunctionNode) -> None:
    self._mark_decorated_function_used(node)
    self.generic_visit(node)

  visit_AsyncFunctionDef = visit_FunctionDef

  # --- Use sites ---

  def _mark_args_used(self, call: ast.Call) -> None:
    """
    Marks the parameter types that bare-name arguments are bound to.

    Positional arguments past the last positional parameter land in
    ``*args``; keywords without a matching parameter land in ``**kwargs``.
    Unpacked arguments are skipped, and positions after ``*x`` are unknown.
    """
    if self.program.record_class_of(call.func) is not None:
      return
    signature = self.program.callee_signature(call.func)
    if signature is None:
      return

    for index, arg in enumerate(call.args):
      if isinstance(arg, ast.Starred):
        break
      param = signature.param_at(index)
      if param is not None:
        self._mark_value_used(arg, param.type)

    for keyword in call.keywords:
      if keyword.arg is None:
        continue
      param = signature.param_named(keyword.arg)
      if param is not None:
        self._mark_value_used(keyword.value, param.type)

  def _mark_value_used(self, value: ast.expr, typ) -> None:
    if typ is None or not isinstance(value, ast.Name):
      return
    record = self._record_of(value)
    if record is not None:
      record.add_interface_use(typ)

  def _mark_receiver_used(self, node: ast.Attribute) -> None:
    if not isinstance(node.ctx, ast.Load) or not isinstance(node.value, ast.Name):
      return
    record = self._record_of(node.value)
    if record is not None:
      record.method_uses.add(node.attr)

  def _mark_cast_used(self, call: ast.Call) -> None:
    # cast(T, x): the target does not have to be satisfied by x's type.
    if len(call.args) < 2 or self.program.qualified_name_of(call.func) not in self.config.cast_functions:
      return
    self._mark_value_used(call.args[1], self.program.resolve_annotation(call.args[0]))

  def _mark_record_fields_used(self, call: ast.Call) -> None:
    cls = self.program.record_class_of(call.func)
    if cls is None:
      return
    fields = self.program.record_fields(cls)

    for index, arg in enumerate(call.args):
      if isinstance(arg, ast.Starred) or index >= len(fields):
        break
      self._mark_value_used(arg, self.program.resolve_annotation(fields[index].annotation))

    by_name = {f.name: f for f in fields}
    for keyword in call.keywords:
      record_field = by_name.get(keyword.arg) if keyword.arg else None
      if record_field is not None:
        self._mark_value_used(keyword.value, self.program.resolve_annotation(record_field.annotation))

  # --- Memoization ---

  def _first_param_of(self, expr: ast.expr) -> Optional[Variable]:
    signature = self.program.type_of(expr)
    if not isinstance(signature, Signature):
      return None
    param = signature.first_param()
    return param.variable if param is not None else None

  def _first_param_of_def(self, node: _FunctionNode) -> Optional[Variable]:
    function = self.program.function_for(node)
    if function is None:
      return None
    param = self.program.signature_of(function, bound=True).first_param()
    return param.variable if param is not None else None

  def _entry_point(self, call: ast.Call, qualified_name: str) -> Optional[ast.expr]:
    if not call.args or self.program.qualified_name_of(call.func) != qualified_name:
      return None
    return call.args[0]

  def _mark_cached_function_used(self, call: ast.Call) -> None:
    function = self._entry_point(call, self.config.cache_function)
    if function is None:
      return
    record = self.table.record_for(self._first_param_of(function))
    if record is not None:
      record.is_cached = True

  def _mark_key_params_function_used(self, call: ast.Call) -> None:
    # A key function mirrors the memoized function's signature exactly.
    function = self._entry_point(call, self.config.key_params_function)
    if function is None:
      return
    variable = self._first_param_of(function)
    if variable is not None:
      self.table.untrack(variable)

  def _mark_decorated_function_used(self, node: _FunctionNode) -> None:
    for decorator in node.decorator_list:
      target = decorator.func if isinstance(decorator, ast.Call) else decorator
      qualified = self.program.qualified_name_of(target)
      if qualified == self.config.cache_function:
        record = self.table.record_for(self._first_param_of_def(node))
        if record is not None:
          record.is_cached = True
      elif qualified == self.config.key_params_function:
        variable = self._first_param_of_def(node)
        if variable is not None:
          self.table.untrack(variable)
