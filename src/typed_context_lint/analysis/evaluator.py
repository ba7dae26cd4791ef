"""
Problem Evaluation and Reporting.

For each tracked variable (outside test files) the usage record is compared
against the leaf capability groups and the explicit composition of the
variable's declared type. At most one diagnostic is reported per variable, in
this order of precedence:

1.  entirely unused (unless the variable feeds a memoized function);
2.  used but not explicitly requested;
3.  requested but not used.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, List, Optional

from typed_context_lint.analysis.graph import (
  explicit_composition,
  explicitly_containing,
  format_type_list,
  leaf_groups,
  method_was_requested,
  type_names,
  was_requested,
)
from typed_context_lint.analysis.records import TrackedVariable, TrackingTable, UsageRecord
from typed_context_lint.analysis.result import Diagnostic
from typed_context_lint.enums import ProblemKind
from typed_context_lint.program.lattice import method_names, satisfies
from typed_context_lint.program.model import InterfaceType, TypeLike
from typed_context_lint.program.program import Program

ALL_UNUSED_MESSAGE = "no interfaces requested by {name} are used; remove them or rename it to _ if it's unused"
UNREQUESTED_MESSAGE = "{name} uses but does not explicitly request interface(s) {interfaces}; add it explicitly"
UNUSED_MESSAGE = "{name} requests but does not use interface(s) {interfaces}; remove to use the smallest possible interface"


@dataclass
class Problems:
  leaves: List[InterfaceType] = field(default_factory=list)
  unused: List[InterfaceType] = field(default_factory=list)
  unrequested: List[InterfaceType] = field(default_factory=list)

  @property
  def all_unused(self) -> bool:
    return len(self.unused) == len(self.leaves)


def was_used(record: UsageRecord, leaf: InterfaceType, known: AbstractSet[str] = frozenset()) -> bool:
  """
  Whether a leaf group was used: the variable was used as a type satisfying
  it, or a member declared directly on it was accessed.

  The members of an opaque leaf are unknown, so it counts as used as soon as
  any accessed member is missing from ``known``, the members declared by the
  loaded protocols of the variable's type.
  """
  if any(satisfies(used, leaf) for used in record.interface_uses):
    return True
  if leaf.opaque:
    return any(method not in known for method in record.method_uses)
  return any(method in leaf.methods for method in record.method_uses)


def problems(declared: Optional[TypeLike], package: str, record: UsageRecord) -> Problems:
  """
  Computes unused and unrequested interfaces of one variable.

  Args:
      declared: The variable's declared type.
      package: The variable's package.
      record: The (possibly pooled) usage record.

  Returns:
      Problems: Leaves, unused leaves and unrequested interfaces.
  """
  found = Problems(leaves=leaf_groups(declared))
  known = method_names(declared)
  found.unused = [leaf for leaf in found.leaves if not was_used(record, leaf, known)]

  for used in record.interface_uses:
    for mention in explicit_composition(used, package):
      if not was_requested(declared, package, mention):
        found.unrequested.append(mention)

  for method in sorted(record.method_uses):
    if not method_was_requested(declared, package, method):
      found.unrequested.extend(explicitly_containing(declared, method))

  return found


class ProblemEvaluator:
  """
  Turns tracked variables and their records into diagnostics.
  """

  def __init__(self, program: Program, table: TrackingTable):
    self.program = program
    self.table = table

  def evaluate(self) -> List[Diagnostic]:
    """
    Returns diagnostics for every tracked variable outside test files, sorted
    by path, line and column.
    """
    diagnostics = []
    for tracked in self.table:
      diagnostic = self.diagnose(tracked)
      if diagnostic is not None:
        diagnostics.append(diagnostic)
    diagnostics.sort(key=lambda d: (d.path, d.line, d.column))
    return diagnostics

  def diagnose(self, tracked: TrackedVariable) -> Optional[Diagnostic]:
    variable = tracked.variable
    if variable.module.is_test:
      return None

    record = self.table.record_for(variable)
    if record is None:
      return None

    declared = self.program.variable_type(variable)
    package = variable.package
    found = problems(declared, package, record)

    if found.all_unused and not record.is_cached:
      return self._report(tracked, ProblemKind.ALL_UNUSED, [], ALL_UNUSED_MESSAGE)
    if found.unrequested:
      return self._report(tracked, ProblemKind.UNREQUESTED, found.unrequested, UNREQUESTED_MESSAGE)
    if found.unused and not found.all_unused:
      return self._report(tracked, ProblemKind.UNUSED, found.unused, UNUSED_MESSAGE)
    return None

  @staticmethod
  def _report(tracked: TrackedVariable, kind: ProblemKind, types: List[InterfaceType], template: str) -> Diagnostic:
    variable = tracked.variable
    return Diagnostic(
      path=str(variable.path),
      line=variable.line,
      column=variable.column,
      name=variable.name,
      kind=kind,
      interfaces=type_names(types, variable.package),
      message=template.format(name=variable.name, interfaces=format_type_list(types, variable.package)),
    )
