"""
Tracked Variables and Usage Records.

Tracked variables live in an arena (`TrackingTable`) and are addressed by the
integer handle they received at collection time. Each one points at a usage
record handle; records shared by co-implementations of one interface method
are merged with a union-find over record handles, so "shared" means "same
record handle", not "same Python object".
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set

from typed_context_lint.program.model import TypeLike, Variable


@dataclass
class UsageRecord:
  """
  How a tracked variable (or group of pooled variables) was used.
  """

  interface_uses: List[TypeLike] = field(default_factory=list)
  """Types the variable was used as (parameter types, cast targets, field types)."""

  method_uses: Set[str] = field(default_factory=set)
  """Member names accessed on the variable."""

  is_cached: bool = False
  """True if the variable is the first parameter of a memoized function."""

  def add_interface_use(self, typ: Optional[TypeLike]) -> None:
    if typ is not None and not any(typ is used for used in self.interface_uses):
      self.interface_uses.append(typ)

  def absorb(self, other: "UsageRecord") -> None:
    """Merges another record's uses into this one."""
    for typ in other.interface_uses:
      self.add_interface_use(typ)
    self.method_uses.update(other.method_uses)
    self.is_cached = self.is_cached or other.is_cached


@dataclass(frozen=True)
class TrackedVariable:
  handle: int
  variable: Variable


class TrackingTable:
  """
  Arena of tracked variables with shareable usage records.
  """

  def __init__(self) -> None:
    self._tracked: Dict[int, TrackedVariable] = {}
    self._handles: Dict[Variable, int] = {}
    self._record_handles: Dict[int, int] = {}
    self._records: Dict[int, UsageRecord] = {}
    self._parents: Dict[int, int] = {}
    self._next_handle = 0

  def track(self, variable: Variable) -> TrackedVariable:
    """
    Starts tracking a variable with a fresh, empty record.

    Tracking an already tracked variable returns the existing entry.
    """
    handle = self._handles.get(variable)
    if handle is not None:
      return self._tracked[handle]

    handle = self._next_handle
    self._next_handle += 1
    tracked = TrackedVariable(handle, variable)
    self._tracked[handle] = tracked
    self._handles[variable] = handle
    self._record_handles[handle] = handle
    self._records[handle] = UsageRecord()
    self._parents[handle] = handle
    return tracked

  def get(self, variable: Variable) -> Optional[TrackedVariable]:
    handle = self._handles.get(variable)
    return self._tracked.get(handle) if handle is not None else None

  def untrack(self, variable: Variable) -> None:
    """Stops tracking a variable. Its pooled record stays with any sharers."""
    handle = self._handles.pop(variable, None)
    if handle is not None:
      del self._tracked[handle]
      del self._record_handles[handle]

  def _find(self, record_handle: int) -> int:
    root = record_handle
    while self._parents[root] != root:
      root = self._parents[root]
    while record_handle != root:
      parent = self._parents[record_handle]
      self._parents[record_handle] = root
      record_handle = parent
    return root

  def record_handle(self, tracked: TrackedVariable) -> int:
    return self._find(self._record_handles[tracked.handle])

  def record_for(self, variable: Optional[Variable]) -> Optional[UsageRecord]:
    """
    Returns the (possibly shared) record of a tracked variable.

    Args:
        variable: Any variable, or None.

    Returns:
        The record, or None if the variable is not tracked.
    """
    if variable is None:
      return None
    tracked = self.get(variable)
    if tracked is None:
      return None
    return self._records[self.record_handle(tracked)]

  def share(self, seed: TrackedVariable, other: TrackedVariable) -> None:
    """
    Makes ``other`` use the same record as ``seed``.

    Uses already recorded for either side are kept.
    """
    root = self.record_handle(seed)
    merged = self.record_handle(other)
    if root == merged:
      return
    self._records[root].absorb(self._records.pop(merged))
    self._parents[merged] = root

  def __iter__(self) -> Iterator[TrackedVariable]:
    return iter([self._tracked[h] for h in sorted(self._tracked)])

  def __len__(self) -> int:
    return len(self._tracked)

  def __contains__(self, variable: Variable) -> bool:
    return variable in self._handles
