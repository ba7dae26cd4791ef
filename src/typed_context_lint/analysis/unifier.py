"""
Interface-Method Unification.

A class implementing a protocol method may ask for a larger context than it
needs because a sibling implementation needs more. For every protocol declared
in the package and every class of the package satisfying it, the first
parameter of each implementing method is pooled into one usage record per
(protocol, method), so a use in any implementation counts for all of them.
"""

from typing import Dict

from typed_context_lint.analysis.records import TrackedVariable, TrackingTable
from typed_context_lint.program.lattice import method_names, satisfies
from typed_context_lint.program.program import Program


class InterfaceMethodUnifier:
  def __init__(self, program: Program, table: TrackingTable):
    self.program = program
    self.table = table

  def unify(self, package: str) -> int:
    """
    Shares usage records between implementations of the package's protocols.

    Args:
        package (str): The package being analyzed.

    Returns:
        int: Number of merges performed.
    """
    merges = 0
    classes = self.program.classes_in(package)

    for iface in self.program.interfaces_in(package):
      names = method_names(iface)
      if not names:
        continue

      canonical: Dict[str, TrackedVariable] = {}
      for cls in classes:
        if not satisfies(cls, iface):
          continue
        for name, function in cls.methods.items():
          if name not in names:
            continue
          param = self.program.signature_of(function, bound=True).first_param()
          if param is None or param.variable is None:
            continue
          tracked = self.table.get(param.variable)
          if tracked is None:
            continue

          seed = canonical.setdefault(name, tracked)
          if seed is not tracked:
            self.table.share(seed, tracked)
            merges += 1

    return merges
