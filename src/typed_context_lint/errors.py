"""
Exceptions raised by typed-context-lint.
"""


class InvariantViolation(RuntimeError):
  """
  Raised when the resolved program contradicts an assumption that holds for
  any type-correct input (e.g. calling a value whose type has no ``__call__``).

  This is a defect in the input or in type resolution, never a finding: the
  analysis pass converts it into a failed ``AnalysisResult`` instead of
  emitting diagnostics.
  """
