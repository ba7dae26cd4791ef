"""
Interface Analysis Pass.

Runs the phases over one package, strictly in order, each on state fully
populated by the previous one:

1.  `IdentifierCollector`
2.  `InterfaceMethodUnifier`
3.  `UsageTracker`
4.  `ProblemEvaluator` (which consults the pure functions of `graph`)

All state lives in a fresh `TrackingTable` per run.
"""

import logging

from typed_context_lint.analysis.collector import IdentifierCollector
from typed_context_lint.analysis.evaluator import ProblemEvaluator
from typed_context_lint.analysis.records import TrackingTable
from typed_context_lint.analysis.result import AnalysisResult
from typed_context_lint.analysis.unifier import InterfaceMethodUnifier
from typed_context_lint.analysis.usage import UsageTracker
from typed_context_lint.errors import InvariantViolation
from typed_context_lint.program.program import Program
from typed_context_lint.utils.console import log_error

logger = logging.getLogger(__name__)


class InterfaceAnalysis:
  """
  The typed context interface pass.
  """

  def __init__(self, program: Program):
    self.program = program

  def run(self, package: str) -> AnalysisResult:
    """
    Analyzes one package.

    Args:
        package (str): Name of a loaded package.

    Returns:
        AnalysisResult: Sorted diagnostics, or a failed result if the program
        contradicted an invariant of type-correct code.
    """
    modules = self.program.modules(package)
    table = TrackingTable()

    try:
      IdentifierCollector(self.program, table).collect(modules)
      logger.debug("%s: tracking %d variable(s)", package, len(table))

      merges = InterfaceMethodUnifier(self.program, table).unify(package)
      logger.debug("%s: pooled %d implementation parameter(s)", package, merges)

      UsageTracker(self.program, table).run(modules)
      diagnostics = ProblemEvaluator(self.program, table).evaluate()
    except InvariantViolation as e:
      log_error(f"Analysis of {package} aborted: {e}")
      return AnalysisResult(package=package, errors=[str(e)], success=False)

    return AnalysisResult(package=package, diagnostics=diagnostics)
