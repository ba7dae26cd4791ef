"""
Typed context interface analysis.

Modules:
    - ``collector``: finds context-typed variables to track.
    - ``unifier``: pools records across implementations of a protocol method.
    - ``usage``: marks how tracked variables are used.
    - ``graph``: pure functions over the protocol composition graph.
    - ``evaluator``: turns records into diagnostics.
    - ``runner``: the pass that sequences the above.
"""

from typed_context_lint.analysis.result import AnalysisResult, Diagnostic
from typed_context_lint.analysis.runner import InterfaceAnalysis

__all__ = ["AnalysisResult", "Diagnostic", "InterfaceAnalysis"]
