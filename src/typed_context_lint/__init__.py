"""
typed-context-lint Package.

A static analyzer for "typed context" protocols: every variable typed as a
composition of capability protocols must request exactly the capabilities it
uses. It reports protocols requested but never used, and protocols used but
only requested indirectly.

Usage
-----

.. code-block:: python

    from pathlib import Path
    import typed_context_lint as tcl

    for result in tcl.lint_paths([Path("src/app")]):
        for diagnostic in result.diagnostics:
            print(diagnostic.format())
"""

from pathlib import Path
from typing import List, Optional, Sequence

from typed_context_lint.analysis import AnalysisResult, Diagnostic, InterfaceAnalysis
from typed_context_lint.config import LintConfig
from typed_context_lint.errors import InvariantViolation
from typed_context_lint.program import load_program, packages_under

__version__ = "0.1.0"


def lint_paths(
  paths: Sequence[Path],
  config: Optional[LintConfig] = None,
  packages: Optional[Sequence[str]] = None,
) -> List[AnalysisResult]:
  """
  Analyzes every package with sources under the given paths.

  Args:
      paths: Files or directories to analyze.
      config: Settings; loaded from the nearest ``pyproject.toml`` if None.
      packages: Restrict the analysis to these package names.

  Returns:
      List[AnalysisResult]: One result per package, sorted by package name.
  """
  paths = [Path(p) for p in paths]
  config = config or LintConfig.load(paths[0] if paths else None)
  program = load_program(paths, config)

  targets = packages_under(program, paths)
  if packages:
    targets = [p for p in targets if p in packages]

  analysis = InterfaceAnalysis(program)
  return [analysis.run(package) for package in targets]


__all__ = [
  "AnalysisResult",
  "Diagnostic",
  "InterfaceAnalysis",
  "InvariantViolation",
  "LintConfig",
  "lint_paths",
  "__version__",
]
