"""
Source loading, name binding and type resolution for the analysis.
"""

from typed_context_lint.program.loader import ProgramLoader, load_program, packages_under
from typed_context_lint.program.program import Program

__all__ = ["Program", "ProgramLoader", "load_program", "packages_under"]
