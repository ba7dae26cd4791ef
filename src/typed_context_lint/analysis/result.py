"""
Analysis Result Models.
"""

from typing import List

from pydantic import BaseModel, Field

from typed_context_lint.enums import ProblemKind


class Diagnostic(BaseModel):
  """
  One finding about one tracked variable.
  """

  path: str = Field(description="Source file of the variable's declaration.")
  line: int = Field(description="1-based line of the declaration.")
  column: int = Field(description="1-based column of the declaration.")
  name: str = Field(description="The variable name.")
  kind: ProblemKind
  interfaces: List[str] = Field(default_factory=list, description="Offending interfaces, display names, sorted.")
  message: str

  def format(self) -> str:
    return f"{self.path}:{self.line}:{self.column}: {self.message}"


class AnalysisResult(BaseModel):
  """
  Structured result of analyzing one package.
  """

  package: str = Field(description="The analyzed package.")
  diagnostics: List[Diagnostic] = Field(default_factory=list)
  errors: List[str] = Field(default_factory=list, description="Internal invariant failures.")
  success: bool = Field(
    default=True,
    description="False if the analysis aborted on an invariant violation.",
  )

  @property
  def has_findings(self) -> bool:
    """
    Returns True if any diagnostics were produced.

    Returns:
        bool: True if diagnostics list is non-empty.
    """
    return len(self.diagnostics) > 0
