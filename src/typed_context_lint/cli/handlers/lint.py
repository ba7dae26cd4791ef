"""
Lint Command Handler.

Loads the sources under the requested paths, runs the interface analysis on
each package and reports the findings as a table (or JSON).
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from typed_context_lint import lint_paths
from typed_context_lint.analysis.result import AnalysisResult
from typed_context_lint.config import LintConfig
from typed_context_lint.utils.console import console, log_error, log_success, set_console


def render_table(results: List[AnalysisResult]) -> Optional[Table]:
  """
  Builds a table of all diagnostics.

  Args:
      results: Per-package results.

  Returns:
      Table or None if there is nothing to show.
  """
  diagnostics = [d for r in results for d in r.diagnostics]
  if not diagnostics:
    return None

  table = Table(title="Typed Context Findings")
  table.add_column("Location", style="cyan")
  table.add_column("Variable", style="bold")
  table.add_column("Problem", style="red")
  table.add_column("Message")

  for d in diagnostics:
    table.add_row(f"{d.path}:{d.line}:{d.column}", d.name, d.kind.value, d.message)
  return table


def handle_lint(
  paths: List[Path],
  packages: Optional[List[str]] = None,
  json_mode: bool = False,
  settings: Optional[Dict[str, Any]] = None,
  verbose: bool = False,
) -> int:
  """
  Runs the analysis over the given paths.

  Args:
      paths: Files or directories to analyze.
      packages: Optional package names to restrict the run to.
      json_mode: If True, print pure JSON to stdout.
      settings: Config overrides from ``--config key=value``.
      verbose: Enable debug logging.

  Returns:
      int: 0 if clean, 1 if diagnostics were found, 2 on a missing path,
      invalid settings or an aborted analysis.
  """
  if json_mode:
    # stdout carries only the JSON document; logs go to stderr.
    set_console(Console(stderr=True))
  if verbose:
    console.set_level(logging.DEBUG)

  missing = [p for p in paths if not p.exists()]
  if missing:
    for path in missing:
      log_error(f"Path not found: {path}")
    return 2

  try:
    config = LintConfig.load(paths[0], overrides=settings)
  except ValidationError as e:
    log_error(f"Invalid configuration: {e}")
    return 2

  results = lint_paths(paths, config, packages)
  failed = [r for r in results if not r.success]
  found = sum(len(r.diagnostics) for r in results)

  if json_mode:
    print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
  else:
    table = render_table(results)
    if table is not None:
      console.print(table)
    for result in failed:
      for error in result.errors:
        log_error(f"{result.package}: {error}")
    if not found and not failed:
      log_success(f"No findings in {len(results)} package(s).")
    elif found:
      console.print(f"[bold]{found}[/bold] finding(s) in {len(results)} package(s)")

  if failed:
    return 2
  return 1 if any(r.has_findings for r in results) else 0
