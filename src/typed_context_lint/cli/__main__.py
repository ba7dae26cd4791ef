"""
Main Entry Point for typed-context-lint CLI.

This module handles argument parsing and dispatches to the command handlers
defined in `typed_context_lint.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from typed_context_lint import __version__
from typed_context_lint.cli import commands
from typed_context_lint.config import parse_cli_key_values


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 when clean, 1 on findings, 2 on failure).
  """
  parser = argparse.ArgumentParser(
    prog="typed-context-lint",
    description="typed-context-lint: request exactly the context capabilities you use",
  )
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  parser.add_argument("paths", nargs="+", type=Path, help="Source files or directories to analyze")
  parser.add_argument(
    "--package",
    action="append",
    dest="packages",
    default=None,
    help="Only analyze this package (repeatable; default: every package under PATHS)",
  )
  parser.add_argument("--json", action="store_true", help="Print diagnostics as JSON to stdout")
  parser.add_argument(
    "--config",
    nargs="*",
    help="Settings in key=value format (e.g. base_context=app.context.Context cache_function=app.cache.memoize)",
  )
  parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

  args = parser.parse_args(argv)

  settings = parse_cli_key_values(args.config)
  return commands.handle_lint(args.paths, args.packages, args.json, settings, args.verbose)


if __name__ == "__main__":
  sys.exit(main())
