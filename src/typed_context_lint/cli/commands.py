"""
CLI Command Handlers Facade.

Re-exports handlers from `typed_context_lint.cli.handlers` so the dispatcher
(and tests patching it) have a single import point.
"""

from typed_context_lint.cli.handlers.lint import handle_lint, render_table

__all__ = [
  "handle_lint",
  "render_table",
]
