from .lint import handle_lint, render_table

__all__ = [
  "handle_lint",
  "render_table",
]
