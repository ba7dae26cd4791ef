"""
Central Logging and Console Utilities.

This module unifies the application's output mechanism using the Python standard
`logging` library, backed by `rich` for formatting.

It serves two purposes:
1.  **Standard Logging Integration**: Provides adapter functions (`log_success`,
    `log_warning`, `log_error`) that route to standard logging channels.
2.  **Output Injection**: Implements a Proxy pattern for the Rich Console so the
    destination (stdout or an in-memory buffer in tests) can be swapped at
    runtime via `set_console`.

Attributes:
    console (_ConsoleProxy): A global, stable reference to the active Rich Console.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Custom level for Success (higher than INFO, lower than WARNING)
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "code": "bold magenta",
  }
)


class _ConsoleProxy:
  """
  A Proxy wrapper around `rich.console.Console`.

  All printing operations are forwarded to the current backend. When the
  backend changes, the Python `logging` handlers are reconfigured so that
  `logging.info(...)` writes to the new destination as well.

  Attributes:
      _backend (Console): The active Rich Console instance.
  """

  def __init__(self) -> None:
    """Initializes the proxy with a default Standard Output console."""
    self._backend: Console = Console(theme=_THEME)
    self._level = logging.INFO
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    """
    Injects a new Console backend and updates logging handlers.

    Args:
        new_console (Console): The new Rich Console instance to use.
    """
    self._backend = new_console
    self._configure_logging()

  def set_level(self, level: int) -> None:
    """
    Changes the root logging level (e.g. DEBUG for ``--verbose``).

    Args:
        level (int): A `logging` level constant.
    """
    self._level = level
    logging.getLogger().setLevel(level)

  def reset(self) -> None:
    """
    Resets the proxy to use a fresh standard output console.
    """
    self._backend = Console(theme=_THEME)
    self._level = logging.INFO
    self._configure_logging()

  @property
  def backend(self) -> Console:
    """
    Access the raw backend console.

    Returns:
        Console: The currently active implementation.
    """
    return self._backend

  def _configure_logging(self) -> None:
    """
    Configures or re-configures the standard python logging library
    to direct output to the current backend console.
    """
    # Remove existing RichHandlers to prevent duplicate logs/wrong destinations
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      omit_repeated_times=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )

    root_logger.setLevel(self._level)
    root_logger.addHandler(rich_handler)

  def print(self, *args: Any, **kwargs: Any) -> None:
    """
    Forwards `print` calls to the active backend.

    Args:
        *args: Positional arguments for Rich print.
        **kwargs: Keyword arguments for Rich print.
    """
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    """
    Fallback to forward any other attributes/methods to the backend.

    Args:
        name (str): Attribute name.

    Returns:
        Any: The attribute from the backend console.
    """
    return getattr(self._backend, name)


# Singleton instance exposed to the application.
console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Global helper to inject a specific console instance.

  Args:
      new_console (Console): The configured Rich console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """
  Global helper to reset logging and console to standard output.
  """
  console.reset()


def log_success(msg: str) -> None:
  """
  Logs a success message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  """
  Logs a warning message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  """
  Logs an error message via standard logging.

  Args:
      msg (str): The message content.
  """
  logging.error(f"❌ {msg}", extra={"markup": True})
