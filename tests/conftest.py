"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Console isolation so logging configuration does not leak between tests.
- Source tree builders for the context fixture packages.
"""

import sys
import textwrap
from pathlib import Path
from typing import Callable, Dict, List

import pytest

# Add src to path so we can import 'typed_context_lint' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from typed_context_lint import lint_paths  # noqa: E402
from typed_context_lint.analysis.result import AnalysisResult, Diagnostic  # noqa: E402
from typed_context_lint.config import LintConfig  # noqa: E402
from typed_context_lint.utils.console import reset_console  # noqa: E402

CONTEXT_MODULE = """
from typing import Protocol


class Context(Protocol):
    def deadline(self) -> float: ...

    def done(self) -> bool: ...
"""

CACHE_MODULE = """
def cache(fn, key=None):
    return fn


def key_params_fxn(fn):
    return fn
"""

CONTEXTS_MODULE = """
from typing import Protocol

from context import Context


class Request:
    def user_key(self) -> str:
        return "user"


class DatabaseInterface(Protocol):
    def read(self, ctx: Context, key: str) -> str: ...


class RequestContext(Context, Protocol):
    def request(self) -> Request: ...


class DatabaseContext(Context, Protocol):
    def database(self) -> DatabaseInterface: ...


class HttpClientContext(Context, Protocol):
    def http_client(self) -> object: ...


class SecretsContext(Context, Protocol):
    def secrets(self) -> object: ...


class LoggerContext(Context, Protocol):
    def logger(self) -> object: ...


class AContext(Context, Protocol):
    def a(self) -> int: ...


class BContext(Context, Protocol):
    def b(self) -> int: ...


class CContext(Context, Protocol):
    def c(self) -> int: ...
"""


@pytest.fixture(autouse=True)
def isolate_console():
  """Restores the default console and log level after each test."""
  yield
  reset_console()


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
  """
  Returns a helper writing ``{relative path: source}`` under tmp_path.

  Sources are dedented, so tests can indent them inline.
  """

  def _write(files: Dict[str, str]) -> Path:
    for rel_path, source in files.items():
      path = tmp_path / rel_path
      path.parent.mkdir(parents=True, exist_ok=True)
      path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
    return tmp_path

  return _write


@pytest.fixture
def context_tree(write_tree) -> Callable[[Dict[str, str]], Path]:
  """
  Like `write_tree`, but always includes the base ``context`` and ``cache``
  modules and the ``app`` package with its capability protocols.
  """

  def _write(files: Dict[str, str]) -> Path:
    base = {
      "context.py": CONTEXT_MODULE,
      "cache.py": CACHE_MODULE,
      "app/__init__.py": "",
      "app/contexts.py": CONTEXTS_MODULE,
    }
    return write_tree({**base, **files})

  return _write


@pytest.fixture
def lint_results(tmp_path: Path) -> Callable[..., List[AnalysisResult]]:
  """Runs the analysis over packages of tmp_path (default: ``app``)."""

  def _lint(*rel_paths: str, **settings) -> List[AnalysisResult]:
    paths = [tmp_path / p for p in (rel_paths or ("app",))]
    return lint_paths(paths, LintConfig(**settings))

  return _lint


@pytest.fixture
def lint(lint_results) -> Callable[..., List[Diagnostic]]:
  """Runs the analysis and returns all diagnostics, asserting no run failed."""

  def _lint(*rel_paths: str, **settings) -> List[Diagnostic]:
    results = lint_results(*rel_paths, **settings)
    assert all(r.success for r in results), [r.errors for r in results]
    return [d for r in results for d in r.diagnostics]

  return _lint
