"""
Tests for source discovery and module naming.
"""

from unittest.mock import patch

from typed_context_lint.config import LintConfig
from typed_context_lint.program.loader import (
  ProgramLoader,
  load_program,
  module_name_for,
  package_for,
  packages_under,
  source_root,
)


def test_source_root_lifts_out_of_packages(write_tree):
  root = write_tree({"app/__init__.py": "", "app/sub/__init__.py": "", "app/sub/mod.py": "", "tool.py": ""})

  assert source_root(root / "app" / "sub" / "mod.py") == root.resolve()
  assert source_root(root / "app") == root.resolve()
  assert source_root(root / "tool.py") == root.resolve()


def test_module_and_package_names(tmp_path):
  assert module_name_for(tmp_path / "app" / "__init__.py", tmp_path) == "app"
  assert module_name_for(tmp_path / "app" / "sub" / "mod.py", tmp_path) == "app.sub.mod"

  assert package_for("app", tmp_path / "app" / "__init__.py") == "app"
  assert package_for("app.sub.mod", tmp_path / "app" / "sub" / "mod.py") == "app.sub"
  assert package_for("tool", tmp_path / "tool.py") == "tool"


def test_excluded_directories_and_test_files(write_tree):
  root = write_tree(
    {
      "app/__init__.py": "",
      "app/core.py": "",
      "app/test_core.py": "",
      "app/conftest.py": "",
      "build/generated.py": "",
      ".venv/lib.py": "",
    }
  )
  loader = ProgramLoader(LintConfig())

  names = [p.relative_to(root).as_posix() for p in loader.iter_sources(root)]

  assert names == ["app/__init__.py", "app/conftest.py", "app/core.py", "app/test_core.py"]
  assert loader.is_test_file(root / "app" / "test_core.py")
  assert loader.is_test_file(root / "app" / "conftest.py")
  assert not loader.is_test_file(root / "app" / "core.py")


def test_unparsable_files_are_skipped(write_tree):
  root = write_tree({"app/__init__.py": "", "app/good.py": "x = 1\n", "app/bad.py": "def broken(:\n"})

  with patch("typed_context_lint.program.loader.log_error") as mock_error:
    program = load_program([root / "app"])

  assert [m.name for m in program.modules()] == ["app", "app.good"]
  mock_error.assert_called_once()
  assert "bad.py" in mock_error.call_args[0][0]


def test_packages_under_requested_paths(write_tree):
  root = write_tree(
    {
      "app/__init__.py": "",
      "app/mod.py": "",
      "app/sub/__init__.py": "",
      "app/sub/inner.py": "",
      "other/__init__.py": "",
    }
  )
  program = load_program([root / "app"])

  assert program.packages == ["app", "app.sub", "other"]
  assert packages_under(program, [root / "app"]) == ["app", "app.sub"]
  assert packages_under(program, [root / "app" / "sub" / "inner.py"]) == ["app.sub"]
