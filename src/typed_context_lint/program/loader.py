"""
Source Loader.

Turns file system paths into a bound and linked `Program`:

1.  **Roots**: every requested path is lifted to its source root (the first
    ancestor directory that is not itself a package) so that absolute imports
    between sibling packages resolve.
2.  **Parsing**: every ``.py`` file under the roots is parsed with `ast`.
    Files that fail to parse are reported and skipped.
3.  **Binding**: each module is bound by a `ScopeBinder`, then the `Program`
    links the whole set.
"""

import ast
import logging
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from typed_context_lint.config import LintConfig
from typed_context_lint.program.binder import Scope, ScopeBinder
from typed_context_lint.program.model import FunctionInfo, ModuleInfo, Variable
from typed_context_lint.program.program import Program
from typed_context_lint.utils.console import log_error, log_warning

logger = logging.getLogger(__name__)


def source_root(path: Path) -> Path:
  """
  Finds the directory that top-level imports of ``path`` are relative to.

  Args:
      path (Path): A file or directory.

  Returns:
      Path: The nearest ancestor not containing an ``__init__.py``.
  """
  path = path.resolve()
  directory = path if path.is_dir() else path.parent
  while (directory / "__init__.py").exists() and directory.parent != directory:
    directory = directory.parent
  return directory


def module_name_for(path: Path, root: Path) -> str:
  """
  Derives the dotted module name of a file relative to its source root.

  ``pkg/__init__.py`` is ``pkg``; ``pkg/mod.py`` is ``pkg.mod``.
  """
  parts = list(path.relative_to(root).with_suffix("").parts)
  if parts[-1] == "__init__" and len(parts) > 1:
    parts = parts[:-1]
  return ".".join(parts)


def package_for(module_name: str, path: Path) -> str:
  """
  Returns the package a module belongs to.

  A package ``__init__`` is its own package; a module inside a package belongs
  to its parent; a top-level module forms a package on its own.
  """
  if path.name == "__init__.py":
    return module_name
  parent = module_name.rpartition(".")[0]
  return parent or module_name


class ProgramLoader:
  """
  Loads the modules reachable from a set of paths.
  """

  def __init__(self, config: LintConfig):
    self.config = config

  def _is_excluded(self, path: Path, root: Path) -> bool:
    directories = path.relative_to(root).parts[:-1]
    return any(fnmatch(part, pattern) for part in directories for pattern in self.config.exclude)

  def is_test_file(self, path: Path) -> bool:
    return any(fnmatch(path.name, pattern) for pattern in self.config.test_file_patterns)

  def iter_sources(self, root: Path) -> Iterable[Path]:
    """
    Yields the Python files under a source root, skipping excluded directories.
    """
    for path in sorted(root.rglob("*.py")):
      if path.is_file() and not self._is_excluded(path, root):
        yield path

  def _parse(self, path: Path, root: Path) -> Optional[Tuple[ModuleInfo, str]]:
    try:
      source = path.read_text(encoding="utf-8")
      tree = ast.parse(source, filename=str(path))
    except (SyntaxError, UnicodeDecodeError, OSError) as e:
      log_error(f"Skipping [path]{path}[/path]: {e}")
      return None

    name = module_name_for(path, root)
    package = package_for(name, path)
    module = ModuleInfo(name=name, package=package, path=path, tree=tree, is_test=self.is_test_file(path))
    import_base = name if path.name == "__init__.py" else name.rpartition(".")[0]
    return module, import_base

  def load(self, paths: Sequence[Path]) -> Program:
    """
    Loads, binds and links every module under the source roots of ``paths``.

    Args:
        paths: Files or directories to analyze.

    Returns:
        Program: The linked program.
    """
    roots: List[Path] = []
    for path in paths:
      root = source_root(path)
      if root not in roots:
        roots.append(root)

    node_scopes: Dict[ast.AST, Scope] = {}
    definitions: Dict[ast.AST, Variable] = {}
    functions: Dict[ast.AST, FunctionInfo] = {}
    modules: Dict[str, ModuleInfo] = {}

    for root in roots:
      for path in self.iter_sources(root):
        parsed = self._parse(path, root)
        if parsed is None:
          continue
        module, import_base = parsed
        if module.name in modules:
          log_warning(f"Module {module.name} already loaded from {modules[module.name].path}; ignoring {path}")
          continue
        ScopeBinder(module, import_base, node_scopes, definitions, functions).bind()
        modules[module.name] = module

    logger.debug("Loaded %d module(s) from %d source root(s)", len(modules), len(roots))
    return Program(modules.values(), self.config, node_scopes, definitions, functions)


def packages_under(program: Program, paths: Sequence[Path]) -> List[str]:
  """
  Returns the packages that have at least one module inside ``paths``.

  Args:
      program: The loaded program.
      paths: The requested files or directories.

  Returns:
      Sorted package names.
  """
  requested = [p.resolve() for p in paths]
  found = set()
  for module in program.modules():
    location = module.path.resolve()
    if any(location == p or p in location.parents for p in requested):
      found.add(module.package)
  return sorted(found)


def load_program(paths: Sequence[Path], config: Optional[LintConfig] = None) -> Program:
  """
  Convenience wrapper around `ProgramLoader`.
  """
  return ProgramLoader(config or LintConfig()).load(paths)
