"""
Runtime Configuration Store.

Holds the names the analyzer treats specially (the base context protocol, the
memoization entry points, cast helpers) and the file conventions used to
recognize test modules. Values are read from ``[tool.typed_context_lint]`` in
the nearest ``pyproject.toml`` and may be overridden from the CLI.
"""

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from typed_context_lint.utils.console import log_warning

_TOOL_SECTION = "typed_context_lint"


class LintConfig(BaseModel):
  """
  Configuration container for a lint run.
  """

  base_context: List[str] = Field(
    default_factory=lambda: ["context.Context"],
    description="Qualified names of the shared base context protocol(s).",
  )
  cache_function: str = Field("cache.cache", description="Qualified name of the memoize entry point.")
  key_params_function: str = Field(
    "cache.key_params_fxn", description="Qualified name of the cache-key derivation entry point."
  )
  cast_functions: List[str] = Field(
    default_factory=lambda: ["typing.cast", "typing_extensions.cast"],
    description="Qualified names treated as type assertions: cast(T, value).",
  )
  protocol_bases: List[str] = Field(
    default_factory=lambda: ["typing.Protocol", "typing_extensions.Protocol"],
    description="Bases that mark a class as a structural interface.",
  )
  test_file_patterns: List[str] = Field(
    default_factory=lambda: ["test_*.py", "*_test.py", "conftest.py"],
    description="Glob patterns for test-only files, which are never reported on.",
  )
  discard_names: List[str] = Field(default_factory=lambda: ["_"], description="Identifiers never tracked.")
  exclude: List[str] = Field(
    default_factory=lambda: [".*", "__pycache__", "build", "dist", "venv", "node_modules"],
    description="Directory name patterns skipped while loading sources.",
  )

  @field_validator(
    "base_context",
    "cast_functions",
    "protocol_bases",
    "test_file_patterns",
    "discard_names",
    "exclude",
    mode="before",
  )
  @classmethod
  def split_comma_lists(cls, v: Any) -> Any:
    """
    Accepts comma separated strings for list settings (CLI overrides).

    Args:
        v (Any): The raw value.

    Returns:
        Any: A list of stripped names if a string was given, else the input.
    """
    if isinstance(v, str):
      return [part.strip() for part in v.split(",") if part.strip()]
    return v

  @classmethod
  def load(
    cls,
    search_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
  ) -> "LintConfig":
    """
    Loads configuration from pyproject.toml and applies overrides on top.

    Args:
        search_path (Optional[Path]): Directory to start searching for TOML config.
        overrides (Optional[Dict]): Values taking precedence over the file (e.g. from the CLI).

    Returns:
        LintConfig: The fully resolved configuration object.
    """
    start_dir = search_path or Path.cwd()
    toml_config, _ = _load_toml_settings(start_dir)
    merged = {**toml_config, **(overrides or {})}
    return cls(**merged)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches the start path and its parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory (or file) to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory the definition was found in.
  """
  current = start_path.resolve()
  if current.is_file():
    current = current.parent

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except tomllib.TOMLDecodeError as e:
        log_warning(f"Ignoring malformed {toml_path}: {e}")
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get(_TOOL_SECTION, {}), parent

  return {}, None


def parse_cli_key_values(items: Optional[List[str]]) -> Dict[str, Any]:
  """
  Parses a list of 'key=value' strings into a dictionary.

  Dashes in keys are normalized to underscores so ``cache-function=x`` and
  ``cache_function=x`` are equivalent.

  Args:
      items (Optional[List[str]]): List of raw CLI strings directly from argparse.

  Returns:
      Dict[str, Any]: Parsed dictionary.
  """
  if not items:
    return {}

  config = {}
  for item in items:
    if "=" not in item:
      log_warning(f"Ignoring invalid config format: '{item}'. Expected 'key=value'.")
      continue

    key, val_str = item.split("=", 1)
    config[key.strip().replace("-", "_")] = val_str.strip()

  return config
