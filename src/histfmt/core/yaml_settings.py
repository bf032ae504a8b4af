"""YAML configuration loading with include: support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"

# Logs configuration loading before the real logger exists
_bootstrap_logger = None


def _get_bootstrap_logger():
    global _bootstrap_logger
    if _bootstrap_logger is None:
        from histfmt.core.log import ConsoleSink, Logger
        _bootstrap_logger = Logger(console=ConsoleSink(level="warn"))
        _bootstrap_logger.setup(log_root=Path.home(), run_name="bootstrap")
    return _bootstrap_logger


def _cleanup_bootstrap_logger():
    """Close the bootstrap logger once Config has set up the real one."""
    global _bootstrap_logger
    if _bootstrap_logger:
        _bootstrap_logger.close()
        _bootstrap_logger = None


def cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every --include option in argv."""
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        elif argv[i].startswith("--include="):
            includes.append(argv[i].split("=", 1)[1])
        i += 1
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML source layering package defaults, user config, project
    config and --include files, with include: directives inside any
    of them.

    Later layers win; nested mappings are deep-merged.
    """

    def __init__(
        self, settings_cls: type[BaseSettings], yaml_file=None
    ):
        if isinstance(yaml_file, (str, os.PathLike)):
            yaml_file = [yaml_file]
        extra = list(yaml_file or []) + cli_includes(sys.argv)
        super().__init__(settings_cls, extra or None)

    def _read_files(self, files):
        """Load and deep-merge every configuration layer.

        Args:
            files: --include file path(s) from the command line

        Returns:
            Deep-merged dictionary of all loaded data
        """
        layers = [
            DEFAULTS_FILE,
            Path(user_config_dir("histfmt", appauthor=False))
            / "histfmt.yaml",
            Path("histfmt.yaml"),
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            layers.extend(Path(f).expanduser() for f in files)

        result = {}
        for file_path in layers:
            if not file_path.is_file():
                _get_bootstrap_logger().debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
                continue
            data = self._load_file_recursive(file_path, set())
            result = self._deep_merge(result, data)

        return result

    def _load_file_recursive(
        self, filepath: Path, visited: set[Path]
    ) -> dict:
        """Load a YAML file, resolving include: directives first.

        The including file wins over what it includes.

        Raises:
            ValueError: If circular include detected
        """
        filepath = filepath.resolve()
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        includes = data.pop("include", None) or []
        if isinstance(includes, str):
            includes = [includes]

        merged = {}
        for inc in includes:
            inc_path = Path(inc).expanduser()
            if not inc_path.is_absolute():
                inc_path = filepath.parent / inc_path
            merged = self._deep_merge(
                merged, self._load_file_recursive(inc_path, visited.copy())
            )

        return self._deep_merge(merged, data)

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Return base with override merged in (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
