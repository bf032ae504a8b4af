"""Application state and configuration."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from histfmt.core.base import BaseConfig, BaseState
from histfmt.core.log import Logger
from histfmt.core.yaml_settings import YamlWithIncludesSettingsSource

# Modules reachable from {name.attr} templates in configuration strings,
# e.g. {platformdirs.user_state_dir} or {Path.cwd}
TEMPLATE_NAMESPACE = {
    'os': os,
    'platformdirs': platformdirs,
    'Path': Path,
}


# ============================================================
# CONFIG MODELS (loaded from YAML/env/CLI)
# ============================================================

class FormatConfig(BaseConfig):
    """Formatter invocation."""

    command: str | None = Field(
        default=None,
        description=(
            "Shell command that formats the working tree in place, run "
            "from the repository root (e.g. 'black -q', "
            "'git clang-format --force'). Must be deterministic and "
            "idempotent"
        ),
    )
    targets: list[str] = Field(
        default_factory=list,
        description=(
            "Path filters appended to the command; empty formats the "
            "whole tree"
        ),
    )
    verify: bool = Field(
        default=True,
        description=(
            "Re-run the formatter on the final tip and fail if it "
            "still changes anything"
        ),
    )


class Config(BaseConfig):
    """Application configuration loaded from YAML/env/CLI."""

    logger: Logger = Field(
        default=None,
        description="Logger configuration and runtime instance",
    )
    format: FormatConfig = Field(
        default_factory=FormatConfig,
        description="Formatter settings",
    )
    interactive: bool = Field(
        default=True,
        description=(
            "Pause for 'press enter' before the interleave and "
            "collapse rebases"
        ),
    )
    log_level: str | None = Field(
        default=None,
        alias="log-level",
        description=(
            "Console log level override: 'spew', 'trace', 'debug', "
            "'info', 'warn', 'error', 'fatal'"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "histfmt"
        ),
        description=(
            "Root directory for log files "
            "(supports {platformdirs.*} templates)"
        ),
    )
    commands: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description=(
            "Command templates by category; every git invocation is "
            "looked up under 'git'"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)

    @property
    def run_name(self) -> str:
        """Per-repository log directory name."""
        return Path.cwd().name or "histfmt"

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Config':
        """Configure the global logger once configuration is final."""
        if self.logger is None:
            self.logger = Logger()
        if self.log_level:
            self.logger.console.level = self.log_level

        # State calls setup_logging() once templates are substituted
        if not self.has_log_root_template:
            self.setup_logging()
        return self

    @property
    def has_log_root_template(self) -> bool:
        return "{" in str(self.log_root)

    def setup_logging(self):
        from histfmt.core.log import setup_logger
        from histfmt.core.yaml_settings import _cleanup_bootstrap_logger

        setup_logger(
            log_root=self.log_root,
            run_name=self.run_name,
            console=self.logger.console,
            otlp=self.logger.otlp,
            file=self.logger.file,
            level=self.logger.level,
        )
        _cleanup_bootstrap_logger()

    def close(self):
        """Close the global logger, then the remaining children."""
        from histfmt.core.log import logger
        logger.close()
        super().close()


# ============================================================
# RUNTIME STATE MODELS (mutable during workflow execution)
# ============================================================

class RewriteState(BaseState):
    """Rewrite workflow runtime state."""

    run: Any = Field(
        default=None,
        description="Active RunState, reloaded after every rebase",
    )
    git: Any = Field(
        default=None,
        description="Git collaborator bound to the repository root",
    )
    store: Any = Field(
        default=None,
        description="RunStore under the repository's git directory",
    )
    status: str = Field(
        default="pending",
        description="pending, running, paused, complete, failed",
    )
    final_tip: str | None = Field(
        default=None,
        description="New branch tip once collapse has finished",
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Runtime(BaseModel):
    """All runtime state, grouped by workflow."""

    rewrite: RewriteState = Field(
        default_factory=RewriteState,
        description="Rewrite workflow runtime state",
    )


# ============================================================
# STATE (config + runtime combined)
# ============================================================

class State(BaseSettings):
    """Configuration plus runtime state; flows through every node.

    Loaded by pydantic-settings from init args, YAML layers, .env
    and HISTFMT_* environment variables.
    """

    config: Config = Field(
        default_factory=Config,
        description="Application configuration (from YAML/env/CLI)",
    )
    runtime: Runtime = Field(
        default_factory=Runtime,
        description="Runtime state (mutates during workflow execution)",
    )
    include: list[str] | None = Field(
        default=None,
        description=(
            "Additional YAML files to deep-merge over the defaults. "
            "Use --include on CLI or include: in YAML files."
        ),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HISTFMT_",
        env_nested_delimiter="__",
        cli_parse_args=True,
        cli_implicit_flags=True,
        cli_use_class_docs_for_groups=True,
        arbitrary_types_allowed=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Init args > environment > .env > YAML layers > secrets.

        Rebase callbacks run in child processes and see the parent's
        HISTFMT_* variables, so the environment outranks YAML.
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlWithIncludesSettingsSource(settings_cls),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def substitute_templates(self) -> "State":
        """Expand {config.*}, {platformdirs.*}, {os.*} and {Path.*}
        references in every string and Path of the configuration."""
        deferred = self.config.has_log_root_template
        self._substitute_recursive(self.config)
        if deferred:
            self.config.setup_logging()
        return self

    def _substitute_recursive(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            for field_name in obj.__class__.model_fields:
                value = getattr(obj, field_name)
                new_value = self._substitute_value(value)
                if new_value is not value:
                    setattr(obj, field_name, new_value)
        elif isinstance(obj, dict):
            for key in obj:
                obj[key] = self._substitute_value(obj[key])
        elif isinstance(obj, list):
            for i, item in enumerate(obj):
                obj[i] = self._substitute_value(item)

    def _substitute_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, Path):
            return Path(self._substitute_string(str(value)))
        if isinstance(value, (BaseModel, dict, list)):
            self._substitute_recursive(value)
        return value

    def _substitute_string(self, value: str) -> str:
        """Replace {dotted.path} references that resolve; leave the
        rest (including git command placeholders) untouched.

        Examples:
            "{platformdirs.user_log_dir}/histfmt"
            -> "~/.local/state/histfmt/log/histfmt"
        """
        def replace_template(match):
            parts = match.group(1).split(".")
            if parts[0] in TEMPLATE_NAMESPACE:
                obj = TEMPLATE_NAMESPACE[parts[0]]
                parts = parts[1:]
            elif parts[0] == "config":
                obj = self
            else:
                return match.group(0)

            try:
                for part in parts:
                    obj = getattr(obj, part)
                if callable(obj):
                    obj = obj('histfmt', appauthor=False)
                return str(obj)
            except (AttributeError, TypeError):
                return match.group(0)

        return re.sub(r'\{([A-Za-z_][A-Za-z0-9_.]*\.[A-Za-z0-9_.]+)\}',
                      replace_template, value)


__all__ = ["State", "Config", "FormatConfig", "BaseConfig", "BaseState"]
