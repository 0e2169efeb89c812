"""Harness configuration.

Settings come from defaults, an optional YAML file and ``CHARTVERIFY_*``
environment variables, in that order of precedence (later wins). CLI
options are applied on top by the command itself.

Example:
    >>> config = HarnessConfig.from_yaml(Path("chartverify.yaml"))  # doctest: +SKIP
    >>> config = config.merged(max_workers=8)  # doctest: +SKIP

Environment variables:
    CHARTVERIFY_CHART_PATH, CHARTVERIFY_HELM_BINARY,
    CHARTVERIFY_RENDER_TIMEOUT, CHARTVERIFY_MAX_WORKERS,
    CHARTVERIFY_NAMESPACE_PREFIX, CHARTVERIFY_RELEASE_NAME,
    CHARTVERIFY_LOG_LEVEL, CHARTVERIFY_JSON_LOGS
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chartverify.errors import ConfigurationError
from chartverify.harness import DEFAULT_MAX_WORKERS
from chartverify.logging import LOG_LEVELS
from chartverify.naming import DEFAULT_NAMESPACE_PREFIX
from chartverify.renderer import DEFAULT_HELM_BINARY, DEFAULT_RENDER_TIMEOUT

ENV_PREFIX = "CHARTVERIFY_"


class HarnessConfig(BaseModel):
    """Settings for a verification run.

    Attributes:
        chart_path: Chart directory to verify.
        helm_binary: Helm executable name or path.
        render_timeout: Seconds allowed per ``helm template`` call.
        max_workers: Scenarios rendered in parallel.
        namespace_prefix: Prefix of the generated isolation namespaces.
        release_name: Release name of the component scenarios.
        log_level: Minimum log level.
        json_logs: Emit JSON logs instead of console output.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    chart_path: Path = Field(default=Path("charts/featbit"), description="Chart directory")
    helm_binary: str = Field(default=DEFAULT_HELM_BINARY, min_length=1)
    render_timeout: int = Field(default=DEFAULT_RENDER_TIMEOUT, ge=1, le=3600)
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1, le=64)
    namespace_prefix: str = Field(default=DEFAULT_NAMESPACE_PREFIX, min_length=1)
    release_name: str = Field(default="helm-basic", min_length=1)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: str = "config") -> HarnessConfig:
        """Validate settings from a mapping.

        Raises:
            ConfigurationError: If a value is missing, unknown or invalid.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid {source}: {details}") from e

    @classmethod
    def from_yaml(cls, path: Path) -> HarnessConfig:
        """Load settings from a YAML file.

        An empty file yields the defaults.

        Args:
            path: YAML file with top-level setting keys.

        Returns:
            Validated configuration.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not a
                mapping or contains invalid values.
        """
        try:
            content = path.read_text()
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {path}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {path.name}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path.name} must contain a mapping")
        return cls.from_mapping(data, source=str(path))

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        base: HarnessConfig | None = None,
    ) -> HarnessConfig:
        """Apply ``CHARTVERIFY_*`` environment variables.

        Args:
            environ: Environment to read (defaults to ``os.environ``).
            base: Settings the variables override (defaults to the defaults).

        Returns:
            Validated configuration.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        data = (base or cls()).model_dump()
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                data[name] = raw.strip()
        return cls.from_mapping(data, source="environment")

    def merged(self, **overrides: Any) -> HarnessConfig:
        """Copy with the given non-None settings replaced and re-validated."""
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return type(self).from_mapping(data, source="options")


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> HarnessConfig:
    """Load defaults, then ``path`` (if given), then the environment."""
    base = HarnessConfig.from_yaml(path) if path is not None else HarnessConfig()
    return HarnessConfig.from_env(environ, base=base)


__all__: list[str] = [
    "ENV_PREFIX",
    "HarnessConfig",
    "load_config",
]
