"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (TESTHARBOR__SECTION__KEY)
3. Project config (.testharbor/config.yaml)
4. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from testharbor.config.models import (
    HarborConfig,
    LoggingConfig,
    MockDataConfig,
    PathsConfig,
    ReadinessConfig,
    SandboxConfig,
)
from testharbor.core.errors import ConfigError

CONFIG_DIRNAME = ".testharbor"
CONFIG_FILENAME = "config.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top-level value must be a mapping")
    return data


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class bound to one YAML payload."""

    class HarborSettings(BaseSettings):
        """Root config. Env vars: TESTHARBOR__LOGGING__LEVEL, TESTHARBOR__PATHS__TEMP_ROOT, etc."""

        model_config = SettingsConfigDict(
            env_prefix="TESTHARBOR__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        paths: PathsConfig = PathsConfig()
        sandbox: SandboxConfig = SandboxConfig()
        mockdata: MockDataConfig = MockDataConfig()
        readiness: ReadinessConfig = ReadinessConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return HarborSettings


def load_config(project_root: Path | None = None, **kwargs: Any) -> HarborConfig:
    """Load config: defaults < project YAML < env vars < kwargs.

    Args:
        project_root: Project root holding .testharbor/config.yaml.
                      Defaults to the current working directory.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    project_root = project_root or Path.cwd()
    yaml_config = _load_yaml(project_root / CONFIG_DIRNAME / CONFIG_FILENAME)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e
    return HarborConfig.model_validate(settings.model_dump())
