"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (SHEETSYNC__SECTION__KEY)
3. Config file (YAML, or JSON which YAML parses as-is)
4. Built-in defaults (lowest priority)

The watched workbook, the credentials file, the spreadsheet ID and both sheet
names have no usable default; loading fails if any of them is empty.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from sheetsync.config.models import (
    DestinationConfig,
    LoggingConfig,
    ServiceConfig,
    SheetSyncConfig,
    TablesConfig,
    WatchConfig,
)
from sheetsync.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "config.yaml"

REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("watch", "path"),
    ("destination", "credentials_path"),
    ("destination", "spreadsheet_id"),
    ("tables", "first"),
    ("tables", "second"),
)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError.file_not_found(str(path))
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    except OSError as e:
        raise ConfigError.parse_error(str(path), e.strerror or str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    # A section header with nothing under it parses as None
    return {key: value for key, value in data.items() if value is not None}


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
    """Create a Settings class with instance-based YAML source."""

    class SheetSyncSettings(BaseSettings):
        """Root config. Env vars: SHEETSYNC__WATCH__PATH, SHEETSYNC__LOGGING__LEVEL, etc."""

        model_config = SettingsConfigDict(
            env_prefix="SHEETSYNC__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        watch: WatchConfig = WatchConfig()
        destination: DestinationConfig = DestinationConfig()
        tables: TablesConfig = TablesConfig()
        logging: LoggingConfig = LoggingConfig()
        service: ServiceConfig = ServiceConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > config file
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return SheetSyncSettings


def _resolve(base_dir: Path, value: str) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path.resolve())


def _check_required(config: SheetSyncConfig) -> None:
    for section, key in REQUIRED_FIELDS:
        value = getattr(getattr(config, section), key)
        if not str(value).strip():
            raise ConfigError.missing_required(f"{section}.{key}")


def load_config(path: Path | str | None = None, **kwargs: Any) -> SheetSyncConfig:
    """Load config: defaults < config file < env vars < kwargs.

    Args:
        path: Config file. Defaults to ./config.yaml.
        **kwargs: Section overrides (highest precedence), e.g.
            ``watch={"path": "/tmp/export.xlsx"}``.

    Returns:
        Fully resolved configuration with absolute paths.

    Raises:
        ConfigError: Missing file, invalid YAML/JSON, invalid values, or an
            empty required field.
    """
    config_path = Path(path) if path is not None else Path.cwd() / DEFAULT_CONFIG_FILE
    config_path = config_path.expanduser().resolve()
    yaml_config = _load_yaml(config_path)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

    config = SheetSyncConfig.model_validate(settings.model_dump())
    _check_required(config)

    base_dir = config_path.parent
    config.watch.path = _resolve(base_dir, config.watch.path)
    config.destination.credentials_path = _resolve(base_dir, config.destination.credentials_path)
    config.service.runtime_dir = _resolve(base_dir, config.service.runtime_dir)
    return config
