"""Configuration loading with pydantic-settings.

Sources, lowest precedence first:
1. Built-in defaults
2. YAML: the global file, then an optional explicit file layered on top
3. Environment variables (HOSTKIT__SECTION__KEY)
4. Keyword overrides passed to load_config()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from hostkit.config.models import (
    BundlerConfig,
    DatabaseConfig,
    HostKitConfig,
    LoggingConfig,
    NamespaceConfig,
    StorageConfig,
    WatcherConfig,
)
from hostkit.core.errors import ConfigError

logger = structlog.get_logger()

GLOBAL_CONFIG_PATH = Path("~/.config/hostkit/config.yaml").expanduser()

# YAML layer seen by the settings source for the load in progress
_yaml_layer: ContextVar[dict[str, Any]] = ContextVar("hostkit_yaml_layer")


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class _YamlLayerSource(PydanticBaseSettingsSource):
    """Serves the YAML layer bound for the current load_config() call."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:  # noqa: ARG002
        value = _yaml_layer.get({}).get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return {
            name: value
            for name in self.settings_cls.model_fields
            if (value := _yaml_layer.get({}).get(name)) is not None
        }


class HostKitSettings(BaseSettings):
    """Root settings. Env vars: HOSTKIT__LOGGING__LEVEL, HOSTKIT__STORAGE__DATA_DIR, etc."""

    model_config = SettingsConfigDict(
        env_prefix="HOSTKIT__",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    logging: LoggingConfig = LoggingConfig()
    storage: StorageConfig = StorageConfig()
    bundler: BundlerConfig = BundlerConfig()
    namespace: NamespaceConfig = NamespaceConfig()
    watcher: WatcherConfig = WatcherConfig()
    database: DatabaseConfig = DatabaseConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, _YamlLayerSource(settings_cls))


@contextmanager
def _bound_yaml(layer: dict[str, Any]) -> Iterator[None]:
    token = _yaml_layer.set(layer)
    try:
        yield
    finally:
        _yaml_layer.reset(token)


def load_config(config_path: Path | None = None, **kwargs: Any) -> HostKitConfig:
    """Resolve the session configuration.

    Args:
        config_path: Extra YAML file deep-merged over the global one.
        **kwargs: Section overrides, e.g. ``storage={"data_dir": path}``.

    Raises:
        ConfigError: On unreadable YAML or a value that fails validation.
    """
    files = [GLOBAL_CONFIG_PATH] if config_path is None else [GLOBAL_CONFIG_PATH, config_path]
    layer: dict[str, Any] = {}
    for path in files:
        layer = _deep_merge(layer, _load_yaml(path))

    try:
        with _bound_yaml(layer):
            settings = HostKitSettings(**kwargs)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ConfigError.invalid_value(location, first.get("input"), first["msg"]) from e

    logger.debug("config_loaded", files=[str(p) for p in files if p.exists()])
    return HostKitConfig.model_validate(settings.model_dump())
