from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import ConfigError, read_config, resolve_config_path

DEFAULT_PREFIX = "!"
PREFIX_STATE_FILENAME = "framed_prefixes_state.json"


def _clean_identity_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field_name} must be a list of strings")
    cleaned: list[str] = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise ValueError(f"{field_name} entries must be strings")
        text = str(item).strip()
        if text:
            cleaned.append(text)
    return cleaned


class PlatformSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_prefix: str | None = None
    owners: list[str] = Field(default_factory=list)
    admins: list[str] = Field(default_factory=list)

    @field_validator("default_prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("default_prefix must be a string")
        if not value.strip():
            raise ValueError("default_prefix must be a non-empty string")
        return value.strip()

    @field_validator("owners", "admins", mode="before")
    @classmethod
    def _validate_ids(cls, value: Any, info) -> Any:
        return _clean_identity_list(value, info.field_name)


class PluginsSettings(BaseModel):
    enabled: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @field_validator("enabled", mode="before")
    @classmethod
    def _validate_enabled(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("enabled must be a list of strings")
        cleaned = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("enabled entries must be strings")
            if item.strip():
                cleaned.append(item.strip())
        return cleaned


class FramedSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        env_prefix="FRAMED__",
        env_nested_delimiter="__",
    )

    default_prefix: str = DEFAULT_PREFIX
    prefix_match: Literal["ordered", "longest"] = "ordered"
    keep_quote_chars: bool = False
    bot_user_id: str | None = None
    prefix_state: str = PREFIX_STATE_FILENAME

    discord: PlatformSettings = Field(default_factory=PlatformSettings)
    twitch: PlatformSettings = Field(default_factory=PlatformSettings)
    plugins: PluginsSettings = Field(default_factory=PluginsSettings)

    @field_validator("default_prefix", mode="before")
    @classmethod
    def _validate_default_prefix(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("default_prefix must be a non-empty string")
        if not isinstance(value, str):
            raise ValueError("default_prefix must be a string")
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("default_prefix must be a non-empty string")
        return cleaned

    @field_validator("bot_user_id", mode="before")
    @classmethod
    def _validate_bot_user_id(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError("bot_user_id must be a string")
        cleaned = str(value).strip()
        return cleaned or None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def plugins_allowlist(self) -> list[str] | None:
        return list(self.plugins.enabled) or None

    def plugin_config(self, plugin_id: str, *, config_path: Path) -> dict[str, Any]:
        extra = self.plugins.model_extra or {}
        raw = extra.get(plugin_id)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Invalid `plugins.{plugin_id}` in {config_path}; expected a table."
            )
        return raw

    def platform(self, name: str) -> PlatformSettings | None:
        if name == "discord":
            return self.discord
        if name == "twitch":
            return self.twitch
        return None

    def prefix_state_path(self, config_path: Path) -> Path:
        path = Path(self.prefix_state).expanduser()
        if not path.is_absolute():
            path = config_path.parent / path
        return path


def load_settings(path: str | Path | None = None) -> tuple[FramedSettings, Path]:
    cfg_path = resolve_config_path(path)
    _ensure_config_file(cfg_path)
    return _load_settings_from_path(cfg_path), cfg_path


def load_settings_if_exists(
    path: str | Path | None = None,
) -> tuple[FramedSettings, Path] | None:
    cfg_path = resolve_config_path(path)
    if cfg_path.exists():
        if not cfg_path.is_file():
            raise ConfigError(
                f"Config path {cfg_path} exists but is not a file."
            ) from None
        return _load_settings_from_path(cfg_path), cfg_path
    return None


def validate_settings_data(
    data: dict[str, Any], *, config_path: Path
) -> FramedSettings:
    try:
        return FramedSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc


def _ensure_config_file(cfg_path: Path) -> None:
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigError(f"Config path {cfg_path} exists but is not a file.") from None
    if not cfg_path.exists():
        raise ConfigError(f"Missing config file {cfg_path}.") from None


def _load_settings_from_path(cfg_path: Path) -> FramedSettings:
    # surfaces malformed TOML as ConfigError before pydantic sees it
    read_config(cfg_path)
    cfg = dict(FramedSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "FramedSettingsBound",
        (FramedSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
