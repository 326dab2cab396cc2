"""Proxy settings: XDG config.json, DEGIRO_PROXY_* env overrides and logging setup."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "DEGIRO_PROXY_"
CONFIG_PATH_ENV = "DEGIRO_PROXY_CONFIG_JSON"
SECTIONS = ("degiro", "server", "logging")


def _dir_from_env(var: str, default: Path) -> Path:
    value = os.environ.get(var, "").strip()
    return Path(value or default).expanduser()


DEFAULT_CONFIG_HOME = _dir_from_env("XDG_CONFIG_HOME", Path.home() / ".config") / "degiro-proxy"
DEFAULT_STATE_HOME = _dir_from_env("XDG_STATE_HOME", Path.home() / ".local" / "state") / "degiro-proxy"
DEFAULT_CONFIG_JSON = _dir_from_env(CONFIG_PATH_ENV, DEFAULT_CONFIG_HOME / "config.json")


class DegiroConfig(BaseModel):
    base_url: str = "https://trader.degiro.nl"
    user_agent: str = "Mozilla/5.0 (compatible; degiro-proxy/0.1)"
    request_timeout_seconds: float = 15.0
    min_request_gap_seconds: float = 0.5
    health_timeout_seconds: float = 8.0

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        url = value.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return url

    @field_validator("min_request_gap_seconds")
    @classmethod
    def _gap_not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("min_request_gap_seconds must be >= 0")
        return value


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://localhost:4173"])


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_file: Path = DEFAULT_STATE_HOME / "degiro-proxy.log"


class AppConfig(BaseModel):
    degiro: DegiroConfig = Field(default_factory=DegiroConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def expanded(self) -> "AppConfig":
        return self.model_copy(
            update={"logging": self.logging.model_copy(update={"log_file": self.logging.log_file.expanduser()})}
        )

    def ensure_dirs(self) -> None:
        self.logging.log_file.expanduser().parent.mkdir(parents=True, exist_ok=True)


_SECTION_MODELS: dict[str, type[BaseModel]] = {
    "degiro": DegiroConfig,
    "server": ServerConfig,
    "logging": LoggingConfig,
}


def _coerce_env_value(value: str) -> Any:
    """Best-effort typing of an env override: bools, comma lists, ints, floats, else text."""

    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def _read_config_json(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("ignoring malformed config file %s: %s", path, exc)
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _is_text_field(section: str, field: str) -> bool:
    info = _SECTION_MODELS[section].model_fields.get(field)
    return info is not None and info.annotation in (str, Path)


def _env_overrides() -> dict[str, dict[str, Any]]:
    """Collect ``DEGIRO_PROXY_<SECTION>_<FIELD>`` variables by section."""

    overrides: dict[str, dict[str, Any]] = {}
    for key, raw in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
            continue
        section, _, field = key[len(ENV_PREFIX) :].lower().partition("_")
        if section not in SECTIONS or not field:
            continue
        if _is_text_field(section, field):
            value: Any = raw
        else:
            value = _coerce_env_value(raw)
        if field == "cors_origins" and isinstance(value, str):
            value = [value]
        overrides.setdefault(section, {})[field] = value
    return overrides


def load_config() -> AppConfig:
    raw = _read_config_json(DEFAULT_CONFIG_JSON)
    merged = {name: dict(raw[name]) for name in SECTIONS if isinstance(raw.get(name), dict)}
    for section, fields in _env_overrides().items():
        merged.setdefault(section, {}).update(fields)

    cfg = AppConfig.model_validate(merged).expanded()
    cfg.ensure_dirs()
    return cfg


def configure_logging(cfg: AppConfig) -> None:
    log_file = cfg.logging.log_file.expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
    )
