"""Settings loading helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal, Mapping

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .hashing import DEFAULT_COST

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "d2j" / "config.toml"

LogLevel = Literal["debug", "info", "warn", "error"]


class RedisSettings(BaseModel):
    """Where session entries live."""

    host: str = "localhost"
    port: int = Field(default=6379, gt=0, le=65535)
    password: str = ""
    database: int = Field(default=0, ge=0)


class Settings(BaseModel):
    """Shape of the configuration file."""

    store: Literal["redis", "memory"] = "redis"
    redis: RedisSettings = Field(default_factory=RedisSettings)
    log_level: LogLevel = "info"
    send_details_on_internal_error: bool = False
    hash_cost: int = Field(default=DEFAULT_COST, ge=4, le=31)
    connect_timeout: float = Field(default=10.0, gt=0)
    query_timeout: float = Field(default=30.0, gt=0)
    operation_timeout: float = Field(default=60.0, gt=0)
    default_session_duration: str = "1h"
    last_session_key: str | None = None

    def with_last_session_key(self, key: str | None) -> Settings:
        """Return a copy remembering (or forgetting) the active session key."""

        return self.model_copy(update={"last_session_key": key})


_ENV_OVERRIDES: Mapping[str, tuple[str, ...]] = {
    "D2J_STORE": ("store",),
    "D2J_LOG_LEVEL": ("log_level",),
    "D2J_SEND_DETAILS_ON_INTERNAL_ERROR": ("send_details_on_internal_error",),
    "D2J_REDIS_HOST": ("redis", "host"),
    "D2J_REDIS_PORT": ("redis", "port"),
    "D2J_REDIS_PASSWORD": ("redis", "password"),
    "D2J_REDIS_DATABASE": ("redis", "database"),
}


def config_path() -> Path:
    """Location of the config file, honouring ``D2J_CONFIG``."""

    override = os.environ.get("D2J_CONFIG")
    return Path(override) if override else CONFIG_FILE


def load_config() -> Settings:
    """Load settings from disk and the environment.

    Invalid entries fall back to their defaults one by one; the rest are kept.
    """

    try:
        data = _read_config_file(config_path())
    except (tomllib.TOMLDecodeError, OSError):
        data = {}
    _apply_env_overrides(data, os.environ)
    return _validate(data)


def save_config(settings: Settings) -> None:
    """Persist settings to disk."""

    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [
        f'store = "{settings.store}"',
        f'log_level = "{settings.log_level}"',
        f"send_details_on_internal_error = {str(settings.send_details_on_internal_error).lower()}",
        f"hash_cost = {settings.hash_cost}",
        f"connect_timeout = {settings.connect_timeout}",
        f"query_timeout = {settings.query_timeout}",
        f"operation_timeout = {settings.operation_timeout}",
        f'default_session_duration = "{settings.default_session_duration}"',
    ]
    if settings.last_session_key:
        lines.append(f'last_session_key = "{_escape(settings.last_session_key)}"')
    lines.append("")
    lines.append("[redis]")
    lines.append(f'host = "{_escape(settings.redis.host)}"')
    lines.append(f"port = {settings.redis.port}")
    if settings.redis.password:
        lines.append(f'password = "{_escape(settings.redis.password)}"')
    lines.append(f"database = {settings.redis.database}")
    path.write_text("\n".join(lines) + "\n")


def _validate(data: dict[str, object]) -> Settings:
    while True:
        try:
            return Settings.model_validate(data)
        except ValidationError as exc:
            dropped = False
            for error in exc.errors():
                location = tuple(str(part) for part in error["loc"])
                if _drop(data, location):
                    LOG.warning("Ignoring invalid setting", extra={"setting": ".".join(location)})
                    dropped = True
            if not dropped:
                return Settings()


def _drop(data: dict[str, object], location: tuple[str, ...]) -> bool:
    if not location:
        return False
    target: object = data
    for part in location[:-1]:
        if not isinstance(target, dict):
            return False
        target = target.get(part)
    if not isinstance(target, dict) or location[-1] not in target:
        return False
    del target[location[-1]]
    return True


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    for key in (
        "store",
        "log_level",
        "default_session_duration",
        "last_session_key",
    ):
        value = raw.get(key)
        if isinstance(value, str):
            data[key] = value
    flag = raw.get("send_details_on_internal_error")
    if isinstance(flag, bool):
        data["send_details_on_internal_error"] = flag
    cost = raw.get("hash_cost")
    if isinstance(cost, int) and not isinstance(cost, bool):
        data["hash_cost"] = cost
    for key in ("connect_timeout", "query_timeout", "operation_timeout"):
        value = raw.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            data[key] = float(value)
    redis = raw.get("redis")
    if isinstance(redis, dict):
        parsed: dict[str, object] = {}
        for key in ("host", "password"):
            value = redis.get(key)
            if isinstance(value, str):
                parsed[key] = value
        for key in ("port", "database"):
            value = redis.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                parsed[key] = value
        data["redis"] = parsed
    return data


def _apply_env_overrides(data: dict[str, object], environ: Mapping[str, str]) -> None:
    for variable, path in _ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value is None or value == "":
            continue
        if path[-1] in ("store", "log_level"):
            value = value.lower()
        target = data
        for part in path[:-1]:
            nested = target.get(part)
            if not isinstance(nested, dict):
                nested = {}
                target[part] = nested
            target = nested
        target[path[-1]] = value


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


__all__ = [
    "CONFIG_FILE",
    "LogLevel",
    "RedisSettings",
    "Settings",
    "config_path",
    "load_config",
    "save_config",
]
