"""Environment driven configuration for :mod:`qirmerge`."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Mapping

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_INSPECTION_PAGE = 4

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the merge service."""

    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    inspection_page: int = DEFAULT_INSPECTION_PAGE
    log_level: str = "INFO"
    concurrent_fetch: bool = True


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return parsed


def _read_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Return :class:`Settings` populated from *environ* (``os.environ`` by default)."""

    env = os.environ if environ is None else environ
    return Settings(
        port=_read_int(env, "PORT", DEFAULT_PORT),
        host=env.get("QIRMERGE_HOST", DEFAULT_HOST),
        fetch_timeout=_read_float(env, "QIRMERGE_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
        inspection_page=_read_int(env, "QIRMERGE_INSPECTION_PAGE", DEFAULT_INSPECTION_PAGE),
        log_level=env.get("QIRMERGE_LOG_LEVEL", "INFO").upper(),
        concurrent_fetch=_read_bool(env, "QIRMERGE_CONCURRENT_FETCH", True),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service and CLI."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


__all__ = [
    "Settings",
    "load_settings",
    "configure_logging",
    "DEFAULT_FETCH_TIMEOUT",
    "DEFAULT_INSPECTION_PAGE",
    "DEFAULT_PORT",
    "DEFAULT_HOST",
]
