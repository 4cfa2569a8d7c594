from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_fraction(name: str, default: float) -> float:
    value = _getenv_float(name, default)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")
    return value


@dataclass(frozen=True)
class ServiceConfig:
    MEDMIND_LOG_LEVEL: str
    MEDMIND_TRACE_PREFIX: str
    MEDMIND_GROUNDING_PENALTY: float
    MEDMIND_URGENCY_UPGRADE_THRESHOLD: float
    MEDMIND_DEMO_CACHE_ENABLED: bool
    MEDMIND_MAX_TEXT_CHARS: int


def load_config() -> ServiceConfig:
    return ServiceConfig(
        MEDMIND_LOG_LEVEL=_getenv_str("MEDMIND_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        MEDMIND_TRACE_PREFIX=_getenv_str("MEDMIND_TRACE_PREFIX", "medmind").strip() or "medmind",
        MEDMIND_GROUNDING_PENALTY=_getenv_fraction("MEDMIND_GROUNDING_PENALTY", 0.4),
        MEDMIND_URGENCY_UPGRADE_THRESHOLD=_getenv_fraction("MEDMIND_URGENCY_UPGRADE_THRESHOLD", 0.2),
        MEDMIND_DEMO_CACHE_ENABLED=_getenv_bool("MEDMIND_DEMO_CACHE_ENABLED", True),
        MEDMIND_MAX_TEXT_CHARS=_getenv_int("MEDMIND_MAX_TEXT_CHARS", 20000),
    )
