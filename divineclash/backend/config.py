"""Configuration helpers for backend runtime and clash rules."""

from __future__ import annotations

import os
from dataclasses import dataclass


MASTERY_RANK_RANGE = (1, 10)
MAX_GROUP_DEFENDERS_RANGE = (1, 10)


@dataclass(frozen=True)
class BackendSettings:
    server_salt: str
    host: str
    port: int
    log_level: str


@dataclass(frozen=True)
class ClashSettings:
    mastery_rank_default: int = 2
    overdrive_enabled: bool = True
    max_group_defenders: int = 3
    default_vitality: int = 10
    default_attack_stones: int = 5
    default_defense_stones: int = 5


def load_settings() -> BackendSettings:
    port_raw = os.getenv("DIVINECLASH_PORT", "8000")
    return BackendSettings(
        server_salt=os.getenv("DIVINECLASH_SERVER_SALT", "dev-salt"),
        host=os.getenv("DIVINECLASH_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("DIVINECLASH_LOG_LEVEL", "INFO").upper(),
    )


def load_clash_settings() -> ClashSettings:
    """Read the rule settings; called at the point of use, never cached."""
    defaults = ClashSettings()
    return ClashSettings(
        mastery_rank_default=_bounded_int(
            "DIVINECLASH_MASTERY_RANK", defaults.mastery_rank_default, MASTERY_RANK_RANGE
        ),
        overdrive_enabled=_env_bool("DIVINECLASH_ENABLE_OVERDRIVE", defaults.overdrive_enabled),
        max_group_defenders=_bounded_int(
            "DIVINECLASH_MAX_GROUP_DEFENSE", defaults.max_group_defenders, MAX_GROUP_DEFENDERS_RANGE
        ),
        default_vitality=_bounded_int("DIVINECLASH_DEFAULT_VITALITY", defaults.default_vitality, (0, None)),
        default_attack_stones=_bounded_int(
            "DIVINECLASH_DEFAULT_ATTACK_STONES", defaults.default_attack_stones, (0, None)
        ),
        default_defense_stones=_bounded_int(
            "DIVINECLASH_DEFAULT_DEFENSE_STONES", defaults.default_defense_stones, (0, None)
        ),
    )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _bounded_int(name: str, default: int, bounds: tuple[int, int | None]) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = int(raw)
    low, high = bounds
    if value < low or (high is not None and value > high):
        raise ValueError(f"{name}={value} is outside the allowed range")
    return value
