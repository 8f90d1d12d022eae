from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE_NAME = "config.yaml"

# 관리자 설정 레코드가 아직 없을 때 사용하는 기본값
DEFAULT_REWARD_PER_SECOND = Decimal("1")
DEFAULT_TOTAL_POOL_CEILING = Decimal("100000000")
DEFAULT_DECAY_GRACE_SECONDS = 0
DEFAULT_ACTIVE_SESSION_WINDOW_SECONDS = 120


@dataclass(slots=True)
class LedgerSettings:
    """ledger-service 기본 설정.

    - reward_per_second / decay_rate_per_second / total_pool_ceiling 은
      ledger_config 컬렉션에 버전 레코드가 하나도 없을 때의 초기값이다.
    - decay_rate_per_second 가 None 이면 적립 속도(reward_per_second)를 따른다.
    """

    reward_per_second: Decimal = DEFAULT_REWARD_PER_SECOND
    decay_rate_per_second: Decimal | None = None
    total_pool_ceiling: Decimal = DEFAULT_TOTAL_POOL_CEILING
    decay_grace_seconds: int = DEFAULT_DECAY_GRACE_SECONDS
    active_session_window_seconds: int = DEFAULT_ACTIVE_SESSION_WINDOW_SECONDS


def _find_config_path() -> Path | None:
    """현재 작업 디렉토리 기준으로 상위로 올라가며 config.yaml 을 찾는다."""

    current = Path.cwd()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _parse_optional_decimal(section: dict[str, Any], key: str, path: Path) -> Decimal | None:
    raw = section.get(key)
    if raw is None:
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as exc:
        raise RuntimeError(f"invalid ledger.{key} in {path}: {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise RuntimeError(f"invalid ledger.{key} in {path}: {raw!r}")
    return value


def _parse_decimal(section: dict[str, Any], key: str, default: Decimal, path: Path) -> Decimal:
    value = _parse_optional_decimal(section, key, path)
    return default if value is None else value


def _parse_int(section: dict[str, Any], key: str, default: int, path: Path) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"invalid ledger.{key} in {path}: {raw!r}") from exc
    if value < 0:
        raise RuntimeError(f"invalid ledger.{key} in {path}: {raw!r}")
    return value


def load_ledger_settings(path: Path | None = None) -> LedgerSettings:
    if path is None:
        path = _find_config_path()
    if path is None:
        logger.info("%s not found, using built-in ledger defaults", DEFAULT_CONFIG_FILE_NAME)
        return LedgerSettings()

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    section = data.get("ledger") or {}
    if not isinstance(section, dict):
        raise RuntimeError(f"ledger section in {path} must be a mapping")

    reward_per_second = _parse_decimal(
        section, "reward_per_second", DEFAULT_REWARD_PER_SECOND, path
    )
    ceiling = _parse_decimal(
        section, "total_pool_ceiling", DEFAULT_TOTAL_POOL_CEILING, path
    )
    return LedgerSettings(
        reward_per_second=reward_per_second,
        decay_rate_per_second=_parse_optional_decimal(
            section, "decay_rate_per_second", path
        ),
        total_pool_ceiling=ceiling,
        decay_grace_seconds=_parse_int(
            section, "decay_grace_seconds", DEFAULT_DECAY_GRACE_SECONDS, path
        ),
        active_session_window_seconds=_parse_int(
            section,
            "active_session_window_seconds",
            DEFAULT_ACTIVE_SESSION_WINDOW_SECONDS,
            path,
        ),
    )


@lru_cache(maxsize=1)
def get_ledger_settings() -> LedgerSettings:
    return load_ledger_settings()
