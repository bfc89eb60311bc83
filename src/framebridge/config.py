from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class BridgeConfig:
    request_timeout_seconds: Optional[float] = None
    log_level: int = logging.INFO
    retry_interval_seconds: float = 0.1


def load_bridge_config() -> BridgeConfig:
    load_dotenv()
    raw_timeout = os.environ.get("FRAMEBRIDGE_REQUEST_TIMEOUT", "").strip()
    raw_level = os.environ.get("FRAMEBRIDGE_LOG_LEVEL", "INFO").strip().upper()
    return BridgeConfig(
        request_timeout_seconds=_parse_timeout(raw_timeout),
        log_level=_parse_level(raw_level),
    )


def _parse_timeout(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ValueError("FRAMEBRIDGE_REQUEST_TIMEOUT must be a number of seconds") from exc
    if seconds <= 0:
        return None
    return seconds


def _parse_level(value: str) -> int:
    level = logging.getLevelName(value)
    if isinstance(level, int):
        return level
    return logging.INFO
