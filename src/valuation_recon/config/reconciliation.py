"""Reconciliation workflow settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import optional_float

DEFAULT_SESSION_TTL_HOURS = 24.0
DEFAULT_REGION = 1


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    session_ttl: timedelta = timedelta(hours=DEFAULT_SESSION_TTL_HOURS)
    default_region: int = DEFAULT_REGION


def get_reconciliation_config() -> ReconciliationConfig:
    hours = optional_float("RECON_SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS)
    return ReconciliationConfig(session_ttl=timedelta(hours=hours))
