"""Data models for ratewatch."""

from .alert import (
    QUOTE_CURRENCY,
    Alert,
    AlertCondition,
    AlertDraft,
    AlertKind,
    AlertStatus,
    ConditionDirection,
    utcnow,
)

__all__ = [
    "QUOTE_CURRENCY",
    "Alert",
    "AlertCondition",
    "AlertDraft",
    "AlertKind",
    "AlertStatus",
    "ConditionDirection",
    "utcnow",
]
