"""Threshold evaluation."""

from decimal import Decimal
from typing import Union

from ..models import AlertCondition, ConditionDirection

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a provider value to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def evaluate(condition: AlertCondition, current_value: Number) -> bool:
    """
    Check whether a value satisfies a threshold condition.

    Comparison is strict in both directions: a value equal to the threshold
    satisfies neither `above` nor `below`.
    """
    value = to_decimal(current_value)
    if not value.is_finite():
        return False

    if condition.direction == ConditionDirection.ABOVE:
        return value > condition.threshold
    return value < condition.threshold
