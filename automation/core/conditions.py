"""Conjunctive evaluation of workflow conditions against an execution context."""

import math
from typing import Any, Iterable, Mapping, Optional, Union

from ..models.core import Condition, ConditionOperator
from .interpolation import MISSING, resolve_path, to_text
from .logging import get_logger

logger = get_logger(__name__)


class _NotComparable(Exception):
    """A comparison that cannot be performed on the given operands."""


def _as_number(value: Any) -> Union[int, float]:
    # ints are compared exactly; float() overflows past ~1e308.
    if isinstance(value, bool):
        raise _NotComparable(f"boolean {value!r} is not numeric")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except (ValueError, OverflowError):
            raise _NotComparable(f"{value[:50]!r} is not numeric")
    else:
        raise _NotComparable(f"{type(value).__name__} is not numeric")
    if math.isnan(number):
        raise _NotComparable("NaN is not comparable")
    return number


def _strict_equals(left: Any, right: Any) -> bool:
    # bool is a subclass of int; True must not equal 1.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _compare(operator: str, actual: Any, expected: Any) -> bool:
    if operator == ConditionOperator.EQUALS.value:
        return _strict_equals(actual, expected)
    if operator == ConditionOperator.NOT_EQUALS.value:
        return not _strict_equals(actual, expected)
    if operator == ConditionOperator.CONTAINS.value:
        if expected is None:
            raise _NotComparable("contains requires an expected value")
        return to_text(expected) in to_text(actual)
    if operator == ConditionOperator.GREATER_THAN.value:
        return _as_number(actual) > _as_number(expected)
    if operator == ConditionOperator.LESS_THAN.value:
        return _as_number(actual) < _as_number(expected)
    raise _NotComparable(f"unsupported operator '{operator}'")


def evaluate_condition(condition: Union[Condition, Mapping[str, Any]], context: Any) -> bool:
    """Evaluate a single condition; any failure counts as not met."""
    if not isinstance(condition, Condition):
        try:
            condition = Condition.model_validate(condition)
        except Exception as e:
            logger.warning(f"Malformed condition ({type(e).__name__}) - failing closed")
            return False

    actual = resolve_path(condition.field, context)
    if actual is MISSING:
        logger.debug(f"Condition field '{condition.field}' not present in context")
        return False

    try:
        return _compare(condition.operator, actual, condition.value)
    except _NotComparable as e:
        logger.warning(
            f"Condition on '{condition.field}' with operator '{condition.operator}' "
            f"cannot be evaluated: {e} - failing closed"
        )
        return False
    except Exception as e:
        logger.warning(
            f"Condition on '{condition.field}' with operator '{condition.operator}' "
            f"raised {type(e).__name__} - failing closed"
        )
        return False


def evaluate_conditions(
    conditions: Optional[Iterable[Union[Condition, Mapping[str, Any]]]],
    context: Any
) -> bool:
    """
    Return True when every condition holds.

    An empty (or absent) list is vacuously true. Evaluation stops at the first
    condition that does not hold.
    """
    for condition in conditions or []:
        if not evaluate_condition(condition, context):
            return False
    return True
