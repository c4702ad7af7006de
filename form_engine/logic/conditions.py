"""Condition rule evaluation for section and field visibility.

Centralizes the canonical value normalization and the per-operator checks so
every caller (visibility pass, schema checks, tests) compares values the same
way. All functions are pure.

Coercion contract:
- Booleans -> "true" / "false"
- Numbers, and strings that parse as finite numbers -> exact decimal text
  without trailing zeros ("10", 10 and 10.0 all become "10"; "2.50" becomes
  "2.5"); magnitudes beyond 1e40 keep scientific form ("1E+5000")
- Other strings -> stripped
- Lists -> tuple of canonical elements, order preserved
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import AbstractSet, Any, Mapping, Optional
import logging

from form_engine.logic.errors import SchemaError
from form_engine.models.definition import ConditionRule, Operator, Predicate, RuleAction, RuleLogic

logger = logging.getLogger(__name__)

_ABSENT = object()

_PLAIN_EXPONENT_LIMIT = 40


def is_empty(value: Any) -> bool:
    """Absent, None, blank string and empty list are all empty."""
    if value is None or value is _ABSENT:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def to_decimal(value: Any) -> Optional[Decimal]:
    """Return a finite Decimal for numeric operands, else None.

    Booleans are not numbers for comparison purposes.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    try:
        d = Decimal(value.strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def _canonical_number(num: Decimal) -> str:
    """Exact decimal text without trailing zeros.

    Works on the digit tuple so no context rounding or integer expansion
    happens; magnitudes past `_PLAIN_EXPONENT_LIMIT` stay in scientific form.
    """
    if num.is_zero():
        return "0"
    sign, digits, exponent = num.as_tuple()
    trimmed = list(digits)
    while len(trimmed) > 1 and trimmed[-1] == 0:
        trimmed.pop()
        exponent += 1
    reduced = Decimal((sign, tuple(trimmed), exponent))
    if abs(reduced.adjusted()) <= _PLAIN_EXPONENT_LIMIT:
        return format(reduced, "f")
    return str(reduced)


def canonicalize(value: Any) -> Any:
    """Return the canonical comparison form of a stored or rule value."""
    if value is None or value is _ABSENT:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return tuple(canonicalize(v) for v in value)
    num = to_decimal(value)
    if num is not None:
        return _canonical_number(num)
    s = str(value).strip()
    low = s.lower()
    return low if low in {"true", "false"} else s


def _as_members(value: Any) -> tuple:
    canon = canonicalize(value)
    if canon is None:
        return ()
    if isinstance(canon, tuple):
        return canon
    return (canon,)


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None or actual is _ABSENT:
        return False
    if isinstance(actual, (list, tuple)):
        return canonicalize(expected) in _as_members(actual)
    if isinstance(actual, str):
        if expected is None:
            return False
        return str(expected) in actual
    return False


def _in(actual: Any, expected: Any) -> bool:
    if is_empty(actual):
        return False
    targets = set(_as_members(expected))
    if isinstance(actual, (list, tuple)):
        return any(m in targets for m in _as_members(actual))
    return canonicalize(actual) in targets


def _compare(actual: Any, expected: Any, greater: bool) -> bool:
    a = to_decimal(actual)
    b = to_decimal(expected)
    if a is None or b is None:
        return False
    return a > b if greater else a < b


def evaluate_predicate(
    predicate: Predicate,
    values: Mapping[str, Any],
    hidden: AbstractSet[str] = frozenset(),
) -> bool:
    """Evaluate one predicate against the current values.

    A hidden referenced field counts as absent for emptiness checks only; its
    stored value still drives every other operator.
    """
    actual = values.get(predicate.field, _ABSENT)
    op = predicate.operator
    expected = predicate.value

    if op is Operator.IS_EMPTY or op is Operator.IS_NOT_EMPTY:
        empty = predicate.field in hidden or is_empty(actual)
        return empty if op is Operator.IS_EMPTY else not empty
    if op is Operator.EQUALS:
        return canonicalize(actual) == canonicalize(expected)
    if op is Operator.NOT_EQUALS:
        return canonicalize(actual) != canonicalize(expected)
    if op is Operator.CONTAINS:
        return _contains(actual, expected)
    if op is Operator.NOT_CONTAINS:
        return not _contains(actual, expected)
    if op is Operator.IN:
        return _in(actual, expected)
    if op is Operator.NOT_IN:
        return not _in(actual, expected)
    if op is Operator.GREATER_THAN:
        return _compare(actual, expected, greater=True)
    if op is Operator.LESS_THAN:
        return _compare(actual, expected, greater=False)
    # Published definitions only carry known operators.
    raise SchemaError(f"unknown operator {op!r} on field {predicate.field}")


def is_visible(
    rule: Optional[ConditionRule],
    values: Mapping[str, Any],
    hidden: AbstractSet[str] = frozenset(),
) -> bool:
    """Return True when the element guarded by `rule` should be shown.

    - No rule, or a rule without predicates, is visible.
    - `and` requires every predicate, `or` requires any.
    - `hide` actions invert the combined result.
    """
    if rule is None or not rule.predicates:
        return True
    results = (evaluate_predicate(p, values, hidden) for p in rule.predicates)
    if rule.logic is RuleLogic.AND:
        matched = all(results)
    elif rule.logic is RuleLogic.OR:
        matched = any(results)
    else:
        raise SchemaError(f"unknown rule logic {rule.logic!r}")
    return not matched if rule.action is RuleAction.HIDE else matched


__all__ = [
    "is_empty",
    "to_decimal",
    "canonicalize",
    "evaluate_predicate",
    "is_visible",
]
