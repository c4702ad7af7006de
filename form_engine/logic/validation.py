"""Type-aware validation of a single field value.

Applies the required check, then a fixed sequence of rules. Every violated
rule is reported so the UI can show all problems at once. Hidden fields are
never blocking.
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import Any, List, Optional, Pattern, Sequence
import re

from pydantic import AnyUrl, EmailStr, TypeAdapter, ValidationError as PydanticValidationError

from form_engine.logic.conditions import canonicalize, is_empty, to_decimal
from form_engine.logic.errors import OptionsUnresolvedError, SchemaError
from form_engine.models.definition import FieldOption, FormField, StaticOptions
from form_engine.models.field_type import FieldType, ValueKind
from form_engine.models.validation import ErrorKind, ValidationError

_EMAIL = TypeAdapter(EmailStr)
_URL = TypeAdapter(AnyUrl)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise SchemaError(f"invalid pattern {pattern!r}: {exc}") from exc


def _err(kind: ErrorKind, f: FormField, message: str) -> ValidationError:
    return ValidationError(kind=kind, field_key=f.field_key, message=message)


def _fmt(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


def _type_ok(f: FormField, value: Any) -> bool:
    kind = f.field_type.kind
    if kind is ValueKind.TEXT:
        return isinstance(value, str)
    if kind is ValueKind.NUMBER:
        return to_decimal(value) is not None
    if kind is ValueKind.DATE:
        if not isinstance(value, str):
            return False
        parse = datetime.fromisoformat if f.field_type is FieldType.DATETIME else date.fromisoformat
        try:
            parse(value.strip())
        except ValueError:
            return False
        return True
    if kind is ValueKind.CHOICE:
        return isinstance(value, (str, int, float)) and not isinstance(value, bool)
    if kind is ValueKind.MULTI_CHOICE:
        return isinstance(value, list) and all(
            isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value
        )
    if kind is ValueKind.BOOLEAN:
        return isinstance(value, bool)
    return True


def _measure(f: FormField, value: Any) -> Optional[float]:
    """Return the quantity min/max apply to for this field's kind."""
    kind = f.field_type.kind
    if kind is ValueKind.TEXT:
        return float(len(value))
    if kind is ValueKind.NUMBER:
        return float(to_decimal(value))
    if kind is ValueKind.MULTI_CHOICE:
        return float(len(value))
    return None


def _range_errors(f: FormField, value: Any) -> List[ValidationError]:
    rules = f.validation_rules
    if rules.min is None and rules.max is None:
        return []
    measured = _measure(f, value)
    if measured is None:
        return []
    unit = {
        ValueKind.TEXT: " characters",
        ValueKind.MULTI_CHOICE: " selections",
    }.get(f.field_type.kind, "")
    errors: List[ValidationError] = []
    if rules.min is not None and measured < rules.min:
        errors.append(_err(ErrorKind.MIN, f, f"must be at least {_fmt(rules.min)}{unit}"))
    if rules.max is not None and measured > rules.max:
        errors.append(_err(ErrorKind.MAX, f, f"must be at most {_fmt(rules.max)}{unit}"))
    return errors


def _implicit_errors(f: FormField, value: str) -> List[ValidationError]:
    if f.field_type is FieldType.EMAIL:
        try:
            _EMAIL.validate_python(value.strip())
        except PydanticValidationError:
            return [_err(ErrorKind.EMAIL, f, "must be a valid email address")]
    if f.field_type is FieldType.URL:
        try:
            _URL.validate_python(value.strip())
        except PydanticValidationError:
            return [_err(ErrorKind.URL, f, "must be a valid URL")]
    return []


def _option_errors(
    f: FormField, value: Any, options: Optional[Sequence[FieldOption]]
) -> List[ValidationError]:
    if options is None:
        if isinstance(f.options_source, StaticOptions):
            options = f.options_source.options
        else:
            raise OptionsUnresolvedError(f.field_key, f.options_source)
    allowed = {canonicalize(o.value) for o in options}
    chosen = value if isinstance(value, list) else [value]
    bad = [str(v) for v in chosen if canonicalize(v) not in allowed]
    if not bad:
        return []
    return [_err(ErrorKind.OPTION, f, f"not an available option: {', '.join(bad)}")]


def validate_field(
    f: FormField,
    value: Any,
    is_visible: bool,
    options: Optional[Sequence[FieldOption]] = None,
) -> List[ValidationError]:
    """Validate one value against its field definition.

    - Not visible -> no errors.
    - Visible, required and empty -> a single `required` error.
    - Otherwise: type, min/max, pattern, implicit email/url, option membership.
    """
    if not is_visible or not f.field_type.holds_value:
        return []
    if is_empty(value):
        if f.is_required:
            return [_err(ErrorKind.REQUIRED, f, "this field is required")]
        return []

    if not _type_ok(f, value):
        return [_err(ErrorKind.TYPE, f, f"expected a {f.field_type.kind.value} value")]

    errors = _range_errors(f, value)
    kind = f.field_type.kind
    pattern = f.validation_rules.pattern
    if pattern and kind is ValueKind.TEXT:
        if compile_pattern(pattern).search(value) is None:
            message = f.validation_rules.pattern_message or "does not match the required format"
            errors.append(_err(ErrorKind.PATTERN, f, message))
    if kind is ValueKind.TEXT:
        errors.extend(_implicit_errors(f, value))
    if f.field_type.uses_options:
        errors.extend(_option_errors(f, value, options))
    return errors


__all__ = ["compile_pattern", "validate_field"]
