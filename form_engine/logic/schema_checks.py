"""Publish-time definition validation.

Every structural problem is collected and raised as one SchemaError so the
agency author sees the complete list. Evaluation code assumes a definition
that passed these checks.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import logging

from pydantic import ValidationError as PydanticValidationError

from form_engine.logic.conditions import to_decimal
from form_engine.logic.errors import SchemaError
from form_engine.logic.validation import compile_pattern
from form_engine.logic.visibility import evaluation_order
from form_engine.models.definition import (
    ConditionRule,
    FormDefinition,
    FormField,
    Operator,
    StaticOptions,
)
from form_engine.models.field_type import ValueKind

logger = logging.getLogger(__name__)

_LIST_OPERATORS = {Operator.IN, Operator.NOT_IN}
_NUMERIC_OPERATORS = {Operator.GREATER_THAN, Operator.LESS_THAN}
_UNARY_OPERATORS = {Operator.IS_EMPTY, Operator.IS_NOT_EMPTY}


def parse_definition(payload: Mapping[str, Any]) -> FormDefinition:
    """Build a FormDefinition from JSON-like data, reporting problems as SchemaError."""
    try:
        return FormDefinition.model_validate(payload)
    except PydanticValidationError as exc:
        issues = [
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        ]
        raise SchemaError(issues) from exc


def _check_rule(owner: str, rule: ConditionRule, fields: Dict[str, FormField], issues: List[str]) -> None:
    for p in rule.predicates:
        target = fields.get(p.field)
        if target is None:
            issues.append(f"{owner}: condition references unknown field '{p.field}'")
            continue
        if owner == f"field '{p.field}'":
            issues.append(f"{owner}: condition references itself")
        if not target.field_type.holds_value:
            issues.append(f"{owner}: condition references display element '{p.field}'")
        op = p.operator
        if op in _UNARY_OPERATORS:
            if p.value is not None:
                issues.append(f"{owner}: operator '{op.value}' takes no value")
        elif op in _LIST_OPERATORS:
            if not isinstance(p.value, list) or not p.value:
                issues.append(f"{owner}: operator '{op.value}' requires a non-empty list value")
        elif op in _NUMERIC_OPERATORS:
            if to_decimal(p.value) is None:
                issues.append(f"{owner}: operator '{op.value}' requires a numeric value")
        elif p.value is None:
            issues.append(f"{owner}: operator '{op.value}' requires a value")


def _check_field(f: FormField, issues: List[str]) -> None:
    owner = f"field '{f.field_key}'"
    kind = f.field_type.kind
    if not f.field_key.strip():
        issues.append(f"field id '{f.field_id}': field_key must be non-empty")
    if kind is ValueKind.DISPLAY:
        if f.is_required:
            issues.append(f"{owner}: display element cannot be required")
        if f.options_source is not None:
            issues.append(f"{owner}: display element cannot have options")
        return
    if f.field_type.uses_options:
        if f.options_source is None:
            issues.append(f"{owner}: {f.field_type.value} field requires an options source")
        elif isinstance(f.options_source, StaticOptions):
            values = [o.value for o in f.options_source.options]
            if not values:
                issues.append(f"{owner}: static options list is empty")
            if len(values) != len(set(values)):
                issues.append(f"{owner}: static option values must be unique")
    elif f.options_source is not None:
        issues.append(f"{owner}: {f.field_type.value} field cannot have an options source")

    rules = f.validation_rules
    if rules.min is not None and rules.max is not None and rules.min > rules.max:
        issues.append(f"{owner}: min {rules.min} exceeds max {rules.max}")
    if rules.pattern is not None:
        if kind is not ValueKind.TEXT:
            issues.append(f"{owner}: pattern applies only to text fields")
        try:
            compile_pattern(rules.pattern)
        except SchemaError as exc:
            issues.extend(f"{owner}: {i}" for i in exc.issues)


def _check_previous(definition: FormDefinition, previous: FormDefinition, issues: List[str]) -> None:
    if previous.form_id != definition.form_id:
        issues.append("previous version belongs to a different form")
        return
    if definition.version <= previous.version:
        issues.append(
            f"version {definition.version} must be greater than published version {previous.version}"
        )
    keys_by_id = {f.field_id: f.field_key for _s, f in definition.iter_fields()}
    for _s, old in previous.iter_fields():
        new_key = keys_by_id.get(old.field_id)
        if new_key is not None and new_key != old.field_key:
            issues.append(
                f"field id '{old.field_id}': renaming published key '{old.field_key}' to '{new_key}' is not allowed"
            )


def collect_schema_issues(
    definition: FormDefinition, previous: Optional[FormDefinition] = None
) -> List[str]:
    issues: List[str] = []
    if not definition.slug.strip():
        issues.append("slug must be non-empty")
    if not definition.sections:
        issues.append("definition must contain at least one section")

    seen_sections: set[str] = set()
    seen_orders: set[int] = set()
    fields: Dict[str, FormField] = {}
    seen_ids: set[str] = set()
    for section in definition.sections:
        if section.key in seen_sections:
            issues.append(f"duplicate section key '{section.key}'")
        seen_sections.add(section.key)
        if section.display_order in seen_orders:
            issues.append(f"section '{section.key}': duplicate display_order {section.display_order}")
        seen_orders.add(section.display_order)
        for f in section.fields:
            if f.field_key in fields:
                issues.append(f"duplicate field_key '{f.field_key}'")
            fields[f.field_key] = f
            if f.field_id in seen_ids:
                issues.append(f"duplicate field_id '{f.field_id}'")
            seen_ids.add(f.field_id)
            _check_field(f, issues)

    reference_issues: List[str] = []
    for section in definition.sections:
        if section.condition_rule is not None:
            _check_rule(f"section '{section.key}'", section.condition_rule, fields, reference_issues)
        for f in section.fields:
            if f.condition_rule is not None:
                _check_rule(f"field '{f.field_key}'", f.condition_rule, fields, reference_issues)
    issues.extend(reference_issues)

    # Cycle detection needs resolvable references.
    if not reference_issues:
        try:
            evaluation_order(definition)
        except SchemaError as exc:
            issues.extend(exc.issues)

    if previous is not None:
        _check_previous(definition, previous, issues)
    return issues


def validate_definition(definition: FormDefinition, previous: Optional[FormDefinition] = None) -> None:
    """Raise SchemaError listing every problem; return None when publishable."""
    issues = collect_schema_issues(definition, previous)
    if issues:
        logger.info(
            "definition_invalid form_id=%s version=%s issues=%d",
            definition.form_id,
            definition.version,
            len(issues),
        )
        raise SchemaError(issues)


__all__ = ["parse_definition", "collect_schema_issues", "validate_definition"]
