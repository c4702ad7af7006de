"""Draft authoring operations on form definitions.

Drafts are edited by producing new snapshots. Any structural edit on a
published definition raises DefinitionPublishedError; authors branch a new
draft with `new_version` instead.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional
import logging
import uuid

from form_engine.logic.errors import DefinitionPublishedError, SchemaError
from form_engine.logic.schema_checks import validate_definition
from form_engine.models.definition import (
    ConditionRule,
    FormDefinition,
    FormField,
    Section,
)
from form_engine.models.template import FormTemplate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rebuild(definition: FormDefinition, **changes: Any) -> FormDefinition:
    # Re-run validators so section ordering holds after every edit.
    return FormDefinition(**{**dict(definition), **changes})


def _require_draft(definition: FormDefinition) -> None:
    if definition.is_published:
        raise DefinitionPublishedError(
            f"form {definition.form_id} version {definition.version} is published; create a new version"
        )


def _map_sections(definition: FormDefinition, fn: Callable[[Section], Section]) -> List[Section]:
    return [fn(s) for s in definition.sections]


def add_section(definition: FormDefinition, section: Section) -> FormDefinition:
    _require_draft(definition)
    return _rebuild(definition, sections=[*definition.sections, section])


def remove_section(definition: FormDefinition, section_key: str) -> FormDefinition:
    _require_draft(definition)
    if definition.find_section(section_key) is None:
        raise SchemaError(f"unknown section '{section_key}'")
    return _rebuild(definition, sections=[s for s in definition.sections if s.key != section_key])


def add_field(definition: FormDefinition, section_key: str, f: FormField) -> FormDefinition:
    _require_draft(definition)
    if definition.find_section(section_key) is None:
        raise SchemaError(f"unknown section '{section_key}'")

    def _append(s: Section) -> Section:
        if s.key != section_key:
            return s
        return s.model_copy(update={"fields": [*s.fields, f]})

    return _rebuild(definition, sections=_map_sections(definition, _append))


def replace_field(definition: FormDefinition, f: FormField) -> FormDefinition:
    """Swap the field carrying the same field_id for `f`."""
    _require_draft(definition)
    found = False

    def _swap(s: Section) -> Section:
        nonlocal found
        fields = []
        for existing in s.fields:
            if existing.field_id == f.field_id:
                found = True
                fields.append(f)
            else:
                fields.append(existing)
        return s.model_copy(update={"fields": fields})

    sections = _map_sections(definition, _swap)
    if not found:
        raise SchemaError(f"unknown field id '{f.field_id}'")
    return _rebuild(definition, sections=sections)


def remove_field(definition: FormDefinition, field_key: str) -> FormDefinition:
    _require_draft(definition)
    if definition.find_field(field_key) is None:
        raise SchemaError(f"unknown field '{field_key}'")
    return _rebuild(
        definition,
        sections=_map_sections(
            definition,
            lambda s: s.model_copy(update={"fields": [f for f in s.fields if f.field_key != field_key]}),
        ),
    )


def _rename_in_rule(rule: Optional[ConditionRule], old: str, new: str) -> Optional[ConditionRule]:
    if rule is None:
        return None
    predicates = [
        p.model_copy(update={"field": new}) if p.field == old else p
        for p in rule.predicates
    ]
    return rule.model_copy(update={"predicates": predicates})


def rename_field_key(definition: FormDefinition, old: str, new: str) -> FormDefinition:
    """Rename a field key in a draft, rewriting rule references to it.

    Keys are response storage keys, so renaming is refused once published.
    """
    _require_draft(definition)
    if definition.find_field(old) is None:
        raise SchemaError(f"unknown field '{old}'")
    if definition.find_field(new) is not None:
        raise SchemaError(f"field_key '{new}' already exists")

    def _section(s: Section) -> Section:
        fields = []
        for f in s.fields:
            updates: dict = {"condition_rule": _rename_in_rule(f.condition_rule, old, new)}
            if f.field_key == old:
                updates["field_key"] = new
            fields.append(f.model_copy(update=updates))
        return s.model_copy(
            update={"fields": fields, "condition_rule": _rename_in_rule(s.condition_rule, old, new)}
        )

    return _rebuild(definition, sections=_map_sections(definition, _section))


def publish(
    definition: FormDefinition,
    previous: Optional[FormDefinition] = None,
    now: Optional[datetime] = None,
) -> FormDefinition:
    """Validate and freeze a draft.

    `previous` is the latest published version of the same form, used to
    reject field key renames across versions.
    """
    _require_draft(definition)
    validate_definition(definition, previous)
    published = _rebuild(definition, is_published=True, published_at=now or _utcnow())
    logger.info(
        "definition_published form_id=%s version=%s sections=%d",
        published.form_id,
        published.version,
        len(published.sections),
    )
    return published


def new_version(definition: FormDefinition) -> FormDefinition:
    """Branch an editable draft from a published definition."""
    return _rebuild(
        definition,
        version=definition.version + 1,
        is_published=False,
        published_at=None,
        archived_at=None,
    )


def archive(definition: FormDefinition, now: Optional[datetime] = None) -> FormDefinition:
    return _rebuild(definition, archived_at=now or _utcnow())


def instantiate_from_template(
    template: FormTemplate,
    agency_id: str,
    slug: str,
    form_id: Optional[str] = None,
    name: Optional[str] = None,
) -> FormDefinition:
    """Copy a template's sections into a fresh, unpublished version 1 draft."""
    draft = FormDefinition(
        form_id=form_id or str(uuid.uuid4()),
        agency_id=agency_id,
        slug=slug,
        version=1,
        name=name or template.name,
        description=template.description,
        form_type=template.form_type,
        sections=list(template.sections),
    )
    logger.info(
        "definition_instantiated template=%s form_id=%s agency_id=%s",
        template.slug,
        draft.form_id,
        agency_id,
    )
    return draft


__all__ = [
    "add_section",
    "remove_section",
    "add_field",
    "replace_field",
    "remove_field",
    "rename_field_key",
    "publish",
    "new_version",
    "archive",
    "instantiate_from_template",
]
