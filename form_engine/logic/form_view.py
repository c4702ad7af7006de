"""Form view assembly.

Builds the client-facing structure (visible sections, visible fields, current
values, per-field errors, progress) for both the GET view and post-save
refresh flows.
"""

from __future__ import annotations

from typing import List, Optional
import logging

from form_engine.logic.form_service import FormService
from form_engine.logic.options import resolve_field_options
from form_engine.logic.visibility import filter_visible_fields, filter_visible_sections
from form_engine.models.api import FieldView, FormView, ResponseState, SectionView
from form_engine.models.definition import FormDefinition
from form_engine.models.response import FormResponse

logger = logging.getLogger(__name__)


def response_state(
    service: FormService, definition: FormDefinition, response: Optional[FormResponse]
) -> ResponseState:
    resume = service.resume_section(definition, response)
    if response is None:
        return ResponseState(resume_section_index=resume)
    return ResponseState(
        response_id=response.response_id,
        revision=response.revision,
        status=response.status,
        # Derived on every read; the stored figure is never trusted.
        completion_percentage=service.compute_completion_percentage(definition, response),
        current_section_index=response.current_section_index,
        resume_section_index=resume,
        started_at=response.started_at,
        last_activity_at=response.last_activity_at,
        completed_at=response.completed_at,
    )


def assemble_form_view(
    service: FormService,
    definition: FormDefinition,
    response: Optional[FormResponse],
    entity_type: str,
    entity_id: str,
) -> FormView:
    state = service.visibility(definition, response)
    values = response.values if response is not None else {}
    sections: List[SectionView] = []
    for section in filter_visible_sections(definition, state):
        fields: List[FieldView] = []
        for f in filter_visible_fields(section, state):
            value = values.get(f.field_key)
            options = None
            if f.field_type.uses_options:
                options = resolve_field_options(definition, f, service.options_resolver)
            # Untouched fields show no errors until the client has written something.
            errors = service.validate_value(definition, f, value, True) if f.field_key in values else []
            fields.append(FieldView(field=f, value=value, options=options, errors=errors))
        sections.append(SectionView.from_section(section, fields))
    logger.debug(
        "form_view_assembled form_id=%s version=%s sections=%d",
        definition.form_id,
        definition.version,
        len(sections),
    )
    return FormView(
        form_id=definition.form_id,
        version=definition.version,
        entity_type=entity_type,
        entity_id=entity_id,
        sections=sections,
        response=response_state(service, definition, response),
    )


__all__ = ["response_state", "assemble_form_view"]
