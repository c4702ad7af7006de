"""Response lifecycle state machine.

not_started --(first value write)--> in_progress --(successful submit)--> completed

Each helper takes a response snapshot and returns a new one; nothing here
reads definitions or performs validation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
import uuid

from form_engine.logic.errors import ResponseCompletedError
from form_engine.models.definition import FormDefinition
from form_engine.models.response import FormResponse, ResponseStatus


def new_response(
    definition: FormDefinition,
    entity_type: str,
    entity_id: str,
    response_id: Optional[str] = None,
) -> FormResponse:
    """Return an unsaved, not_started response bound to a definition version."""
    return FormResponse(
        response_id=response_id or str(uuid.uuid4()),
        form_id=definition.form_id,
        form_version=definition.version,
        entity_type=entity_type,
        entity_id=entity_id,
    )


def ensure_writable(response: FormResponse) -> None:
    if response.status is ResponseStatus.COMPLETED:
        raise ResponseCompletedError(response.response_id)


def record_value(response: FormResponse, field_key: str, value: Any, now: datetime) -> FormResponse:
    """Store a value as given and advance not_started -> in_progress."""
    ensure_writable(response)
    values = dict(response.values)
    values[field_key] = value
    updates: dict = {"values": values, "last_activity_at": now}
    if response.status is ResponseStatus.NOT_STARTED:
        updates["status"] = ResponseStatus.IN_PROGRESS
        updates["started_at"] = response.started_at or now
    return response.model_copy(update=updates)


def with_completion(response: FormResponse, percentage: int) -> FormResponse:
    if response.completion_percentage == percentage:
        return response
    return response.model_copy(update={"completion_percentage": percentage})


def with_section_index(response: FormResponse, index: int, now: datetime) -> FormResponse:
    return response.model_copy(update={"current_section_index": index, "last_activity_at": now})


def mark_completed(response: FormResponse, now: datetime) -> FormResponse:
    return response.model_copy(
        update={
            "status": ResponseStatus.COMPLETED,
            "completed_at": now,
            "completion_percentage": 100,
            "last_activity_at": now,
            "started_at": response.started_at or now,
        }
    )


__all__ = [
    "new_response",
    "ensure_writable",
    "record_value",
    "with_completion",
    "with_section_index",
    "mark_completed",
]
