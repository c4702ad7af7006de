"""Response snapshot model.

A FormResponse belongs to one definition version and one opaque external
entity. `values` is the flat key -> scalar-or-list mapping read directly by
downstream consumers, so its persisted shape must stay a plain JSON object.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from form_engine.models.definition import FieldValue


class ResponseStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FormResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    response_id: str
    form_id: str
    form_version: int
    entity_type: str
    entity_id: str
    values: Dict[str, FieldValue] = Field(default_factory=dict)
    current_section_index: int = 0
    completion_percentage: int = Field(default=0, ge=0, le=100)
    status: ResponseStatus = ResponseStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # Storage-managed; 0 means never persisted.
    revision: int = 0


__all__ = ["ResponseStatus", "FormResponse"]
