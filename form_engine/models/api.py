"""Pydantic request and response bodies for the HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from form_engine.models.definition import FieldOption, FieldValue, FormField, Section
from form_engine.models.response import ResponseStatus
from form_engine.models.validation import ValidationError


class ValueChangeRequest(BaseModel):
    form_id: str
    # Only consulted when the response does not exist yet; defaults to the
    # latest published version.
    version: Optional[int] = None
    values: Dict[str, FieldValue] = Field(default_factory=dict)
    current_section_index: Optional[int] = None


class SubmitRequest(BaseModel):
    form_id: str


class OptionSetPayload(BaseModel):
    name: str = ""
    agency_id: Optional[str] = None
    options: List[FieldOption]


class TemplateInstantiateRequest(BaseModel):
    agency_id: str
    slug: str
    # A new form id is generated when omitted.
    form_id: Optional[str] = None
    name: Optional[str] = None


class FieldView(BaseModel):
    field: FormField
    value: FieldValue = None
    options: Optional[List[FieldOption]] = None
    errors: List[ValidationError] = Field(default_factory=list)


class SectionView(BaseModel):
    key: str
    title: str
    description: Optional[str] = None
    is_required: bool
    fields: List[FieldView]

    @classmethod
    def from_section(cls, section: Section, fields: List[FieldView]) -> "SectionView":
        return cls(
            key=section.key,
            title=section.title,
            description=section.description,
            is_required=section.is_required,
            fields=fields,
        )


class ResponseState(BaseModel):
    response_id: Optional[str] = None
    revision: int = 0
    status: ResponseStatus = ResponseStatus.NOT_STARTED
    completion_percentage: int = 0
    current_section_index: int = 0
    resume_section_index: int = 0
    started_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class FormView(BaseModel):
    form_id: str
    version: int
    entity_type: str
    entity_id: str
    sections: List[SectionView]
    response: ResponseState


class VisibilityDeltaView(BaseModel):
    now_visible_sections: List[str] = Field(default_factory=list)
    now_hidden_sections: List[str] = Field(default_factory=list)
    now_visible_fields: List[str] = Field(default_factory=list)
    now_hidden_fields: List[str] = Field(default_factory=list)
    retained_values: List[str] = Field(default_factory=list)


class AutosaveResult(BaseModel):
    saved: bool
    response: ResponseState
    errors: List[ValidationError] = Field(default_factory=list)
    visibility_delta: VisibilityDeltaView


class SubmitResult(BaseModel):
    submitted: bool
    response: ResponseState
    errors: List[ValidationError] = Field(default_factory=list)


__all__ = [
    "ValueChangeRequest",
    "SubmitRequest",
    "OptionSetPayload",
    "TemplateInstantiateRequest",
    "FieldView",
    "SectionView",
    "ResponseState",
    "FormView",
    "VisibilityDeltaView",
    "AutosaveResult",
    "SubmitResult",
]
