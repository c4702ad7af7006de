"""Pydantic model for system form templates.

A template is a named set of sections that agencies copy into a new draft
definition. Templates are never answered directly.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator

from form_engine.models.definition import FormType, Section


class FormTemplate(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: str
    name: str
    description: Optional[str] = None
    category: str
    form_type: FormType = FormType.CUSTOM
    is_featured: bool = False
    display_order: int = 0
    sections: List[Section] = PydanticField(default_factory=list)

    @field_validator("sections")
    @classmethod
    def order_sections(cls, v: List[Section]) -> List[Section]:
        return sorted(v, key=lambda s: s.display_order)


__all__ = ["FormTemplate"]
