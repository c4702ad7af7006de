"""Pydantic models for agency-authored form definitions.

A definition is an ordered collection of sections, each an ordered collection
of fields. Snapshots are frozen; authoring operations in
`form_engine.logic.authoring` return modified copies.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator

from form_engine.models.field_type import FieldType

Scalar = Union[bool, int, float, str]
FieldValue = Union[None, Scalar, List[Scalar]]


class FormType(str, Enum):
    CONSULTATION = "consultation"
    QUESTIONNAIRE = "questionnaire"
    CUSTOM = "custom"


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class RuleLogic(str, Enum):
    AND = "and"
    OR = "or"


class RuleAction(str, Enum):
    SHOW = "show"
    HIDE = "hide"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class FieldOption(_Frozen):
    value: str
    label: str


class StaticOptions(_Frozen):
    kind: Literal["static"] = "static"
    options: List[FieldOption]


class SharedOptions(_Frozen):
    """Reference to a named option set (system-wide or agency-owned)."""

    kind: Literal["shared"] = "shared"
    option_set: str


class ExternalOptions(_Frozen):
    """Options supplied by an outside provider; never evaluated by the core."""

    kind: Literal["external"] = "external"
    provider: str


OptionsSource = Annotated[
    Union[StaticOptions, SharedOptions, ExternalOptions],
    PydanticField(discriminator="kind"),
]


class ValidationRules(_Frozen):
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None


class Predicate(_Frozen):
    field: str
    operator: Operator
    value: FieldValue = None


class ConditionRule(_Frozen):
    logic: RuleLogic = RuleLogic.AND
    action: RuleAction = RuleAction.SHOW
    predicates: List[Predicate] = PydanticField(default_factory=list)

    def referenced_fields(self) -> List[str]:
        return [p.field for p in self.predicates]


class FormField(_Frozen):
    field_id: str
    field_key: str
    field_type: FieldType
    label: str = ""
    description: Optional[str] = None
    placeholder: Optional[str] = None
    is_required: bool = False
    validation_rules: ValidationRules = PydanticField(default_factory=ValidationRules)
    condition_rule: Optional[ConditionRule] = None
    options_source: Optional[OptionsSource] = None
    default_value: FieldValue = None


class Section(_Frozen):
    key: str
    title: str = ""
    description: Optional[str] = None
    display_order: int
    is_required: bool = False
    condition_rule: Optional[ConditionRule] = None
    fields: List[FormField] = PydanticField(default_factory=list)


class FormDefinition(_Frozen):
    form_id: str
    agency_id: str
    slug: str
    version: int = PydanticField(default=1, ge=1)
    name: str = ""
    description: Optional[str] = None
    form_type: FormType = FormType.CUSTOM
    is_published: bool = False
    published_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None
    sections: List[Section] = PydanticField(default_factory=list)

    @field_validator("sections")
    @classmethod
    def order_sections(cls, v: List[Section]) -> List[Section]:
        # Stable sort; display_order values need not be contiguous.
        return sorted(v, key=lambda s: s.display_order)

    def iter_fields(self) -> Iterator[tuple[Section, FormField]]:
        for section in self.sections:
            for f in section.fields:
                yield section, f

    def find_field(self, field_key: str) -> Optional[FormField]:
        for _section, f in self.iter_fields():
            if f.field_key == field_key:
                return f
        return None

    def find_section(self, key: str) -> Optional[Section]:
        for section in self.sections:
            if section.key == key:
                return section
        return None


__all__ = [
    "Scalar",
    "FieldValue",
    "FormType",
    "Operator",
    "RuleLogic",
    "RuleAction",
    "FieldOption",
    "StaticOptions",
    "SharedOptions",
    "ExternalOptions",
    "OptionsSource",
    "ValidationRules",
    "Predicate",
    "ConditionRule",
    "FormField",
    "Section",
    "FormDefinition",
]
