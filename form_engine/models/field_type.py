"""Closed field type enumeration and the value strategy of each type.

Every FieldType maps to exactly one ValueKind; validation and condition
evaluation dispatch on the kind, never on raw type strings.
"""

from __future__ import annotations

from enum import Enum


class ValueKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    CHOICE = "choice"
    MULTI_CHOICE = "multi_choice"
    BOOLEAN = "boolean"
    OPAQUE = "opaque"
    DISPLAY = "display"


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    PASSWORD = "password"
    EMAIL = "email"
    URL = "url"
    TEL = "tel"
    NUMBER = "number"
    SLIDER = "slider"
    RATING = "rating"
    DATE = "date"
    DATETIME = "datetime"
    SELECT = "select"
    RADIO = "radio"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    FILE = "file"
    SIGNATURE = "signature"
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    DIVIDER = "divider"

    @property
    def kind(self) -> ValueKind:
        return _KIND_BY_TYPE[self]

    @property
    def holds_value(self) -> bool:
        """Display elements (headings, dividers) never carry a response value."""
        return self.kind is not ValueKind.DISPLAY

    @property
    def uses_options(self) -> bool:
        return self.kind in (ValueKind.CHOICE, ValueKind.MULTI_CHOICE)


_KIND_BY_TYPE = {
    FieldType.TEXT: ValueKind.TEXT,
    FieldType.TEXTAREA: ValueKind.TEXT,
    FieldType.PASSWORD: ValueKind.TEXT,
    FieldType.EMAIL: ValueKind.TEXT,
    FieldType.URL: ValueKind.TEXT,
    FieldType.TEL: ValueKind.TEXT,
    FieldType.SIGNATURE: ValueKind.TEXT,
    FieldType.NUMBER: ValueKind.NUMBER,
    FieldType.SLIDER: ValueKind.NUMBER,
    FieldType.RATING: ValueKind.NUMBER,
    FieldType.DATE: ValueKind.DATE,
    FieldType.DATETIME: ValueKind.DATE,
    FieldType.SELECT: ValueKind.CHOICE,
    FieldType.RADIO: ValueKind.CHOICE,
    FieldType.MULTISELECT: ValueKind.MULTI_CHOICE,
    FieldType.CHECKBOX: ValueKind.BOOLEAN,
    FieldType.FILE: ValueKind.OPAQUE,
    FieldType.HEADING: ValueKind.DISPLAY,
    FieldType.PARAGRAPH: ValueKind.DISPLAY,
    FieldType.DIVIDER: ValueKind.DISPLAY,
}


__all__ = ["FieldType", "ValueKind"]
