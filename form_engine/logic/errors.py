"""Exception taxonomy for the form engine.

Schema problems are fatal and surface to the agency author at publish time.
Per-field validation problems are never raised; see
`form_engine.models.validation.ValidationError`.
"""

from __future__ import annotations

from typing import Iterable, List


class FormEngineError(Exception):
    """Base class for all form engine errors."""

    code = "FORM_ENGINE_ERROR"


class SchemaError(FormEngineError):
    """A form definition is malformed or internally inconsistent."""

    code = "SCHEMA_INVALID"

    def __init__(self, issues: Iterable[str] | str):
        if isinstance(issues, str):
            issues = [issues]
        self.issues: List[str] = list(issues)
        super().__init__("; ".join(self.issues) or "invalid form definition")


class DefinitionPublishedError(SchemaError):
    """Structural edit attempted on a published definition."""

    code = "DEFINITION_PUBLISHED"


class UnknownFieldError(FormEngineError):
    """A mutation referenced a field_key absent from the definition.

    Indicates a stale client schema; the caller should refetch the definition
    and retry.
    """

    code = "UNKNOWN_FIELD"

    def __init__(self, field_key: str):
        self.field_key = field_key
        super().__init__(f"unknown field_key: {field_key}")


class ConcurrencyConflict(FormEngineError):
    """Compare-and-swap on a response revision failed."""

    code = "REVISION_CONFLICT"

    def __init__(self, expected: int | None, actual: int | None):
        self.expected = expected
        self.actual = actual
        super().__init__(f"revision conflict expected={expected} actual={actual}")


class OptionsUnresolvedError(FormEngineError):
    code = "OPTIONS_UNRESOLVED"

    def __init__(self, field_key: str, source: object):
        self.field_key = field_key
        self.source = source
        super().__init__(f"options source for {field_key} could not be resolved: {source!r}")


class ResponseCompletedError(FormEngineError):
    """A value write targeted a response that is already completed."""

    code = "RESPONSE_COMPLETED"

    def __init__(self, response_id: str):
        self.response_id = response_id
        super().__init__(f"response {response_id} is completed and cannot be edited")


class DefinitionNotFound(FormEngineError):
    code = "NOT_FOUND"

    def __init__(self, form_id: str, version: int | None = None):
        self.form_id = form_id
        self.version = version
        super().__init__(f"form definition not found form_id={form_id} version={version}")


class ResponseNotFound(FormEngineError):
    code = "NOT_FOUND"

    def __init__(self, response_id: str):
        self.response_id = response_id
        super().__init__(f"form response not found response_id={response_id}")


class TemplateNotFound(FormEngineError):
    code = "NOT_FOUND"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"form template not found slug={slug}")


__all__ = [
    "FormEngineError",
    "SchemaError",
    "DefinitionPublishedError",
    "UnknownFieldError",
    "ConcurrencyConflict",
    "OptionsUnresolvedError",
    "ResponseCompletedError",
    "DefinitionNotFound",
    "ResponseNotFound",
    "TemplateNotFound",
]
