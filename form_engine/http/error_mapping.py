"""Central mapping from domain errors to problem+json codes and statuses.

Handlers import from here instead of hardcoding strings or numbers. Lookup
walks the exception's MRO so subclasses inherit their parent's mapping unless
listed explicitly.
"""

from __future__ import annotations

from typing import Dict, Tuple, Type

from form_engine.logic.errors import (
    ConcurrencyConflict,
    DefinitionNotFound,
    DefinitionPublishedError,
    FormEngineError,
    OptionsUnresolvedError,
    ResponseCompletedError,
    ResponseNotFound,
    SchemaError,
    TemplateNotFound,
    UnknownFieldError,
)

ERROR_MAP: Dict[Type[FormEngineError], Tuple[str, int, str]] = {
    DefinitionPublishedError: ("DEFINITION_PUBLISHED", 409, "Definition Published"),
    SchemaError: ("SCHEMA_INVALID", 422, "Invalid Form Definition"),
    UnknownFieldError: ("UNKNOWN_FIELD", 409, "Unknown Field"),
    ConcurrencyConflict: ("REVISION_CONFLICT", 409, "Conflict"),
    OptionsUnresolvedError: ("OPTIONS_UNRESOLVED", 422, "Options Unresolved"),
    ResponseCompletedError: ("RESPONSE_COMPLETED", 409, "Response Completed"),
    DefinitionNotFound: ("NOT_FOUND", 404, "Not Found"),
    ResponseNotFound: ("NOT_FOUND", 404, "Not Found"),
    TemplateNotFound: ("NOT_FOUND", 404, "Not Found"),
}

FALLBACK = ("FORM_ENGINE_ERROR", 500, "Internal Server Error")


def lookup(exc: FormEngineError) -> Tuple[str, int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_MAP:
            return ERROR_MAP[cls]
    return FALLBACK


__all__ = ["ERROR_MAP", "FALLBACK", "lookup"]
