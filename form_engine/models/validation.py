"""Per-field validation error type.

These are user-correctable problems returned in lists, never raised.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    REQUIRED = "required"
    TYPE = "type"
    MIN = "min"
    MAX = "max"
    PATTERN = "pattern"
    EMAIL = "email"
    URL = "url"
    OPTION = "option"


class ValidationError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    field_key: str
    message: str = ""


__all__ = ["ErrorKind", "ValidationError"]
