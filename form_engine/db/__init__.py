"""Database bootstrap utilities for the form engine.

Exposes the shared engine and the SQL migrations runner. Repositories in
`form_engine/logic/` issue SQL text directly; no ORM models leak into routes.
"""

from form_engine.db.base import get_engine, reset_engine
from form_engine.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "apply_migrations",
]
