"""Dynamic form definition and response engine.

The pure core (definitions, condition evaluation, validation, response
tracking) lives in `form_engine/models/` and `form_engine/logic/`. The
FastAPI application factory wires the SQL storage adapter and the HTTP
surface around it.
"""

from __future__ import annotations

from form_engine.main import create_app

__all__ = ["create_app"]
