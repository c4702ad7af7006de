"""APIRouter registration for the form engine service."""

from __future__ import annotations

from fastapi import APIRouter

from form_engine.routes.definitions import router as definitions_router
from form_engine.routes.option_sets import router as option_sets_router
from form_engine.routes.responses import router as responses_router
from form_engine.routes.templates import router as templates_router

api_router = APIRouter()
api_router.include_router(definitions_router, tags=["Definitions"])
api_router.include_router(option_sets_router, tags=["OptionSets"])
api_router.include_router(responses_router, tags=["Responses"])
api_router.include_router(templates_router, tags=["Templates"])

__all__ = ["api_router"]
