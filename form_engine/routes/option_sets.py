"""Shared option set routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException

from form_engine.logic.repository_option_sets import get_option_set, upsert_option_set
from form_engine.models.api import OptionSetPayload

router = APIRouter()


@router.put("/option-sets/{slug}", summary="Create or replace a shared option set")
def put_option_set(slug: str, payload: OptionSetPayload):
    upsert_option_set(slug, payload.options, agency_id=payload.agency_id, name=payload.name)
    return {"slug": slug, "agency_id": payload.agency_id, "options": [o.model_dump() for o in payload.options]}


@router.get("/option-sets/{slug}", summary="Resolve a shared option set for an agency")
def get_option_set_route(slug: str, agency_id: Optional[str] = None):
    options = get_option_set(slug, agency_id)
    if options is None:
        raise HTTPException(status_code=404, detail={"title": "Not Found", "code": "NOT_FOUND", "detail": f"option set {slug} not found"})
    return {"slug": slug, "agency_id": agency_id, "options": [o.model_dump() for o in options]}


__all__ = ["router"]
