"""Authoring routes for versioned form definitions.

Drafts are saved whole; publishing validates the draft against the latest
published version of the same form and freezes it.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter
import logging

from form_engine.logic import authoring
from form_engine.logic.events import DEFINITION_ARCHIVED, DEFINITION_PUBLISHED, publish
from form_engine.logic.repository_definitions import (
    archive_definition,
    latest_published_version,
    load_definition,
    save_definition,
)
from form_engine.logic.schema_checks import collect_schema_issues, parse_definition

router = APIRouter()
logger = logging.getLogger(__name__)


def _body(definition, issues=None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"definition": definition.model_dump(mode="json")}
    if issues is not None:
        body["schema_issues"] = issues
    return body


@router.put("/forms/{form_id}/versions/{version}", summary="Save a draft form definition")
def put_definition(form_id: str, version: int, payload: Dict[str, Any]):
    """Create or replace a draft.

    The response lists current schema issues so authors can fix them before
    publishing; saving a draft never requires a valid schema.
    """
    definition = parse_definition(
        {**payload, "form_id": form_id, "version": version, "is_published": False, "published_at": None}
    )
    save_definition(definition)
    return _body(definition, collect_schema_issues(definition, latest_published_version(form_id)))


@router.get("/forms/{form_id}/versions/{version}", summary="Get a form definition version")
def get_definition(form_id: str, version: int):
    return _body(load_definition(form_id, version))


@router.post("/forms/{form_id}/versions/{version}/publish", summary="Publish a draft definition")
def publish_definition(form_id: str, version: int):
    draft = load_definition(form_id, version)
    published = authoring.publish(draft, previous=latest_published_version(form_id))
    save_definition(published)
    publish(DEFINITION_PUBLISHED, {"form_id": form_id, "version": version})
    return _body(published)


@router.post("/forms/{form_id}/versions/{version}/archive", summary="Soft-archive a definition version")
def archive_definition_route(form_id: str, version: int):
    archived = authoring.archive(load_definition(form_id, version))
    archive_definition(archived)
    publish(DEFINITION_ARCHIVED, {"form_id": form_id, "version": version})
    return _body(archived)


__all__ = ["router"]
