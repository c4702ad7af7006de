"""Form template routes: browse system templates and start a draft from one."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter

from form_engine.logic import authoring
from form_engine.logic.repository_definitions import latest_published_version, save_definition
from form_engine.logic.repository_templates import get_template, list_templates
from form_engine.logic.schema_checks import collect_schema_issues
from form_engine.models.api import TemplateInstantiateRequest

router = APIRouter()


@router.get("/templates", summary="List form templates in picker order")
def list_templates_route(category: Optional[str] = None):
    return {"templates": [t.model_dump(mode="json") for t in list_templates(category)]}


@router.get("/templates/{slug}", summary="Get one form template")
def get_template_route(slug: str):
    return {"template": get_template(slug).model_dump(mode="json")}


@router.post("/templates/{slug}/instantiate", summary="Create a draft definition from a template")
def instantiate_template(slug: str, payload: TemplateInstantiateRequest):
    """The draft is saved unpublished; schema issues are listed as for any draft save."""
    draft = authoring.instantiate_from_template(
        get_template(slug),
        payload.agency_id,
        payload.slug,
        form_id=payload.form_id,
        name=payload.name,
    )
    save_definition(draft)
    return {
        "definition": draft.model_dump(mode="json"),
        "schema_issues": collect_schema_issues(draft, latest_published_version(draft.form_id)),
    }


__all__ = ["router"]
