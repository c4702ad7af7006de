"""Response routes: form view, autosave and submit for one external entity.

A response is created lazily on the first value write. Autosave writes are
compare-and-swap on the response revision; without an If-Match header the
server retries against fresh state, with one the client's revision is
enforced.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
import logging

from form_engine.logic.errors import ConcurrencyConflict, DefinitionNotFound, ResponseNotFound, SchemaError
from form_engine.logic.events import RESPONSE_AUTOSAVED, RESPONSE_STARTED, RESPONSE_SUBMITTED, publish
from form_engine.logic.form_service import FormService
from form_engine.logic.form_view import assemble_form_view, response_state
from form_engine.logic.repository_definitions import latest_published_version, load_definition
from form_engine.logic.repository_option_sets import SqlOptionsResolver
from form_engine.logic.repository_responses import find_response_for_entity, save_response
from form_engine.models.api import (
    AutosaveResult,
    SubmitRequest,
    SubmitResult,
    ValueChangeRequest,
    VisibilityDeltaView,
)
from form_engine.models.definition import FormDefinition
from form_engine.models.response import FormResponse

router = APIRouter()
logger = logging.getLogger(__name__)

_SERVICE = FormService(options_resolver=SqlOptionsResolver())


def get_service() -> FormService:
    return _SERVICE


def _etag(revision: int) -> str:
    return f'"{revision}"'


def _parse_if_match(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    token = value.strip()
    if token.startswith("W/"):
        token = token[2:]
    token = token.strip('"')
    try:
        return int(token)
    except ValueError:
        raise HTTPException(
            status_code=409,
            detail={
                "title": "Conflict",
                "code": "PRE_IF_MATCH_INVALID_FORMAT",
                "detail": "If-Match must carry a response revision",
            },
        )


def _definition_for(form_id: str, version: Optional[int], existing: Optional[FormResponse]) -> FormDefinition:
    if existing is not None:
        return load_definition(existing.form_id, existing.form_version)
    if version is not None:
        return load_definition(form_id, version)
    latest = latest_published_version(form_id)
    if latest is None:
        raise DefinitionNotFound(form_id)
    return latest


def _writable_definition(definition: FormDefinition, existing: Optional[FormResponse]) -> FormDefinition:
    if not definition.is_published:
        raise SchemaError(f"form {definition.form_id} version {definition.version} is not published")
    if existing is None and definition.archived_at is not None:
        raise SchemaError(f"form {definition.form_id} version {definition.version} is archived")
    return definition


@router.get("/entities/{entity_type}/{entity_id}/form", summary="Render the visible form for an entity")
def get_form_view(
    entity_type: str,
    entity_id: str,
    form_id: str,
    response: Response,
    version: Optional[int] = None,
):
    """Viewing never creates a response."""
    existing = find_response_for_entity(entity_type, entity_id, form_id)
    definition = _definition_for(form_id, version, existing)
    view = assemble_form_view(get_service(), definition, existing, entity_type, entity_id)
    if existing is not None:
        response.headers["ETag"] = _etag(existing.revision)
    return view


@router.patch(
    "/entities/{entity_type}/{entity_id}/form/values",
    summary="Autosave one or more values",
    response_model=AutosaveResult,
)
def patch_values(
    entity_type: str,
    entity_id: str,
    payload: ValueChangeRequest,
    request: Request,
    response: Response,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
):
    service = get_service()
    expected = _parse_if_match(if_match)
    retries = request.app.state.config.autosave.max_conflict_retries if expected is None else 0

    attempt = 0
    while True:
        existing = find_response_for_entity(entity_type, entity_id, payload.form_id)
        definition = _definition_for(payload.form_id, payload.version, existing)
        if existing is None and not payload.values:
            # Nothing written yet: no response to create.
            return AutosaveResult(
                saved=False,
                response=response_state(service, definition, None),
                visibility_delta=VisibilityDeltaView(),
            )
        _writable_definition(definition, existing)
        base = existing or service.start_response(definition, entity_type, entity_id)
        if expected is not None and base.revision != expected:
            raise ConcurrencyConflict(expected, base.revision)

        updated, errors = service.apply_value_changes(definition, base, payload.values)
        if payload.current_section_index is not None:
            updated = service.set_current_section(definition, updated, payload.current_section_index)
        try:
            new_revision = save_response(updated, base.revision)
        except ConcurrencyConflict:
            if attempt >= retries:
                raise
            attempt += 1
            logger.info(
                "autosave_retry entity=%s:%s attempt=%d", entity_type, entity_id, attempt
            )
            continue
        break

    saved = updated.model_copy(update={"revision": new_revision})
    if base.revision == 0:
        publish(RESPONSE_STARTED, {"response_id": saved.response_id, "entity_type": entity_type, "entity_id": entity_id})
    publish(RESPONSE_AUTOSAVED, {"response_id": saved.response_id, "revision": new_revision, "keys": sorted(payload.values)})

    delta = service.visibility_delta(definition, existing, saved)
    response.headers["ETag"] = _etag(new_revision)
    return AutosaveResult(
        saved=True,
        response=response_state(service, definition, saved),
        errors=errors,
        visibility_delta=VisibilityDeltaView(**vars(delta)),
    )


@router.post(
    "/entities/{entity_type}/{entity_id}/form/submit",
    summary="Submit the entity's response",
    response_model=SubmitResult,
)
def submit_form(entity_type: str, entity_id: str, payload: SubmitRequest, response: Response):
    service = get_service()
    existing = find_response_for_entity(entity_type, entity_id, payload.form_id)
    if existing is None:
        raise ResponseNotFound(f"{entity_type}:{entity_id}:{payload.form_id}")
    definition = load_definition(existing.form_id, existing.form_version)

    submitted, errors = service.submit(definition, existing)
    if errors:
        result = SubmitResult(submitted=False, response=response_state(service, definition, existing), errors=errors)
        return JSONResponse(
            {**result.model_dump(mode="json"), "code": "SUBMISSION_INVALID"},
            status_code=422,
            headers={"ETag": _etag(existing.revision)},
        )
    if submitted is existing:
        response.headers["ETag"] = _etag(existing.revision)
        return SubmitResult(submitted=True, response=response_state(service, definition, existing))

    new_revision = save_response(submitted, existing.revision)
    saved = submitted.model_copy(update={"revision": new_revision})
    publish(RESPONSE_SUBMITTED, {"response_id": saved.response_id, "entity_type": entity_type, "entity_id": entity_id})
    response.headers["ETag"] = _etag(new_revision)
    return SubmitResult(submitted=True, response=response_state(service, definition, saved))


__all__ = ["router", "get_service"]
