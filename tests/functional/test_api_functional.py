"""Functional tests for the HTTP surface using FastAPI's TestClient.

Walks a definition through draft, publish and archive, then drives one
entity's response through autosave, conflict handling and submission,
checking problem+json codes and ETag revisions along the way.
"""

from __future__ import annotations

import os
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from form_engine.config import AppConfig, AutosaveConfig, DatabaseConfig
from form_engine.logic.events import RESPONSE_STARTED, RESPONSE_SUBMITTED, get_buffered_events
from form_engine.logic.repository_responses import find_response_for_entity
from form_engine.main import create_app
from form_engine.routes import responses as responses_routes

pytestmark = pytest.mark.usefixtures("clean_db")

BASE = "/api/v1"
VALUES_URL = f"{BASE}/entities/client/c-1/form/values"
SUBMIT_URL = f"{BASE}/entities/client/c-1/form/submit"


@pytest.fixture
def client() -> TestClient:
    config = AppConfig(
        database=DatabaseConfig(dsn=os.environ["TEST_DATABASE_URL"]),
        autosave=AutosaveConfig(max_conflict_retries=1),
    )
    get_buffered_events()
    return TestClient(create_app(config))


def _draft(budget_form) -> Dict[str, Any]:
    return budget_form.model_dump(mode="json", exclude={"form_id", "version", "is_published", "published_at"})


@pytest.fixture
def published(client, budget_form) -> None:
    assert client.put(f"{BASE}/forms/form-budget/versions/1", json=_draft(budget_form)).status_code == 200
    assert client.post(f"{BASE}/forms/form-budget/versions/1/publish").status_code == 200


# -----------------------------
# Definitions
# -----------------------------

def test_draft_save_reports_schema_issues_without_failing(client, budget_form):
    draft = _draft(budget_form)
    draft["sections"][0]["fields"][1]["field_key"] = "budget"
    resp = client.put(f"{BASE}/forms/form-budget/versions/1", json=draft)
    assert resp.status_code == 200
    assert "duplicate field_key 'budget'" in resp.json()["schema_issues"]

    publish = client.post(f"{BASE}/forms/form-budget/versions/1/publish")
    assert publish.status_code == 422
    assert publish.headers["content-type"].startswith("application/problem+json")
    body = publish.json()
    assert body["code"] == "SCHEMA_INVALID"
    assert "duplicate field_key 'budget'" in body["issues"]


def test_malformed_draft_is_rejected(client, budget_form):
    draft = _draft(budget_form)
    draft["sections"][0]["fields"][0]["field_type"] = "hologram"
    resp = client.put(f"{BASE}/forms/form-budget/versions/1", json=draft)
    assert resp.status_code == 422
    assert resp.json()["code"] == "SCHEMA_INVALID"


def test_published_definition_cannot_be_replaced(client, budget_form, published):
    resp = client.put(f"{BASE}/forms/form-budget/versions/1", json=_draft(budget_form))
    assert resp.status_code == 409
    assert resp.json()["code"] == "DEFINITION_PUBLISHED"

    got = client.get(f"{BASE}/forms/form-budget/versions/1")
    assert got.status_code == 200
    assert got.json()["definition"]["is_published"] is True


def test_unknown_definition_is_not_found(client):
    resp = client.get(f"{BASE}/forms/form-missing/versions/1")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


# -----------------------------
# Viewing and autosave
# -----------------------------

def test_viewing_does_not_create_a_response(client, published):
    resp = client.get(f"{BASE}/entities/client/c-1/form", params={"form_id": "form-budget"})
    assert resp.status_code == 200
    body = resp.json()
    assert [s["key"] for s in body["sections"]] == ["about"]
    assert body["response"]["response_id"] is None
    assert "ETag" not in resp.headers

    empty = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {}})
    assert empty.status_code == 200
    assert empty.json()["saved"] is False


def test_autosave_creates_then_updates_the_response(client, published):
    first = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "high"}})
    assert first.status_code == 200
    assert first.headers["ETag"] == '"1"'
    body = first.json()
    assert body["saved"] is True
    assert body["response"]["status"] == "in_progress"
    assert body["response"]["completion_percentage"] == 50
    assert body["visibility_delta"]["now_visible_sections"] == ["premium"]

    second = client.patch(
        VALUES_URL,
        json={"form_id": "form-budget", "values": {"premium_features": "cms"}},
        headers={"If-Match": '"1"'},
    )
    assert second.status_code == 200
    assert second.headers["ETag"] == '"2"'
    assert second.json()["response"]["completion_percentage"] == 100

    view = client.get(f"{BASE}/entities/client/c-1/form", params={"form_id": "form-budget"})
    assert view.headers["ETag"] == '"2"'
    assert [s["key"] for s in view.json()["sections"]] == ["about", "premium"]

    events = [e["type"] for e in get_buffered_events()]
    assert events.count(RESPONSE_STARTED) == 1


def test_invalid_value_is_saved_and_reported(client, published):
    resp = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "enormous"}})
    assert resp.status_code == 200
    body = resp.json()
    assert body["saved"] is True
    assert [e["kind"] for e in body["errors"]] == ["option"]


def test_stale_if_match_is_a_conflict(client, published):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"notes": "hi"}})
    resp = client.patch(
        VALUES_URL,
        json={"form_id": "form-budget", "values": {"notes": "stale tab"}},
        headers={"If-Match": '"1"'},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "REVISION_CONFLICT"
    assert body["current_revision"] == 2
    assert body["retryable"] is True


def _racing_save(monkeypatch, races: int) -> list:
    """Make the next `races` saves lose to a concurrent write of `notes`."""
    real_save = responses_routes.save_response
    calls = []

    def save(response, expected_revision):
        calls.append(expected_revision)
        if len(calls) <= races:
            current = find_response_for_entity("client", "c-1", "form-budget")
            other_tab = current.model_copy(update={"values": {**current.values, "notes": f"tab {len(calls)}"}})
            real_save(other_tab, current.revision)
        return real_save(response, expected_revision)

    monkeypatch.setattr(responses_routes, "save_response", save)
    return calls


def test_autosave_retries_against_fresh_state_after_a_race(client, published, monkeypatch):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    calls = _racing_save(monkeypatch, races=1)

    resp = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "medium"}})
    assert resp.status_code == 200
    assert calls == [1, 2]
    assert resp.headers["ETag"] == '"3"'

    stored = find_response_for_entity("client", "c-1", "form-budget")
    assert stored.values == {"budget": "medium", "notes": "tab 1"}
    assert stored.revision == 3


def test_autosave_conflict_after_retries_is_reported(client, published, monkeypatch):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    calls = _racing_save(monkeypatch, races=5)

    resp = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "medium"}})
    assert resp.status_code == 409
    assert resp.json()["code"] == "REVISION_CONFLICT"
    assert len(calls) == 2
    assert find_response_for_entity("client", "c-1", "form-budget").values["budget"] == "low"


def test_malformed_if_match_is_rejected(client, published):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    resp = client.patch(
        VALUES_URL,
        json={"form_id": "form-budget", "values": {"notes": "x"}},
        headers={"If-Match": "not-a-revision"},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "PRE_IF_MATCH_INVALID_FORMAT"


def test_unknown_field_key_is_rejected(client, published):
    resp = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget_range": "low"}})
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "UNKNOWN_FIELD"
    assert body["field_key"] == "budget_range"


def test_unpublished_definition_rejects_writes(client, budget_form):
    client.put(f"{BASE}/forms/form-budget/versions/1", json=_draft(budget_form))
    resp = client.patch(
        VALUES_URL, json={"form_id": "form-budget", "version": 1, "values": {"budget": "low"}}
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "SCHEMA_INVALID"


def test_archived_definition_accepts_no_new_responses(client, published):
    assert client.post(f"{BASE}/forms/form-budget/versions/1/archive").status_code == 200
    resp = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    assert resp.status_code == 422


# -----------------------------
# Submission
# -----------------------------

def test_submit_with_missing_required_value_is_rejected(client, published):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"notes": "just notes"}})
    resp = client.post(SUBMIT_URL, json={"form_id": "form-budget"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "SUBMISSION_INVALID"
    assert body["submitted"] is False
    assert [(e["field_key"], e["kind"]) for e in body["errors"]] == [("budget", "required")]
    assert body["response"]["status"] == "in_progress"


def test_submit_completes_and_freezes_the_response(client, published):
    client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"budget": "low"}})
    resp = client.post(SUBMIT_URL, json={"form_id": "form-budget"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["submitted"] is True
    assert body["response"]["status"] == "completed"
    assert body["response"]["completed_at"] is not None

    again = client.post(SUBMIT_URL, json={"form_id": "form-budget"})
    assert again.status_code == 200
    assert again.json()["response"]["revision"] == body["response"]["revision"]

    late = client.patch(VALUES_URL, json={"form_id": "form-budget", "values": {"notes": "late"}})
    assert late.status_code == 409
    assert late.json()["code"] == "RESPONSE_COMPLETED"

    events = [e["type"] for e in get_buffered_events()]
    assert events.count(RESPONSE_SUBMITTED) == 1


def test_submit_without_response_is_not_found(client, published):
    resp = client.post(SUBMIT_URL, json={"form_id": "form-budget"})
    assert resp.status_code == 404


# -----------------------------
# Templates
# -----------------------------

def test_template_instantiates_a_publishable_draft(client):
    listed = client.get(f"{BASE}/templates", params={"category": "intake"})
    assert listed.status_code == 200
    assert "quick-quote" in [t["slug"] for t in listed.json()["templates"]]

    resp = client.post(
        f"{BASE}/templates/quick-quote/instantiate",
        json={"agency_id": "agency-1", "slug": "quote", "form_id": "form-quote"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["schema_issues"] == []
    assert body["definition"]["is_published"] is False
    assert body["definition"]["name"] == "Quick Quote"

    assert client.post(f"{BASE}/forms/form-quote/versions/1/publish").status_code == 200
    saved = client.patch(
        f"{BASE}/entities/client/c-9/form/values",
        json={"form_id": "form-quote", "values": {"name": "Ada", "budget": "high"}},
    )
    assert saved.status_code == 200
    assert saved.json()["errors"] == []


def test_unknown_template_is_not_found(client):
    resp = client.get(f"{BASE}/templates/no-such-template")
    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"
    assert client.post(
        f"{BASE}/templates/no-such-template/instantiate", json={"agency_id": "agency-1", "slug": "x"}
    ).status_code == 404


# -----------------------------
# Option sets and health
# -----------------------------

def test_option_set_routes_round_trip(client):
    put = client.put(
        f"{BASE}/option-sets/budget-ranges",
        json={"agency_id": "agency-1", "name": "Budgets", "options": [{"value": "tiny", "label": "Tiny"}]},
    )
    assert put.status_code == 200
    got = client.get(f"{BASE}/option-sets/budget-ranges", params={"agency_id": "agency-1"})
    assert [o["value"] for o in got.json()["options"]] == ["tiny"]
    assert client.get(f"{BASE}/option-sets/nothing-here").status_code == 404


def test_health_reports_database(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "db": True}
