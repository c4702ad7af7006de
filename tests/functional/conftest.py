"""Functional test bootstrap.

Points the engine at a shared in-memory SQLite database before any
repository runs, applies the SQL migrations once per session and offers a
`clean_db` fixture that removes rows written by a test. Pure-core tests do
not touch the database.
"""

from __future__ import annotations

import os
import pathlib

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]

os.environ["TEST_DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    from form_engine.db.base import get_engine, reset_engine
    from form_engine.db.migrations_runner import apply_migrations

    reset_engine()
    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, migrations_dir=_ROOT / "migrations", use_journal=False)
    yield engine
    reset_engine()


@pytest.fixture
def clean_db(functional_sqlite_bootstrap):
    """Remove rows written by a test; seeded system rows stay."""
    from sqlalchemy import text

    yield functional_sqlite_bootstrap
    with functional_sqlite_bootstrap.begin() as conn:
        conn.execute(text("DELETE FROM form_responses"))
        conn.execute(text("DELETE FROM form_definitions"))
        conn.execute(text("DELETE FROM field_option_sets WHERE option_set_id NOT LIKE 'system-%'"))
        conn.execute(text("DELETE FROM form_templates WHERE template_id NOT LIKE 'system-%'"))


@pytest.fixture
def budget_form():
    """Unpublished two-section form: section B shows only for a high budget."""
    from form_engine.models.definition import FormDefinition

    return FormDefinition.model_validate(
        {
            "form_id": "form-budget",
            "agency_id": "agency-1",
            "slug": "discovery",
            "version": 1,
            "name": "Discovery",
            "form_type": "consultation",
            "sections": [
                {
                    "key": "about",
                    "title": "About the project",
                    "display_order": 10,
                    "fields": [
                        {
                            "field_id": "f-budget",
                            "field_key": "budget",
                            "field_type": "select",
                            "is_required": True,
                            "options_source": {
                                "kind": "static",
                                "options": [
                                    {"value": "low", "label": "Low"},
                                    {"value": "medium", "label": "Medium"},
                                    {"value": "high", "label": "High"},
                                ],
                            },
                        },
                        {"field_id": "f-notes", "field_key": "notes", "field_type": "textarea"},
                    ],
                },
                {
                    "key": "premium",
                    "title": "Premium scope",
                    "display_order": 20,
                    "condition_rule": {
                        "logic": "and",
                        "predicates": [{"field": "budget", "operator": "equals", "value": "high"}],
                    },
                    "fields": [
                        {
                            "field_id": "f-features",
                            "field_key": "premium_features",
                            "field_type": "text",
                            "is_required": True,
                        }
                    ],
                },
            ],
        }
    )


@pytest.fixture
def published_budget_form(budget_form):
    from form_engine.logic.authoring import publish

    return publish(budget_form)
