"""Form definition data access helpers.

Each version is stored as one row holding the full definition document as
JSON; identity columns are duplicated for lookup and uniqueness.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy import text as sql_text

from form_engine.db.base import get_engine
from form_engine.logic.errors import DefinitionNotFound, DefinitionPublishedError
from form_engine.models.definition import FormDefinition

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _now_iso() -> str:
    return _iso(datetime.now(timezone.utc)) or ""


def _row_to_definition(row) -> FormDefinition:
    return FormDefinition.model_validate_json(row[0])


def load_definition(form_id: str, version: int) -> FormDefinition:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text("SELECT document FROM form_definitions WHERE form_id = :fid AND version = :ver"),
            {"fid": form_id, "ver": int(version)},
        ).fetchone()
    if row is None:
        raise DefinitionNotFound(form_id, version)
    return _row_to_definition(row)


def latest_published_version(form_id: str) -> Optional[FormDefinition]:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                """
                SELECT document FROM form_definitions
                WHERE form_id = :fid AND is_published = :pub
                ORDER BY version DESC
                LIMIT 1
                """
            ),
            {"fid": form_id, "pub": True},
        ).fetchone()
    return _row_to_definition(row) if row is not None else None


def save_definition(definition: FormDefinition) -> FormDefinition:
    """Insert or update a definition row.

    Published rows are frozen: only the archive marker may change, via
    `archive_definition`. Publishing goes through this function once, with
    the row still unpublished in storage.
    """
    eng = get_engine()
    params = {
        "fid": definition.form_id,
        "ver": definition.version,
        "agency": definition.agency_id,
        "slug": definition.slug,
        "name": definition.name,
        "ftype": definition.form_type.value,
        "pub": bool(definition.is_published),
        "pub_at": _iso(definition.published_at),
        "arch_at": _iso(definition.archived_at),
        "doc": definition.model_dump_json(),
        "now": _now_iso(),
    }
    with eng.begin() as conn:
        existing = conn.execute(
            sql_text("SELECT is_published FROM form_definitions WHERE form_id = :fid AND version = :ver"),
            {"fid": definition.form_id, "ver": definition.version},
        ).fetchone()
        if existing is None:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO form_definitions (
                        form_id, version, agency_id, slug, name, form_type, is_published,
                        published_at, archived_at, document, created_at, updated_at
                    ) VALUES (
                        :fid, :ver, :agency, :slug, :name, :ftype, :pub,
                        :pub_at, :arch_at, :doc, :now, :now
                    )
                    """
                ),
                params,
            )
            logger.info("definition_inserted form_id=%s version=%s", definition.form_id, definition.version)
            return definition
        if bool(existing[0]):
            raise DefinitionPublishedError(
                f"form {definition.form_id} version {definition.version} is published and cannot be modified"
            )
        conn.execute(
            sql_text(
                """
                UPDATE form_definitions
                SET agency_id = :agency, slug = :slug, name = :name, form_type = :ftype,
                    is_published = :pub, published_at = :pub_at, archived_at = :arch_at,
                    document = :doc, updated_at = :now
                WHERE form_id = :fid AND version = :ver
                """
            ),
            params,
        )
    logger.info(
        "definition_updated form_id=%s version=%s published=%s",
        definition.form_id,
        definition.version,
        definition.is_published,
    )
    return definition


def archive_definition(definition: FormDefinition) -> FormDefinition:
    """Persist the archive marker of a definition (soft archive, never delete)."""
    eng = get_engine()
    with eng.begin() as conn:
        result = conn.execute(
            sql_text(
                """
                UPDATE form_definitions
                SET archived_at = :arch_at, document = :doc, updated_at = :now
                WHERE form_id = :fid AND version = :ver
                """
            ),
            {
                "fid": definition.form_id,
                "ver": definition.version,
                "arch_at": _iso(definition.archived_at),
                "doc": definition.model_dump_json(),
                "now": _now_iso(),
            },
        )
    if result.rowcount == 0:
        raise DefinitionNotFound(definition.form_id, definition.version)
    logger.info("definition_archived form_id=%s version=%s", definition.form_id, definition.version)
    return definition


__all__ = [
    "load_definition",
    "latest_published_version",
    "save_definition",
    "archive_definition",
]
