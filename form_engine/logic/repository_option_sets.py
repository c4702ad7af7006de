"""Shared option set storage and the SQL-backed options resolver.

System-wide sets have no agency; an agency set with the same slug takes
precedence for that agency.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence
import json
import logging
import uuid

from sqlalchemy import text as sql_text

from form_engine.db.base import get_engine
from form_engine.models.definition import ExternalOptions, FieldOption, SharedOptions

logger = logging.getLogger(__name__)


def get_option_set(slug: str, agency_id: Optional[str] = None) -> Optional[List[FieldOption]]:
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(
            sql_text(
                """
                SELECT agency_id, options FROM field_option_sets
                WHERE slug = :slug AND (agency_id IS NULL OR agency_id = :agency)
                """
            ),
            {"slug": slug, "agency": agency_id},
        ).fetchall()
    if not rows:
        return None
    # Agency-owned rows sort before the system row.
    rows = sorted(rows, key=lambda r: r[0] is None)
    return [FieldOption.model_validate(o) for o in json.loads(rows[0][1])]


def upsert_option_set(
    slug: str,
    options: Sequence[FieldOption],
    agency_id: Optional[str] = None,
    name: str = "",
) -> None:
    payload = json.dumps([o.model_dump() for o in options], ensure_ascii=False)
    now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    eng = get_engine()
    with eng.begin() as conn:
        if agency_id is None:
            existing = conn.execute(
                sql_text("SELECT option_set_id FROM field_option_sets WHERE slug = :slug AND agency_id IS NULL"),
                {"slug": slug},
            ).fetchone()
        else:
            existing = conn.execute(
                sql_text("SELECT option_set_id FROM field_option_sets WHERE slug = :slug AND agency_id = :agency"),
                {"slug": slug, "agency": agency_id},
            ).fetchone()
        if existing is None:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO field_option_sets (option_set_id, agency_id, slug, name, options, updated_at)
                    VALUES (:id, :agency, :slug, :name, :options, :now)
                    """
                ),
                {"id": str(uuid.uuid4()), "agency": agency_id, "slug": slug, "name": name, "options": payload, "now": now},
            )
        else:
            conn.execute(
                sql_text(
                    "UPDATE field_option_sets SET name = :name, options = :options, updated_at = :now WHERE option_set_id = :id"
                ),
                {"id": existing[0], "name": name, "options": payload, "now": now},
            )
    logger.info("option_set_saved slug=%s agency_id=%s count=%d", slug, agency_id, len(options))


class SqlOptionsResolver:
    """Resolves shared option sets from storage; external providers are not known here."""

    def resolve(self, source: SharedOptions | ExternalOptions, agency_id: str) -> Optional[List[FieldOption]]:
        if isinstance(source, SharedOptions):
            return get_option_set(source.option_set, agency_id)
        logger.info("external_options_unresolved provider=%s", source.provider)
        return None


__all__ = ["get_option_set", "upsert_option_set", "SqlOptionsResolver"]
