"""Form response data access helpers.

Persists whole response documents with optimistic concurrency: every write
names the revision it was computed from and fails with ConcurrencyConflict
when storage has moved on. `values` is stored as a flat JSON object keyed by
field_key.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
import json
import logging

from sqlalchemy import text as sql_text
from sqlalchemy.exc import IntegrityError

from form_engine.db.base import get_engine
from form_engine.logic.errors import ConcurrencyConflict, ResponseNotFound
from form_engine.models.response import FormResponse

logger = logging.getLogger(__name__)

_COLUMNS = (
    "response_id, form_id, form_version, entity_type, entity_id, values_json, "
    "current_section_index, completion_percentage, status, started_at, "
    "last_activity_at, completed_at, revision"
)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _row_to_response(row) -> FormResponse:
    return FormResponse(
        response_id=row[0],
        form_id=row[1],
        form_version=int(row[2]),
        entity_type=row[3],
        entity_id=row[4],
        values=json.loads(row[5] or "{}"),
        current_section_index=int(row[6] or 0),
        completion_percentage=int(row[7] or 0),
        status=row[8],
        started_at=row[9],
        last_activity_at=row[10],
        completed_at=row[11],
        revision=int(row[12]),
    )


def _params(response: FormResponse, revision: int) -> dict:
    return {
        "rid": response.response_id,
        "fid": response.form_id,
        "fver": response.form_version,
        "etype": response.entity_type,
        "eid": response.entity_id,
        "vals": json.dumps(response.values, ensure_ascii=False, sort_keys=True),
        "idx": response.current_section_index,
        "pct": response.completion_percentage,
        "status": response.status.value,
        "started": _iso(response.started_at),
        "activity": _iso(response.last_activity_at),
        "completed": _iso(response.completed_at),
        "rev": revision,
    }


def load_response(response_id: str) -> FormResponse:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(f"SELECT {_COLUMNS} FROM form_responses WHERE response_id = :rid"),
            {"rid": response_id},
        ).fetchone()
    if row is None:
        raise ResponseNotFound(response_id)
    return _row_to_response(row)


def find_response_for_entity(entity_type: str, entity_id: str, form_id: str) -> Optional[FormResponse]:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text(
                f"""
                SELECT {_COLUMNS} FROM form_responses
                WHERE entity_type = :etype AND entity_id = :eid AND form_id = :fid
                """
            ),
            {"etype": entity_type, "eid": entity_id, "fid": form_id},
        ).fetchone()
    return _row_to_response(row) if row is not None else None


def _current_revision(conn, response_id: str) -> int | None:
    row = conn.execute(
        sql_text("SELECT revision FROM form_responses WHERE response_id = :rid"),
        {"rid": response_id},
    ).fetchone()
    return int(row[0]) if row is not None else None


def save_response(response: FormResponse, expected_revision: int) -> int:
    """Compare-and-swap write; returns the new revision.

    `expected_revision=0` creates the row; a concurrent creator wins and this
    call raises ConcurrencyConflict.
    """
    new_revision = int(expected_revision) + 1
    params = _params(response, new_revision)
    eng = get_engine()
    if expected_revision == 0:
        try:
            with eng.begin() as conn:
                conn.execute(
                    sql_text(
                        f"""
                        INSERT INTO form_responses ({_COLUMNS})
                        VALUES (:rid, :fid, :fver, :etype, :eid, :vals, :idx, :pct, :status,
                                :started, :activity, :completed, :rev)
                        """
                    ),
                    params,
                )
        except IntegrityError as exc:
            logger.info("response_insert_conflict response_id=%s", response.response_id)
            raise ConcurrencyConflict(expected_revision, None) from exc
        logger.info("response_created response_id=%s entity=%s:%s", response.response_id, response.entity_type, response.entity_id)
        return new_revision

    with eng.begin() as conn:
        result = conn.execute(
            sql_text(
                """
                UPDATE form_responses
                SET values_json = :vals, current_section_index = :idx, completion_percentage = :pct,
                    status = :status, started_at = :started, last_activity_at = :activity,
                    completed_at = :completed, revision = :rev
                WHERE response_id = :rid AND revision = :expected
                """
            ),
            {**params, "expected": int(expected_revision)},
        )
        if result.rowcount == 0:
            actual = _current_revision(conn, response.response_id)
            if actual is None:
                raise ResponseNotFound(response.response_id)
            logger.info(
                "response_revision_conflict response_id=%s expected=%s actual=%s",
                response.response_id,
                expected_revision,
                actual,
            )
            raise ConcurrencyConflict(expected_revision, actual)
    return new_revision


__all__ = [
    "load_response",
    "find_response_for_entity",
    "save_response",
]
