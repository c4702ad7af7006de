"""Form template storage.

Templates are keyed by slug and stored whole as JSON documents; the listing
columns (category, featured flag, order) are duplicated for sorting.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
import logging
import uuid

from sqlalchemy import text as sql_text

from form_engine.db.base import get_engine
from form_engine.logic.errors import TemplateNotFound
from form_engine.models.template import FormTemplate

logger = logging.getLogger(__name__)


def list_templates(category: Optional[str] = None) -> List[FormTemplate]:
    """Templates in picker order: featured first, then display order and slug."""
    sql = "SELECT document FROM form_templates"
    params: dict = {}
    if category is not None:
        sql += " WHERE category = :category"
        params["category"] = category
    sql += " ORDER BY is_featured DESC, display_order, slug"
    eng = get_engine()
    with eng.connect() as conn:
        rows = conn.execute(sql_text(sql), params).fetchall()
    return [FormTemplate.model_validate_json(r[0]) for r in rows]


def get_template(slug: str) -> FormTemplate:
    eng = get_engine()
    with eng.connect() as conn:
        row = conn.execute(
            sql_text("SELECT document FROM form_templates WHERE slug = :slug"),
            {"slug": slug},
        ).fetchone()
    if row is None:
        raise TemplateNotFound(slug)
    return FormTemplate.model_validate_json(row[0])


def upsert_template(template: FormTemplate) -> FormTemplate:
    params = {
        "slug": template.slug,
        "name": template.name,
        "category": template.category,
        "doc": template.model_dump_json(),
        "featured": bool(template.is_featured),
        "order": template.display_order,
        "now": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    eng = get_engine()
    with eng.begin() as conn:
        existing = conn.execute(
            sql_text("SELECT template_id FROM form_templates WHERE slug = :slug"),
            {"slug": template.slug},
        ).fetchone()
        if existing is None:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO form_templates (
                        template_id, slug, name, category, document, is_featured, display_order, updated_at
                    ) VALUES (:id, :slug, :name, :category, :doc, :featured, :order, :now)
                    """
                ),
                {**params, "id": str(uuid.uuid4())},
            )
        else:
            conn.execute(
                sql_text(
                    """
                    UPDATE form_templates
                    SET name = :name, category = :category, document = :doc,
                        is_featured = :featured, display_order = :order, updated_at = :now
                    WHERE template_id = :id
                    """
                ),
                {**params, "id": existing[0]},
            )
    logger.info("template_saved slug=%s sections=%d", template.slug, len(template.sections))
    return template


__all__ = ["list_templates", "get_template", "upsert_template"]
