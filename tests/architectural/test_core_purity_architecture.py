"""Architectural tests for the form engine's layering.

The evaluation core must stay free of storage and transport concerns so it
can run inside any host. These tests use file-system and AST inspection
only; no application code is executed.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterable, List, Set

ROOT = Path(__file__).resolve().parents[2]
PACKAGE = ROOT / "form_engine"
MIGRATIONS = ROOT / "migrations"

CORE_MODULES = [
    PACKAGE / "logic" / "conditions.py",
    PACKAGE / "logic" / "visibility.py",
    PACKAGE / "logic" / "validation.py",
    PACKAGE / "logic" / "options.py",
    PACKAGE / "logic" / "schema_checks.py",
    PACKAGE / "logic" / "authoring.py",
    PACKAGE / "logic" / "response_tracker.py",
    PACKAGE / "logic" / "form_service.py",
    PACKAGE / "logic" / "form_view.py",
    PACKAGE / "logic" / "errors.py",
]
FORBIDDEN_IN_CORE = {"sqlalchemy", "fastapi", "starlette", "form_engine.db", "form_engine.routes", "form_engine.http"}


def _parse(path: Path) -> ast.Module:
    try:
        return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    except (OSError, SyntaxError) as exc:  # pragma: no cover - surfaced as failure
        raise AssertionError(f"Failed to parse {path}: {exc}")


def _imported_modules(tree: ast.Module) -> Set[str]:
    names: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
    return names


def _violations(modules: Iterable[str], forbidden: Set[str]) -> List[str]:
    return sorted(m for m in modules if any(m == f or m.startswith(f + ".") for f in forbidden))


def _model_modules() -> List[Path]:
    return sorted((PACKAGE / "models").glob("*.py"))


def test_core_modules_exist():
    missing = [str(p.relative_to(ROOT)) for p in CORE_MODULES if not p.exists()]
    assert missing == []


def test_core_does_not_import_storage_or_transport():
    for path in [*CORE_MODULES, *_model_modules()]:
        bad = _violations(_imported_modules(_parse(path)), FORBIDDEN_IN_CORE)
        assert bad == [], f"{path.relative_to(ROOT)} imports {bad}"


def test_repositories_are_the_only_logic_modules_touching_sql():
    for path in sorted((PACKAGE / "logic").glob("*.py")):
        imports = _imported_modules(_parse(path))
        uses_sql = bool(_violations(imports, {"sqlalchemy", "form_engine.db"}))
        if uses_sql:
            assert path.name.startswith("repository_"), f"{path.name} reaches storage directly"


def test_routes_do_not_issue_sql():
    for path in sorted((PACKAGE / "routes").glob("*.py")):
        bad = _violations(_imported_modules(_parse(path)), {"sqlalchemy", "form_engine.db"})
        assert bad == [], f"{path.name} imports {bad}"


def test_domain_errors_are_mapped_to_problem_codes():
    errors_tree = _parse(PACKAGE / "logic" / "errors.py")
    error_classes = {
        node.name
        for node in errors_tree.body
        if isinstance(node, ast.ClassDef) and node.name != "FormEngineError"
    }
    mapping_source = (PACKAGE / "http" / "error_mapping.py").read_text(encoding="utf-8")
    unmapped = sorted(name for name in error_classes if f"{name}:" not in mapping_source)
    assert unmapped == []


def test_migrations_declare_revisioned_responses():
    sql = "\n".join(p.read_text(encoding="utf-8") for p in sorted(MIGRATIONS.glob("*.sql")))
    assert "CREATE TABLE IF NOT EXISTS form_definitions" in sql
    assert "CREATE TABLE IF NOT EXISTS form_responses" in sql
    assert "revision INTEGER NOT NULL" in sql
    assert "UNIQUE (entity_type, entity_id, form_id)" in sql
