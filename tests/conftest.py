import os
import sys

import pytest

# Ensure peekify is importable in tests (e.g., `import repositories...`).
PEEKIFY_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "peekify"))
if PEEKIFY_DIR not in sys.path:
    sys.path.insert(0, PEEKIFY_DIR)

TESTS_DIR = os.path.abspath(os.path.dirname(__file__))
if TESTS_DIR not in sys.path:
    sys.path.insert(0, TESTS_DIR)


@pytest.fixture
def database(tmp_path, monkeypatch):
    """Fresh SQLite database with the full schema, one per test."""
    from db.postgres_db import get_engine, reset_engine
    from db.schema import ensure_schema

    for name in ("ENVIRONMENT", "DATABASE_URL_PROD", "DATABASE_URL_STAGING"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'peekify.db'}")
    reset_engine()
    ensure_schema(get_engine())
    yield get_engine()
    reset_engine()
