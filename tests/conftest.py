from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from word_weaver.app import create_app
from word_weaver.config import Settings
from word_weaver.storage.db import Database

UTC = timezone.utc


@pytest.fixture()
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def temp_db(tmp_path):
    db = Database(tmp_path / "word_weaver_test.db")
    db.initialize()
    return db


@pytest.fixture()
def client(tmp_path):
    settings = Settings(db_path=tmp_path / "word_weaver_api.db", density=1.0)
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
