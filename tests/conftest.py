"""Shared fixtures: a fresh SQLite database per test and an app client."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

from smartcycle import db
from smartcycle.main import app


@pytest.fixture()
def engine(tmp_path, monkeypatch):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'smartcycle.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(eng)
    monkeypatch.setattr(db, "engine", eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def client(engine):
    with TestClient(app) as c:
        yield c
