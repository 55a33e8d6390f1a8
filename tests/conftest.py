# Shared pytest fixtures
from __future__ import annotations
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Any, Dict, List, Optional, Sequence, Set

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.crm_tool.database import get_db
from src.crm_tool.main import app
from src.crm_tool.models import Base
from src.crm_tool.services.client_store import RecordStore, SqlAlchemyClientStore
from src.crm_tool.services.csv_import import IMPORT_SESSIONS
from src.crm_tool.services.import_types import StoreError


class FakeStore(RecordStore):
    """In-memory store recording every call made by the pipeline."""

    def __init__(
        self,
        existing: Optional[Set[str]] = None,
        fail_lookup: bool = False,
        fail_insert: bool = False,
        report_inserted: Optional[int] = None,
    ) -> None:
        self.existing = existing or set()
        self.fail_lookup = fail_lookup
        self.fail_insert = fail_insert
        self.report_inserted = report_inserted
        self.lookups: List[tuple] = []
        self.inserts: List[List[Dict[str, Any]]] = []

    async def find_existing_emails(self, tenant_id: str, emails: Sequence[str]) -> Set[str]:
        self.lookups.append((tenant_id, list(emails)))
        if self.fail_lookup:
            raise StoreError("connection refused")
        return {e for e in emails if e in self.existing}

    async def bulk_insert(self, rows: List[Dict[str, Any]]) -> int:
        self.inserts.append(rows)
        if self.fail_insert:
            raise StoreError('null value in column "name" violates not-null constraint')
        if self.report_inserted is not None:
            return self.report_inserted
        return len(rows)


@pytest.fixture()
def fake_store_factory():
    return FakeStore


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture()
def store(db) -> SqlAlchemyClientStore:
    return SqlAlchemyClientStore(db)


@pytest.fixture(autouse=True)
def clear_import_sessions():
    IMPORT_SESSIONS.clear()
    yield
    IMPORT_SESSIONS.clear()


@pytest.fixture()
def api_client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture()
def context_headers() -> Dict[str, str]:
    return {"X-User-Id": "user-1", "X-Workspace-Id": "ws-1"}


@pytest.fixture()
def sample_csv() -> str:
    return (
        "Name,Email,Status\n"
        "Alice,alice@x.com,active\n"
        "Bob,,lead\n"
        "Alice2,alice@x.com,lead\n"
    )
