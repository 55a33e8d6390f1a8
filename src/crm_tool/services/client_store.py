"""Record store interface used by the import pipeline, with a SQLAlchemy backend"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Set

from sqlalchemy import select, insert, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.crm_tool.models.client import Client
from src.crm_tool.services.import_types import StoreError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    @abstractmethod
    async def find_existing_emails(self, tenant_id: str, emails: Sequence[str]) -> Set[str]:
        """Return the lower-cased subset of ``emails`` already stored for the tenant."""

    @abstractmethod
    async def bulk_insert(self, rows: List[Dict[str, Any]]) -> int:
        """Insert all rows in one transaction and return how many were inserted."""


class SqlAlchemyClientStore(RecordStore):
    def __init__(self, db: Session):
        self.db = db

    async def find_existing_emails(self, tenant_id: str, emails: Sequence[str]) -> Set[str]:
        if not emails:
            return set()

        lowered = [e.lower() for e in emails]
        stmt = select(func.lower(Client.email)).where(
            Client.workspace_id == tenant_id,
            Client.deleted_at.is_(None),
            func.lower(Client.email).in_(lowered)
        )
        try:
            found = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.exception("Existing email lookup failed")
            raise StoreError(_describe(e)) from e
        return {email for email in found if email}

    async def bulk_insert(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0

        try:
            inserted_ids = self.db.scalars(insert(Client).returning(Client.id), rows).all()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Bulk insert of {len(rows)} clients failed")
            raise StoreError(_describe(e)) from e
        return len(inserted_ids)


def _describe(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error)
