"""
Durable state: the tenders table, the single-row business rules table and the object storage
holding uploaded documents. This is the source of truth whenever the in-memory store (re)loads.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from licitaciones.errors import PersistenceError
from licitaciones.models.tender import BusinessRules, Tender
from licitaciones.schemas.tender import TenderRecord
from licitaciones.services.file_service import ObjectStorage, PendingDocument

logger = logging.getLogger(__name__)


def _to_columns(tender: TenderRecord) -> dict:
    return {
        "id": tender.id,
        "name": tender.name,
        "budget": tender.budget,
        "scoring_system": tender.scoring_system,
        "expedient_number": tender.expedient_number,
        "deadline": tender.deadline,
        "tender_page_url": tender.tender_page_url,
        "summary_url": tender.summary_url,
        "admin_url": tender.admin_url,
        "tech_url": tender.tech_url,
        "status": tender.status.value,
        "ai_analysis": tender.ai_analysis.model_dump_json(by_alias=True) if tender.ai_analysis else None,
        "created_at": tender.created_at,
    }


class PersistenceGateway:
    def __init__(self, session_factory, storage: ObjectStorage):
        self.session_factory = session_factory
        self.storage = storage

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Database error: %s", e)
            raise PersistenceError(f"Database error: {e}") from e
        finally:
            db.close()

    def list_all(self) -> list[TenderRecord]:
        """Every tender, newest first."""
        with self._session() as db:
            rows = db.query(Tender).order_by(Tender.created_at.desc()).all()
            return [TenderRecord.model_validate(row) for row in rows]

    def upsert(self, tender: TenderRecord) -> None:
        """Insert or fully replace the row with tender.id. No version check: last write wins."""
        with self._session() as db:
            db.merge(Tender(**_to_columns(tender)))
            db.commit()
        logger.info("Saved tender %s (%s)", tender.id, tender.status.value)

    def delete(self, tender: TenderRecord) -> None:
        """Stored documents go first, then the row."""
        for url in (tender.summary_url, tender.admin_url, tender.tech_url):
            try:
                self.storage.delete(url)
            except OSError as e:
                raise PersistenceError(f"Could not delete stored document {url}: {e}") from e
        with self._session() as db:
            row = db.get(Tender, tender.id)
            if row is not None:
                db.delete(row)
                db.commit()
        logger.info("Deleted tender %s", tender.id)

    def upload_document(self, slot: str, document: PendingDocument) -> str:
        try:
            return self.storage.upload(slot, document)
        except OSError as e:
            raise PersistenceError(f"Could not store {document.filename}: {e}") from e

    def delete_document(self, url: str) -> bool:
        """Best-effort removal of one stored object; a failure is logged, not raised."""
        try:
            return self.storage.delete(url)
        except OSError as e:
            logger.warning("Could not delete stored document %s: %s", url, e)
            return False

    def read_document(self, url: str) -> Optional[PendingDocument]:
        try:
            return self.storage.read(url)
        except OSError as e:
            logger.warning("Could not read stored document %s: %s", url, e)
            return None

    def owns_document(self, url: Optional[str]) -> bool:
        return self.storage.owns(url)

    def get_rules(self, default: str) -> str:
        """Stored rules, or default when nothing has been saved yet."""
        with self._session() as db:
            row = db.get(BusinessRules, BusinessRules.RULES_ID)
            return row.content if row is not None and row.content else default

    def set_rules(self, content: str) -> None:
        with self._session() as db:
            db.merge(BusinessRules(id=BusinessRules.RULES_ID, content=content))
            db.commit()
        logger.info("Saved business rules (%s chars)", len(content))
