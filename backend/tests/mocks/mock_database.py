# tests/mocks/mock_database.py

import logging
import shutil
import tempfile
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from licitaciones.database import make_engine
from licitaciones.models.base import Base
import licitaciones.models  # noqa: F401
from licitaciones.services.file_service import ObjectStorage
from licitaciones.services.persistence import PersistenceGateway

logger = logging.getLogger(__name__)

TEST_PUBLIC_BASE_URL = "http://testserver"


class TestDatabaseManager:
    """In-memory SQLite database plus a temporary storage folder, torn down by cleanup()."""
    __test__ = False

    def __init__(self):
        self.engine = None
        self.storage_dir = None

    def create_gateway(self) -> PersistenceGateway:
        self.engine = make_engine("sqlite://")
        Base.metadata.create_all(bind=self.engine)
        self.storage_dir = Path(tempfile.mkdtemp(prefix="licitaciones-test-"))
        session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        storage = ObjectStorage(root=self.storage_dir, public_base_url=TEST_PUBLIC_BASE_URL)
        logger.info("Test database ready, storage at %s", self.storage_dir)
        return PersistenceGateway(session_factory, storage)

    def cleanup(self):
        if self.engine is not None:
            Base.metadata.drop_all(bind=self.engine)
            self.engine.dispose()
            self.engine = None
        if self.storage_dir is not None:
            shutil.rmtree(self.storage_dir, ignore_errors=True)
            self.storage_dir = None
