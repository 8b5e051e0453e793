import unittest

from licitaciones.database import DEFAULT_DATABASE_URL, make_engine
from licitaciones.models.status import AnalysisDecision, TenderStatus
from licitaciones.schemas.analysis import AnalysisResult, EconomicTerms
from licitaciones.schemas.tender import TenderRecord
from licitaciones.services.file_service import PendingDocument
from tests.mocks.mock_database import TEST_PUBLIC_BASE_URL, TestDatabaseManager


def _tender(tender_id: str, created_at: int, **kwargs) -> TenderRecord:
    return TenderRecord(id=tender_id, name=f"Expediente {tender_id}", created_at=created_at, **kwargs)


class TestPersistenceGateway(unittest.TestCase):

    def setUp(self):
        self.db_manager = TestDatabaseManager()
        self.gateway = self.db_manager.create_gateway()

    def tearDown(self):
        self.db_manager.cleanup()

    def test_round_trip_keeps_every_field(self):
        analysis = AnalysisResult(decision=AnalysisDecision.REVIEW, economic=EconomicTerms(budget="10 EUR"))
        tender = _tender("t-1", 100, budget="10 EUR", expedient_number="EXP/1", deadline="2024-05-01",
                         status=TenderStatus.IN_DOUBT, ai_analysis=analysis, admin_url="https://example.es/pcap.pdf")
        self.gateway.upsert(tender)

        [loaded] = self.gateway.list_all()
        self.assertEqual(loaded, tender)

    def test_list_is_newest_first(self):
        self.gateway.upsert(_tender("old", 1))
        self.gateway.upsert(_tender("new", 2))
        self.assertEqual([t.id for t in self.gateway.list_all()], ["new", "old"])

    def test_upsert_replaces_whole_record(self):
        self.gateway.upsert(_tender("t-1", 1, budget="10 EUR"))
        self.gateway.upsert(_tender("t-1", 1, status=TenderStatus.ARCHIVED))
        [loaded] = self.gateway.list_all()
        self.assertEqual(loaded.status, TenderStatus.ARCHIVED)
        self.assertIsNone(loaded.budget)

    def test_upload_read_and_delete_documents(self):
        url = self.gateway.upload_document("admin", PendingDocument("Pliego Cláusulas.pdf", b"%PDF-1.4 data"))
        self.assertTrue(url.startswith(f"{TEST_PUBLIC_BASE_URL}/static/admin/"))
        self.assertTrue(url.endswith("_pliego_clausulas.pdf"))
        self.assertTrue(self.gateway.owns_document(url))
        self.assertEqual(self.gateway.read_document(url).content, b"%PDF-1.4 data")

        tender = _tender("t-1", 1, admin_url=url, tech_url="https://example.es/ppt.pdf")
        self.gateway.upsert(tender)
        self.gateway.delete(tender)
        self.assertEqual(self.gateway.list_all(), [])
        self.assertIsNone(self.gateway.read_document(url))

    def test_external_links_are_not_owned(self):
        self.assertFalse(self.gateway.owns_document("https://example.es/ppt.pdf"))
        self.assertFalse(self.gateway.owns_document(None))
        self.assertIsNone(self.gateway.read_document("https://example.es/ppt.pdf"))

    def test_rules_default_and_update(self):
        self.assertEqual(self.gateway.get_rules("por defecto"), "por defecto")
        self.gateway.set_rules("Solo obras")
        self.assertEqual(self.gateway.get_rules("por defecto"), "Solo obras")
        self.gateway.set_rules("Solo servicios")
        self.assertEqual(self.gateway.get_rules("por defecto"), "Solo servicios")


class TestEngine(unittest.TestCase):

    def test_default_dsn_uses_declared_driver(self):
        engine = make_engine(DEFAULT_DATABASE_URL)
        self.assertEqual(engine.dialect.name, "postgresql")
        self.assertEqual(engine.dialect.driver, "psycopg2")
        engine.dispose()

    def test_sqlite_engine_is_shared_across_threads(self):
        engine = make_engine("sqlite://")
        self.assertEqual(engine.pool.__class__.__name__, "StaticPool")
        engine.dispose()
