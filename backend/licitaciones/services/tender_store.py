"""
In-memory application state: the tender collection, the business rules and the set of tenders
with an analysis running. Created once per process, loaded from the persistence gateway on start
and flushed to it after every mutation. Only the event loop mutates it, so no locking.
"""
import asyncio
import logging
import time
import uuid
from typing import Optional

from licitaciones.errors import DuplicateTenderError, TenderBusyError, TenderNotFoundError
from licitaciones.models.status import BOARD_COLUMNS, TenderStatus, status_for_decision
from licitaciones.schemas.analysis import TenderMetadata
from licitaciones.schemas.tender import (
    BoardColumn,
    DiscoveredDocument,
    DiscoveryResult,
    TenderCreate,
    TenderRecord,
    duplicate_key,
)
from licitaciones.services import ai_service
from licitaciones.services.file_service import PendingDocument
from licitaciones.services.http_client import HttpClient
from licitaciones.services.link_extractor import extract_links_from_pdf, scrape_docs_from_web
from licitaciones.services.link_prober import ProbedDocument, ProbeResult, dedupe, probe_links_in_batches
from licitaciones.services.persistence import PersistenceGateway

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_RULES = (
    "1. Verificar requisitos de solvencia técnica: ¿Se exigen certificaciones específicas "
    "(ISO 9001, 14001, ENS, etc)?\n"
    "2. Si piden certificaciones obligatorias que no poseemos, marcar para descartar."
)
# Links that usually point at the tender's page on the public procurement platform
TENDER_PAGE_MARKERS = ("contratacion", "placsp")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _discovered(doc: Optional[ProbedDocument]) -> Optional[DiscoveredDocument]:
    if doc is None:
        return None
    return DiscoveredDocument(url=doc.url, filename=doc.filename, category=doc.category.value)


class TenderStore:
    def __init__(self, gateway: PersistenceGateway, http_client: Optional[HttpClient] = None):
        self.gateway = gateway
        self.http_client = http_client or HttpClient()
        self.tenders: list[TenderRecord] = []
        self.rules: str = DEFAULT_BUSINESS_RULES
        self.analyzing_ids: set[str] = set()
        # (expedient, name) keys of creations still uploading their documents
        self._pending_keys: set[tuple[str, str]] = set()
        self.is_loaded = False

    async def load(self) -> None:
        rules, tenders = await asyncio.gather(
            asyncio.to_thread(self.gateway.get_rules, DEFAULT_BUSINESS_RULES),
            asyncio.to_thread(self.gateway.list_all),
        )
        self.rules = rules
        self.tenders = tenders
        self.is_loaded = True
        logger.info("Store loaded: %s tenders", len(tenders))

    # --- queries ---

    def get(self, tender_id: str) -> TenderRecord:
        for tender in self.tenders:
            if tender.id == tender_id:
                return tender
        raise TenderNotFoundError(f"Expediente {tender_id} no encontrado.")

    def is_duplicate(self, expedient_number: Optional[str], name: Optional[str]) -> bool:
        key = duplicate_key(expedient_number, name)
        return key in self._pending_keys or any(t.identity_key() == key for t in self.tenders)

    def is_analyzing(self, tender_id: str) -> bool:
        return tender_id in self.analyzing_ids

    def archive_view(
        self,
        expedient: str = "",
        name: str = "",
        status: Optional[TenderStatus] = None,
        sort: str = "asc",
    ) -> list[TenderRecord]:
        """Archive table: case-insensitive substring filters plus status, sorted by deadline text."""
        expedient = (expedient or "").lower()
        name = (name or "").lower()
        result = [
            t for t in self.tenders
            if expedient in (t.expedient_number or "").lower()
            and name in (t.name or "").lower()
            and (status is None or t.status == status)
        ]
        result.sort(key=lambda t: t.deadline or "", reverse=(sort == "desc"))
        return result

    def board(self) -> list[BoardColumn]:
        columns = []
        for title, status in BOARD_COLUMNS:
            items = [t for t in self.tenders if t.status == status]
            columns.append(BoardColumn(title=title, status=status, count=len(items), items=items))
        return columns

    # --- mutations ---

    def _replace(self, updated: TenderRecord) -> None:
        self.tenders = [updated if t.id == updated.id else t for t in self.tenders]

    async def _persist(self, tender: TenderRecord) -> None:
        # PersistenceError propagates; the in-memory change stays until the next reload
        await asyncio.to_thread(self.gateway.upsert, tender)

    async def create_tender(
        self,
        draft: TenderCreate,
        summary: Optional[PendingDocument] = None,
        admin: Optional[PendingDocument] = None,
        tech: Optional[PendingDocument] = None,
    ) -> TenderRecord:
        """Reject duplicates, upload the documents concurrently, then commit the record."""
        if self.is_duplicate(draft.expedient_number, draft.name):
            raise DuplicateTenderError("Ya existe un expediente con ese número y título.")
        # Reserved before the first await so a concurrent create with the same key is rejected
        key = duplicate_key(draft.expedient_number, draft.name)
        self._pending_keys.add(key)
        try:
            summary_url, admin_url, tech_url = await self._upload_documents(summary, admin, tech)
            tender = self._add_created(draft, summary_url, admin_url, tech_url)
        finally:
            self._pending_keys.discard(key)
        await self._persist(tender)
        logger.info("Created tender %s (%s)", tender.id, tender.name)
        return tender

    async def _upload_documents(self, *documents: Optional[PendingDocument]) -> list[Optional[str]]:
        """Upload summary/admin/tech concurrently. If any upload fails, the ones that succeeded are removed."""

        async def upload(slot: str, document: Optional[PendingDocument]) -> Optional[str]:
            if document is None:
                return None
            return await asyncio.to_thread(self.gateway.upload_document, slot, document)

        outcomes = await asyncio.gather(
            *(upload(slot, doc) for slot, doc in zip(("summary", "admin", "tech"), documents)),
            return_exceptions=True,
        )
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            stored = [o for o in outcomes if isinstance(o, str)]
            for url in stored:
                await asyncio.to_thread(self.gateway.delete_document, url)
            logger.warning("Upload failed, removed %s already stored documents", len(stored))
            raise failures[0]
        return list(outcomes)

    def _add_created(
        self,
        draft: TenderCreate,
        summary_url: Optional[str],
        admin_url: Optional[str],
        tech_url: Optional[str],
    ) -> TenderRecord:
        tender = TenderRecord(
            id=str(uuid.uuid4()),
            name=draft.name.strip(),
            budget=draft.budget,
            scoring_system=draft.scoring_system,
            expedient_number=draft.expedient_number,
            deadline=draft.deadline,
            tender_page_url=draft.tender_page_url,
            summary_url=summary_url,
            admin_url=admin_url or draft.admin_url,
            tech_url=tech_url or draft.tech_url,
            status=TenderStatus.PENDING,
            created_at=_now_ms(),
        )
        self.tenders = [tender] + self.tenders
        return tender

    async def set_status(self, tender_id: str, status: TenderStatus) -> TenderRecord:
        """Manual override: any state to any state, no guards."""
        updated = self.get(tender_id).model_copy(update={"status": status})
        self._replace(updated)
        await self._persist(updated)
        return updated

    async def delete(self, tender_id: str) -> None:
        tender = self.get(tender_id)
        self.tenders = [t for t in self.tenders if t.id != tender_id]
        await asyncio.to_thread(self.gateway.delete, tender)

    async def update_rules(self, content: str) -> str:
        self.rules = content
        await asyncio.to_thread(self.gateway.set_rules, content)
        return self.rules

    async def _load_document(self, url: Optional[str]) -> Optional[PendingDocument]:
        if not url:
            return None
        if self.gateway.owns_document(url):
            return await asyncio.to_thread(self.gateway.read_document, url)
        if url.startswith("http"):
            resource = await asyncio.to_thread(self.http_client.fetch, url)
            if resource is None:
                logger.warning("Could not fetch document %s for analysis", url)
                return None
            return PendingDocument(resource.filename, resource.content, resource.content_type)
        return None

    async def analyze(self, tender_id: str) -> TenderRecord:
        """
        Run the AI analysis, attach the result and move the tender to the status the decision maps to.
        The busy marker is cleared whether the analysis succeeds or fails.
        """
        tender = self.get(tender_id)
        ai_service.ensure_configured()
        if self.is_analyzing(tender_id):
            raise TenderBusyError("El expediente ya se está analizando.")
        self.analyzing_ids.add(tender_id)
        try:
            loaded = await asyncio.gather(
                self._load_document(tender.summary_url),
                self._load_document(tender.admin_url),
                self._load_document(tender.tech_url),
            )
            documents = [d for d in loaded if d is not None]
            analysis = await asyncio.to_thread(ai_service.analyze_tender, tender, documents, self.rules)
            # Re-read: the tender may have been edited while the model was thinking
            current = self.get(tender_id)
            updated = current.model_copy(
                update={"status": status_for_decision(analysis.decision), "ai_analysis": analysis}
            )
            self._replace(updated)
            await self._persist(updated)
            return updated
        finally:
            self.analyzing_ids.discard(tender_id)

    # --- document discovery for the creation form ---

    async def discover_from_summary(self, summary: PendingDocument) -> DiscoveryResult:
        """
        Fill the creation form from a summary file: AI metadata and PDF links are extracted concurrently,
        merged into one candidate list (plus the tender page when that list is short), then probed.
        """
        logs = ["> Iniciando motor de análisis..."]
        metadata, internal_links = await asyncio.gather(
            asyncio.to_thread(ai_service.extract_metadata_from_tender_file, summary),
            asyncio.to_thread(extract_links_from_pdf, summary.content),
        )
        logs.append("> Metadatos extraídos")
        logs.append(f"> PDF escaneado: {len(internal_links)} enlaces")

        candidates = list(internal_links) + list(metadata.all_links)
        candidates += [u for u in (metadata.admin_url, metadata.tech_url) if u]

        page_url = metadata.tender_page_url
        if not page_url:
            page_url = next(
                (link for link in internal_links if any(m in link.lower() for m in TENDER_PAGE_MARKERS)),
                None,
            )
        candidates = dedupe(candidates)
        if page_url and len(candidates) < 2:
            logs.append("> Buscando documentos en la web...")
            scraped = await asyncio.to_thread(scrape_docs_from_web, page_url, self.http_client)
            candidates = dedupe(candidates + scraped.all_urls())

        probe = await self._probe(candidates, logs)
        logs.append("> Proceso completado.")
        return DiscoveryResult(
            metadata=metadata,
            tender_page_url=page_url,
            candidates=candidates,
            admin=_discovered(probe.admin),
            tech=_discovered(probe.tech),
            logs=logs,
        )

    async def scrape_tender_page(self, page_url: str) -> DiscoveryResult:
        """Manual scan of a tender page for its PCAP/PPT."""
        logs = ["> Iniciando escaneo manual...", "> Buscando documentos en la web..."]
        scraped = await asyncio.to_thread(scrape_docs_from_web, page_url, self.http_client)
        candidates = dedupe(scraped.all_urls())
        probe = await self._probe(candidates, logs)
        return DiscoveryResult(
            metadata=TenderMetadata(),
            tender_page_url=page_url,
            candidates=candidates,
            admin=_discovered(probe.admin),
            tech=_discovered(probe.tech),
            logs=logs,
        )

    async def _probe(self, candidates: list[str], logs: list[str]) -> ProbeResult:
        if not candidates:
            return ProbeResult()
        logs.append(f"> Encontrados {len(candidates)} enlaces. Sondeando...")
        probe = await probe_links_in_batches(candidates, self.http_client)
        if probe.admin:
            logs.append("  [OK] PCAP descargado")
        if probe.tech:
            logs.append("  [OK] PPT descargado")
        return probe
