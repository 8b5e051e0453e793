import unittest

from licitaciones.services.link_extractor import (
    extract_links_from_pdf,
    extract_urls_from_text,
    normalize_url,
    scrape_docs_from_web,
)
from tests.mocks.mock_documents import make_pdf
from tests.mocks.mock_http_client import MockHttpClient

TENDER_PAGE = "https://contratacion.example.es/licitacion/42"
TENDER_PAGE_HTML = """
<html><body>
  <a href="#top">Inicio</a>
  <a href="/files/pliego_clausulas_administrativas.pdf">Pliego de cláusulas administrativas</a>
  <a href="/files/prescripciones.pdf" title="Prescripciones técnicas">Documento 2</a>
  <a href="https://example.org/otra/cosa">Otra cosa</a>
  <a href="/descargas?id=7">Descargar</a>
  <a href="javascript:void(0)">Imprimir</a>
</body></html>
"""


class TestUrlHelpers(unittest.TestCase):

    def test_normalize_url_adds_scheme_and_trims_punctuation(self):
        self.assertEqual(normalize_url("www.example.es/pliego.pdf."), "https://www.example.es/pliego.pdf")
        self.assertEqual(normalize_url("example.es/a),"), "https://example.es/a")
        self.assertEqual(normalize_url("http://example.es/a"), "http://example.es/a")
        self.assertIsNone(normalize_url("  "))

    def test_extract_urls_from_text(self):
        text = "Perfil: https://example.es/perfil y pliegos en www.example.org/doc.pdf, o example.es/x."
        self.assertEqual(
            extract_urls_from_text(text),
            ["https://example.es/perfil", "https://www.example.org/doc.pdf", "https://example.es/x"],
        )


class TestExtractLinksFromPdf(unittest.TestCase):

    def test_annotations_and_text_urls_without_duplicates(self):
        content = make_pdf(
            lines=["Pliegos: https://example.es/pcap.pdf", "Mas info en www.example.org/info"],
            links=["https://example.es/pcap.pdf", "https://example.es/ppt.pdf"],
        )
        links = extract_links_from_pdf(content)
        self.assertEqual(
            sorted(links),
            ["https://example.es/pcap.pdf", "https://example.es/ppt.pdf", "https://www.example.org/info"],
        )

    def test_not_a_pdf_returns_empty(self):
        self.assertEqual(extract_links_from_pdf(b"definitely not a pdf"), [])

    def test_pdf_without_links(self):
        self.assertEqual(extract_links_from_pdf(make_pdf(lines=["Sin enlaces"])), [])


class TestScrapeDocsFromWeb(unittest.TestCase):

    def setUp(self):
        self.client = MockHttpClient()
        self.client.add_page(TENDER_PAGE, TENDER_PAGE_HTML)

    def test_candidates_and_preferred_links(self):
        result = scrape_docs_from_web(TENDER_PAGE, self.client)
        self.assertEqual(
            result.candidates,
            [
                "https://contratacion.example.es/files/pliego_clausulas_administrativas.pdf",
                "https://contratacion.example.es/files/prescripciones.pdf",
                "https://contratacion.example.es/descargas?id=7",
            ],
        )
        self.assertEqual(result.admin_url, "https://contratacion.example.es/files/pliego_clausulas_administrativas.pdf")
        self.assertEqual(result.tech_url, "https://contratacion.example.es/files/prescripciones.pdf")
        self.assertEqual(self.client.request_count, 1)

    def test_unreachable_page_yields_empty_result(self):
        result = scrape_docs_from_web("https://example.es/caida", self.client)
        self.assertEqual(result.candidates, [])
        self.assertIsNone(result.admin_url)
        self.assertIsNone(result.tech_url)

    def test_empty_url(self):
        result = scrape_docs_from_web("", self.client)
        self.assertEqual(result.all_urls(), [])
        self.assertEqual(self.client.request_count, 0)
