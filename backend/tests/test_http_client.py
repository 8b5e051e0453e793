import os
import unittest
from unittest.mock import MagicMock, patch
from urllib.parse import quote

import requests

from licitaciones.services.http_client import (
    DEFAULT_RELAYS,
    DIRECT,
    HttpClient,
    filename_from_response,
    relay_templates,
)

RELAY = "https://relay.example.net/raw?url={url}"
DOCUMENT_URL = "https://contratacion.example.es/docs/pliego.pdf?id=7&tipo=pcap"


def _response(content: bytes, headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.content = content
    response.headers = headers or {}
    response.raise_for_status.return_value = None
    return response


class TestRelayTemplates(unittest.TestCase):

    @patch.dict(os.environ, {"LINK_RELAYS": ""})
    def test_default_chain(self):
        self.assertEqual(relay_templates(), DEFAULT_RELAYS)
        self.assertEqual(DEFAULT_RELAYS[0], DIRECT)

    @patch.dict(os.environ, {"LINK_RELAYS": "{url}, https://proxy.example.net/?u={url} ,sin-marcador"})
    def test_custom_chain_keeps_templates_with_placeholder(self):
        self.assertEqual(relay_templates(), ("{url}", "https://proxy.example.net/?u={url}"))

    @patch.dict(os.environ, {"LINK_RELAYS": "sin-marcador"})
    def test_invalid_chain_falls_back_to_default(self):
        self.assertEqual(relay_templates(), DEFAULT_RELAYS)


class TestFilenameFromResponse(unittest.TestCase):

    def test_rfc5987_content_disposition(self):
        header = "attachment; filename*=UTF-8''Pliego%20T%C3%A9cnico.pdf"
        self.assertEqual(filename_from_response(DOCUMENT_URL, header), "Pliego Técnico.pdf")

    def test_quoted_content_disposition(self):
        self.assertEqual(filename_from_response(DOCUMENT_URL, 'attachment; filename="PCAP.pdf"'), "PCAP.pdf")

    def test_url_path_fallback(self):
        self.assertEqual(filename_from_response("https://example.es/docs/PPT%20obra.pdf", None), "PPT obra.pdf")

    def test_default_name(self):
        self.assertEqual(filename_from_response("https://example.es/", None), "document.pdf")


class TestHttpClient(unittest.TestCase):

    def setUp(self):
        self.client = HttpClient(relays=(DIRECT, RELAY))

    def test_via_quotes_the_target(self):
        self.assertEqual(HttpClient._via(DIRECT, DOCUMENT_URL), DOCUMENT_URL)
        self.assertEqual(
            HttpClient._via(RELAY, DOCUMENT_URL),
            "https://relay.example.net/raw?url=" + quote(DOCUMENT_URL, safe=""),
        )
        self.assertNotIn("&tipo", HttpClient._via(RELAY, DOCUMENT_URL))

    @patch("licitaciones.services.http_client.requests.get")
    def test_falls_back_to_relay_when_direct_fails(self, get):
        get.side_effect = [
            requests.exceptions.ConnectionError("blocked"),
            _response(b"%PDF-1.4 pcap", {
                "content-type": "application/pdf",
                "content-disposition": 'attachment; filename="PCAP_obra.pdf"',
            }),
        ]
        resource = self.client.fetch(DOCUMENT_URL)

        self.assertIsNotNone(resource)
        self.assertEqual(resource.url, DOCUMENT_URL)
        self.assertEqual(resource.content, b"%PDF-1.4 pcap")
        self.assertEqual(resource.content_type, "application/pdf")
        self.assertEqual(resource.filename, "PCAP_obra.pdf")
        self.assertEqual(self.client.request_count, 2)
        targets = [c.args[0] for c in get.call_args_list]
        self.assertEqual(targets, [DOCUMENT_URL, HttpClient._via(RELAY, DOCUMENT_URL)])

    @patch("licitaciones.services.http_client.requests.get")
    def test_direct_success_skips_relay(self, get):
        get.return_value = _response(b"%PDF-1.4", {"content-type": "application/pdf"})
        resource = self.client.fetch(DOCUMENT_URL)
        self.assertEqual(resource.filename, "pliego.pdf")
        self.assertEqual(get.call_count, 1)

    @patch("licitaciones.services.http_client.requests.get")
    def test_every_relay_failing_returns_none(self, get):
        not_found = _response(b"")
        not_found.raise_for_status.side_effect = requests.exceptions.HTTPError("404")
        get.side_effect = [requests.exceptions.Timeout("slow"), not_found]
        self.assertIsNone(self.client.fetch(DOCUMENT_URL))
        self.assertEqual(self.client.request_count, 2)

    @patch("licitaciones.services.http_client.requests.get")
    def test_get_soup(self, get):
        get.return_value = _response(
            '<html><a href="/docs/ppt.pdf">Pliego técnico</a></html>'.encode("utf-8"),
            {"content-type": "text/html; charset=utf-8"},
        )
        soup = self.client.get_soup("https://contratacion.example.es/licitacion/42")
        self.assertEqual(soup.find("a")["href"], "/docs/ppt.pdf")
        self.assertEqual(soup.find("a").get_text(), "Pliego técnico")

    @patch("licitaciones.services.http_client.requests.get")
    def test_get_soup_unreachable(self, get):
        get.side_effect = requests.exceptions.ConnectionError("down")
        self.assertIsNone(self.client.get_soup("https://contratacion.example.es/licitacion/42"))
