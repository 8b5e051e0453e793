import unittest

from licitaciones.services.document_classifier import DocumentCategory, classify, normalize_text


class TestDocumentClassifier(unittest.TestCase):

    def test_admin_names(self):
        for name in ("PCAP_obra.pdf", "Pliego de Cláusulas Administrativas.pdf", "Anexo I.docx", "caratula.pdf"):
            with self.subTest(name=name):
                self.assertEqual(classify(name), DocumentCategory.ADMIN)

    def test_tech_names(self):
        for name in ("PPT.pdf", "Prescripciones Técnicas.pdf", "memoria_valorada.pdf", "proyecto_basico.pdf"):
            with self.subTest(name=name):
                self.assertEqual(classify(name), DocumentCategory.TECH)

    def test_admin_wins_when_both_match(self):
        self.assertEqual(classify("pcap_y_ppt.pdf"), DocumentCategory.ADMIN)

    def test_unknown(self):
        self.assertEqual(classify("documento_1.pdf", "https://example.org/files/1"), DocumentCategory.UNKNOWN)

    def test_url_is_considered(self):
        self.assertEqual(classify("file.pdf", "https://example.org/ppt/file.pdf"), DocumentCategory.TECH)

    def test_normalize_text_strips_accents(self):
        self.assertEqual(normalize_text("Cláusulas TÉCNICAS"), "clausulas tecnicas")
