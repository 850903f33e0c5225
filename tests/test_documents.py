"""Tests for document text extractors and the provider registry."""

import io

import pytest

from studykeep.providers import get_registry
from studykeep.providers.base import ExtractionError
from studykeep.providers.documents import (
    CompositeExtractor,
    DocxTextExtractor,
    HtmlTextExtractor,
    PdfTextExtractor,
    PlainTextExtractor,
    extract_html_text,
)


class TestHtml:
    def test_strips_scripts_and_styles(self):
        html = (
            "<html><head><style>p {color: red}</style></head>"
            "<body><script>alert(1)</script><p>Cells divide.</p><p>Through mitosis.</p></body></html>"
        )
        text = extract_html_text(html)
        assert "Cells divide." in text
        assert "Through mitosis." in text
        assert "alert" not in text
        assert "color" not in text

    def test_empty_html(self):
        with pytest.raises(ExtractionError):
            HtmlTextExtractor().extract(b"<html><body></body></html>", "empty.html")


class TestPlainText:
    def test_utf8(self):
        assert PlainTextExtractor().extract("Café notes".encode("utf-8"), "n.txt").text == "Café notes"

    def test_latin1_fallback(self):
        assert PlainTextExtractor().extract("Café".encode("latin-1"), "n.txt").text == "Café"

    def test_blank(self):
        with pytest.raises(ExtractionError):
            PlainTextExtractor().extract(b"   \n", "blank.txt")


class TestDocx:
    def test_paragraphs_and_tables(self):
        from docx import Document

        doc = Document()
        doc.add_paragraph("Mitochondria make ATP.")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "Organelle"
        table.rows[0].cells[1].text = "Function"
        buf = io.BytesIO()
        doc.save(buf)

        text = DocxTextExtractor().extract(buf.getvalue(), "cells.docx").text

        assert "Mitochondria make ATP." in text
        assert "Organelle | Function" in text

    def test_not_a_docx(self):
        with pytest.raises(ExtractionError):
            DocxTextExtractor().extract(b"not a zip", "broken.docx")


class TestPdf:
    def test_not_a_pdf(self):
        with pytest.raises(ExtractionError):
            PdfTextExtractor().extract(b"definitely not a pdf", "broken.pdf")


class TestComposite:
    def test_dispatch_by_suffix(self):
        extractor = CompositeExtractor()
        assert extractor.extract(b"Plain notes.", "NOTES.TXT").text == "Plain notes."
        assert "Cells" in extractor.extract(b"<p>Cells</p>", "page.htm").text

    def test_supports(self):
        extractor = CompositeExtractor()
        assert extractor.supports("a.pdf")
        assert extractor.supports("a.markdown")
        assert not extractor.supports("a.png")
        assert ".docx" in extractor.suffixes

    def test_unsupported(self):
        with pytest.raises(ExtractionError, match="Unsupported"):
            CompositeExtractor().extract(b"\x89PNG", "photo.png")

    def test_custom_list(self):
        extractor = CompositeExtractor([PlainTextExtractor()])
        assert extractor.suffixes == (".txt", ".md", ".markdown", ".text")


class TestRegistry:
    def test_builtin_providers(self):
        registry = get_registry()
        assert {"pdf", "docx", "html", "text", "composite"} <= set(registry.list_extractor_providers())
        assert "groq" in registry.list_answer_providers()
        assert "keyword" in registry.list_classifier_providers()

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown answer provider"):
            get_registry().create_answer("nope")

    def test_bad_params(self):
        with pytest.raises(RuntimeError):
            get_registry().create_classifier("keyword", {"colour": "red"})

    def test_create_with_params(self):
        classifier = get_registry().create_classifier("keyword", {"subjects": {"astronomy": ["planet"]}})
        assert classifier.classify("a planet") == "astronomy"
