"""
Text extractors for uploaded study documents.
"""

import io
from pathlib import PurePath

from .base import Extraction, ExtractionError, get_registry


def extract_html_text(html_content: str) -> str:
    """
    Extract readable text from HTML, removing scripts and styles.

    Args:
        html_content: Raw HTML string

    Returns:
        Extracted text with whitespace normalized
    """
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(html_content, "html.parser")

    # Remove script and style elements
    for script in soup(["script", "style"]):
        script.decompose()

    text = soup.get_text()

    # Clean up whitespace
    lines = (line.strip() for line in text.splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    return '\n'.join(chunk for chunk in chunks if chunk)


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return content.decode("latin-1")


class PdfTextExtractor:
    """Extracts the text layer of a PDF with pypdf."""

    suffixes = (".pdf",)

    def extract(self, content: bytes, filename: str) -> Extraction:
        from pypdf import PdfReader

        try:
            reader = PdfReader(io.BytesIO(content))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from PDF {filename}: {e}") from e

        text = "\n\n".join(p for p in pages if p.strip())
        if not text:
            raise ExtractionError(f"No text extracted from PDF: {filename}")
        return Extraction(text=text, page_count=len(pages))


class DocxTextExtractor:
    """Extracts paragraph and table text from a DOCX file."""

    suffixes = (".docx",)

    def extract(self, content: bytes, filename: str) -> Extraction:
        from docx import Document as DocxDocument

        try:
            doc = DocxDocument(io.BytesIO(content))
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from DOCX {filename}: {e}") from e

        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))

        if not parts:
            raise ExtractionError(f"No text extracted from DOCX: {filename}")
        return Extraction(text="\n\n".join(parts))


class HtmlTextExtractor:
    suffixes = (".html", ".htm")

    def extract(self, content: bytes, filename: str) -> Extraction:
        text = extract_html_text(_decode(content))
        if not text.strip():
            raise ExtractionError(f"No text extracted from HTML: {filename}")
        return Extraction(text=text)


class PlainTextExtractor:
    suffixes = (".txt", ".md", ".markdown", ".text")

    def extract(self, content: bytes, filename: str) -> Extraction:
        text = _decode(content)
        if not text.strip():
            raise ExtractionError(f"Empty document: {filename}")
        return Extraction(text=text)


class CompositeExtractor:
    """
    Dispatches to the extractor registered for a filename's suffix.

    This is the default extractor used by StudyKeeper.
    """

    def __init__(self, extractors: list | None = None):
        """
        Args:
            extractors: Extractors to consult, in order. If None, uses defaults.
        """
        if extractors is None:
            extractors = [
                PdfTextExtractor(),
                DocxTextExtractor(),
                HtmlTextExtractor(),
                PlainTextExtractor(),
            ]
        self._by_suffix: dict[str, object] = {}
        for extractor in extractors:
            for suffix in extractor.suffixes:
                self._by_suffix.setdefault(suffix, extractor)

    @property
    def suffixes(self) -> tuple[str, ...]:
        return tuple(self._by_suffix)

    def supports(self, filename: str) -> bool:
        return PurePath(filename).suffix.lower() in self._by_suffix

    def extract(self, content: bytes, filename: str) -> Extraction:
        suffix = PurePath(filename).suffix.lower()
        extractor = self._by_suffix.get(suffix)
        if extractor is None:
            raise ExtractionError(f"Unsupported document type: {suffix or filename}")
        return extractor.extract(content, filename)


# Register providers
_registry = get_registry()
_registry.register_extractor("pdf", PdfTextExtractor)
_registry.register_extractor("docx", DocxTextExtractor)
_registry.register_extractor("html", HtmlTextExtractor)
_registry.register_extractor("text", PlainTextExtractor)
_registry.register_extractor("composite", CompositeExtractor)
