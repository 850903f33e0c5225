"""
Document ingestion: raw bytes in, a registered document out.

Steps, in order: store the raw bytes, extract text (bounded by a
timeout), store the text, chunk it, classify its subject, extract
keywords, and merge the document into the owner's ``documents`` record.
A document is only registered once every earlier step has succeeded;
on failure the stored files are removed again.
"""

import logging
import threading
from pathlib import PurePath
from typing import Iterable, Optional

from .analyzers import DEFAULT_CHUNK_SIZE, create_chunks, extract_keywords
from .errors import ExtractionFailed, InvalidInput, NotFound, StudyKeepError
from .providers.base import Extraction, SubjectClassifier, TextExtractor
from .record_store import FILES_AREA, TEXT_AREA, RecordStore
from .records import DocumentEntry, DocumentSet, load_model, new_id, update_model
from .types import IngestFile, IngestOutcome

logger = logging.getLogger(__name__)

DEFAULT_EXTRACTION_TIMEOUT = 30.0
DEFAULT_MAX_FILE_SIZE = 100_000_000

# Suffixes kept on stored filenames; anything else is stored as .bin
KNOWN_SUFFIXES = frozenset({
    ".pdf", ".docx", ".html", ".htm", ".txt", ".md", ".markdown", ".text",
})


def stored_suffix(original_name: str) -> str:
    suffix = PurePath(original_name).suffix.lower()
    return suffix if suffix in KNOWN_SUFFIXES else ".bin"


class DocumentIngestor:
    """
    Turns uploaded files into chunked, classified documents.

    Args:
        store: RecordStore for blobs and the ``documents`` record
        extractor: TextExtractor collaborator
        classifier: SubjectClassifier collaborator
        chunk_size: Target chunk length in characters
        extraction_timeout: Seconds to wait for the extractor
        max_file_size: Largest accepted upload in bytes
    """

    def __init__(
        self,
        store: RecordStore,
        extractor: TextExtractor,
        classifier: SubjectClassifier,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        extraction_timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self._store = store
        self._extractor = extractor
        self._classifier = classifier
        self.chunk_size = chunk_size
        self.extraction_timeout = extraction_timeout
        self.max_file_size = max_file_size

    def ingest(
        self,
        owner: str,
        content: bytes,
        filename: str,
        size: Optional[int] = None,
    ) -> DocumentEntry:
        """
        Ingest one document for ``owner``.

        Raises:
            InvalidInput: Empty, oversized or unnamed upload
            ExtractionFailed: Extraction failed or timed out
            StorageFailure: The document could not be persisted
        """
        if not filename or not isinstance(filename, str):
            raise InvalidInput("filename is required")
        if not content:
            raise InvalidInput(f"Empty upload: {filename}")
        if len(content) > self.max_file_size:
            raise InvalidInput(
                f"{filename} is {len(content)} bytes; limit is {self.max_file_size}"
            )

        doc_id = new_id()
        stored_name = f"{doc_id}{stored_suffix(filename)}"
        text_name = f"{doc_id}.txt"
        self._store.write_blob(owner, FILES_AREA, stored_name, content)

        try:
            extraction = self._extract(content, filename)
            text = extraction.text
            self._store.write_blob(owner, TEXT_AREA, text_name, text.encode("utf-8"))

            entry = DocumentEntry(
                id=doc_id,
                original_name=filename,
                filename=stored_name,
                size=size if size is not None else len(content),
                pages=extraction.page_count,
                subject=self._classifier.classify(text),
                keywords=extract_keywords(text),
                chunks=create_chunks(text, self.chunk_size),
                text_length=len(text),
            )

            def register(documents: DocumentSet) -> None:
                documents.root[doc_id] = entry

            update_model(self._store, owner, DocumentSet, register)
        except BaseException:
            self._store.delete_blob(owner, FILES_AREA, stored_name)
            self._store.delete_blob(owner, TEXT_AREA, text_name)
            raise

        logger.info(
            "Ingested %s as %s for %s: %d chunks, subject %s",
            filename, doc_id, owner, len(entry.chunks), entry.subject,
        )
        return entry

    def ingest_batch(self, owner: str, files: Iterable[IngestFile]) -> list[IngestOutcome]:
        """Ingest several files; one file's failure never affects another."""
        outcomes = []
        for f in files:
            try:
                entry = self.ingest(owner, f.content, f.filename, f.size)
            except StudyKeepError as e:
                logger.warning("Failed to ingest %s for %s: %s", f.filename, owner, e)
                outcomes.append(IngestOutcome(
                    filename=f.filename, success=False,
                    error=e.reason or f"Failed to process {f.filename}",
                ))
            else:
                outcomes.append(IngestOutcome(
                    filename=f.filename, success=True,
                    document_id=entry.id, document=entry,
                ))
        return outcomes

    def list_documents(self, owner: str) -> list[DocumentEntry]:
        return list(load_model(self._store, owner, DocumentSet).root.values())

    def get_document(self, owner: str, doc_id: str) -> DocumentEntry:
        entry = load_model(self._store, owner, DocumentSet).root.get(doc_id)
        if entry is None:
            raise NotFound(f"Document not found: {doc_id}")
        return entry

    def get_text(self, owner: str, doc_id: str) -> str:
        self.get_document(owner, doc_id)
        data = self._store.read_blob(owner, TEXT_AREA, f"{doc_id}.txt")
        if data is None:
            raise NotFound(f"Extracted text missing for document {doc_id}")
        return data.decode("utf-8")

    def remove_document(self, owner: str, doc_id: str) -> DocumentEntry:
        """Unregister a document, then delete its stored files."""
        def unregister(documents: DocumentSet) -> Optional[DocumentEntry]:
            return documents.root.pop(doc_id, None)

        entry = update_model(self._store, owner, DocumentSet, unregister)
        if entry is None:
            raise NotFound(f"Document not found: {doc_id}")
        self._store.delete_blob(owner, FILES_AREA, entry.filename)
        self._store.delete_blob(owner, TEXT_AREA, f"{doc_id}.txt")
        logger.info("Removed document %s for %s", doc_id, owner)
        return entry

    def close(self) -> None:
        """No-op; extraction threads are daemons and are never awaited."""

    def _extract(self, content: bytes, filename: str) -> Extraction:
        """Run the extractor on its own daemon thread, bounded by the timeout.

        A thread that overruns is abandoned; it holds no shared worker and
        does not keep the interpreter alive.
        """
        outcome: dict = {}

        def run() -> None:
            try:
                outcome["extraction"] = self._extractor.extract(content, filename)
            except Exception as e:
                outcome["error"] = e

        worker = threading.Thread(target=run, name="studykeep-extract", daemon=True)
        worker.start()
        worker.join(self.extraction_timeout)
        if worker.is_alive():
            logger.warning("Extraction of %s timed out after %.1fs", filename, self.extraction_timeout)
            raise ExtractionFailed(f"Extraction timed out: {filename}")

        error = outcome.get("error")
        if error is not None:
            logger.warning("Extraction of %s failed: %s", filename, error)
            raise ExtractionFailed(f"Failed to process {filename}: {error}") from error
        if "extraction" not in outcome:
            raise ExtractionFailed(f"Failed to process {filename}")
        return outcome["extraction"]
