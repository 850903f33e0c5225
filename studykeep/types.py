"""
Data types for studykeep.
"""

import hashlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


# Bloom's taxonomy levels, lowest to highest cognitive demand
BLOOMS_LEVELS = ("remember", "understand", "apply", "analyze", "evaluate", "create")

DEFAULT_SUBJECT = "general"

# Owner IDs are hex digests; anything else could escape the users/ directory
_OWNER_ID_RE = re.compile(r'^[0-9a-f]{32}$')


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.

    All timestamps in studykeep are UTC, stored without timezone suffix.
    """
    return format_utc(datetime.now(timezone.utc))


def format_utc(dt: datetime) -> str:
    """Format an aware or naive-UTC datetime in canonical form."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Handles both the canonical format (no suffix) and ISO strings that
    include microseconds, 'Z', or '+00:00' suffixes.
    """
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def owner_id_for(email: str) -> str:
    """Derive the stable owner ID from an email address."""
    normalized = email.strip().lower()
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()


def validate_owner(owner: str) -> None:
    """Reject owner IDs that are not derived by owner_id_for()."""
    if not isinstance(owner, str) or not _OWNER_ID_RE.match(owner):
        raise ValueError(f"Invalid owner ID: {owner!r}")


@dataclass
class ScoredChunk:
    """A chunk selected by the retrieval engine."""
    text: str
    score: int
    document_name: str
    document_id: str
    chunk_id: str


@dataclass
class IngestFile:
    """One uploaded file awaiting ingestion."""
    content: bytes
    filename: str
    size: Optional[int] = None


@dataclass
class IngestOutcome:
    """Per-file result of a batch ingestion."""
    filename: str
    success: bool
    document_id: Optional[str] = None
    document: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"filename": self.filename, "success": self.success}
        if self.success:
            d["documentId"] = self.document_id
            d["metadata"] = self.document.to_json() if self.document is not None else None
        else:
            d["error"] = self.error
        return d


@dataclass
class LoginResult:
    """Outcome of a successful login."""
    token: str
    owner: str
    username: str
    preferences: dict = field(default_factory=dict)
    analytics: dict = field(default_factory=dict)


@dataclass
class AskResult:
    """Outcome of the question-answering flow."""
    answer: str
    confidence: int
    source: str
    blooms_level: str
    accuracy_score: int
    question: str
    mode: str
    subject: str
    sources: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "confidence": self.confidence,
            "source": self.source,
            "bloomsLevel": self.blooms_level,
            "accuracyScore": self.accuracy_score,
            "question": self.question,
            "mode": self.mode,
            "subject": self.subject,
            "pdfSources": self.sources,
        }
