"""
Error types and error logging for studykeep.

Every failure the core can report is a StudyKeepError carrying a ``kind``
and an HTTP-like ``status`` so that a request layer can map it without
knowing the internals. Full stack traces go to a log file while callers
show clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class StudyKeepError(Exception):
    """Base class for all studykeep errors."""

    kind = "error"
    status = 500

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason


class NotFound(StudyKeepError):
    """Record, document, subject or account absent. Callers substitute a default."""

    kind = "not_found"
    status = 404


class CorruptRecord(StudyKeepError):
    """A primary record file could not be read or parsed."""

    kind = "corrupt"
    status = 500


class Unavailable(StudyKeepError):
    """A collaborator timed out or the network failed."""

    kind = "unavailable"
    status = 503


class AnswerError(Unavailable):
    """The answer-generation collaborator failed."""


class AnswerTimeout(AnswerError):
    pass


class AnswerAuthError(AnswerError):
    pass


class MalformedAnswer(AnswerError):
    pass


class InvalidInput(StudyKeepError):
    """Malformed request payload."""

    kind = "invalid_input"
    status = 400


class InvalidCredentials(InvalidInput):
    pass


class AccountExists(InvalidInput):
    pass


class StorageFailure(StudyKeepError):
    """A write could not be completed, even after restoring the backup."""

    kind = "storage_failure"
    status = 500


class ExtractionFailed(StudyKeepError):
    """Text could not be extracted from an ingested document."""

    kind = "invalid_input"
    status = 400


def _error_log_path() -> Path:
    """Resolve error log path, respecting STUDYKEEP_STORE_PATH."""
    store = os.environ.get("STUDYKEEP_STORE_PATH")
    if store:
        return Path(store) / "studykeep-errors.log"
    return Path.home() / ".studykeep" / "studykeep-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write(f" {type(exc).__name__}: {exc}\n")
            f.write(traceback.format_exc())
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
