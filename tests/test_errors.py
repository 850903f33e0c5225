"""Tests for error kinds and the error/ops logs."""

import logging

from studykeep.errors import (
    AccountExists,
    AnswerTimeout,
    ExtractionFailed,
    InvalidCredentials,
    InvalidInput,
    NotFound,
    StorageFailure,
    Unavailable,
    log_exception,
)
from studykeep.logging_config import configure_ops_log, remove_ops_log


def test_kinds_and_statuses():
    assert (NotFound.kind, NotFound.status) == ("not_found", 404)
    assert (InvalidInput.kind, InvalidInput.status) == ("invalid_input", 400)
    assert (Unavailable.kind, Unavailable.status) == ("unavailable", 503)
    assert StorageFailure.status == 500
    assert ExtractionFailed.status == 400
    assert issubclass(AnswerTimeout, Unavailable)
    assert issubclass(InvalidCredentials, InvalidInput)
    assert issubclass(AccountExists, InvalidInput)


def test_reason():
    assert NotFound("Document not found: x").reason == "Document not found: x"


def test_log_exception(tmp_path, monkeypatch):
    monkeypatch.setenv("STUDYKEEP_STORE_PATH", str(tmp_path))
    try:
        raise StorageFailure("disk full")
    except StorageFailure as e:
        path = log_exception(e, context="test")

    assert path == tmp_path / "studykeep-errors.log"
    content = path.read_text()
    assert "test StorageFailure: disk full" in content
    assert "Traceback" in content


def test_ops_log(tmp_path):
    handler = configure_ops_log(tmp_path)
    try:
        logging.getLogger("studykeep.test").info("ingested cells.txt")
    finally:
        remove_ops_log(handler)

    assert "ingested cells.txt" in (tmp_path / "studykeep-ops.log").read_text()
    assert handler not in logging.getLogger("studykeep").handlers
