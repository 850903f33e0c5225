"""
Shared pytest fixtures for studykeep tests.

Provides a controllable clock and fake collaborators so that no test
touches the network or needs real document parsers.
"""

import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from studykeep.api import StudyKeeper
from studykeep.errors import AnswerError
from studykeep.providers.base import Extraction, ExtractionError, PromptConfig
from studykeep.record_store import RecordStore
from studykeep.types import owner_id_for

CELL_TEXT = "The mitochondria is the powerhouse of the cell. Cells divide through mitosis."


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeExtractor:
    """Decodes bytes as UTF-8; optionally slow or failing."""

    suffixes = (".txt", ".pdf")

    def __init__(self, delay: float = 0.0, fail: bool = False, pages: int = 1):
        self.delay = delay
        self.fail = fail
        self.pages = pages
        self.calls = 0

    def extract(self, content: bytes, filename: str) -> Extraction:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ExtractionError(f"cannot read {filename}")
        return Extraction(text=content.decode("utf-8"), page_count=self.pages)


class FakeAnswerProvider:
    """Returns canned answers and records every request."""

    def __init__(self, answer: str = "Mitochondria produce energy for the cell.", error: AnswerError | None = None):
        self.answer_text = answer
        self.error = error
        self.calls: list[tuple[PromptConfig, str]] = []

    def answer(self, config: PromptConfig, user_prompt: str) -> str:
        self.calls.append((config, user_prompt))
        if self.error is not None:
            raise self.error
        return self.answer_text


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "store")


@pytest.fixture
def owner() -> str:
    return owner_id_for("ada@example.com")


@pytest.fixture
def answerer():
    return FakeAnswerProvider()


@pytest.fixture
def keeper(tmp_path: Path, clock, answerer):
    """StudyKeeper over a temp store with fake collaborators."""
    kp = StudyKeeper(
        tmp_path / "store",
        answerer=answerer,
        extractor=FakeExtractor(),
        clock=clock,
    )
    yield kp
    kp.close()


@pytest.fixture
def account(keeper):
    """A registered, logged-in account: (owner, token)."""
    keeper.register("ada@example.com", "secret", "ada")
    result = keeper.login("ada@example.com", "secret")
    return result.owner, result.token
