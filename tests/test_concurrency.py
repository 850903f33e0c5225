"""Concurrent writers on one owner must not lose updates."""

import threading

from conftest import FakeExtractor
from studykeep.analytics import AnalyticsAccumulator
from studykeep.analyzers import KeywordSubjectClassifier
from studykeep.ingest import DocumentIngestor
from studykeep.library import StudyLibrary
from studykeep.records import DocumentSet, History, Profile, load_model

THREADS = 8
PER_THREAD = 10


def _run_threads(target):
    errors = []

    def wrapper(n):
        try:
            target(n)
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=wrapper, args=(n,)) for n in range(THREADS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    assert errors == []


def test_record_question(store, owner):
    accumulator = AnalyticsAccumulator(store)

    def work(n):
        for _ in range(PER_THREAD):
            accumulator.record_question(owner, "biology", "remember", 80)

    _run_threads(work)

    analytics = load_model(store, owner, Profile).analytics
    assert analytics.questions_asked == THREADS * PER_THREAD
    assert analytics.subject_progress["biology"].questions_asked == THREADS * PER_THREAD
    assert analytics.subject_progress["biology"].average_accuracy == 80
    assert analytics.blooms_levels["remember"] == THREADS * PER_THREAD


def test_bookmarks_and_history(store, owner):
    library = StudyLibrary(store)

    def work(n):
        for i in range(PER_THREAD):
            library.add_bookmark(owner, f"note {n}-{i}")
            library.append_history(owner, f"q {n}-{i}", "a")

    _run_threads(work)

    assert len(library.list_bookmarks(owner)) == THREADS * PER_THREAD
    assert len(load_model(store, owner, History).root) == min(THREADS * PER_THREAD, 100)


def test_concurrent_ingest(store, owner):
    ingestor = DocumentIngestor(store, FakeExtractor(), KeywordSubjectClassifier())
    try:
        def work(n):
            for i in range(3):
                ingestor.ingest(owner, f"Document {n}-{i} about cells.".encode(), f"doc-{n}-{i}.txt")

        _run_threads(work)
    finally:
        ingestor.close()

    assert len(load_model(store, owner, DocumentSet).root) == THREADS * 3
