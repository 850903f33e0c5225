"""Tests for lexical retrieval and prompt framing."""

from studykeep.records import Chunk, DocumentEntry, DocumentSet, save_model
from studykeep.retrieval import (
    CONTEXT_FOOTER,
    CONTEXT_HEADER,
    build_user_prompt,
    query_tokens,
    rank_chunks,
    retrieve,
    score_text,
)
from studykeep.types import ScoredChunk

CELL_TEXT = "The mitochondria is the powerhouse of the cell. Cells divide through mitosis."


def _doc(doc_id, name, *texts):
    return DocumentEntry(
        id=doc_id,
        original_name=name,
        filename=f"{doc_id}.txt",
        chunks=[Chunk(id=f"chunk-{i}", text=t, length=len(t)) for i, t in enumerate(texts)],
    )


def _docs(*entries):
    return DocumentSet({e.id: e for e in entries})


class TestTokens:
    def test_short_tokens_dropped(self):
        assert query_tokens("what is the powerhouse of the cell") == ["what", "powerhouse", "cell"]

    def test_duplicates_dropped(self):
        assert query_tokens("cell Cell CELL") == ["cell"]

    def test_only_short_words(self):
        assert query_tokens("is it on") == []


class TestRanking:
    def test_cell_scenario(self, store, owner):
        save_model(store, owner, _docs(_doc("d1", "cells.txt", CELL_TEXT)))

        results = retrieve(store, owner, "what is the powerhouse of the cell")

        assert len(results) == 1
        assert results[0].score == 2
        assert results[0].text == CELL_TEXT
        assert results[0].document_name == "cells.txt"
        assert results[0].chunk_id == "chunk-0"

    def test_no_documents(self, store, owner):
        assert retrieve(store, owner, "powerhouse") == []

    def test_zero_scores_excluded(self):
        docs = _docs(_doc("d1", "a.txt", "nothing to see"))
        assert rank_chunks(docs, "powerhouse") == []

    def test_duplicate_tokens_count_once(self):
        assert score_text(query_tokens("cell cell cell"), CELL_TEXT) == 1

    def test_more_matching_tokens_never_lowers_score(self):
        base = score_text(query_tokens("powerhouse"), CELL_TEXT)
        more = score_text(query_tokens("powerhouse mitosis"), CELL_TEXT)
        assert more >= base
        assert more == 2

    def test_best_first_and_limited(self):
        docs = _docs(
            _doc("d1", "a.txt", "cell only", "cell and mitosis", "cell mitosis powerhouse"),
            _doc("d2", "b.txt", "mitosis only"),
        )
        results = rank_chunks(docs, "cell mitosis powerhouse", max_results=2)
        assert [(r.document_id, r.chunk_id, r.score) for r in results] == [
            ("d1", "chunk-2", 3),
            ("d1", "chunk-1", 2),
        ]

    def test_ties_keep_document_then_chunk_order(self):
        docs = _docs(
            _doc("d1", "a.txt", "about cells", "more cells"),
            _doc("d2", "b.txt", "cells again"),
        )
        results = rank_chunks(docs, "cells", max_results=3)
        assert [(r.document_id, r.chunk_id) for r in results] == [
            ("d1", "chunk-0"), ("d1", "chunk-1"), ("d2", "chunk-0"),
        ]

    def test_substring_match(self):
        docs = _docs(_doc("d1", "a.txt", "Cellular respiration"))
        assert rank_chunks(docs, "cell")[0].score == 1


class TestPromptFraming:
    def test_no_context_returns_question(self):
        assert build_user_prompt("What is a cell?", []) == "What is a cell?"

    def test_exact_framing(self):
        chunks = [
            ScoredChunk(text="First passage.", score=2, document_name="a.pdf", document_id="d1", chunk_id="chunk-0"),
            ScoredChunk(text="Second passage.", score=1, document_name="b.pdf", document_id="d2", chunk_id="chunk-0"),
        ]
        expected = (
            f"{CONTEXT_HEADER}\n\n"
            'From "a.pdf": First passage.\n\n'
            'From "b.pdf": Second passage.\n\n'
            "Question: What is a cell?\n\n"
            f"{CONTEXT_FOOTER}"
        )
        assert build_user_prompt("What is a cell?", chunks) == expected

    def test_long_chunk_truncated(self):
        chunk = ScoredChunk(text="x" * 1000, score=1, document_name="a.pdf", document_id="d1", chunk_id="chunk-0")
        prompt = build_user_prompt("q", [chunk])
        assert 'From "a.pdf": ' + "x" * 800 + "\n\n" in prompt
        assert "x" * 801 not in prompt
