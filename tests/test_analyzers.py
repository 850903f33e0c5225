"""Tests for chunking, subject detection, keywords, Bloom's levels and scoring."""

import pytest

from studykeep.analyzers import (
    KeywordSubjectClassifier,
    analyze_blooms_level,
    calculate_accuracy_score,
    create_chunks,
    detect_subject,
    extract_keywords,
    split_sentences,
    subject_scores,
)

CELL_TEXT = "The mitochondria is the powerhouse of the cell. Cells divide through mitosis."


class TestSplitSentences:
    def test_splits_on_terminator_runs(self):
        assert split_sentences("One. Two?! Three...") == ["One", "Two", "Three"]

    def test_drops_empty(self):
        assert split_sentences("  ...  ") == []


class TestChunks:
    def test_short_text_is_one_chunk(self):
        chunks = create_chunks(CELL_TEXT)
        assert len(chunks) == 1
        assert chunks[0].text == CELL_TEXT
        assert chunks[0].id == "chunk-0"
        assert chunks[0].length == len(CELL_TEXT)

    def test_sentences_preserved_in_order(self):
        text = " ".join(f"Sentence number {i} covers topic {i}." for i in range(60))
        chunks = create_chunks(text, chunk_size=100)

        rejoined = [s for c in chunks for s in split_sentences(c.text)]
        assert rejoined == split_sentences(text)
        assert [c.id for c in chunks] == [f"chunk-{i}" for i in range(len(chunks))]

    def test_all_but_last_reach_target(self):
        text = " ".join(f"Sentence number {i} covers topic {i}." for i in range(60))
        chunks = create_chunks(text, chunk_size=100)

        assert len(chunks) > 1
        for chunk in chunks[:-1]:
            assert chunk.length >= 100
        for chunk in chunks:
            assert chunk.length == len(chunk.text)

    def test_long_sentence_is_not_split(self):
        long_sentence = "word " * 100
        chunks = create_chunks(long_sentence.strip() + ". Short one.", chunk_size=50)
        assert len(chunks) == 2
        assert chunks[1].text == "Short one."

    def test_empty_text(self):
        assert create_chunks("") == []

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            create_chunks(CELL_TEXT, chunk_size=0)


class TestSubjects:
    def test_biology_scenario(self):
        scores = subject_scores(CELL_TEXT)
        assert scores["biology"] == 2
        assert all(score == 0 for subject, score in scores.items() if subject != "biology")
        assert detect_subject(CELL_TEXT) == "biology"

    def test_tie_is_general(self):
        assert detect_subject("cell force") == "general"

    def test_no_match_is_general(self):
        assert detect_subject("") == "general"
        assert detect_subject("nothing relevant here") == "general"

    def test_case_insensitive(self):
        assert detect_subject("EQUATION and THEOREM") == "mathematics"

    def test_deterministic(self):
        assert {detect_subject(CELL_TEXT) for _ in range(10)} == {"biology"}

    def test_custom_table(self):
        classifier = KeywordSubjectClassifier({"astronomy": ["planet", "orbit"]})
        assert classifier.classify("The planet keeps its orbit") == "astronomy"
        assert classifier.classify(CELL_TEXT) == "general"


class TestKeywords:
    def test_scenario(self):
        keywords = extract_keywords(CELL_TEXT)
        for word in ("mitochondria", "powerhouse", "cell", "cells", "divide", "through", "mitosis"):
            assert word in keywords
        assert "the" not in keywords

    def test_frequency_order(self):
        assert extract_keywords("alpha beta beta gamma gamma gamma") == ["gamma", "beta", "alpha"]

    def test_stop_words_excluded(self):
        assert extract_keywords("this that with have will from") == []

    def test_limit(self):
        text = " ".join(f"word{i:03d}" for i in range(40))
        assert len(extract_keywords(text)) == 15
        assert len(extract_keywords(text, limit=5)) == 5


class TestBloomsLevel:
    @pytest.mark.parametrize("question,level", [
        ("Design an experiment on osmosis", "create"),
        ("Judge the strength of this argument", "evaluate"),
        ("Compare mitosis and meiosis", "analyze"),
        ("Solve for x", "apply"),
        ("Explain photosynthesis", "understand"),
        ("What is a cell?", "remember"),
        ("Tell me about cells", "understand"),
    ])
    def test_levels(self, question, level):
        assert analyze_blooms_level(question) == level

    def test_highest_level_wins(self):
        assert analyze_blooms_level("Define and then design a model") == "create"


class TestAccuracyScore:
    def test_plain_ai_answer(self):
        assert calculate_accuracy_score("short", 75, "AI Assistant") == 75

    def test_context_and_long_answer_clamped(self):
        assert calculate_accuracy_score("x" * 101, 75, "AI + PDF Reference", True) == 100

    def test_dataset_bonus(self):
        assert calculate_accuracy_score("a", 60, "Local Dataset (AI unavailable)") == 90

    def test_defaults(self):
        assert calculate_accuracy_score(None, None) == 50

    def test_clamped_at_zero(self):
        assert calculate_accuracy_score("a", -50) == 0
