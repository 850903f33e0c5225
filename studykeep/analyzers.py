"""
Text analysis for study material: sentence-aligned chunking, subject
classification, keyword extraction, Bloom's taxonomy classification and
answer accuracy scoring.

These are cheap lexical heuristics. Their outputs are stored
with each document and drive retrieval, so changing them changes what
existing stores return.
"""

import re
from collections import Counter
from typing import Optional

from .providers.base import get_registry
from .records import Chunk
from .types import DEFAULT_SUBJECT

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_KEYWORD_LIMIT = 15

_SENTENCE_END_RE = re.compile(r'[.!?]+')
_WORD_RE = re.compile(r'\b\w{4,}\b')

SUBJECT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "mathematics": ("equation", "theorem", "proof", "calculus", "algebra",
                    "geometry", "derivative", "integral", "matrix", "vector"),
    "physics": ("force", "energy", "momentum", "velocity", "acceleration",
                "mass", "gravity", "quantum", "thermodynamics", "wave"),
    "chemistry": ("molecule", "atom", "reaction", "compound", "element",
                  "periodic", "bond", "ion", "catalyst", "solution"),
    "biology": ("cell", "organism", "gene", "protein", "evolution",
                "species", "dna", "enzyme", "tissue", "ecosystem"),
    "programming": ("function", "variable", "algorithm", "code", "programming",
                    "software", "data structure", "class", "method", "loop"),
    "history": ("war", "empire", "civilization", "century", "revolution",
                "ancient", "medieval", "dynasty", "culture", "society"),
    "literature": ("poem", "novel", "author", "character", "plot",
                   "theme", "narrative", "metaphor", "symbolism", "genre"),
    "economics": ("market", "supply", "demand", "price", "economics",
                  "trade", "money", "inflation", "gdp", "business"),
    "psychology": ("behavior", "mind", "cognitive", "psychology", "mental",
                   "brain", "emotion", "learning", "memory", "personality"),
}

STOP_WORDS = frozenset({
    "this", "that", "with", "have", "will", "from", "they", "know", "want",
    "been", "good", "much", "some", "time", "very", "when", "come", "here",
    "just", "like", "long", "make", "many", "over", "such", "take", "than",
    "them", "well", "were",
})

# Checked in order; the first level with a matching keyword wins
BLOOMS_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("create", ("create", "design", "compose", "develop", "plan", "construct",
                "produce", "formulate", "invent", "synthesize")),
    ("evaluate", ("evaluate", "judge", "critique", "assess", "recommend",
                  "justify", "argue", "support", "value", "appraise")),
    ("analyze", ("analyze", "compare", "contrast", "differentiate", "examine",
                 "test", "categorize", "investigate", "organize")),
    ("apply", ("apply", "demonstrate", "use", "execute", "implement", "solve",
               "show", "perform", "experiment", "illustrate")),
    ("understand", ("explain", "describe", "summarize", "paraphrase", "interpret",
                    "classify", "discuss", "identify", "report")),
    ("remember", ("define", "list", "recall", "state", "name", "label",
                  "repeat", "who", "what", "when", "where")),
)
DEFAULT_BLOOMS_LEVEL = "understand"


# -----------------------------------------------------------------------------
# Chunking
# -----------------------------------------------------------------------------

def split_sentences(text: str) -> list[str]:
    """Split on runs of sentence terminators, dropping empty sentences."""
    sentences = (s.strip() for s in _SENTENCE_END_RE.split(text))
    return [s for s in sentences if s]


def create_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[Chunk]:
    """
    Group whole sentences into chunks of at least ``chunk_size`` characters.

    Sentences accumulate into the current chunk, which is closed as soon as
    its text reaches ``chunk_size``. Every chunk but the last therefore
    meets the target, and no sentence is ever split across chunks.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive: {chunk_size}")

    chunks: list[Chunk] = []
    current: list[str] = []
    # Length of ". ".join(current) + "."
    length = 0

    def close() -> None:
        body = ". ".join(current) + "."
        chunks.append(Chunk(id=f"chunk-{len(chunks)}", text=body, length=len(body)))

    for sentence in split_sentences(text):
        length += len(sentence) + (2 if current else 1)
        current.append(sentence)
        if length >= chunk_size:
            close()
            current = []
            length = 0

    if current:
        close()
    return chunks


# -----------------------------------------------------------------------------
# Subject classification
# -----------------------------------------------------------------------------

def _count_overlapping(needle: str, haystack: str) -> int:
    return len(re.findall(f"(?={re.escape(needle)})", haystack))


def subject_scores(text: str, table: dict[str, tuple[str, ...]] = SUBJECT_KEYWORDS) -> dict[str, int]:
    lower = text.lower()
    return {
        subject: sum(_count_overlapping(kw, lower) for kw in keywords)
        for subject, keywords in table.items()
    }


def detect_subject(text: str, table: dict[str, tuple[str, ...]] = SUBJECT_KEYWORDS) -> str:
    """Subject with the strictly highest keyword score, else ``general``."""
    scores = subject_scores(text, table)
    best = max(scores.values(), default=0)
    if best == 0:
        return DEFAULT_SUBJECT
    winners = [subject for subject, score in scores.items() if score == best]
    return winners[0] if len(winners) == 1 else DEFAULT_SUBJECT


class KeywordSubjectClassifier:
    """
    Fixed keyword-table subject classifier.

    Args:
        subjects: Optional replacement table {subject: [keywords]}
    """

    def __init__(self, subjects: Optional[dict[str, list[str]]] = None):
        if subjects:
            self._table = {k: tuple(v) for k, v in subjects.items()}
        else:
            self._table = SUBJECT_KEYWORDS

    def classify(self, text: str) -> str:
        return detect_subject(text, self._table)


# -----------------------------------------------------------------------------
# Keywords
# -----------------------------------------------------------------------------

def extract_keywords(text: str, limit: int = DEFAULT_KEYWORD_LIMIT) -> list[str]:
    """Most frequent words of four or more letters, excluding stop words.

    Ties keep first-occurrence order.
    """
    words = (w for w in _WORD_RE.findall(text.lower()) if w not in STOP_WORDS)
    return [word for word, _ in Counter(words).most_common(limit)]


# -----------------------------------------------------------------------------
# Questions and answers
# -----------------------------------------------------------------------------

def analyze_blooms_level(question: str) -> str:
    lower = str(question).lower()
    for level, keywords in BLOOMS_KEYWORDS:
        if any(kw in lower for kw in keywords):
            return level
    return DEFAULT_BLOOMS_LEVEL


def calculate_accuracy_score(
    answer: Optional[str],
    confidence: Optional[int] = 50,
    source: str = "",
    has_context: bool = False,
) -> int:
    """Heuristic 0..100 confidence for an answer, given where it came from."""
    score = confidence if isinstance(confidence, int) else 50
    lowered = str(source).lower()
    if "dataset" in lowered:
        score += 30
    if "pdf" in lowered or has_context:
        score += 25
    if isinstance(answer, str) and len(answer) > 100:
        score += 10
    return min(max(score, 0), 100)


# Register providers
get_registry().register_classifier("keyword", KeywordSubjectClassifier)
