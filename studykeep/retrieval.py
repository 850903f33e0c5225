"""
Lexical retrieval over an owner's document chunks.

A chunk's score is the number of distinct query tokens (longer than three
characters) that occur in it as substrings. This is cheap overlap
counting, not semantic search.
"""

from typing import Iterable

from .record_store import RecordStore
from .records import DocumentSet, load_model
from .types import ScoredChunk

DEFAULT_MAX_RESULTS = 3
MIN_TOKEN_LENGTH = 4

# Characters of each chunk included in a framed prompt
CONTEXT_TRUNCATE = 800

CONTEXT_HEADER = "Use this reference material to help answer the question:"
CONTEXT_FOOTER = "Please provide a comprehensive answer using the reference material above."


def query_tokens(query: str) -> list[str]:
    """Lower-cased whitespace tokens of 4+ characters, first occurrence only."""
    seen: dict[str, None] = {}
    for token in query.lower().split():
        if len(token) >= MIN_TOKEN_LENGTH:
            seen.setdefault(token, None)
    return list(seen)


def score_text(tokens: Iterable[str], text: str) -> int:
    lower = text.lower()
    return sum(1 for token in tokens if token in lower)


def rank_chunks(documents: DocumentSet, query: str, max_results: int = DEFAULT_MAX_RESULTS) -> list[ScoredChunk]:
    tokens = query_tokens(query)
    if not tokens or max_results <= 0:
        return []

    scored: list[ScoredChunk] = []
    for doc in documents.root.values():
        for chunk in doc.chunks:
            score = score_text(tokens, chunk.text)
            if score > 0:
                scored.append(ScoredChunk(
                    text=chunk.text,
                    score=score,
                    document_name=doc.original_name,
                    document_id=doc.id,
                    chunk_id=chunk.id,
                ))

    # sort() is stable: ties keep document then chunk order
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored[:max_results]


def retrieve(
    store: RecordStore,
    owner: str,
    query: str,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> list[ScoredChunk]:
    """Best-matching chunks across all of ``owner``'s documents."""
    return rank_chunks(load_model(store, owner, DocumentSet), query, max_results)


def build_user_prompt(question: str, chunks: list[ScoredChunk]) -> str:
    """Frame ``question`` with reference material, or return it unchanged."""
    if not chunks:
        return question
    context = "\n\n".join(
        f'From "{c.document_name}": {c.text[:CONTEXT_TRUNCATE]}' for c in chunks
    )
    return f"{CONTEXT_HEADER}\n\n{context}\n\nQuestion: {question}\n\n{CONTEXT_FOOTER}"
