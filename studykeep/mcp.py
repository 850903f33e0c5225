"""
MCP stdio server for studykeep: study companion tools for AI agents.

Exposes StudyKeeper operations as MCP tools so local agents can ingest
notes, look up passages and ask questions on a student's behalf.

Usage:
    studykeep mcp                   # stdio server (via CLI)

Tools act for the session given by their ``token`` argument, or by
STUDYKEEP_TOKEN when it is omitted. All StudyKeeper calls are serialized
through a single asyncio.Lock.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from .api import StudyKeeper
from .errors import StudyKeepError

# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "studykeep",
    instructions=(
        "Study companion. Ingest course documents, find relevant passages, "
        "ask questions answered with that reference material, and keep "
        "bookmarks and flashcards."
    ),
)

_keeper: Optional[StudyKeeper] = None
_lock = asyncio.Lock()


def _get_keeper() -> StudyKeeper:
    """Lazy-init StudyKeeper (respects STUDYKEEP_STORE_PATH env).

    Must be called inside ``async with _lock``.
    """
    global _keeper
    if _keeper is None:
        store_path = os.environ.get("STUDYKEEP_STORE_PATH")
        _keeper = StudyKeeper(store_path=Path(store_path) if store_path else None)
    return _keeper


def _owner(keeper: StudyKeeper, token: Optional[str]) -> str:
    return keeper.authenticate(token or os.environ.get("STUDYKEEP_TOKEN"))


# ---------------------------------------------------------------------------
# Tool annotations
# ---------------------------------------------------------------------------

_READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False)
_WRITE = ToolAnnotations(destructiveHint=False, idempotentHint=False)

TokenField = Annotated[Optional[str], Field(
    description="Session token. Defaults to STUDYKEEP_TOKEN.",
)]


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool(
    description=(
        "Ingest a local document (PDF, DOCX, HTML or text) so that later "
        "questions can use it as reference material."
    ),
    annotations=_WRITE,
)
async def studykeep_upload(
    path: Annotated[str, Field(description="Filesystem path of the document.")],
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            doc = keeper.upload_path(_owner(keeper, token), Path(path).expanduser())
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return f"Ingested {doc.original_name} as {doc.id}: subject {doc.subject}, {len(doc.chunks)} chunks"


@mcp.tool(
    description="List the documents ingested for this student.",
    annotations=_READ_ONLY,
)
async def studykeep_documents(token: TokenField = None) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            docs = keeper.list_documents(_owner(keeper, token))
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return json.dumps([d.summary() for d in docs], indent=2, ensure_ascii=False)


@mcp.tool(
    description=(
        "Find document passages matching a query by word overlap. "
        "Returns up to `limit` passages, best first."
    ),
    annotations=_READ_ONLY,
)
async def studykeep_find(
    query: Annotated[str, Field(description="Search text.")],
    limit: Annotated[int, Field(description="Maximum passages.", ge=1, le=20)] = 3,
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            chunks = keeper.retrieve(_owner(keeper, token), query, limit)
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    if not chunks:
        return "No matching passages."
    return "\n\n".join(
        f'[{c.score}] From "{c.document_name}" ({c.chunk_id}):\n{c.text}' for c in chunks
    )


@mcp.tool(
    description=(
        "Ask a study question. Relevant passages from ingested documents are "
        "used as reference material; progress is recorded for the subject."
    ),
    annotations=_WRITE,
)
async def studykeep_ask(
    question: Annotated[str, Field(description="The question.")],
    subject: Annotated[Optional[str], Field(
        description="Subject to record progress under, e.g. biology.",
    )] = None,
    mode: Annotated[str, Field(
        description="normal, reverse (assistant asks probing questions), summary or quiz.",
    )] = "normal",
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            owner = _owner(keeper, token)
            # The answer provider blocks on network I/O
            result = await asyncio.to_thread(
                keeper.ask, owner, question, mode=mode, subject=subject,
            )
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


@mcp.tool(
    description="Save a bookmark (a note, quote or answer worth keeping).",
    annotations=_WRITE,
)
async def studykeep_bookmark(
    content: Annotated[str, Field(description="Text to keep.")],
    subject: Annotated[Optional[str], Field(description="Subject name.")] = None,
    tags: Annotated[Optional[list[str]], Field(description="Tags.")] = None,
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            bookmark = keeper.add_bookmark(
                _owner(keeper, token), content, subject=subject, tags=tags or [],
            )
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return f"Bookmarked: {bookmark.id}"


@mcp.tool(
    description="Create a flashcard.",
    annotations=_WRITE,
)
async def studykeep_flashcard(
    question: Annotated[str, Field(description="Front of the card.")],
    answer: Annotated[str, Field(description="Back of the card.")],
    subject: Annotated[Optional[str], Field(description="Subject name.")] = None,
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            card = keeper.create_flashcard(_owner(keeper, token), question, answer, subject=subject)
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return f"Created flashcard: {card.id}"


@mcp.tool(
    description="Recent questions and answers, oldest first.",
    annotations=_READ_ONLY,
)
async def studykeep_history(
    limit: Annotated[int, Field(description="Maximum entries.", ge=1, le=100)] = 20,
    token: TokenField = None,
) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            entries = keeper.history(_owner(keeper, token), limit)
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return json.dumps([e.to_json() for e in entries], indent=2, ensure_ascii=False)


@mcp.tool(
    description="Study statistics: questions per subject, average accuracy, Bloom's levels.",
    annotations=_READ_ONLY,
)
async def studykeep_analytics(token: TokenField = None) -> str:
    async with _lock:
        keeper = _get_keeper()
        try:
            stats = keeper.analytics(_owner(keeper, token))
        except StudyKeepError as e:
            return f"Error: {e.reason}"
    return json.dumps(stats.to_json(), indent=2, ensure_ascii=False)


def main():
    """Run the MCP stdio server."""
    import signal
    # Exit immediately on Ctrl+C; the stdin reader thread ignores cancellation
    signal.signal(signal.SIGINT, lambda *_: os._exit(130))
    try:
        mcp.run(transport="stdio")
    finally:
        if _keeper is not None:
            _keeper.close()


if __name__ == "__main__":
    main()
