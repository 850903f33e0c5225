"""
Tests for the MCP stdio server tool functions.

Tests the tool layer in isolation by mocking StudyKeeper: verifies token
resolution, parameter mapping and return formatting.
"""

import json
from unittest.mock import MagicMock

import pytest

from studykeep.errors import InvalidCredentials, Unavailable
from studykeep.records import Bookmark, DocumentEntry, Flashcard, HistoryEntry
from studykeep.types import AskResult, ScoredChunk


@pytest.fixture
def mock_keeper():
    keeper = MagicMock()
    keeper.authenticate.return_value = "owner-1"
    keeper.list_documents.return_value = []
    keeper.retrieve.return_value = []
    keeper.history.return_value = []
    return keeper


@pytest.fixture(autouse=True)
def patch_keeper(mock_keeper, monkeypatch):
    """Install the mock as the server's keeper for every test."""
    import studykeep.mcp as mcp_mod
    monkeypatch.delenv("STUDYKEEP_TOKEN", raising=False)
    mcp_mod._keeper = mock_keeper
    yield
    mcp_mod._keeper = None


class TestAuth:

    @pytest.mark.asyncio
    async def test_token_argument(self, mock_keeper):
        from studykeep.mcp import studykeep_documents
        await studykeep_documents(token="abc")
        mock_keeper.authenticate.assert_called_once_with("abc")

    @pytest.mark.asyncio
    async def test_token_from_env(self, mock_keeper, monkeypatch):
        from studykeep.mcp import studykeep_documents
        monkeypatch.setenv("STUDYKEEP_TOKEN", "from-env")
        await studykeep_documents()
        mock_keeper.authenticate.assert_called_once_with("from-env")

    @pytest.mark.asyncio
    async def test_unauthenticated(self, mock_keeper):
        from studykeep.mcp import studykeep_documents
        mock_keeper.authenticate.side_effect = InvalidCredentials("unauthenticated")
        assert await studykeep_documents() == "Error: unauthenticated"


class TestDocuments:

    @pytest.mark.asyncio
    async def test_upload(self, mock_keeper, tmp_path):
        from studykeep.mcp import studykeep_upload
        mock_keeper.upload_path.return_value = DocumentEntry(
            id="doc-1", original_name="cells.pdf", filename="doc-1.pdf", subject="biology",
        )
        result = await studykeep_upload(str(tmp_path / "cells.pdf"), token="t")
        assert result == "Ingested cells.pdf as doc-1: subject biology, 0 chunks"
        mock_keeper.upload_path.assert_called_once_with("owner-1", tmp_path / "cells.pdf")

    @pytest.mark.asyncio
    async def test_list(self, mock_keeper):
        from studykeep.mcp import studykeep_documents
        mock_keeper.list_documents.return_value = [
            DocumentEntry(id="doc-1", original_name="cells.pdf", filename="doc-1.pdf"),
        ]
        data = json.loads(await studykeep_documents(token="t"))
        assert data[0]["id"] == "doc-1"
        assert data[0]["originalName"] == "cells.pdf"

    @pytest.mark.asyncio
    async def test_find_none(self, mock_keeper):
        from studykeep.mcp import studykeep_find
        assert await studykeep_find("powerhouse", token="t") == "No matching passages."
        mock_keeper.retrieve.assert_called_once_with("owner-1", "powerhouse", 3)

    @pytest.mark.asyncio
    async def test_find_formats_passages(self, mock_keeper):
        from studykeep.mcp import studykeep_find
        mock_keeper.retrieve.return_value = [
            ScoredChunk(text="The powerhouse.", score=2, document_name="cells.pdf",
                        document_id="doc-1", chunk_id="chunk-0"),
        ]
        result = await studykeep_find("powerhouse", limit=1, token="t")
        assert result == '[2] From "cells.pdf" (chunk-0):\nThe powerhouse.'


class TestAsk:

    @pytest.mark.asyncio
    async def test_ask(self, mock_keeper):
        from studykeep.mcp import studykeep_ask
        mock_keeper.ask.return_value = AskResult(
            answer="Mitochondria.", confidence=100, source="AI + PDF Reference",
            blooms_level="remember", accuracy_score=100, question="q",
            mode="normal", subject="biology",
        )
        data = json.loads(await studykeep_ask("q", subject="biology", token="t"))
        assert data["answer"] == "Mitochondria."
        assert data["bloomsLevel"] == "remember"
        mock_keeper.ask.assert_called_once_with("owner-1", "q", mode="normal", subject="biology")

    @pytest.mark.asyncio
    async def test_ask_unavailable(self, mock_keeper):
        from studykeep.mcp import studykeep_ask
        mock_keeper.ask.side_effect = Unavailable("Service temporarily unavailable. Please try again.")
        result = await studykeep_ask("q", token="t")
        assert result == "Error: Service temporarily unavailable. Please try again."


class TestLibrary:

    @pytest.mark.asyncio
    async def test_bookmark(self, mock_keeper):
        from studykeep.mcp import studykeep_bookmark
        mock_keeper.add_bookmark.return_value = Bookmark(id="bm-1", content="ATP")
        assert await studykeep_bookmark("ATP", tags=["cells"], token="t") == "Bookmarked: bm-1"
        mock_keeper.add_bookmark.assert_called_once_with("owner-1", "ATP", subject=None, tags=["cells"])

    @pytest.mark.asyncio
    async def test_flashcard(self, mock_keeper):
        from studykeep.mcp import studykeep_flashcard
        mock_keeper.create_flashcard.return_value = Flashcard(id="fc-1", question="Q", answer="A")
        assert await studykeep_flashcard("Q", "A", token="t") == "Created flashcard: fc-1"

    @pytest.mark.asyncio
    async def test_history(self, mock_keeper):
        from studykeep.mcp import studykeep_history
        mock_keeper.history.return_value = [HistoryEntry(question="Q", answer="A")]
        data = json.loads(await studykeep_history(limit=5, token="t"))
        assert data[0]["question"] == "Q"
        mock_keeper.history.assert_called_once_with("owner-1", 5)
