"""
Study library: bookmarks, flashcards, question history, custom subjects
and preferences, each kept in its own per-owner record.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .errors import InvalidInput, NotFound, Unavailable
from .prompts import build_prompt_config, flashcard_prompt, parse_flashcard
from .providers.base import AnswerProvider
from .record_store import RecordStore
from .records import (
    Bookmark,
    BookmarkList,
    CustomSubject,
    DocumentSet,
    Flashcard,
    FlashcardDeck,
    History,
    HistoryEntry,
    Preferences,
    Profile,
    load_model,
    update_model,
)
from .types import BLOOMS_LEVELS, DEFAULT_SUBJECT, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RECENT_HISTORY = 20
DEFAULT_AI_FLASHCARDS = 5

ANSWER_LENGTHS = ("short", "medium", "long")


class StudyLibrary:
    """
    Per-owner study material.

    Args:
        store: RecordStore holding the records
        answerer: AnswerProvider used for AI flashcards (optional)
        assistant_name: Name used in generated system prompts
    """

    def __init__(
        self,
        store: RecordStore,
        answerer: Optional[AnswerProvider] = None,
        assistant_name: str = "StudyKeep",
    ):
        self._store = store
        self._answerer = answerer
        self._assistant_name = assistant_name

    # -------------------------------------------------------------------------
    # Bookmarks
    # -------------------------------------------------------------------------

    def add_bookmark(
        self,
        owner: str,
        content: str,
        *,
        type: str = "note",
        metadata: Optional[dict[str, Any]] = None,
        tags: Optional[list[str]] = None,
        subject: Optional[str] = None,
    ) -> Bookmark:
        if not content or not content.strip():
            raise InvalidInput("Bookmark content is required")
        bookmark = Bookmark(
            type=type,
            content=content,
            metadata=metadata or {},
            tags=tags or [],
            subject=subject or DEFAULT_SUBJECT,
        )
        update_model(self._store, owner, BookmarkList, lambda b: b.root.append(bookmark))
        return bookmark

    def list_bookmarks(self, owner: str, subject: Optional[str] = None) -> list[Bookmark]:
        bookmarks = load_model(self._store, owner, BookmarkList).root
        if subject:
            return [b for b in bookmarks if b.subject == subject]
        return list(bookmarks)

    def remove_bookmark(self, owner: str, bookmark_id: str) -> None:
        def remove(bookmarks: BookmarkList) -> bool:
            before = len(bookmarks.root)
            bookmarks.root[:] = [b for b in bookmarks.root if b.id != bookmark_id]
            return len(bookmarks.root) < before

        if not update_model(self._store, owner, BookmarkList, remove):
            raise NotFound(f"Bookmark not found: {bookmark_id}")

    # -------------------------------------------------------------------------
    # Flashcards
    # -------------------------------------------------------------------------

    def create_flashcard(
        self,
        owner: str,
        question: str,
        answer: str,
        *,
        subject: Optional[str] = None,
        difficulty: Optional[int] = None,
        tags: Optional[list[str]] = None,
    ) -> Flashcard:
        if not question or not answer:
            raise InvalidInput("Flashcard question and answer are required")
        card = Flashcard(
            question=question,
            answer=answer,
            subject=subject or DEFAULT_SUBJECT,
            difficulty=difficulty or 5,
            tags=tags or [],
        )
        update_model(self._store, owner, FlashcardDeck, lambda d: d.user_made.append(card))
        return card

    def get_flashcards(self, owner: str) -> FlashcardDeck:
        return load_model(self._store, owner, FlashcardDeck)

    def review_flashcard(self, owner: str, card_id: str, correct: bool) -> Flashcard:
        """Count a review of a card, user-made or AI-generated."""
        def review(deck: FlashcardDeck) -> Optional[Flashcard]:
            for card in deck.user_made + deck.ai_generated:
                if card.id == card_id:
                    card.review_count += 1
                    if correct:
                        card.correct_count += 1
                    card.last_reviewed = utc_now()
                    return card.model_copy()
            return None

        card = update_model(self._store, owner, FlashcardDeck, review)
        if card is None:
            raise NotFound(f"Flashcard not found: {card_id}")
        return card

    def generate_flashcards(
        self,
        owner: str,
        document_id: str,
        count: int = DEFAULT_AI_FLASHCARDS,
        *,
        answerer: Optional[AnswerProvider] = None,
    ) -> list[Flashcard]:
        """
        Ask the answer provider for one card per chunk of a document.

        Responses without both a ``Q:`` and an ``A:`` line are skipped.

        Raises:
            NotFound: Unknown document
            Unavailable: No answer provider, or it failed
        """
        doc = load_model(self._store, owner, DocumentSet).root.get(document_id)
        if doc is None:
            raise NotFound(f"Document not found: {document_id}")
        answerer = answerer or self._answerer
        if answerer is None:
            raise Unavailable("No answer provider configured")

        config = build_prompt_config(answer_length="short", assistant_name=self._assistant_name)
        cards = []
        for chunk in doc.chunks[:max(count, 0)]:
            parsed = parse_flashcard(answerer.answer(config, flashcard_prompt(chunk.text)))
            if parsed is None:
                logger.debug("No Q/A pair in response for %s/%s", document_id, chunk.id)
                continue
            question, answer = parsed
            cards.append(Flashcard(
                question=question,
                answer=answer,
                subject=doc.subject,
                difficulty=5,
                tags=["ai-generated", doc.subject],
                source_document=document_id,
            ))

        update_model(self._store, owner, FlashcardDeck, lambda d: d.ai_generated.extend(cards))
        logger.info("Generated %d flashcards from %s for %s", len(cards), document_id, owner)
        return cards

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def append_history(
        self,
        owner: str,
        question: str,
        answer: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(question=question, answer=answer, metadata=metadata or {})
        update_model(self._store, owner, History, lambda h: h.append(entry))
        return entry

    def recent_history(self, owner: str, limit: int = DEFAULT_RECENT_HISTORY) -> list[HistoryEntry]:
        """Most recent entries, oldest first."""
        entries = load_model(self._store, owner, History).root
        if limit <= 0:
            return []
        return entries[-limit:]

    # -------------------------------------------------------------------------
    # Subjects and preferences
    # -------------------------------------------------------------------------

    def add_custom_subject(self, owner: str, name: str, color: Optional[str] = None) -> CustomSubject:
        if not name or not name.strip():
            raise InvalidInput("Subject name is required")
        subject = CustomSubject(name=name.strip(), color=color or "#8B5CF6")

        def add(profile: Profile) -> None:
            profile.preferences.custom_subjects.append(subject)
            profile.subject(subject.name)

        update_model(self._store, owner, Profile, add)
        return subject

    def get_preferences(self, owner: str) -> Preferences:
        return load_model(self._store, owner, Profile).preferences

    def update_preferences(self, owner: str, updates: dict[str, Any]) -> Preferences:
        """
        Merge ``updates`` (snake_case or camelCase keys) into the preferences.

        Raises:
            InvalidInput: The merged preferences do not validate
        """
        def merge(profile: Profile) -> Preferences:
            data = profile.preferences.to_json()
            data.update({to_camel(k): v for k, v in updates.items()})
            try:
                prefs = Preferences.model_validate(data)
            except ValidationError as e:
                raise InvalidInput(f"Invalid preferences: {e}") from e
            if prefs.answer_length not in ANSWER_LENGTHS:
                raise InvalidInput(f"Unknown answer length: {prefs.answer_length!r}")
            if prefs.blooms_level not in BLOOMS_LEVELS:
                raise InvalidInput(f"Unknown Bloom's level: {prefs.blooms_level!r}")
            profile.preferences = prefs
            return prefs

        return update_model(self._store, owner, Profile, merge)
