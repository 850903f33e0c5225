"""
Core API for studykeep.

This is the minimal working implementation focused on:
- register() / login() / logout(): accounts and sessions
- upload(): ingest documents into chunked, classified text
- retrieve() / ask(): reference material and answers for questions
- bookmarks, flashcards, history, subjects, preferences, analytics
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .accounts import AccountService
from .analytics import AnalyticsAccumulator
from .analyzers import analyze_blooms_level, calculate_accuracy_score
from .config import StoreConfig, get_default_store_path, load_or_create_config
from .errors import AnswerError, InvalidCredentials, InvalidInput, Unavailable
from .ingest import DocumentIngestor
from .library import StudyLibrary
from .logging_config import configure_ops_log, remove_ops_log
from .prompts import ASK_MODES, DEFAULT_ASSISTANT_NAME, prompt_config_for
from .providers.base import AnswerProvider, SubjectClassifier, TextExtractor, get_registry
from .record_store import RecordStore
from .records import (
    Analytics,
    Bookmark,
    CustomSubject,
    DocumentEntry,
    Flashcard,
    FlashcardDeck,
    HistoryEntry,
    Preferences,
    Profile,
    load_model,
)
from .retrieval import build_user_prompt, retrieve
from .sessions import Session, SessionLifecycle, SessionRegistry
from .types import DEFAULT_SUBJECT, AskResult, IngestFile, IngestOutcome, LoginResult, ScoredChunk

logger = logging.getLogger(__name__)

SOURCE_DATASET = "Local Dataset"
SOURCE_DATASET_FALLBACK = "Local Dataset (AI unavailable)"
SOURCE_AI = "AI Assistant"
SOURCE_AI_WITH_CONTEXT = "AI + PDF Reference"

DATASET_CONFIDENCE = 90
FALLBACK_CONFIDENCE = 60
AI_BASE_CONFIDENCE = 75


def load_dataset(path: Path) -> dict[str, dict[str, str]]:
    """Read a ``{subject: {question: answer}}`` JSON file; empty on failure."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Failed to load dataset %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.error("Dataset %s is not an object", path)
        return {}
    return {
        subject: {q: a for q, a in qa.items() if isinstance(a, str)}
        for subject, qa in data.items() if isinstance(qa, dict)
    }


class StudyKeeper:
    """
    Per-owner study companion store.

    Providers (extractor, classifier, answerer) come from the store
    configuration unless injected. The answer provider is created on first
    use so that stores without API credentials still open.
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        answerer: Optional[AnswerProvider] = None,
        extractor: Optional[TextExtractor] = None,
        classifier: Optional[SubjectClassifier] = None,
        dataset: Optional[dict[str, dict[str, str]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        start_lifecycle: bool = False,
        assistant_name: str = DEFAULT_ASSISTANT_NAME,
    ) -> None:
        """
        Args:
            store_path: Store directory. Uses STUDYKEEP_STORE_PATH or ~/.studykeep.
            config: Pre-loaded StoreConfig (skips filesystem config discovery).
            answerer: Injected AnswerProvider.
            extractor: Injected TextExtractor.
            classifier: Injected SubjectClassifier.
            dataset: Local Q&A dataset; overrides the configured dataset file.
            clock: Returns the current aware UTC datetime.
            start_lifecycle: Start the periodic session flush and sweep.
            assistant_name: Name the assistant introduces itself with.
        """
        # --- Config resolution ---
        if config is not None:
            self._config = config
        else:
            path = Path(store_path).resolve() if store_path is not None else get_default_store_path()
            self._config = load_or_create_config(path)
        self._store_path = self._config.path
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._assistant_name = assistant_name

        self._store = RecordStore(self._store_path)
        self._ops_log_handler = configure_ops_log(self._store_path)

        # --- Providers ---
        registry = get_registry()
        self._extractor = extractor or registry.create_extractor(
            self._config.extractor.name, self._config.extractor.params,
        )
        self._classifier = classifier or registry.create_classifier(
            self._config.classifier.name, self._config.classifier.params,
        )
        self._answerer = answerer

        if dataset is not None:
            self._dataset = dataset
        elif self._config.dataset_path is not None:
            self._dataset = load_dataset(self._config.dataset_path)
        else:
            self._dataset = {}

        # --- Sessions ---
        sc = self._config.sessions
        self._sessions = SessionRegistry(
            self._store, ttl=timedelta(hours=sc.ttl_hours), clock=self._clock,
        )
        self._sessions.load()
        self._lifecycle = SessionLifecycle(
            self._sessions,
            flush_interval=sc.flush_interval,
            sweep_interval=sc.sweep_interval,
        )
        if start_lifecycle:
            self._lifecycle.start()

        # --- Services ---
        ic = self._config.ingest
        self._ingestor = DocumentIngestor(
            self._store, self._extractor, self._classifier,
            chunk_size=ic.chunk_size,
            extraction_timeout=ic.extraction_timeout,
            max_file_size=ic.max_file_size,
        )
        self._analytics = AnalyticsAccumulator(self._store)
        self._library = StudyLibrary(self._store, assistant_name=assistant_name)
        self._accounts = AccountService(self._store, self._sessions, clock=self._clock)
        self._closed = False

        logger.info("Opened store %s (%d sessions)", self._store_path, len(self._sessions))

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    @property
    def store(self) -> RecordStore:
        return self._store

    def _get_answerer(self) -> AnswerProvider:
        if self._answerer is None:
            try:
                self._answerer = get_registry().create_answer(
                    self._config.answer.name, self._config.answer.params,
                )
            except (ValueError, RuntimeError) as e:
                raise Unavailable(f"Answer provider unavailable: {e}") from e
        return self._answerer

    # -------------------------------------------------------------------------
    # Accounts and sessions
    # -------------------------------------------------------------------------

    def register(self, email: str, password: str, username: str) -> str:
        return self._accounts.register(email, password, username)

    def login(self, email: str, password: str) -> LoginResult:
        return self._accounts.login(email, password)

    def logout(self, token: str) -> bool:
        return self._accounts.logout(token)

    def session(self, token: Optional[str]) -> Optional[Session]:
        """The session for ``token``, or None when unauthenticated."""
        return self._sessions.validate(token)

    def authenticate(self, token: Optional[str]) -> str:
        """Owner ID for a valid token. Raises InvalidCredentials otherwise."""
        session = self._sessions.validate(token)
        if session is None:
            raise InvalidCredentials("unauthenticated")
        return session.owner

    def sweep_sessions(self) -> int:
        return self._sessions.sweep_expired()

    def profile(self, owner: str) -> Profile:
        return load_model(self._store, owner, Profile)

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def upload(self, owner: str, content: bytes, filename: str, size: Optional[int] = None) -> DocumentEntry:
        return self._ingestor.ingest(owner, content, filename, size)

    def upload_batch(self, owner: str, files: Iterable[IngestFile]) -> list[IngestOutcome]:
        return self._ingestor.ingest_batch(owner, files)

    def upload_path(self, owner: str, path: str | Path) -> DocumentEntry:
        """Ingest a local file. The stored name is the file's basename."""
        path = Path(path)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise InvalidInput(f"Cannot read {path}: {e}") from e
        return self._ingestor.ingest(owner, content, path.name, len(content))

    def list_documents(self, owner: str) -> list[DocumentEntry]:
        return self._ingestor.list_documents(owner)

    def get_document(self, owner: str, doc_id: str) -> DocumentEntry:
        return self._ingestor.get_document(owner, doc_id)

    def get_document_text(self, owner: str, doc_id: str) -> str:
        return self._ingestor.get_text(owner, doc_id)

    def remove_document(self, owner: str, doc_id: str) -> DocumentEntry:
        return self._ingestor.remove_document(owner, doc_id)

    def retrieve(self, owner: str, query: str, max_results: Optional[int] = None) -> list[ScoredChunk]:
        if max_results is None:
            max_results = self._config.retrieval.max_results
        return retrieve(self._store, owner, query, max_results)

    # -------------------------------------------------------------------------
    # Questions
    # -------------------------------------------------------------------------

    def ask(
        self,
        owner: str,
        question: str,
        *,
        mode: str = "normal",
        subject: Optional[str] = None,
        difficulty: int = 5,
    ) -> AskResult:
        """
        Answer a question, preferring the local dataset when there is no
        document context and falling back to it when the answer provider
        fails.

        Raises:
            InvalidInput: Empty question or unknown mode
            Unavailable: The answer provider failed and the dataset has no answer
        """
        if not isinstance(question, str) or not question.strip():
            raise InvalidInput("Invalid question")
        if mode not in ASK_MODES:
            raise InvalidInput(f"Unknown mode: {mode!r}")
        question = question.strip()

        chunks = self.retrieve(owner, question)
        has_context = bool(chunks)
        blooms_level = analyze_blooms_level(question)
        dataset_answer = self._dataset.get(subject or "", {}).get(question)

        if dataset_answer and not has_context:
            answer, source, confidence = dataset_answer, SOURCE_DATASET, DATASET_CONFIDENCE
        else:
            preferences = load_model(self._store, owner, Profile).preferences
            config = prompt_config_for(preferences, mode, self._assistant_name)
            try:
                answer = self._get_answerer().answer(config, build_user_prompt(question, chunks))
                source = SOURCE_AI_WITH_CONTEXT if has_context else SOURCE_AI
                confidence = calculate_accuracy_score(answer, AI_BASE_CONFIDENCE, source, has_context)
            except (AnswerError, Unavailable) as e:
                logger.warning("Answer provider failed: %s", e)
                if not dataset_answer:
                    raise Unavailable("Service temporarily unavailable. Please try again.") from e
                answer, source, confidence = dataset_answer, SOURCE_DATASET_FALLBACK, FALLBACK_CONFIDENCE

        self._analytics.record_question(owner, subject, blooms_level, confidence)
        self._library.append_history(owner, question, answer, {
            "mode": mode,
            "subject": subject or DEFAULT_SUBJECT,
            "source": source,
            "accuracy": confidence,
            "bloomsLevel": blooms_level,
            "difficulty": difficulty,
            "pdfSources": [c.document_id for c in chunks],
        })

        return AskResult(
            answer=answer,
            confidence=confidence,
            source=source,
            blooms_level=blooms_level,
            accuracy_score=calculate_accuracy_score(answer, confidence, source, has_context),
            question=question,
            mode=mode,
            subject=subject or DEFAULT_SUBJECT,
            sources=[{"name": c.document_name, "id": c.document_id} for c in chunks],
        )

    # -------------------------------------------------------------------------
    # Library
    # -------------------------------------------------------------------------

    def add_bookmark(self, owner: str, content: str, **kwargs: Any) -> Bookmark:
        return self._library.add_bookmark(owner, content, **kwargs)

    def list_bookmarks(self, owner: str, subject: Optional[str] = None) -> list[Bookmark]:
        return self._library.list_bookmarks(owner, subject)

    def remove_bookmark(self, owner: str, bookmark_id: str) -> None:
        self._library.remove_bookmark(owner, bookmark_id)

    def create_flashcard(self, owner: str, question: str, answer: str, **kwargs: Any) -> Flashcard:
        return self._library.create_flashcard(owner, question, answer, **kwargs)

    def get_flashcards(self, owner: str) -> FlashcardDeck:
        return self._library.get_flashcards(owner)

    def review_flashcard(self, owner: str, card_id: str, correct: bool) -> Flashcard:
        return self._library.review_flashcard(owner, card_id, correct)

    def generate_flashcards(self, owner: str, document_id: str, count: int = 5) -> list[Flashcard]:
        # Look the document up first so an unknown ID never needs an answerer
        self._ingestor.get_document(owner, document_id)
        return self._library.generate_flashcards(
            owner, document_id, count, answerer=self._get_answerer(),
        )

    def history(self, owner: str, limit: int = 20) -> list[HistoryEntry]:
        return self._library.recent_history(owner, limit)

    def add_custom_subject(self, owner: str, name: str, color: Optional[str] = None) -> CustomSubject:
        return self._library.add_custom_subject(owner, name, color)

    def preferences(self, owner: str) -> Preferences:
        return self._library.get_preferences(owner)

    def update_preferences(self, owner: str, updates: dict[str, Any]) -> Preferences:
        return self._library.update_preferences(owner, updates)

    def analytics(self, owner: str) -> Analytics:
        return self._analytics.summary(owner)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic session flush and expiry sweep."""
        self._lifecycle.start()

    def close(self) -> None:
        """Stop background tasks, flush sessions and release resources."""
        if getattr(self, "_closed", True):
            return
        self._closed = True
        self._lifecycle.shutdown()
        try:
            self._sessions.flush()
        except Exception as e:
            logger.error("Session flush on close failed: %s", e)
        self._ingestor.close()
        if self._answerer is not None and hasattr(self._answerer, "close"):
            self._answerer.close()
        remove_ops_log(self._ops_log_handler)
        self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass
