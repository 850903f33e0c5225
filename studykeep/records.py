"""
Typed record schemas.

Each named record an owner can hold is a pydantic model with a
``RECORD_NAME`` and a ``default()`` constructor. Records are validated on
load; a record that is absent or fails validation (in both the primary
and the backup copy) is replaced by its default.

On disk, field names are camelCase so that stores written by earlier
versions of the service load unchanged. Unknown fields are preserved.
"""

import uuid
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel

from .types import BLOOMS_LEVELS, DEFAULT_SUBJECT, utc_now

if TYPE_CHECKING:
    from .record_store import RecordStore

# Oldest history entries are evicted beyond this many
MAX_HISTORY_ENTRIES = 100

RECORD_VERSION = 1


def new_id() -> str:
    return str(uuid.uuid4())


def _blooms_tally() -> dict[str, int]:
    return {level: 0 for level in BLOOMS_LEVELS}


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_json(self) -> Any:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class CustomSubject(_Model):
    id: str = Field(default_factory=new_id)
    name: str
    color: str = "#8B5CF6"
    created_at: str = Field(default_factory=utc_now)


class PomodoroSettings(_Model):
    work_duration: int = 25
    short_break: int = 5
    long_break: int = 15
    sessions_until_long_break: int = 4


class Preferences(_Model):
    answer_length: str = "medium"
    analogy_style: str = "general"
    blooms_level: str = "analyze"
    study_streak: int = 0
    focus_level: str = "medium"
    theme: str = "dark"
    custom_subjects: list[CustomSubject] = Field(default_factory=list)
    pomodoro_settings: PomodoroSettings = Field(default_factory=PomodoroSettings)


class SubjectProgress(_Model):
    questions_asked: int = 0
    average_accuracy: float = 0.0
    time_spent: int = 0
    blooms_levels: dict[str, int] = Field(default_factory=_blooms_tally)


class Analytics(_Model):
    questions_asked: int = 0
    concepts_learned: list[str] = Field(default_factory=list)
    weak_areas: list[str] = Field(default_factory=list)
    study_time: int = 0
    subject_progress: dict[str, SubjectProgress] = Field(default_factory=dict)
    blooms_levels: dict[str, int] = Field(default_factory=_blooms_tally)


class Profile(_Model):
    RECORD_NAME: ClassVar[str] = "profile"

    version: int = RECORD_VERSION
    user_id: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    created_at: str = Field(default_factory=utc_now)
    last_login: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    analytics: Analytics = Field(default_factory=Analytics)

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "Profile":
        return cls(user_id=owner or "")

    def subject(self, name: str) -> SubjectProgress:
        """Progress for a subject, created on first use."""
        progress = self.analytics.subject_progress.get(name)
        if progress is None:
            progress = SubjectProgress()
            self.analytics.subject_progress[name] = progress
        return progress


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class Chunk(_Model):
    id: str
    text: str
    length: int


class DocumentEntry(_Model):
    id: str
    original_name: str
    filename: str
    uploaded_at: str = Field(default_factory=utc_now)
    size: int = 0
    pages: int = 0
    subject: str = DEFAULT_SUBJECT
    keywords: list[str] = Field(default_factory=list)
    chunks: list[Chunk] = Field(default_factory=list)
    text_length: int = 0

    def summary(self) -> dict:
        """Listing view without chunk text."""
        return {
            "id": self.id,
            "originalName": self.original_name,
            "uploadedAt": self.uploaded_at,
            "subject": self.subject,
            "pages": self.pages,
            "keywords": self.keywords,
            "size": self.size,
        }


class DocumentSet(RootModel[dict[str, DocumentEntry]]):
    RECORD_NAME: ClassVar[str] = "documents"

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "DocumentSet":
        return cls({})

    def to_json(self) -> Any:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Bookmarks and flashcards
# ---------------------------------------------------------------------------

class Bookmark(_Model):
    id: str = Field(default_factory=new_id)
    type: str = "note"
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now)
    tags: list[str] = Field(default_factory=list)
    subject: str = DEFAULT_SUBJECT


class BookmarkList(RootModel[list[Bookmark]]):
    RECORD_NAME: ClassVar[str] = "bookmarks"

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "BookmarkList":
        return cls([])

    def to_json(self) -> Any:
        return self.model_dump(by_alias=True, mode="json")


class Flashcard(_Model):
    id: str = Field(default_factory=new_id)
    question: str
    answer: str
    subject: str = DEFAULT_SUBJECT
    difficulty: int = 5
    created_at: str = Field(default_factory=utc_now)
    last_reviewed: Optional[str] = None
    review_count: int = 0
    correct_count: int = 0
    tags: list[str] = Field(default_factory=list)
    source_document: Optional[str] = None


class FlashcardDeck(_Model):
    RECORD_NAME: ClassVar[str] = "flashcards"

    user_made: list[Flashcard] = Field(default_factory=list)
    ai_generated: list[Flashcard] = Field(default_factory=list)

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "FlashcardDeck":
        return cls()


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class HistoryEntry(_Model):
    id: str = Field(default_factory=new_id)
    timestamp: str = Field(default_factory=utc_now)
    question: str
    answer: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class History(RootModel[list[HistoryEntry]]):
    RECORD_NAME: ClassVar[str] = "history"

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "History":
        return cls([])

    def append(self, entry: HistoryEntry) -> None:
        """Append, evicting the oldest entries beyond MAX_HISTORY_ENTRIES."""
        self.root.append(entry)
        overflow = len(self.root) - MAX_HISTORY_ENTRIES
        if overflow > 0:
            del self.root[:overflow]

    def to_json(self) -> Any:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Sessions (process-wide)
# ---------------------------------------------------------------------------

class SessionEntry(_Model):
    user_id: str
    email: str = ""
    username: str = ""
    created_at: str
    last_activity: str


class SessionSet(RootModel[dict[str, SessionEntry]]):
    RECORD_NAME: ClassVar[str] = "sessions"

    @classmethod
    def default(cls, owner: Optional[str] = None) -> "SessionSet":
        return cls({})

    def to_json(self) -> Any:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Typed access through a RecordStore
# ---------------------------------------------------------------------------

M = TypeVar("M")
R = TypeVar("R")


def load_model(store: "RecordStore", owner: Optional[str], model_cls: type[M]) -> M:
    """Load a typed record, falling back to its default when absent or invalid."""
    model = store.load(owner, model_cls.RECORD_NAME, schema=model_cls.model_validate)
    if model is None:
        return model_cls.default(owner)
    return model


def save_model(store: "RecordStore", owner: Optional[str], model) -> None:
    """Persist a typed record. Raises StorageFailure."""
    store.save(owner, model.RECORD_NAME, model.to_json())


def update_model(
    store: "RecordStore",
    owner: Optional[str],
    model_cls: type[M],
    mutate: Callable[[M], R],
) -> R:
    """Read-modify-write a typed record under its per-record lock.

    ``mutate`` changes the model in place and may return a value, which is
    passed back to the caller after the record is durably written.
    """
    with store.lock(owner, model_cls.RECORD_NAME):
        model = load_model(store, owner, model_cls)
        result = mutate(model)
        save_model(store, owner, model)
        return result
