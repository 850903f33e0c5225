"""
StudyKeep

A durable, per-owner study companion store: uploaded documents are
chunked and classified, questions are answered with matching reference
material, and progress is tracked per subject.

Quick Start:
    from studykeep import StudyKeeper

    kp = StudyKeeper()  # uses ~/.studykeep/
    owner = kp.register("ada@example.com", "secret", "ada")
    kp.upload_path(owner, "notes/cells.pdf")
    result = kp.ask(owner, "What is the powerhouse of the cell?", subject="biology")

CLI Usage:
    studykeep register ada@example.com ada
    studykeep login ada@example.com
    studykeep upload notes/cells.pdf
    studykeep ask "What is the powerhouse of the cell?" --subject biology

Default Store:
    ~/.studykeep/ (created automatically).
    Override with STUDYKEEP_STORE_PATH or explicit path argument.

Environment Variables:
    STUDYKEEP_STORE_PATH     - Override default store location
    STUDYKEEP_GROQ_API_KEY   - API key for the Groq answer provider
    STUDYKEEP_TOKEN          - Session token used by the CLI
    STUDYKEEP_VERBOSE        - Debug logging to stderr

Configuration is persisted in a TOML file within the store directory.
"""

from .api import StudyKeeper
from .errors import StudyKeepError
from .types import AskResult, IngestFile, IngestOutcome, LoginResult, ScoredChunk

__version__ = "0.1.0"
__all__ = [
    "StudyKeeper",
    "StudyKeepError",
    "AskResult",
    "IngestFile",
    "IngestOutcome",
    "LoginResult",
    "ScoredChunk",
]
