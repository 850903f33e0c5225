"""
Base provider protocols.

These define the interfaces that concrete providers must implement.
Using Protocol for structural subtyping - no explicit inheritance required.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


# -----------------------------------------------------------------------------
# Text Extraction
# -----------------------------------------------------------------------------

class ExtractionError(IOError):
    """Raised by a TextExtractor when a document yields no usable text."""


@dataclass
class Extraction:
    """
    Text extracted from an uploaded document.

    Attributes:
        text: Plain text content
        page_count: Number of pages, where the format has pages (else 0)
    """
    text: str
    page_count: int = 0


@runtime_checkable
class TextExtractor(Protocol):
    """
    Converts raw document bytes to plain text.

    Implementations handle specific formats (PDF, DOCX, HTML, ...) and
    are selected by filename suffix.

    Example implementation:
        class PlainTextExtractor:
            suffixes = (".txt",)

            def extract(self, content: bytes, filename: str) -> Extraction:
                return Extraction(text=content.decode("utf-8"))
    """

    def extract(self, content: bytes, filename: str) -> Extraction:
        """
        Extract the text of a document.

        Args:
            content: Raw bytes as uploaded
            filename: Original filename, used only to pick the format

        Returns:
            Extraction with the text and page count

        Raises:
            ExtractionError: If the document is unreadable or has no text
        """
        ...


# -----------------------------------------------------------------------------
# Answer Generation
# -----------------------------------------------------------------------------

@dataclass
class PromptConfig:
    """System prompt and sampling parameters for one answer request."""
    system: str
    max_tokens: int = 500
    temperature: float = 0.5


@runtime_checkable
class AnswerProvider(Protocol):
    """
    Generates answers to study questions with an LLM.

    Example implementation:
        class EchoAnswers:
            def answer(self, config: PromptConfig, user_prompt: str) -> str:
                return user_prompt
    """

    def answer(self, config: PromptConfig, user_prompt: str) -> str:
        """
        Produce an answer for a framed user prompt.

        Args:
            config: System prompt, token limit and temperature
            user_prompt: Question, optionally framed with reference material

        Returns:
            The answer text

        Raises:
            AnswerTimeout: The request did not complete in time
            AnswerAuthError: Credentials were rejected
            MalformedAnswer: The response had no answer text
        """
        ...


# -----------------------------------------------------------------------------
# Subject Classification
# -----------------------------------------------------------------------------

@runtime_checkable
class SubjectClassifier(Protocol):
    """Labels a text with a study subject (``general`` when unsure)."""

    def classify(self, text: str) -> str:
        ...


# -----------------------------------------------------------------------------
# Provider Registry
# -----------------------------------------------------------------------------

class ProviderRegistry:
    """
    Registry for discovering and instantiating providers.

    Providers are registered by name and can be instantiated from configuration.
    This allows the store configuration (TOML) to specify providers by name
    rather than requiring code changes.

    Example:
        registry = ProviderRegistry()
        registry.register_answer("groq", GroqAnswerProvider)

        # Later, from config:
        provider = registry.create_answer("groq", {"model": "llama-3.1-8b-instant"})
    """

    def __init__(self):
        self._extractor_providers: dict[str, type] = {}
        self._answer_providers: dict[str, type] = {}
        self._classifier_providers: dict[str, type] = {}
        self._lazy_loaded = False

    def _ensure_providers_loaded(self) -> None:
        """Lazily load all provider modules."""
        if self._lazy_loaded:
            return

        self._lazy_loaded = True

        # Import provider modules to trigger registration
        from . import documents  # noqa: F401
        from . import llm  # noqa: F401
        from .. import analyzers  # noqa: F401

    # Registration methods

    def register_extractor(self, name: str, provider_class: type) -> None:
        """Register a text extractor class."""
        self._extractor_providers[name] = provider_class

    def register_answer(self, name: str, provider_class: type) -> None:
        """Register an answer provider class."""
        self._answer_providers[name] = provider_class

    def register_classifier(self, name: str, provider_class: type) -> None:
        """Register a subject classifier class."""
        self._classifier_providers[name] = provider_class

    # Factory methods

    @staticmethod
    def _create_provider(kind: str, name: str, providers: dict, params: dict | None):
        """Shared factory logic for all provider types."""
        if name not in providers:
            available = ", ".join(providers.keys()) or "none"
            raise ValueError(
                f"Unknown {kind} provider: '{name}'. "
                f"Available providers: {available}."
            )
        try:
            return providers[name](**(params or {}))
        except Exception as e:
            raise RuntimeError(
                f"Failed to create {kind} provider '{name}': {e}"
            ) from e

    def create_extractor(self, name: str, params: dict | None = None) -> TextExtractor:
        """Create a text extractor instance."""
        self._ensure_providers_loaded()
        return self._create_provider("extractor", name, self._extractor_providers, params)

    def create_answer(self, name: str, params: dict | None = None) -> AnswerProvider:
        """Create an answer provider instance."""
        self._ensure_providers_loaded()
        return self._create_provider("answer", name, self._answer_providers, params)

    def create_classifier(self, name: str, params: dict | None = None) -> SubjectClassifier:
        """Create a subject classifier instance."""
        self._ensure_providers_loaded()
        return self._create_provider("classifier", name, self._classifier_providers, params)

    # Introspection

    def list_extractor_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._extractor_providers.keys())

    def list_answer_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._answer_providers.keys())

    def list_classifier_providers(self) -> list[str]:
        self._ensure_providers_loaded()
        return list(self._classifier_providers.keys())


# Global registry instance
# Concrete providers register themselves on import
_registry = ProviderRegistry()


def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return _registry
