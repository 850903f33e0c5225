"""
Pluggable collaborators: text extraction, answer generation and subject
classification. Concrete providers register themselves with the global
ProviderRegistry and are created by name from the store configuration.
"""

from .base import (
    AnswerProvider,
    Extraction,
    ExtractionError,
    PromptConfig,
    ProviderRegistry,
    SubjectClassifier,
    TextExtractor,
    get_registry,
)

__all__ = [
    "AnswerProvider",
    "Extraction",
    "ExtractionError",
    "PromptConfig",
    "ProviderRegistry",
    "SubjectClassifier",
    "TextExtractor",
    "get_registry",
]
