"""
System prompts for the answer provider, built from study preferences.
"""

from typing import Optional

from .providers.base import PromptConfig
from .records import Preferences

DEFAULT_ASSISTANT_NAME = "StudyKeep"

ASK_MODES = ("normal", "reverse", "summary", "quiz")

# answer_length -> (max_tokens, temperature, instruction)
_LENGTHS = {
    "short": (200, 0.3, " Keep answers concise and to the point."),
    "medium": (500, 0.5, " Provide clear, informative answers."),
    "long": (1000, 0.7, " Provide comprehensive, detailed explanations with examples."),
}

_MODE_INSTRUCTIONS = {
    "reverse": " Act as a student asking probing questions to test understanding.",
    "summary": " Ask the user to summarize the concept in their own words after explaining.",
    "quiz": " End with a quick quiz question related to the topic.",
}

FLASHCARD_PROMPT = """Based on this text, create a flashcard question and answer:

Text: {text}

Create a clear, educational question and concise answer. Format as:
Q: [question]
A: [answer]"""

FLASHCARD_TEXT_LIMIT = 500


def build_prompt_config(
    answer_length: Optional[str] = "medium",
    analogy_style: Optional[str] = None,
    blooms_level: Optional[str] = None,
    mode: str = "normal",
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> PromptConfig:
    """Unknown answer lengths fall back to medium; unknown modes add nothing."""
    max_tokens, temperature, instruction = _LENGTHS.get(answer_length or "medium", _LENGTHS["medium"])
    system = f"You are {assistant_name}, an advanced AI study companion." + instruction
    if analogy_style and analogy_style != "none":
        system += f" Use {analogy_style} analogies to explain complex concepts."
    if blooms_level:
        system += f" Focus on {blooms_level} level understanding."
    system += _MODE_INSTRUCTIONS.get(mode, "")
    return PromptConfig(system=system, max_tokens=max_tokens, temperature=temperature)


def prompt_config_for(
    preferences: Preferences,
    mode: str = "normal",
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> PromptConfig:
    return build_prompt_config(
        answer_length=preferences.answer_length,
        analogy_style=preferences.analogy_style,
        blooms_level=preferences.blooms_level,
        mode=mode,
        assistant_name=assistant_name,
    )


def flashcard_prompt(text: str) -> str:
    return FLASHCARD_PROMPT.format(text=text[:FLASHCARD_TEXT_LIMIT])


def parse_flashcard(response: str) -> Optional[tuple[str, str]]:
    """First ``Q:`` and ``A:`` lines of a response, or None if either is missing."""
    question = answer = None
    for line in response.split("\n"):
        if question is None and line.startswith("Q:"):
            question = line[2:].strip()
        elif answer is None and line.startswith("A:"):
            answer = line[2:].strip()
    if question is None or answer is None:
        return None
    return question, answer
