"""Prompt templates and fallback replies."""

from __future__ import annotations

__all__ = [
    "format_chat_prompt",
    "format_greeting_prompt",
    "greeting_error_fallback",
    "greeting_fallback",
]

CHAT_TEMPLATE = "User: {prompt}\nAI:"

GREETING_TEMPLATE = (
    "Generate a friendly, engaging opening message for a conversation about "
    "'{topic}' in {language}. Keep it short, ask the learner one simple "
    "question to get them talking, and reply only in {language}."
)

STOP_SEQUENCES = ["User:", "</s>"]


def format_chat_prompt(prompt: str) -> str:
    return CHAT_TEMPLATE.format(prompt=prompt)


def format_greeting_prompt(topic: str, language: str) -> str:
    return GREETING_TEMPLATE.format(topic=topic, language=language)


def greeting_fallback(topic: str, language: str) -> str:
    """Used when the model produced nothing."""
    return f"Hello! Let's discuss {topic} in {language}."


def greeting_error_fallback(topic: str, language: str) -> str:
    """Used when generating the greeting failed."""
    return (
        f"Hello! There was an issue starting our chat about {topic} in {language}. "
        "Please try again."
    )
