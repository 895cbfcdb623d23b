"""Boundary to the note insights collaborator (summaries, grammar fixes).

The remote provider is slow and fallible; nothing in the store depends on it.
``safe_insights`` always answers, falling back to locally computed counts.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Protocol

from notewise.entities import Note

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

GLOSSARY = {
    "algorithm": "A step-by-step procedure for solving a problem or completing a task",
    "machine learning": "A type of AI that enables computers to learn without being explicitly programmed",
    "neural network": "A computing system inspired by biological neural networks",
    "database": "An organized collection of structured information or data",
    "API": "Application Programming Interface - a set of protocols for building software applications",
    "framework": "A platform for developing software applications with pre-written code",
    "responsive design": "Web design approach that makes pages render well on various devices",
    "encryption": "The process of converting information into secret code to prevent unauthorized access",
}


@dataclass(frozen=True)
class Insights:
    word_count: int
    reading_time: int
    summary: str = ""
    key_points: list[str] = field(default_factory=list)
    related_topics: list[str] = field(default_factory=list)
    glossary: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "wordCount": self.word_count,
            "readingTime": self.reading_time,
            "summary": self.summary,
            "keyPoints": list(self.key_points),
            "relatedTopics": list(self.related_topics),
            "glossary": dict(self.glossary),
        }


class InsightsProvider(Protocol):
    def generate_insights(self, text: str) -> Insights: ...

    def correct_grammar(self, text: str) -> str: ...


def count_words(text: str) -> int:
    return len(text.split())


def reading_time(word_count: int) -> int:
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def find_glossary_terms(text: str) -> dict[str, str]:
    lower = text.lower()
    return {term: definition for term, definition in GLOSSARY.items() if term.lower() in lower}


class LocalInsights:
    """Offline provider: counts and glossary terms, no generated text."""

    def generate_insights(self, text: str) -> Insights:
        words = count_words(text)
        return Insights(
            word_count=words,
            reading_time=reading_time(words),
            glossary=find_glossary_terms(text),
        )

    def correct_grammar(self, text: str) -> str:
        return text


def safe_insights(note: Note, provider: Optional[InsightsProvider] = None) -> Insights:
    if note.is_encrypted:
        raise ValueError("Encrypted notes cannot be analysed")

    local = LocalInsights().generate_insights(note.content)
    if provider is None:
        return local
    try:
        remote = provider.generate_insights(note.content)
    except Exception as exc:  # provider is external; any failure means "no insights"
        logger.warning("Insights provider failed for note %s: %s", note.id, exc)
        return local
    # counts and glossary are always computed locally
    return Insights(
        word_count=local.word_count,
        reading_time=local.reading_time,
        summary=remote.summary,
        key_points=list(remote.key_points),
        related_topics=list(remote.related_topics),
        glossary=local.glossary,
    )


def safe_correct_grammar(note: Note, provider: Optional[InsightsProvider] = None) -> str:
    """Corrected note text, or the text unchanged when the provider fails."""
    if note.is_encrypted:
        raise ValueError("Encrypted notes cannot be corrected")
    if provider is None:
        return LocalInsights().correct_grammar(note.content)
    try:
        corrected = provider.correct_grammar(note.content)
    except Exception as exc:  # provider is external; fall back to the original text
        logger.warning("Grammar provider failed for note %s: %s", note.id, exc)
        return note.content
    return corrected or note.content
