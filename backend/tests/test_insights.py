from dataclasses import replace

import pytest

from notewise.entities import new_note
from notewise.services.insights import (
    Insights,
    LocalInsights,
    find_glossary_terms,
    reading_time,
    safe_correct_grammar,
    safe_insights,
)


class FailingProvider:
    def generate_insights(self, text):
        raise TimeoutError("upstream timed out")

    def correct_grammar(self, text):
        raise TimeoutError("upstream timed out")


class CannedProvider:
    def generate_insights(self, text):
        return Insights(word_count=999, reading_time=99, summary="short", key_points=["k"], related_topics=["r"])

    def correct_grammar(self, text):
        return text.capitalize()


def note_with(text):
    return replace(new_note("n1", "u1", "t"), content=text)


def test_reading_time_rounds_up_with_a_floor_of_one():
    assert reading_time(0) == 1
    assert reading_time(200) == 1
    assert reading_time(201) == 2


def test_local_insights_counts_words():
    result = LocalInsights().generate_insights("  one two\nthree  ")
    assert result.to_dict() == {
        "wordCount": 3,
        "readingTime": 1,
        "summary": "",
        "keyPoints": [],
        "relatedTopics": [],
        "glossary": {},
    }


def test_failing_provider_falls_back_to_local():
    result = safe_insights(note_with("a b c"), FailingProvider())
    assert result.word_count == 3
    assert result.summary == ""


def test_provider_text_is_used_but_counts_stay_local():
    result = safe_insights(note_with("a b c"), CannedProvider())
    assert (result.word_count, result.reading_time) == (3, 1)
    assert result.summary == "short"
    assert result.key_points == ["k"]


def test_encrypted_notes_are_never_sent():
    note = replace(note_with("ciphertext"), is_encrypted=True)
    with pytest.raises(ValueError):
        safe_insights(note, CannedProvider())


def test_glossary_lookup_is_case_insensitive():
    terms = find_glossary_terms("Our Database uses an api for Encryption")
    assert set(terms) == {"database", "API", "encryption"}


def test_local_insights_fill_the_glossary():
    result = LocalInsights().generate_insights("Training a neural network")
    assert list(result.glossary) == ["neural network"]


def test_provider_results_keep_the_local_glossary():
    result = safe_insights(note_with("a database"), CannedProvider())
    assert list(result.glossary) == ["database"]


def test_grammar_uses_provider_text():
    assert safe_correct_grammar(note_with("hello there"), CannedProvider()) == "Hello there"


def test_grammar_falls_back_to_original_text():
    assert safe_correct_grammar(note_with("hello there"), FailingProvider()) == "hello there"
    assert safe_correct_grammar(note_with("hello there")) == "hello there"


def test_encrypted_notes_are_never_corrected():
    note = replace(note_with("ciphertext"), is_encrypted=True)
    with pytest.raises(ValueError):
        safe_correct_grammar(note, CannedProvider())
