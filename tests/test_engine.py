from __future__ import annotations

import asyncio
import math

import pytest

from tests.factories import make_entry
from word_weaver.errors import DictionaryUnavailableError, ValidationError
from word_weaver.lexicon.provider import InMemoryDictionary
from word_weaver.pipeline.engine import ProcessingResult, create_translation_engine
from word_weaver.pipeline.tokenizer import tokenize


class CountingDictionary(InMemoryDictionary):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[list[str]] = []

    async def lookup_words(self, words):
        self.calls.append(list(words))
        return await super().lookup_words(words)


class BrokenDictionary:
    async def initialize(self) -> None:
        return None

    async def lookup_words(self, words):
        raise DictionaryUnavailableError("dictionary offline")


def _dictionary(*entries) -> CountingDictionary:
    return CountingDictionary("en", "es", entries)


def _process(provider, content, **options):
    options.setdefault("source_language", "en")
    options.setdefault("target_language", "es")
    options.setdefault("proficiency_level", "beginner")
    options.setdefault("density", 1.0)
    engine = create_translation_engine(provider, **options)
    return asyncio.run(engine.process_content(content))


def test_process_replaces_known_word():
    dictionary = _dictionary(make_entry("house", "casa", rank=10))
    result = _process(dictionary, "The house is big.")

    assert not result.degraded
    assert len(result.foreign_words) == 1
    assert result.foreign_words[0].original_word == "house"
    assert result.foreign_words[0].foreign_word == "casa"
    assert "casa" in result.content
    assert result.stats.total_words == 4
    assert result.stats.eligible_words == 1
    assert result.stats.replaced_words == 1
    assert result.stats.processing_time >= 0


def test_density_zero_leaves_content_untouched():
    dictionary = _dictionary(make_entry("house", "casa", rank=10))
    content = "The house is big."
    result = _process(dictionary, content, density=0)

    assert result.content == content
    assert result.foreign_words == []
    assert result.stats.replaced_words == 0
    assert dictionary.calls == []


@pytest.mark.parametrize("content", ["", "   ", "123 456", "<p></p>"])
def test_content_without_words_is_returned_as_is(content):
    dictionary = _dictionary(make_entry("house", "casa"))
    result = _process(dictionary, content)

    assert result.content == content
    assert result.foreign_words == []
    assert result.stats.total_words == 0
    assert dictionary.calls == []


@pytest.mark.parametrize("density", [0.1, 0.25, 0.5, 0.75, 1.0])
def test_replacements_stay_within_density_budget(density):
    dictionary = _dictionary(
        make_entry("house", "casa", rank=10),
        make_entry("dog", "perro", rank=25),
        make_entry("book", "libro", rank=30),
        make_entry("friend", "amigo", rank=40),
    )
    result = _process(dictionary, "My friend left a book in the house and the dog ate the book.", density=density)

    assert result.stats.eligible_words == 5
    assert result.stats.replaced_words <= math.ceil(density * result.stats.eligible_words)
    assert {record.original_word for record in result.foreign_words} <= {"house", "dog", "book", "friend"}


def test_proficiency_ceiling_filters_harder_words():
    dictionary = _dictionary(
        make_entry("house", "casa", rank=10),
        make_entry("journey", "viaje", rank=900, level="intermediate"),
        make_entry("whisper", "susurro", rank=2500, level="advanced"),
    )
    content = "A whisper on the journey home to the house."

    beginner = _process(dictionary, content, proficiency_level="beginner")
    intermediate = _process(dictionary, content, proficiency_level="intermediate")
    advanced = _process(dictionary, content, proficiency_level="advanced")

    assert [r.original_word for r in beginner.foreign_words] == ["house"]
    assert [r.original_word for r in intermediate.foreign_words] == ["journey", "house"]
    assert [r.original_word for r in advanced.foreign_words] == ["whisper", "journey", "house"]


def test_repeated_word_reuses_entry_without_extra_budget():
    dictionary = _dictionary(make_entry("the", "el", rank=1), make_entry("house", "casa", rank=10))
    result = _process(dictionary, "The house, the house.", density=0.25, markup=False)

    assert result.stats.eligible_words == 4
    assert result.stats.replaced_words == 1
    assert result.content == "el house, el house."
    assert [record.original_word for record in result.foreign_words] == ["The", "the"]
    assert [record.start_index for record in result.foreign_words] == [0, 11]


def test_lookup_is_one_batch_of_distinct_words():
    dictionary = _dictionary(make_entry("dog", "perro", rank=25))
    _process(dictionary, "Dog eat dog, DOG eat cat.")

    assert dictionary.calls == [["dog", "eat", "cat"]]


def test_variants_are_replaced_and_keep_source_offsets():
    dictionary = _dictionary(make_entry("house", "casa", variants=("houses",)))
    content = "<p>Two houses.</p>"
    result = _process(dictionary, content)

    record = result.foreign_words[0]
    assert record.original_word == "houses"
    assert content[record.start_index : record.end_index] == "houses"
    assert 'data-original="houses"' in result.content
    assert result.content.startswith("<p>Two <span")
    assert result.content.endswith("</span>.</p>")


def test_markup_is_preserved_around_substitutions():
    dictionary = _dictionary(make_entry("house", "casa"))
    content = '<div title="house"><!-- house -->house<script>house()</script></div>'
    result = _process(dictionary, content)

    assert len(result.foreign_words) == 1
    assert result.content.startswith('<div title="house"><!-- house --><span')
    assert result.content.endswith("</span><script>house()</script></div>")


def test_tag_with_quoted_angle_bracket_stays_intact():
    dictionary = _dictionary(make_entry("house", "casa"))
    tag = '<img alt="big > small house" src="a.png">'
    result = _process(dictionary, tag + "The house.")

    assert result.content.startswith(tag + "The <span")
    assert result.content.endswith("</span>.")
    assert [record.start_index for record in result.foreign_words] == [len(tag) + 4]


def test_preferred_entry_above_ceiling_makes_word_ineligible():
    dictionary = _dictionary(
        make_entry("saw", "sierra", entry_id="saw-noun", level="advanced", rank=900),
        make_entry("see", "ver", entry_id="see", rank=50, variants=("saw",)),
    )

    beginner = _process(dictionary, "I saw it.", proficiency_level="beginner")
    advanced = _process(dictionary, "I saw it.", proficiency_level="advanced")

    assert beginner.foreign_words == []
    assert beginner.stats.eligible_words == 0
    assert [record.foreign_word for record in advanced.foreign_words] == ["sierra"]


def test_untouched_text_survives_unchanged():
    dictionary = _dictionary(make_entry("house", "casa"))
    content = "The house is big."
    result = _process(dictionary, content, markup=False)

    segments = tokenize(result.content, markup=False)
    assert "".join(segment.text for segment in segments) == "The casa is big."


def test_provider_failure_returns_degraded_result():
    content = "The house is big."
    result = _process(BrokenDictionary(), content)

    assert result.degraded
    assert result.content == content
    assert result.foreign_words == []
    assert "dictionary offline" in result.error
    assert result.stats.replaced_words == 0


class UnreachableDictionary(CountingDictionary):
    async def initialize(self) -> None:
        raise DictionaryUnavailableError("dictionary store missing")


def test_initialize_failure_returns_degraded_result():
    provider = UnreachableDictionary("en", "es", [make_entry("house", "casa")])
    content = "<p>The house is big.</p>"
    result = _process(provider, content)

    assert result.degraded
    assert result.content == content
    assert result.foreign_words == []
    assert "dictionary store missing" in result.error
    assert provider.calls == []


def test_degraded_result_helper():
    result = ProcessingResult.degraded_result("text", "boom")
    assert result.degraded is True
    assert result.content == "text"
    assert result.foreign_words == []
    assert result.error == "boom"


@pytest.mark.parametrize(
    "options",
    [
        {"density": 1.5},
        {"density": -0.5},
        {"proficiency_level": "expert"},
        {"source_language": ""},
    ],
)
def test_invalid_options_are_rejected(options):
    with pytest.raises(ValidationError):
        _process(_dictionary(), "The house.", **options)
