from __future__ import annotations

import math

import pytest

from tests.factories import make_entry
from word_weaver.errors import ValidationError
from word_weaver.models import ProficiencyLevel
from word_weaver.pipeline.renderer import render_foreign_word, render_substitutions
from word_weaver.pipeline.selection import (
    build_lookup_index,
    select_words,
    selection_budget,
    validate_density,
)
from word_weaver.pipeline.tokenizer import tokenize


@pytest.mark.parametrize(
    ("density", "eligible", "expected"),
    [
        (0.0, 10, 0),
        (1.0, 10, 10),
        (0.3, 10, 3),
        (0.25, 4, 1),
        (0.01, 3, 1),
        (0.5, 0, 0),
        (0.7, 3, 3),
    ],
)
def test_selection_budget_rounds_up(density, eligible, expected):
    assert selection_budget(density, eligible) == expected


@pytest.mark.parametrize("density", [-0.1, 1.01, 2, float("nan"), "lots", None])
def test_validate_density_rejects_out_of_range(density):
    with pytest.raises(ValidationError):
        validate_density(density)


def test_validate_density_accepts_bounds():
    assert validate_density(0) == 0.0
    assert validate_density("1") == 1.0


def test_lookup_index_prefers_exact_source_match_then_rank():
    saw_verb = make_entry("saw", "sierra", entry_id="saw-noun", rank=900)
    see = make_entry("see", "ver", entry_id="see", rank=50, variants=("saw", "seen"))
    index = build_lookup_index({"saw": saw_verb, "see": see, "seen": see}, ProficiencyLevel.ADVANCED)

    assert index["saw"].id == "saw-noun"
    assert index["seen"].id == "see"
    assert index["see"].id == "see"


def test_lookup_index_drops_entries_above_ceiling():
    lookups = {
        "house": make_entry("house", "casa", level="beginner"),
        "journey": make_entry("journey", "viaje", level="intermediate"),
        "whisper": make_entry("whisper", "susurro", level="advanced"),
        "nothing": None,
    }
    assert set(build_lookup_index(lookups, ProficiencyLevel.BEGINNER)) == {"house"}
    assert set(build_lookup_index(lookups, ProficiencyLevel.INTERMEDIATE)) == {"house", "journey"}
    assert set(build_lookup_index(lookups, ProficiencyLevel.ADVANCED)) == {"house", "journey", "whisper"}


def test_select_words_ranks_by_frequency_then_position():
    index = {
        "dog": make_entry("dog", "perro", rank=25),
        "house": make_entry("house", "casa", rank=10),
        "book": make_entry("book", "libro", rank=25),
    }
    selection = select_words(tokenize("book dog house"), index, 2 / 3)

    assert selection.eligible_count == 3
    assert selection.budget == 2
    assert list(selection.chosen) == ["house", "book"]


def test_select_words_budget_counts_occurrences():
    index = {"house": make_entry("house", "casa"), "dog": make_entry("dog", "perro", rank=25)}
    selection = select_words(tokenize("house house house dog"), index, 0.5)

    assert selection.eligible_count == 4
    assert selection.budget == math.ceil(0.5 * 4)
    assert list(selection.chosen) == ["house", "dog"]


def test_render_foreign_word_escapes_attributes():
    entry = make_entry("quote", 'ci<t>a"', entry_id='q"1', pronunciation="ˈθi.ta")
    html = render_foreign_word('Quote"s', entry)

    assert html == (
        '<span class="foreign-word" data-original="Quote&quot;s" data-word-id="q&quot;1" '
        'data-pronunciation="ˈθi.ta">ci&lt;t&gt;a"</span>'
    )


def test_render_substitutions_records_offsets_and_keeps_case_of_original():
    content = "The House is big."
    chosen = {"house": make_entry("house", "casa")}
    rendered, records = render_substitutions(tokenize(content), chosen)

    assert 'data-original="House"' in rendered
    assert rendered.startswith("The <span")
    assert rendered.endswith("</span> is big.")
    assert len(records) == 1
    assert records[0].original_word == "House"
    assert content[records[0].start_index : records[0].end_index] == "House"


def test_render_substitutions_plain_mode_emits_bare_word():
    rendered, records = render_substitutions(
        tokenize("my dog, your dog", markup=False),
        {"dog": make_entry("dog", "perro")},
        markup=False,
    )
    assert rendered == "my perro, your perro"
    assert [record.start_index for record in records] == [3, 13]
