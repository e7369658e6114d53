from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from word_weaver.errors import ValidationError
from word_weaver.models import ProficiencyLevel, WordEntry
from word_weaver.pipeline.tokenizer import Segment, normalize_word


@dataclass
class Selection:
    chosen: dict[str, WordEntry] = field(default_factory=dict)
    eligible_count: int = 0
    budget: int = 0


def validate_density(density: object) -> float:
    try:
        value = float(density)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"density must be a number, got {density!r}") from exc
    if math.isnan(value) or value < 0.0 or value > 1.0:
        raise ValidationError(f"density must be within [0, 1], got {value}")
    return value


def selection_budget(density: float, eligible_count: int) -> int:
    if eligible_count <= 0 or density <= 0:
        return 0
    # Guard against float noise such as 0.3 * 10 == 3.0000000000000004.
    return min(eligible_count, math.ceil(round(density * eligible_count, 9)))


def build_lookup_index(
    lookups: Mapping[str, WordEntry | None],
    ceiling: ProficiencyLevel,
) -> dict[str, WordEntry]:
    """Map every normalized surface form to the entry that claims it.

    Entries above ``ceiling`` are dropped. A form claimed by several entries
    goes to an exact source-word match first, then to the lowest frequency rank.
    """
    index: dict[str, tuple[tuple[int, int, str], WordEntry]] = {}
    for queried, entry in lookups.items():
        if entry is None or not ceiling.allows(entry.proficiency_level):
            continue
        source_form = normalize_word(entry.source_word)
        forms = {source_form, normalize_word(queried)}
        forms.update(normalize_word(variant) for variant in entry.variants)
        for form in forms:
            if not form:
                continue
            key = (0 if form == source_form else 1, entry.frequency_rank, entry.id)
            current = index.get(form)
            if current is None or key < current[0]:
                index[form] = (key, entry)
    return {form: entry for form, (_key, entry) in index.items()}


def select_words(
    segments: Iterable[Segment],
    index: Mapping[str, WordEntry],
    density: float,
) -> Selection:
    first_seen: dict[str, int] = {}
    eligible_count = 0
    for segment in segments:
        if not segment.is_word:
            continue
        key = segment.normalized
        if key not in index:
            continue
        eligible_count += 1
        first_seen.setdefault(key, segment.start)

    budget = selection_budget(density, eligible_count)
    ranked = sorted(first_seen, key=lambda word: (index[word].frequency_rank, first_seen[word]))
    chosen = {word: index[word] for word in ranked[:budget]}
    return Selection(chosen=chosen, eligible_count=eligible_count, budget=budget)
