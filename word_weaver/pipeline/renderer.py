from __future__ import annotations

from html import escape
from typing import Iterable, Mapping

from word_weaver.models import ForeignWordRecord, WordEntry
from word_weaver.pipeline.tokenizer import Segment

FOREIGN_WORD_CLASS = "foreign-word"


def render_substitutions(
    segments: Iterable[Segment],
    chosen: Mapping[str, WordEntry],
    *,
    markup: bool = True,
) -> tuple[str, list[ForeignWordRecord]]:
    parts: list[str] = []
    records: list[ForeignWordRecord] = []
    for segment in segments:
        entry = chosen.get(segment.normalized) if segment.is_word else None
        if entry is None:
            parts.append(segment.text)
            continue
        parts.append(render_foreign_word(segment.text, entry) if markup else entry.target_word)
        records.append(
            ForeignWordRecord(
                original_word=segment.text,
                foreign_word=entry.target_word,
                start_index=segment.start,
                end_index=segment.end,
                word_entry=entry,
            )
        )
    return "".join(parts), records


def render_foreign_word(original: str, entry: WordEntry) -> str:
    attrs = [
        ("class", FOREIGN_WORD_CLASS),
        ("data-original", original),
        ("data-word-id", entry.id),
    ]
    if entry.pronunciation:
        attrs.append(("data-pronunciation", entry.pronunciation))
    rendered_attrs = " ".join(f'{name}="{escape(value, quote=True)}"' for name, value in attrs)
    return f"<span {rendered_attrs}>{escape(entry.target_word, quote=False)}</span>"
