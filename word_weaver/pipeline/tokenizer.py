from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

# Letters only: \w minus digits and underscore.
WORD_RE = re.compile(r"[^\W\d_]+")

# Tag body up to the closing ">", skipping over quoted attribute values.
TAG_BODY = r"""(?:[^>"']|"[^"]*"|'[^']*')*"""

MARKUP_RE = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    rf"|<(script|style)\b{TAG_BODY}>.*?</\1\s*>"
    rf"|<[!/?]?[A-Za-z]{TAG_BODY}>"
    r"|&(?:#[0-9]+|#[xX][0-9A-Fa-f]+|[A-Za-z][A-Za-z0-9]*);",
    re.DOTALL | re.IGNORECASE,
)


@dataclass(frozen=True)
class Segment:
    text: str
    start: int
    end: int
    is_word: bool

    @property
    def normalized(self) -> str:
        return normalize_word(self.text) if self.is_word else ""


def normalize_word(word: str) -> str:
    return word.strip().casefold()


def tokenize(content: str, *, markup: bool = True) -> list[Segment]:
    """Split ``content`` into word and non-word segments.

    Joining the segment texts in order gives back ``content`` unchanged. With
    ``markup`` enabled, tags, comments, entities and script/style bodies are
    emitted as single non-word segments so no word segment crosses into them.
    """
    if not content:
        return []

    segments: list[Segment] = []
    if not markup:
        _split_text(content, 0, len(content), segments)
        return segments

    cursor = 0
    for match in MARKUP_RE.finditer(content):
        if match.start() > cursor:
            _split_text(content, cursor, match.start(), segments)
        segments.append(Segment(match.group(0), match.start(), match.end(), False))
        cursor = match.end()
    if cursor < len(content):
        _split_text(content, cursor, len(content), segments)
    return segments


def reconstruct(segments: Iterable[Segment]) -> str:
    return "".join(segment.text for segment in segments)


def word_segments(segments: Iterable[Segment]) -> list[Segment]:
    return [segment for segment in segments if segment.is_word]


def distinct_words(segments: Iterable[Segment]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for segment in segments:
        if not segment.is_word:
            continue
        key = segment.normalized
        if key in seen:
            continue
        seen.add(key)
        ordered.append(key)
    return ordered


def _split_text(content: str, start: int, end: int, out: list[Segment]) -> None:
    cursor = start
    for match in WORD_RE.finditer(content, start, end):
        if match.start() > cursor:
            out.append(Segment(content[cursor : match.start()], cursor, match.start(), False))
        out.append(Segment(match.group(0), match.start(), match.end(), True))
        cursor = match.end()
    if cursor < end:
        out.append(Segment(content[cursor:end], cursor, end, False))
