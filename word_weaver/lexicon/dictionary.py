from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

from word_weaver.errors import DuplicateEntryError, ValidationError
from word_weaver.models import InstallReport, ProficiencyLevel, WordEntry
from word_weaver.pipeline.tokenizer import normalize_word
from word_weaver.storage.db import Database

logger = logging.getLogger(__name__)

# Seeded into an empty en->es store at app startup.
BUILTIN_EN_ES = [
    ("en-es-the", "the", "el", "beginner", 1, "article", [], "el"),
    ("en-es-house", "house", "casa", "beginner", 10, "noun", ["houses"], "ˈka.sa"),
    ("en-es-water", "water", "agua", "beginner", 12, "noun", [], "ˈa.ɣwa"),
    ("en-es-day", "day", "día", "beginner", 15, "noun", ["days"], "ˈdi.a"),
    ("en-es-big", "big", "grande", "beginner", 20, "adjective", ["bigger", "biggest"], "ˈɡɾan.de"),
    ("en-es-dog", "dog", "perro", "beginner", 25, "noun", ["dogs"], "ˈpe.ro"),
    ("en-es-book", "book", "libro", "beginner", 30, "noun", ["books"], "ˈli.βɾo"),
    ("en-es-friend", "friend", "amigo", "beginner", 40, "noun", ["friends"], "a.ˈmi.ɣo"),
    ("en-es-city", "city", "ciudad", "intermediate", 120, "noun", ["cities"], "θju.ˈðað"),
    ("en-es-window", "window", "ventana", "intermediate", 300, "noun", ["windows"], "ben.ˈta.na"),
    ("en-es-journey", "journey", "viaje", "intermediate", 900, "noun", ["journeys"], "ˈbja.xe"),
    ("en-es-whisper", "whisper", "susurro", "advanced", 2500, "noun", ["whispers"], "su.ˈsu.ro"),
]

_FIELD_ALIASES = {
    "id": ("id",),
    "source_word": ("source_word", "sourceWord"),
    "target_word": ("target_word", "targetWord"),
    "source_language": ("source_language", "sourceLanguage", "source_lang"),
    "target_language": ("target_language", "targetLanguage", "target_lang"),
    "proficiency_level": ("proficiency_level", "proficiencyLevel", "proficiency"),
    "frequency_rank": ("frequency_rank", "frequencyRank"),
    "part_of_speech": ("part_of_speech", "partOfSpeech"),
    "variants": ("variants",),
    "pronunciation": ("pronunciation",),
}


def builtin_entries(source_language: str = "en", target_language: str = "es") -> list[WordEntry]:
    if (source_language, target_language) != ("en", "es"):
        return []
    return [
        WordEntry(
            id=entry_id,
            source_word=source,
            target_word=target,
            source_language="en",
            target_language="es",
            proficiency_level=ProficiencyLevel(level),
            frequency_rank=rank,
            part_of_speech=pos,
            variants=tuple(variants),
            pronunciation=pronunciation,
        )
        for entry_id, source, target, level, rank, pos, variants, pronunciation in BUILTIN_EN_ES
    ]


def entry_from_payload(payload: object, source_language: str, target_language: str) -> WordEntry:
    if isinstance(payload, WordEntry):
        entry = payload
    elif isinstance(payload, Mapping):
        entry = _entry_from_mapping(payload, source_language, target_language)
    else:
        raise ValidationError(f"unsupported dictionary entry type: {type(payload).__name__}")

    if entry.source_language != source_language or entry.target_language != target_language:
        raise ValidationError(
            f"entry {entry.id} is {entry.source_language}->{entry.target_language}, "
            f"expected {source_language}->{target_language}"
        )
    if not entry.id.strip() or not normalize_word(entry.source_word) or not entry.target_word.strip():
        raise ValidationError(f"entry {entry.id or '?'} is missing id, source word or target word")
    return entry


def install_entries(
    source_language: str,
    target_language: str,
    entries: Iterable[object],
    *,
    write: Callable[[WordEntry], None],
) -> InstallReport:
    """Write entries one by one; a bad entry never aborts the batch."""
    source_language = source_language.strip().lower()
    target_language = target_language.strip().lower()
    report = InstallReport()
    seen_ids: set[str] = set()

    for position, payload in enumerate(entries):
        try:
            entry = entry_from_payload(payload, source_language, target_language)
        except ValidationError as exc:
            report.skipped += 1
            logger.warning("skipping malformed dictionary entry #%d: %s", position, exc)
            continue

        if entry.id in seen_ids:
            report.skipped += 1
            logger.debug("skipping duplicate dictionary id %s", entry.id)
            continue
        seen_ids.add(entry.id)

        try:
            write(entry)
        except (sqlite3.IntegrityError, DuplicateEntryError):
            report.skipped += 1
            logger.debug("dictionary id %s already installed", entry.id)
        except Exception as exc:
            report.errors.append(f"Failed to insert {entry.source_word}: {exc}")
            logger.warning("failed to install dictionary entry %s: %s", entry.id, exc)
        else:
            report.imported += 1

    logger.info(
        "dictionary %s->%s installed: imported=%d skipped=%d errors=%d",
        source_language,
        target_language,
        report.imported,
        report.skipped,
        len(report.errors),
    )
    return report


def load_dictionary_file(path: Path) -> list[dict]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, Mapping):
        payload = payload.get("entries") or payload.get("words") or []
    if not isinstance(payload, list):
        raise ValidationError(f"{path} does not contain a list of dictionary entries")
    return payload


class SQLiteDictionary:
    def __init__(self, db: Database, source_language: str, target_language: str) -> None:
        self.db = db
        self.source_language = source_language.strip().lower()
        self.target_language = target_language.strip().lower()
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        await _run_blocking(self.db.initialize)
        self._initialized = True

    async def lookup_words(self, words: Sequence[str]) -> dict[str, WordEntry | None]:
        await self.initialize()
        matches = await _run_blocking(
            partial(
                self.db.find_word_entries,
                list(words),
                source_language=self.source_language,
                target_language=self.target_language,
            )
        )
        return _resolve_matches(words, matches)

    async def lookup_word(self, word: str) -> WordEntry | None:
        found = await self.lookup_words([word])
        return found.get(word)

    def install_dictionary(self, entries: Iterable[object]) -> InstallReport:
        self.db.initialize()
        return install_entries(
            self.source_language,
            self.target_language,
            entries,
            write=self.db.insert_word_entry,
        )

    def install_builtin(self) -> InstallReport:
        return self.install_dictionary(builtin_entries(self.source_language, self.target_language))

    def get_word_count(self) -> int:
        return self.db.count_word_entries(self.source_language, self.target_language)

    def get_words_by_level(self, level: ProficiencyLevel | str) -> list[WordEntry]:
        return self.db.list_word_entries_by_level(
            self.source_language,
            self.target_language,
            ProficiencyLevel.parse(level),
        )


def _resolve_matches(
    words: Sequence[str],
    matches: Iterable[tuple[str, WordEntry]],
) -> dict[str, WordEntry | None]:
    best: dict[str, WordEntry] = {}
    for form, entry in matches:
        current = best.get(form)
        if current is None or _rank_key(entry, form) < _rank_key(current, form):
            best[form] = entry
    return {word: best.get(normalize_word(word)) for word in words}


def _rank_key(entry: WordEntry, form: str) -> tuple[int, int, str]:
    exact = normalize_word(entry.source_word) == form
    return (0 if exact else 1, entry.frequency_rank, entry.id)


def _entry_from_mapping(payload: Mapping, source_language: str, target_language: str) -> WordEntry:
    values = {name: _pick(payload, aliases) for name, aliases in _FIELD_ALIASES.items()}

    rank = values["frequency_rank"]
    if rank is None:
        rank = 0
    if isinstance(rank, bool) or not isinstance(rank, (int, float)) or int(rank) != rank:
        raise ValidationError(f"entry {values['id']!r} has a non-integer frequency rank: {rank!r}")

    variants = values["variants"] or []
    if isinstance(variants, str):
        variants = [variants]
    if not isinstance(variants, (list, tuple)):
        raise ValidationError(f"entry {values['id']!r} has invalid variants")

    try:
        level = ProficiencyLevel.parse(values["proficiency_level"])
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    return WordEntry(
        id=str(values["id"] or "").strip(),
        source_word=str(values["source_word"] or "").strip(),
        target_word=str(values["target_word"] or "").strip(),
        source_language=str(values["source_language"] or source_language).strip().lower(),
        target_language=str(values["target_language"] or target_language).strip().lower(),
        proficiency_level=level,
        frequency_rank=int(rank),
        part_of_speech=str(values["part_of_speech"] or "").strip(),
        variants=tuple(str(v).strip() for v in variants if str(v).strip()),
        pronunciation=str(values["pronunciation"]).strip() if values["pronunciation"] else None,
    )


def _pick(payload: Mapping, aliases: tuple[str, ...]) -> object:
    for key in aliases:
        if key in payload:
            return payload[key]
    return None


async def _run_blocking(func: Callable):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)
