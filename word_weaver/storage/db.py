from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from word_weaver.config import DB_PATH
from word_weaver.errors import NotFoundError
from word_weaver.models import ProficiencyLevel, VocabularyItem, VocabularyStatus, WordEntry
from word_weaver.pipeline.tokenizer import normalize_word
from word_weaver.scheduler.srs import due_queue

UTC = timezone.utc
# Stay well under SQLITE_MAX_VARIABLE_NUMBER on older builds.
LOOKUP_CHUNK_SIZE = 400


class Database:
    def __init__(self, db_path: Path = DB_PATH) -> None:
        self.db_path = db_path

    @contextmanager
    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        schema_path = Path(__file__).with_name("schema.sql")
        with self.connect() as conn:
            conn.executescript(schema_path.read_text(encoding="utf-8"))

    # Dictionary rows

    def insert_word_entry(self, entry: WordEntry) -> None:
        forms = {normalize_word(form) for form in entry.forms()}
        forms.discard("")
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO word_list
                (id, source_word, target_word, source_lang, target_lang, proficiency,
                 frequency_rank, part_of_speech, variants, pronunciation)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.source_word,
                    entry.target_word,
                    entry.source_language,
                    entry.target_language,
                    entry.proficiency_level.value,
                    entry.frequency_rank,
                    entry.part_of_speech,
                    _json_dumps(list(entry.variants)),
                    entry.pronunciation,
                ),
            )
            conn.executemany(
                """
                INSERT OR IGNORE INTO word_forms (word_id, form, source_lang, target_lang)
                VALUES (?, ?, ?, ?)
                """,
                [(entry.id, form, entry.source_language, entry.target_language) for form in sorted(forms)],
            )

    def find_word_entries(
        self,
        forms: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> list[tuple[str, WordEntry]]:
        keys = sorted({normalize_word(form) for form in forms if normalize_word(form)})
        matches: list[tuple[str, WordEntry]] = []
        if not keys:
            return matches
        with self.connect() as conn:
            for offset in range(0, len(keys), LOOKUP_CHUNK_SIZE):
                chunk = keys[offset : offset + LOOKUP_CHUNK_SIZE]
                placeholders = ",".join(["?"] * len(chunk))
                rows = conn.execute(
                    f"""
                    SELECT f.form AS matched_form, w.*
                    FROM word_forms f
                    JOIN word_list w ON w.id = f.word_id
                    WHERE f.form IN ({placeholders})
                      AND f.source_lang = ?
                      AND f.target_lang = ?
                    """,
                    (*chunk, source_language, target_language),
                ).fetchall()
                matches.extend((str(row["matched_form"]), _decode_word_entry(row)) for row in rows)
        return matches

    def count_word_entries(self, source_language: str, target_language: str) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS cnt FROM word_list WHERE source_lang = ? AND target_lang = ?",
                (source_language, target_language),
            ).fetchone()
        return int(row["cnt"] if row else 0)

    def list_word_entries_by_level(
        self,
        source_language: str,
        target_language: str,
        level: ProficiencyLevel,
    ) -> list[WordEntry]:
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM word_list
                WHERE source_lang = ? AND target_lang = ? AND proficiency = ?
                ORDER BY frequency_rank ASC, id ASC
                """,
                (source_language, target_language, level.value),
            ).fetchall()
        return [_decode_word_entry(row) for row in rows]

    # Vocabulary repository

    def add(self, item: VocabularyItem) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO vocabulary
                (id, source_word, target_word, source_lang, target_lang, context_sentence,
                 book_id, book_title, added_at, last_reviewed_at, review_count, ease_factor,
                 interval, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                _encode_vocabulary(item),
            )

    def update(self, item: VocabularyItem) -> None:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE vocabulary
                SET source_word = ?,
                    target_word = ?,
                    context_sentence = ?,
                    last_reviewed_at = ?,
                    review_count = ?,
                    ease_factor = ?,
                    interval = ?,
                    status = ?
                WHERE id = ?
                """,
                (
                    item.source_word,
                    item.target_word,
                    item.context_sentence,
                    _iso(item.last_reviewed_at),
                    item.review_count,
                    item.ease_factor,
                    item.interval,
                    item.status.value,
                    item.id,
                ),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"vocabulary item {item.id} not found")

    def delete(self, item_id: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM vocabulary WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    def delete_all(self) -> int:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM vocabulary")
        return cursor.rowcount

    def get(self, item_id: str) -> VocabularyItem | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM vocabulary WHERE id = ?", (item_id,)).fetchone()
        return _decode_vocabulary(row) if row else None

    def get_all(self) -> list[VocabularyItem]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM vocabulary ORDER BY added_at DESC, id ASC").fetchall()
        return [_decode_vocabulary(row) for row in rows]

    def get_due_for_review(self, limit: int = 20, *, now: datetime | None = None) -> list[VocabularyItem]:
        if limit <= 0:
            return []
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM vocabulary WHERE status != ?",
                (VocabularyStatus.LEARNED.value,),
            ).fetchall()
        return due_queue([_decode_vocabulary(row) for row in rows], limit=limit, now=now)


def _json_dumps(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def _json_loads(value: str | None) -> list:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return []
    return parsed if isinstance(parsed, list) else []


def _decode_word_entry(row: sqlite3.Row) -> WordEntry:
    return WordEntry(
        id=str(row["id"]),
        source_word=str(row["source_word"]),
        target_word=str(row["target_word"]),
        source_language=str(row["source_lang"]),
        target_language=str(row["target_lang"]),
        proficiency_level=ProficiencyLevel.parse(row["proficiency"]),
        frequency_rank=int(row["frequency_rank"] or 0),
        part_of_speech=str(row["part_of_speech"] or ""),
        variants=tuple(str(v) for v in _json_loads(row["variants"])),
        pronunciation=row["pronunciation"] or None,
    )


def _encode_vocabulary(item: VocabularyItem) -> tuple:
    return (
        item.id,
        item.source_word,
        item.target_word,
        item.source_language,
        item.target_language,
        item.context_sentence,
        item.book_id,
        item.book_title,
        _iso(item.added_at),
        _iso(item.last_reviewed_at),
        item.review_count,
        item.ease_factor,
        item.interval,
        item.status.value,
    )


def _decode_vocabulary(row: sqlite3.Row) -> VocabularyItem:
    return VocabularyItem(
        id=str(row["id"]),
        source_word=str(row["source_word"]),
        target_word=str(row["target_word"]),
        source_language=str(row["source_lang"]),
        target_language=str(row["target_lang"]),
        context_sentence=row["context_sentence"],
        book_id=row["book_id"],
        book_title=row["book_title"],
        added_at=_parse_dt(row["added_at"]) or datetime.now(UTC),
        last_reviewed_at=_parse_dt(row["last_reviewed_at"]),
        review_count=int(row["review_count"] or 0),
        ease_factor=float(row["ease_factor"] or 2.5),
        interval=int(row["interval"] or 0),
        status=VocabularyStatus(str(row["status"] or "new")),
    )


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def _parse_dt(value: object) -> datetime | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
