from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol

from word_weaver.errors import NotFoundError, ValidationError
from word_weaver.models import (
    ForeignWordRecord,
    VocabularyItem,
    VocabularyStatistics,
    VocabularyStatus,
)
from word_weaver.scheduler.srs import grade_review, is_due

UTC = timezone.utc

logger = logging.getLogger(__name__)


class VocabularyRepository(Protocol):
    def add(self, item: VocabularyItem) -> None:
        ...

    def update(self, item: VocabularyItem) -> None:
        ...

    def delete(self, item_id: str) -> bool:
        ...

    def delete_all(self) -> int:
        ...

    def get(self, item_id: str) -> VocabularyItem | None:
        ...

    def get_all(self) -> list[VocabularyItem]:
        ...

    def get_due_for_review(self, limit: int = 20, *, now: datetime | None = None) -> list[VocabularyItem]:
        ...


class VocabularyService:
    """Saved words and their review schedule.

    Grading calls against the same item must be serialized by the caller.
    """

    def __init__(self, repository: VocabularyRepository, *, review_limit: int = 20) -> None:
        self.repository = repository
        self.review_limit = review_limit

    def save_foreign_word(
        self,
        record: ForeignWordRecord,
        *,
        context_sentence: str | None = None,
        book_id: str | None = None,
        book_title: str | None = None,
        now: datetime | None = None,
    ) -> VocabularyItem:
        entry = record.word_entry
        return self.save_word(
            source_word=entry.source_word,
            target_word=entry.target_word,
            source_language=entry.source_language,
            target_language=entry.target_language,
            context_sentence=context_sentence,
            book_id=book_id,
            book_title=book_title,
            now=now,
        )

    def save_word(
        self,
        *,
        source_word: str,
        target_word: str,
        source_language: str,
        target_language: str,
        context_sentence: str | None = None,
        book_id: str | None = None,
        book_title: str | None = None,
        now: datetime | None = None,
    ) -> VocabularyItem:
        source_word = source_word.strip()
        target_word = target_word.strip()
        if not source_word or not target_word:
            raise ValidationError("source and target words are required")
        item = VocabularyItem(
            id=uuid.uuid4().hex,
            source_word=source_word,
            target_word=target_word,
            source_language=source_language.strip().lower(),
            target_language=target_language.strip().lower(),
            context_sentence=(context_sentence or "").strip() or None,
            book_id=book_id,
            book_title=book_title,
            added_at=now or datetime.now(UTC),
        )
        self.repository.add(item)
        logger.info("saved %r -> %r to vocabulary", item.source_word, item.target_word)
        return item

    def is_word_saved(self, source_word: str, target_language: str) -> bool:
        word = source_word.strip().casefold()
        language = target_language.strip().lower()
        return any(
            item.source_word.casefold() == word and item.target_language == language
            for item in self.repository.get_all()
        )

    def remove_word(self, item_id: str) -> None:
        if not self.repository.delete(item_id):
            raise NotFoundError(f"vocabulary item {item_id} not found")

    def clear_vocabulary(self) -> int:
        removed = self.repository.delete_all()
        logger.info("cleared %d vocabulary items", removed)
        return removed

    def get_added_today(self, *, now: datetime | None = None) -> list[VocabularyItem]:
        today = (now or datetime.now(UTC)).astimezone(UTC).date()
        return [item for item in self.repository.get_all() if item.added_at.astimezone(UTC).date() == today]

    def get_word(self, item_id: str) -> VocabularyItem:
        item = self.repository.get(item_id)
        if item is None:
            raise NotFoundError(f"vocabulary item {item_id} not found")
        return item

    def list_words(
        self,
        *,
        status: VocabularyStatus | str | None = None,
        book_id: str | None = None,
        source_language: str | None = None,
        target_language: str | None = None,
    ) -> list[VocabularyItem]:
        try:
            wanted_status = VocabularyStatus(status) if status else None
        except ValueError as exc:
            raise ValidationError(f"unknown vocabulary status: {status!r}") from exc
        items = self.repository.get_all()
        return [
            item
            for item in items
            if (wanted_status is None or item.status == wanted_status)
            and (book_id is None or item.book_id == book_id)
            and (source_language is None or item.source_language == source_language.lower())
            and (target_language is None or item.target_language == target_language.lower())
        ]

    def search(self, query: str) -> list[VocabularyItem]:
        needle = query.strip().casefold()
        items = self.repository.get_all()
        if not needle:
            return items
        return [
            item
            for item in items
            if needle in item.source_word.casefold() or needle in item.target_word.casefold()
        ]

    def record_review(self, item_id: str, quality: int, *, now: datetime | None = None) -> VocabularyItem:
        item = self.get_word(item_id)
        graded = grade_review(item, quality, now=now)
        self.repository.update(graded)
        logger.debug(
            "graded %s quality=%d interval=%d ease=%.2f status=%s",
            item_id,
            quality,
            graded.interval,
            graded.ease_factor,
            graded.status.value,
        )
        return graded

    def get_due_for_review(self, limit: int | None = None, *, now: datetime | None = None) -> list[VocabularyItem]:
        return self.repository.get_due_for_review(self.review_limit if limit is None else limit, now=now)

    def statistics(self, *, now: datetime | None = None) -> VocabularyStatistics:
        items = self.repository.get_all()
        now = now or datetime.now(UTC)
        counts = {status: 0 for status in VocabularyStatus}
        for item in items:
            counts[item.status] += 1
        return VocabularyStatistics(
            total=len(items),
            new=counts[VocabularyStatus.NEW],
            learning=counts[VocabularyStatus.LEARNING],
            review=counts[VocabularyStatus.REVIEW],
            learned=counts[VocabularyStatus.LEARNED],
            due_today=sum(1 for item in items if is_due(item, now)),
        )
