from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable

from word_weaver.errors import DuplicateEntryError, NotFoundError
from word_weaver.models import VocabularyItem
from word_weaver.scheduler.srs import due_queue


class InMemoryVocabularyRepository:
    def __init__(self, items: Iterable[VocabularyItem] = ()) -> None:
        self._items: dict[str, VocabularyItem] = {}
        for item in items:
            self.add(item)

    def add(self, item: VocabularyItem) -> None:
        if item.id in self._items:
            raise DuplicateEntryError(f"vocabulary item {item.id} already exists")
        self._items[item.id] = replace(item)

    def update(self, item: VocabularyItem) -> None:
        if item.id not in self._items:
            raise NotFoundError(f"vocabulary item {item.id} not found")
        self._items[item.id] = replace(item)

    def delete(self, item_id: str) -> bool:
        return self._items.pop(item_id, None) is not None

    def delete_all(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def get(self, item_id: str) -> VocabularyItem | None:
        item = self._items.get(item_id)
        return replace(item) if item else None

    def get_all(self) -> list[VocabularyItem]:
        items = sorted(self._items.values(), key=lambda item: item.id)
        items.sort(key=lambda item: item.added_at, reverse=True)
        return [replace(item) for item in items]

    def get_due_for_review(self, limit: int = 20, *, now: datetime | None = None) -> list[VocabularyItem]:
        return due_queue(self.get_all(), limit=limit, now=now)

    def __len__(self) -> int:
        return len(self._items)
