from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

UTC = timezone.utc

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class ProficiencyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return _PROFICIENCY_RANK[self]

    def allows(self, level: ProficiencyLevel) -> bool:
        """True when an entry at ``level`` is within this ceiling."""
        return level.rank <= self.rank

    @classmethod
    def parse(cls, value: object) -> ProficiencyLevel:
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"unknown proficiency level: {value!r}") from exc


_PROFICIENCY_RANK = {
    ProficiencyLevel.BEGINNER: 0,
    ProficiencyLevel.INTERMEDIATE: 1,
    ProficiencyLevel.ADVANCED: 2,
}


class VocabularyStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    LEARNED = "learned"


@dataclass(frozen=True)
class WordEntry:
    id: str
    source_word: str
    target_word: str
    source_language: str
    target_language: str
    proficiency_level: ProficiencyLevel
    frequency_rank: int
    part_of_speech: str = ""
    variants: tuple[str, ...] = ()
    pronunciation: str | None = None

    def forms(self) -> list[str]:
        return [self.source_word, *self.variants]


@dataclass(frozen=True)
class ForeignWordRecord:
    original_word: str
    foreign_word: str
    start_index: int
    end_index: int
    word_entry: WordEntry


@dataclass(frozen=True)
class ProcessingStats:
    total_words: int = 0
    eligible_words: int = 0
    replaced_words: int = 0
    processing_time: float = 0.0


@dataclass
class VocabularyItem:
    id: str
    source_word: str
    target_word: str
    source_language: str
    target_language: str
    added_at: datetime
    context_sentence: str | None = None
    book_id: str | None = None
    book_title: str | None = None
    last_reviewed_at: datetime | None = None
    review_count: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    status: VocabularyStatus = VocabularyStatus.NEW


@dataclass
class InstallReport:
    imported: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class VocabularyStatistics:
    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    learned: int = 0
    due_today: int = 0
