from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterable

from word_weaver.errors import ValidationError
from word_weaver.models import MIN_EASE_FACTOR, VocabularyItem, VocabularyStatus

UTC = timezone.utc

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
LEARNED_MIN_REVIEWS = 5
LEARNED_MIN_QUALITY = 4
REVIEW_MIN_REVIEWS = 2

STATUS_PRIORITY = {
    VocabularyStatus.NEW: 0,
    VocabularyStatus.LEARNING: 1,
    VocabularyStatus.REVIEW: 2,
}


def validate_quality(quality: object) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ValidationError(f"quality must be an integer between {MIN_QUALITY} and {MAX_QUALITY}, got {quality!r}")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise ValidationError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
    return quality


def grade_review(item: VocabularyItem, quality: int, now: datetime | None = None) -> VocabularyItem:
    quality = validate_quality(quality)
    now = _aware(now or datetime.now(UTC))

    review_count = item.review_count + 1
    ease = item.ease_factor
    interval = item.interval

    if quality >= PASSING_QUALITY:
        interval = next_interval(interval, ease)
        ease = next_ease_factor(ease, quality)
        status = derive_status(review_count=review_count, quality=quality)
    else:
        interval = 0
        status = VocabularyStatus.LEARNING

    return replace(
        item,
        review_count=review_count,
        ease_factor=ease,
        interval=interval,
        status=status,
        last_reviewed_at=now,
    )


def next_interval(interval: int, ease_factor: float) -> int:
    if interval <= 0:
        return 1
    if interval == 1:
        return 6
    # Half-up rounding; interval * ease is always positive here.
    return max(1, math.floor(interval * ease_factor + 0.5))


def next_ease_factor(ease_factor: float, quality: int) -> float:
    miss = MAX_QUALITY - quality
    return max(MIN_EASE_FACTOR, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def derive_status(*, review_count: int, quality: int) -> VocabularyStatus:
    if review_count >= LEARNED_MIN_REVIEWS and quality >= LEARNED_MIN_QUALITY:
        return VocabularyStatus.LEARNED
    if review_count >= REVIEW_MIN_REVIEWS:
        return VocabularyStatus.REVIEW
    return VocabularyStatus.LEARNING


def next_review_at(item: VocabularyItem) -> datetime | None:
    if item.last_reviewed_at is None:
        return None
    return _aware(item.last_reviewed_at) + timedelta(days=max(0, item.interval))


def is_due(item: VocabularyItem, now: datetime | None = None) -> bool:
    if item.status == VocabularyStatus.LEARNED:
        return False
    scheduled = next_review_at(item)
    if scheduled is None:
        return True
    return scheduled <= _aware(now or datetime.now(UTC))


def due_queue(
    items: Iterable[VocabularyItem],
    *,
    limit: int,
    now: datetime | None = None,
) -> list[VocabularyItem]:
    if limit <= 0:
        return []
    now = _aware(now or datetime.now(UTC))
    due = [item for item in items if is_due(item, now)]
    due.sort(key=_queue_key)
    return due[:limit]


def _queue_key(item: VocabularyItem) -> tuple[int, datetime, str]:
    anchor = item.last_reviewed_at or item.added_at
    return (STATUS_PRIORITY.get(item.status, len(STATUS_PRIORITY)), _aware(anchor), item.id)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)
