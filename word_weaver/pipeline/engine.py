from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from word_weaver.errors import ValidationError
from word_weaver.lexicon.provider import DictionaryProvider
from word_weaver.models import ForeignWordRecord, ProcessingStats, ProficiencyLevel
from word_weaver.pipeline.renderer import render_substitutions
from word_weaver.pipeline.selection import build_lookup_index, select_words, validate_density
from word_weaver.pipeline.tokenizer import distinct_words, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineOptions:
    source_language: str
    target_language: str
    proficiency_level: ProficiencyLevel
    density: float
    markup: bool = True

    @classmethod
    def create(
        cls,
        *,
        source_language: str,
        target_language: str,
        proficiency_level: ProficiencyLevel | str,
        density: float,
        markup: bool = True,
    ) -> EngineOptions:
        source = str(source_language or "").strip().lower()
        target = str(target_language or "").strip().lower()
        if not source or not target:
            raise ValidationError("source and target languages are required")
        try:
            level = ProficiencyLevel.parse(proficiency_level)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return cls(
            source_language=source,
            target_language=target,
            proficiency_level=level,
            density=validate_density(density),
            markup=markup,
        )


@dataclass
class ProcessingResult:
    content: str
    foreign_words: list[ForeignWordRecord] = field(default_factory=list)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    degraded: bool = False
    error: str | None = None

    @classmethod
    def degraded_result(cls, content: str, error: str) -> ProcessingResult:
        return cls(content=content, degraded=True, error=error)


class TranslationEngine:
    def __init__(self, options: EngineOptions, provider: DictionaryProvider) -> None:
        self.options = options
        self.provider = provider

    async def process_content(self, content: str) -> ProcessingResult:
        started = time.perf_counter()
        segments = tokenize(content, markup=self.options.markup)
        words = distinct_words(segments)
        total_words = sum(1 for segment in segments if segment.is_word)

        if not words or self.options.density <= 0:
            return ProcessingResult(
                content=content,
                stats=ProcessingStats(total_words=total_words, processing_time=_elapsed_ms(started)),
            )

        try:
            await self.provider.initialize()
            lookups = await self.provider.lookup_words(words)
        except Exception as exc:
            logger.warning(
                "dictionary lookup failed for %s->%s, returning content unchanged: %s",
                self.options.source_language,
                self.options.target_language,
                exc,
            )
            return ProcessingResult.degraded_result(content, f"{type(exc).__name__}: {exc}")

        index = build_lookup_index(lookups, self.options.proficiency_level)
        selection = select_words(segments, index, self.options.density)
        rendered, records = render_substitutions(segments, selection.chosen, markup=self.options.markup)

        stats = ProcessingStats(
            total_words=total_words,
            eligible_words=selection.eligible_count,
            replaced_words=len(selection.chosen),
            processing_time=_elapsed_ms(started),
        )
        logger.debug(
            "processed %d words: eligible=%d replaced=%d occurrences=%d",
            total_words,
            stats.eligible_words,
            stats.replaced_words,
            len(records),
        )
        return ProcessingResult(content=rendered, foreign_words=records, stats=stats)


def create_translation_engine(
    provider: DictionaryProvider,
    *,
    source_language: str,
    target_language: str,
    proficiency_level: ProficiencyLevel | str,
    density: float,
    markup: bool = True,
) -> TranslationEngine:
    options = EngineOptions.create(
        source_language=source_language,
        target_language=target_language,
        proficiency_level=proficiency_level,
        density=density,
        markup=markup,
    )
    return TranslationEngine(options, provider)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)
