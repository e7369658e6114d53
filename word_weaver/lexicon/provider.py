from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable, Mapping, Protocol, Sequence

from word_weaver.errors import DuplicateEntryError
from word_weaver.lexicon.dictionary import install_entries
from word_weaver.models import InstallReport, WordEntry
from word_weaver.pipeline.tokenizer import normalize_word

logger = logging.getLogger(__name__)

LookupMap = dict[str, "WordEntry | None"]


class DictionaryProvider(Protocol):
    async def initialize(self) -> None:
        ...

    async def lookup_words(self, words: Sequence[str]) -> Mapping[str, WordEntry | None]:
        """Resolve every word in one round-trip. Unknown words map to None."""
        ...


class InMemoryDictionary:
    def __init__(
        self,
        source_language: str,
        target_language: str,
        entries: Iterable[WordEntry] = (),
    ) -> None:
        self.source_language = source_language.lower()
        self.target_language = target_language.lower()
        self._entries: dict[str, WordEntry] = {}
        self._forms: dict[str, WordEntry] = {}
        for entry in entries:
            self.add(entry)

    async def initialize(self) -> None:
        return None

    async def lookup_words(self, words: Sequence[str]) -> LookupMap:
        return {word: self._forms.get(normalize_word(word)) for word in words}

    def add(self, entry: WordEntry) -> None:
        if entry.id in self._entries:
            raise DuplicateEntryError(f"duplicate word id {entry.id}")
        self._entries[entry.id] = entry
        for form in entry.forms():
            key = normalize_word(form)
            if not key:
                continue
            current = self._forms.get(key)
            if current is None or _claims_before(entry, current, key):
                self._forms[key] = entry

    def install_dictionary(self, entries: Iterable[object]) -> InstallReport:
        return install_entries(
            self.source_language,
            self.target_language,
            entries,
            write=self.add,
        )

    def __len__(self) -> int:
        return len(self._entries)


class CachingDictionaryProvider:
    """Remembers hits and misses so repeated chapters only fetch new words."""

    def __init__(self, inner: DictionaryProvider, *, max_entries: int = 50_000) -> None:
        self.inner = inner
        self.max_entries = max(1, int(max_entries))
        self._cache: OrderedDict[str, WordEntry | None] = OrderedDict()
        self._initialized = False
        self.hits = 0
        self.misses = 0

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.inner.initialize()
        self._initialized = True

    async def lookup_words(self, words: Sequence[str]) -> LookupMap:
        await self.initialize()
        keys = _unique([normalize_word(word) for word in words])
        missing = [key for key in keys if key not in self._cache]
        self.hits += len(keys) - len(missing)
        self.misses += len(missing)

        resolved: dict[str, WordEntry | None] = {}
        for key in keys:
            if key in self._cache:
                self._cache.move_to_end(key)
                resolved[key] = self._cache[key]

        if missing:
            fetched = await self.inner.lookup_words(missing)
            for key in missing:
                resolved[key] = fetched.get(key)
                self._store(key, resolved[key])

        return {word: resolved.get(normalize_word(word)) for word in words}

    def clear(self) -> None:
        self._cache.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def _store(self, key: str, entry: WordEntry | None) -> None:
        self._cache[key] = entry
        self._cache.move_to_end(key)
        while len(self._cache) > self.max_entries:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug("dictionary cache evicted %s", evicted)


def _claims_before(candidate: WordEntry, current: WordEntry, form: str) -> bool:
    candidate_exact = normalize_word(candidate.source_word) == form
    current_exact = normalize_word(current.source_word) == form
    if candidate_exact != current_exact:
        return candidate_exact
    return candidate.frequency_rank < current.frequency_rank


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
