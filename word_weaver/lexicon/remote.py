from __future__ import annotations

import logging
import os
from typing import Mapping, Sequence

import httpx

from word_weaver.errors import DictionaryUnavailableError, ValidationError
from word_weaver.lexicon.dictionary import entry_from_payload
from word_weaver.models import WordEntry
from word_weaver.pipeline.tokenizer import normalize_word

logger = logging.getLogger(__name__)


class HttpDictionaryProvider:
    """Dictionary service reached over HTTP with one POST per batch.

    The service receives ``{"source_language", "target_language", "words"}`` at
    ``/lookup`` and answers ``{"entries": {word: entry-or-null}}``; a plain list
    of entries is accepted too.
    """

    def __init__(
        self,
        base_url: str,
        source_language: str,
        target_language: str,
        *,
        timeout: float = 10.0,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.source_language = source_language.strip().lower()
        self.target_language = target_language.strip().lower()
        self.timeout = timeout
        self.api_key = api_key if api_key is not None else os.getenv("WORD_WEAVER_DICTIONARY_API_KEY")
        self._transport = transport

    def available(self) -> bool:
        return bool(self.base_url)

    async def initialize(self) -> None:
        if not self.available():
            raise DictionaryUnavailableError("dictionary service url not configured")

    async def lookup_words(self, words: Sequence[str]) -> dict[str, WordEntry | None]:
        if not words:
            return {}
        payload = {
            "source_language": self.source_language,
            "target_language": self.target_language,
            "words": list(words),
        }
        data = await self._post("/lookup", payload)
        entries = _extract_entries(data)

        result: dict[str, WordEntry | None] = {}
        for word in words:
            raw = entries.get(word)
            if raw is None:
                raw = entries.get(normalize_word(word))
            result[word] = self._parse_entry(word, raw)
        return result

    async def _post(self, path: str, payload: dict) -> object:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.base_url + path, headers=headers, json=payload)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPError as exc:
            raise DictionaryUnavailableError(f"dictionary service request failed: {exc}") from exc
        except ValueError as exc:
            raise DictionaryUnavailableError("dictionary service returned invalid JSON") from exc

    def _parse_entry(self, word: str, raw: object) -> WordEntry | None:
        if raw is None:
            return None
        try:
            return entry_from_payload(raw, self.source_language, self.target_language)
        except ValidationError as exc:
            logger.warning("ignoring malformed remote entry for %r: %s", word, exc)
            return None


def _extract_entries(data: object) -> Mapping[str, object]:
    if isinstance(data, Mapping):
        entries = data.get("entries", data)
    else:
        entries = data
    if isinstance(entries, Mapping):
        return {normalize_word(str(key)): value for key, value in entries.items()}
    if isinstance(entries, list):
        mapped: dict[str, object] = {}
        for item in entries:
            if not isinstance(item, Mapping):
                continue
            source = item.get("source_word") or item.get("sourceWord")
            if source:
                mapped.setdefault(normalize_word(str(source)), item)
            for variant in item.get("variants") or []:
                mapped.setdefault(normalize_word(str(variant)), item)
        return mapped
    raise DictionaryUnavailableError("dictionary service returned an unexpected payload")
