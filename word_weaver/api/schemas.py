from __future__ import annotations

from pydantic import BaseModel, Field


class ProcessRequest(BaseModel):
    content: str
    source_language: str | None = None
    target_language: str | None = None
    proficiency_level: str | None = None
    density: float | None = None
    markup: bool = True


class DictionaryInstallRequest(BaseModel):
    source_language: str
    target_language: str
    entries: list[dict] = Field(default_factory=list)


class VocabularyAddRequest(BaseModel):
    source_word: str
    target_word: str
    source_language: str
    target_language: str
    context_sentence: str | None = None
    book_id: str | None = None
    book_title: str | None = None


class ReviewRequest(BaseModel):
    item_id: str
    quality: int
