from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from word_weaver.api.schemas import (
    DictionaryInstallRequest,
    ProcessRequest,
    ReviewRequest,
    VocabularyAddRequest,
)
from word_weaver.config import Settings, configure_logging, ensure_dirs, load_settings
from word_weaver.errors import NotFoundError, ValidationError
from word_weaver.learning.vocabulary import VocabularyService
from word_weaver.lexicon.dictionary import SQLiteDictionary
from word_weaver.lexicon.provider import CachingDictionaryProvider, DictionaryProvider
from word_weaver.lexicon.remote import HttpDictionaryProvider
from word_weaver.models import VocabularyItem
from word_weaver.pipeline.engine import ProcessingResult, create_translation_engine
from word_weaver.storage.db import Database

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    db: Database
    vocabulary: VocabularyService
    providers: dict[tuple[str, str], DictionaryProvider] = field(default_factory=dict)

    def dictionary(self, source_language: str, target_language: str) -> SQLiteDictionary:
        return SQLiteDictionary(self.db, source_language, target_language)

    def provider(self, source_language: str, target_language: str) -> DictionaryProvider:
        key = (source_language.strip().lower(), target_language.strip().lower())
        provider = self.providers.get(key)
        if provider is None:
            if self.settings.dictionary_url:
                inner: DictionaryProvider = HttpDictionaryProvider(
                    self.settings.dictionary_url,
                    key[0],
                    key[1],
                    timeout=self.settings.dictionary_timeout,
                )
            else:
                inner = self.dictionary(*key)
            provider = CachingDictionaryProvider(inner)
            self.providers[key] = provider
        return provider

    def invalidate(self, source_language: str, target_language: str) -> None:
        self.providers.pop((source_language.strip().lower(), target_language.strip().lower()), None)


def create_app(settings: Settings | None = None, *, db: Database | None = None) -> FastAPI:
    settings = settings or load_settings()
    database = db or Database(settings.db_path)
    services = Services(
        settings=settings,
        db=database,
        vocabulary=VocabularyService(database, review_limit=settings.review_limit),
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        configure_logging(settings.log_level)
        ensure_dirs(settings)
        database.initialize()
        default_dictionary = services.dictionary(settings.source_language, settings.target_language)
        if default_dictionary.get_word_count() == 0:
            default_dictionary.install_builtin()
        yield

    app = FastAPI(title="Word Weaver", version="0.1.0", lifespan=lifespan)
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/process")
    async def process(req: ProcessRequest, request: Request) -> dict:
        svc = _services(request)
        source = req.source_language or svc.settings.source_language
        target = req.target_language or svc.settings.target_language
        try:
            engine = create_translation_engine(
                svc.provider(source, target),
                source_language=source,
                target_language=target,
                proficiency_level=req.proficiency_level or svc.settings.proficiency_level,
                density=svc.settings.density if req.density is None else req.density,
                markup=req.markup,
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        result = await engine.process_content(req.content)
        return {"ok": True, **_result_payload(result)}

    @app.post("/api/dictionary/install")
    def dictionary_install(req: DictionaryInstallRequest, request: Request) -> dict:
        svc = _services(request)
        report = svc.dictionary(req.source_language, req.target_language).install_dictionary(req.entries)
        svc.invalidate(req.source_language, req.target_language)
        return {"ok": True, **asdict(report)}

    @app.get("/api/dictionary/lookup")
    async def dictionary_lookup(
        request: Request,
        word: str = Query(...),
        source_language: str | None = Query(default=None),
        target_language: str | None = Query(default=None),
    ) -> dict:
        svc = _services(request)
        if not word.strip():
            raise HTTPException(status_code=400, detail="word is empty")
        dictionary = svc.dictionary(
            source_language or svc.settings.source_language,
            target_language or svc.settings.target_language,
        )
        entry = await dictionary.lookup_word(word)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"no dictionary entry for {word!r}")
        return {"ok": True, "entry": _jsonable(asdict(entry))}

    @app.get("/api/dictionary/count")
    def dictionary_count(
        request: Request,
        source_language: str | None = Query(default=None),
        target_language: str | None = Query(default=None),
    ) -> dict:
        svc = _services(request)
        dictionary = svc.dictionary(
            source_language or svc.settings.source_language,
            target_language or svc.settings.target_language,
        )
        return {"ok": True, "count": dictionary.get_word_count()}

    @app.get("/api/vocabulary")
    def vocabulary_list(
        request: Request,
        status: str | None = Query(default=None),
        book_id: str | None = Query(default=None),
        q: str | None = Query(default=None),
    ) -> dict:
        vocabulary = _services(request).vocabulary
        try:
            items = vocabulary.search(q) if q else vocabulary.list_words(status=status, book_id=book_id)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "items": [_item_payload(item) for item in items], "total": len(items)}

    @app.post("/api/vocabulary")
    def vocabulary_add(req: VocabularyAddRequest, request: Request) -> dict:
        vocabulary = _services(request).vocabulary
        try:
            item = vocabulary.save_word(**req.model_dump())
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "item": _item_payload(item)}

    @app.get("/api/vocabulary/stats")
    def vocabulary_stats(request: Request) -> dict:
        stats = _services(request).vocabulary.statistics()
        return {"ok": True, "stats": asdict(stats)}

    @app.delete("/api/vocabulary")
    def vocabulary_clear(request: Request) -> dict:
        return {"ok": True, "removed": _services(request).vocabulary.clear_vocabulary()}

    @app.delete("/api/vocabulary/{item_id}")
    def vocabulary_delete(item_id: str, request: Request) -> dict:
        try:
            _services(request).vocabulary.remove_word(item_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"ok": True}

    @app.get("/api/review/due")
    def review_due(request: Request, limit: int | None = Query(default=None, ge=0, le=500)) -> dict:
        items = _services(request).vocabulary.get_due_for_review(limit)
        return {"ok": True, "items": [_item_payload(item) for item in items]}

    @app.post("/api/review")
    def review(req: ReviewRequest, request: Request) -> dict:
        try:
            item = _services(request).vocabulary.record_review(req.item_id, req.quality)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"ok": True, "item": _item_payload(item)}

    return app


def _services(request: Request) -> Services:
    return request.app.state.services


def _result_payload(result: ProcessingResult) -> dict:
    return {
        "content": result.content,
        "foreign_words": [_jsonable(asdict(record)) for record in result.foreign_words],
        "stats": asdict(result.stats),
        "degraded": result.degraded,
        "error": result.error,
    }


def _item_payload(item: VocabularyItem) -> dict:
    return _jsonable(asdict(item))


def _jsonable(value: object) -> object:
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


app = create_app()
