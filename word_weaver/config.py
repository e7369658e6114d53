from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "word_weaver.db"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    db_path: Path = DB_PATH
    source_language: str = "en"
    target_language: str = "es"
    proficiency_level: str = "beginner"
    density: float = 0.3
    dictionary_url: str | None = None
    dictionary_timeout: float = 10.0
    review_limit: int = 20
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        db_path=Path(os.getenv("WORD_WEAVER_DB_PATH") or DB_PATH),
        source_language=_env_lang("WORD_WEAVER_SOURCE_LANGUAGE", "en"),
        target_language=_env_lang("WORD_WEAVER_TARGET_LANGUAGE", "es"),
        proficiency_level=os.getenv("WORD_WEAVER_PROFICIENCY", "beginner").strip().lower() or "beginner",
        density=max(0.0, min(_env_float("WORD_WEAVER_DENSITY", 0.3), 1.0)),
        dictionary_url=(os.getenv("WORD_WEAVER_DICTIONARY_URL") or "").strip() or None,
        dictionary_timeout=max(0.5, _env_float("WORD_WEAVER_DICTIONARY_TIMEOUT", 10.0)),
        review_limit=max(1, int(_env_float("WORD_WEAVER_REVIEW_LIMIT", 20))),
        log_level=os.getenv("WORD_WEAVER_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger("word_weaver").setLevel(level)


def ensure_dirs(settings: Settings | None = None) -> None:
    target = settings.db_path.parent if settings is not None else DATA_DIR
    target.mkdir(parents=True, exist_ok=True)


def _env_lang(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip().lower() or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default
