from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

from word_weaver.config import configure_logging, load_settings
from word_weaver.errors import WordWeaverError
from word_weaver.learning.vocabulary import VocabularyService
from word_weaver.lexicon.dictionary import SQLiteDictionary, load_dictionary_file
from word_weaver.pipeline.engine import create_translation_engine
from word_weaver.storage.db import Database


def density_arg(value: str) -> float:
    try:
        density = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"density must be a number: {value}") from exc
    if not 0.0 <= density <= 1.0:
        raise argparse.ArgumentTypeError(f"density must be within [0, 1]: {value}")
    return density


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()
    parser = argparse.ArgumentParser(prog="word-weaver")
    parser.add_argument("--db", dest="db_path", type=Path, default=settings.db_path)
    parser.add_argument("--source", default=settings.source_language)
    parser.add_argument("--target", default=settings.target_language)
    sub = parser.add_subparsers(dest="cmd", required=True)

    install = sub.add_parser("install-dictionary", help="import a JSON word list")
    install.add_argument("path", type=Path, nargs="?")
    install.add_argument("--builtin", action="store_true")

    process = sub.add_parser("process", help="annotate a text or HTML file")
    process.add_argument("path", type=Path)
    process.add_argument("--level", default=settings.proficiency_level)
    process.add_argument("--density", type=density_arg, default=settings.density)
    process.add_argument("--plain", action="store_true", help="treat input as plain text")

    due = sub.add_parser("due", help="list words due for review")
    due.add_argument("--limit", type=int, default=settings.review_limit)

    review = sub.add_parser("review", help="grade a saved word")
    review.add_argument("item_id")
    review.add_argument("quality", type=int)
    return parser


def run(args: argparse.Namespace) -> dict:
    db = Database(args.db_path)
    Path(args.db_path).parent.mkdir(parents=True, exist_ok=True)
    db.initialize()

    if args.cmd == "install-dictionary":
        dictionary = SQLiteDictionary(db, args.source, args.target)
        if args.builtin:
            report = dictionary.install_builtin()
        elif args.path is not None:
            report = dictionary.install_dictionary(load_dictionary_file(args.path))
        else:
            raise SystemExit("install-dictionary needs a path or --builtin")
        return {"ok": not report.errors, **asdict(report), "count": dictionary.get_word_count()}

    if args.cmd == "process":
        engine = create_translation_engine(
            SQLiteDictionary(db, args.source, args.target),
            source_language=args.source,
            target_language=args.target,
            proficiency_level=args.level,
            density=args.density,
            markup=not args.plain,
        )
        result = asyncio.run(engine.process_content(args.path.read_text(encoding="utf-8")))
        return {
            "ok": not result.degraded,
            "content": result.content,
            "replaced": [record.original_word for record in result.foreign_words],
            "stats": asdict(result.stats),
        }

    vocabulary = VocabularyService(db)
    if args.cmd == "due":
        items = vocabulary.get_due_for_review(args.limit)
        return {
            "ok": True,
            "items": [
                {"id": item.id, "source_word": item.source_word, "target_word": item.target_word, "status": item.status.value}
                for item in items
            ],
        }

    if args.cmd == "review":
        item = vocabulary.record_review(args.item_id, args.quality)
        return {
            "ok": True,
            "id": item.id,
            "status": item.status.value,
            "interval": item.interval,
            "ease_factor": item.ease_factor,
        }

    raise SystemExit(f"unknown command {args.cmd}")


def main(argv: list[str] | None = None) -> int:
    configure_logging(load_settings().log_level)
    args = build_parser().parse_args(argv)
    try:
        result = run(args)
    except WordWeaverError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2
    json.dump(result, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return 0 if result.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
