from __future__ import annotations


class WordWeaverError(Exception):
    pass


class ValidationError(WordWeaverError, ValueError):
    pass


class NotFoundError(WordWeaverError, LookupError):
    pass


class DictionaryUnavailableError(WordWeaverError):
    pass


class DuplicateEntryError(WordWeaverError):
    pass
