"""Inverted index: map each word to the documents it appears in."""

from __future__ import annotations

from itertools import groupby

from labkit.mr.common import KeyValue


def mapf(document: str, value: str) -> list[KeyValue]:
    """Emit ``(word, document)`` once for each distinct word in ``value``."""
    words = ("".join(run) for is_letter, run in groupby(value, key=str.isalpha) if is_letter)
    return [KeyValue(word, document) for word in dict.fromkeys(words)]


def reducef(key: str, values: list[str]) -> str:
    """The number of documents, then the documents sorted and comma-separated."""
    docs = sorted(values)
    return f"{len(docs)} {','.join(docs)}"