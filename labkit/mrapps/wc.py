"""Word count: map emits each word with a count of one, reduce counts them."""

from __future__ import annotations

from itertools import groupby

from labkit.mr.common import KeyValue


def _words(text: str) -> list[str]:
    return ["".join(run) for is_letter, run in groupby(text, key=str.isalpha) if is_letter]


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(word, "1")`` for every run of letters in ``contents``."""
    return [KeyValue(word, "1") for word in _words(contents)]


def reducef(key: str, values: list[str]) -> str:
    """The number of occurrences of ``key``."""
    return str(len(values))