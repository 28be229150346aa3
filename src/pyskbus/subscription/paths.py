"""Wildcard path patterns."""

from __future__ import annotations

import re
from collections.abc import Callable


def wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``*`` wildcard pattern into a regex for ``fullmatch``.

    Every character other than ``*`` matches itself; every ``*`` matches any
    (possibly empty) sequence.
    """
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(body, re.DOTALL)


def compile_path_matcher(pattern: str) -> Callable[[str], bool]:
    """Compile *pattern* into a predicate over key names."""
    regex = wildcard_to_regex(pattern)

    def _matches(key: str) -> bool:
        return regex.fullmatch(key) is not None

    return _matches
