from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=128)
def wildcard_to_regex(pattern: str | None) -> re.Pattern[str]:
    """Compile a ``*``/``?`` wildcard into a case-insensitive, fully anchored regex.

    ``*`` matches any run of characters (including none) and ``?`` exactly one.
    ``None`` or an empty pattern matches everything.
    """

    value = pattern or "*"
    escaped = re.escape(value).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$", re.IGNORECASE | re.DOTALL)


def matches_wildcard(name: str, pattern: str | None) -> bool:
    return wildcard_to_regex(pattern).match(name) is not None
