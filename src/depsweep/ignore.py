from __future__ import annotations

import logging
import re
from collections.abc import Iterable

log = logging.getLogger(__name__)


def should_ignore(name: str, ignore: Iterable[str], ignore_patterns: Iterable[str]) -> bool:
    """Return True when ``name`` is excluded from classification.

    Only the first ``*`` of a pattern becomes ``.*``; every other character is
    used as regex syntax, so ``@types/*`` matches ``@types/node`` and
    ``*-loader`` matches ``css-loader`` but ``a.b`` also matches ``axb``.
    """
    if name in ignore:
        return True
    for pattern in ignore_patterns:
        try:
            regex = re.compile(pattern.replace("*", ".*", 1))
        except re.error:
            log.warning("Skipping invalid ignore pattern %r", pattern)
            continue
        if regex.search(name):
            return True
    return False


def partition(
    names: Iterable[str], ignore: Iterable[str], ignore_patterns: Iterable[str]
) -> tuple[list[str], list[str]]:
    ignore = tuple(ignore)
    ignore_patterns = tuple(ignore_patterns)
    candidates: list[str] = []
    ignored: list[str] = []
    for name in names:
        if should_ignore(name, ignore, ignore_patterns):
            ignored.append(name)
        else:
            candidates.append(name)
    return candidates, ignored
