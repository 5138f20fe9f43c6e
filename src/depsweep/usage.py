"""Textual usage detection for declared packages.

This is a heuristic, not a parser. Each pattern is a regex template where
``{name}`` is replaced by the escaped package name. Patterns are tried in the
order listed and the first hit in any file decides.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence

from depsweep.models import SourceFile

log = logging.getLogger(__name__)

_Q = "['\"`]"

IMPORT_PATTERNS = (
    # import x from 'pkg'
    rf"import\s+[^;]+\s+from\s+{_Q}{{name}}{_Q}",
    # import 'pkg'
    rf"^\s*import\s+{_Q}{{name}}{_Q}",
    # require('pkg')
    rf"require\s*\(\s*{_Q}{{name}}{_Q}\s*\)",
    # import('pkg')
    rf"import\s*\(\s*{_Q}{{name}}{_Q}\s*\)",
    # from 'pkg/sub', require('pkg/sub'), import('pkg/sub')
    rf"from\s+{_Q}{{name}}/[^'\"`]*{_Q}",
    rf"require\s*\(\s*{_Q}{{name}}/[^'\"`]*{_Q}\s*\)",
    rf"import\s*\(\s*{_Q}{{name}}/[^'\"`]*{_Q}\s*\)",
)
# "plugins": ["pkg"] and any other quoted mention. Broad on purpose.
STRING_LITERAL_PATTERN = rf"{_Q}{{name}}{_Q}"


def default_patterns(strict: bool = False, extra: Iterable[str] = ()) -> tuple[str, ...]:
    patterns = list(IMPORT_PATTERNS)
    if not strict:
        patterns.append(STRING_LITERAL_PATTERN)
    patterns.extend(extra)
    return tuple(patterns)


def compile_patterns(name: str, templates: Sequence[str]) -> list[re.Pattern[str]]:
    escaped = re.escape(name)
    compiled: list[re.Pattern[str]] = []
    for template in templates:
        try:
            compiled.append(re.compile(template.replace("{name}", escaped), re.MULTILINE))
        except re.error:
            log.warning("Skipping invalid usage pattern %r", template)
    return compiled


def is_used(
    name: str,
    corpus: Iterable[SourceFile],
    patterns: Sequence[str] | None = None,
) -> bool:
    compiled = compile_patterns(name, patterns if patterns is not None else default_patterns())
    for source in corpus:
        for regex in compiled:
            if regex.search(source.text):
                return True
    return False


def is_used_in_scripts(name: str, scripts: Mapping[str, str]) -> bool:
    return any(name in command for command in scripts.values())
