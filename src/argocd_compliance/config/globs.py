"""Path globs for overrides and waivers."""

from __future__ import annotations

import functools
import re


def match_path(pattern: str, file_path: str) -> bool:
    """Match ``file_path`` against ``pattern`` with wildcards that stop at ``/``.

    ``*`` matches any run of characters within one path segment, ``?`` one
    character, ``[...]`` a character class (``[!...]`` or ``[^...]`` negated).
    A backslash escapes the next character. ``apps/*.yaml`` therefore does not
    match ``apps/team/app.yaml``.
    """

    if not pattern:
        return False
    return _compile(pattern).fullmatch(file_path) is not None


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    parts = []
    index, size = 0, len(pattern)
    while index < size:
        char = pattern[index]
        index += 1
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "\\" and index < size:
            parts.append(re.escape(pattern[index]))
            index += 1
        elif char == "[":
            end = pattern.find("]", index + 1)
            if end < 0:
                parts.append(re.escape(char))
                continue
            body = pattern[index:end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\").replace("[", "\\[")
            parts.append(f"[^/{body}]" if negate else f"(?!/)[{body}]")
            index = end + 1
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts))
