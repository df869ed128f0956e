"""Mapping lookup and content transforms shared by all target handlers.

Mapping resolution:

1. **Ordered mappings** -- the first ``FileMapping`` whose ``source``
   pattern matches the source's *filename* wins.
2. **Pattern forms** -- a pattern without ``*`` must equal the filename
   exactly; with ``*`` it is a wildcard over the whole filename
   (``*.md`` matches ``rules.md`` but not ``rules.md.bak``).  No other
   glob syntax is recognised.

Transforms are applied in declared order over the full text.
"""

from __future__ import annotations

import functools
import os
import re

from aisync.config_schema import (
    AppendRule,
    FileMapping,
    PrependRule,
    ReplaceRule,
    TargetConfig,
    TransformRule,
)

# ------------------------------------------------------------------
# Matching
# ------------------------------------------------------------------


@functools.lru_cache(maxsize=256)
def _wildcard_regex(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


def matches_source(source: str, pattern: str) -> bool:
    """Return ``True`` if *pattern* matches the filename of *source*."""
    filename = os.path.basename(source)
    if "*" in pattern:
        return _wildcard_regex(pattern).fullmatch(filename) is not None
    return filename == pattern


def find_mapping(target: TargetConfig, source: str) -> FileMapping | None:
    """Return the first mapping of *target* matching *source*, or ``None``."""
    for mapping in target.mapping:
        if matches_source(source, mapping.source):
            return mapping
    return None


# ------------------------------------------------------------------
# Transforms
# ------------------------------------------------------------------


def apply_transform_rules(content: str, rules: list[TransformRule]) -> str:
    """Apply *rules* to *content* in order.

    Raises:
        re.error: If a replace rule's replacement references a group the
            pattern does not define.
    """
    for rule in rules:
        match rule:
            case ReplaceRule(pattern=pattern, replacement=replacement):
                content = re.sub(pattern, replacement, content)
            case PrependRule(text=text):
                content = text + content
            case AppendRule(text=text):
                content = content + text
            case _:
                raise TypeError(f"Unknown transform rule: {rule!r}")
    return content
