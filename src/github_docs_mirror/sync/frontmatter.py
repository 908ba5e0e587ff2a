"""YAML frontmatter parsing and serialisation.

Shared by the built-in transforms and the Markdown entry-type handler.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


@dataclass(frozen=True)
class ParsedFrontmatter:
    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    has_frontmatter: bool = False


def parse_frontmatter(content: str) -> ParsedFrontmatter:
    """Split *content* into its frontmatter mapping and body.

    Content without a leading ``---`` block, or whose block is not valid
    YAML, is returned whole as the body with empty data.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return ParsedFrontmatter(body=content)

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unparsable frontmatter: %s", exc)
        return ParsedFrontmatter(body=content)

    if data is None:
        data = {}
    elif not isinstance(data, dict):
        logger.warning(
            "Ignoring frontmatter with non-mapping root (%s)",
            type(data).__name__,
        )
        return ParsedFrontmatter(body=content)

    return ParsedFrontmatter(
        data=data, body=content[match.end() :], has_frontmatter=True
    )


def serialize_frontmatter(data: dict[str, Any]) -> str:
    if not data:
        return ""
    return yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=120,
    )


def combine_frontmatter(data: dict[str, Any], body: str) -> str:
    """Render *data* as a frontmatter block in front of *body*."""
    if not data:
        return body
    return f"---\n{serialize_frontmatter(data)}---\n\n{body.lstrip(chr(10))}"


def deep_merge(
    target: dict[str, Any],
    source: dict[str, Any],
    preserve_existing: bool = True,
) -> dict[str, Any]:
    """Merge *source* into a copy of *target*.

    Nested mappings merge recursively.  For other values *target* wins
    when *preserve_existing* is set, otherwise *source* wins.
    """
    merged = dict(target)
    for key, value in source.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value, preserve_existing)
        elif key in merged and preserve_existing:
            continue
        else:
            merged[key] = value
    return merged
