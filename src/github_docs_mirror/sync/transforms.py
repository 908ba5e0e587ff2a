"""Content transform pipeline and built-in transform library.

A transform is any callable ``(content, context) -> content``.  Sources
list them in order; ``apply_transforms`` runs them left to right and stops
at the first failure.

Built-in transforms can be named in YAML, either as a bare name or as a
mapping with a ``type`` key plus the factory's keyword arguments::

    transforms:
      - convert_h1_to_title
      - type: frontmatter
        fields: {sidebar: {order: 2}}
      - type: regex_replace
        pattern: "<!-- .*? -->"
        replacement: ""
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import SyncCancelled, TransformError
from .frontmatter import combine_frontmatter, deep_merge, parse_frontmatter

if TYPE_CHECKING:
    from ..config_schema import SourceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformContext:
    """Read-only view handed to every transform.

    Attributes:
        id: Entry id of the file.
        path: Remote path of the file.
        source: The source being imported.
        file_path: Local destination path.
    """

    id: str
    path: str
    source: SourceConfig
    file_path: str


TransformFunction = Callable[[str, TransformContext], str]


def transform_name(transform: Callable[..., Any]) -> str:
    return getattr(transform, "transform_name", None) or getattr(
        transform, "__name__", repr(transform)
    )


def apply_transforms(
    content: str,
    transforms: Sequence[TransformFunction],
    context: TransformContext,
) -> str:
    """Run *transforms* over *content* in order.

    Raises:
        TransformError: The first transform that raises (or returns a
            non-string) aborts the pipeline for this file.
    """
    for transform in transforms:
        name = transform_name(transform)
        try:
            result = transform(content, context)
        except SyncCancelled:
            raise
        except Exception as exc:
            raise TransformError(
                f"Transform '{name}' failed for {context.path}: {exc}",
                transform_name=name,
                path=context.path,
            ) from exc
        if not isinstance(result, str):
            raise TransformError(
                f"Transform '{name}' returned {type(result).__name__} "
                f"instead of str for {context.path}",
                transform_name=name,
                path=context.path,
            )
        content = result
    return content


def _named(name: str, fn: TransformFunction) -> TransformFunction:
    fn.transform_name = name  # type: ignore[attr-defined]
    return fn


# ---------------------------------------------------------------------------
# Frontmatter transforms
# ---------------------------------------------------------------------------


def make_frontmatter_transform(
    fields: dict[str, Any],
    mode: str = "merge",
    preserve_existing: bool = True,
) -> TransformFunction:
    """Add, merge or replace frontmatter.

    Args:
        fields: Mapping to apply.
        mode: ``"add"`` (only when the file has no frontmatter),
            ``"merge"`` (deep merge) or ``"replace"``.
        preserve_existing: In merge mode, keep values already present.
    """
    if mode not in ("add", "merge", "replace"):
        raise ValueError(f"Unknown frontmatter mode '{mode}'")

    def frontmatter(content: str, context: TransformContext) -> str:
        parsed = parse_frontmatter(content)
        if mode == "add":
            if parsed.has_frontmatter:
                return content
            data = dict(fields)
        elif mode == "replace":
            data = dict(fields)
        else:
            data = deep_merge(parsed.data, fields, preserve_existing)
        return combine_frontmatter(data, parsed.body)

    return _named("frontmatter", frontmatter)


def _title_from_path(path: str) -> str:
    name = path.rstrip("/").rsplit("/", 1)[-1]
    name = re.sub(r"\.(md|mdx)$", "", name, flags=re.IGNORECASE)
    if not name:
        return "Untitled"
    words = re.split(r"[-_\s]+", name)
    return " ".join(w[:1].upper() + w[1:].lower() for w in words if w)


def make_title_transform(
    title: str | None = None, override: bool = False
) -> TransformFunction:
    """Set ``title`` from *title* or from the file name."""

    def title_transform(content: str, context: TransformContext) -> str:
        parsed = parse_frontmatter(content)
        if parsed.data.get("title") and not override:
            return content
        data = dict(parsed.data)
        data["title"] = title or _title_from_path(context.path)
        return combine_frontmatter(data, parsed.body)

    return _named("title", title_transform)


def make_source_info_transform(
    include_description: bool = True,
) -> TransformFunction:
    """Record where the file came from under a ``source`` key."""

    def source_info(content: str, context: TransformContext) -> str:
        src = context.source
        info: dict[str, Any] = {
            "source": {
                "owner": src.owner,
                "repo": src.repo,
                "ref": src.ref,
                "path": context.path,
            }
        }
        if include_description:
            info["description"] = (
                f"Documentation imported from {src.owner}/{src.repo}"
            )
        parsed = parse_frontmatter(content)
        data = deep_merge(parsed.data, info, preserve_existing=True)
        return combine_frontmatter(data, parsed.body)

    return _named("source_info", source_info)


def make_draft_transform(is_draft: bool = True) -> TransformFunction:
    return _named(
        "draft",
        make_frontmatter_transform(
            {"draft": is_draft}, preserve_existing=False
        ),
    )


# ---------------------------------------------------------------------------
# Heading transforms
# ---------------------------------------------------------------------------

_H1_RE = re.compile(r"^#[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)


def convert_h1_to_title(content: str, context: TransformContext) -> str:
    """Move the first ``# Heading`` into the ``title`` frontmatter field.

    Files that already have a title are returned unchanged.
    """
    parsed = parse_frontmatter(content)
    if parsed.data.get("title"):
        return content
    match = _H1_RE.search(parsed.body)
    if not match:
        return content
    data = dict(parsed.data)
    data["title"] = match.group(1).strip()
    body = (parsed.body[: match.start()] + parsed.body[match.end() :]).strip()
    return combine_frontmatter(data, body + "\n")


def remove_h1(content: str, context: TransformContext) -> str:
    """Drop the first ``# Heading`` line."""
    parsed = parse_frontmatter(content)
    match = _H1_RE.search(parsed.body)
    if not match:
        return content
    body = (parsed.body[: match.start()] + parsed.body[match.end() :]).strip()
    return combine_frontmatter(parsed.data, body + "\n")


# ---------------------------------------------------------------------------
# Text transforms
# ---------------------------------------------------------------------------


def make_replace_transform(find: str, replacement: str) -> TransformFunction:
    """Replace every occurrence of *find*."""

    def replace(content: str, context: TransformContext) -> str:
        return content.replace(find, replacement)

    return _named("replace", replace)


def make_regex_replace_transform(
    pattern: str | re.Pattern,
    replacement: str,
    ignore_case: bool = False,
) -> TransformFunction:
    """``re.sub`` every match of *pattern* (multiline mode)."""
    if isinstance(pattern, re.Pattern):
        regex = pattern
    else:
        flags = re.MULTILINE | (re.IGNORECASE if ignore_case else 0)
        regex = re.compile(pattern, flags)

    def regex_replace(content: str, context: TransformContext) -> str:
        return regex.sub(replacement, content)

    return _named("regex_replace", regex_replace)


def make_remove_lines_transform(
    lines: str | Sequence[str],
) -> TransformFunction:
    """Remove every line whose stripped text equals one of *lines*."""
    targets = {lines.strip()} if isinstance(lines, str) else {
        line.strip() for line in lines
    }

    def remove_lines(content: str, context: TransformContext) -> str:
        kept = [
            line
            for line in content.splitlines(keepends=True)
            if line.strip() not in targets
        ]
        return "".join(kept)

    return _named("remove_lines", remove_lines)


# ---------------------------------------------------------------------------
# Config-driven construction
# ---------------------------------------------------------------------------

BUILTIN_TRANSFORMS: dict[str, Callable[..., TransformFunction]] = {
    "frontmatter": make_frontmatter_transform,
    "title": make_title_transform,
    "source_info": make_source_info_transform,
    "draft": make_draft_transform,
    "convert_h1_to_title": lambda: convert_h1_to_title,
    "remove_h1": lambda: remove_h1,
    "replace": make_replace_transform,
    "regex_replace": make_regex_replace_transform,
    "remove_lines": make_remove_lines_transform,
}


def build_transform(spec: str | dict[str, Any]) -> TransformFunction:
    """Build a built-in transform from a config entry.

    Args:
        spec: A transform name, or a mapping with a ``type`` key whose
            remaining keys are passed to the factory.

    Raises:
        ValueError: Unknown name or bad arguments.
    """
    if isinstance(spec, str):
        name, kwargs = spec, {}
    elif isinstance(spec, dict):
        kwargs = dict(spec)
        name = kwargs.pop("type", None)
        if not name:
            raise ValueError(f"Transform spec has no 'type': {spec!r}")
    else:
        raise ValueError(f"Invalid transform spec: {spec!r}")

    factory = BUILTIN_TRANSFORMS.get(name)
    if factory is None:
        known = ", ".join(sorted(BUILTIN_TRANSFORMS))
        raise ValueError(f"Unknown transform '{name}' (known: {known})")

    try:
        return factory(**kwargs)
    except TypeError as exc:
        raise ValueError(f"Bad arguments for transform '{name}': {exc}") from exc
