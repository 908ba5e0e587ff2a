"""Markdown link rewriting across the files of one source.

Processing order for every relative ``[text](target)`` link:

1. External links, anchor-only links and images are left alone.
2. The target is resolved against the linking file's remote path.
3. Global link-mapping rules rewrite the resolved path.
4. A target that is another file of the same source becomes that file's
   site URL (``generate_site_url``).
5. Otherwise non-global rules get a chance.
6. Anything still unresolved has its ``.md`` extension stripped.
"""

from __future__ import annotations

import logging
import posixpath
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from ..config_schema import LinkMappingRule, LinkRewriteConfig

logger = logging.getLogger(__name__)

# [text](target) but not ![alt](image)
_LINK_RE = re.compile(r"(?<!!)\[([^\]]*)\]\(([^)\s]+)((?:\s+\"[^\"]*\")?)\)")
_EXTERNAL_RE = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|//|#)")
_SLUG_STRIP_RE = re.compile(r"[^\w\- ]", re.UNICODE)


@dataclass(frozen=True)
class LinkContext:
    """Passed to callable link-mapping replacements.

    Attributes:
        current_path: Remote path of the file containing the link.
        original_link: The link target as written.
        anchor: ``#fragment`` part of the target ("" when absent).
    """

    current_path: str
    original_link: str
    anchor: str


def is_external_link(link: str) -> bool:
    """True for links with a scheme (``https:``, ``mailto:``...),
    protocol-relative links and anchor-only links."""
    return bool(_EXTERNAL_RE.match(link)) or "://" in link


def split_anchor(link: str) -> tuple[str, str]:
    path, sep, fragment = link.partition("#")
    return path, f"{sep}{fragment}"


def normalize_link_path(link_path: str, current_path: str) -> str:
    """Resolve a relative *link_path* against the directory of *current_path*.

    Site-absolute paths (leading ``/``) are returned unchanged.  A
    trailing slash on *link_path* is preserved.
    """
    if not link_path or link_path.startswith("/"):
        return link_path
    joined = posixpath.join(posixpath.dirname(current_path), link_path)
    resolved = posixpath.normpath(joined)
    if resolved == ".":
        resolved = ""
    if link_path.endswith("/") and not resolved.endswith("/"):
        resolved += "/"
    return resolved


def slugify(segment: str) -> str:
    """GitHub-style slug: lower-case, punctuation dropped, spaces to ``-``."""
    return _SLUG_STRIP_RE.sub("", segment.strip().lower()).replace(" ", "-")


def generate_site_url(target_path: str, strip_prefixes: Sequence[str]) -> str:
    """Turn a local destination path into a site URL.

    ``src/content/docs/guide/index.md`` with prefix ``src/content/docs``
    becomes ``/guide/``.
    """
    url = target_path
    for prefix in strip_prefixes:
        if url.startswith(prefix):
            url = url[len(prefix) :]
            break

    url = url.lstrip("/")
    url = re.sub(r"\.(md|mdx)$", "", url, flags=re.IGNORECASE)

    if url == "index":
        url = ""
    elif url.endswith("/index"):
        url = url[: -len("/index")]

    segments = [slugify(s) for s in url.split("/") if s]
    url = "/".join(s for s in segments if s)
    return f"/{url}/" if url else "/"


def apply_link_mappings(
    link: str,
    mappings: Sequence[LinkMappingRule],
    context: LinkContext,
) -> str:
    """Apply every matching rule in order; rules chain.

    String replacements use ``re.sub`` syntax and replace the first
    match.  Callable replacements receive ``(path, anchor, context)``
    and return the new path.
    """
    path, anchor = split_anchor(link)
    for rule in mappings:
        regex = rule.regex
        if not regex.search(path):
            continue
        if callable(rule.replacement):
            path = rule.replacement(path, anchor, context)
        else:
            path = regex.sub(rule.replacement, path, count=1)
    return path + anchor


def _transform_link(
    target: str,
    current_path: str,
    source_to_target: Mapping[str, str],
    config: LinkRewriteConfig,
) -> str:
    path, anchor = split_anchor(target)
    normalized = normalize_link_path(path, current_path)
    context = LinkContext(
        current_path=current_path, original_link=target, anchor=anchor
    )

    processed = normalized
    global_rules = [m for m in config.mappings if m.global_]
    if global_rules:
        processed, _ = split_anchor(
            apply_link_mappings(normalized + anchor, global_rules, context)
        )

    target_path = source_to_target.get(normalized)
    if target_path is None and normalized.endswith("/"):
        target_path = source_to_target.get(normalized + "index.md")
    if target_path is not None:
        return generate_site_url(target_path, config.strip_prefixes) + anchor

    local_rules = [m for m in config.mappings if not m.global_]
    if local_rules:
        mapped = apply_link_mappings(processed + anchor, local_rules, context)
        if mapped != processed + anchor:
            return mapped

    return re.sub(r"\.md$", "", processed, flags=re.IGNORECASE) + anchor


def rewrite_links(
    content: str,
    current_path: str,
    source_to_target: Mapping[str, str],
    config: LinkRewriteConfig,
) -> str:
    """Rewrite the relative Markdown links in *content*.

    Args:
        content: Transformed file content.
        current_path: Remote path of the file being rewritten.
        source_to_target: Remote path -> local destination path for every
            file of the source.
        config: The source's link options.

    Returns:
        Content with internal links rewritten; external links, anchors
        and images are byte-identical.
    """

    def _replace(match: re.Match) -> str:
        text, target, title = match.group(1), match.group(2), match.group(3)
        if is_external_link(target):
            return match.group(0)
        new_target = _transform_link(
            target, current_path, source_to_target, config
        )
        if new_target != target:
            logger.debug(
                "Rewrote link in %s: %s -> %s",
                current_path,
                target,
                new_target,
            )
        return f"[{text}]({new_target}{title})"

    return _LINK_RE.sub(_replace, content)
