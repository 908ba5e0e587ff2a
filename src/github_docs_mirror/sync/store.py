"""Host content store, entry-type handlers and the store writer.

The store is authoritative for change detection: an entry whose digest
already matches is never rewritten.  Local disk is a lazily populated
mirror; a file is written only when absent.

Key design choices:

* **Atomic replace-on-clear** -- with ``clear`` set, delete and insert of
  an existing id happen under the store lock so no reader observes the
  id as missing.
* **Pluggable entry types** -- ``EntryTypeHandler`` subclasses parse one
  family of extensions and may offer a render step.  Render failures are
  logged and the entry is stored unrendered.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import mistune
from pydantic import BaseModel

from ..errors import ConfigurationError, RenderError
from ..file_handler import ensure_within_root, write_text_atomic
from .frontmatter import parse_frontmatter
from .models import ImportedFile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Content hashing
# ---------------------------------------------------------------------------


def content_hash(content: str) -> str:
    """Compute a normalised SHA-256 hex digest of *content*.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.
    """
    text = content.lstrip("\ufeff").replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreEntry(BaseModel):
    """Unit of persistence in the content store.

    Attributes:
        id: Unique entry id.
        data: Parsed structured data (frontmatter).
        body: Body text.
        digest: Content digest used for change detection.
        file_path: Local mirror path relative to the project root.
        rendered: Pre-rendered output, when the entry type renders.
    """

    id: str
    data: dict[str, Any] = {}
    body: str = ""
    digest: str
    file_path: str | None = None
    rendered: str | None = None

    model_config = {"frozen": True}


class ContentStore:
    """In-memory content store keyed by entry id."""

    def __init__(self) -> None:
        self._entries: dict[str, StoreEntry] = {}
        self.lock = threading.RLock()

    def get(self, entry_id: str) -> StoreEntry | None:
        return self._entries.get(entry_id)

    def has(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def set(self, entry: StoreEntry) -> None:
        with self.lock:
            self._entries[entry.id] = entry

    def delete(self, entry_id: str) -> bool:
        with self.lock:
            return self._entries.pop(entry_id, None) is not None

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> Iterator[StoreEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def flush(self) -> None:
        """Persist pending changes (no-op in memory)."""


class JsonContentStore(ContentStore):
    """Content store persisted to a single JSON file.

    Mutations mark the store dirty; ``flush()`` writes it atomically.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._dirty = False
        if self.path.exists():
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
            for item in raw.get("entries", []):
                entry = StoreEntry(**item)
                self._entries[entry.id] = entry

    def set(self, entry: StoreEntry) -> None:
        super().set(entry)
        self._dirty = True

    def delete(self, entry_id: str) -> bool:
        removed = super().delete(entry_id)
        self._dirty = self._dirty or removed
        return removed

    def clear(self) -> None:
        super().clear()
        self._dirty = True

    def flush(self) -> None:
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock:
            payload = {
                "version": 1,
                "entries": [
                    e.model_dump()
                    for e in sorted(self._entries.values(), key=lambda e: e.id)
                ],
            }
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False, default=str)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        self._dirty = False
        logger.debug("Flushed %d store entries to %s", len(self), self.path)


# ---------------------------------------------------------------------------
# Entry types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedEntry:
    body: str
    data: dict[str, Any] = field(default_factory=dict)


RenderFunction = Callable[[ParsedEntry], str]


class EntryTypeHandler(ABC):
    """Parses (and optionally renders) files of some extensions."""

    extensions: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, contents: str, file_url: str) -> ParsedEntry:
        """Split *contents* into body and structured data."""

    def get_render_function(
        self, config: dict[str, Any] | None = None
    ) -> RenderFunction | None:
        """Return a render step, or ``None`` when the type does not render."""
        return None


class MarkdownEntryType(EntryTypeHandler):
    """Markdown with optional YAML frontmatter, rendered with mistune."""

    extensions = (".md", ".markdown", ".mdx")

    def parse(self, contents: str, file_url: str) -> ParsedEntry:
        parsed = parse_frontmatter(contents)
        return ParsedEntry(body=parsed.body, data=dict(parsed.data))

    def get_render_function(
        self, config: dict[str, Any] | None = None
    ) -> RenderFunction | None:
        options = config or {}
        if options.get("render", True) is False:
            return None
        markdown = mistune.create_markdown(
            escape=options.get("escape", False),
            plugins=options.get("plugins", ["table", "strikethrough"]),
        )

        def render(entry: ParsedEntry) -> str:
            return markdown(entry.body)

        return render


class EntryTypeRegistry:
    """Extension -> handler lookup."""

    def __init__(self) -> None:
        self._handlers: dict[str, EntryTypeHandler] = {}

    def register(self, handler: EntryTypeHandler) -> None:
        for ext in handler.extensions:
            self._handlers[ext.lower()] = handler

    def get(self, extension: str) -> EntryTypeHandler | None:
        return self._handlers.get(extension.lower())

    @classmethod
    def default(cls) -> EntryTypeRegistry:
        registry = cls()
        registry.register(MarkdownEntryType())
        return registry


@dataclass
class StoreHost:
    """Everything the store writer needs from its host.

    Attributes:
        store: Content store receiving entries.
        registry: Entry-type handlers by extension.
        project_root: Local files must stay inside this directory.
        render_config: Passed to ``get_render_function``.
    """

    store: ContentStore
    registry: EntryTypeRegistry = field(default_factory=EntryTypeRegistry.default)
    project_root: Path = field(default_factory=Path.cwd)
    render_config: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Store writer
# ---------------------------------------------------------------------------


def is_current(store: ContentStore, file: ImportedFile) -> bool:
    """True if *store* already holds *file* with the same digest."""
    existing = store.get(file.id)
    return (
        existing is not None
        and existing.digest == file.digest
        and bool(existing.file_path)
    )


def store_processed_file(
    file: ImportedFile, host: StoreHost, clear: bool = False
) -> tuple[str, str]:
    """Persist one imported file into the host store.

    Args:
        file: Fetched and transformed file.
        host: Store, handlers and project root.
        clear: Delete-then-insert when the id already exists.

    Returns:
        ``(id, file_path)``.

    Raises:
        ConfigurationError: No handler for the extension, or the
            destination escapes the project root.
    """
    handler = host.registry.get(file.extension)
    if handler is None:
        raise ConfigurationError(
            f"No entry type registered for extension '{file.extension}' "
            f"({file.source_path})"
        )

    try:
        local_path = ensure_within_root(file.file_path, host.project_root)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    if not local_path.exists():
        write_text_atomic(local_path, file.content)
        logger.debug("Wrote %s", local_path)

    if is_current(host.store, file):
        logger.debug("Entry %s unchanged, skipping store write", file.id)
        return (file.id, file.file_path)

    parsed = handler.parse(file.content, file_url=local_path.as_uri())

    rendered = None
    render = handler.get_render_function(host.render_config)
    if render is not None:
        try:
            rendered = render(parsed)
        except Exception as exc:
            error = RenderError(f"Render failed for {file.id}: {exc}")
            logger.warning("%s (stored unrendered)", error)

    entry = StoreEntry(
        id=file.id,
        data=parsed.data,
        body=parsed.body,
        digest=file.digest,
        file_path=file.file_path,
        rendered=rendered,
    )

    store = host.store
    with store.lock:
        if clear and store.has(file.id):
            store.delete(file.id)
        store.set(entry)

    return (file.id, file.file_path)
