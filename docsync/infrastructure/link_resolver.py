"""Wiki-link extraction, resolution and anchor rewriting in a single pass."""

import html
import os
import re
from collections.abc import Iterable
from urllib.parse import quote

from docsync.domain.constants import (
    DOCUMENT_URL_PREFIX,
    MISSING_DOCUMENT_URL,
    MISSING_LINK_CLASS,
    WIKI_LINK_CLASS,
)
from docsync.domain.models import Document, ResolvedLink
from docsync.logging_config import get_logger

logger = get_logger(__name__)

_WIKILINK_RE = re.compile(r"\[\[([^\]]*)\]\]")


class DocumentLookup:
    """Case-insensitive title / extensionless-path -> Document table."""

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._map: dict[str, Document] = {}
        for document in documents:
            self.add(document)

    def __len__(self) -> int:
        return len(self._map)

    def add(self, document: Document) -> None:
        """Register a document under its title and its path without extension."""
        for key in (document.title, os.path.splitext(document.path)[0]):
            normalized = key.strip().lower()
            if not normalized:
                continue
            existing = self._map.get(normalized)
            if existing is not None and existing.id != document.id:
                logger.warning(
                    "Link key collision: '%s' resolves to both '%s' and '%s' "
                    "(keeping latter)",
                    normalized,
                    existing.path,
                    document.path,
                )
            self._map[normalized] = document

    def resolve(self, target: str) -> Document | None:
        """Resolve [[target]] to a document. Returns None if not found."""
        return self._map.get(target.strip().lower())


class LinkResolver:
    """Turn `[[target|display]]` tokens into resolved links and HTML anchors.

    Links and anchors come out of the same pass so the rendered page and the
    persisted link rows can never disagree about what a token resolved to.
    """

    def __init__(
        self,
        document_url_prefix: str = DOCUMENT_URL_PREFIX,
        missing_url: str = MISSING_DOCUMENT_URL,
    ) -> None:
        self._document_url_prefix = document_url_prefix
        self._missing_url = missing_url

    def resolve(
        self, text: str, lookup: DocumentLookup
    ) -> tuple[list[ResolvedLink], str]:
        """Return (links in textual order, text with tokens rewritten as anchors)."""
        links: list[ResolvedLink] = []

        def _rewrite(match: re.Match[str]) -> str:
            target, _, display = match.group(1).partition("|")
            target = target.strip()
            display = display.strip() or target
            if not target:
                return match.group(0)

            resolved = lookup.resolve(target)
            links.append(
                ResolvedLink(target_path=target, link_text=display, resolved=resolved)
            )
            return self._anchor(target, display, resolved)

        rewritten = _WIKILINK_RE.sub(_rewrite, text)
        return links, rewritten

    def _anchor(self, target: str, display: str, resolved: Document | None) -> str:
        label = html.escape(display)
        if resolved is not None:
            href = f"{self._document_url_prefix}{resolved.id}"
            return f'<a href="{href}" class="{WIKI_LINK_CLASS}">{label}</a>'
        href = html.escape(f"{self._missing_url}{quote(target)}")
        return f'<a href="{href}" class="{MISSING_LINK_CLASS}">{label}</a>'
