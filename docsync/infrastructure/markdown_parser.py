import os
import re
from typing import Any

import yaml
from markdown_it import MarkdownIt

from docsync.domain.constants import FALLBACK_TITLE
from docsync.domain.models import ParsedDocument
from docsync.logging_config import get_logger

logger = get_logger(__name__)

_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|$)", re.DOTALL)
_HEADING_RE = re.compile(r"^#[ \t]+(.+)$", re.MULTILINE)


class MarkdownParser:
    """Split frontmatter from markdown files, derive titles, render HTML."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"html": True})

    def parse(self, file_path: str, content: str) -> ParsedDocument:
        """Parse a markdown file into frontmatter, body and title."""
        frontmatter, body = self.split_frontmatter(content)
        return ParsedDocument(
            path=file_path,
            title=self.extract_title(file_path, frontmatter, body),
            frontmatter=frontmatter,
            body=body,
        )

    def split_frontmatter(self, content: str) -> tuple[dict[str, Any], str]:
        """Extract YAML frontmatter and return (frontmatter_dict, body)."""
        match = _FRONTMATTER_RE.match(content)
        if not match:
            return {}, content

        raw_yaml = match.group(1) or ""
        body = content[match.end() :]
        try:
            frontmatter = yaml.safe_load(raw_yaml)
        except yaml.YAMLError:
            logger.warning("Failed to parse frontmatter, treating it as empty")
            return {}, body
        if not isinstance(frontmatter, dict):
            return {}, body
        return frontmatter, body

    def extract_title(
        self, file_path: str, frontmatter: dict[str, Any], body: str
    ) -> str:
        """Extract title from frontmatter, first H1, or filename."""
        title = frontmatter.get("title")
        if title is not None and str(title).strip():
            return str(title).strip()

        match = _HEADING_RE.search(body)
        if match:
            return match.group(1).strip()

        stem = os.path.splitext(os.path.basename(file_path))[0]
        return stem or FALLBACK_TITLE

    def render(self, body: str) -> str:
        """Render markdown (with pre-rewritten wiki anchors) to HTML."""
        return self._md.render(body)

    @staticmethod
    def compose(content: str, frontmatter: dict[str, Any] | None = None) -> str:
        """Build file text from a body and optional frontmatter mapping."""
        if not frontmatter:
            return content
        raw_yaml = yaml.safe_dump(
            frontmatter, sort_keys=False, allow_unicode=True
        ).strip()
        return f"---\n{raw_yaml}\n---\n{content}"
