from __future__ import annotations

import textwrap
from typing import Any, Dict, Optional

import yaml

from cyberrisk_cli.formatters.base import BaseFormatter


class MarkdownFormatter(BaseFormatter):
    content_type = "text/markdown"
    _MAX_LINE_LENGTH = 120

    def dumps(self, data: Any) -> str:
        """Render ``{"title", "body", "frontmatter"}`` mappings; strings pass through."""
        if isinstance(data, str):
            return data
        if not isinstance(data, dict):
            return str(data)
        frontmatter = data.get("frontmatter")
        return self.render(
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            frontmatter=frontmatter if isinstance(frontmatter, dict) else None,
        )

    def file_extension(self) -> str:
        return ".md"

    @classmethod
    def render(
        cls,
        title: str,
        body: str,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts = []
        if frontmatter:
            fm_text = yaml.dump(
                frontmatter,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            ).rstrip("\n")
            parts.append(f"---\n{fm_text}\n---\n")
        if title:
            parts.append(f"# {title}\n")
        if body:
            parts.append(cls._wrap_body(body.rstrip("\n")) + "\n")
        return "\n".join(parts)

    @classmethod
    def _wrap_body(cls, body: str) -> str:
        lines = []
        for line in body.splitlines():
            if cls._is_structural(line):
                lines.append(line)
            else:
                lines.append(textwrap.fill(
                    line,
                    width=cls._MAX_LINE_LENGTH,
                    break_long_words=False,
                    break_on_hyphens=False,
                ))
        return "\n".join(lines)

    @classmethod
    def _is_structural(cls, line: str) -> bool:
        # tables, lists and headings must keep their line breaks
        if len(line) <= cls._MAX_LINE_LENGTH:
            return True
        return line.startswith(("#", "|", "- ", "* ", "> ", "```", "    "))
