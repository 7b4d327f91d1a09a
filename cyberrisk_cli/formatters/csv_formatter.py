from __future__ import annotations

import csv
import io
from typing import Any, List, Mapping, Sequence

from cyberrisk_cli.formatters.base import BaseFormatter


class CsvFormatter(BaseFormatter):
    """Renders a sequence of flat mappings; keys of the first row become the header."""

    content_type = "text/csv"

    def dumps(self, data: Sequence[Mapping[str, Any]]) -> str:
        rows: List[Mapping[str, Any]] = list(data)
        if not rows:
            return ""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()), lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        return buffer.getvalue().rstrip("\n")

    def file_extension(self) -> str:
        return ".csv"
