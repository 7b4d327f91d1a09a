from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List


class BaseExporter(ABC):
    def __init__(self, output_dir: Path, *, force: bool = False) -> None:
        self.output_dir = output_dir
        self.force = force
        self._overwrite_all = False
        self.written: List[Path] = []

    @abstractmethod
    def export(self) -> None:
        """Produce the export and write it to output_dir."""
        ...

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_text(self, filename: str, content: str) -> None:
        path = self.output_dir / filename
        if not self._should_write(path):
            self._log(f"Skipped {path}")
            return
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        self.written.append(path)
