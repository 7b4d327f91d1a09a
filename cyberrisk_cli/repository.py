from __future__ import annotations

import dataclasses
import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from cyberrisk_cli.client import RiskApiClient
from cyberrisk_cli.exceptions import ConfigError, NotFoundError
from cyberrisk_cli.formatters.json_formatter import JsonFormatter
from cyberrisk_cli.models.register import RiskRegisterEntry
from cyberrisk_cli.serialization import changes_to_dict, entry_from_dict, entry_to_dict

Clock = Callable[[], datetime]

_SERVER_MANAGED = ("id", "createdAt", "updatedAt")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiskRepository(ABC):
    """Storage for register entries, keyed by id, with no ordering guarantee."""

    @abstractmethod
    def add(self, entry: RiskRegisterEntry) -> RiskRegisterEntry:
        ...

    @abstractmethod
    def update(self, entry_id: str, changes: Mapping[str, Any]) -> Optional[RiskRegisterEntry]:
        """Merge *changes* into the entry and refresh updated_at; None if unknown."""
        ...

    @abstractmethod
    def delete(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        ...

    @abstractmethod
    def find(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        ...

    @abstractmethod
    def list_all(self) -> List[RiskRegisterEntry]:
        ...


class InMemoryRiskRepository(RiskRepository):
    def __init__(self, clock: Clock = utc_now) -> None:
        self._entries: List[RiskRegisterEntry] = []
        self._clock = clock

    def add(self, entry: RiskRegisterEntry) -> RiskRegisterEntry:
        self._entries.append(entry)
        return entry

    def update(self, entry_id: str, changes: Mapping[str, Any]) -> Optional[RiskRegisterEntry]:
        index = self._index_of(entry_id)
        if index is None:
            return None
        merged = _merge(self._entries[index], changes, self._clock())
        self._entries[index] = merged
        return merged

    def delete(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        index = self._index_of(entry_id)
        if index is None:
            return None
        return self._entries.pop(index)

    def find(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        index = self._index_of(entry_id)
        return None if index is None else self._entries[index]

    def list_all(self) -> List[RiskRegisterEntry]:
        return list(self._entries)

    def _index_of(self, entry_id: str) -> Optional[int]:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index
        return None


class JsonFileRiskRepository(RiskRepository):
    """Keeps the register in a single JSON document, rewritten on every change."""

    def __init__(self, path: Path, clock: Clock = utc_now) -> None:
        self.path = path
        self._clock = clock
        self._formatter = JsonFormatter()

    def add(self, entry: RiskRegisterEntry) -> RiskRegisterEntry:
        entries = self._load()
        entries.append(entry)
        self._save(entries)
        return entry

    def update(self, entry_id: str, changes: Mapping[str, Any]) -> Optional[RiskRegisterEntry]:
        entries = self._load()
        for index, entry in enumerate(entries):
            if entry.id == entry_id:
                entries[index] = _merge(entry, changes, self._clock())
                self._save(entries)
                return entries[index]
        return None

    def delete(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        entries = self._load()
        for index, entry in enumerate(entries):
            if entry.id == entry_id:
                removed = entries.pop(index)
                self._save(entries)
                return removed
        return None

    def find(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        for entry in self._load():
            if entry.id == entry_id:
                return entry
        return None

    def list_all(self) -> List[RiskRegisterEntry]:
        return self._load()

    def _load(self) -> List[RiskRegisterEntry]:
        if not self.path.is_file():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
        except ValueError as exc:
            raise ConfigError(
                f"Risk register {self.path} is not valid JSON. Fix or remove the file."
            ) from exc
        raw_list = document.get("risks", []) if isinstance(document, dict) else document
        if not isinstance(raw_list, list):
            raise ConfigError(f"Risk register {self.path} has no 'risks' list.")
        return [entry_from_dict(raw) for raw in raw_list]

    def _save(self, entries: List[RiskRegisterEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._formatter.write({"risks": [entry_to_dict(e) for e in entries]}, self.path)


class RemoteRiskRepository(RiskRepository):
    """Delegates storage to a risk register service.

    The service assigns ids and timestamps itself, so ``add`` returns the
    entry as stored remotely rather than the one passed in.
    """

    def __init__(self, client: RiskApiClient) -> None:
        self.client = client

    def add(self, entry: RiskRegisterEntry) -> RiskRegisterEntry:
        payload = _without_server_fields(entry_to_dict(entry))
        return entry_from_dict(self.client.create_risk(payload))

    def update(self, entry_id: str, changes: Mapping[str, Any]) -> Optional[RiskRegisterEntry]:
        try:
            raw = self.client.update_risk(entry_id, changes_to_dict(changes))
        except NotFoundError:
            return None
        return entry_from_dict(raw)

    def delete(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        try:
            raw = self.client.delete_risk(entry_id)
        except NotFoundError:
            return None
        return entry_from_dict(raw)

    def find(self, entry_id: str) -> Optional[RiskRegisterEntry]:
        try:
            raw = self.client.get_risk(entry_id)
        except NotFoundError:
            return None
        return entry_from_dict(raw)

    def list_all(self) -> List[RiskRegisterEntry]:
        response = self.client.list_risks()
        raw_list = response if isinstance(response, list) else []
        return [entry_from_dict(raw) for raw in raw_list]


def _merge(
    entry: RiskRegisterEntry,
    changes: Mapping[str, Any],
    now: datetime,
) -> RiskRegisterEntry:
    allowed = {f.name for f in dataclasses.fields(entry)} - {"id", "created_at", "updated_at"}
    updates = {key: value for key, value in changes.items() if key in allowed}
    return dataclasses.replace(entry, **updates, updated_at=now)


def _without_server_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in _SERVER_MANAGED}
