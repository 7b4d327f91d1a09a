from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cyberrisk_cli.exceptions import ConfigError, NotFoundError
from cyberrisk_cli.models.register import RiskRegisterEntry, RiskStatus
from cyberrisk_cli.models.risks import RiskLevel
from cyberrisk_cli.repository import (
    InMemoryRiskRepository,
    JsonFileRiskRepository,
    RemoteRiskRepository,
)
from cyberrisk_cli.serialization import build_entry, entry_to_dict

CREATED = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
LATER = CREATED + timedelta(hours=2)


def _make_entry(entry_id: str = "risk_1", **fields) -> RiskRegisterEntry:
    defaults = {
        "name": "Phishing",
        "asset_name": "Mail",
        "category": "Social",
        "inherent_risk_score": 16,
        "residual_risk_score": 6,
    }
    defaults.update(fields)
    return build_entry(entry_id, defaults, CREATED)


class _RepositoryContract:
    """Behaviour shared by every local repository."""

    def _make_repository(self, tmp_path: Path):
        raise NotImplementedError

    def test_add_and_find(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())

        found = repo.find("risk_1")

        assert found is not None
        assert found.name == "Phishing"

    def test_find_unknown(self, tmp_path: Path) -> None:
        assert self._make_repository(tmp_path).find("missing") is None

    def test_list_all(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry("risk_1"))
        repo.add(_make_entry("risk_2", name="Ransomware"))

        assert sorted(e.id for e in repo.list_all()) == ["risk_1", "risk_2"]

    def test_update_merges_and_refreshes_timestamp(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())

        updated = repo.update("risk_1", {"status": RiskStatus.MITIGATED, "owner": "CISO"})

        assert updated is not None
        assert updated.status == RiskStatus.MITIGATED
        assert updated.owner == "CISO"
        assert updated.name == "Phishing"
        assert updated.created_at == CREATED
        assert updated.updated_at == LATER
        assert repo.find("risk_1") == updated

    def test_update_cannot_change_identity(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())

        updated = repo.update("risk_1", {"id": "hijack", "created_at": LATER})

        assert updated is not None
        assert updated.id == "risk_1"
        assert updated.created_at == CREATED

    def test_update_unknown(self, tmp_path: Path) -> None:
        assert self._make_repository(tmp_path).update("missing", {"owner": "x"}) is None

    def test_delete(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())

        removed = repo.delete("risk_1")

        assert removed is not None
        assert removed.id == "risk_1"
        assert repo.find("risk_1") is None
        assert repo.delete("risk_1") is None


class TestInMemoryRiskRepository(_RepositoryContract):
    def _make_repository(self, tmp_path: Path) -> InMemoryRiskRepository:
        return InMemoryRiskRepository(clock=lambda: LATER)

    def test_list_returns_copy(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())
        repo.list_all().clear()
        assert len(repo.list_all()) == 1


class TestJsonFileRiskRepository(_RepositoryContract):
    def _make_repository(self, tmp_path: Path) -> JsonFileRiskRepository:
        return JsonFileRiskRepository(tmp_path / "register.json", clock=lambda: LATER)

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        assert repo.list_all() == []
        assert not repo.path.exists()

    def test_document_layout(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry())

        document = json.loads(repo.path.read_text(encoding="utf-8"))

        assert list(document) == ["risks"]
        assert document["risks"][0]["id"] == "risk_1"
        assert document["risks"][0]["inherentRiskLevel"] == "Alto"

    def test_keeps_non_ascii_text(self, tmp_path: Path) -> None:
        repo = self._make_repository(tmp_path)
        repo.add(_make_entry(inherent_risk_level=RiskLevel.CRITICAL))
        assert "Crítico" in repo.path.read_text(encoding="utf-8")

    def test_survives_new_instance(self, tmp_path: Path) -> None:
        self._make_repository(tmp_path).add(_make_entry())
        assert self._make_repository(tmp_path).find("risk_1") == _make_entry()

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        repo = JsonFileRiskRepository(tmp_path / "data" / "nested" / "register.json")
        repo.add(_make_entry())
        assert repo.path.is_file()

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "register.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="not valid JSON"):
            JsonFileRiskRepository(path).list_all()

    def test_risks_must_be_list(self, tmp_path: Path) -> None:
        path = tmp_path / "register.json"
        path.write_text('{"risks": {"id": "x"}}', encoding="utf-8")
        with pytest.raises(ConfigError, match="no 'risks' list"):
            JsonFileRiskRepository(path).list_all()


class TestRemoteRiskRepository:
    def _make_repository(self) -> tuple:
        client = MagicMock()
        return RemoteRiskRepository(client), client

    def test_add_sends_payload_without_server_fields(self) -> None:
        repo, client = self._make_repository()
        stored = entry_to_dict(_make_entry("risk_srv"))
        client.create_risk.return_value = stored

        result = repo.add(_make_entry("risk_local"))

        payload = client.create_risk.call_args[0][0]
        assert "id" not in payload
        assert "createdAt" not in payload
        assert "updatedAt" not in payload
        assert payload["name"] == "Phishing"
        assert result.id == "risk_srv"

    def test_find(self) -> None:
        repo, client = self._make_repository()
        client.get_risk.return_value = entry_to_dict(_make_entry())

        assert repo.find("risk_1") == _make_entry()
        client.get_risk.assert_called_once_with("risk_1")

    def test_find_not_found(self) -> None:
        repo, client = self._make_repository()
        client.get_risk.side_effect = NotFoundError("Risk not found")
        assert repo.find("risk_1") is None

    def test_update_sends_camel_case(self) -> None:
        repo, client = self._make_repository()
        client.update_risk.return_value = entry_to_dict(_make_entry(owner="SOC"))

        result = repo.update("risk_1", {"owner": "SOC", "status": RiskStatus.ACCEPTED})

        client.update_risk.assert_called_once_with("risk_1", {"owner": "SOC", "status": "accepted"})
        assert result is not None
        assert result.owner == "SOC"

    def test_update_not_found(self) -> None:
        repo, client = self._make_repository()
        client.update_risk.side_effect = NotFoundError("Risk not found")
        assert repo.update("risk_1", {"owner": "SOC"}) is None

    def test_delete(self) -> None:
        repo, client = self._make_repository()
        client.delete_risk.return_value = entry_to_dict(_make_entry())
        assert repo.delete("risk_1").id == "risk_1"

    def test_delete_not_found(self) -> None:
        repo, client = self._make_repository()
        client.delete_risk.side_effect = NotFoundError("Risk not found")
        assert repo.delete("risk_1") is None

    def test_list_all(self) -> None:
        repo, client = self._make_repository()
        client.list_risks.return_value = [
            entry_to_dict(_make_entry("risk_1")),
            entry_to_dict(_make_entry("risk_2")),
        ]
        assert [e.id for e in repo.list_all()] == ["risk_1", "risk_2"]

    def test_list_all_ignores_unexpected_shape(self) -> None:
        repo, client = self._make_repository()
        client.list_risks.return_value = {"unexpected": True}
        assert repo.list_all() == []
