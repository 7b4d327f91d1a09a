from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List
from unittest.mock import patch

import pytest
import yaml

from cyberrisk_cli.cli import DEFAULT_REGISTER_PATH, main
from cyberrisk_cli.config import CONFIG_FILENAME, read_config
from cyberrisk_cli.exceptions import ConfigError, NotFoundError, ValidationError
from cyberrisk_cli.models.config import STORAGE_REMOTE


def _run(*argv: str) -> None:
    with patch("sys.argv", ["cyberrisk-cli", *argv]):
        main()


def _write_payload(path: Path, payload: Any) -> str:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _calculation_payload() -> dict:
    return {
        "name": "Ransomware on file server",
        "assetName": "FS-01",
        "method": "qualitative",
        "qualitativeData": {
            "likelihood": 3,
            "impact": 3,
            "vulnerabilitySeverity": 5,
            "controlEffectiveness": 50,
            "detectionCapability": 3,
            "responseCapability": 3,
        },
        "impactAssessment": {"confidentiality": 3, "integrity": 3, "availability": 3},
    }


def _register_payload(name: str = "Phishing", score: float = 6) -> dict:
    return {
        "name": name,
        "assetName": "Mail gateway",
        "category": "Social engineering",
        "inherentRiskScore": 16,
        "residualRiskScore": score,
    }


def _created_ids(output: str) -> List[str]:
    prefix = "Risk created: "
    return [line[len(prefix):] for line in output.splitlines() if line.startswith(prefix)]


class TestNoArgs:
    def test_no_args_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        _run()
        assert "usage:" in capsys.readouterr().out.lower()

    def test_actions_are_mutually_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            _run("--list", "--delete", "risk_1")


class TestInit:
    def test_init_default_register(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")

        config = read_config(tmp_path)
        assert config.register_path == DEFAULT_REGISTER_PATH
        assert (tmp_path / "exports").is_dir()
        out = capsys.readouterr().out
        assert f"Configuration saved to {CONFIG_FILENAME}" in out
        assert f"Risk register file: {DEFAULT_REGISTER_PATH}" in out

    def test_init_custom_register(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init", "data/risks.json")
        assert read_config(tmp_path).register_path == "data/risks.json"

    def test_init_blank_register(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="cannot be empty"):
            _run("--init", "  ")

    def test_init_remote(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("cyberrisk_cli.cli.getpass.getpass", return_value=" secret "):
            _run("--init-remote", "https://risks.example.com/api")

        config = read_config(tmp_path)
        assert config.storage == STORAGE_REMOTE
        assert config.api_url == "https://risks.example.com/api/"
        assert config.bearer_token == "secret"

    def test_init_remote_requires_https(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="https://"):
            _run("--init-remote", "http://risks.example.com/")
        assert not (tmp_path / CONFIG_FILENAME).exists()

    def test_init_declined_keeps_existing_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init", "first.json")
        with patch("builtins.input", return_value="n"):
            _run("--init", "second.json")

        assert read_config(tmp_path).register_path == "first.json"
        assert "Configuration unchanged." in capsys.readouterr().out

    def test_init_confirmed_overwrites(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init", "first.json")
        with patch("builtins.input", return_value="yes") as prompt:
            _run("--init", "second.json")

        prompt.assert_called_once()
        assert read_config(tmp_path).register_path == "second.json"

    def test_init_force_skips_prompt(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init", "first.json")
        with patch("builtins.input") as prompt:
            _run("--init", "second.json", "--force")

        prompt.assert_not_called()
        assert read_config(tmp_path).register_path == "second.json"

    def test_init_remote_declined_skips_token_prompt(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        with patch("builtins.input", return_value=""), patch("cyberrisk_cli.cli.getpass.getpass") as token:
            _run("--init-remote", "https://risks.example.com/api")

        token.assert_not_called()
        assert read_config(tmp_path).register_path == DEFAULT_REGISTER_PATH


class TestCalculate:
    def test_prints_markdown_without_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--calculate", _write_payload(tmp_path / "input.json", _calculation_payload()))

        out = capsys.readouterr().out
        assert out.startswith("---\n")
        assert "# Ransomware on file server" in out
        assert "inherent_level: Medio" in out

    def test_prints_json(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--calculate", _write_payload(tmp_path / "input.json", _calculation_payload()), "--format", "json")

        body = json.loads(capsys.readouterr().out)
        assert body["qualitativeResult"]["inherentRiskScore"] == 12
        assert body["qualitativeResult"]["residualRiskScore"] == 3.6

    def test_reads_yaml_input(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "input.yaml"
        path.write_text(yaml.safe_dump(_calculation_payload()), encoding="utf-8")

        _run("--calculate", str(path), "--format", "yaml")

        body = yaml.safe_load(capsys.readouterr().out)
        assert body["qualitativeResult"]["riskReduction"] == 70.0

    def test_writes_report_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        payload = dict(_calculation_payload(), id="risk_fixed")

        _run("--calculate", _write_payload(tmp_path / "input.json", payload), "--output", "reports")

        assert (tmp_path / "reports" / "risk_fixed.md").is_file()

    def test_missing_input_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ValidationError, match="Cannot read input file"):
            _run("--calculate", "missing.json")

    def test_malformed_input_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "input.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ValidationError, match="not valid JSON or YAML"):
            _run("--calculate", str(path))

    def test_invalid_payload(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ValidationError, match="Missing required fields"):
            _run("--calculate", _write_payload(tmp_path / "input.json", {"name": "x"}))


class TestRegisterCommands:
    def test_requires_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="--init first"):
            _run("--list")

    def test_add_list_show_update_delete(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        _run("--add", _write_payload(tmp_path / "a.json", _register_payload("Phishing", 6)))
        _run("--add", _write_payload(tmp_path / "b.json", _register_payload("Ransomware", 14)))
        phishing_id, ransomware_id = _created_ids(capsys.readouterr().out)

        _run("--list")
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "2 risks found"
        assert "Ransomware" in lines[1]
        assert "Phishing" in lines[2]

        _run("--list", "--search", "phish")
        assert capsys.readouterr().out.startswith("1 risk found")

        _run("--show", phishing_id)
        shown = yaml.safe_load(capsys.readouterr().out)
        assert shown["id"] == phishing_id
        assert shown["status"] == "open"

        _run("--update", phishing_id, _write_payload(tmp_path / "u.json", {"status": "mitigated"}))
        assert f"Risk updated: {phishing_id}" in capsys.readouterr().out

        _run("--show", phishing_id, "--format", "json")
        assert json.loads(capsys.readouterr().out)["status"] == "mitigated"

        _run("--delete", ransomware_id)
        assert f"Risk deleted: {ransomware_id} (Ransomware)" in capsys.readouterr().out

        document = json.loads((tmp_path / DEFAULT_REGISTER_PATH).read_text(encoding="utf-8"))
        assert [risk["id"] for risk in document["risks"]] == [phishing_id]

    def test_show_unknown(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        with pytest.raises(NotFoundError, match="Risk not found: nope"):
            _run("--show", "nope")

    def test_add_rejects_incomplete_payload(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        with pytest.raises(ValidationError):
            _run("--add", _write_payload(tmp_path / "a.json", {"name": "Only name"}))


class TestExport:
    def _populate(self, tmp_path: Path) -> None:
        _run("--init")
        _run("--add", _write_payload(tmp_path / "a.json", _register_payload("Phishing", 6)))
        _run("--add", _write_payload(tmp_path / "b.json", _register_payload("Ransomware", 14)))

    def test_export_csv_to_default_dir(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)
        self._populate(tmp_path)

        _run("--export", "csv")

        files = list((tmp_path / "exports").glob("registro-riesgos-*.csv"))
        assert len(files) == 1
        lines = files[0].read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("ID,Nombre,")
        assert len(lines) == 3
        assert "(2 risks)" in capsys.readouterr().out

    def test_export_json_to_output_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        self._populate(tmp_path)

        _run("--export", "json", "--output", "out")

        files = list((tmp_path / "out").glob("registro-riesgos-*.json"))
        assert len(files) == 1
        assert json.loads(files[0].read_text(encoding="utf-8"))["totalRisks"] == 2

    def test_export_date_range_excludes_everything_before(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)
        self._populate(tmp_path)

        _run("--export", "json", "--from", "2000-01-01", "--to", "2000-12-31")

        files = list((tmp_path / "exports").glob("registro-riesgos-*.json"))
        assert json.loads(files[0].read_text(encoding="utf-8"))["totalRisks"] == 0

    def test_export_invalid_format(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        with pytest.raises(ValidationError, match='Use "csv" or "json"'):
            _run("--export", "xlsx")

    def test_export_half_open_range(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        _run("--init")
        with pytest.raises(ValidationError, match="both a start and an end"):
            _run("--export", "csv", "--from", "2024-01-01")
