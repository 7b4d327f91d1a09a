from __future__ import annotations

import argparse
import getpass
import json
from pathlib import Path
from typing import Any, List

import yaml

from cyberrisk_cli.client import RiskApiClient
from cyberrisk_cli.config import CONFIG_FILENAME, config_exists, read_config, write_config
from cyberrisk_cli.exceptions import ConfigError, ValidationError
from cyberrisk_cli.exporters.register import RegisterExporter
from cyberrisk_cli.exporters.report import REPORT_FORMATS, ReportExporter, render_report
from cyberrisk_cli.formatters.json_formatter import JsonFormatter
from cyberrisk_cli.formatters.yaml_formatter import YamlFormatter
from cyberrisk_cli.models.config import STORAGE_REMOTE, AppConfig
from cyberrisk_cli.models.register import ExportOptions, RiskRegisterEntry
from cyberrisk_cli.parsing import parse_date_range, parse_export_format
from cyberrisk_cli.repository import (
    InMemoryRiskRepository,
    JsonFileRiskRepository,
    RemoteRiskRepository,
    RiskRepository,
)
from cyberrisk_cli.serialization import entry_to_dict
from cyberrisk_cli.service import RiskService

DEFAULT_REGISTER_PATH = "risk-register.json"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cyberrisk-cli",
        description="Cybersecurity risk calculator and risk register.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        nargs="?",
        const=DEFAULT_REGISTER_PATH,
        metavar="REGISTER_PATH",
        help=f"Initialize configuration with a local register file (default: {DEFAULT_REGISTER_PATH}).",
    )
    group.add_argument(
        "--init-remote",
        metavar="API_URL",
        help="Initialize configuration against a remote risk register API.",
    )
    group.add_argument(
        "--calculate", metavar="FILE", help="Calculate risk from a JSON or YAML input file.",
    )
    group.add_argument("--add", metavar="FILE", help="Add a risk to the register.")
    group.add_argument("--list", action="store_true", help="List risks in the register.")
    group.add_argument("--show", metavar="ID", help="Show a single risk.")
    group.add_argument(
        "--update", nargs=2, metavar=("ID", "FILE"), help="Update a risk with fields from FILE.",
    )
    group.add_argument("--delete", metavar="ID", help="Delete a risk.")
    group.add_argument("--export", metavar="FORMAT", help="Export the register as csv or json.")

    parser.add_argument("--search", help="Filter --list by name, description or asset.")
    parser.add_argument("--status", help="Filter --list by status.")
    parser.add_argument("--category", help="Filter --list by category.")
    parser.add_argument("--from", dest="date_from", metavar="DATE", help="Export risks created on or after DATE.")
    parser.add_argument("--to", dest="date_to", metavar="DATE", help="Export risks created on or before DATE.")
    parser.add_argument("--output", metavar="DIR", help="Write reports or exports into DIR.")
    parser.add_argument(
        "--format", choices=REPORT_FORMATS, help="Output format for --calculate and --show.",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files and configuration without confirmation.",
    )
    return parser


def _confirm_overwrite_config(cwd: Path, force: bool) -> bool:
    if force or not config_exists(cwd):
        return True
    answer = input(f"Overwrite existing {CONFIG_FILENAME}? [y/N] ").strip().lower()
    if answer in ("y", "yes"):
        return True
    print("Configuration unchanged.")
    return False


def _run_init(register_path: str, force: bool = False) -> None:
    if not register_path.strip():
        raise ConfigError("Register path cannot be empty.")

    config = AppConfig(register_path=register_path.strip())
    cwd = Path.cwd()
    if not _confirm_overwrite_config(cwd, force):
        return
    write_config(cwd, config)
    (cwd / config.export_dir).mkdir(exist_ok=True)

    print(f"Configuration saved to {CONFIG_FILENAME}")
    print(f"Risk register file: {config.register_path}")


def _run_init_remote(api_url: str, force: bool = False) -> None:
    if not api_url.startswith("https://"):
        raise ConfigError("API URL must start with https://")

    cwd = Path.cwd()
    if not _confirm_overwrite_config(cwd, force):
        return
    bearer_token = getpass.getpass("Enter your bearer token (leave empty for none): ")
    config = AppConfig(storage=STORAGE_REMOTE, api_url=api_url, bearer_token=bearer_token.strip())
    write_config(cwd, config)
    (cwd / config.export_dir).mkdir(exist_ok=True)

    print(f"Configuration saved to {CONFIG_FILENAME}")
    print(f"Risk register API: {config.api_url}")


def _build_repository(cwd: Path, config: AppConfig) -> RiskRepository:
    if config.storage == STORAGE_REMOTE:
        return RemoteRiskRepository(RiskApiClient(config))
    return JsonFileRiskRepository(cwd / config.register_path)


def _load_payload(path_text: str) -> Any:
    path = Path(path_text)
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except OSError as exc:
        raise ValidationError(f"Cannot read input file {path}.") from exc
    except (ValueError, yaml.YAMLError) as exc:
        raise ValidationError(f"Input file {path} is not valid JSON or YAML.") from exc


def _run_calculate(args: argparse.Namespace) -> None:
    # calculations are stateless and work without a configured register
    service = RiskService(InMemoryRiskRepository())
    result = service.calculate(_load_payload(args.calculate))
    fmt = args.format or "markdown"

    if args.output:
        ReportExporter(result, Path(args.output), formats=[fmt], force=args.force).export()
    else:
        print(render_report(result, fmt), end="")


def _run_register(args: argparse.Namespace) -> None:
    cwd = Path.cwd()
    config = read_config(cwd)
    service = RiskService(_build_repository(cwd, config))

    if args.add:
        entry = service.create_risk(_load_payload(args.add))
        print(f"Risk created: {entry.id}")
    elif args.list:
        entries = service.list_risks(args.search, args.status, args.category)
        _print_table(entries)
    elif args.show:
        _print_entry(service.get_risk(args.show), args.format)
    elif args.update:
        risk_id, path_text = args.update
        entry = service.update_risk(risk_id, _load_payload(path_text))
        print(f"Risk updated: {entry.id}")
    elif args.delete:
        entry = service.delete_risk(args.delete)
        print(f"Risk deleted: {entry.id} ({entry.name})")
    elif args.export:
        options = ExportOptions(
            format=parse_export_format(args.export),
            date_range=parse_date_range(args.date_from, args.date_to),
        )
        output_dir = Path(args.output) if args.output else cwd / config.export_dir
        RegisterExporter(service, output_dir, options, force=args.force).export()


def _print_table(entries: List[RiskRegisterEntry]) -> None:
    noun = "risk" if len(entries) == 1 else "risks"
    print(f"{len(entries)} {noun} found")
    for entry in entries:
        print(
            f"{entry.id:<28} {entry.residual_risk_score:>6} "
            f"{entry.residual_risk_level.value:<9} {entry.status.value:<12} {entry.name}"
        )


def _print_entry(entry: RiskRegisterEntry, fmt: Any) -> None:
    data = entry_to_dict(entry)
    if fmt == "json":
        print(JsonFormatter().dumps(data), end="")
    else:
        print(YamlFormatter().dumps(data), end="")


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.init is not None:
        _run_init(args.init, force=args.force)
    elif args.init_remote:
        _run_init_remote(args.init_remote, force=args.force)
    elif args.calculate:
        _run_calculate(args)
    elif args.add or args.list or args.show or args.update or args.delete or args.export:
        _run_register(args)
    else:
        parser.print_help()
