from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from cyberrisk_cli.exporters.base import BaseExporter
from cyberrisk_cli.formatters.csv_formatter import CsvFormatter
from cyberrisk_cli.formatters.json_formatter import JsonFormatter
from cyberrisk_cli.models.register import (
    ExportDocument,
    ExportFormat,
    ExportOptions,
    RiskRegisterEntry,
)
from cyberrisk_cli.serialization import entry_to_dict, format_date, format_datetime

if TYPE_CHECKING:
    from cyberrisk_cli.service import RiskService

FILENAME_PREFIX = "registro-riesgos"

CSV_COLUMNS = (
    "ID",
    "Nombre",
    "Descripción",
    "Activo",
    "Categoría",
    "Nivel de Riesgo Inherente",
    "Nivel de Riesgo Residual",
    "Puntuación Riesgo Inherente",
    "Puntuación Riesgo Residual",
    "Probabilidad",
    "Impacto",
    "Propietario",
    "Estado",
    "Plan de Tratamiento",
    "Controles",
    "Fecha de Revisión",
    "Fecha de Creación",
    "Fecha de Actualización",
)


def render_export(
    entries: Sequence[RiskRegisterEntry],
    options: ExportOptions,
    exported_at: datetime,
) -> ExportDocument:
    """Serialize already filtered and sorted *entries* in the requested format."""
    filename = f"{FILENAME_PREFIX}-{format_date(exported_at)}"
    if options.format == ExportFormat.CSV:
        formatter = CsvFormatter()
        content = formatter.dumps([_csv_row(entry) for entry in entries])
    else:
        formatter = JsonFormatter()
        content = formatter.dumps({
            "exportedAt": format_datetime(exported_at),
            "totalRisks": len(entries),
            "includeCalculations": options.include_calculations,
            "includeRecommendations": options.include_recommendations,
            "risks": [entry_to_dict(entry) for entry in entries],
        })
    return ExportDocument(
        filename=filename + formatter.file_extension(),
        content_type=formatter.content_type,
        content=content,
        count=len(entries),
    )


class RegisterExporter(BaseExporter):
    def __init__(
        self,
        service: RiskService,
        output_dir: Path,
        options: ExportOptions,
        *,
        force: bool = False,
    ) -> None:
        super().__init__(output_dir, force=force)
        self.service = service
        self.options = options

    def export(self) -> None:
        self._ensure_output_dir()
        self._log(f"Exporting risk register as {self.options.format.value}...")

        document = self.service.export(self.options)
        self._write_text(document.filename, document.content)

        noun = "risk" if document.count == 1 else "risks"
        self._log(
            f"Exporting risk register... {document.filename} done ({document.count} {noun})"
        )


def _csv_row(entry: RiskRegisterEntry) -> Dict[str, Any]:
    values: List[Any] = [
        entry.id,
        entry.name,
        entry.description,
        entry.asset_name,
        entry.category,
        entry.inherent_risk_level.value,
        entry.residual_risk_level.value,
        _number(entry.inherent_risk_score),
        _number(entry.residual_risk_score),
        _number(entry.probability),
        _number(entry.impact),
        entry.owner,
        entry.status.value,
        entry.treatment_plan,
        "; ".join(entry.controls),
        format_date(entry.review_date),
        format_date(entry.created_at),
        format_date(entry.updated_at),
    ]
    return dict(zip(CSV_COLUMNS, values))


def _number(value: float) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
