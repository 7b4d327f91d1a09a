from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Dict, List, Sequence

from cyberrisk_cli.calculator import MATRIX_SIZE, build_matrix
from cyberrisk_cli.exporters.base import BaseExporter
from cyberrisk_cli.formatters.base import BaseFormatter
from cyberrisk_cli.formatters.json_formatter import JsonFormatter
from cyberrisk_cli.formatters.markdown_formatter import MarkdownFormatter
from cyberrisk_cli.formatters.yaml_formatter import YamlFormatter
from cyberrisk_cli.models.risks import (
    MatrixCell,
    QualitativeResult,
    QuantitativeResult,
    RiskCalculationResult,
)
from cyberrisk_cli.serialization import calculation_result_to_dict, format_datetime

REPORT_FORMATS = ("markdown", "json", "yaml")

_FORMATTERS: Dict[str, BaseFormatter] = {
    "json": JsonFormatter(),
    "yaml": YamlFormatter(),
}


def render_report(result: RiskCalculationResult, fmt: str = "markdown") -> str:
    if fmt == "markdown":
        return MarkdownFormatter.render(
            title=result.input.name,
            body=_build_body(result),
            frontmatter=_build_frontmatter(result),
        )
    return _FORMATTERS[fmt].dumps(calculation_result_to_dict(result))


class ReportExporter(BaseExporter):
    def __init__(
        self,
        result: RiskCalculationResult,
        output_dir: Path,
        *,
        formats: Sequence[str] = ("markdown",),
        force: bool = False,
    ) -> None:
        super().__init__(output_dir, force=force)
        self.result = result
        self.formats = tuple(formats)

    def export(self) -> None:
        self._ensure_output_dir()
        self._log(f"Writing calculation report {self.result.id}...")
        for fmt in self.formats:
            extension = ".md" if fmt == "markdown" else _FORMATTERS[fmt].file_extension()
            self._write_text(self.result.id + extension, render_report(self.result, fmt))
        self._log(
            "Writing calculation report... "
            + ", ".join(path.name for path in self.written)
            + " done"
        )


def _build_frontmatter(result: RiskCalculationResult) -> Dict[str, Any]:
    frontmatter: Dict[str, Any] = {
        "id": result.id,
        "asset": result.input.asset_name,
        "method": result.input.method.value,
        "calculated_at": format_datetime(result.calculated_at),
        "trend": result.risk_trend.value,
    }
    qualitative = result.qualitative_result
    if qualitative is not None:
        frontmatter["inherent_level"] = qualitative.inherent_risk_level.value
        frontmatter["residual_level"] = qualitative.residual_risk_level.value
    quantitative = result.quantitative_result
    if quantitative is not None:
        frontmatter["inherent_ale"] = quantitative.inherent_ale
        frontmatter["residual_ale"] = quantitative.residual_ale
    return frontmatter


def _build_body(result: RiskCalculationResult) -> str:
    data = result.input
    parts: List[str] = []

    if data.description:
        parts.append(textwrap.fill(data.description.strip(), width=120))
        parts.append("")

    parts.append("## Threat & Vulnerability")
    parts.append("")
    parts.append(f"- **Threat:** {data.threat_description or '-'}")
    parts.append(f"- **Vulnerability:** {data.vulnerability_description or '-'}")
    impact = data.impact_assessment
    parts.append(
        f"- **Impact (C/I/A):** {impact.confidentiality}/{impact.integrity}/{impact.availability}"
    )
    parts.append("")

    if result.qualitative_result is not None:
        parts.extend(_qualitative_section(result.qualitative_result))
    if result.quantitative_result is not None:
        parts.extend(_quantitative_section(result.quantitative_result))

    parts.append("## Recommended Actions")
    parts.append("")
    for index, action in enumerate(result.recommended_actions, start=1):
        parts.append(f"{index}. {action}")
    parts.append("")

    parts.extend(_controls_section("Existing Controls", data.existing_controls))
    parts.extend(_controls_section("Proposed Controls", data.proposed_controls))
    return "\n".join(parts)


def _qualitative_section(result: QualitativeResult) -> List[str]:
    inherent = result.matrix_position.inherent
    residual = result.matrix_position.residual
    lines = [
        "## Assessment & Scoring",
        "",
        "|          | Score  | Level    | Likelihood | Impact |",
        "|----------|-------:|----------|-----------:|-------:|",
        f"| Inherent | {result.inherent_risk_score:>6} | {result.inherent_risk_level.value:<8} "
        f"| {inherent.likelihood:>10} | {inherent.impact:>6} |",
        f"| Residual | {result.residual_risk_score:>6} | {result.residual_risk_level.value:<8} "
        f"| {residual.likelihood:>10} | {residual.impact:>6} |",
        "",
        f"- **Risk Reduction:** {result.risk_reduction}%",
        "",
        "## Risk Matrix",
        "",
    ]
    lines.extend(_matrix_table(build_matrix(result)))
    lines.append("")
    lines.append("`I` marks the inherent position, `R` the residual position.")
    if not 1 <= residual.likelihood <= MATRIX_SIZE:
        lines.append(
            f"The residual likelihood ({residual.likelihood}) falls outside the matrix."
        )
    lines.append("")
    return lines


def _matrix_table(rows: List[List[MatrixCell]]) -> List[str]:
    header = "| Impact \\ Likelihood | " + " | ".join(str(i) for i in range(1, MATRIX_SIZE + 1)) + " |"
    separator = "|---------------------|" + "|".join("------:" for _ in range(MATRIX_SIZE)) + "|"
    lines = [header, separator]
    for row in rows:
        cells = []
        for cell in row:
            markers = ("I" if cell.is_inherent else "") + ("R" if cell.is_residual else "")
            cells.append(f"{markers} {cell.score}".strip())
        lines.append(f"| {row[0].impact:<19} | " + " | ".join(cells) + " |")
    return lines


def _quantitative_section(result: QuantitativeResult) -> List[str]:
    rows = (
        ("Single Loss Expectancy (SLE)", f"{result.single_loss_expectancy:,.2f}"),
        ("Annual Loss Expectancy (ALE)", f"{result.annual_loss_expectancy:,.2f}"),
        ("Residual ALE", f"{result.residual_ale:,.2f}"),
        ("Cost Avoidance", f"{result.cost_avoidance:,.2f}"),
        ("Return on Security Investment", f"{result.return_on_security_investment:,.2f}%"),
    )
    lines = [
        "## Loss Expectancy",
        "",
        "| Metric                        |            Value |",
        "|-------------------------------|-----------------:|",
    ]
    for label, value in rows:
        lines.append(f"| {label:<29} | {value:>16} |")
    lines.append("")
    return lines


def _controls_section(title: str, controls: Sequence[str]) -> List[str]:
    lines = [f"### {title}", ""]
    if controls:
        lines.extend(f"- {control}" for control in controls)
    else:
        lines.append(f"[//]: # (No {title.lower()} set)")
    lines.append("")
    return lines
