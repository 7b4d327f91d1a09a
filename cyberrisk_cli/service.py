"""Request handling around the scoring engine and the risk register.

RiskService validates incoming payloads, runs the engine and talks to an
injected RiskRepository. The engine never sees the repository.
"""
from __future__ import annotations

import random
import string
from dataclasses import replace
from typing import Any, Callable, List, Optional

from cyberrisk_cli.calculator import calculate_qualitative, calculate_quantitative
from cyberrisk_cli.exceptions import ComputationError, CyberRiskError, NotFoundError
from cyberrisk_cli.exporters.register import render_export
from cyberrisk_cli.models.register import ExportDocument, ExportOptions, RiskRegisterEntry
from cyberrisk_cli.models.risks import (
    CalculationMethod,
    RiskCalculationInput,
    RiskCalculationResult,
    RiskTrend,
)
from cyberrisk_cli.parsing import (
    parse_calculation_input,
    parse_register_changes,
    parse_register_payload,
    parse_status,
)
from cyberrisk_cli.recommendations import generate_recommendations
from cyberrisk_cli.repository import Clock, RiskRepository, utc_now
from cyberrisk_cli.serialization import build_entry

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ERROR_DETAIL_LIMIT = 200


def generate_id(clock: Clock = utc_now) -> str:
    """``risk_<epoch millis>_<9 base36 chars>``; unique enough, not cryptographic."""
    millis = int(clock().timestamp() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"risk_{millis}_{suffix}"


class RiskService:
    def __init__(
        self,
        repository: RiskRepository,
        *,
        clock: Clock = utc_now,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.repository = repository
        self._clock = clock
        self._id_factory = id_factory or (lambda: generate_id(self._clock))

    def calculate(self, payload: Any) -> RiskCalculationResult:
        data = parse_calculation_input(payload)
        result_id = data.id or self._id_factory()
        try:
            return self._run_engine(data, result_id)
        except CyberRiskError:
            raise
        except Exception as exc:
            detail = str(exc)[:_ERROR_DETAIL_LIMIT] or type(exc).__name__
            raise ComputationError(f"Risk calculation failed: {detail}") from exc

    def create_risk(self, payload: Any) -> RiskRegisterEntry:
        fields = parse_register_payload(payload)
        entry = build_entry(self._id_factory(), fields, created_at=self._clock())
        return self.repository.add(entry)

    def get_risk(self, risk_id: str) -> RiskRegisterEntry:
        entry = self.repository.find(risk_id)
        if entry is None:
            raise NotFoundError(f"Risk not found: {risk_id}")
        return entry

    def update_risk(self, risk_id: str, payload: Any) -> RiskRegisterEntry:
        changes = parse_register_changes(payload)
        entry = self.repository.update(risk_id, changes)
        if entry is None:
            raise NotFoundError(f"Risk not found: {risk_id}")
        return entry

    def delete_risk(self, risk_id: str) -> RiskRegisterEntry:
        entry = self.repository.delete(risk_id)
        if entry is None:
            raise NotFoundError(f"Risk not found: {risk_id}")
        return entry

    def list_risks(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[RiskRegisterEntry]:
        entries = self.repository.list_all()
        if search:
            needle = search.lower()
            entries = [
                e for e in entries
                if needle in e.name.lower()
                or needle in e.description.lower()
                or needle in e.asset_name.lower()
            ]
        if status:
            wanted = parse_status(status)
            entries = [e for e in entries if e.status == wanted]
        if category:
            entries = [e for e in entries if e.category == category]
        return _by_residual_score(entries)

    def export(self, options: ExportOptions) -> ExportDocument:
        entries = self.repository.list_all()
        if options.date_range is not None:
            entries = [e for e in entries if options.date_range.contains(e.created_at)]
        return render_export(_by_residual_score(entries), options, self._clock())

    def _run_engine(self, data: RiskCalculationInput, result_id: str) -> RiskCalculationResult:
        qualitative = None
        quantitative = None
        if data.method == CalculationMethod.QUALITATIVE and data.qualitative_data is not None:
            qualitative = calculate_qualitative(data.qualitative_data, data.impact_assessment)
        if data.method == CalculationMethod.QUANTITATIVE and data.quantitative_data is not None:
            quantitative = calculate_quantitative(data.quantitative_data)

        return RiskCalculationResult(
            id=result_id,
            input=replace(data, id=result_id),
            qualitative_result=qualitative,
            quantitative_result=quantitative,
            recommended_actions=generate_recommendations(qualitative, quantitative, data.method),
            calculated_at=self._clock(),
            risk_trend=RiskTrend.STABLE,
        )


def _by_residual_score(entries: List[RiskRegisterEntry]) -> List[RiskRegisterEntry]:
    return sorted(entries, key=lambda e: e.residual_risk_score, reverse=True)
