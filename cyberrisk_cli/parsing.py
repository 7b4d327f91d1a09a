"""Turn camelCase request payloads into model objects.

Payloads follow the wire format of the risk register API. Anything missing or
malformed raises ValidationError with a message fit for the end user.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from cyberrisk_cli.exceptions import ValidationError
from cyberrisk_cli.models.register import DateRange, ExportFormat, RiskStatus
from cyberrisk_cli.models.risks import (
    CalculationMethod,
    ImpactAssessment,
    QualitativeInput,
    QuantitativeInput,
    RiskCalculationInput,
    RiskLevel,
)

_Range = Tuple[Optional[float], Optional[float]]

_SCALE_1_5: _Range = (1, 5)
_PERCENT: _Range = (0, 100)
_NON_NEGATIVE: _Range = (0, None)

_QUALITATIVE_FIELDS: Dict[str, Tuple[str, _Range]] = {
    "likelihood": ("likelihood", _SCALE_1_5),
    "impact": ("impact", _SCALE_1_5),
    "vulnerability_severity": ("vulnerabilitySeverity", (1, 10)),
    "control_effectiveness": ("controlEffectiveness", _PERCENT),
    "detection_capability": ("detectionCapability", _SCALE_1_5),
    "response_capability": ("responseCapability", _SCALE_1_5),
}

_QUANTITATIVE_FIELDS: Dict[str, Tuple[str, _Range]] = {
    "asset_value": ("assetValue", _NON_NEGATIVE),
    "exposure_factor": ("exposureFactor", (0, 1)),
    "annual_rate_of_occurrence": ("annualRateOfOccurrence", _NON_NEGATIVE),
    "control_effectiveness": ("controlEffectiveness", _PERCENT),
    "detection_capability": ("detectionCapability", _SCALE_1_5),
    "response_capability": ("responseCapability", _SCALE_1_5),
}

_IMPACT_FIELDS = ("confidentiality", "integrity", "availability")

# camelCase wire name -> snake_case attribute on RiskRegisterEntry
REGISTER_FIELDS: Dict[str, str] = {
    "name": "name",
    "description": "description",
    "assetName": "asset_name",
    "category": "category",
    "inherentRiskLevel": "inherent_risk_level",
    "residualRiskLevel": "residual_risk_level",
    "inherentRiskScore": "inherent_risk_score",
    "residualRiskScore": "residual_risk_score",
    "probability": "probability",
    "impact": "impact",
    "owner": "owner",
    "status": "status",
    "treatmentPlan": "treatment_plan",
    "controls": "controls",
    "reviewDate": "review_date",
}

_REGISTER_REQUIRED = ("name", "assetName", "category")
_REGISTER_NUMBERS = ("inherentRiskScore", "residualRiskScore", "probability", "impact")
_REGISTER_LEVELS = ("inherentRiskLevel", "residualRiskLevel")


def parse_calculation_input(payload: Any) -> RiskCalculationInput:
    if not isinstance(payload, Mapping):
        raise ValidationError("Calculation input must be an object.")

    name = _as_text(payload.get("name"))
    method_raw = payload.get("method")
    impact_raw = payload.get("impactAssessment")
    if not name.strip() or not method_raw or not impact_raw:
        raise ValidationError(
            "Missing required fields: name, method and impactAssessment are mandatory."
        )

    method = _parse_method(method_raw)
    impact = parse_impact_assessment(impact_raw)

    qualitative: Optional[QualitativeInput] = None
    quantitative: Optional[QuantitativeInput] = None
    if method == CalculationMethod.QUALITATIVE:
        raw = payload.get("qualitativeData")
        if not raw:
            raise ValidationError("qualitativeData is required for the qualitative method.")
        qualitative = QualitativeInput(**_parse_numbers(raw, _QUALITATIVE_FIELDS, "qualitativeData"))
    else:
        raw = payload.get("quantitativeData")
        if not raw:
            raise ValidationError("quantitativeData is required for the quantitative method.")
        quantitative = QuantitativeInput(**_parse_numbers(raw, _QUANTITATIVE_FIELDS, "quantitativeData"))

    return RiskCalculationInput(
        id=_as_text(payload.get("id")) or None,
        name=name,
        description=_as_text(payload.get("description")),
        asset_name=_as_text(payload.get("assetName")),
        threat_description=_as_text(payload.get("threatDescription")),
        vulnerability_description=_as_text(payload.get("vulnerabilityDescription")),
        method=method,
        qualitative_data=qualitative,
        quantitative_data=quantitative,
        impact_assessment=impact,
        existing_controls=_as_text_list(payload.get("existingControls"), "existingControls"),
        proposed_controls=_as_text_list(payload.get("proposedControls"), "proposedControls"),
    )


def parse_impact_assessment(raw: Any) -> ImpactAssessment:
    if not isinstance(raw, Mapping):
        raise ValidationError("impactAssessment must be an object.")
    values = {}
    for key in _IMPACT_FIELDS:
        number = _as_number(raw.get(key), f"impactAssessment.{key}", _SCALE_1_5)
        if number != int(number):
            raise ValidationError(f"impactAssessment.{key} must be a whole number.")
        values[key] = int(number)
    return ImpactAssessment(**values)


def parse_register_payload(payload: Any) -> Dict[str, Any]:
    """Validate a create request and return snake_case entry fields."""
    if not isinstance(payload, Mapping):
        raise ValidationError("Risk data must be an object.")
    missing = [key for key in _REGISTER_REQUIRED if not _as_text(payload.get(key)).strip()]
    if missing:
        raise ValidationError(
            "Missing required fields: name, assetName and category are mandatory."
        )
    return parse_register_changes(payload)


def parse_register_changes(payload: Any) -> Dict[str, Any]:
    """Validate a partial update and return snake_case entry fields.

    Keys outside the register schema, including id and the audit timestamps,
    are dropped.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Risk data must be an object.")

    changes: Dict[str, Any] = {}
    for wire_name, attr in REGISTER_FIELDS.items():
        if wire_name not in payload:
            continue
        value = payload[wire_name]
        if wire_name in _REGISTER_NUMBERS:
            changes[attr] = _as_number(value, wire_name, (None, None))
        elif wire_name in _REGISTER_LEVELS:
            changes[attr] = parse_level(value, wire_name)
        elif wire_name == "status":
            changes[attr] = parse_status(value)
        elif wire_name == "controls":
            changes[attr] = _as_text_list(value, wire_name)
        elif wire_name == "reviewDate":
            changes[attr] = parse_datetime(value, wire_name)
        else:
            changes[attr] = _as_text(value)
    return changes


def parse_level(value: Any, field_name: str = "level") -> RiskLevel:
    try:
        return RiskLevel(value)
    except ValueError:
        pass
    if isinstance(value, str):
        by_name = value.strip().upper().replace("-", "_").replace(" ", "_")
        if by_name in RiskLevel.__members__:
            return RiskLevel[by_name]
    choices = ", ".join(level.value for level in RiskLevel)
    raise ValidationError(f"Invalid {field_name} '{value}'. Expected one of: {choices}.")


def parse_status(value: Any) -> RiskStatus:
    try:
        return RiskStatus(value)
    except ValueError as exc:
        choices = ", ".join(status.value for status in RiskStatus)
        raise ValidationError(f"Invalid status '{value}'. Expected one of: {choices}.") from exc


def parse_export_format(value: Any) -> ExportFormat:
    try:
        return ExportFormat(value)
    except ValueError as exc:
        raise ValidationError('Invalid export format. Use "csv" or "json".') from exc


def parse_datetime(value: Any, field_name: str = "date") -> datetime:
    """Accept datetimes, dates and ISO 8601 strings; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid {field_name} '{value}'. Use ISO 8601 dates.") from exc
    else:
        raise ValidationError(f"Invalid {field_name} '{value}'. Use ISO 8601 dates.")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date_range(start: Any, end: Any) -> Optional[DateRange]:
    """Build an inclusive range; a date-only end covers that whole day."""
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValidationError("A date range needs both a start and an end date.")

    range_start = parse_datetime(start, "start date")
    range_end = parse_datetime(end, "end date")
    if _is_date_only(end):
        # a bare end date parses as midnight UTC, which would drop entries
        # created later that day; widen it to the last instant of the day
        range_end = range_end.replace(hour=23, minute=59, second=59, microsecond=999999)
    if range_end < range_start:
        raise ValidationError("The end date must not be before the start date.")
    return DateRange(start=range_start, end=range_end)


def _is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return isinstance(value, str) and len(value.strip()) == 10


def _parse_method(value: Any) -> CalculationMethod:
    try:
        return CalculationMethod(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown method '{value}'. Use 'qualitative' or 'quantitative'."
        ) from exc


def _parse_numbers(
    raw: Any,
    fields: Dict[str, Tuple[str, _Range]],
    section: str,
) -> Dict[str, float]:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"{section} must be an object.")
    return {
        attr: _as_number(raw.get(wire_name), f"{section}.{wire_name}", bounds)
        for attr, (wire_name, bounds) in fields.items()
    }


def _as_number(value: Any, field_name: str, bounds: _Range) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number.")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"{field_name} must be a finite number.")
    low, high = bounds
    if low is not None and value < low:
        raise ValidationError(f"{field_name} must be at least {low}.")
    if high is not None and value > high:
        raise ValidationError(f"{field_name} must be at most {high}.")
    return value


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_text_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be a list of strings.")
    return [str(item) for item in value]
