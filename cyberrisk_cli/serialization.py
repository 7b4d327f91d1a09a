from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from cyberrisk_cli.calculator import classify
from cyberrisk_cli.exceptions import ValidationError
from cyberrisk_cli.models.register import RiskRegisterEntry, RiskStatus
from cyberrisk_cli.models.risks import (
    ImpactAssessment,
    MatrixCoordinate,
    MatrixPosition,
    QualitativeInput,
    QualitativeResult,
    QuantitativeInput,
    QuantitativeResult,
    RiskCalculationInput,
    RiskCalculationResult,
    RiskLevel,
    RiskTrend,
)
from cyberrisk_cli.parsing import (
    REGISTER_FIELDS,
    parse_calculation_input,
    parse_datetime,
    parse_level,
    parse_register_changes,
)

REVIEW_INTERVAL = timedelta(days=90)


def format_datetime(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def format_date(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d")


def entry_to_dict(entry: RiskRegisterEntry) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": entry.id}
    for wire_name, attr in REGISTER_FIELDS.items():
        value = getattr(entry, attr)
        if isinstance(value, datetime):
            value = format_datetime(value)
        elif attr in ("inherent_risk_level", "residual_risk_level", "status"):
            value = value.value
        elif attr == "controls":
            value = list(value)
        data[wire_name] = value
    data["createdAt"] = format_datetime(entry.created_at)
    data["updatedAt"] = format_datetime(entry.updated_at)
    return data


def changes_to_dict(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Inverse of parse_register_changes."""
    attr_to_wire = {attr: wire_name for wire_name, attr in REGISTER_FIELDS.items()}
    data: Dict[str, Any] = {}
    for attr, value in changes.items():
        if attr not in attr_to_wire:
            continue
        if isinstance(value, datetime):
            value = format_datetime(value)
        elif isinstance(value, (RiskLevel, RiskStatus)):
            value = value.value
        data[attr_to_wire[attr]] = value
    return data


def build_entry(
    entry_id: str,
    fields: Mapping[str, Any],
    created_at: datetime,
    updated_at: Optional[datetime] = None,
) -> RiskRegisterEntry:
    """Create an entry from snake_case *fields*, filling in register defaults.

    Missing levels are classified from the matching score and the review date
    defaults to one quarter after creation.
    """
    inherent_score = fields.get("inherent_risk_score", 0)
    residual_score = fields.get("residual_risk_score", 0)
    return RiskRegisterEntry(
        id=entry_id,
        name=fields.get("name", ""),
        description=fields.get("description", ""),
        asset_name=fields.get("asset_name", ""),
        category=fields.get("category", ""),
        inherent_risk_level=fields.get("inherent_risk_level") or classify(inherent_score),
        residual_risk_level=fields.get("residual_risk_level") or classify(residual_score),
        inherent_risk_score=inherent_score,
        residual_risk_score=residual_score,
        probability=fields.get("probability", 0),
        impact=fields.get("impact", 0),
        owner=fields.get("owner", ""),
        status=fields.get("status", RiskStatus.OPEN),
        treatment_plan=fields.get("treatment_plan", ""),
        controls=list(fields.get("controls", [])),
        review_date=fields.get("review_date") or created_at + REVIEW_INTERVAL,
        created_at=created_at,
        updated_at=updated_at or created_at,
    )


def entry_from_dict(data: Any) -> RiskRegisterEntry:
    if not isinstance(data, Mapping) or not data.get("id"):
        raise ValidationError("Stored risk record is missing its id.")
    created_at = parse_datetime(data.get("createdAt"), "createdAt")
    updated_raw = data.get("updatedAt")
    updated_at = parse_datetime(updated_raw, "updatedAt") if updated_raw else created_at
    return build_entry(str(data["id"]), parse_register_changes(data), created_at, updated_at)


def calculation_input_to_dict(value: RiskCalculationInput) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": value.id,
        "name": value.name,
        "description": value.description,
        "assetName": value.asset_name,
        "threatDescription": value.threat_description,
        "vulnerabilityDescription": value.vulnerability_description,
        "method": value.method.value,
        "impactAssessment": _impact_to_dict(value.impact_assessment),
        "existingControls": list(value.existing_controls),
        "proposedControls": list(value.proposed_controls),
    }
    if value.qualitative_data is not None:
        data["qualitativeData"] = _qualitative_input_to_dict(value.qualitative_data)
    if value.quantitative_data is not None:
        data["quantitativeData"] = _quantitative_input_to_dict(value.quantitative_data)
    return data


def calculation_result_to_dict(result: RiskCalculationResult) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": result.id,
        "input": calculation_input_to_dict(result.input),
    }
    if result.qualitative_result is not None:
        data["qualitativeResult"] = qualitative_result_to_dict(result.qualitative_result)
    if result.quantitative_result is not None:
        data["quantitativeResult"] = quantitative_result_to_dict(result.quantitative_result)
    data["recommendedActions"] = list(result.recommended_actions)
    data["calculatedAt"] = format_datetime(result.calculated_at)
    data["riskTrend"] = result.risk_trend.value
    return data


def calculation_result_from_dict(data: Any) -> RiskCalculationResult:
    if not isinstance(data, Mapping):
        raise ValidationError("Calculation result must be an object.")
    qualitative_raw = data.get("qualitativeResult")
    quantitative_raw = data.get("quantitativeResult")
    return RiskCalculationResult(
        id=str(data.get("id", "")),
        input=parse_calculation_input(data.get("input")),
        qualitative_result=_qualitative_result_from_dict(qualitative_raw) if qualitative_raw else None,
        quantitative_result=(
            QuantitativeResult(**{
                attr: quantitative_raw[wire_name]
                for attr, wire_name in _QUANTITATIVE_RESULT_FIELDS.items()
            })
            if quantitative_raw else None
        ),
        recommended_actions=[str(item) for item in data.get("recommendedActions", [])],
        calculated_at=parse_datetime(data.get("calculatedAt"), "calculatedAt"),
        risk_trend=RiskTrend(data.get("riskTrend", RiskTrend.STABLE.value)),
    )


def qualitative_result_to_dict(result: QualitativeResult) -> Dict[str, Any]:
    position = result.matrix_position
    return {
        "inherentRiskScore": result.inherent_risk_score,
        "residualRiskScore": result.residual_risk_score,
        "inherentRiskLevel": result.inherent_risk_level.value,
        "residualRiskLevel": result.residual_risk_level.value,
        "riskReduction": result.risk_reduction,
        "matrixPosition": {
            "inherent": _coordinate_to_dict(position.inherent),
            "residual": _coordinate_to_dict(position.residual),
        },
    }


_QUANTITATIVE_RESULT_FIELDS = {
    "single_loss_expectancy": "singleLossExpectancy",
    "annual_loss_expectancy": "annualLossExpectancy",
    "inherent_ale": "inherentALE",
    "residual_ale": "residualALE",
    "cost_avoidance": "costAvoidance",
    "return_on_security_investment": "returnOnSecurityInvestment",
}


def quantitative_result_to_dict(result: QuantitativeResult) -> Dict[str, Any]:
    return {
        wire_name: getattr(result, attr)
        for attr, wire_name in _QUANTITATIVE_RESULT_FIELDS.items()
    }


def _qualitative_result_from_dict(data: Mapping[str, Any]) -> QualitativeResult:
    position = data.get("matrixPosition", {})
    return QualitativeResult(
        inherent_risk_score=data["inherentRiskScore"],
        residual_risk_score=data["residualRiskScore"],
        inherent_risk_level=parse_level(data["inherentRiskLevel"], "inherentRiskLevel"),
        residual_risk_level=parse_level(data["residualRiskLevel"], "residualRiskLevel"),
        risk_reduction=data["riskReduction"],
        matrix_position=MatrixPosition(
            inherent=_coordinate_from_dict(position.get("inherent", {})),
            residual=_coordinate_from_dict(position.get("residual", {})),
        ),
    )


def _coordinate_to_dict(coordinate: MatrixCoordinate) -> Dict[str, int]:
    return {"likelihood": coordinate.likelihood, "impact": coordinate.impact}


def _coordinate_from_dict(data: Mapping[str, Any]) -> MatrixCoordinate:
    return MatrixCoordinate(
        likelihood=int(data.get("likelihood", 0)),
        impact=int(data.get("impact", 0)),
    )


def _impact_to_dict(impact: ImpactAssessment) -> Dict[str, int]:
    return {
        "confidentiality": impact.confidentiality,
        "integrity": impact.integrity,
        "availability": impact.availability,
    }


def _qualitative_input_to_dict(data: QualitativeInput) -> Dict[str, float]:
    return {
        "likelihood": data.likelihood,
        "impact": data.impact,
        "vulnerabilitySeverity": data.vulnerability_severity,
        "controlEffectiveness": data.control_effectiveness,
        "detectionCapability": data.detection_capability,
        "responseCapability": data.response_capability,
    }


def _quantitative_input_to_dict(data: QuantitativeInput) -> Dict[str, float]:
    return {
        "assetValue": data.asset_value,
        "exposureFactor": data.exposure_factor,
        "annualRateOfOccurrence": data.annual_rate_of_occurrence,
        "controlEffectiveness": data.control_effectiveness,
        "detectionCapability": data.detection_capability,
        "responseCapability": data.response_capability,
    }
