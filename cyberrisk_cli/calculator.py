"""Risk scoring engine.

Every function here is pure: no I/O, no shared state, safe to call from any
number of callers at once.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from cyberrisk_cli.models.risks import (
    ImpactAssessment,
    MatrixCell,
    MatrixCoordinate,
    MatrixPosition,
    QualitativeInput,
    QualitativeResult,
    QuantitativeInput,
    QuantitativeResult,
    RiskLevel,
)

MATRIX_SIZE = 5
MAX_LIKELIHOOD = 5
CAPABILITY_BONUS = 5  # percentage points per capability step above 1
CONTROL_COST_RATIO = 0.1  # estimated control cost as a share of avoided loss

_LEVEL_BOUNDS = (
    (5, RiskLevel.VERY_LOW),
    (10, RiskLevel.LOW),
    (15, RiskLevel.MEDIUM),
    (20, RiskLevel.HIGH),
)

_LEVEL_COLORS: Dict[RiskLevel, str] = {
    RiskLevel.VERY_LOW: "#22c55e",
    RiskLevel.LOW: "#84cc16",
    RiskLevel.MEDIUM: "#eab308",
    RiskLevel.HIGH: "#f97316",
    RiskLevel.CRITICAL: "#ef4444",
}


def classify(score: float) -> RiskLevel:
    for upper, level in _LEVEL_BOUNDS:
        if score <= upper:
            return level
    return RiskLevel.CRITICAL


def risk_color(level: RiskLevel) -> str:
    return _LEVEL_COLORS[level]


def apply_effectiveness(base_score: float, effectiveness_percent: float) -> float:
    """Reduce *base_score* by *effectiveness_percent*.

    The percentage is not clamped. Callers pass values in [0, 100]; a
    negative percentage increases the score.
    """
    reduction_factor = effectiveness_percent / 100
    return base_score * (1 - reduction_factor)


def enhanced_effectiveness(
    control_effectiveness: float,
    detection_capability: float,
    response_capability: float,
) -> float:
    """Blend raw control effectiveness with detection/response bonuses, capped at 100."""
    return min(
        100,
        control_effectiveness
        + (detection_capability - 1) * CAPABILITY_BONUS
        + (response_capability - 1) * CAPABILITY_BONUS,
    )


def calculate_qualitative(
    data: QualitativeInput,
    impact_assessment: ImpactAssessment,
) -> QualitativeResult:
    """Likelihood x impact scoring before and after controls.

    Both the adjusted likelihood and the overall impact must be at least 1;
    a zero inherent score raises ZeroDivisionError.
    """
    overall_impact = max(data.impact, impact_assessment.overall)
    adjusted_likelihood = min(
        MAX_LIKELIHOOD,
        data.likelihood + (data.vulnerability_severity / 10) * 2,
    )
    inherent_score = adjusted_likelihood * overall_impact

    effectiveness = enhanced_effectiveness(
        data.control_effectiveness,
        data.detection_capability,
        data.response_capability,
    )
    residual_score = apply_effectiveness(inherent_score, effectiveness)

    risk_reduction = (inherent_score - residual_score) / inherent_score * 100

    # Controls only move the likelihood axis of the residual position.
    position = MatrixPosition(
        inherent=MatrixCoordinate(
            likelihood=_round_int(adjusted_likelihood),
            impact=_round_int(overall_impact),
        ),
        residual=MatrixCoordinate(
            likelihood=_round_int(adjusted_likelihood * (1 - effectiveness / 100)),
            impact=_round_int(overall_impact),
        ),
    )

    return QualitativeResult(
        inherent_risk_score=_round2(inherent_score),
        residual_risk_score=_round2(residual_score),
        inherent_risk_level=classify(inherent_score),
        residual_risk_level=classify(residual_score),
        risk_reduction=_round2(risk_reduction),
        matrix_position=position,
    )


def calculate_quantitative(data: QuantitativeInput) -> QuantitativeResult:
    """Annual loss expectancy before and after controls, plus ROSI."""
    single_loss = data.asset_value * data.exposure_factor
    inherent_ale = single_loss * data.annual_rate_of_occurrence

    effectiveness = enhanced_effectiveness(
        data.control_effectiveness,
        data.detection_capability,
        data.response_capability,
    )
    residual_ale = apply_effectiveness(inherent_ale, effectiveness)
    cost_avoidance = inherent_ale - residual_ale

    control_cost = cost_avoidance * CONTROL_COST_RATIO
    if control_cost > 0:
        rosi = (cost_avoidance - control_cost) / control_cost * 100
    else:
        rosi = 0.0

    return QuantitativeResult(
        single_loss_expectancy=_round2(single_loss),
        annual_loss_expectancy=_round2(inherent_ale),
        inherent_ale=_round2(inherent_ale),
        residual_ale=_round2(residual_ale),
        cost_avoidance=_round2(cost_avoidance),
        return_on_security_investment=_round2(rosi),
    )


def matrix_cell_score(likelihood: float, impact: float) -> int:
    return _clamp_axis(likelihood) * _clamp_axis(impact)


def matrix_cell_level(likelihood: float, impact: float) -> RiskLevel:
    return classify(matrix_cell_score(likelihood, impact))


def build_matrix(result: Optional[QualitativeResult] = None) -> List[List[MatrixCell]]:
    """Return the 5x5 grid, highest impact row first, marking *result*'s positions."""
    inherent = result.matrix_position.inherent if result else None
    residual = result.matrix_position.residual if result else None

    rows: List[List[MatrixCell]] = []
    for impact in range(MATRIX_SIZE, 0, -1):
        row: List[MatrixCell] = []
        for likelihood in range(1, MATRIX_SIZE + 1):
            coordinate = MatrixCoordinate(likelihood=likelihood, impact=impact)
            level = matrix_cell_level(likelihood, impact)
            row.append(MatrixCell(
                likelihood=likelihood,
                impact=impact,
                score=matrix_cell_score(likelihood, impact),
                level=level,
                color=risk_color(level),
                is_inherent=coordinate == inherent,
                is_residual=coordinate == residual,
            ))
        rows.append(row)
    return rows


def _clamp_axis(value: float) -> int:
    return max(1, min(MATRIX_SIZE, _round_int(value)))


def _round2(value: float) -> float:
    # half away from zero; str() avoids binary expansion artefacts
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _round_int(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
