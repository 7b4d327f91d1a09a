from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from cyberrisk_cli.models.risks import (
    CalculationMethod,
    QualitativeResult,
    QuantitativeResult,
    RiskLevel,
)

LIMITED_REDUCTION_THRESHOLD = 50.0
EXCELLENT_ROSI_THRESHOLD = 100.0
HIGH_SAVINGS_THRESHOLD = 100000.0

_RESIDUAL_LEVEL_ACTIONS: Dict[RiskLevel, Tuple[str, ...]] = {
    RiskLevel.CRITICAL: (
        "Implementar controles inmediatos - Riesgo crítico requiere acción urgente",
        "Escalar a la alta dirección para aprobación de recursos adicionales",
        "Considerar transferir el riesgo a través de seguros o terceros",
    ),
    RiskLevel.HIGH: (
        "Planificar implementación de controles adicionales en el corto plazo",
        "Aumentar la frecuencia de monitoreo y revisión",
        "Desarrollar un plan de respuesta a incidentes específico",
    ),
    RiskLevel.MEDIUM: (
        "Evaluar costo-beneficio de controles adicionales",
        "Mantener monitoreo regular del riesgo",
        "Documentar decisiones de aceptación de riesgo",
    ),
}

_LIMITED_REDUCTION_ACTIONS = (
    "Los controles actuales muestran efectividad limitada - revisar implementación",
    "Considerar controles alternativos o complementarios",
)

ROSI_EXCELLENT = "Excelente ROI en controles de seguridad - continuar inversión"
ROSI_POSITIVE = "ROI positivo - los controles son económicamente justificables"
ROSI_NEGATIVE = "ROI negativo - evaluar controles más costo-efectivos"
HIGH_SAVINGS = "Alto potencial de ahorro - priorizar implementación de controles"

GENERAL_ACTIONS = (
    "Programar revisión trimestral del riesgo y efectividad de controles",
    "Mantener documentación actualizada de todos los controles implementados",
)


def generate_recommendations(
    qualitative: Optional[QualitativeResult] = None,
    quantitative: Optional[QuantitativeResult] = None,
    method: CalculationMethod = CalculationMethod.QUALITATIVE,
) -> List[str]:
    """Build ordered guidance for a calculation result.

    Only the branch matching *method* contributes; the two general actions
    are always appended last.
    """
    recommendations: List[str] = []

    if method == CalculationMethod.QUALITATIVE and qualitative is not None:
        recommendations.extend(_RESIDUAL_LEVEL_ACTIONS.get(qualitative.residual_risk_level, ()))
        if qualitative.risk_reduction < LIMITED_REDUCTION_THRESHOLD:
            recommendations.extend(_LIMITED_REDUCTION_ACTIONS)

    if method == CalculationMethod.QUANTITATIVE and quantitative is not None:
        rosi = quantitative.return_on_security_investment
        if rosi > EXCELLENT_ROSI_THRESHOLD:
            recommendations.append(ROSI_EXCELLENT)
        elif rosi > 0:
            recommendations.append(ROSI_POSITIVE)
        else:
            recommendations.append(ROSI_NEGATIVE)

        if quantitative.cost_avoidance > HIGH_SAVINGS_THRESHOLD:
            recommendations.append(HIGH_SAVINGS)

    recommendations.extend(GENERAL_ACTIONS)
    return recommendations
