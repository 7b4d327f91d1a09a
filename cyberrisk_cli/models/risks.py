from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class RiskLevel(str, Enum):
    VERY_LOW = "Muy Bajo"
    LOW = "Bajo"
    MEDIUM = "Medio"
    HIGH = "Alto"
    CRITICAL = "Crítico"

    @property
    def rank(self) -> int:
        """1 for VERY_LOW up to 5 for CRITICAL."""
        return _LEVEL_ORDER.index(self) + 1

    # str would otherwise compare the labels alphabetically
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_ORDER = [
    RiskLevel.VERY_LOW,
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
]


class CalculationMethod(str, Enum):
    QUALITATIVE = "qualitative"
    QUANTITATIVE = "quantitative"


class RiskTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass(frozen=True)
class ImpactAssessment:
    confidentiality: int
    integrity: int
    availability: int

    @property
    def overall(self) -> int:
        # worst dimension wins
        return max(self.confidentiality, self.integrity, self.availability)


@dataclass(frozen=True)
class QualitativeInput:
    likelihood: float
    impact: float
    vulnerability_severity: float  # CVSS-like, 1-10
    control_effectiveness: float  # percent
    detection_capability: float
    response_capability: float


@dataclass(frozen=True)
class QuantitativeInput:
    asset_value: float
    exposure_factor: float  # fraction of asset value lost per event
    annual_rate_of_occurrence: float
    control_effectiveness: float
    detection_capability: float
    response_capability: float


@dataclass(frozen=True)
class MatrixCoordinate:
    likelihood: int
    impact: int


@dataclass(frozen=True)
class MatrixPosition:
    inherent: MatrixCoordinate
    residual: MatrixCoordinate


@dataclass(frozen=True)
class QualitativeResult:
    inherent_risk_score: float
    residual_risk_score: float
    inherent_risk_level: RiskLevel
    residual_risk_level: RiskLevel
    risk_reduction: float
    matrix_position: MatrixPosition


@dataclass(frozen=True)
class QuantitativeResult:
    single_loss_expectancy: float
    annual_loss_expectancy: float
    inherent_ale: float
    residual_ale: float
    cost_avoidance: float
    return_on_security_investment: float


@dataclass(frozen=True)
class RiskCalculationInput:
    name: str
    method: CalculationMethod
    impact_assessment: ImpactAssessment
    description: str = ""
    asset_name: str = ""
    threat_description: str = ""
    vulnerability_description: str = ""
    qualitative_data: Optional[QualitativeInput] = None
    quantitative_data: Optional[QuantitativeInput] = None
    existing_controls: List[str] = field(default_factory=list)
    proposed_controls: List[str] = field(default_factory=list)
    id: Optional[str] = None


@dataclass(frozen=True)
class RiskCalculationResult:
    id: str
    input: RiskCalculationInput
    recommended_actions: List[str]
    calculated_at: datetime
    qualitative_result: Optional[QualitativeResult] = None
    quantitative_result: Optional[QuantitativeResult] = None
    risk_trend: RiskTrend = RiskTrend.STABLE


@dataclass(frozen=True)
class MatrixCell:
    likelihood: int
    impact: int
    score: int
    level: RiskLevel
    color: str
    is_inherent: bool = False
    is_residual: bool = False
