from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from cyberrisk_cli.models.risks import RiskLevel


class RiskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    MITIGATED = "mitigated"
    ACCEPTED = "accepted"
    TRANSFERRED = "transferred"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


@dataclass
class RiskRegisterEntry:
    id: str
    name: str
    description: str
    asset_name: str
    category: str
    inherent_risk_level: RiskLevel
    residual_risk_level: RiskLevel
    inherent_risk_score: float
    residual_risk_score: float
    probability: float
    impact: float
    owner: str
    status: RiskStatus
    treatment_plan: str
    review_date: datetime
    created_at: datetime
    updated_at: datetime
    controls: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class ExportOptions:
    format: ExportFormat
    include_calculations: bool = True
    include_recommendations: bool = True
    date_range: Optional[DateRange] = None


@dataclass(frozen=True)
class ExportDocument:
    filename: str
    content_type: str
    content: str
    count: int
