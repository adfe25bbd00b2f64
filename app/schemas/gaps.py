from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from .scoring import ComprehensiveScore, CriticalMetricKey, MissingKeyword, RedFlag, TierKey


class GapPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class FailingMetric(BaseModel):
    metric_id: int
    metric_name: str
    current_value: str = "Below threshold"
    expected_value: str = "Pass"
    impact: float
    recommendation: str


class TierGap(BaseModel):
    tier: TierKey
    tier_number: int
    tier_name: str
    current_score: float
    max_score: float
    percentage: float
    weight: int
    failing_metrics: list[FailingMetric] = Field(default_factory=list)

    @property
    def shortfall(self) -> float:
        return round(self.max_score - self.current_score, 2)


class Big5Gap(BaseModel):
    metric: CriticalMetricKey
    metric_name: str
    current_score: float
    max_score: float
    gap: float
    percentage: float
    priority: GapPriority
    improvements: list[str] = Field(default_factory=list)


class PrioritizedImprovement(BaseModel):
    priority: int
    tier: int
    tier_name: str
    metric_name: str
    impact: float
    recommendation: str
    is_big5: bool


class GapAnalysisResult(BaseModel):
    before_score: ComprehensiveScore
    tier_gaps: list[TierGap] = Field(default_factory=list)
    big5_gaps: list[Big5Gap] = Field(default_factory=list)
    prioritized_improvements: list[PrioritizedImprovement] = Field(default_factory=list)
    red_flags: list[RedFlag] = Field(default_factory=list)
    missing_keywords: list[MissingKeyword] = Field(default_factory=list)
