from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class RequirementCategory(str, Enum):
    TECHNICAL = "technical"
    EXPERIENCE = "experience"
    SOFT_SKILL = "soft_skill"
    DOMAIN = "domain"
    GENERAL = "general"


class RequirementPriority(str, Enum):
    MUST_HAVE = "must_have"
    NICE_TO_HAVE = "nice_to_have"


class MatchType(str, Enum):
    NONE = "none"
    SEMANTIC = "semantic"
    LITERAL = "literal"
    HYBRID = "hybrid"


class JobRequirement(BaseModel):
    req_id: str
    text: str
    category: RequirementCategory
    keywords: list[str] = Field(default_factory=list)
    priority: RequirementPriority


class ResumeBullet(BaseModel):
    text: str
    section: str
    index: int


class RequirementMatch(BaseModel):
    requirement: JobRequirement
    best_bullet: ResumeBullet | None = None
    semantic_score: float = Field(default=0.0, ge=0.0, le=1.0)
    literal_score: float = Field(default=0.0, ge=0.0, le=1.0)
    hybrid_score: float = Field(default=0.0, ge=0.0, le=1.0)
    match_type: MatchType = MatchType.NONE
    matched_keywords: list[str] = Field(default_factory=list)

    @property
    def is_matched(self) -> bool:
        return self.match_type != MatchType.NONE


class MatchSummary(BaseModel):
    total_requirements: int = 0
    matched: int = 0
    by_type: dict[MatchType, int] = Field(default_factory=dict)
    must_have_total: int = 0
    must_have_matched: int = 0


class HybridMatchResult(BaseModel):
    matches: list[RequirementMatch] = Field(default_factory=list)
    overall_coverage: float = Field(default=0.0, ge=0.0, le=1.0)
    summary: MatchSummary = Field(default_factory=MatchSummary)
    unmatched_requirements: list[JobRequirement] = Field(default_factory=list)


class SkillGapReport(BaseModel):
    critical_gaps: list[str] = Field(default_factory=list)
    nice_to_have_gaps: list[str] = Field(default_factory=list)
    gap_percentage: float = 0.0
