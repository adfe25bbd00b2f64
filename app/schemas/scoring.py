from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TierKey(str, Enum):
    BASIC_STRUCTURE = "basic_structure"
    CONTENT_STRUCTURE = "content_structure"
    EXPERIENCE = "experience"
    EDUCATION = "education"
    CERTIFICATIONS = "certifications"
    SKILLS_KEYWORDS = "skills_keywords"
    PROJECTS = "projects"
    RED_FLAGS = "red_flags"
    COMPETITIVE = "competitive"
    CULTURE_FIT = "culture_fit"
    QUALITATIVE = "qualitative"


TIER_NAMES: dict[TierKey, str] = {
    TierKey.BASIC_STRUCTURE: "Basic Structure",
    TierKey.CONTENT_STRUCTURE: "Content Structure",
    TierKey.EXPERIENCE: "Experience",
    TierKey.EDUCATION: "Education",
    TierKey.CERTIFICATIONS: "Certifications",
    TierKey.SKILLS_KEYWORDS: "Skills & Keywords",
    TierKey.PROJECTS: "Projects",
    TierKey.RED_FLAGS: "Red Flags",
    TierKey.COMPETITIVE: "Competitive Signals",
    TierKey.CULTURE_FIT: "Culture Fit",
    TierKey.QUALITATIVE: "Qualitative",
}


def tier_number(key: TierKey) -> int:
    return list(TierKey).index(key) + 1


class CriticalMetricKey(str, Enum):
    JD_KEYWORDS_MATCH = "jd_keywords_match"
    TECHNICAL_SKILLS_ALIGNMENT = "technical_skills_alignment"
    QUANTIFIED_RESULTS_PRESENCE = "quantified_results_presence"
    JOB_TITLE_RELEVANCE = "job_title_relevance"
    EXPERIENCE_RELEVANCE = "experience_relevance"


CRITICAL_METRIC_NAMES: dict[CriticalMetricKey, str] = {
    CriticalMetricKey.JD_KEYWORDS_MATCH: "JD Keywords Match",
    CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT: "Technical Skills Alignment",
    CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE: "Quantified Results",
    CriticalMetricKey.JOB_TITLE_RELEVANCE: "Job Title Relevance",
    CriticalMetricKey.EXPERIENCE_RELEVANCE: "Experience Relevance",
}


class ParameterKey(str, Enum):
    KEYWORD_MATCH = "keyword_match"
    SKILLS_ALIGNMENT = "skills_alignment"
    EXPERIENCE_RELEVANCE = "experience_relevance"
    TECHNICAL_COMPETENCIES = "technical_competencies"
    EDUCATION_SCORE = "education_score"
    QUANTIFIED_ACHIEVEMENTS = "quantified_achievements"
    EMPLOYMENT_HISTORY = "employment_history"
    INDUSTRY_EXPERIENCE = "industry_experience"
    JOB_TITLE_MATCH = "job_title_match"
    CAREER_PROGRESSION = "career_progression"
    CERTIFICATIONS = "certifications"
    FORMATTING = "formatting"
    CONTENT_QUALITY = "content_quality"
    GRAMMAR = "grammar"
    RESUME_LENGTH = "resume_length"
    FILENAME_QUALITY = "filename_quality"


class MetricStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class ConfidenceLevel(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class KeywordTier(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    NICE_TO_HAVE = "nice_to_have"


class RedFlagCategory(str, Enum):
    EMPLOYMENT = "employment"
    SKILLS = "skills"
    FORMATTING = "formatting"


class RedFlagSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RedFlagKind(str, Enum):
    EMPLOYMENT_GAP = "employment_gap"
    JOB_HOPPING = "job_hopping"
    TITLE_INFLATION = "title_inflation"
    CONFLICTING_DATES = "conflicting_dates"
    KEYWORD_STUFFING = "keyword_stuffing"
    UNSUBSTANTIATED_CLAIMS = "unsubstantiated_claims"
    GENERIC_LANGUAGE = "generic_language"
    OUTDATED_TECHNOLOGY = "outdated_technology"
    GRAMMAR_ERRORS = "grammar_errors"
    INCONSISTENT_FORMATTING = "inconsistent_formatting"


class MetricCheck(BaseModel):
    name: str
    score: float
    max_score: float
    passed: bool
    details: str = ""


class TierScore(BaseModel):
    tier: TierKey
    tier_number: int
    tier_name: str
    score: float
    max_score: float
    percentage: float = Field(ge=0.0, le=100.0)
    weight: int = Field(ge=0, le=100)
    weighted_contribution: float
    metrics_passed: int
    metrics_total: int
    top_issues: list[str] = Field(default_factory=list)


class CriticalMetric(BaseModel):
    key: CriticalMetricKey
    name: str
    score: float
    max_score: float
    percentage: float = Field(ge=0.0, le=100.0)
    status: MetricStatus
    details: str = ""


class RedFlag(BaseModel):
    kind: RedFlagKind
    category: RedFlagCategory
    name: str
    severity: RedFlagSeverity
    penalty: int
    description: str
    recommendation: str


class MissingKeyword(BaseModel):
    keyword: str
    tier: KeywordTier
    impact: int
    suggested_placement: str


class MissingKeywordBuckets(BaseModel):
    critical: list[str] = Field(default_factory=list)
    important: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)


class ComprehensiveScore(BaseModel):
    overall: int = Field(ge=0, le=100)
    match_band: str
    interview_probability_range: str
    confidence: ConfidenceLevel
    is_jd_mode: bool
    is_fresher: bool
    tier_scores: dict[TierKey, TierScore]
    critical_metrics: dict[CriticalMetricKey, CriticalMetric]
    red_flags: list[RedFlag] = Field(default_factory=list)
    red_flag_penalty: int = 0
    auto_reject_risk: bool = False
    missing_keywords: list[MissingKeyword] = Field(default_factory=list)
    keyword_match_rate: int = 0
    requirement_coverage: float | None = None


class ParameterScore(BaseModel):
    key: ParameterKey
    score: int
    max_score: int

    @property
    def percentage(self) -> float:
        return round(self.score / self.max_score * 100, 2) if self.max_score else 0.0


class ATSScore(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    match_quality: str
    interview_chance: str
    confidence: ConfidenceLevel
    is_jd_mode: bool
    parameters: list[ParameterScore]
    missing_keywords: MissingKeywordBuckets = Field(default_factory=MissingKeywordBuckets)
    summary: str = ""
    strengths: list[str] = Field(default_factory=list)
    areas_to_improve: list[str] = Field(default_factory=list)
    comprehensive: ComprehensiveScore

    def parameter(self, key: ParameterKey) -> ParameterScore:
        for row in self.parameters:
            if row.key == key:
                return row
        raise KeyError(key)


class ScoreHistoryEntry(BaseModel):
    timestamp: datetime
    step: int | None = None
    overall: int
    match_band: str
    is_jd_mode: bool
