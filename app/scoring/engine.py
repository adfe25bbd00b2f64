from __future__ import annotations

import logging

from app.core.config.scoring import get_scoring_float, get_threshold_table
from app.schemas.resume import ResumeData
from app.schemas.scoring import (
    ATSScore,
    ComprehensiveScore,
    ConfidenceLevel,
    ParameterKey,
    ParameterScore,
    RedFlag,
    TierKey,
    TierScore,
)
from app.scoring import tiers
from app.scoring.context import ScoringContext, build_context
from app.scoring.critical import calculate_critical_metrics
from app.scoring.fresher import get_tier_weights
from app.scoring.keywords import bucket_missing_keywords, find_missing_keywords, keyword_match_rate
from app.scoring.parameters import derive_parameters
from app.scoring.red_flags import build_red_flag_tier, detect_red_flags, is_auto_reject_risk, total_penalty
from app.scoring.text import clamp, round_half_up
from app.semantic.embeddings import EmbeddingProvider
from app.semantic.hybrid_matcher import match_resume_to_job

logger = logging.getLogger(__name__)

_PARAMETER_LABELS: dict[ParameterKey, str] = {
    key: key.value.replace("_", " ").capitalize() for key in ParameterKey
}


def _lookup(path: str, score: float, field: str = "label") -> str:
    table = get_threshold_table(path)
    for row in table:
        if score >= float(row["min"]):
            return str(row.get(field, ""))
    return str(table[-1].get(field, "")) if table else ""


def get_match_quality(score: float) -> str:
    return _lookup("scoring.match_quality", score)


def get_interview_chance(score: float) -> str:
    return _lookup("scoring.interview_chance", score)


def get_match_band(score: float) -> tuple[str, str]:
    """Return the (band label, interview probability range) for an overall score."""
    return _lookup("scoring.match_bands", score), _lookup("scoring.match_bands", score, "probability")


def get_confidence(score: float) -> ConfidenceLevel:
    if score >= get_scoring_float("scoring.confidence.high", 75):
        return ConfidenceLevel.HIGH
    if score >= get_scoring_float("scoring.confidence.medium", 60):
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _requirement_coverage(
    ctx: ScoringContext,
    use_hybrid: bool,
    embedding_provider: EmbeddingProvider | None,
) -> float | None:
    if not ctx.is_jd_mode or not use_hybrid:
        return None
    result = match_resume_to_job(ctx.resume_text, ctx.job_description, embedding_provider)
    if result.summary.total_requirements == 0:
        return None
    return result.overall_coverage


def _tier_scores(ctx: ScoringContext, requirement_coverage: float | None, flags: list[RedFlag]) -> dict[TierKey, TierScore]:
    weights = get_tier_weights(ctx.is_fresher)
    experience_checks, experience_issues = tiers.analyze_experience(ctx)
    checks = {
        TierKey.BASIC_STRUCTURE: tiers.analyze_basic_structure(ctx),
        TierKey.CONTENT_STRUCTURE: tiers.analyze_content_structure(ctx),
        TierKey.EDUCATION: tiers.analyze_education(ctx),
        TierKey.CERTIFICATIONS: tiers.analyze_certifications(ctx),
        TierKey.SKILLS_KEYWORDS: tiers.analyze_skills_keywords(ctx, requirement_coverage),
        TierKey.PROJECTS: tiers.analyze_projects(ctx),
        TierKey.COMPETITIVE: tiers.analyze_competitive(ctx),
        TierKey.CULTURE_FIT: tiers.analyze_culture_fit(ctx),
        TierKey.QUALITATIVE: tiers.analyze_qualitative(ctx),
    }

    scores: dict[TierKey, TierScore] = {}
    for key in TierKey:
        if key == TierKey.RED_FLAGS:
            scores[key] = build_red_flag_tier(flags, weights[key])
        elif key == TierKey.EXPERIENCE:
            scores[key] = tiers.build_tier_score(
                key,
                experience_checks,
                weights[key],
                floor_pct=tiers.fresher_experience_floor() if ctx.is_fresher else None,
                leading_issues=experience_issues,
            )
        else:
            scores[key] = tiers.build_tier_score(key, checks[key], weights[key])
    return scores


def calculate_score_from_context(
    ctx: ScoringContext,
    *,
    use_hybrid: bool = True,
    embedding_provider: EmbeddingProvider | None = None,
) -> ComprehensiveScore:
    coverage = _requirement_coverage(ctx, use_hybrid, embedding_provider)
    flags = detect_red_flags(ctx)
    penalty = total_penalty(flags)
    tier_scores = _tier_scores(ctx, coverage, flags)

    weighted = sum(tier.weighted_contribution for tier in tier_scores.values())
    overall = round_half_up(clamp(weighted + penalty, 0, 100))
    band, probability = get_match_band(overall)

    logger.debug(
        "score_calculated overall=%s jd_mode=%s fresher=%s flags=%s",
        overall,
        ctx.is_jd_mode,
        ctx.is_fresher,
        len(flags),
    )
    return ComprehensiveScore(
        overall=overall,
        match_band=band,
        interview_probability_range=probability,
        confidence=get_confidence(overall),
        is_jd_mode=ctx.is_jd_mode,
        is_fresher=ctx.is_fresher,
        tier_scores=tier_scores,
        critical_metrics=calculate_critical_metrics(ctx),
        red_flags=flags,
        red_flag_penalty=penalty,
        auto_reject_risk=is_auto_reject_risk(flags),
        missing_keywords=find_missing_keywords(ctx.resume_text, ctx.jd_keywords) if ctx.is_jd_mode else [],
        keyword_match_rate=keyword_match_rate(ctx.resume_text, ctx.jd_keywords) if ctx.is_jd_mode else 0,
        requirement_coverage=coverage,
    )


def calculate_score(
    resume_text: str | None,
    resume: ResumeData | None = None,
    job_description: str | None = None,
    *,
    filename: str | None = None,
    user_type: str | None = None,
    use_hybrid: bool = True,
    embedding_provider: EmbeddingProvider | None = None,
) -> ComprehensiveScore:
    """Score a resume across all tiers and critical metrics.

    `use_hybrid=False` skips requirement matching; it is the simplified analysis
    the pipeline falls back to when full analysis keeps timing out.
    """
    ctx = build_context(resume_text, resume, job_description, filename=filename, user_type=user_type)
    return calculate_score_from_context(ctx, use_hybrid=use_hybrid, embedding_provider=embedding_provider)


def _ats_summary(overall: int, quality: str, jd_mode: bool) -> str:
    mode = "JD-based" if jd_mode else "general"
    if overall >= 85:
        detail = "highly optimized for applicant tracking systems"
    elif overall >= 70:
        detail = "well structured with room for targeted improvements"
    elif overall >= 55:
        detail = "meets basic requirements but needs optimization"
    elif overall >= 35:
        detail = "needs significant improvements to pass ATS screening"
    else:
        detail = "unlikely to pass ATS screening without major revisions"
    return f"{quality} {mode} resume: {detail}."


def _strengths_and_gaps(parameters: list[ParameterScore]) -> tuple[list[str], list[str]]:
    strengths = [_PARAMETER_LABELS[row.key] for row in parameters if row.percentage >= 80]
    gaps = [_PARAMETER_LABELS[row.key] for row in parameters if row.percentage < 50]
    return strengths, gaps


def calculate_ats_score(
    resume_text: str | None,
    resume: ResumeData | None = None,
    job_description: str | None = None,
    *,
    filename: str | None = None,
    user_type: str | None = None,
    use_hybrid: bool = True,
    embedding_provider: EmbeddingProvider | None = None,
) -> ATSScore:
    ctx = build_context(resume_text, resume, job_description, filename=filename, user_type=user_type)
    comprehensive = calculate_score_from_context(ctx, use_hybrid=use_hybrid, embedding_provider=embedding_provider)
    parameters = derive_parameters(ctx, comprehensive)

    overall = min(get_scoring_float("scoring.overall_cap", 100), sum(row.score for row in parameters))
    overall = int(overall)
    quality = get_match_quality(overall)
    strengths, gaps = _strengths_and_gaps(parameters)
    return ATSScore(
        overall_score=overall,
        match_quality=quality,
        interview_chance=get_interview_chance(overall),
        confidence=get_confidence(overall),
        is_jd_mode=ctx.is_jd_mode,
        parameters=parameters,
        missing_keywords=bucket_missing_keywords(comprehensive.missing_keywords),
        summary=_ats_summary(overall, quality, ctx.is_jd_mode),
        strengths=strengths,
        areas_to_improve=gaps,
        comprehensive=comprehensive,
    )


def score_parameter(
    key: ParameterKey,
    resume_text: str | None,
    resume: ResumeData | None = None,
    job_description: str | None = None,
    filename: str | None = None,
) -> int:
    """Score one of the 16 parameters; always within [0, max] for that parameter."""
    return calculate_ats_score(resume_text, resume, job_description, filename=filename).parameter(key).score
