from __future__ import annotations

import logging

from app.core.config.scoring import get_scoring_float, get_scoring_int
from app.schemas.gaps import (
    Big5Gap,
    FailingMetric,
    GapAnalysisResult,
    GapPriority,
    PrioritizedImprovement,
    TierGap,
)
from app.schemas.resume import ResumeData
from app.schemas.scoring import CriticalMetricKey, ComprehensiveScore
from app.scoring.engine import calculate_score
from app.semantic.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

BIG5_TIER_NAME = "Critical Metrics"

BIG5_IMPROVEMENTS: dict[CriticalMetricKey, list[str]] = {
    CriticalMetricKey.JD_KEYWORDS_MATCH: [
        "Add missing job description keywords to your skills section",
        "Mirror the exact terminology used in the job posting",
        "Work critical keywords naturally into experience bullets",
    ],
    CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT: [
        "List every required technology you have hands-on experience with",
        "Show required technologies in project and experience bullets",
        "Group technical skills by category to make them easy to scan",
    ],
    CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE: [
        "Add numbers to bullets: percentages, revenue, time saved or users served",
        "State the scale of your work (team size, data volume, traffic)",
        "Describe before-and-after results for key achievements",
    ],
    CriticalMetricKey.JOB_TITLE_RELEVANCE: [
        "Set a target role that matches the job title in the posting",
        "Use standard industry titles that reflect your actual responsibilities",
        "Mention the target title in your professional summary",
    ],
    CriticalMetricKey.EXPERIENCE_RELEVANCE: [
        "Reorder bullets so the most relevant experience comes first",
        "Rewrite bullets to reflect the responsibilities listed in the job description",
        "Highlight projects and tasks that match the role's core requirements",
    ],
}

if set(BIG5_IMPROVEMENTS) != set(CriticalMetricKey):
    raise RuntimeError("BIG5_IMPROVEMENTS does not cover every CriticalMetricKey.")

_PRIORITY_ORDER: dict[GapPriority, int] = {GapPriority.CRITICAL: 0, GapPriority.HIGH: 1, GapPriority.MEDIUM: 2}


def gap_priority(percentage: float) -> GapPriority:
    if percentage < get_scoring_float("gaps.critical_below_pct", 50):
        return GapPriority.CRITICAL
    if percentage < get_scoring_float("gaps.high_below_pct", 70):
        return GapPriority.HIGH
    return GapPriority.MEDIUM


def build_tier_gaps(score: ComprehensiveScore) -> list[TierGap]:
    gaps: list[TierGap] = []
    for tier in score.tier_scores.values():
        if tier.percentage >= 100:
            continue
        issues = tier.top_issues
        impact = round(tier.weight / len(issues), 2) if issues else 0.0
        gaps.append(
            TierGap(
                tier=tier.tier,
                tier_number=tier.tier_number,
                tier_name=tier.tier_name,
                current_score=tier.score,
                max_score=tier.max_score,
                percentage=tier.percentage,
                weight=tier.weight,
                failing_metrics=[
                    FailingMetric(
                        metric_id=tier.tier_number * 100 + index + 1,
                        metric_name=issue,
                        impact=impact,
                        recommendation=issue,
                    )
                    for index, issue in enumerate(issues)
                ],
            )
        )
    # sorted() is stable, so equal weights keep tier order.
    return sorted(gaps, key=lambda gap: gap.weight, reverse=True)


def build_big5_gaps(score: ComprehensiveScore) -> list[Big5Gap]:
    gaps: list[Big5Gap] = []
    for key, metric in score.critical_metrics.items():
        if metric.percentage >= 100:
            continue
        gaps.append(
            Big5Gap(
                metric=key,
                metric_name=metric.name,
                current_score=metric.score,
                max_score=metric.max_score,
                gap=round(metric.max_score - metric.score, 2),
                percentage=metric.percentage,
                priority=gap_priority(metric.percentage),
                improvements=list(BIG5_IMPROVEMENTS[key]),
            )
        )
    return sorted(gaps, key=lambda gap: _PRIORITY_ORDER[gap.priority])


def prioritize_improvements(tier_gaps: list[TierGap], big5_gaps: list[Big5Gap]) -> list[PrioritizedImprovement]:
    multiplier = get_scoring_float("gaps.big5_impact_multiplier", 2)
    items: list[PrioritizedImprovement] = []
    for gap_index, gap in enumerate(big5_gaps):
        for rec_index, recommendation in enumerate(gap.improvements):
            items.append(
                PrioritizedImprovement(
                    priority=gap_index * 10 + rec_index,
                    tier=0,
                    tier_name=BIG5_TIER_NAME,
                    metric_name=gap.metric_name,
                    impact=round(gap.gap * multiplier, 2),
                    recommendation=recommendation,
                    is_big5=True,
                )
            )
    for gap in tier_gaps:
        for index, metric in enumerate(gap.failing_metrics):
            items.append(
                PrioritizedImprovement(
                    priority=100 + gap.tier_number * 10 + index,
                    tier=gap.tier_number,
                    tier_name=gap.tier_name,
                    metric_name=metric.metric_name,
                    impact=metric.impact,
                    recommendation=metric.recommendation,
                    is_big5=False,
                )
            )
    return sorted(items, key=lambda item: (not item.is_big5, -item.impact, item.priority))


def analyze_gaps(
    resume: ResumeData | None,
    resume_text: str | None,
    job_description: str | None,
    *,
    user_type: str | None = None,
    use_hybrid: bool = True,
    embedding_provider: EmbeddingProvider | None = None,
    score: ComprehensiveScore | None = None,
) -> GapAnalysisResult:
    if score is None:
        score = calculate_score(
            resume_text,
            resume,
            job_description,
            user_type=user_type,
            use_hybrid=use_hybrid,
            embedding_provider=embedding_provider,
        )
    tier_gaps = build_tier_gaps(score)
    big5_gaps = build_big5_gaps(score)
    improvements = prioritize_improvements(tier_gaps, big5_gaps)
    logger.debug(
        "gaps_analyzed overall=%s tier_gaps=%s big5_gaps=%s improvements=%s",
        score.overall,
        len(tier_gaps),
        len(big5_gaps),
        len(improvements),
    )
    return GapAnalysisResult(
        before_score=score,
        tier_gaps=tier_gaps,
        big5_gaps=big5_gaps,
        prioritized_improvements=improvements,
        red_flags=score.red_flags,
        missing_keywords=score.missing_keywords,
    )


def get_top_improvements(result: GapAnalysisResult, limit: int | None = None) -> list[PrioritizedImprovement]:
    if limit is None:
        limit = get_scoring_int("gaps.top_improvements", 5)
    return result.prioritized_improvements[:limit]


def get_improvement_summary(result: GapAnalysisResult) -> str:
    score = result.before_score
    top = get_top_improvements(result)
    if not result.prioritized_improvements:
        return f"Score {score.overall}/100 ({score.match_band}). No improvements needed."
    potential = round(sum(item.impact for item in top), 1)
    critical = sum(1 for gap in result.big5_gaps if gap.priority == GapPriority.CRITICAL)
    return (
        f"Score {score.overall}/100 ({score.match_band}). "
        f"{len(result.prioritized_improvements)} improvement(s) found, {critical} critical metric(s) below 50%. "
        f"The top {len(top)} could add up to {potential:g} points."
    )
