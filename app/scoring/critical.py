from __future__ import annotations

from app.core.config.scoring import get_scoring_float, get_scoring_int
from app.schemas.scoring import CRITICAL_METRIC_NAMES, CriticalMetric, CriticalMetricKey, MetricStatus
from app.scoring import signals
from app.scoring.context import ScoringContext
from app.scoring.keywords import keyword_match_rate, tech_terms_in
from app.scoring.text import clamp, contains_term, words


def metric_status(percentage: float) -> MetricStatus:
    if percentage >= get_scoring_float("scoring.critical_metrics.status.excellent", 80):
        return MetricStatus.EXCELLENT
    if percentage >= get_scoring_float("scoring.critical_metrics.status.good", 60):
        return MetricStatus.GOOD
    if percentage >= get_scoring_float("scoring.critical_metrics.status.fair", 40):
        return MetricStatus.FAIR
    return MetricStatus.POOR


def _metric(key: CriticalMetricKey, percentage: float, details: str) -> CriticalMetric:
    max_score = get_scoring_int(f"scoring.critical_metrics.max_scores.{key.value}", 5)
    percentage = round(clamp(percentage, 0.0, 100.0), 2)
    return CriticalMetric(
        key=key,
        name=CRITICAL_METRIC_NAMES[key],
        score=round(percentage / 100 * max_score, 2),
        max_score=max_score,
        percentage=percentage,
        status=metric_status(percentage),
        details=details,
    )


def _fallback_pct() -> float:
    return get_scoring_float("scoring.critical_metrics.fallback_pct", 50)


def jd_keywords_match(ctx: ScoringContext) -> CriticalMetric:
    key = CriticalMetricKey.JD_KEYWORDS_MATCH
    if not ctx.is_jd_mode:
        return _metric(key, _fallback_pct(), "No job description provided")
    rate = keyword_match_rate(ctx.resume_text, ctx.jd_keywords)
    return _metric(key, rate, f"{rate}% of job description keywords found")


def technical_skills_alignment(ctx: ScoringContext) -> CriticalMetric:
    key = CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT
    if not ctx.is_jd_mode:
        return _metric(key, _fallback_pct(), "No job description provided")
    wanted = tech_terms_in(ctx.job_description)
    if not wanted:
        return _metric(key, _fallback_pct(), "Job description names no technical terms")
    found = [term for term in wanted if contains_term(ctx.resume_text, term)]
    return _metric(key, len(found) / len(wanted) * 100, f"{len(found)} of {len(wanted)} technical terms found")


def quantified_results_presence(ctx: ScoringContext) -> CriticalMetric:
    key = CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE
    bullets = ctx.experience_bullets
    if not bullets:
        return _metric(key, 0.0, "No work experience bullets to quantify")
    quantified = sum(1 for bullet in bullets if signals.QUANTIFIED_RESULT_RE.search(bullet))
    return _metric(key, quantified / len(bullets) * 100, f"{quantified} of {len(bullets)} bullets quantified")


def job_title_relevance(ctx: ScoringContext) -> CriticalMetric:
    key = CriticalMetricKey.JOB_TITLE_RELEVANCE
    titles = [ctx.resume.target_role] if ctx.resume.target_role else []
    titles.extend(job.role for job in ctx.resume.work_experience if job.role)
    if not ctx.is_jd_mode or not titles:
        return _metric(key, _fallback_pct(), "No job description or job titles to compare")
    title_words = [word for word in words(" ".join(titles)) if len(word) > 3]
    if not title_words:
        return _metric(key, _fallback_pct(), "Job titles are too short to compare")
    found = [word for word in title_words if contains_term(ctx.job_description, word)]
    return _metric(key, len(found) / len(title_words) * 100, f"{len(found)} of {len(title_words)} title words in JD")


def experience_relevance(ctx: ScoringContext) -> CriticalMetric:
    key = CriticalMetricKey.EXPERIENCE_RELEVANCE
    if not ctx.is_jd_mode:
        return _metric(key, _fallback_pct(), "No job description provided")
    bullets = ctx.experience_bullets
    if not bullets:
        return _metric(key, 0.0, "No work experience bullets to compare")
    relevant = 0
    for bullet in bullets:
        overlap = {word.lower() for word in words(bullet) if len(word) > 4 and contains_term(ctx.job_description, word)}
        if len(overlap) >= 2:
            relevant += 1
    return _metric(key, relevant / len(bullets) * 100, f"{relevant} of {len(bullets)} bullets relevant to the JD")


def calculate_critical_metrics(ctx: ScoringContext) -> dict[CriticalMetricKey, CriticalMetric]:
    return {
        CriticalMetricKey.JD_KEYWORDS_MATCH: jd_keywords_match(ctx),
        CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT: technical_skills_alignment(ctx),
        CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE: quantified_results_presence(ctx),
        CriticalMetricKey.JOB_TITLE_RELEVANCE: job_title_relevance(ctx),
        CriticalMetricKey.EXPERIENCE_RELEVANCE: experience_relevance(ctx),
    }
