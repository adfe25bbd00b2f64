from __future__ import annotations

import re

from app.core.config.scoring import get_scoring_int
from app.schemas.scoring import (
    ComprehensiveScore,
    CriticalMetricKey,
    ParameterKey,
    ParameterScore,
    RedFlagCategory,
    RedFlagKind,
    TierKey,
)
from app.scoring import signals
from app.scoring.context import ScoringContext
from app.scoring.keywords import vocabulary_hits
from app.scoring.text import clamp, is_bullet_like, parse_date_range, round_half_up

_DEFAULT_MAXIMA: dict[ParameterKey, int] = {
    ParameterKey.KEYWORD_MATCH: 25,
    ParameterKey.SKILLS_ALIGNMENT: 20,
    ParameterKey.EXPERIENCE_RELEVANCE: 15,
    ParameterKey.TECHNICAL_COMPETENCIES: 12,
    ParameterKey.EDUCATION_SCORE: 10,
    ParameterKey.QUANTIFIED_ACHIEVEMENTS: 8,
    ParameterKey.EMPLOYMENT_HISTORY: 8,
    ParameterKey.INDUSTRY_EXPERIENCE: 7,
    ParameterKey.JOB_TITLE_MATCH: 6,
    ParameterKey.CAREER_PROGRESSION: 6,
    ParameterKey.CERTIFICATIONS: 5,
    ParameterKey.FORMATTING: 5,
    ParameterKey.CONTENT_QUALITY: 4,
    ParameterKey.GRAMMAR: 3,
    ParameterKey.RESUME_LENGTH: 2,
    ParameterKey.FILENAME_QUALITY: 2,
}

if set(_DEFAULT_MAXIMA) != set(ParameterKey):
    raise RuntimeError("Every ParameterKey needs a default maximum.")

_FILENAME_KEYWORD_RE = re.compile(r"resume|cv", re.IGNORECASE)
_FILENAME_SPECIAL_RE = re.compile(r"[^A-Za-z0-9 _.\-]")


def parameter_max(key: ParameterKey) -> int:
    return get_scoring_int(f"scoring.parameters.{key.value}", _DEFAULT_MAXIMA[key])


def _scaled(pct: float, key: ParameterKey) -> int:
    return round_half_up(pct / 100 * parameter_max(key))


def _cap(name: str, default: float) -> float:
    return get_scoring_int(f"scoring.domain_mismatch.{name}", int(default))


class _Percentages:
    """Tier and critical-metric percentages the parameters are derived from."""

    def __init__(self, score: ComprehensiveScore) -> None:
        tiers = score.tier_scores
        metrics = score.critical_metrics
        self.skills = tiers[TierKey.SKILLS_KEYWORDS].percentage
        self.experience = tiers[TierKey.EXPERIENCE].percentage
        self.education = tiers[TierKey.EDUCATION].percentage
        self.certifications = tiers[TierKey.CERTIFICATIONS].percentage
        self.basic = tiers[TierKey.BASIC_STRUCTURE].percentage
        self.content = tiers[TierKey.CONTENT_STRUCTURE].percentage
        self.qualitative = tiers[TierKey.QUALITATIVE].percentage
        self.competitive = tiers[TierKey.COMPETITIVE].percentage
        self.jd_keywords = metrics[CriticalMetricKey.JD_KEYWORDS_MATCH].percentage
        self.technical = metrics[CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT].percentage
        self.quantified = metrics[CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE].percentage
        self.title = metrics[CriticalMetricKey.JOB_TITLE_RELEVANCE].percentage
        self.relevance = metrics[CriticalMetricKey.EXPERIENCE_RELEVANCE].percentage


def _keyword_match(p: _Percentages, jd_mode: bool) -> int:
    score = _scaled(p.skills, ParameterKey.KEYWORD_MATCH)
    if not jd_mode:
        return score
    if p.jd_keywords < _cap("keyword_low_pct", 20):
        return min(score, int(_cap("keyword_low_cap", 5)))
    if p.jd_keywords < _cap("keyword_mid_pct", 40):
        return min(score, int(_cap("keyword_mid_cap", 10)))
    return max(score, _scaled(p.jd_keywords, ParameterKey.KEYWORD_MATCH))


def _skills_alignment(p: _Percentages, jd_mode: bool) -> int:
    score = _scaled(p.skills, ParameterKey.SKILLS_ALIGNMENT)
    if not jd_mode:
        return score
    if p.technical < _cap("skills_low_pct", 20):
        return min(score, int(_cap("skills_low_cap", 4)))
    if p.technical < _cap("skills_mid_pct", 40):
        return min(score, int(_cap("skills_mid_cap", 8)))
    return max(score, _scaled(p.technical, ParameterKey.SKILLS_ALIGNMENT))


def _experience_relevance(p: _Percentages, jd_mode: bool) -> int:
    score = _scaled(p.experience, ParameterKey.EXPERIENCE_RELEVANCE)
    if not jd_mode:
        return score
    if p.jd_keywords < _cap("experience_keyword_low_pct", 25) and p.relevance < _cap("experience_relevance_low_pct", 30):
        return min(score, int(_cap("experience_low_cap", 3)))
    if p.jd_keywords < _cap("experience_keyword_mid_pct", 40) and p.relevance < _cap("experience_relevance_mid_pct", 50):
        return min(score, int(_cap("experience_mid_cap", 6)))
    relevance_points = p.relevance / 100 * 3
    return max(score, 2) if relevance_points > 1 else score


def _quantified_by_count(text: str) -> int:
    count = signals.count_metrics(text)
    if count >= 8:
        return 8
    if count >= 5:
        return 6
    if count >= 3:
        return 4
    if count >= 1:
        return 2
    return 0


def resume_length_score(text: str) -> int:
    length = len(text)
    if get_scoring_int("scoring.resume_length.ideal_min_chars", 1000) <= length <= get_scoring_int(
        "scoring.resume_length.ideal_max_chars", 4000
    ):
        return 2
    if get_scoring_int("scoring.resume_length.acceptable_min_chars", 800) <= length <= get_scoring_int(
        "scoring.resume_length.acceptable_max_chars", 5000
    ):
        return 1
    return 0


def filename_score(filename: str | None) -> int:
    if not filename:
        return 1
    stem = filename.rsplit(".", 1)[0]
    score = 1.0
    if _FILENAME_KEYWORD_RE.search(stem):
        score += 0.5
    if any(char.isalpha() for char in stem):
        score += 0.5
    if _FILENAME_SPECIAL_RE.search(stem):
        score -= 0.5
    return round_half_up(clamp(score, 0, 2))


def _grammar_by_errors(text: str) -> int:
    errors = signals.grammar_error_count(text)
    if errors == 0:
        return 3
    if errors <= 2:
        return 2
    if errors <= 5:
        return 1
    return 0


def _formatting_general(ctx: ScoringContext) -> int:
    score = 3
    if len(ctx.section_order) >= 4:
        score += 1
    if sum(1 for line in ctx.resume_text.splitlines() if is_bullet_like(line)) >= 3:
        score += 1
    return score


def _career_progression_general(ctx: ScoringContext) -> int:
    roles = [job.role for job in ctx.resume.work_experience if job.role]
    if not roles:
        return 0
    levels = [signals.seniority_level(role) for role in roles]
    if len(levels) >= 2 and levels[0] > levels[-1]:
        return 6
    if "promoted" in ctx.resume_text.lower():
        return 5
    return 3 if len(roles) >= 2 else 2


def _employment_history_general(ctx: ScoringContext, has_employment_flags: bool) -> int:
    jobs = ctx.resume.work_experience
    if not jobs:
        return 0
    dated = sum(1 for job in jobs if parse_date_range(job.year, ctx.latest_year) is not None)
    score = min(6, 2 * dated)
    if not has_employment_flags:
        score += 2
    return score


def derive_parameters(ctx: ScoringContext, score: ComprehensiveScore) -> list[ParameterScore]:
    p = _Percentages(score)
    jd_mode = ctx.is_jd_mode
    employment_flags = [flag for flag in score.red_flags if flag.category == RedFlagCategory.EMPLOYMENT]
    text = ctx.resume_text

    raw: dict[ParameterKey, int] = {
        ParameterKey.KEYWORD_MATCH: _keyword_match(p, jd_mode),
        ParameterKey.SKILLS_ALIGNMENT: _skills_alignment(p, jd_mode),
        ParameterKey.EXPERIENCE_RELEVANCE: _experience_relevance(p, jd_mode),
        ParameterKey.EDUCATION_SCORE: max(_scaled(p.education, ParameterKey.EDUCATION_SCORE), 2 if p.education > 0 else 0),
        ParameterKey.INDUSTRY_EXPERIENCE: max(
            _scaled(p.competitive, ParameterKey.INDUSTRY_EXPERIENCE), 1 if p.competitive > 0 else 0
        ),
        ParameterKey.JOB_TITLE_MATCH: max(_scaled(p.title, ParameterKey.JOB_TITLE_MATCH), 1 if p.title > 0 else 0),
        ParameterKey.CERTIFICATIONS: max(
            _scaled(p.certifications, ParameterKey.CERTIFICATIONS), 1 if p.certifications > 0 else 0
        ),
        ParameterKey.CONTENT_QUALITY: max(_scaled(p.content, ParameterKey.CONTENT_QUALITY), 1),
        ParameterKey.RESUME_LENGTH: max(_scaled(p.basic, ParameterKey.RESUME_LENGTH), 1),
    }

    if jd_mode:
        employment = _scaled(p.experience, ParameterKey.EMPLOYMENT_HISTORY)
        if p.experience > 0:
            employment = max(employment, 2)
        if not employment_flags:
            employment = max(employment, 4)

        progression = _scaled(p.experience, ParameterKey.CAREER_PROGRESSION)
        if ctx.has_experience:
            progression = max(progression, 1)
        if p.competitive > 50:
            progression = max(progression, 3)

        quantified = _scaled(p.quantified, ParameterKey.QUANTIFIED_ACHIEVEMENTS)
        if p.quantified / 100 * 3 > 1:
            quantified = max(quantified, 2)
        if p.competitive > 70:
            quantified = max(quantified, round_half_up(parameter_max(ParameterKey.QUANTIFIED_ACHIEVEMENTS) * 0.3))

        technical = _scaled(p.technical, ParameterKey.TECHNICAL_COMPETENCIES)
        raw.update(
            {
                ParameterKey.TECHNICAL_COMPETENCIES: max(technical, 2 if p.technical > 0 else 0),
                ParameterKey.QUANTIFIED_ACHIEVEMENTS: quantified,
                ParameterKey.EMPLOYMENT_HISTORY: employment,
                ParameterKey.CAREER_PROGRESSION: progression,
                ParameterKey.FORMATTING: max(_scaled(p.basic, ParameterKey.FORMATTING), 2),
                ParameterKey.GRAMMAR: max(_scaled(p.qualitative, ParameterKey.GRAMMAR), 1),
                ParameterKey.FILENAME_QUALITY: max(_scaled(p.basic, ParameterKey.FILENAME_QUALITY), 1),
            }
        )
    else:
        raw.update(
            {
                ParameterKey.TECHNICAL_COMPETENCIES: len(vocabulary_hits(text)),
                ParameterKey.QUANTIFIED_ACHIEVEMENTS: _quantified_by_count(text),
                ParameterKey.EMPLOYMENT_HISTORY: _employment_history_general(
                    ctx,
                    any(flag.kind in {RedFlagKind.EMPLOYMENT_GAP, RedFlagKind.JOB_HOPPING} for flag in employment_flags),
                ),
                ParameterKey.CAREER_PROGRESSION: _career_progression_general(ctx),
                ParameterKey.FORMATTING: _formatting_general(ctx),
                ParameterKey.GRAMMAR: _grammar_by_errors(text),
                ParameterKey.RESUME_LENGTH: resume_length_score(text),
                ParameterKey.FILENAME_QUALITY: filename_score(ctx.filename),
            }
        )

    rows = []
    for key in ParameterKey:
        maximum = parameter_max(key)
        rows.append(ParameterScore(key=key, score=int(clamp(raw[key], 0, maximum)), max_score=maximum))
    return rows
