from __future__ import annotations

import re
from collections import Counter

from app.core.config.scoring import get_scoring_int
from app.schemas.scoring import (
    TIER_NAMES,
    RedFlag,
    RedFlagCategory,
    RedFlagKind,
    RedFlagSeverity,
    TierKey,
    TierScore,
    tier_number,
)
from app.scoring import signals
from app.scoring.context import ScoringContext
from app.scoring.text import parse_date_range

GAP_MONTHS = 6
SHORT_TENURE_MONTHS = 12
JOB_HOPPING_MIN_COUNT = 3
STUFFING_MIN_REPEATS = 15
GRAMMAR_ERROR_LIMIT = 5
MAX_BULLET_STYLES = 2

_STUFFING_WORD_RE = re.compile(r"\b[a-z][a-z0-9+#]{4,}\b")

_KIND_META: dict[RedFlagKind, tuple[RedFlagCategory, RedFlagSeverity, str]] = {
    RedFlagKind.EMPLOYMENT_GAP: (RedFlagCategory.EMPLOYMENT, RedFlagSeverity.HIGH, "Employment Gap"),
    RedFlagKind.JOB_HOPPING: (RedFlagCategory.EMPLOYMENT, RedFlagSeverity.HIGH, "Job Hopping"),
    RedFlagKind.TITLE_INFLATION: (RedFlagCategory.EMPLOYMENT, RedFlagSeverity.CRITICAL, "Title Inflation"),
    RedFlagKind.CONFLICTING_DATES: (RedFlagCategory.EMPLOYMENT, RedFlagSeverity.MEDIUM, "Conflicting Dates"),
    RedFlagKind.KEYWORD_STUFFING: (RedFlagCategory.SKILLS, RedFlagSeverity.CRITICAL, "Keyword Stuffing"),
    RedFlagKind.UNSUBSTANTIATED_CLAIMS: (RedFlagCategory.SKILLS, RedFlagSeverity.MEDIUM, "Unsubstantiated Claims"),
    RedFlagKind.GENERIC_LANGUAGE: (RedFlagCategory.SKILLS, RedFlagSeverity.LOW, "Generic Language"),
    RedFlagKind.OUTDATED_TECHNOLOGY: (RedFlagCategory.SKILLS, RedFlagSeverity.MEDIUM, "Outdated Technology"),
    RedFlagKind.GRAMMAR_ERRORS: (RedFlagCategory.FORMATTING, RedFlagSeverity.HIGH, "Grammar Errors"),
    RedFlagKind.INCONSISTENT_FORMATTING: (
        RedFlagCategory.FORMATTING,
        RedFlagSeverity.MEDIUM,
        "Inconsistent Formatting",
    ),
}

if set(_KIND_META) != set(RedFlagKind):
    raise RuntimeError("Every RedFlagKind needs category, severity and name metadata.")


def _penalty(kind: RedFlagKind) -> int:
    return -abs(get_scoring_int(f"scoring.red_flags.penalties.{kind.value}", 0))


def _flag(kind: RedFlagKind, description: str, recommendation: str) -> RedFlag:
    category, severity, name = _KIND_META[kind]
    return RedFlag(
        kind=kind,
        category=category,
        name=name,
        severity=severity,
        penalty=_penalty(kind),
        description=description,
        recommendation=recommendation,
    )


def _employment_ranges(ctx: ScoringContext) -> list[tuple[int, int]]:
    ranges = []
    for job in ctx.resume.work_experience:
        parsed = parse_date_range(job.year, ctx.latest_year)
        if parsed is not None:
            ranges.append(parsed)
    return sorted(ranges)


def _employment_flags(ctx: ScoringContext) -> list[RedFlag]:
    flags: list[RedFlag] = []
    ranges = _employment_ranges(ctx)

    gaps = 0
    overlaps = 0
    for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
        if next_start - prev_end > GAP_MONTHS:
            gaps += 1
        elif prev_end - next_start > 1:
            overlaps += 1
    if gaps:
        flags.append(
            _flag(
                RedFlagKind.EMPLOYMENT_GAP,
                f"{gaps} gap(s) > {GAP_MONTHS} months detected",
                "Add explanation for employment gaps (education, freelance, etc.)",
            )
        )

    short_tenures = sum(1 for start, end in ranges if end - start + 1 < SHORT_TENURE_MONTHS)
    if short_tenures >= JOB_HOPPING_MIN_COUNT:
        flags.append(
            _flag(
                RedFlagKind.JOB_HOPPING,
                f"{short_tenures} positions with < 1 year tenure",
                "Highlight achievements and reasons for transitions",
            )
        )

    header_lines = [f"{job.role} {job.company}" for job in ctx.resume.work_experience]
    if any(signals.looks_inflated(line) for line in header_lines):
        flags.append(
            _flag(
                RedFlagKind.TITLE_INFLATION,
                "Job titles may be inflated beyond actual responsibilities",
                "Ensure titles accurately reflect your role",
            )
        )

    if overlaps:
        flags.append(
            _flag(
                RedFlagKind.CONFLICTING_DATES,
                "Overlapping or inconsistent employment dates",
                "Review and correct date ranges",
            )
        )
    return flags


def _content_flags(ctx: ScoringContext) -> list[RedFlag]:
    flags: list[RedFlag] = []
    text = ctx.resume_text

    counts = Counter(_STUFFING_WORD_RE.findall(text.lower()))
    stuffed = sorted(word for word, count in counts.items() if count > STUFFING_MIN_REPEATS)
    if stuffed:
        flags.append(
            _flag(
                RedFlagKind.KEYWORD_STUFFING,
                f"Repeated keywords: {', '.join(stuffed[:5])}",
                "Use keywords naturally in context instead of repeating them",
            )
        )

    claims = len(signals.UNSUBSTANTIATED_CLAIM_RE.findall(text))
    if claims >= 3 and signals.count_metrics(text) < claims:
        flags.append(
            _flag(
                RedFlagKind.UNSUBSTANTIATED_CLAIMS,
                f"{claims} superlative claims without supporting numbers",
                "Back claims with measurable results",
            )
        )

    bullets = ctx.all_bullets or ctx.text_bullet_lines
    vague = sum(1 for bullet in bullets if signals.is_vague(bullet))
    cliches = signals.count_phrases(text, signals.CLICHES)
    if cliches >= 3 or (bullets and vague / len(bullets) > 0.3):
        flags.append(
            _flag(
                RedFlagKind.GENERIC_LANGUAGE,
                "Resume relies on generic phrases and cliches",
                "Replace generic phrases with specific accomplishments",
            )
        )

    if signals.OUTDATED_TECH_RE.search(text) and not signals.MODERN_TECH_RE.search(text):
        flags.append(
            _flag(
                RedFlagKind.OUTDATED_TECHNOLOGY,
                "Only outdated technologies are listed",
                "Highlight current technologies you have used",
            )
        )
    return flags


def _formatting_flags(ctx: ScoringContext) -> list[RedFlag]:
    flags: list[RedFlag] = []
    errors = signals.grammar_error_count(ctx.resume_text)
    if errors > GRAMMAR_ERROR_LIMIT:
        flags.append(
            _flag(
                RedFlagKind.GRAMMAR_ERRORS,
                f"{errors} grammar or spelling issues detected",
                "Proofread the resume and fix spelling and spacing errors",
            )
        )

    styles = set(signals.BULLET_STYLE_RE.findall(ctx.resume_text))
    if len(styles) > MAX_BULLET_STYLES:
        flags.append(
            _flag(
                RedFlagKind.INCONSISTENT_FORMATTING,
                f"{len(styles)} different bullet styles used",
                "Use one bullet style throughout the resume",
            )
        )
    return flags


def detect_red_flags(ctx: ScoringContext) -> list[RedFlag]:
    return _employment_flags(ctx) + _content_flags(ctx) + _formatting_flags(ctx)


def total_penalty(flags: list[RedFlag]) -> int:
    return sum(flag.penalty for flag in flags)


def is_auto_reject_risk(flags: list[RedFlag]) -> bool:
    critical = sum(1 for flag in flags if flag.severity == RedFlagSeverity.CRITICAL)
    return critical >= get_scoring_int("scoring.red_flags.auto_reject_critical_count", 3)


def build_red_flag_tier(flags: list[RedFlag], weight: int) -> TierScore:
    multiplier = get_scoring_int("scoring.red_flags.tier_penalty_multiplier", 5)
    percentage = float(max(0, 100 - multiplier * abs(total_penalty(flags))))
    return TierScore(
        tier=TierKey.RED_FLAGS,
        tier_number=tier_number(TierKey.RED_FLAGS),
        tier_name=TIER_NAMES[TierKey.RED_FLAGS],
        score=percentage,
        max_score=100.0,
        percentage=percentage,
        weight=weight,
        weighted_contribution=round(percentage * weight / 100, 2),
        metrics_passed=len(RedFlagKind) - len(flags),
        metrics_total=len(RedFlagKind),
        top_issues=[f"{flag.name}: {flag.description}" for flag in flags][:5],
    )
