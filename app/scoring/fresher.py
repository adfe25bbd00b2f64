from __future__ import annotations

import re

from app.core.config.scoring import get_scoring_int, get_scoring_value
from app.schemas.resume import ResumeData
from app.schemas.scoring import TierKey
from app.scoring.text import contains_term

_YEARS_REQUIRED_PATTERNS = (
    re.compile(r"(\d+)\+?\s*(?:-\s*\d+\s*)?years?\s+(?:of\s+)?(?:work\s+|professional\s+|relevant\s+|industry\s+)?experience"),
    re.compile(r"minimum\s+(?:of\s+)?(\d+)\+?\s*years?"),
    re.compile(r"at\s+least\s+(\d+)\+?\s*years?"),
)

FRESHER_USER_TYPES = frozenset({"fresher", "student"})
EXPERIENCED_USER_TYPES = frozenset({"experienced"})


def _fresher_keywords() -> list[str]:
    return [str(item).lower() for item in get_scoring_value("scoring.fresher.keywords", []) or []]


def _seniority_terms() -> list[str]:
    return [str(item).lower() for item in get_scoring_value("scoring.fresher.seniority_terms", []) or []]


def required_years(job_description: str) -> int | None:
    """Highest explicit 'N years of experience' requirement in the posting."""
    lowered = job_description.lower().replace("–", "-")
    found: list[int] = []
    for pattern in _YEARS_REQUIRED_PATTERNS:
        found.extend(int(value) for value in pattern.findall(lowered))
    return max(found) if found else None


def _seniority_requirement_patterns(term: str) -> tuple[re.Pattern[str], ...]:
    escaped = rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])"
    return (
        # Title line or "hiring a senior ...", "join us as lead ...".
        re.compile(
            rf"(?:^|[.!?\n]\s*|\b(?:hiring|seeking|looking\s+for|as)\s+)(?:an?\s+)?(?:[a-z]+\s+)?{escaped}",
            re.MULTILINE,
        ),
        # "senior engineer role", "lead-level position".
        re.compile(rf"{escaped}[\s-]+(?:[a-z]+\s+){{0,2}}(?:role|position|level)\b"),
        # "3+ years as a team lead".
        re.compile(rf"\d+\+?\s*years?\s+(?:of\s+experience\s+)?as\s+(?:an?\s+)?(?:[a-z]+\s+)?{escaped}"),
    )


def requires_seniority(job_description: str) -> bool:
    """True when a seniority term is asked of the candidate, not merely mentioned."""
    lowered = job_description.lower()
    return any(
        pattern.search(lowered)
        for term in _seniority_terms()
        for pattern in _seniority_requirement_patterns(term)
    )


def detect_fresher_role(
    job_description: str | None,
    resume: ResumeData | None = None,
    user_type: str | None = None,
) -> bool:
    normalized_type = (user_type or "").strip().lower()
    if normalized_type in FRESHER_USER_TYPES:
        return True
    if normalized_type in EXPERIENCED_USER_TYPES:
        return False

    jd = (job_description or "").strip()
    if len(jd) >= get_scoring_int("scoring.jd_mode_min_chars", 50):
        lowered = jd.lower().replace("–", "-")
        has_fresher_keyword = any(contains_term(lowered, keyword) for keyword in _fresher_keywords())
        if not has_fresher_keyword:
            return False
        years = required_years(lowered)
        if years is not None and years >= get_scoring_int("scoring.fresher.max_required_years", 2):
            return False
        return not requires_seniority(lowered)

    if resume is None:
        return False
    return not resume.work_experience


def get_tier_weights(is_fresher: bool) -> dict[TierKey, int]:
    mode = "fresher" if is_fresher else "standard"
    raw = get_scoring_value(f"scoring.tier_weights.{mode}", {}) or {}
    weights = {key: int(raw.get(key.value, 0)) for key in TierKey}
    total = sum(weights.values())
    if total != 100:
        raise RuntimeError(f"scoring.tier_weights.{mode} must sum to 100, got {total}.")
    return weights
