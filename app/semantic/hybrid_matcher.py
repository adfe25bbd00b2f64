from __future__ import annotations

import logging
import re

from app.core.config.scoring import get_scoring_float, get_scoring_int
from app.schemas.matching import (
    HybridMatchResult,
    JobRequirement,
    MatchSummary,
    MatchType,
    RequirementCategory,
    RequirementMatch,
    RequirementPriority,
    ResumeBullet,
    SkillGapReport,
)
from app.scoring.keywords import TECH_VOCABULARY
from app.scoring.sections import detect_heading, is_heading_line
from app.scoring.text import (
    EMAIL_RE,
    PHONE_RE,
    clamp,
    contains_term,
    is_bullet_like,
    normalize_line,
    strip_bullet_prefix,
)

from .embeddings import EmbeddingProvider, EmbeddingSizeError, SimpleEmbeddingProvider, similarity_matrix

logger = logging.getLogger(__name__)

_MUST_HAVE_RE = re.compile(r"\b(must|required|essential|critical)\b", re.IGNORECASE)
_CAPITALIZED_RE = re.compile(r"\b[A-Z][A-Za-z0-9+#.]{3,}\b")
_PAST_TENSE_START_RE = re.compile(r"^[A-Z][a-z]+ed\b")
_PROFILE_LINK_RE = re.compile(r"https?://|www\.|linkedin\.com|github\.com", re.IGNORECASE)
_REQUIREMENT_SPLIT_RE = re.compile(r"[\n;]+|(?<=[.!?])\s+(?=[A-Z])")

_CATEGORY_PATTERNS: tuple[tuple[RequirementCategory, re.Pattern[str]], ...] = (
    (
        RequirementCategory.TECHNICAL,
        re.compile(
            r"\b(programming|software|framework|database|cloud|api|language|stack|technolog\w*|"
            r"develop\w*|engineer\w*|code|coding|infrastructure|devops|testing)\b",
            re.IGNORECASE,
        ),
    ),
    (
        RequirementCategory.EXPERIENCE,
        re.compile(r"\b(\d+\+?\s*years?|experience|background|track record|proven)\b", re.IGNORECASE),
    ),
    (
        RequirementCategory.SOFT_SKILL,
        re.compile(
            r"\b(communicat\w*|team\w*|leader\w*|collaborat\w*|problem[- ]solving|interpersonal|"
            r"mentor\w*|stakeholder\w*)\b",
            re.IGNORECASE,
        ),
    ),
    (
        RequirementCategory.DOMAIN,
        re.compile(
            r"\b(industry|domain|finance|fintech|healthcare|e-?commerce|banking|retail|insurance|"
            r"telecom|logistics|saas|compliance)\b",
            re.IGNORECASE,
        ),
    ),
)

_KEYWORD_STOPWORDS = frozenset(
    {
        "must", "required", "experience", "strong", "with", "have", "will", "ability", "knowledge",
        "understanding", "excellent", "good", "familiarity", "proficiency", "working", "preferred",
        "plus", "bonus", "responsibilities", "requirements", "qualifications", "about", "what",
        "this", "that", "they", "your", "work", "team", "role", "join", "build", "help",
    }
)


def _categorize(text: str, has_vocabulary_hit: bool) -> RequirementCategory:
    if has_vocabulary_hit:
        return RequirementCategory.TECHNICAL
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return RequirementCategory.GENERAL


def _requirement_keywords(text: str) -> list[str]:
    limit = get_scoring_int("matching.max_keywords_per_requirement", 10)
    keywords: list[str] = []
    seen: set[str] = set()
    candidates = [term for term in TECH_VOCABULARY if contains_term(text, term)]
    candidates.extend(match.rstrip(".") for match in _CAPITALIZED_RE.findall(text))
    for candidate in candidates:
        key = candidate.lower()
        if key in seen or key in _KEYWORD_STOPWORDS:
            continue
        seen.add(key)
        keywords.append(candidate)
    return keywords[:limit]


def extract_requirements(job_description: str | None) -> list[JobRequirement]:
    """Split a job description into requirement units with category, keywords and priority."""
    if not job_description:
        return []

    min_chars = get_scoring_int("matching.min_requirement_chars", 10)
    min_kept = get_scoring_int("matching.min_kept_requirement_chars", 20)
    limit = get_scoring_int("matching.max_requirements", 50)

    requirements: list[JobRequirement] = []
    for raw in _REQUIREMENT_SPLIT_RE.split(job_description):
        line = normalize_line(strip_bullet_prefix(raw))
        if len(line) < min_chars:
            continue
        keywords = _requirement_keywords(line)
        if not keywords and len(line) <= min_kept:
            continue
        has_vocabulary_hit = any(contains_term(line, term) for term in TECH_VOCABULARY)
        requirements.append(
            JobRequirement(
                req_id=f"req-{len(requirements) + 1}",
                text=line,
                category=_categorize(line, has_vocabulary_hit),
                keywords=keywords,
                priority=(
                    RequirementPriority.MUST_HAVE if _MUST_HAVE_RE.search(line) else RequirementPriority.NICE_TO_HAVE
                ),
            )
        )
        if len(requirements) >= limit:
            break
    return requirements


def _is_contact_line(line: str) -> bool:
    return bool(EMAIL_RE.search(line) or PHONE_RE.search(line) or _PROFILE_LINK_RE.search(line))


def extract_resume_bullets(resume_text: str | None) -> list[ResumeBullet]:
    """Bullet-marker lines, sentence-like lines and past-tense lines, tagged by section."""
    min_chars = get_scoring_int("matching.min_bullet_chars", 30)
    bullets: list[ResumeBullet] = []
    section = "general"
    for raw in (resume_text or "").splitlines():
        line = normalize_line(raw)
        if not line:
            continue
        if not is_bullet_like(raw) and is_heading_line(line):
            heading = detect_heading(line)
            section = heading.value if heading else line.lower().rstrip(":")
            continue
        if section == "general" and not is_bullet_like(raw) and _is_contact_line(line):
            continue

        if is_bullet_like(raw):
            text = normalize_line(strip_bullet_prefix(raw))
        elif len(line) >= min_chars and " " in line:
            text = line
        elif _PAST_TENSE_START_RE.match(line):
            text = line
        else:
            continue
        if text:
            bullets.append(ResumeBullet(text=text, section=section, index=len(bullets)))
    return bullets


def _literal_score(requirement: JobRequirement, bullet_text: str) -> tuple[float, list[str]]:
    if not requirement.keywords:
        return 0.0, []
    lowered = bullet_text.lower()
    found = [keyword for keyword in requirement.keywords if keyword.lower() in lowered]
    return len(found) / len(requirement.keywords), found


def determine_match_type(semantic_score: float, literal_score: float, hybrid_score: float) -> MatchType:
    if hybrid_score < get_scoring_float("matching.hybrid_threshold", 0.65):
        return MatchType.NONE
    semantic_ok = semantic_score >= get_scoring_float("matching.semantic_threshold", 0.70)
    literal_ok = literal_score >= get_scoring_float("matching.literal_threshold", 0.5)
    if semantic_ok and literal_ok:
        return MatchType.HYBRID
    if semantic_ok:
        return MatchType.SEMANTIC
    if literal_ok:
        return MatchType.LITERAL
    return MatchType.NONE


def _semantic_scores(
    provider: EmbeddingProvider,
    requirements: list[JobRequirement],
    bullets: list[ResumeBullet],
) -> list[list[float]] | None:
    try:
        return similarity_matrix(
            provider,
            [requirement.text for requirement in requirements],
            [bullet.text for bullet in bullets],
        )
    except EmbeddingSizeError as exc:
        logger.warning("embedding_size_mismatch requirements=%s bullets=%s error=%s", len(requirements), len(bullets), exc)
    except Exception as exc:  # noqa: BLE001
        logger.warning("embedding_failed requirements=%s bullets=%s error=%s", len(requirements), len(bullets), exc)
    return None


def match_requirements(
    requirements: list[JobRequirement],
    bullets: list[ResumeBullet],
    embedding_provider: EmbeddingProvider | None = None,
) -> HybridMatchResult:
    semantic_weight = get_scoring_float("matching.semantic_weight", 0.6)
    literal_weight = get_scoring_float("matching.literal_weight", 0.4)

    embedder = embedding_provider or SimpleEmbeddingProvider()
    semantic_scores = _semantic_scores(embedder, requirements, bullets) if requirements and bullets else None

    matches: list[RequirementMatch] = []
    for req_idx, requirement in enumerate(requirements):
        best = RequirementMatch(requirement=requirement)
        for bullet_idx, bullet in enumerate(bullets):
            semantic = 0.0
            if semantic_scores is not None:
                semantic = semantic_scores[req_idx][bullet_idx]
            literal, found = _literal_score(requirement, bullet.text)
            semantic = round(semantic, 4)
            literal = round(literal, 4)
            hybrid = round(clamp(semantic_weight * semantic + literal_weight * literal, 0.0, 1.0), 4)
            logger.debug(
                "hybrid_pair req=%s bullet=%s semantic=%.4f literal=%.4f hybrid=%.4f",
                requirement.req_id,
                bullet.index,
                semantic,
                literal,
                hybrid,
            )
            if best.best_bullet is None or hybrid > best.hybrid_score:
                best = RequirementMatch(
                    requirement=requirement,
                    best_bullet=bullet,
                    semantic_score=semantic,
                    literal_score=literal,
                    hybrid_score=hybrid,
                    match_type=determine_match_type(semantic, literal, hybrid),
                    matched_keywords=found,
                )
        matches.append(best)

    matched = [match for match in matches if match.is_matched]
    by_type = {match_type: 0 for match_type in MatchType}
    for match in matches:
        by_type[match.match_type] += 1
    must_haves = [match for match in matches if match.requirement.priority == RequirementPriority.MUST_HAVE]

    return HybridMatchResult(
        matches=matches,
        overall_coverage=round(len(matched) / len(matches), 4) if matches else 0.0,
        summary=MatchSummary(
            total_requirements=len(matches),
            matched=len(matched),
            by_type=by_type,
            must_have_total=len(must_haves),
            must_have_matched=sum(1 for match in must_haves if match.is_matched),
        ),
        unmatched_requirements=[match.requirement for match in matches if not match.is_matched],
    )


def match_resume_to_job(
    resume_text: str,
    job_description: str,
    embedding_provider: EmbeddingProvider | None = None,
) -> HybridMatchResult:
    return match_requirements(
        extract_requirements(job_description),
        extract_resume_bullets(resume_text),
        embedding_provider,
    )


def get_requirement_match_pairs(result: HybridMatchResult) -> list[tuple[JobRequirement, ResumeBullet | None]]:
    return [(match.requirement, match.best_bullet if match.is_matched else None) for match in result.matches]


def identify_skill_gaps(result: HybridMatchResult) -> SkillGapReport:
    critical = [req.text for req in result.unmatched_requirements if req.priority == RequirementPriority.MUST_HAVE]
    nice = [req.text for req in result.unmatched_requirements if req.priority != RequirementPriority.MUST_HAVE]
    total = result.summary.total_requirements
    return SkillGapReport(
        critical_gaps=critical,
        nice_to_have_gaps=nice,
        gap_percentage=round(len(result.unmatched_requirements) / total * 100, 2) if total else 0.0,
    )


def generate_match_report(result: HybridMatchResult) -> str:
    summary = result.summary
    lines = [
        "# Requirement Match Report",
        "",
        f"- Coverage: {round(result.overall_coverage * 100)}% ({summary.matched}/{summary.total_requirements})",
        f"- Must-have coverage: {summary.must_have_matched}/{summary.must_have_total}",
        "- By type: " + ", ".join(f"{kind.value} {summary.by_type.get(kind, 0)}" for kind in MatchType),
        "",
        "## Requirements",
        "",
    ]
    for match in result.matches:
        marker = "x" if match.is_matched else " "
        lines.append(f"- [{marker}] {match.requirement.text} ({match.match_type.value}, {match.hybrid_score:.2f})")
        if match.is_matched and match.best_bullet is not None:
            lines.append(f"  - Evidence: {match.best_bullet.text}")

    gaps = identify_skill_gaps(result)
    if gaps.critical_gaps:
        lines.extend(["", "## Critical gaps", ""])
        lines.extend(f"- {gap}" for gap in gaps.critical_gaps)
    return "\n".join(lines) + "\n"
