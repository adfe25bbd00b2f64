from __future__ import annotations

from collections import Counter

from app.core.config.scoring import get_scoring_float, get_scoring_int
from app.schemas.scoring import TIER_NAMES, MetricCheck, TierKey, TierScore, tier_number
from app.scoring import signals
from app.scoring.context import ScoringContext
from app.scoring.keywords import keyword_match_rate, tech_terms_in, vocabulary_hits
from app.scoring.sections import EXPECTED_SECTION_ORDER
from app.scoring.text import (
    EMAIL_RE,
    GITHUB_RE,
    LINKEDIN_RE,
    PHONE_RE,
    YEAR_RE,
    clamp,
    contains_term,
    word_count,
    words,
)

MAX_TOP_ISSUES = 5
FRESHER_EXPERIENCE_ISSUE = "Experience not required for this job role (Fresher)"

_CERT_ISSUERS = (
    "aws", "amazon", "google", "microsoft", "azure", "oracle", "cisco", "comptia", "pmp",
    "scrum", "kubernetes", "cka", "ckad", "red hat", "salesforce", "tableau", "coursera", "udemy",
)


def _check(name: str, passed: bool, max_score: float, details: str, *, score: float | None = None) -> MetricCheck:
    if score is None:
        score = max_score if passed else 0.0
    score = round(clamp(score, 0.0, max_score), 2)
    return MetricCheck(name=name, score=score, max_score=max_score, passed=passed, details=details)


def _ratio_check(name: str, ratio: float, target: float, max_score: float, details: str) -> MetricCheck:
    """Full credit at or above `target`, proportional below it."""
    ratio = clamp(ratio, 0.0, 1.0)
    score = max_score if ratio >= target else max_score * (ratio / target if target else 0.0)
    return _check(name, ratio >= target, max_score, details, score=score)


def build_tier_score(
    key: TierKey,
    checks: list[MetricCheck],
    weight: int,
    *,
    floor_pct: float | None = None,
    leading_issues: list[str] | None = None,
) -> TierScore:
    score = sum(check.score for check in checks)
    max_score = sum(check.max_score for check in checks)
    percentage = score / max_score * 100 if max_score > 0 else 0.0
    if floor_pct is not None:
        percentage = max(percentage, floor_pct)
    percentage = round(clamp(percentage, 0.0, 100.0), 2)

    issues = list(leading_issues or [])
    issues.extend(check.details for check in checks if not check.passed and check.details)
    scored_checks = [check for check in checks if check.max_score > 0]
    return TierScore(
        tier=key,
        tier_number=tier_number(key),
        tier_name=TIER_NAMES[key],
        score=round(score, 2),
        max_score=round(max_score, 2),
        percentage=percentage,
        weight=weight,
        weighted_contribution=round(percentage * weight / 100, 2),
        metrics_passed=sum(1 for check in scored_checks if check.passed),
        metrics_total=len(scored_checks),
        top_issues=issues[:MAX_TOP_ISSUES],
    )


def analyze_basic_structure(ctx: ScoringContext) -> list[MetricCheck]:
    text = ctx.resume_text
    resume = ctx.resume
    has_email = bool(resume.email or EMAIL_RE.search(text))
    has_phone = bool(resume.phone or PHONE_RE.search(text))
    has_linkedin = bool(resume.linkedin or LINKEDIN_RE.search(text))

    core = {
        "experience or projects": bool(resume.work_experience or resume.projects),
        "education": bool(resume.education),
        "skills": bool(resume.all_skills()),
    }
    missing_core = [name for name, present in core.items() if not present]

    order = [section for section in ctx.section_order if section in EXPECTED_SECTION_ORDER]
    ranks = [EXPECTED_SECTION_ORDER.index(section) for section in order]
    in_order = ranks == sorted(ranks)

    length = len(text)
    ideal_min = get_scoring_int("scoring.resume_length.ideal_min_chars", 1000)
    ideal_max = get_scoring_int("scoring.resume_length.ideal_max_chars", 4000)
    ok_min = get_scoring_int("scoring.resume_length.acceptable_min_chars", 800)
    ok_max = get_scoring_int("scoring.resume_length.acceptable_max_chars", 5000)
    if ideal_min <= length <= ideal_max:
        length_score = 2.0
    elif ok_min <= length <= ok_max:
        length_score = 1.0
    else:
        length_score = 0.0

    bullet_styles = set(signals.BULLET_STYLE_RE.findall(text))
    bullet_count = len(ctx.text_bullet_lines) or len(ctx.all_bullets)

    return [
        _check(
            "Contact information",
            has_email and has_phone,
            4,
            "Add a professional email address and phone number",
            score=2 * has_email + 2 * has_phone,
        ),
        _check("LinkedIn profile", has_linkedin, 1, "Add a LinkedIn profile URL"),
        _check(
            "Core sections",
            not missing_core,
            3,
            f"Missing core sections: {', '.join(missing_core)}",
            score=3 - len(missing_core),
        ),
        _check(
            "Section order",
            in_order,
            2,
            "Order sections as summary, skills, experience, projects, education, certifications",
        ),
        _check(
            "Resume length",
            length_score == 2.0,
            2,
            f"Resume length of {length} characters is outside the {ideal_min}-{ideal_max} character range",
            score=length_score,
        ),
        _check("Bullet points", bullet_count >= 3, 2, "Use bullet points to describe experience and projects"),
        _check(
            "ATS-safe characters",
            not signals.TABLE_GLYPH_RE.search(text),
            2,
            "Remove tables, box-drawing characters and graphics that ATS parsers cannot read",
        ),
        _check("Consistent bullet style", len(bullet_styles) <= 2, 1, "Use one bullet symbol throughout"),
    ]


def analyze_content_structure(ctx: ScoringContext) -> list[MetricCheck]:
    resume = ctx.resume
    summary = (resume.summary or resume.career_objective or "").strip()
    summary_words = word_count(summary)
    if 20 <= summary_words <= 80:
        summary_score = 3.0
    elif summary_words:
        summary_score = 1.0
    else:
        summary_score = 0.0

    bullets = ctx.all_bullets or ctx.text_bullet_lines
    total = len(bullets)
    good_length = sum(1 for bullet in bullets if 8 <= word_count(bullet) <= 35)
    strong_openings = sum(1 for bullet in bullets if signals.starts_with_strong_verb(bullet))
    opening_verbs = Counter(signals.first_word(bullet) for bullet in bullets if signals.starts_with_strong_verb(bullet))
    repeated = [verb for verb, count in opening_verbs.items() if count > 2]

    body_text = " ".join([summary, *bullets])
    roles = resume.work_experience
    undated = [job.role or job.company for job in roles if not YEAR_RE.search(job.year or "")]

    return [
        _check(
            "Professional summary",
            summary_score == 3.0,
            3,
            "Add a 20-80 word professional summary" if not summary else "Keep the summary between 20 and 80 words",
            score=summary_score,
        ),
        _ratio_check(
            "Bullet length",
            good_length / total if total else 0.0,
            0.7,
            3,
            "Keep bullets between 8 and 35 words",
        ),
        _ratio_check(
            "Action verb openings",
            strong_openings / total if total else 0.0,
            0.6,
            3,
            "Start bullets with strong action verbs",
        ),
        _check(
            "No first-person pronouns",
            not signals.FIRST_PERSON_RE.search(body_text),
            2,
            "Remove first-person pronouns (I, me, my) from bullets and summary",
        ),
        _check(
            "Dated roles",
            not undated,
            2,
            f"Add dates to {len(undated)} role(s)",
        ),
        _check(
            "Verb variety",
            not repeated,
            2,
            f"Vary opening verbs; overused: {', '.join(sorted(repeated))}",
        ),
    ]


def analyze_experience(ctx: ScoringContext) -> tuple[list[MetricCheck], list[str]]:
    """Impact, quantification and verb checks scored out of 100 each, plus zero-weight issue checks."""
    bullets = ctx.experience_bullets
    if not bullets:
        if ctx.is_fresher:
            return [], [FRESHER_EXPERIENCE_ISSUE]
        return [_check("Work experience", False, 100, "No work experience bullets found")], []

    impact_total = 0
    for bullet in bullets:
        lowered = bullet.lower()
        impact = 0
        if signals.starts_with_strong_verb(bullet):
            impact += 30
        if signals.has_metric(bullet):
            impact += 25
        if any(term in lowered for term in signals.ACHIEVEMENT_INDICATORS):
            impact += 20
        if not any(term in lowered for term in signals.RESPONSIBILITY_INDICATORS):
            impact += 15
        if any(term in lowered for term in signals.BUSINESS_IMPACT_TERMS):
            impact += 10
        impact_total += min(100, impact)

    total = len(bullets)
    mean_impact = impact_total / total
    metric_ratio = sum(1 for bullet in bullets if signals.has_metric(bullet)) / total
    verb_ratio = sum(1 for bullet in bullets if signals.starts_with_strong_verb(bullet)) / total
    weak_openings = sum(1 for bullet in bullets if signals.starts_with_weak_verb(bullet))

    checks = [
        _check("Impact strength", mean_impact >= 60, 100, "Bullets describe duties rather than impact", score=mean_impact),
        _check(
            "Quantified bullets",
            metric_ratio >= 0.3,
            100,
            "Less than 30% of bullets contain quantified results",
            score=metric_ratio * 100,
        ),
        _check(
            "Strong action verbs",
            verb_ratio >= 0.5,
            100,
            "Less than 50% of bullets start with strong action verbs",
            score=verb_ratio * 100,
        ),
        _check("Bullet depth", total >= 3, 0, "Too few bullet points - aim for 3-5 per role"),
        _check(
            "Weak openings",
            weak_openings == 0,
            0,
            f"Replace weak openings such as 'Responsible for' or 'Helped' ({weak_openings} bullets)",
        ),
    ]
    return checks, []


def analyze_education(ctx: ScoringContext) -> list[MetricCheck]:
    entries = ctx.resume.education
    has_degree = any(entry.degree.strip() for entry in entries)
    has_year = any(YEAR_RE.search(entry.year or "") for entry in entries)
    has_field = any((entry.field or "").strip() for entry in entries)

    if ctx.is_jd_mode and entries:
        education_text = " ".join(f"{entry.degree} {entry.field or ''}" for entry in entries)
        relevant = any(
            len(word) > 3 and contains_term(ctx.job_description, word)
            for word in words(education_text)
            if word.lower() not in {"bachelor", "master", "degree", "science", "arts"}
        )
    else:
        relevant = has_field or has_degree

    return [
        _check("Education listed", bool(entries), 4, "Add your education details"),
        _check("Degree stated", has_degree, 2, "State the degree you earned or are pursuing"),
        _check("Graduation year", has_year, 2, "Add a graduation year"),
        _check("Field relevance", relevant, 2, "Show how your field of study relates to the role"),
    ]


def analyze_certifications(ctx: ScoringContext) -> list[MetricCheck]:
    titles = ctx.resume.certification_titles()
    joined = " ".join(titles)
    if ctx.is_jd_mode:
        relevant = any(contains_term(joined, keyword) for keyword in ctx.jd_keywords) or any(
            len(word) > 3 and contains_term(ctx.job_description, word) for word in words(joined)
        )
    else:
        relevant = any(contains_term(joined, issuer) for issuer in _CERT_ISSUERS)

    return [
        _check("Certifications listed", bool(titles), 4, "Add relevant certifications"),
        _check("Multiple certifications", len(titles) >= 2, 3, "Add a second certification to show continued learning"),
        _check(
            "Relevant certification",
            bool(titles) and relevant,
            3,
            "Add a certification aligned with the target role",
        ),
    ]


def analyze_skills_keywords(ctx: ScoringContext, requirement_coverage: float | None = None) -> list[MetricCheck]:
    resume = ctx.resume
    text = ctx.resume_text
    skills = resume.all_skills()
    bullet_text = " ".join(ctx.all_bullets)

    checks: list[MetricCheck] = []
    if ctx.is_jd_mode:
        rate = keyword_match_rate(text, ctx.jd_keywords)
        checks.append(
            _check(
                "JD keyword match",
                rate >= 60,
                10,
                f"Only {rate}% of job description keywords appear in the resume",
                score=rate / 10,
            )
        )
        demonstrated = [keyword for keyword in ctx.jd_keywords if contains_term(bullet_text, keyword)]
        context_ratio = len(demonstrated) / len(ctx.jd_keywords) if ctx.jd_keywords else 1.0
    else:
        hits = vocabulary_hits(text)
        checks.append(
            _ratio_check(
                "Technical vocabulary",
                len(hits) / 8,
                1.0,
                10,
                "List more industry-standard technologies and tools",
            )
        )
        demonstrated = [skill for skill in skills if contains_term(bullet_text, skill)]
        context_ratio = len(demonstrated) / len(skills) if skills else 0.0

    checks.extend(
        [
            _check("Skills section", bool(skills), 3, "Add a dedicated skills section"),
            _ratio_check("Skill count", len(skills) / 8, 1.0, 3, "List at least 8 relevant skills"),
            _ratio_check(
                "Technical terms",
                len(tech_terms_in(text)) / 5,
                1.0,
                2,
                "Mention more concrete technical terms",
            ),
            _ratio_check(
                "Keywords in context",
                context_ratio,
                0.5,
                4,
                "Demonstrate listed skills inside experience and project bullets",
            ),
        ]
    )
    if ctx.is_jd_mode and requirement_coverage is not None:
        checks.append(
            _ratio_check(
                "Requirement coverage",
                requirement_coverage,
                0.6,
                4,
                f"Resume evidence covers {round(requirement_coverage * 100)}% of job requirements",
            )
        )
    return checks


def analyze_projects(ctx: ScoringContext) -> list[MetricCheck]:
    projects = ctx.resume.projects
    count = len(projects)
    avg_bullets = sum(len(project.bullets) for project in projects) / count if count else 0.0
    project_text = " ".join(
        " ".join([project.title, project.description or "", *project.bullets, *project.tech_stack])
        for project in projects
    )
    has_stack = any(project.tech_stack for project in projects) or len(vocabulary_hits(project_text)) >= 2
    has_link = any(project.github_url for project in projects) or bool(GITHUB_RE.search(ctx.resume_text))

    if ctx.is_jd_mode:
        found = [keyword for keyword in ctx.jd_keywords if contains_term(project_text, keyword)]
        alignment = len(found) / min(len(ctx.jd_keywords), 5) if ctx.jd_keywords else 0.0
    else:
        alignment = min(1.0, len(vocabulary_hits(project_text)) / 3)

    return [
        _check("Projects listed", count > 0, 4, "Add 2-3 projects that show hands-on skills"),
        _ratio_check("Project detail", avg_bullets / 2, 1.0, 2, "Describe each project with at least two bullets"),
        _check("Tech stack", has_stack, 2, "State the tech stack used in each project"),
        _check("Repository links", has_link, 1, "Link project repositories or live demos"),
        _ratio_check("Role alignment", alignment, 1.0, 3, "Align projects with the technologies the role needs"),
    ]


def analyze_competitive(ctx: ScoringContext) -> list[MetricCheck]:
    text = ctx.resume_text
    resume = ctx.resume
    levels = [signals.seniority_level(job.role) for job in resume.work_experience if job.role]
    # Roles are listed newest first.
    progressed = len(levels) >= 2 and levels[0] > levels[-1]
    promoted = contains_term(text, "promoted") or progressed

    return [
        _check("Leadership", signals.contains_any(text, signals.LEADERSHIP_TERMS), 3, "Show leadership or ownership"),
        _check(
            "Awards and achievements",
            bool(resume.achievements) or signals.contains_any(text, signals.AWARD_TERMS),
            3,
            "Add awards, hackathons or recognitions",
        ),
        _check(
            "Open-source presence",
            bool(resume.github) or bool(GITHUB_RE.search(text)) or contains_term(text, "open source"),
            2,
            "Link a GitHub profile or open-source work",
        ),
        _check(
            "Rankings or publications",
            bool(signals.RANKING_RE.search(text)),
            2,
            "Mention rankings, publications or talks",
        ),
        _check("Career progression", promoted, 2, "Show promotions or growing responsibility"),
    ]


def analyze_culture_fit(ctx: ScoringContext) -> list[MetricCheck]:
    text = ctx.resume_text
    if ctx.is_jd_mode:
        wanted = [skill for skill in signals.SOFT_SKILLS if contains_term(ctx.job_description, skill)]
        found = [skill for skill in wanted if contains_term(text, skill)]
        overlap = len(found) / len(wanted) if wanted else 1.0
    else:
        overlap = min(1.0, sum(1 for skill in signals.SOFT_SKILLS if contains_term(text, skill)) / 2)

    return [
        _check(
            "Collaboration",
            signals.contains_any(text, signals.COLLABORATION_TERMS),
            3,
            "Show collaboration with teams or stakeholders",
        ),
        _check(
            "Communication",
            signals.contains_any(text, signals.COMMUNICATION_TERMS),
            3,
            "Show communication through presentations, documentation or demos",
        ),
        _ratio_check("Soft skills", overlap, 1.0, 2, "Reflect the soft skills the role asks for"),
        _check(
            "Learning mindset",
            signals.contains_any(text, signals.LEARNING_TERMS),
            2,
            "Show continuous learning (courses, certifications, workshops)",
        ),
    ]


def analyze_qualitative(ctx: ScoringContext) -> list[MetricCheck]:
    text = ctx.resume_text
    bullets = ctx.all_bullets or ctx.text_bullet_lines
    errors = signals.grammar_error_count(text)
    if errors <= 2:
        grammar_score = 3.0
    elif errors <= 5:
        grammar_score = 1.5
    else:
        grammar_score = 0.0
    passive = signals.passive_phrase_count(text)
    vague_ratio = sum(1 for bullet in bullets if signals.is_vague(bullet)) / len(bullets) if bullets else 0.0
    cliches = signals.count_phrases(text, signals.CLICHES)
    clear_ratio = sum(1 for bullet in bullets if word_count(bullet) <= 35) / len(bullets) if bullets else 0.0

    return [
        _check(
            "Grammar and spelling",
            errors <= 2,
            3,
            f"Fix {errors} grammar, spacing or spelling issue(s)",
            score=grammar_score,
        ),
        _check("Active voice", passive <= 2, 2, "Rewrite passive phrases in active voice"),
        _check("Specific language", vague_ratio <= 0.2, 2, "Replace vague words (various, several, etc.) with specifics"),
        _check(
            "No cliches",
            cliches == 0,
            2,
            "Remove cliches such as 'team player' or 'hard worker'",
            score=2 if cliches == 0 else (1 if cliches <= 2 else 0),
        ),
        _ratio_check("Bullet clarity", clear_ratio, 0.8, 1, "Split long bullets into concise statements"),
    ]


def fresher_experience_floor() -> float:
    return get_scoring_float("scoring.fresher.experience_floor_pct", 75.0)


