from __future__ import annotations

from dataclasses import dataclass, field

from app.core.config.scoring import get_scoring_int
from app.schemas.resume import ResumeData, ResumeSection
from app.scoring.fresher import detect_fresher_role
from app.scoring.keywords import extract_jd_keywords
from app.scoring.sections import detect_section_order, parse_resume_text, resume_data_to_text, split_sections
from app.scoring.text import extract_years, is_bullet_like, strip_bullet_prefix


@dataclass(frozen=True)
class ScoringContext:
    """Everything the tier analyzers read, derived once per scoring call."""

    resume_text: str
    resume: ResumeData
    job_description: str
    is_jd_mode: bool
    is_fresher: bool
    filename: str | None
    jd_keywords: list[str] = field(default_factory=list)
    sections: dict[ResumeSection, list[str]] = field(default_factory=dict)
    section_order: list[ResumeSection] = field(default_factory=list)
    experience_bullets: list[str] = field(default_factory=list)
    project_bullets: list[str] = field(default_factory=list)
    text_bullet_lines: list[str] = field(default_factory=list)
    latest_year: int | None = None

    @property
    def all_bullets(self) -> list[str]:
        return self.experience_bullets + self.project_bullets

    @property
    def has_experience(self) -> bool:
        return bool(self.resume.work_experience)


def build_context(
    resume_text: str | None,
    resume: ResumeData | None = None,
    job_description: str | None = None,
    *,
    filename: str | None = None,
    user_type: str | None = None,
) -> ScoringContext:
    text = (resume_text or "").strip()
    if resume is None:
        resume = parse_resume_text(text)
    if not text:
        text = (resume.parsed_text or "").strip() or resume_data_to_text(resume)

    jd = (job_description or "").strip()
    is_jd_mode = len(jd) >= get_scoring_int("scoring.jd_mode_min_chars", 50)

    experience_bullets = [bullet.strip() for job in resume.work_experience for bullet in job.bullets if bullet.strip()]
    project_bullets = [bullet.strip() for project in resume.projects for bullet in project.bullets if bullet.strip()]
    text_bullet_lines = [strip_bullet_prefix(line) for line in text.splitlines() if is_bullet_like(line)]
    years = extract_years(text)

    return ScoringContext(
        resume_text=text,
        resume=resume,
        job_description=jd,
        is_jd_mode=is_jd_mode,
        is_fresher=detect_fresher_role(jd, resume, user_type),
        filename=filename,
        jd_keywords=extract_jd_keywords(jd) if is_jd_mode else [],
        sections=split_sections(text),
        section_order=detect_section_order(text),
        experience_bullets=experience_bullets,
        project_bullets=project_bullets,
        text_bullet_lines=text_bullet_lines,
        latest_year=max(years) if years else None,
    )
