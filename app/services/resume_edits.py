from __future__ import annotations

from typing import Any

from app.schemas.pipeline import ProjectAction, ProjectModification
from app.schemas.resume import Project, ResumeData, ResumeSection, SkillGroup
from app.scoring.keywords import TECH_TERMS, TECH_VOCABULARY
from app.scoring.text import contains_term, normalize_line, strip_bullet_prefix

ADDED_SKILLS_CATEGORY = "Additional Skills"

_MERGEABLE_SECTIONS: dict[str, str] = {
    ResumeSection.SUMMARY.value: "summary",
    ResumeSection.SKILLS.value: "skills",
    ResumeSection.WORK_EXPERIENCE.value: "work_experience",
    ResumeSection.PROJECTS.value: "projects",
    ResumeSection.EDUCATION.value: "education",
    ResumeSection.CERTIFICATIONS.value: "certifications",
    "achievements": "achievements",
    "career_objective": "career_objective",
    "target_role": "target_role",
}


def _normalize_skills(value: Any) -> Any:
    # A flat list of names becomes one group.
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return [{"category": "Skills", "items": [item.strip() for item in value if item.strip()]}]
    return value


def merge_sections(resume: ResumeData, sections: dict[str, Any]) -> tuple[ResumeData, list[str]]:
    """Return a new resume with user-supplied sections merged in.

    Raises ValueError (pydantic's ValidationError included) for unknown or malformed sections.
    """
    unknown = sorted(set(sections) - set(_MERGEABLE_SECTIONS))
    if unknown:
        raise ValueError(f"Invalid resume sections: {', '.join(unknown)}")

    updates: dict[str, Any] = {}
    changes: list[str] = []
    for name, value in sections.items():
        if value in (None, "", [], {}):
            continue
        field_name = _MERGEABLE_SECTIONS[name]
        updates[field_name] = _normalize_skills(value) if field_name == "skills" else value
        changes.append(f"Added {name.replace('_', ' ')}")

    if not updates:
        return resume, []
    merged = ResumeData.model_validate({**resume.model_dump(), **updates})
    return merged, changes


def apply_project_modifications(
    resume: ResumeData,
    modifications: list[ProjectModification],
) -> tuple[ResumeData, list[str]]:
    projects = list(resume.projects)
    changes: list[str] = []
    for modification in modifications:
        if modification.action == ProjectAction.ADD:
            if modification.project is None:
                raise ValueError("Invalid project modification: 'add' needs a project")
            projects.append(modification.project)
            changes.append(f"Added project {modification.project.title}")
            continue

        index = modification.index
        if index is None or index >= len(projects):
            raise ValueError(f"Invalid project index {index} for {len(projects)} project(s)")
        if modification.action == ProjectAction.REPLACE:
            if modification.project is None:
                raise ValueError("Invalid project modification: 'replace' needs a project")
            changes.append(f"Replaced project {projects[index].title} with {modification.project.title}")
            projects[index] = modification.project
        else:
            changes.append(f"Removed project {projects[index].title}")
            del projects[index]
    return resume.model_copy(update={"projects": projects}), changes


def project_alignment(project: Project, jd_keywords: list[str]) -> float:
    if not jd_keywords:
        return 0.0
    text = " ".join([project.title, project.description or "", *project.bullets, *project.tech_stack])
    found = sum(1 for keyword in jd_keywords if contains_term(text, keyword))
    return round(min(1.0, found / min(len(jd_keywords), 5)), 2)


def replace_bullets(
    resume: ResumeData,
    experience_bullets: list[list[str]],
    project_bullets: list[list[str]],
) -> ResumeData:
    if len(experience_bullets) != len(resume.work_experience) or len(project_bullets) != len(resume.projects):
        raise ValueError("Invalid bullet update: entry counts do not match the resume")
    jobs = [
        job.model_copy(update={"bullets": bullets})
        for job, bullets in zip(resume.work_experience, experience_bullets)
    ]
    projects = [
        project.model_copy(update={"bullets": bullets})
        for project, bullets in zip(resume.projects, project_bullets)
    ]
    return resume.model_copy(update={"work_experience": jobs, "projects": projects})


def normalize_bullet_text(bullet: str) -> str:
    text = normalize_line(strip_bullet_prefix(bullet)).rstrip(" .;,")
    return text[0].upper() + text[1:] if text else text


def normalize_bullets(resume: ResumeData) -> ResumeData:
    def _clean(bullets: list[str]) -> list[str]:
        return [text for text in (normalize_bullet_text(bullet) for bullet in bullets) if text]

    return resume.model_copy(
        update={
            "work_experience": [job.model_copy(update={"bullets": _clean(job.bullets)}) for job in resume.work_experience],
            "projects": [project.model_copy(update={"bullets": _clean(project.bullets)}) for project in resume.projects],
        }
    )


def is_technical_keyword(keyword: str) -> bool:
    lowered = keyword.lower()
    return lowered in TECH_VOCABULARY or lowered in TECH_TERMS


def integrate_keywords(resume: ResumeData, keywords: list[str]) -> tuple[ResumeData, list[str]]:
    """Add technical keywords the resume never mentions to an 'Additional Skills' group."""
    existing = {skill.lower() for skill in resume.all_skills()}
    added = [
        keyword
        for keyword in keywords
        if is_technical_keyword(keyword) and keyword.lower() not in existing
    ]
    added = list(dict.fromkeys(added))
    if not added:
        return resume, []

    groups = list(resume.skills)
    for index, group in enumerate(groups):
        if group.category == ADDED_SKILLS_CATEGORY:
            groups[index] = group.model_copy(update={"items": [*group.items, *added]})
            break
    else:
        groups.append(SkillGroup(category=ADDED_SKILLS_CATEGORY, items=added))
    return resume.model_copy(update={"skills": groups}), added


def _summary_fillers(resume: ResumeData, target_role: str | None) -> list[str]:
    skills = resume.all_skills()[:4]
    role = target_role or resume.target_role or "the role"
    fillers = []
    if skills:
        fillers.append(f"Hands-on experience with {', '.join(skills)}.")
    fillers.extend(
        [
            f"Motivated to bring practical engineering skills to {role}.",
            "Known for delivering reliable, well-tested features on schedule.",
            "Comfortable owning work across the full development lifecycle, from design to deployment.",
            "Communicates clearly with teammates and stakeholders and values continuous learning.",
            "Focused on measurable results, clean code and steady improvement of existing systems.",
        ]
    )
    return fillers


def fit_summary_length(
    summary: str,
    resume: ResumeData,
    *,
    target_role: str | None = None,
    min_words: int = 40,
    max_words: int = 60,
) -> str:
    text = normalize_line(summary)
    for filler in _summary_fillers(resume, target_role):
        if len(text.split()) >= min_words:
            break
        text = f"{text} {filler}".strip()

    tokens = text.split()
    if len(tokens) > max_words:
        text = " ".join(tokens[:max_words]).rstrip(",;:") + "."
    return text
