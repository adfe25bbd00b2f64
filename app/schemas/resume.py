from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ResumeSection(str, Enum):
    CONTACT = "contact"
    SUMMARY = "summary"
    SKILLS = "skills"
    WORK_EXPERIENCE = "work_experience"
    PROJECTS = "projects"
    EDUCATION = "education"
    CERTIFICATIONS = "certifications"
    ADDITIONAL = "additional"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Education(_Frozen):
    degree: str = ""
    school: str = ""
    year: str = ""
    cgpa: str | None = None
    location: str | None = None
    field: str | None = None


class WorkExperience(_Frozen):
    role: str = ""
    company: str = ""
    year: str = ""
    bullets: list[str] = Field(default_factory=list)
    location: str | None = None


class Project(_Frozen):
    title: str = ""
    bullets: list[str] = Field(default_factory=list)
    github_url: str | None = None
    description: str | None = None
    tech_stack: list[str] = Field(default_factory=list)


class SkillGroup(_Frozen):
    category: str = "Skills"
    items: list[str] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


class Certification(_Frozen):
    title: str
    description: str | None = None


class ResumeData(_Frozen):
    """Immutable resume snapshot. Changes are made by building a new instance."""

    name: str = ""
    phone: str | None = None
    email: str | None = None
    linkedin: str | None = None
    github: str | None = None
    location: str | None = None
    target_role: str | None = None
    summary: str | None = None
    career_objective: str | None = None
    education: list[Education] = Field(default_factory=list)
    work_experience: list[WorkExperience] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    skills: list[SkillGroup] = Field(default_factory=list)
    certifications: list[str | Certification] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    parsed_text: str | None = None

    def certification_titles(self) -> list[str]:
        titles: list[str] = []
        for item in self.certifications:
            if isinstance(item, Certification):
                text = item.title if not item.description else f"{item.title} {item.description}"
            else:
                text = item
            if text and text.strip():
                titles.append(text.strip())
        return titles

    def all_skills(self) -> list[str]:
        return [skill for group in self.skills for skill in group.items if skill.strip()]

    def all_bullets(self) -> list[str]:
        bullets = [bullet for job in self.work_experience for bullet in job.bullets]
        bullets.extend(bullet for project in self.projects for bullet in project.bullets)
        return [bullet for bullet in bullets if bullet.strip()]


class ParsedResume(BaseModel):
    resume: ResumeData
    missing_sections: list[ResumeSection] = Field(default_factory=list)
    parsing_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
