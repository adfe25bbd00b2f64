from __future__ import annotations

import re

from app.schemas.resume import (
    Education,
    Project,
    ResumeData,
    ResumeSection,
    SkillGroup,
    WorkExperience,
)
from app.scoring.text import (
    EMAIL_RE,
    GITHUB_RE,
    LINKEDIN_RE,
    PHONE_RE,
    YEAR_RE,
    is_bullet_like,
    normalize_line,
    strip_bullet_prefix,
)

_HEADING_PATTERNS: tuple[tuple[ResumeSection, re.Pattern[str]], ...] = (
    (
        ResumeSection.SUMMARY,
        re.compile(
            r"(professional\s+)?(summary|profile)|career\s+objective|objective|about\s+me",
            re.IGNORECASE,
        ),
    ),
    (
        ResumeSection.SKILLS,
        re.compile(
            r"(technical\s+|key\s+|core\s+)?skills(\s+&\s+\w+)?|core\s+competencies|technologies|tools\s*(&|and)\s*technologies",
            re.IGNORECASE,
        ),
    ),
    (
        ResumeSection.WORK_EXPERIENCE,
        re.compile(
            r"(work\s+|professional\s+|relevant\s+)?experience|employment(\s+history)?|work\s+history|internships?",
            re.IGNORECASE,
        ),
    ),
    (
        ResumeSection.PROJECTS,
        re.compile(r"(personal\s+|academic\s+|key\s+|selected\s+)?projects", re.IGNORECASE),
    ),
    (
        ResumeSection.EDUCATION,
        re.compile(r"education(al\s+background)?|academic\s+background|qualifications", re.IGNORECASE),
    ),
    (
        ResumeSection.CERTIFICATIONS,
        re.compile(r"certifications?(\s+&\s+\w+)?|licenses?(\s+&\s+certifications)?|courses", re.IGNORECASE),
    ),
    (
        ResumeSection.ADDITIONAL,
        re.compile(
            r"achievements|awards(\s+&\s+\w+)?|honou?rs|publications|languages|interests|volunteer(ing)?|"
            r"extra[- ]?curricular(\s+activities)?|activities|additional(\s+information)?",
            re.IGNORECASE,
        ),
    ),
)

# Standard order a recruiter expects.
EXPECTED_SECTION_ORDER: tuple[ResumeSection, ...] = tuple(ResumeSection)

_DEGREE_RE = re.compile(
    r"\b(b\.?\s?tech|m\.?\s?tech|b\.?\s?e\b|m\.?\s?e\b|b\.?\s?sc|m\.?\s?sc|bachelor|master|ph\.?\s?d|mba|bca|mca|"
    r"b\.?\s?com|diploma|associate|degree|b\.?a\b|m\.?a\b|b\.?s\b|m\.?s\b)",
    re.IGNORECASE,
)
_SCHOOL_RE = re.compile(r"\b(university|college|institute|school|academy|iit|nit)\b", re.IGNORECASE)
_CGPA_RE = re.compile(r"\b(?:c?gpa|cpi|percentage)\s*[:\-]?\s*([\d.]+(?:\s*/\s*[\d.]+)?%?)", re.IGNORECASE)
_FIELD_RE = re.compile(r"\b(?:in|of)\s+([A-Z][A-Za-z&\s]{2,60}?)(?=\s*(?:\||,|\(|$|\d))")
_DATE_RANGE_RE = re.compile(
    r"((?:(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+)?(?:19|20)\d{2}|\d{1,2}/(?:19|20)\d{2})"
    r"(?:\s*(?:-|–|—|to)\s*((?:(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?\s+)?(?:19|20)\d{2}"
    r"|\d{1,2}/(?:19|20)\d{2}|present|current|now))?",
    re.IGNORECASE,
)
_TECH_LINE_RE = re.compile(r"^(?:tech(?:nologies)?|tech\s+stack|stack|tools|built\s+with)\s*[:\-]\s*(.+)$", re.IGNORECASE)
_HEADER_SPLIT_RE = re.compile(r"\s*(?:\||•|·|\s-\s|\s–\s|\s—\s|,\s)\s*")


def detect_heading(line: str) -> ResumeSection | None:
    candidate = normalize_line(line).rstrip(":").strip()
    if not candidate or len(candidate.split()) > 5:
        return None
    for section, pattern in _HEADING_PATTERNS:
        if pattern.fullmatch(candidate):
            return section
    return None


def is_heading_line(line: str) -> bool:
    """Known heading words, or a short ALL-CAPS line."""
    if detect_heading(line) is not None:
        return True
    candidate = normalize_line(line).rstrip(":")
    letters = [ch for ch in candidate if ch.isalpha()]
    return bool(letters) and candidate.isupper() and len(candidate.split()) <= 4 and len(candidate) < 40


def split_sections(text: str) -> dict[ResumeSection, list[str]]:
    """Group non-empty lines by the heading they sit under. Text before any heading is contact."""
    sections: dict[ResumeSection, list[str]] = {ResumeSection.CONTACT: []}
    current = ResumeSection.CONTACT
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        heading = detect_heading(line)
        if heading is not None:
            current = heading
            sections.setdefault(current, [])
            continue
        sections.setdefault(current, []).append(line)
    return sections


def detect_section_order(text: str) -> list[ResumeSection]:
    order: list[ResumeSection] = []
    for raw_line in (text or "").splitlines():
        heading = detect_heading(raw_line)
        if heading is not None and heading not in order:
            order.append(heading)
    return order


def extract_date_text(line: str) -> str:
    match = _DATE_RANGE_RE.search(line)
    return match.group(0).strip() if match else ""


def _split_header(line: str) -> tuple[list[str], str]:
    date_text = extract_date_text(line)
    remainder = line.replace(date_text, " ") if date_text else line
    remainder = re.sub(r"[()\[\]]", " ", remainder)
    parts = [part.strip(" |,-–—") for part in _HEADER_SPLIT_RE.split(remainder)]
    return [part for part in parts if part], date_text


def _parse_role_header(line: str) -> tuple[str, str, str]:
    parts, date_text = _split_header(line)
    if len(parts) == 1 and " at " in parts[0]:
        role, company = parts[0].split(" at ", 1)
        return role.strip(), company.strip(), date_text
    role = parts[0] if parts else ""
    company = parts[1] if len(parts) > 1 else ""
    return role, company, date_text


def _parse_work_experience(lines: list[str]) -> list[WorkExperience]:
    jobs: list[dict] = []
    current: dict | None = None
    for line in lines:
        if is_bullet_like(line):
            if current is None:
                current = {"role": "", "company": "", "year": "", "bullets": []}
                jobs.append(current)
            current["bullets"].append(strip_bullet_prefix(line))
            continue

        role, company, date_text = _parse_role_header(line)
        if current is not None and not current["bullets"] and (not current["company"] or not current["year"]):
            if not current["company"] and role and not date_text:
                current["company"] = role
                continue
            if not current["year"] and date_text:
                current["year"] = date_text
                if not current["company"] and role:
                    current["company"] = role
                continue
        if current is not None and current["role"] and len(line) >= 60 and not date_text:
            current["bullets"].append(normalize_line(line))
            continue

        current = {"role": role, "company": company, "year": date_text, "bullets": []}
        jobs.append(current)

    return [
        WorkExperience(role=job["role"], company=job["company"], year=job["year"], bullets=job["bullets"])
        for job in jobs
        if job["role"] or job["bullets"]
    ]


def _parse_projects(lines: list[str]) -> list[Project]:
    projects: list[dict] = []
    current: dict | None = None
    for line in lines:
        tech_match = _TECH_LINE_RE.match(strip_bullet_prefix(line))
        if tech_match and current is not None:
            current["tech_stack"].extend(
                item.strip() for item in re.split(r"[,|;/]", tech_match.group(1)) if item.strip()
            )
            continue
        if is_bullet_like(line):
            if current is None:
                current = {"title": "Project", "bullets": [], "github_url": None, "tech_stack": []}
                projects.append(current)
            current["bullets"].append(strip_bullet_prefix(line))
            continue
        if current is not None and len(line) >= 60:
            current["bullets"].append(normalize_line(line))
            continue

        link = GITHUB_RE.search(line)
        title = GITHUB_RE.sub(" ", line) if link else line
        title = normalize_line(title).strip(" |,-–—")
        current = {
            "title": title or "Project",
            "bullets": [],
            "github_url": link.group(0) if link else None,
            "tech_stack": [],
        }
        projects.append(current)

    return [
        Project(
            title=project["title"],
            bullets=project["bullets"],
            github_url=project["github_url"],
            tech_stack=project["tech_stack"],
        )
        for project in projects
    ]


def _parse_education(lines: list[str]) -> list[Education]:
    entries: list[dict] = []
    current: dict | None = None
    for line in lines:
        text = strip_bullet_prefix(line)
        parts, _ = _split_header(text)
        degree = next((part for part in parts if _DEGREE_RE.search(part)), "")
        school = next((part for part in parts if _SCHOOL_RE.search(part)), "")
        year_match = YEAR_RE.findall(text)
        cgpa_match = _CGPA_RE.search(text)

        starts_new = current is None or (degree and current["degree"]) or (school and current["school"] and not degree)
        if starts_new:
            current = {"degree": "", "school": "", "year": "", "cgpa": None, "field": None}
            entries.append(current)
        if degree and not current["degree"]:
            current["degree"] = degree
            field_match = _FIELD_RE.search(degree)
            if field_match:
                current["field"] = field_match.group(1).strip()
        if school and not current["school"]:
            current["school"] = school
        if not degree and not school and not current["school"] and parts and not year_match:
            current["school"] = parts[0]
        if year_match and not current["year"]:
            current["year"] = year_match[-1]
        if cgpa_match and not current["cgpa"]:
            current["cgpa"] = cgpa_match.group(1)

    return [
        Education(
            degree=entry["degree"],
            school=entry["school"],
            year=entry["year"],
            cgpa=entry["cgpa"],
            field=entry["field"],
        )
        for entry in entries
        if entry["degree"] or entry["school"]
    ]


def _parse_skills(lines: list[str]) -> list[SkillGroup]:
    groups: list[SkillGroup] = []
    loose: list[str] = []
    for line in lines:
        text = strip_bullet_prefix(line)
        if ":" in text:
            category, _, items = text.partition(":")
            values = [item.strip() for item in re.split(r"[,|;•]", items) if item.strip()]
            if values:
                groups.append(SkillGroup(category=category.strip() or "Skills", items=values))
            continue
        loose.extend(item.strip() for item in re.split(r"[,|;•]", text) if item.strip())
    if loose:
        groups.append(SkillGroup(category="Skills", items=loose))
    return groups


def _parse_contact(lines: list[str], full_text: str) -> dict[str, str | None]:
    contact_text = "\n".join(lines)
    email = EMAIL_RE.search(contact_text) or EMAIL_RE.search(full_text)
    phone = PHONE_RE.search(contact_text)
    linkedin = LINKEDIN_RE.search(contact_text) or LINKEDIN_RE.search(full_text)
    github = GITHUB_RE.search(contact_text)

    name = ""
    for line in lines:
        if EMAIL_RE.search(line) or PHONE_RE.search(line) or "http" in line.lower() or "|" in line:
            continue
        words = line.split()
        if 1 < len(words) <= 5 and all(word.replace(".", "").replace("-", "").isalpha() for word in words):
            name = normalize_line(line)
            break

    return {
        "name": name,
        "email": email.group(0) if email else None,
        "phone": normalize_line(phone.group(0)) if phone else None,
        "linkedin": linkedin.group(0) if linkedin else None,
        "github": github.group(0) if github else None,
    }


def parse_resume_text(text: str) -> ResumeData:
    """Heuristic plain-text to ResumeData conversion. Never raises on odd input."""
    sections = split_sections(text)
    contact = _parse_contact(sections.get(ResumeSection.CONTACT, []), text or "")
    summary_lines = sections.get(ResumeSection.SUMMARY, [])
    summary = normalize_line(" ".join(strip_bullet_prefix(line) for line in summary_lines)) or None

    return ResumeData(
        name=contact["name"] or "",
        email=contact["email"],
        phone=contact["phone"],
        linkedin=contact["linkedin"],
        github=contact["github"],
        summary=summary,
        education=_parse_education(sections.get(ResumeSection.EDUCATION, [])),
        work_experience=_parse_work_experience(sections.get(ResumeSection.WORK_EXPERIENCE, [])),
        projects=_parse_projects(sections.get(ResumeSection.PROJECTS, [])),
        skills=_parse_skills(sections.get(ResumeSection.SKILLS, [])),
        certifications=[strip_bullet_prefix(line) for line in sections.get(ResumeSection.CERTIFICATIONS, [])],
        achievements=[strip_bullet_prefix(line) for line in sections.get(ResumeSection.ADDITIONAL, [])],
        parsed_text=text,
    )


def resume_data_to_text(resume: ResumeData) -> str:
    lines: list[str] = []
    if resume.name:
        lines.append(resume.name)
    contact = [value for value in (resume.email, resume.phone, resume.linkedin, resume.github, resume.location) if value]
    if contact:
        lines.append(" | ".join(contact))

    summary = resume.summary or resume.career_objective
    if summary:
        lines.extend(["", "SUMMARY", summary])

    if resume.skills:
        lines.extend(["", "SKILLS"])
        for group in resume.skills:
            if group.items:
                lines.append(f"{group.category}: {', '.join(group.items)}")

    if resume.work_experience:
        lines.extend(["", "EXPERIENCE"])
        for job in resume.work_experience:
            header = " | ".join(part for part in (job.role, job.company, job.year) if part)
            if header:
                lines.append(header)
            lines.extend(f"- {bullet}" for bullet in job.bullets if bullet.strip())

    if resume.projects:
        lines.extend(["", "PROJECTS"])
        for project in resume.projects:
            lines.append(" | ".join(part for part in (project.title, project.github_url) if part))
            if project.description:
                lines.append(f"- {project.description}")
            if project.tech_stack:
                lines.append(f"Tech: {', '.join(project.tech_stack)}")
            lines.extend(f"- {bullet}" for bullet in project.bullets if bullet.strip())

    if resume.education:
        lines.extend(["", "EDUCATION"])
        for entry in resume.education:
            degree = entry.degree
            if entry.field and entry.field.lower() not in degree.lower():
                degree = f"{degree} in {entry.field}" if degree else entry.field
            parts = [degree, entry.school, entry.year]
            if entry.cgpa:
                parts.append(f"CGPA: {entry.cgpa}")
            lines.append(" | ".join(part for part in parts if part))

    certifications = resume.certification_titles()
    if certifications:
        lines.extend(["", "CERTIFICATIONS"])
        lines.extend(f"- {item}" for item in certifications)

    if resume.achievements:
        lines.extend(["", "ACHIEVEMENTS"])
        lines.extend(f"- {item}" for item in resume.achievements if item.strip())

    return "\n".join(lines).strip()


def identify_missing_sections(resume: ResumeData) -> list[ResumeSection]:
    missing: list[ResumeSection] = []
    if not (resume.summary or resume.career_objective or "").strip():
        missing.append(ResumeSection.SUMMARY)
    if not resume.all_skills():
        missing.append(ResumeSection.SKILLS)
    if not resume.education:
        missing.append(ResumeSection.EDUCATION)
    if not resume.work_experience:
        missing.append(ResumeSection.WORK_EXPERIENCE)
    if not resume.projects:
        missing.append(ResumeSection.PROJECTS)
    if not resume.certification_titles():
        missing.append(ResumeSection.CERTIFICATIONS)
    return missing
