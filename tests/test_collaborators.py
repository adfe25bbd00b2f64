import io
import json
import sys
import unittest
from pathlib import Path

import httpx
from docx import Document

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.pipeline import ProjectAction, ProjectModification, RoleCategory  # noqa: E402
from app.schemas.resume import Project, ResumeData, ResumeSection, SkillGroup, WorkExperience  # noqa: E402
from app.services.bullet_rewriter import (  # noqa: E402
    RewriteContext,
    RewriterError,
    RuleBasedBulletRewriter,
    parse_rewrite_payload,
    parse_summary_payload,
    polish_bullet,
)
from app.services.project_lookup import (  # noqa: E402
    PROJECT_CATALOG,
    CatalogProjectLookup,
    GitHubProjectLookup,
    classify_role,
)
from app.services.resume_edits import (  # noqa: E402
    ADDED_SKILLS_CATEGORY,
    apply_project_modifications,
    fit_summary_length,
    integrate_keywords,
    merge_sections,
    normalize_bullets,
    project_alignment,
    replace_bullets,
)
from app.services.resume_parser import PlainTextResumeParser, ResumeParseError  # noqa: E402

RESUME = ResumeData(
    name="Jane Smith",
    email="jane@example.com",
    work_experience=[
        WorkExperience(
            role="Backend Engineer",
            company="Acme Corp",
            year="2020 - Present",
            bullets=["- responsible for the payments service.", "built dashboards"],
        )
    ],
    projects=[Project(title="Order Tracker", bullets=["tracks orders"], tech_stack=["Python", "FastAPI"])],
    skills=[SkillGroup(category="Languages", items=["Python", "SQL"])],
)

RESUME_TEXT = """Jane Smith
jane@example.com | +1 555 123 4567

SUMMARY
Backend engineer building Python services.

SKILLS
Python, SQL

EXPERIENCE
Backend Engineer | Acme Corp | 2020 - Present
- Built Python services handling 2M requests per day
"""


class RewritePayloadTests(unittest.TestCase):
    def test_valid_payload_is_normalized(self):
        raw = json.dumps({"bullets": ["  Built   APIs ", "Led the team"]})
        self.assertEqual(parse_rewrite_payload(raw, 2), ["Built APIs", "Led the team"])

    def test_rejects_malformed_json(self):
        for raw in ("not json", None):
            with self.assertRaises(RewriterError) as ctx:
                parse_rewrite_payload(raw, 1)
            self.assertEqual(ctx.exception.code, "invalid_json")

    def test_rejects_wrong_shape_or_count(self):
        for raw, count in (
            (json.dumps({"bullets": "Built APIs"}), 1),
            (json.dumps({"items": ["Built APIs"]}), 1),
            (json.dumps({"bullets": ["Built APIs"]}), 2),
            (json.dumps({"bullets": ["Built APIs", "   "]}), 2),
        ):
            with self.assertRaises(RewriterError) as ctx:
                parse_rewrite_payload(raw, count)
            self.assertEqual(ctx.exception.code, "invalid_schema")

    def test_summary_payload(self):
        self.assertEqual(parse_summary_payload('{"summary": " Backend  engineer. "}'), "Backend engineer.")
        with self.assertRaises(RewriterError) as ctx:
            parse_summary_payload('{"summary": ""}')
        self.assertEqual(ctx.exception.code, "invalid_schema")


class RuleBasedRewriterTests(unittest.IsolatedAsyncioTestCase):
    def test_polish_bullet(self):
        self.assertEqual(polish_bullet("- responsible for the payments service."), "Led the payments service")
        self.assertEqual(polish_bullet("worked on search , ranking"), "Developed search, ranking")
        self.assertEqual(polish_bullet("Shipped v2 of the mobile app"), "Shipped v2 of the mobile app")

    async def test_rewrite_keeps_count_and_order(self):
        rewriter = RuleBasedBulletRewriter()
        bullets = ["helped with onboarding flows", "used Redis for caching", "Designed the API schema"]
        rewritten = await rewriter.rewrite_bullets(bullets, context=RewriteContext(section="work_experience"))
        self.assertEqual(
            rewritten,
            ["Collaborated on onboarding flows", "Implemented Redis for caching", "Designed the API schema"],
        )

    async def test_summary_mentions_role_and_skills(self):
        summary = await RuleBasedBulletRewriter().write_summary(
            RESUME, job_description=None, target_role="Platform Engineer"
        )
        self.assertTrue(summary.startswith("Platform Engineer with hands-on experience"))
        self.assertIn("Python, SQL", summary)
        self.assertIn("Backend Engineer at Acme Corp", summary)


class ProjectLookupTests(unittest.IsolatedAsyncioTestCase):
    def test_classify_role(self):
        cases = [
            ("Android Developer", None, RoleCategory.MOBILE),
            ("Data Scientist", None, RoleCategory.DATA),
            ("Full Stack Engineer", None, RoleCategory.FULLSTACK),
            ("Frontend Engineer", ["React"], RoleCategory.FRONTEND),
            ("Backend Engineer", ["Django"], RoleCategory.BACKEND),
            ("React developer", ["FastAPI"], RoleCategory.FULLSTACK),
            ("Firmware Engineer", None, RoleCategory.EMBEDDED),
            ("Software Engineer", ["MQTT"], RoleCategory.IOT),
            ("", None, RoleCategory.FULLSTACK),
        ]
        for role, stack, expected in cases:
            self.assertEqual(classify_role(role, stack), expected, role)

    def test_catalog_covers_every_category(self):
        for category in RoleCategory:
            self.assertTrue(PROJECT_CATALOG[category])

    async def test_catalog_lookup(self):
        suggestions = await CatalogProjectLookup().suggest_projects(["Django"], "Backend Engineer")
        self.assertEqual(suggestions, PROJECT_CATALOG[RoleCategory.BACKEND])
        self.assertTrue(all(item.source == "catalog" for item in suggestions))

    async def test_github_lookup_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["query"] = request.url.params["q"]
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json={
                    "items": [
                        {"full_name": "acme/api-kit", "html_url": "https://github.com/acme/api-kit", "description": "Kit"},
                        {"name": "solo", "html_url": "https://github.com/x/solo", "description": None},
                    ]
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            lookup = GitHubProjectLookup(client, api_url="https://github.test/", token="t0ken", timeout_s=1.0)
            suggestions = await lookup.suggest_projects(["Python", "FastAPI"], "Backend Engineer")

        self.assertEqual(seen["query"], "Python FastAPI stars:>100")
        self.assertEqual(seen["auth"], "Bearer t0ken")
        self.assertEqual([item.title for item in suggestions], ["acme/api-kit", "solo"])
        self.assertEqual(suggestions[1].description, "")
        self.assertTrue(all(item.source == "github" for item in suggestions))

    async def test_github_lookup_falls_back_to_catalog(self):
        responses = [httpx.Response(500, json={"message": "boom"}), httpx.Response(200, json={"items": []})]
        for response in responses:
            async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request, r=response: r)) as client:
                lookup = GitHubProjectLookup(client, api_url="https://github.test", token="", timeout_s=1.0)
                with self.assertLogs("app.services.project_lookup", level="WARNING"):
                    suggestions = await lookup.suggest_projects([], "Android Developer")
            self.assertEqual(suggestions, PROJECT_CATALOG[RoleCategory.MOBILE])


class ResumeParserTests(unittest.IsolatedAsyncioTestCase):
    async def test_parses_plain_text(self):
        parsed = await PlainTextResumeParser().parse(RESUME_TEXT.encode("utf-8"), filename="resume.txt")
        self.assertEqual(parsed.resume.email, "jane@example.com")
        self.assertEqual(parsed.resume.work_experience[0].company, "Acme Corp")
        self.assertIn(ResumeSection.EDUCATION, parsed.missing_sections)
        self.assertIn(ResumeSection.PROJECTS, parsed.missing_sections)
        self.assertAlmostEqual(parsed.parsing_confidence, 0.8)

    async def test_parses_docx_upload(self):
        document = Document()
        for line in ("Jane Smith", "jane@example.com", "SKILLS", "Python, SQL"):
            document.add_paragraph(line)
        buffer = io.BytesIO()
        document.save(buffer)

        parsed = await PlainTextResumeParser().parse(buffer.getvalue(), filename="Jane_Smith.docx")
        self.assertEqual(parsed.resume.email, "jane@example.com")
        self.assertEqual(parsed.resume.all_skills(), ["Python", "SQL"])

    async def test_rejects_unsupported_or_empty_input(self):
        parser = PlainTextResumeParser()
        cases = [
            (b"plain words", "resume.pdf", "file_format_error"),
            (b"plain words", "resume.docx", "file_format_error"),
            (b"\xd0\xcf\x11\xe0", "resume.doc", "file_format_error"),
            (b"%PDF-1.7", "resume.pdf", "parsing_failure"),
            (b"PK\x03\x04broken", "resume.docx", "parsing_failure"),
            (b"\xff\xfe\x00bad", "resume.txt", "file_format_error"),
            ("   \n  ", None, "parsing_failure"),
        ]
        for content, filename, code in cases:
            with self.assertRaises(ResumeParseError) as ctx:
                await parser.parse(content, filename=filename)
            self.assertEqual(ctx.exception.code, code)


class ResumeEditTests(unittest.TestCase):
    def test_merge_sections(self):
        merged, changes = merge_sections(
            RESUME,
            {"summary": "Backend engineer.", "skills": ["Docker", " "], "certifications": []},
        )
        self.assertEqual(merged.summary, "Backend engineer.")
        self.assertEqual(merged.skills, [SkillGroup(category="Skills", items=["Docker"])])
        self.assertEqual(changes, ["Added summary", "Added skills"])
        self.assertIsNone(RESUME.summary)

        with self.assertRaises(ValueError):
            merge_sections(RESUME, {"hobbies": ["chess"]})
        self.assertEqual(merge_sections(RESUME, {"summary": ""}), (RESUME, []))

    def test_project_modifications(self):
        added = Project(title="Rate Limiter", bullets=["Token bucket limiter"])
        updated, changes = apply_project_modifications(
            RESUME,
            [
                ProjectModification(action=ProjectAction.ADD, project=added),
                ProjectModification(action=ProjectAction.REMOVE, index=0),
            ],
        )
        self.assertEqual([project.title for project in updated.projects], ["Rate Limiter"])
        self.assertEqual(changes, ["Added project Rate Limiter", "Removed project Order Tracker"])

        with self.assertRaises(ValueError):
            apply_project_modifications(RESUME, [ProjectModification(action=ProjectAction.REPLACE, index=3, project=added)])
        with self.assertRaises(ValueError):
            apply_project_modifications(RESUME, [ProjectModification(action=ProjectAction.ADD)])

    def test_project_alignment(self):
        project = RESUME.projects[0]
        self.assertEqual(project_alignment(project, []), 0.0)
        self.assertEqual(project_alignment(project, ["python", "fastapi"]), 1.0)
        self.assertEqual(project_alignment(project, ["python", "kubernetes"]), 0.5)

    def test_replace_and_normalize_bullets(self):
        with self.assertRaises(ValueError):
            replace_bullets(RESUME, [], [])
        updated = replace_bullets(RESUME, [["a", "b"]], [["c"]])
        self.assertEqual(updated.all_bullets(), ["a", "b", "c"])

        normalized = normalize_bullets(RESUME)
        self.assertEqual(
            normalized.work_experience[0].bullets,
            ["Responsible for the payments service", "Built dashboards"],
        )
        self.assertEqual(normalized.projects[0].bullets, ["Tracks orders"])

    def test_integrate_keywords(self):
        updated, added = integrate_keywords(RESUME, ["Docker", "python", "teamwork", "Docker"])
        self.assertEqual(added, ["Docker"])
        self.assertEqual(updated.skills[-1], SkillGroup(category=ADDED_SKILLS_CATEGORY, items=["Docker"]))

        again, more = integrate_keywords(updated, ["Kubernetes"])
        self.assertEqual(more, ["Kubernetes"])
        self.assertEqual(again.skills[-1].items, ["Docker", "Kubernetes"])
        self.assertEqual(integrate_keywords(RESUME, []), (RESUME, []))

    def test_fit_summary_length(self):
        short = fit_summary_length("Backend engineer.", RESUME, target_role="Platform Engineer")
        self.assertGreaterEqual(len(short.split()), 40)
        self.assertLessEqual(len(short.split()), 60)

        long_text = " ".join(["word"] * 80)
        trimmed = fit_summary_length(long_text, RESUME)
        self.assertEqual(len(trimmed.split()), 60)
        self.assertTrue(trimmed.endswith("."))


if __name__ == "__main__":
    unittest.main()
