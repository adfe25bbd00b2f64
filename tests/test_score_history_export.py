import csv
import io
import json
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.scoring import ParameterKey  # noqa: E402
from app.scoring.engine import calculate_ats_score  # noqa: E402
from app.scoring.export import to_csv, to_json, to_markdown  # noqa: E402
from app.scoring.history import ScoreHistory  # noqa: E402
from app.services.gap_analyzer import analyze_gaps  # noqa: E402

RESUME = """Jane Smith
jane.smith@example.com | +1 555 123 4567

SUMMARY
Backend engineer building Python services for logistics products.

SKILLS
Python, PostgreSQL, Docker

EXPERIENCE
Backend Engineer | Acme Corp | 2020 - Present
- Built Python services handling 2M requests per day
- Reduced PostgreSQL query latency by 40%

EDUCATION
B.Sc. Computer Science | State University | 2019
"""

JD = (
    "Backend engineer. Must have Python, PostgreSQL and Kubernetes experience. "
    "Terraform is a plus. 3+ years building distributed services."
)

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


class ScoreHistoryTests(unittest.TestCase):
    def setUp(self):
        self.score = calculate_ats_score(RESUME, job_description=JD).comprehensive

    def _with_overall(self, overall: int):
        return self.score.model_copy(update={"overall": overall})

    def test_ring_buffer_drops_oldest(self):
        history = ScoreHistory(max_entries=3)
        for index, overall in enumerate([40, 55, 60, 72]):
            history.record(self._with_overall(overall), step=index + 1, timestamp=T0 + timedelta(minutes=index))
        self.assertEqual(len(history), 3)
        self.assertEqual([entry.overall for entry in history.entries()], [55, 60, 72])
        self.assertEqual(history.latest().step, 4)
        self.assertEqual(history.improvement(), 17)

    def test_best_keeps_first_of_ties(self):
        history = ScoreHistory(max_entries=5)
        history.record(self._with_overall(70), step=2)
        history.record(self._with_overall(70), step=5)
        history.record(self._with_overall(65), step=7)
        self.assertEqual(history.best().step, 2)

    def test_empty_history(self):
        history = ScoreHistory()
        self.assertEqual(history.max_entries, 50)
        self.assertIsNone(history.latest())
        self.assertIsNone(history.best())
        self.assertEqual(history.improvement(), 0)
        history.record(self.score)
        history.clear()
        self.assertEqual(len(history), 0)
        with self.assertRaises(ValueError):
            ScoreHistory(max_entries=0)


class ExportTests(unittest.TestCase):
    def setUp(self):
        self.score = calculate_ats_score(RESUME, job_description=JD, filename="jane_smith_resume.pdf")

    def test_json_export(self):
        payload = json.loads(to_json(self.score))
        self.assertEqual(payload["overall_score"], self.score.overall_score)
        self.assertEqual(len(payload["parameters"]), len(ParameterKey))

    def test_csv_export(self):
        rows = list(csv.reader(io.StringIO(to_csv(self.score))))
        self.assertEqual(rows[0], ["parameter", "score", "max_score", "percentage"])
        self.assertEqual(len(rows), len(ParameterKey) + 2)
        self.assertEqual(rows[1][0], ParameterKey.KEYWORD_MATCH.value)
        self.assertEqual(rows[-1][:3], ["overall", str(self.score.overall_score), "100"])

    def test_markdown_export(self):
        gaps = analyze_gaps(None, RESUME, JD, score=self.score.comprehensive)
        report = to_markdown(self.score, gaps)
        self.assertTrue(report.startswith("# ATS Score Report"))
        self.assertIn(f"**Overall score:** {self.score.overall_score}/100", report)
        self.assertIn("## Parameters", report)
        self.assertIn("## Tier breakdown", report)
        if gaps.prioritized_improvements:
            self.assertIn("## Top improvements", report)
        self.assertNotIn("## Top improvements", to_markdown(self.score))


if __name__ == "__main__":
    unittest.main()
