import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.scoring import (  # noqa: E402
    ConfidenceLevel,
    CriticalMetricKey,
    ParameterKey,
    RedFlagKind,
    TierKey,
)
from app.scoring.engine import (  # noqa: E402
    calculate_ats_score,
    calculate_score,
    get_confidence,
    get_interview_chance,
    get_match_band,
    get_match_quality,
    score_parameter,
)
from app.scoring.fresher import detect_fresher_role  # noqa: E402
from app.scoring.parameters import filename_score, resume_length_score  # noqa: E402
from app.scoring.text import round_half_up  # noqa: E402

RESUME = """Jane Smith
jane.smith@example.com | +1 555 123 4567 | linkedin.com/in/janesmith

SUMMARY
Backend engineer with five years of experience building Python services and data pipelines for SaaS products.

SKILLS
Languages: Python, SQL, JavaScript
Tools: Docker, PostgreSQL, Redis, FastAPI

EXPERIENCE
Backend Engineer | Acme Corp | Jan 2020 - Present
- Built REST APIs in Python and FastAPI serving 2M requests per day
- Reduced PostgreSQL query latency by 40% through indexing and caching with Redis
- Led migration of 12 services to Docker containers
Software Engineer | Beta Labs | Jun 2017 - Dec 2019
- Developed data pipelines processing 500GB of events daily
- Improved test coverage from 45% to 85% across core services

PROJECTS
Order Tracker | github.com/janesmith/order-tracker
- Designed a FastAPI service with PostgreSQL storage and background workers
Tech: Python, FastAPI, PostgreSQL

EDUCATION
B.Tech in Computer Science | State University | 2017

CERTIFICATIONS
- AWS Certified Developer
"""

BACKEND_JD = (
    "Senior Backend Engineer. Must have strong Python and FastAPI experience. "
    "Required: PostgreSQL, Redis and Docker. Experience with REST APIs and microservices. "
    "Nice to have: Kubernetes and AWS. 5+ years of experience building backend services."
)

FRESHER_RESUME = """Arjun Mehta
arjun.mehta@example.com | +91 98765 43210

EDUCATION
B.Tech in Computer Science | National Institute of Technology | 2024 | CGPA: 8.6/10

SKILLS
Python, SQL, HTML, CSS

PROJECTS
Library Portal
- Built a library search portal in Python used by 300 students
"""

FRESHER_JD = (
    "We are hiring an entry-level software developer. 0-1 years, freshers welcome. "
    "You will learn Python and build web features with our team."
)

MARKETING_RESUME = """Maria Lopez
maria.lopez@example.com | +1 555 987 6543

SUMMARY
Marketing coordinator focused on campaign planning and brand storytelling.

EXPERIENCE
Marketing Coordinator | Bright Media | 2019 - 2023
- Planned seasonal campaigns for regional retail clients
- Wrote newsletters and social posts for brand launches

EDUCATION
Bachelor of Arts in Communications | City College | 2019
"""

INFRA_JD = (
    "Platform Engineer. Must have hands-on AWS, Kubernetes and Terraform expertise. "
    "You will automate provisioning of production environments and own reliability for customer facing services."
)


class ScoringEngineTests(unittest.TestCase):
    def test_parameters_stay_within_bounds_and_sum_to_overall(self):
        cases = [
            (RESUME, None),
            (RESUME, BACKEND_JD),
            (FRESHER_RESUME, FRESHER_JD),
            (MARKETING_RESUME, INFRA_JD),
            ("", BACKEND_JD),
        ]
        for resume_text, jd in cases:
            score = calculate_ats_score(resume_text, job_description=jd, filename="jane_smith_resume.pdf")
            self.assertEqual(len(score.parameters), len(ParameterKey))
            for row in score.parameters:
                self.assertGreaterEqual(row.score, 0, row.key)
                self.assertLessEqual(row.score, row.max_score, row.key)
            self.assertEqual(score.overall_score, min(100, sum(row.score for row in score.parameters)))
            self.assertGreaterEqual(score.comprehensive.overall, 0)
            self.assertLessEqual(score.comprehensive.overall, 100)

    def test_scoring_is_deterministic(self):
        runs = [calculate_ats_score(RESUME, job_description=BACKEND_JD).model_dump() for _ in range(3)]
        self.assertEqual(runs[0], runs[1])
        self.assertEqual(runs[1], runs[2])

    def test_jd_mode_follows_description_length(self):
        self.assertFalse(calculate_score(RESUME, job_description="Python developer").is_jd_mode)
        self.assertTrue(calculate_score(RESUME, job_description=BACKEND_JD).is_jd_mode)

    def test_general_mode_uses_fallback_for_jd_metrics(self):
        score = calculate_score(RESUME)
        self.assertFalse(score.is_jd_mode)
        self.assertEqual(score.critical_metrics[CriticalMetricKey.JD_KEYWORDS_MATCH].percentage, 50)
        self.assertEqual(score.missing_keywords, [])
        self.assertIsNone(score.requirement_coverage)

    def test_fresher_job_does_not_penalize_missing_experience(self):
        score = calculate_score(FRESHER_RESUME, job_description=FRESHER_JD)
        self.assertTrue(score.is_fresher)
        experience = score.tier_scores[TierKey.EXPERIENCE]
        self.assertEqual(experience.weight, 8)
        self.assertGreaterEqual(experience.percentage, 70)
        self.assertEqual(score.tier_scores[TierKey.SKILLS_KEYWORDS].weight, 28)
        self.assertEqual(score.tier_scores[TierKey.EDUCATION].weight, 15)

    def test_mentioning_a_manager_keeps_fresher_weights(self):
        jd = (
            "Entry-level software engineer, 0-1 years, freshers welcome. "
            "You will report to the engineering manager and pair with a team lead."
        )
        self.assertTrue(detect_fresher_role(jd))
        score = calculate_score(FRESHER_RESUME, job_description=jd)
        self.assertTrue(score.is_fresher)
        self.assertEqual(score.tier_scores[TierKey.EXPERIENCE].weight, 8)

    def test_seniority_requirement_vetoes_fresher_keywords(self):
        vetoed = [
            "Senior backend engineer. Graduate degree preferred, Python and PostgreSQL daily.",
            "Graduate hiring for a senior engineer role working on payments infrastructure.",
            "Graduate program alumni welcome, but we need 3+ years as a team lead of backend squads.",
            "Entry-level friendly team, but this posting needs 4 years of experience with Kubernetes.",
        ]
        for jd in vetoed:
            self.assertFalse(detect_fresher_role(jd), jd)

    def test_experienced_job_uses_standard_weights(self):
        score = calculate_score(RESUME, job_description=BACKEND_JD)
        self.assertFalse(score.is_fresher)
        self.assertEqual(score.tier_scores[TierKey.EXPERIENCE].weight, 25)
        self.assertEqual(score.tier_scores[TierKey.SKILLS_KEYWORDS].weight, 25)
        self.assertEqual(score.tier_scores[TierKey.EDUCATION].weight, 6)
        self.assertEqual(sum(tier.weight for tier in score.tier_scores.values()), 100)

    def test_domain_mismatch_caps_skills_alignment(self):
        score = calculate_ats_score(MARKETING_RESUME, job_description=INFRA_JD)
        alignment = score.comprehensive.critical_metrics[CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT]
        self.assertLess(alignment.percentage, 20)
        self.assertLessEqual(score.parameter(ParameterKey.SKILLS_ALIGNMENT).score, 4)
        self.assertLessEqual(score.parameter(ParameterKey.KEYWORD_MATCH).score, 10)

    def test_matching_resume_scores_higher_than_mismatch(self):
        matching = calculate_ats_score(RESUME, job_description=BACKEND_JD)
        mismatch = calculate_ats_score(MARKETING_RESUME, job_description=BACKEND_JD)
        self.assertGreater(matching.overall_score, mismatch.overall_score)
        self.assertIsNotNone(matching.comprehensive.requirement_coverage)

    def test_skipping_hybrid_matching_leaves_coverage_empty(self):
        score = calculate_score(RESUME, job_description=BACKEND_JD, use_hybrid=False)
        self.assertIsNone(score.requirement_coverage)

    def test_tier_contributions_add_up(self):
        score = calculate_score(RESUME, job_description=BACKEND_JD)
        for tier in score.tier_scores.values():
            self.assertAlmostEqual(tier.weighted_contribution, round(tier.percentage * tier.weight / 100, 2))
            self.assertLessEqual(len(tier.top_issues), 5)
        self.assertEqual([tier.tier_number for tier in score.tier_scores.values()], list(range(1, 12)))

    def test_keyword_stuffing_is_flagged(self):
        stuffed = RESUME + "\nSKILLS\n" + " ".join(["synergy"] * 16)
        score = calculate_score(stuffed)
        kinds = {flag.kind for flag in score.red_flags}
        self.assertIn(RedFlagKind.KEYWORD_STUFFING, kinds)
        self.assertLess(score.red_flag_penalty, 0)

    def test_score_parameter_matches_full_score(self):
        full = calculate_ats_score(RESUME, job_description=BACKEND_JD, filename="resume.pdf")
        for key in (ParameterKey.KEYWORD_MATCH, ParameterKey.GRAMMAR, ParameterKey.FILENAME_QUALITY):
            value = score_parameter(key, RESUME, job_description=BACKEND_JD, filename="resume.pdf")
            self.assertEqual(value, full.parameter(key).score)

    def test_label_lookups(self):
        self.assertEqual(get_match_quality(85), "Excellent")
        self.assertEqual(get_match_quality(84), "Good")
        self.assertEqual(get_match_quality(0), "Inadequate")
        self.assertEqual(get_interview_chance(95), "90%+")
        self.assertEqual(get_interview_chance(10), "1-2%")
        self.assertEqual(get_match_band(90), ("Excellent Match", "85-100%"))
        self.assertEqual(get_match_band(5)[0], "Minimal Match")
        self.assertEqual(get_confidence(75), ConfidenceLevel.HIGH)
        self.assertEqual(get_confidence(60), ConfidenceLevel.MEDIUM)
        self.assertEqual(get_confidence(59), ConfidenceLevel.LOW)

    def test_general_primitives(self):
        self.assertEqual(filename_score(None), 1)
        self.assertEqual(filename_score("jane_smith_resume.pdf"), 2)
        self.assertEqual(resume_length_score("x" * 2000), 2)
        self.assertEqual(resume_length_score("x" * 900), 1)
        self.assertEqual(resume_length_score("x" * 100), 0)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(-2.5), -3)


if __name__ == "__main__":
    unittest.main()
