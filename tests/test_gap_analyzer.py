import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.gaps import GapPriority  # noqa: E402
from app.schemas.scoring import (  # noqa: E402
    CRITICAL_METRIC_NAMES,
    TIER_NAMES,
    ComprehensiveScore,
    ConfidenceLevel,
    CriticalMetric,
    CriticalMetricKey,
    MetricStatus,
    TierKey,
    TierScore,
    tier_number,
)
from app.services.gap_analyzer import (  # noqa: E402
    analyze_gaps,
    build_big5_gaps,
    build_tier_gaps,
    gap_priority,
    get_improvement_summary,
    get_top_improvements,
    prioritize_improvements,
)

WEIGHTS = {
    TierKey.BASIC_STRUCTURE: 8,
    TierKey.CONTENT_STRUCTURE: 10,
    TierKey.EXPERIENCE: 25,
    TierKey.EDUCATION: 6,
    TierKey.CERTIFICATIONS: 4,
    TierKey.SKILLS_KEYWORDS: 25,
    TierKey.PROJECTS: 8,
    TierKey.RED_FLAGS: 0,
    TierKey.COMPETITIVE: 6,
    TierKey.CULTURE_FIT: 4,
    TierKey.QUALITATIVE: 4,
}


def _tier(key: TierKey, percentage: float, issues: list[str]) -> TierScore:
    weight = WEIGHTS[key]
    return TierScore(
        tier=key,
        tier_number=tier_number(key),
        tier_name=TIER_NAMES[key],
        score=percentage / 10,
        max_score=10,
        percentage=percentage,
        weight=weight,
        weighted_contribution=round(percentage * weight / 100, 2),
        metrics_passed=0,
        metrics_total=len(issues),
        top_issues=issues,
    )


def _metric(key: CriticalMetricKey, percentage: float) -> CriticalMetric:
    return CriticalMetric(
        key=key,
        name=CRITICAL_METRIC_NAMES[key],
        score=percentage / 10,
        max_score=10,
        percentage=percentage,
        status=MetricStatus.FAIR,
    )


def _score() -> ComprehensiveScore:
    tiers = {key: _tier(key, 100, []) for key in TierKey}
    tiers[TierKey.PROJECTS] = _tier(TierKey.PROJECTS, 50, ["Add a project with a live link"])
    tiers[TierKey.EXPERIENCE] = _tier(
        TierKey.EXPERIENCE,
        60,
        ["Quantify achievements", "Use stronger action verbs"],
    )
    tiers[TierKey.SKILLS_KEYWORDS] = _tier(TierKey.SKILLS_KEYWORDS, 80, ["Add missing keywords"])
    tiers[TierKey.CULTURE_FIT] = _tier(TierKey.CULTURE_FIT, 90, [])
    metrics = {
        CriticalMetricKey.JD_KEYWORDS_MATCH: _metric(CriticalMetricKey.JD_KEYWORDS_MATCH, 80),
        CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT: _metric(CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT, 30),
        CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE: _metric(CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE, 60),
        CriticalMetricKey.JOB_TITLE_RELEVANCE: _metric(CriticalMetricKey.JOB_TITLE_RELEVANCE, 100),
        CriticalMetricKey.EXPERIENCE_RELEVANCE: _metric(CriticalMetricKey.EXPERIENCE_RELEVANCE, 45),
    }
    return ComprehensiveScore(
        overall=62,
        match_band="Good Match",
        interview_probability_range="25-45%",
        confidence=ConfidenceLevel.MEDIUM,
        is_jd_mode=True,
        is_fresher=False,
        tier_scores=tiers,
        critical_metrics=metrics,
    )


class GapAnalyzerTests(unittest.TestCase):
    def test_priority_bands(self):
        self.assertEqual(gap_priority(49.9), GapPriority.CRITICAL)
        self.assertEqual(gap_priority(50), GapPriority.HIGH)
        self.assertEqual(gap_priority(69.9), GapPriority.HIGH)
        self.assertEqual(gap_priority(70), GapPriority.MEDIUM)

    def test_tier_gaps_sorted_by_weight(self):
        gaps = build_tier_gaps(_score())
        self.assertEqual(
            [gap.tier for gap in gaps],
            [TierKey.EXPERIENCE, TierKey.SKILLS_KEYWORDS, TierKey.PROJECTS, TierKey.CULTURE_FIT],
        )
        experience = gaps[0]
        self.assertEqual([metric.metric_id for metric in experience.failing_metrics], [301, 302])
        self.assertEqual(experience.failing_metrics[0].impact, 12.5)
        self.assertEqual(experience.shortfall, 4.0)
        self.assertEqual(gaps[-1].failing_metrics, [])

    def test_big5_gaps_ordered_by_priority(self):
        gaps = build_big5_gaps(_score())
        self.assertEqual(
            [gap.metric for gap in gaps],
            [
                CriticalMetricKey.TECHNICAL_SKILLS_ALIGNMENT,
                CriticalMetricKey.EXPERIENCE_RELEVANCE,
                CriticalMetricKey.QUANTIFIED_RESULTS_PRESENCE,
                CriticalMetricKey.JD_KEYWORDS_MATCH,
            ],
        )
        self.assertEqual(
            [gap.priority for gap in gaps],
            [GapPriority.CRITICAL, GapPriority.CRITICAL, GapPriority.HIGH, GapPriority.MEDIUM],
        )
        self.assertEqual(gaps[0].gap, 7.0)
        self.assertEqual(len(gaps[0].improvements), 3)

    def test_improvements_put_big5_first(self):
        score = _score()
        improvements = prioritize_improvements(build_tier_gaps(score), build_big5_gaps(score))
        flags = [item.is_big5 for item in improvements]
        self.assertEqual(flags, sorted(flags, reverse=True))
        big5 = [item for item in improvements if item.is_big5]
        self.assertEqual(len(big5), 12)
        self.assertEqual(big5[0].impact, 14.0)
        self.assertEqual(big5[0].tier, 0)
        impacts = [item.impact for item in big5]
        self.assertEqual(impacts, sorted(impacts, reverse=True))
        tier_items = [item for item in improvements if not item.is_big5]
        self.assertEqual(tier_items[0].metric_name, "Add missing keywords")
        self.assertEqual(tier_items[0].impact, 25.0)

    def test_analyze_gaps_with_precomputed_score(self):
        score = _score()
        result = analyze_gaps(None, None, None, score=score)
        self.assertIs(result.before_score, score)
        top = get_top_improvements(result)
        self.assertEqual(len(top), 5)
        self.assertTrue(all(item.is_big5 for item in top))
        self.assertEqual(len(get_top_improvements(result, limit=2)), 2)

        summary = get_improvement_summary(result)
        self.assertTrue(summary.startswith("Score 62/100 (Good Match)."))
        self.assertIn("2 critical metric(s)", summary)

    def test_no_gaps_summary(self):
        score = _score()
        perfect = score.model_copy(
            update={
                "tier_scores": {key: _tier(key, 100, []) for key in TierKey},
                "critical_metrics": {key: _metric(key, 100) for key in CriticalMetricKey},
            }
        )
        result = analyze_gaps(None, None, None, score=perfect)
        self.assertEqual(result.tier_gaps, [])
        self.assertEqual(result.big5_gaps, [])
        self.assertIn("No improvements needed", get_improvement_summary(result))

    def test_analyze_gaps_from_text(self):
        result = analyze_gaps(
            None,
            "Jane Smith\njane@example.com\n\nSKILLS\nPython, SQL\n",
            "Backend developer with Python, Docker and Kubernetes. Must have 3+ years building services.",
            use_hybrid=False,
        )
        self.assertTrue(result.before_score.is_jd_mode)
        self.assertTrue(result.big5_gaps)
        self.assertEqual(result.missing_keywords, result.before_score.missing_keywords)


if __name__ == "__main__":
    unittest.main()
