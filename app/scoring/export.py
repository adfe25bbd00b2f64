from __future__ import annotations

import csv
import io
import json

from app.schemas.gaps import GapAnalysisResult
from app.schemas.scoring import ATSScore

TOP_IMPROVEMENTS = 5


def to_json(score: ATSScore, *, indent: int | None = 2) -> str:
    return json.dumps(score.model_dump(mode="json"), indent=indent, ensure_ascii=False)


def to_csv(score: ATSScore) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["parameter", "score", "max_score", "percentage"])
    for row in score.parameters:
        writer.writerow([row.key.value, row.score, row.max_score, row.percentage])
    writer.writerow(["overall", score.overall_score, 100, score.overall_score])
    return buffer.getvalue()


def to_markdown(score: ATSScore, gap_result: GapAnalysisResult | None = None) -> str:
    comprehensive = score.comprehensive
    lines = [
        "# ATS Score Report",
        "",
        f"**Overall score:** {score.overall_score}/100",
        f"**Match quality:** {score.match_quality}",
        f"**Interview chance:** {score.interview_chance}",
        f"**Confidence:** {score.confidence.value}",
        f"**Mode:** {'Job description' if score.is_jd_mode else 'General'}",
        "",
    ]
    if score.summary:
        lines.extend([score.summary, ""])

    lines.extend(["## Parameters", "", "| Parameter | Score | Max |", "|---|---|---|"])
    lines.extend(f"| {row.key.value} | {row.score} | {row.max_score} |" for row in score.parameters)

    lines.extend(["", "## Tier breakdown", "", "| Tier | Percentage | Weight | Top issue |", "|---|---|---|---|"])
    for tier in comprehensive.tier_scores.values():
        issue = tier.top_issues[0] if tier.top_issues else ""
        lines.append(f"| {tier.tier_name} | {tier.percentage:.0f}% | {tier.weight} | {issue} |")

    if gap_result is not None and gap_result.prioritized_improvements:
        lines.extend(["", "## Top improvements", ""])
        for index, item in enumerate(gap_result.prioritized_improvements[:TOP_IMPROVEMENTS], start=1):
            lines.append(f"{index}. {item.recommendation} (+{item.impact:g}, {item.tier_name})")

    buckets = score.missing_keywords
    if buckets.critical or buckets.important or buckets.optional:
        lines.extend(["", "## Missing keywords", ""])
        for label, items in (("Critical", buckets.critical), ("Important", buckets.important), ("Optional", buckets.optional)):
            if items:
                lines.append(f"- **{label}:** {', '.join(items)}")

    if comprehensive.red_flags:
        lines.extend(["", "## Red flags", ""])
        lines.extend(f"- {flag.name}: {flag.description}" for flag in comprehensive.red_flags)
    return "\n".join(lines) + "\n"
