from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from app.core.rate_limit import rate_limit
from app.schemas.api import ExportFormat, MatchRequest, ScoreRequest
from app.schemas.gaps import GapAnalysisResult
from app.schemas.matching import HybridMatchResult
from app.schemas.scoring import ATSScore, ComprehensiveScore
from app.scoring.engine import calculate_ats_score, calculate_score
from app.scoring.export import to_csv, to_json, to_markdown
from app.semantic.hybrid_matcher import generate_match_report, match_resume_to_job
from app.services.gap_analyzer import analyze_gaps

router = APIRouter()

_EXPORT_MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.MARKDOWN: "text/markdown",
}


def _ats_score(payload: ScoreRequest) -> ATSScore:
    return calculate_ats_score(
        payload.resume_text,
        payload.resume,
        payload.job_description,
        filename=payload.filename,
        user_type=payload.user_type,
        use_hybrid=payload.use_hybrid,
    )


@router.post("/score", response_model=ComprehensiveScore)
@rate_limit()
async def score_resume(request: Request, payload: ScoreRequest):
    _ = request
    return calculate_score(
        payload.resume_text,
        payload.resume,
        payload.job_description,
        filename=payload.filename,
        user_type=payload.user_type,
        use_hybrid=payload.use_hybrid,
    )


@router.post("/score/ats", response_model=ATSScore)
@rate_limit()
async def score_resume_ats(request: Request, payload: ScoreRequest):
    _ = request
    return _ats_score(payload)


@router.post("/score/export")
@rate_limit()
async def export_score(
    request: Request,
    payload: ScoreRequest,
    export_format: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
):
    _ = request
    score = _ats_score(payload)
    if export_format == ExportFormat.CSV:
        body = to_csv(score)
    elif export_format == ExportFormat.MARKDOWN:
        gaps = analyze_gaps(
            payload.resume,
            payload.resume_text,
            payload.job_description,
            score=score.comprehensive,
        )
        body = to_markdown(score, gaps)
    else:
        body = to_json(score)
    return Response(content=body, media_type=_EXPORT_MEDIA_TYPES[export_format])


@router.post("/gaps", response_model=GapAnalysisResult)
@rate_limit()
async def gap_analysis(request: Request, payload: ScoreRequest):
    _ = request
    return analyze_gaps(
        payload.resume,
        payload.resume_text,
        payload.job_description,
        user_type=payload.user_type,
        use_hybrid=payload.use_hybrid,
    )


@router.post("/match", response_model=HybridMatchResult)
@rate_limit()
async def hybrid_match(request: Request, payload: MatchRequest):
    _ = request
    result = match_resume_to_job(payload.resume_text, payload.job_description)
    if payload.include_report:
        return Response(content=generate_match_report(result), media_type="text/markdown")
    return result
