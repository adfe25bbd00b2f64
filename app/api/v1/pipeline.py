from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import require_api_key
from app.schemas.api import CreateSessionRequest, DeletedResponse, SessionCreatedResponse, StepRequest
from app.schemas.pipeline import (
    PipelineExecutionContext,
    PipelineState,
    PipelineStep,
    ProgressIndicator,
    StepResult,
    StorageStats,
)
from app.services.pipeline_controller import PipelineController, PipelineServices

router = APIRouter(prefix="/pipeline", dependencies=[Depends(require_api_key)])


def get_pipeline_services(request: Request) -> PipelineServices:
    return request.app.state.pipeline_services


def _load(services: PipelineServices, session_id: str) -> PipelineController:
    try:
        return services.resume(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found.") from exc


@router.post("/sessions", response_model=SessionCreatedResponse, status_code=status.HTTP_201_CREATED)
@rate_limit(settings.pipeline_rate_limit)
async def create_session(
    request: Request,
    payload: CreateSessionRequest,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    controller = services.create_session(
        payload.user_id,
        job_description=payload.job_description,
        target_role=payload.target_role,
    )
    return SessionCreatedResponse(
        session_id=controller.session_id,
        current_step=controller.context.current_step,
        resumable_sessions=len(services.store.get_resumable_sessions(payload.user_id)),
    )


@router.post("/sessions/{session_id}/steps/{step}", response_model=StepResult)
@rate_limit()
async def execute_step(
    request: Request,
    session_id: str,
    step: PipelineStep,
    payload: StepRequest,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    controller = _load(services, session_id)
    if step != controller.context.current_step:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Step {int(step)} is not the current step ({int(controller.context.current_step)}).",
        )
    return await controller.execute_step(step, payload.input)


@router.post("/sessions/{session_id}/advance", response_model=PipelineState)
@rate_limit()
async def advance_session(
    request: Request,
    session_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    controller = _load(services, session_id)
    if not controller.proceed_to_next_step():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The current step must complete before advancing.",
        )
    return controller.get_state()


@router.post("/sessions/{session_id}/rollback", response_model=PipelineState)
@rate_limit()
async def rollback_session(
    request: Request,
    session_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    controller = _load(services, session_id)
    if not controller.rollback_to_previous_step():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already at the first step.")
    return controller.get_state()


@router.get("/sessions/{session_id}", response_model=PipelineState)
@rate_limit()
async def get_session(
    request: Request,
    session_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    return _load(services, session_id).get_state()


@router.get("/sessions/{session_id}/progress", response_model=ProgressIndicator)
@rate_limit()
async def get_session_progress(
    request: Request,
    session_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    return _load(services, session_id).get_progress()


@router.delete("/sessions/{session_id}", response_model=DeletedResponse)
@rate_limit()
async def delete_session(
    request: Request,
    session_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    _load(services, session_id)
    services.store.delete_context(session_id)
    return DeletedResponse(deleted=1)


@router.get("/users/{user_id}/sessions", response_model=list[PipelineExecutionContext])
@rate_limit()
async def list_user_sessions(
    request: Request,
    user_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    return services.store.get_user_sessions(user_id)


@router.delete("/users/{user_id}", response_model=DeletedResponse)
@rate_limit()
async def clear_user_data(
    request: Request,
    user_id: str,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    return DeletedResponse(deleted=services.store.clear_user_data(user_id))


@router.get("/stats", response_model=StorageStats)
@rate_limit()
async def storage_stats(
    request: Request,
    services: PipelineServices = Depends(get_pipeline_services),
):
    _ = request
    return services.store.get_storage_stats()
