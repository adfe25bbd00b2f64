from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .pipeline import PipelineStep
from .resume import ResumeData

MAX_TEXT_CHARS = 60_000


class ScoreRequest(BaseModel):
    resume_text: str | None = Field(default=None, max_length=MAX_TEXT_CHARS)
    resume: ResumeData | None = None
    job_description: str | None = Field(default=None, max_length=MAX_TEXT_CHARS)
    filename: str | None = Field(default=None, max_length=255)
    user_type: str | None = Field(default=None, max_length=40)
    use_hybrid: bool = True

    @model_validator(mode="after")
    def _require_resume(self) -> ScoreRequest:
        if not (self.resume_text or "").strip() and self.resume is None:
            raise ValueError("Provide resume_text or resume.")
        return self


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"


class MatchRequest(BaseModel):
    resume_text: str = Field(min_length=1, max_length=MAX_TEXT_CHARS)
    job_description: str = Field(min_length=1, max_length=MAX_TEXT_CHARS)
    include_report: bool = False


class CreateSessionRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)
    job_description: str | None = Field(default=None, max_length=MAX_TEXT_CHARS)
    target_role: str | None = Field(default=None, max_length=200)


class StepRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)


class SessionCreatedResponse(BaseModel):
    session_id: str
    current_step: PipelineStep
    resumable_sessions: int = 0


class DeletedResponse(BaseModel):
    deleted: int
