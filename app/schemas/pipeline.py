from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, Field

from app.core.config.scoring import get_scoring_value

from .resume import Project, ResumeData


class PipelineStep(IntEnum):
    PARSE_RESUME = 1
    ANALYZE_AGAINST_JD = 2
    MISSING_SECTIONS_MODAL = 3
    PROJECT_ANALYSIS = 4
    RE_ANALYSIS = 5
    BULLET_REWRITING = 6
    FINAL_OPTIMIZATION = 7
    OUTPUT_RESUME = 8


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ErrorType(str, Enum):
    PARSING_FAILURE = "parsing_failure"
    AUTHENTICATION_ERROR = "authentication_error"
    FILE_FORMAT_ERROR = "file_format_error"
    ANALYSIS_TIMEOUT = "analysis_timeout"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"


class AnalysisType(str, Enum):
    JD_ANALYSIS = "jd_analysis"
    GENERAL_ANALYSIS = "general_analysis"


class InputType(str, Enum):
    ANALYSIS_RESULTS = "analysis_results"
    MISSING_SECTIONS_PROVIDED = "missing_sections_provided"
    MISSING_SECTIONS_SKIPPED = "missing_sections_skipped"
    PROJECT_MODIFICATIONS_APPLIED = "project_modifications_applied"
    PROJECT_ANALYSIS_SKIPPED = "project_analysis_skipped"
    RE_ANALYSIS_RESULTS = "re_analysis_results"
    BULLET_REWRITING_COMPLETED = "bullet_rewriting_completed"
    FINAL_OPTIMIZATION_COMPLETED = "final_optimization_completed"
    PIPELINE_COMPLETED = "pipeline_completed"
    RECOVERY_STRATEGY_APPLIED = "recovery_strategy_applied"


STEP_NAMES: dict[PipelineStep, str] = {
    PipelineStep.PARSE_RESUME: "Parse Resume",
    PipelineStep.ANALYZE_AGAINST_JD: "Analyze Against Job Description",
    PipelineStep.MISSING_SECTIONS_MODAL: "Complete Missing Sections",
    PipelineStep.PROJECT_ANALYSIS: "Analyze Projects",
    PipelineStep.RE_ANALYSIS: "Re-analyze After Changes",
    PipelineStep.BULLET_REWRITING: "Rewrite Bullet Points",
    PipelineStep.FINAL_OPTIMIZATION: "Final Optimization",
    PipelineStep.OUTPUT_RESUME: "Generate Optimized Resume",
}

STEP_DESCRIPTIONS: dict[PipelineStep, str] = {
    PipelineStep.PARSE_RESUME: "Extracting information from your resume",
    PipelineStep.ANALYZE_AGAINST_JD: "Scoring your resume against the job description",
    PipelineStep.MISSING_SECTIONS_MODAL: "Please provide any missing information to complete your resume",
    PipelineStep.PROJECT_ANALYSIS: "Analyzing your projects for alignment with job requirements",
    PipelineStep.RE_ANALYSIS: "Re-analyzing your updated resume for better alignment",
    PipelineStep.BULLET_REWRITING: "Rewriting bullet points with action verbs and quantified results",
    PipelineStep.FINAL_OPTIMIZATION: "Applying final optimizations and adding missing keywords",
    PipelineStep.OUTPUT_RESUME: "Generating your optimized resume",
}

USER_INPUT_STEPS: frozenset[PipelineStep] = frozenset(
    {PipelineStep.MISSING_SECTIONS_MODAL, PipelineStep.PROJECT_ANALYSIS}
)


class ErrorRecoveryStrategy(BaseModel):
    error_type: ErrorType
    retry_attempts: int = Field(ge=0)
    fallback_options: list[str]
    user_notification: str
    progress_preservation: bool = True


ERROR_RECOVERY_STRATEGIES: dict[ErrorType, ErrorRecoveryStrategy] = {
    ErrorType.PARSING_FAILURE: ErrorRecoveryStrategy(
        error_type=ErrorType.PARSING_FAILURE,
        retry_attempts=3,
        fallback_options=["manual_text_input", "different_file_format"],
        user_notification="Unable to parse resume. Please try a different format or enter text manually.",
    ),
    ErrorType.AUTHENTICATION_ERROR: ErrorRecoveryStrategy(
        error_type=ErrorType.AUTHENTICATION_ERROR,
        retry_attempts=1,
        fallback_options=["check_api_key", "contact_support"],
        user_notification="API authentication failed. Please check your configuration.",
    ),
    ErrorType.FILE_FORMAT_ERROR: ErrorRecoveryStrategy(
        error_type=ErrorType.FILE_FORMAT_ERROR,
        retry_attempts=1,
        fallback_options=["different_file_format", "manual_text_input"],
        user_notification="Unsupported file format. Please upload a PDF, DOCX, or TXT file.",
    ),
    ErrorType.ANALYSIS_TIMEOUT: ErrorRecoveryStrategy(
        error_type=ErrorType.ANALYSIS_TIMEOUT,
        retry_attempts=2,
        fallback_options=["simplified_analysis", "manual_review"],
        user_notification="Analysis is taking longer than expected. Trying simplified approach.",
    ),
    ErrorType.NETWORK_ERROR: ErrorRecoveryStrategy(
        error_type=ErrorType.NETWORK_ERROR,
        retry_attempts=3,
        fallback_options=["offline_mode", "retry_later"],
        user_notification="Network connection issue. Retrying automatically.",
    ),
    ErrorType.VALIDATION_ERROR: ErrorRecoveryStrategy(
        error_type=ErrorType.VALIDATION_ERROR,
        retry_attempts=1,
        fallback_options=["user_correction", "skip_validation"],
        user_notification="Please correct the highlighted fields and try again.",
    ),
}


def load_progress_weights() -> dict[PipelineStep, int]:
    raw = get_scoring_value("pipeline.progress_weights", {}) or {}
    weights = {step: int(raw.get(int(step), raw.get(str(int(step)), 0))) for step in PipelineStep}
    if sum(weights.values()) != 100:
        raise RuntimeError(
            f"pipeline.progress_weights must sum to 100, got {sum(weights.values())}."
        )
    return weights


PROGRESS_WEIGHTS: dict[PipelineStep, int] = load_progress_weights()


def _check_coverage(name: str, table: dict[Any, Any], members: type[Enum]) -> None:
    if set(table) != set(members):
        raise RuntimeError(f"{name} does not cover every member of {members.__name__}.")


_check_coverage("STEP_NAMES", STEP_NAMES, PipelineStep)
_check_coverage("STEP_DESCRIPTIONS", STEP_DESCRIPTIONS, PipelineStep)
_check_coverage("ERROR_RECOVERY_STRATEGIES", ERROR_RECOVERY_STRATEGIES, ErrorType)


class StepExecution(BaseModel):
    step: PipelineStep
    start_time: datetime
    end_time: datetime | None = None
    status: StepStatus = StepStatus.PENDING
    result: dict[str, Any] | None = None
    error: str | None = None
    retry_count: int = 0


class ResumeVersion(BaseModel):
    version: int
    step: PipelineStep
    data: ResumeData
    timestamp: datetime
    changes: list[str] = Field(default_factory=list)


class UserInputRecord(BaseModel):
    step: PipelineStep
    timestamp: datetime
    input_type: InputType
    data: dict[str, Any] = Field(default_factory=dict)


class ErrorRecord(BaseModel):
    step: PipelineStep
    timestamp: datetime
    error: str
    error_type: ErrorType | None = None
    stack_trace: str | None = None
    retry_attempt: int = 0


class PipelineExecutionContext(BaseModel):
    session_id: str
    user_id: str
    job_description: str | None = None
    target_role: str | None = None
    current_step: PipelineStep = PipelineStep.PARSE_RESUME
    completed_steps: list[PipelineStep] = Field(default_factory=list)
    failed_steps: list[PipelineStep] = Field(default_factory=list)
    user_input_required: bool = False
    step_history: list[StepExecution] = Field(default_factory=list)
    resume_versions: list[ResumeVersion] = Field(default_factory=list)
    user_inputs: list[UserInputRecord] = Field(default_factory=list)
    error_log: list[ErrorRecord] = Field(default_factory=list)
    start_time: datetime
    last_activity: datetime | None = None


class PipelineState(BaseModel):
    session_id: str
    user_id: str
    current_step: PipelineStep
    completed_steps: list[PipelineStep] = Field(default_factory=list)
    failed_steps: list[PipelineStep] = Field(default_factory=list)
    user_input_required: bool = False
    errors: list[str] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)
    start_time: datetime
    updated_at: datetime


class StepResult(BaseModel):
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    next_step: PipelineStep | None = None
    user_input_required: bool = False
    progress_update: int | None = None


class ProgressIndicator(BaseModel):
    current_step: PipelineStep
    total_steps: int = len(PipelineStep)
    step_name: str
    step_description: str
    percentage_complete: int = Field(ge=0, le=100)
    user_action_required: bool
    action_description: str | None = None
    estimated_time_remaining_s: int | None = None


class StorageStats(BaseModel):
    session_count: int = 0
    snapshot_count: int = 0
    total_bytes: int = 0
    oldest_start_time: datetime | None = None
    newest_start_time: datetime | None = None


class RoleCategory(str, Enum):
    BACKEND = "backend"
    FRONTEND = "frontend"
    FULLSTACK = "fullstack"
    MOBILE = "mobile"
    DATA = "data"
    EMBEDDED = "embedded"
    IOT = "iot"


class ProjectSuggestion(BaseModel):
    title: str
    url: str | None = None
    description: str = ""
    source: str = "catalog"


class ProjectAction(str, Enum):
    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"


class ProjectModification(BaseModel):
    action: ProjectAction
    index: int | None = Field(default=None, ge=0)
    project: Project | None = None
