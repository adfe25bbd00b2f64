from __future__ import annotations

import asyncio
import logging
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError

from app.core.config import settings
from app.core.config.scoring import get_scoring_float, get_scoring_int
from app.schemas.pipeline import (
    ERROR_RECOVERY_STRATEGIES,
    PROGRESS_WEIGHTS,
    STEP_DESCRIPTIONS,
    STEP_NAMES,
    USER_INPUT_STEPS,
    AnalysisType,
    ErrorRecord,
    ErrorType,
    InputType,
    PipelineExecutionContext,
    PipelineState,
    PipelineStep,
    ProgressIndicator,
    ProjectModification,
    ResumeVersion,
    StepExecution,
    StepResult,
    StepStatus,
    UserInputRecord,
)
from app.schemas.resume import ResumeData
from app.schemas.scoring import ATSScore
from app.scoring.engine import calculate_ats_score
from app.scoring.export import to_csv, to_json, to_markdown
from app.scoring.history import ScoreHistory
from app.scoring.keywords import extract_jd_keywords
from app.scoring.sections import identify_missing_sections, resume_data_to_text
from app.semantic.embeddings import EmbeddingProvider
from app.services.bullet_rewriter import (
    BulletRewriter,
    RewriteContext,
    RewriterError,
    build_bullet_rewriter,
)
from app.services.gap_analyzer import analyze_gaps, get_improvement_summary, get_top_improvements
from app.services.pipeline_state_store import PipelineStateStore
from app.services.project_lookup import ProjectLookup, build_project_lookup
from app.services.resume_edits import (
    apply_project_modifications,
    fit_summary_length,
    integrate_keywords,
    is_technical_keyword,
    merge_sections,
    normalize_bullets,
    project_alignment,
    replace_bullets,
)
from app.services.resume_parser import (
    PlainTextResumeParser,
    ResumeParseError,
    ResumeParser,
    build_parsed_resume,
)

logger = logging.getLogger(__name__)

MAX_RETRY_ATTEMPTS = get_scoring_int("pipeline.max_retry_attempts", 3)
SIMPLIFIED_ANALYSIS_STEPS = frozenset({PipelineStep.ANALYZE_AGAINST_JD, PipelineStep.RE_ANALYSIS})

StateListener = Callable[[PipelineState], None]
ProgressListener = Callable[[ProgressIndicator], None]


class PipelineStepError(RuntimeError):
    def __init__(self, message: str, *, error_type: ErrorType = ErrorType.VALIDATION_ERROR):
        super().__init__(message)
        self.error_type = error_type


_CODED_ERROR_TYPES: dict[str, ErrorType] = {
    "parsing_failure": ErrorType.PARSING_FAILURE,
    "file_format_error": ErrorType.FILE_FORMAT_ERROR,
    "authentication_error": ErrorType.AUTHENTICATION_ERROR,
    "analysis_timeout": ErrorType.ANALYSIS_TIMEOUT,
    "network_error": ErrorType.NETWORK_ERROR,
    "invalid_json": ErrorType.VALIDATION_ERROR,
    "invalid_schema": ErrorType.VALIDATION_ERROR,
}

# Checked in order; the first matching keyword wins.
_MESSAGE_KEYWORDS: tuple[tuple[tuple[str, ...], ErrorType], ...] = (
    (("parse", "ocr"), ErrorType.PARSING_FAILURE),
    (("timeout", "timed out"), ErrorType.ANALYSIS_TIMEOUT),
    (("network", "connection"), ErrorType.NETWORK_ERROR),
    (("validation", "invalid"), ErrorType.VALIDATION_ERROR),
    (("format", "unsupported"), ErrorType.FILE_FORMAT_ERROR),
    (("auth", "api key"), ErrorType.AUTHENTICATION_ERROR),
)


def classify_error(exc: BaseException) -> ErrorType:
    if isinstance(exc, PipelineStepError):
        return exc.error_type
    if isinstance(exc, (ResumeParseError, RewriterError)) and exc.code in _CODED_ERROR_TYPES:
        return _CODED_ERROR_TYPES[exc.code]
    if isinstance(exc, httpx.TimeoutException):
        return ErrorType.ANALYSIS_TIMEOUT
    if isinstance(exc, httpx.HTTPError):
        return ErrorType.NETWORK_ERROR
    if isinstance(exc, ValidationError):
        return ErrorType.VALIDATION_ERROR
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ErrorType.ANALYSIS_TIMEOUT

    message = str(exc).lower()
    for keywords, error_type in _MESSAGE_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return error_type
    return ErrorType.VALIDATION_ERROR


def retry_delay(attempt: int) -> float:
    """Exponential backoff in seconds for the given zero-based retry attempt."""
    base = settings.pipeline_retry_base_delay_s
    return min(base * (2**attempt), settings.pipeline_retry_max_delay_s)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _StepOutcome:
    data: dict[str, Any]
    input_type: InputType | None = None
    resume: ResumeData | None = None
    changes: list[str] = field(default_factory=list)
    user_input_required: bool = False
    skipped: bool = False


class PipelineController:
    """Runs the eight optimization steps for one session.

    Steps run one at a time and only when they are the current step. Every
    state change is written to the injected store before listeners are told.
    """

    def __init__(
        self,
        context: PipelineExecutionContext,
        store: PipelineStateStore,
        *,
        parser: ResumeParser | None = None,
        rewriter: BulletRewriter | None = None,
        project_lookup: ProjectLookup | None = None,
        history: ScoreHistory | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.context = context
        self.store = store
        self.parser = parser or PlainTextResumeParser()
        self.rewriter = rewriter or build_bullet_rewriter()
        self.project_lookup = project_lookup or build_project_lookup()
        self.history = history if history is not None else ScoreHistory()
        self.embedding_provider = embedding_provider
        self._clock = clock or _utc_now
        self._sleep = sleep or asyncio.sleep
        self._state_listeners: list[StateListener] = []
        self._progress_listeners: list[ProgressListener] = []

    @classmethod
    def create_session(
        cls,
        store: PipelineStateStore,
        user_id: str,
        *,
        job_description: str | None = None,
        target_role: str | None = None,
        session_id: str | None = None,
        **kwargs: Any,
    ) -> PipelineController:
        clock = kwargs.get("clock") or _utc_now
        now = clock()
        context = PipelineExecutionContext(
            session_id=session_id or uuid.uuid4().hex,
            user_id=user_id,
            job_description=job_description,
            target_role=target_role,
            start_time=now,
            last_activity=now,
        )
        controller = cls(context, store, **kwargs)
        controller._persist()
        logger.info("pipeline_session_created session=%s user=%s", context.session_id, user_id)
        return controller

    @classmethod
    def resume(cls, session_id: str, store: PipelineStateStore, **kwargs: Any) -> PipelineController:
        context = store.load_context(session_id)
        if context is None:
            raise KeyError(session_id)
        logger.info("pipeline_session_resumed session=%s step=%s", session_id, int(context.current_step))
        return cls(context, store, **kwargs)

    @property
    def session_id(self) -> str:
        return self.context.session_id

    # Listeners

    def on_state_change(self, callback: StateListener) -> None:
        self._state_listeners.append(callback)

    def on_progress_change(self, callback: ProgressListener) -> None:
        self._progress_listeners.append(callback)

    def _notify(self) -> None:
        state = self.get_state()
        progress = self.get_progress()
        for callback in list(self._state_listeners):
            callback(state)
        for callback in list(self._progress_listeners):
            callback(progress)

    def _persist(self) -> None:
        self.context.last_activity = self._clock()
        self.store.save_context(self.context)
        self.store.save_snapshot(self.get_state())
        self._notify()

    # State views

    def progress_percentage(self) -> int:
        done = set(self.context.completed_steps)
        return min(100, sum(PROGRESS_WEIGHTS[step] for step in done))

    def get_state(self) -> PipelineState:
        context = self.context
        return PipelineState(
            session_id=context.session_id,
            user_id=context.user_id,
            current_step=context.current_step,
            completed_steps=list(context.completed_steps),
            failed_steps=list(context.failed_steps),
            user_input_required=context.user_input_required,
            errors=[record.error for record in context.error_log],
            progress=self.progress_percentage(),
            start_time=context.start_time,
            updated_at=context.last_activity or context.start_time,
        )

    def get_progress(self) -> ProgressIndicator:
        step = self.context.current_step
        remaining = [item for item in PipelineStep if item not in self.context.completed_steps]
        return ProgressIndicator(
            current_step=step,
            step_name=STEP_NAMES[step],
            step_description=STEP_DESCRIPTIONS[step],
            percentage_complete=self.progress_percentage(),
            user_action_required=self.context.user_input_required,
            action_description=STEP_DESCRIPTIONS[step] if self.context.user_input_required else None,
            estimated_time_remaining_s=len(remaining) * get_scoring_int("pipeline.seconds_per_step", 20),
        )

    def is_session_expired(self) -> bool:
        timeout = timedelta(minutes=get_scoring_int("pipeline.session_timeout_minutes", 30))
        last_seen = self.context.last_activity or self.context.start_time
        return self._clock() - last_seen > timeout

    def current_resume(self) -> ResumeData | None:
        versions = self.context.resume_versions
        return versions[-1].data if versions else None

    def _resume_before(self, step: PipelineStep) -> ResumeData:
        # Versions are append-only; a re-run after rollback starts from what earlier steps produced.
        for version in reversed(self.context.resume_versions):
            if version.step < step:
                return version.data
        raise PipelineStepError("No parsed resume is available yet.", error_type=ErrorType.VALIDATION_ERROR)

    def _latest_result(self, step: PipelineStep) -> dict[str, Any] | None:
        for execution in reversed(self.context.step_history):
            if execution.step == step and execution.status == StepStatus.COMPLETED and execution.result:
                return execution.result
        return None

    # Transitions

    def proceed_to_next_step(self) -> bool:
        current = self.context.current_step
        if current not in self.context.completed_steps or current == PipelineStep.OUTPUT_RESUME:
            return False
        self.context.current_step = PipelineStep(current + 1)
        self.context.user_input_required = False
        logger.info("pipeline_step_advanced session=%s step=%s", self.session_id, int(self.context.current_step))
        self._persist()
        return True

    def rollback_to_previous_step(self) -> bool:
        current = self.context.current_step
        if current == PipelineStep.PARSE_RESUME:
            return False
        previous = PipelineStep(current - 1)
        self.context.current_step = previous
        self.context.completed_steps = [step for step in self.context.completed_steps if step != previous]
        self.context.user_input_required = False
        logger.info("pipeline_step_rolled_back session=%s step=%s", self.session_id, int(previous))
        self._persist()
        return True

    async def execute_step(self, step: PipelineStep | int, step_input: dict[str, Any] | None = None) -> StepResult:
        step = PipelineStep(step)
        if step != self.context.current_step:
            return StepResult(
                success=False,
                error=f"Step {int(step)} cannot run while step {int(self.context.current_step)} is current.",
                next_step=self.context.current_step,
                progress_update=self.progress_percentage(),
            )

        execution = StepExecution(step=step, start_time=self._clock(), status=StepStatus.RUNNING)
        self.context.step_history.append(execution)
        logger.info("pipeline_step_started session=%s step=%s", self.session_id, int(step))
        try:
            outcome = await self._run_step(step, step_input or {})
        except Exception as exc:  # noqa: BLE001
            return await self.handle_step_failure(step, exc, step_input)
        return self._complete(execution, outcome)

    async def run_until_blocked(
        self,
        inputs: dict[PipelineStep, dict[str, Any]] | None = None,
    ) -> list[StepResult]:
        """Execute and advance until a step needs input, fails, or the output step completes."""
        inputs = inputs or {}
        results: list[StepResult] = []
        while True:
            step = self.context.current_step
            if step in self.context.completed_steps:
                if step == PipelineStep.OUTPUT_RESUME or not self.proceed_to_next_step():
                    break
                continue
            result = await self.execute_step(step, inputs.get(step))
            results.append(result)
            if not result.success or result.user_input_required or step == PipelineStep.OUTPUT_RESUME:
                break
            self.proceed_to_next_step()
        return results

    async def handle_step_failure(
        self,
        step: PipelineStep,
        error: BaseException,
        step_input: dict[str, Any] | None = None,
    ) -> StepResult:
        execution = self._execution_for(step)
        error_type = classify_error(error)
        strategy = ERROR_RECOVERY_STRATEGIES[error_type]
        self._log_error(step, error, error_type, retry_attempt=0)

        attempts = min(strategy.retry_attempts, MAX_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            await self._sleep(retry_delay(attempt - 1))
            execution.retry_count = attempt
            try:
                outcome = await self._run_step(step, step_input or {})
            except Exception as exc:  # noqa: BLE001
                error = exc
                error_type = classify_error(exc)
                self._log_error(step, exc, error_type, retry_attempt=attempt)
                continue
            logger.info("pipeline_step_recovered session=%s step=%s attempt=%s", self.session_id, int(step), attempt)
            return self._complete(execution, outcome)

        if error_type == ErrorType.ANALYSIS_TIMEOUT and step in SIMPLIFIED_ANALYSIS_STEPS:
            try:
                outcome = self._analysis_step(step, simplified=True)
            except Exception as exc:  # noqa: BLE001
                error = exc
                self._log_error(step, exc, classify_error(exc), retry_attempt=attempts + 1)
            else:
                logger.warning("pipeline_step_simplified session=%s step=%s", self.session_id, int(step))
                self._record_input(step, InputType.RECOVERY_STRATEGY_APPLIED, {"fallback": "simplified_analysis"})
                return self._complete(execution, outcome)

        execution.status = StepStatus.FAILED
        execution.end_time = self._clock()
        execution.error = str(error)
        if step not in self.context.failed_steps:
            self.context.failed_steps.append(step)
        logger.warning(
            "pipeline_step_failed session=%s step=%s error_type=%s retries=%s",
            self.session_id,
            int(step),
            error_type.value,
            attempts,
        )
        self._persist()
        return StepResult(
            success=False,
            error=f"{ERROR_RECOVERY_STRATEGIES[error_type].user_notification} ({error})",
            data={
                "error_type": error_type.value,
                "fallback_options": list(ERROR_RECOVERY_STRATEGIES[error_type].fallback_options),
            },
            next_step=step,
            progress_update=self.progress_percentage(),
        )

    def _execution_for(self, step: PipelineStep) -> StepExecution:
        for execution in reversed(self.context.step_history):
            if execution.step == step:
                return execution
        execution = StepExecution(step=step, start_time=self._clock(), status=StepStatus.RUNNING)
        self.context.step_history.append(execution)
        return execution

    def _log_error(self, step: PipelineStep, error: BaseException, error_type: ErrorType, *, retry_attempt: int) -> None:
        self.context.error_log.append(
            ErrorRecord(
                step=step,
                timestamp=self._clock(),
                error=str(error) or type(error).__name__,
                error_type=error_type,
                stack_trace="".join(traceback.format_exception(type(error), error, error.__traceback__)),
                retry_attempt=retry_attempt,
            )
        )

    def _record_input(self, step: PipelineStep, input_type: InputType, data: dict[str, Any]) -> None:
        self.context.user_inputs.append(
            UserInputRecord(step=step, timestamp=self._clock(), input_type=input_type, data=data)
        )

    def _complete(self, execution: StepExecution, outcome: _StepOutcome) -> StepResult:
        step = execution.step
        execution.result = outcome.data
        context = self.context

        if outcome.user_input_required:
            if step not in USER_INPUT_STEPS:
                raise RuntimeError(f"Step {int(step)} cannot request user input.")
            execution.status = StepStatus.PENDING
            context.user_input_required = True
            logger.info("pipeline_step_awaiting_input session=%s step=%s", self.session_id, int(step))
            self._persist()
            return StepResult(
                success=True,
                data=outcome.data,
                next_step=step,
                user_input_required=True,
                progress_update=self.progress_percentage(),
            )

        execution.status = StepStatus.SKIPPED if outcome.skipped else StepStatus.COMPLETED
        execution.end_time = self._clock()
        execution.error = None
        if step not in context.completed_steps:
            context.completed_steps.append(step)
        context.failed_steps = [item for item in context.failed_steps if item != step]
        context.user_input_required = False
        if outcome.resume is not None:
            context.resume_versions.append(
                ResumeVersion(
                    version=len(context.resume_versions) + 1,
                    step=step,
                    data=outcome.resume,
                    timestamp=self._clock(),
                    changes=outcome.changes,
                )
            )
        if outcome.input_type is not None:
            self._record_input(step, outcome.input_type, {"changes": outcome.changes})

        logger.info(
            "pipeline_step_completed session=%s step=%s progress=%s",
            self.session_id,
            int(step),
            self.progress_percentage(),
        )
        self._persist()
        next_step = PipelineStep(step + 1) if step < PipelineStep.OUTPUT_RESUME else None
        return StepResult(
            success=True,
            data=outcome.data,
            next_step=next_step,
            progress_update=self.progress_percentage(),
        )

    # Steps

    async def _run_step(self, step: PipelineStep, step_input: dict[str, Any]) -> _StepOutcome:
        if step == PipelineStep.PARSE_RESUME:
            return await self._parse_step(step_input)
        if step == PipelineStep.ANALYZE_AGAINST_JD:
            return self._analysis_step(step)
        if step == PipelineStep.MISSING_SECTIONS_MODAL:
            return self._missing_sections_step(step_input)
        if step == PipelineStep.PROJECT_ANALYSIS:
            return await self._project_step(step_input)
        if step == PipelineStep.RE_ANALYSIS:
            return self._analysis_step(step)
        if step == PipelineStep.BULLET_REWRITING:
            return await self._rewrite_step()
        if step == PipelineStep.FINAL_OPTIMIZATION:
            return await self._final_optimization_step()
        return self._output_step()

    async def _parse_step(self, step_input: dict[str, Any]) -> _StepOutcome:
        if step_input.get("resume") is not None:
            parsed = build_parsed_resume(ResumeData.model_validate(step_input["resume"]))
        else:
            content = step_input.get("content") or step_input.get("resume_text")
            if not content:
                raise PipelineStepError("No resume content was supplied.", error_type=ErrorType.VALIDATION_ERROR)
            parsed = await self.parser.parse(content, filename=step_input.get("filename"))

        return _StepOutcome(
            data={
                "parsing_confidence": parsed.parsing_confidence,
                "missing_sections": [section.value for section in parsed.missing_sections],
                "resume": parsed.resume.model_dump(mode="json"),
            },
            resume=parsed.resume,
            changes=["Parsed resume"],
        )

    def _score(self, resume: ResumeData, *, simplified: bool = False) -> ATSScore:
        return calculate_ats_score(
            resume_data_to_text(resume),
            resume,
            self.context.job_description,
            use_hybrid=not simplified,
            embedding_provider=self.embedding_provider,
        )

    def _analysis_step(self, step: PipelineStep, *, simplified: bool = False) -> _StepOutcome:
        resume = self._resume_before(step)
        score = self._score(resume, simplified=simplified)
        gaps = analyze_gaps(
            resume,
            resume_data_to_text(resume),
            self.context.job_description,
            score=score.comprehensive,
        )
        self.history.record(score.comprehensive, step=int(step), timestamp=self._clock())

        data: dict[str, Any] = {
            "analysis_type": (AnalysisType.JD_ANALYSIS if score.is_jd_mode else AnalysisType.GENERAL_ANALYSIS).value,
            "overall_score": score.overall_score,
            "match_quality": score.match_quality,
            "interview_chance": score.interview_chance,
            "simplified": simplified,
            "ats_score": score.model_dump(mode="json"),
            "top_improvements": [item.model_dump(mode="json") for item in get_top_improvements(gaps)],
            "improvement_summary": get_improvement_summary(gaps),
        }
        if step == PipelineStep.ANALYZE_AGAINST_JD:
            return _StepOutcome(data=data, input_type=InputType.ANALYSIS_RESULTS)

        previous = self._latest_result(PipelineStep.ANALYZE_AGAINST_JD) or {}
        previous_score = int(previous.get("overall_score", score.overall_score))
        data["previous_score"] = previous_score
        data["score_delta"] = score.overall_score - previous_score
        return _StepOutcome(data=data, input_type=InputType.RE_ANALYSIS_RESULTS)

    def _missing_sections_step(self, step_input: dict[str, Any]) -> _StepOutcome:
        resume = self._resume_before(PipelineStep.MISSING_SECTIONS_MODAL)
        missing = [section.value for section in identify_missing_sections(resume)]
        if not missing:
            return _StepOutcome(data={"missing_sections": []}, skipped=True)
        if step_input.get("skip"):
            return _StepOutcome(
                data={"missing_sections": missing, "skipped": True},
                input_type=InputType.MISSING_SECTIONS_SKIPPED,
            )

        sections = step_input.get("sections")
        if not sections:
            return _StepOutcome(
                data={"missing_sections": missing, "action": STEP_DESCRIPTIONS[PipelineStep.MISSING_SECTIONS_MODAL]},
                user_input_required=True,
            )
        if not isinstance(sections, dict):
            raise PipelineStepError("Invalid sections payload: expected an object.", error_type=ErrorType.VALIDATION_ERROR)
        try:
            merged, changes = merge_sections(resume, sections)
        except ValueError as exc:
            raise PipelineStepError(str(exc), error_type=ErrorType.VALIDATION_ERROR) from exc
        return _StepOutcome(
            data={"missing_sections": [section.value for section in identify_missing_sections(merged)], "changes": changes},
            input_type=InputType.MISSING_SECTIONS_PROVIDED,
            resume=merged,
            changes=changes,
        )

    async def _project_step(self, step_input: dict[str, Any]) -> _StepOutcome:
        resume = self._resume_before(PipelineStep.PROJECT_ANALYSIS)
        jd_keywords = extract_jd_keywords(self.context.job_description)
        threshold = get_scoring_float("pipeline.project_alignment_threshold", 0.5)
        alignment = [
            {"index": index, "title": project.title, "alignment": project_alignment(project, jd_keywords)}
            for index, project in enumerate(resume.projects)
        ]

        if step_input.get("modifications") is not None:
            try:
                modifications = [ProjectModification.model_validate(item) for item in step_input["modifications"]]
                updated, changes = apply_project_modifications(resume, modifications)
            except (ValueError, TypeError) as exc:
                raise PipelineStepError(str(exc), error_type=ErrorType.VALIDATION_ERROR) from exc
            return _StepOutcome(
                data={"project_alignment": alignment, "changes": changes},
                input_type=InputType.PROJECT_MODIFICATIONS_APPLIED,
                resume=updated,
                changes=changes,
            )
        if step_input.get("skip"):
            return _StepOutcome(
                data={"project_alignment": alignment, "skipped": True},
                input_type=InputType.PROJECT_ANALYSIS_SKIPPED,
            )

        role = self.context.target_role or resume.target_role
        suggestions = await self.project_lookup.suggest_projects(resume.all_skills()[:5], role)
        return _StepOutcome(
            data={
                "project_alignment": alignment,
                "weak_projects": [item["index"] for item in alignment if item["alignment"] < threshold],
                "suggestions": [item.model_dump(mode="json") for item in suggestions],
                "action": STEP_DESCRIPTIONS[PipelineStep.PROJECT_ANALYSIS],
            },
            user_input_required=True,
        )

    async def _rewrite_list(self, bullets: list[str], context: RewriteContext) -> list[str]:
        if not bullets:
            return []
        rewritten = await self.rewriter.rewrite_bullets(bullets, context=context)
        if len(rewritten) != len(bullets):
            raise PipelineStepError(
                f"Invalid rewrite: {len(rewritten)} bullets returned for {len(bullets)}.",
                error_type=ErrorType.VALIDATION_ERROR,
            )
        return rewritten

    async def _rewrite_step(self) -> _StepOutcome:
        resume = self._resume_before(PipelineStep.BULLET_REWRITING)
        keywords = tuple(extract_jd_keywords(self.context.job_description)[:10])
        target_role = self.context.target_role or resume.target_role

        experience = []
        for job in resume.work_experience:
            rewrite_context = RewriteContext(
                section="experience",
                title=job.role,
                job_description=self.context.job_description,
                target_role=target_role,
                keywords=keywords,
            )
            experience.append(await self._rewrite_list(job.bullets, rewrite_context))
        projects = []
        for project in resume.projects:
            rewrite_context = RewriteContext(
                section="projects",
                title=project.title,
                job_description=self.context.job_description,
                target_role=target_role,
                keywords=keywords,
            )
            projects.append(await self._rewrite_list(project.bullets, rewrite_context))

        try:
            updated = replace_bullets(resume, experience, projects)
        except ValueError as exc:
            raise PipelineStepError(str(exc), error_type=ErrorType.VALIDATION_ERROR) from exc
        rewritten = sum(
            1
            for before, after in zip(resume.all_bullets(), updated.all_bullets())
            if before != after
        )
        changes = [f"Rewrote {rewritten} bullet point(s)"]
        return _StepOutcome(
            data={"bullets_total": len(updated.all_bullets()), "bullets_rewritten": rewritten},
            input_type=InputType.BULLET_REWRITING_COMPLETED,
            resume=updated,
            changes=changes,
        )

    async def _final_optimization_step(self) -> _StepOutcome:
        resume = self._resume_before(PipelineStep.FINAL_OPTIMIZATION)
        before = self._score(resume)
        changes: list[str] = []

        critical = [keyword for keyword in before.missing_keywords.critical if is_technical_keyword(keyword)]
        resume, added = integrate_keywords(resume, critical)
        if added:
            changes.append(f"Added keywords: {', '.join(added)}")

        target_role = self.context.target_role or resume.target_role
        summary = await self.rewriter.write_summary(
            resume,
            job_description=self.context.job_description,
            target_role=target_role,
        )
        summary = fit_summary_length(
            summary,
            resume,
            target_role=target_role,
            min_words=get_scoring_int("pipeline.summary_min_words", 40),
            max_words=get_scoring_int("pipeline.summary_max_words", 60),
        )
        if summary != (resume.summary or ""):
            resume = resume.model_copy(update={"summary": summary})
            changes.append("Optimized professional summary")

        resume = normalize_bullets(resume)
        changes.append("Normalized bullet formatting")

        after = self._score(resume)
        self.history.record(after.comprehensive, step=int(PipelineStep.FINAL_OPTIMIZATION), timestamp=self._clock())
        target = get_scoring_int("pipeline.target_score", 90)
        return _StepOutcome(
            data={
                "keywords_added": added,
                "summary_words": len(summary.split()),
                "score_before": before.overall_score,
                "final_score": after.overall_score,
                "target_score": target,
                "target_achieved": after.overall_score >= target,
            },
            input_type=InputType.FINAL_OPTIMIZATION_COMPLETED,
            resume=resume,
            changes=changes,
        )

    def _output_step(self) -> _StepOutcome:
        resume = self._resume_before(PipelineStep.OUTPUT_RESUME)
        final = self._score(resume)
        gaps = analyze_gaps(resume, resume_data_to_text(resume), self.context.job_description, score=final.comprehensive)

        initial = (self._latest_result(PipelineStep.ANALYZE_AGAINST_JD) or {}).get("overall_score")
        before = int(initial) if initial is not None else final.overall_score
        target = get_scoring_int("pipeline.target_score", 90)
        return _StepOutcome(
            data={
                "resume": resume.model_dump(mode="json"),
                "resume_text": resume_data_to_text(resume),
                "comparison": {
                    "before": before,
                    "after": final.overall_score,
                    "improvement": final.overall_score - before,
                },
                "exports": {
                    "json": to_json(final),
                    "csv": to_csv(final),
                    "markdown": to_markdown(final, gaps),
                },
                "pipeline_summary": {
                    "completed_steps": len(self.context.completed_steps) + 1,
                    "resume_versions": len(self.context.resume_versions),
                    "errors": len(self.context.error_log),
                    "score_history_improvement": self.history.improvement(),
                    "target_achieved": final.overall_score >= target,
                },
                "message": "Your optimized resume is ready.",
            },
            input_type=InputType.PIPELINE_COMPLETED,
        )


@dataclass(frozen=True)
class PipelineServices:
    """Collaborators shared by every controller the HTTP layer builds."""

    store: PipelineStateStore
    parser: ResumeParser
    rewriter: BulletRewriter
    project_lookup: ProjectLookup

    def create_session(self, user_id: str, **kwargs: Any) -> PipelineController:
        return PipelineController.create_session(self.store, user_id, **self._collaborators(), **kwargs)

    def resume(self, session_id: str) -> PipelineController:
        return PipelineController.resume(session_id, self.store, **self._collaborators())

    def _collaborators(self) -> dict[str, Any]:
        return {"parser": self.parser, "rewriter": self.rewriter, "project_lookup": self.project_lookup}


def build_pipeline_services(store: PipelineStateStore) -> PipelineServices:
    return PipelineServices(
        store=store,
        parser=PlainTextResumeParser(),
        rewriter=build_bullet_rewriter(),
        project_lookup=build_project_lookup(),
    )
