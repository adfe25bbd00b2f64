import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.pipeline import (  # noqa: E402
    ErrorType,
    InputType,
    PipelineStep,
    StepStatus,
)
from app.schemas.resume import ResumeData  # noqa: E402
from app.services.bullet_rewriter import RewriterError, RuleBasedBulletRewriter  # noqa: E402
from app.services.pipeline_controller import (  # noqa: E402
    PipelineController,
    PipelineStepError,
    classify_error,
    retry_delay,
)
from app.services.pipeline_state_store import InMemoryKeyValueStore, PipelineStateStore  # noqa: E402
from app.services.project_lookup import CatalogProjectLookup  # noqa: E402
from app.services.resume_parser import PlainTextResumeParser, ResumeParseError  # noqa: E402

RESUME_TEXT = """Jane Smith
jane.smith@example.com | +1 555 123 4567

SUMMARY
Backend engineer building Python services for logistics products.

SKILLS
Python, PostgreSQL, Docker

EXPERIENCE
Backend Engineer | Acme Corp | 2020 - Present
- Built Python services handling 2M requests per day
- responsible for the PostgreSQL schema and query tuning
"""

JD = (
    "Backend Engineer. Must have Python, FastAPI and PostgreSQL experience. "
    "Docker and Kubernetes required. 3+ years building production services."
)

SECTIONS = {
    "education": [{"degree": "B.Sc. Computer Science", "school": "State University", "year": "2019"}],
    "certifications": ["AWS Certified Developer"],
}

MODIFICATIONS = [
    {
        "action": "add",
        "project": {
            "title": "Order Tracker",
            "bullets": ["worked on an order tracking service with FastAPI"],
            "tech_stack": ["Python", "FastAPI"],
        },
    }
]


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class _FlakyParser:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0
        self._parser = PlainTextResumeParser()

    async def parse(self, content, *, filename=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise ResumeParseError("Could not read resume layout.", code="parsing_failure")
        return await self._parser.parse(content, filename=filename)


class _SlowAnalysisController(PipelineController):
    def _score(self, resume, *, simplified=False):
        if not simplified:
            raise TimeoutError("analysis timed out")
        return super()._score(resume, simplified=True)


class PipelineControllerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = _Clock()
        self.store = PipelineStateStore(InMemoryKeyValueStore(), clock=self.clock)
        self.delays = []

    async def _sleep(self, delay):
        self.delays.append(delay)

    def _create(self, cls=PipelineController, **kwargs):
        options = {
            "parser": PlainTextResumeParser(),
            "rewriter": RuleBasedBulletRewriter(),
            "project_lookup": CatalogProjectLookup(),
            "clock": self.clock,
            "sleep": self._sleep,
        }
        options.update(kwargs)
        return cls.create_session(
            self.store,
            "user-1",
            job_description=JD,
            target_role="Backend Engineer",
            **options,
        )

    async def test_full_run_with_user_input(self):
        controller = self._create()
        progress = []
        controller.on_progress_change(lambda indicator: progress.append(indicator.percentage_complete))

        first = await controller.run_until_blocked({PipelineStep.PARSE_RESUME: {"resume_text": RESUME_TEXT}})
        self.assertEqual([result.success for result in first], [True, True, True])
        self.assertTrue(first[-1].user_input_required)
        self.assertEqual(first[1].data["analysis_type"], "jd_analysis")
        self.assertEqual(controller.context.current_step, PipelineStep.MISSING_SECTIONS_MODAL)
        self.assertIn("education", first[-1].data["missing_sections"])

        second = await controller.run_until_blocked({PipelineStep.MISSING_SECTIONS_MODAL: {"sections": SECTIONS}})
        self.assertEqual(len(second), 2)
        self.assertEqual(controller.context.current_step, PipelineStep.PROJECT_ANALYSIS)
        self.assertTrue(second[-1].user_input_required)
        self.assertTrue(second[-1].data["suggestions"])
        self.assertEqual(controller.current_resume().education[0].school, "State University")

        third = await controller.run_until_blocked({PipelineStep.PROJECT_ANALYSIS: {"modifications": MODIFICATIONS}})
        self.assertTrue(all(result.success for result in third))
        self.assertEqual(len(third), 5)

        rewrite = third[2].data
        self.assertGreaterEqual(rewrite["bullets_rewritten"], 2)
        final = third[3].data
        self.assertGreaterEqual(final["summary_words"], 40)
        self.assertLessEqual(final["summary_words"], 60)
        self.assertIn("score_delta", third[1].data)

        output = third[-1].data
        self.assertEqual(output["pipeline_summary"]["completed_steps"], 8)
        self.assertTrue(output["exports"]["csv"].startswith("parameter,score"))
        self.assertEqual(
            output["comparison"]["improvement"],
            output["comparison"]["after"] - output["comparison"]["before"],
        )
        self.assertIsNone(third[-1].next_step)

        self.assertEqual(set(controller.context.completed_steps), set(PipelineStep))
        self.assertEqual(controller.progress_percentage(), 100)
        self.assertEqual(progress, sorted(progress))
        self.assertEqual(progress[-1], 100)
        self.assertEqual(progress.count(100), 1)

        for result in first + second + third:
            if result.user_input_required:
                self.assertIn(result.next_step, {PipelineStep.MISSING_SECTIONS_MODAL, PipelineStep.PROJECT_ANALYSIS})
        self.assertEqual([version.version for version in controller.context.resume_versions], [1, 2, 3, 4, 5])
        bullets = controller.current_resume().all_bullets()
        self.assertIn("Led the PostgreSQL schema and query tuning", bullets)
        self.assertIn("Developed an order tracking service with FastAPI", bullets)

        stored = self.store.load_context(controller.session_id)
        self.assertEqual(stored.current_step, PipelineStep.OUTPUT_RESUME)
        self.assertEqual(self.store.load_snapshot(controller.session_id).progress, 100)
        self.assertFalse(controller.proceed_to_next_step())

    async def test_steps_only_run_in_order(self):
        controller = self._create()
        self.assertFalse(controller.proceed_to_next_step())
        self.assertFalse(controller.rollback_to_previous_step())

        result = await controller.execute_step(PipelineStep.MISSING_SECTIONS_MODAL, {})
        self.assertFalse(result.success)
        self.assertEqual(result.next_step, PipelineStep.PARSE_RESUME)
        self.assertEqual(controller.context.error_log, [])
        self.assertEqual(controller.context.step_history, [])

    async def test_rollback_reopens_previous_step(self):
        controller = self._create()
        await controller.run_until_blocked({PipelineStep.PARSE_RESUME: {"resume_text": RESUME_TEXT}})
        self.assertTrue(controller.context.user_input_required)

        self.assertTrue(controller.rollback_to_previous_step())
        self.assertEqual(controller.context.current_step, PipelineStep.ANALYZE_AGAINST_JD)
        self.assertEqual(controller.context.completed_steps, [PipelineStep.PARSE_RESUME])
        self.assertFalse(controller.context.user_input_required)
        self.assertEqual(controller.progress_percentage(), 15)

        result = await controller.execute_step(PipelineStep.ANALYZE_AGAINST_JD)
        self.assertTrue(result.success)
        self.assertEqual(len(controller.history), 2)

    async def test_rollback_from_a_completed_step_keeps_it_completed(self):
        controller = self._create()
        await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})
        self.assertTrue(controller.proceed_to_next_step())
        await controller.execute_step(PipelineStep.ANALYZE_AGAINST_JD)
        versions = len(controller.context.resume_versions)

        self.assertTrue(controller.rollback_to_previous_step())
        self.assertEqual(controller.context.current_step, PipelineStep.PARSE_RESUME)
        self.assertEqual(controller.context.completed_steps, [PipelineStep.ANALYZE_AGAINST_JD])
        self.assertEqual(len(controller.context.resume_versions), versions)

        result = await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})
        self.assertTrue(result.success)
        self.assertIn(PipelineStep.PARSE_RESUME, controller.context.completed_steps)

    async def test_skipping_user_input_steps(self):
        controller = self._create()
        await controller.run_until_blocked({PipelineStep.PARSE_RESUME: {"resume_text": RESUME_TEXT}})
        results = await controller.run_until_blocked(
            {
                PipelineStep.MISSING_SECTIONS_MODAL: {"skip": True},
                PipelineStep.PROJECT_ANALYSIS: {"skip": True},
            }
        )
        self.assertEqual(results[-1].next_step, None)
        input_types = [record.input_type for record in controller.context.user_inputs]
        self.assertIn(InputType.MISSING_SECTIONS_SKIPPED, input_types)
        self.assertIn(InputType.PROJECT_ANALYSIS_SKIPPED, input_types)
        self.assertEqual(input_types[-1], InputType.PIPELINE_COMPLETED)

    async def test_invalid_sections_fail_then_recover(self):
        controller = self._create()
        await controller.run_until_blocked({PipelineStep.PARSE_RESUME: {"resume_text": RESUME_TEXT}})

        failed = await controller.execute_step(PipelineStep.MISSING_SECTIONS_MODAL, {"sections": {"hobbies": ["chess"]}})
        self.assertFalse(failed.success)
        self.assertEqual(failed.data["error_type"], ErrorType.VALIDATION_ERROR.value)
        self.assertEqual(controller.context.failed_steps, [PipelineStep.MISSING_SECTIONS_MODAL])
        self.assertEqual(self.delays, [1.0])

        recovered = await controller.execute_step(PipelineStep.MISSING_SECTIONS_MODAL, {"sections": SECTIONS})
        self.assertTrue(recovered.success)
        self.assertEqual(controller.context.failed_steps, [])

    async def test_parse_failure_is_retried_then_marked_failed(self):
        parser = _FlakyParser(failures=10)
        controller = self._create(parser=parser)
        result = await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})

        self.assertFalse(result.success)
        self.assertFalse(result.user_input_required)
        self.assertEqual(parser.calls, 4)
        self.assertEqual(self.delays, [1.0, 2.0, 4.0])
        self.assertEqual(result.data["error_type"], "parsing_failure")
        self.assertEqual(result.data["fallback_options"], ["manual_text_input", "different_file_format"])
        self.assertEqual([record.retry_attempt for record in controller.context.error_log], [0, 1, 2, 3])

        execution = controller.context.step_history[-1]
        self.assertEqual(execution.status, StepStatus.FAILED)
        self.assertEqual(execution.retry_count, 3)
        self.assertEqual(self.store.load_context(controller.session_id).failed_steps, [PipelineStep.PARSE_RESUME])

    async def test_parse_failure_recovers_on_retry(self):
        parser = _FlakyParser(failures=1)
        controller = self._create(parser=parser)
        result = await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})

        self.assertTrue(result.success)
        self.assertEqual(self.delays, [1.0])
        self.assertEqual(len(controller.context.error_log), 1)
        self.assertEqual(controller.context.step_history[-1].status, StepStatus.COMPLETED)
        self.assertEqual(controller.context.step_history[-1].retry_count, 1)

    async def test_timeout_falls_back_to_simplified_analysis(self):
        controller = self._create(cls=_SlowAnalysisController)
        await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})
        self.assertTrue(controller.proceed_to_next_step())

        result = await controller.execute_step(PipelineStep.ANALYZE_AGAINST_JD)
        self.assertTrue(result.success)
        self.assertTrue(result.data["simplified"])
        self.assertEqual(self.delays, [1.0, 2.0])
        self.assertEqual(
            {record.error_type for record in controller.context.error_log},
            {ErrorType.ANALYSIS_TIMEOUT},
        )
        input_types = [record.input_type for record in controller.context.user_inputs]
        self.assertIn(InputType.RECOVERY_STRATEGY_APPLIED, input_types)
        self.assertIn(PipelineStep.ANALYZE_AGAINST_JD, controller.context.completed_steps)

    async def test_resume_and_listeners(self):
        with self.assertRaises(KeyError):
            PipelineController.resume("missing", self.store)

        controller = self._create()
        states = []
        controller.on_state_change(states.append)
        await controller.execute_step(PipelineStep.PARSE_RESUME, {"resume_text": RESUME_TEXT})
        controller.proceed_to_next_step()
        self.assertEqual(states[-1].current_step, PipelineStep.ANALYZE_AGAINST_JD)
        self.assertEqual(states[-1].progress, 15)

        resumed = PipelineController.resume(
            controller.session_id,
            self.store,
            rewriter=RuleBasedBulletRewriter(),
            project_lookup=CatalogProjectLookup(),
            clock=self.clock,
        )
        self.assertEqual(resumed.context, controller.context)
        self.assertEqual(resumed.current_resume().name, "Jane Smith")

    async def test_progress_and_expiry(self):
        controller = self._create()
        indicator = controller.get_progress()
        self.assertEqual(indicator.current_step, PipelineStep.PARSE_RESUME)
        self.assertEqual(indicator.percentage_complete, 0)
        self.assertEqual(indicator.total_steps, 8)
        self.assertEqual(indicator.estimated_time_remaining_s, 160)
        self.assertFalse(indicator.user_action_required)

        self.assertFalse(controller.is_session_expired())
        self.clock.now += timedelta(minutes=31)
        self.assertTrue(controller.is_session_expired())


class ErrorClassificationTests(unittest.TestCase):
    def test_classify_error(self):
        try:
            ResumeData.model_validate({"name": 5})
        except ValueError as exc:
            validation_error = exc

        cases = [
            (PipelineStepError("x", error_type=ErrorType.NETWORK_ERROR), ErrorType.NETWORK_ERROR),
            (ResumeParseError("bad", code="file_format_error"), ErrorType.FILE_FORMAT_ERROR),
            (RewriterError("bad", code="invalid_json"), ErrorType.VALIDATION_ERROR),
            (RewriterError("denied", code="authentication_error"), ErrorType.AUTHENTICATION_ERROR),
            (httpx.ReadTimeout("slow"), ErrorType.ANALYSIS_TIMEOUT),
            (httpx.ConnectError("down"), ErrorType.NETWORK_ERROR),
            (validation_error, ErrorType.VALIDATION_ERROR),
            (TimeoutError(), ErrorType.ANALYSIS_TIMEOUT),
            (RuntimeError("Could not parse the upload"), ErrorType.PARSING_FAILURE),
            (RuntimeError("connection reset by peer"), ErrorType.NETWORK_ERROR),
            (RuntimeError("Unsupported encoding"), ErrorType.FILE_FORMAT_ERROR),
            (RuntimeError("missing api key"), ErrorType.AUTHENTICATION_ERROR),
            (RuntimeError("boom"), ErrorType.VALIDATION_ERROR),
        ]
        for error, expected in cases:
            self.assertEqual(classify_error(error), expected, repr(error))

    def test_retry_delay_backs_off(self):
        self.assertEqual([retry_delay(attempt) for attempt in range(4)], [1.0, 2.0, 4.0, 8.0])
        self.assertEqual(retry_delay(6), 10.0)


if __name__ == "__main__":
    unittest.main()
