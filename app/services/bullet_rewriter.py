from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Protocol

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.schemas.resume import ResumeData
from app.scoring.text import normalize_line, strip_bullet_prefix, word_count
from app.services.resume_edits import normalize_bullet_text

logger = logging.getLogger(__name__)


class RewriterError(RuntimeError):
    def __init__(self, message: str, *, code: str = "rewriter_unavailable"):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class RewriteContext:
    section: str
    title: str = ""
    job_description: str | None = None
    target_role: str | None = None
    keywords: tuple[str, ...] = field(default_factory=tuple)


class RewritePayload(BaseModel):
    bullets: list[str]


class SummaryPayload(BaseModel):
    summary: str


class BulletRewriter(Protocol):
    async def rewrite_bullets(self, bullets: list[str], *, context: RewriteContext) -> list[str]:
        """Return one rewritten bullet per input bullet, in order."""

    async def write_summary(
        self,
        resume: ResumeData,
        *,
        job_description: str | None,
        target_role: str | None,
    ) -> str:
        """Return a professional summary for the resume."""


def parse_rewrite_payload(raw: str | None, expected_count: int) -> list[str]:
    """Validate model output shaped like {"bullets": [...]} before it touches resume data."""
    try:
        data = json.loads(raw or "")
    except json.JSONDecodeError as exc:
        raise RewriterError(f"Rewriter returned malformed JSON: {exc}", code="invalid_json") from exc
    try:
        payload = RewritePayload.model_validate(data)
    except ValidationError as exc:
        raise RewriterError("Rewriter response does not match the bullets schema.", code="invalid_schema") from exc

    bullets = [normalize_line(item) for item in payload.bullets]
    if len(bullets) != expected_count or not all(bullets):
        raise RewriterError(
            f"Rewriter returned {len(bullets)} bullets for {expected_count} inputs.",
            code="invalid_schema",
        )
    return bullets


def parse_summary_payload(raw: str | None) -> str:
    try:
        data = json.loads(raw or "")
    except json.JSONDecodeError as exc:
        raise RewriterError(f"Rewriter returned malformed JSON: {exc}", code="invalid_json") from exc
    try:
        payload = SummaryPayload.model_validate(data)
    except ValidationError as exc:
        raise RewriterError("Rewriter response does not match the summary schema.", code="invalid_schema") from exc
    summary = normalize_line(payload.summary)
    if not summary:
        raise RewriterError("Rewriter returned an empty summary.", code="invalid_schema")
    return summary


_WEAK_OPENINGS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^(?:was\s+)?responsible\s+for\s+", re.IGNORECASE), "Led "),
    (re.compile(r"^duties\s+included\s+", re.IGNORECASE), "Delivered "),
    (re.compile(r"^worked\s+on\s+", re.IGNORECASE), "Developed "),
    (re.compile(r"^worked\s+with\s+", re.IGNORECASE), "Collaborated with "),
    (re.compile(r"^(?:helped|assisted)\s+(?:with|in)\s+", re.IGNORECASE), "Collaborated on "),
    (re.compile(r"^(?:helped|assisted)\s+(?:to\s+)?", re.IGNORECASE), "Collaborated to "),
    (re.compile(r"^(?:was\s+)?involved\s+in\s+", re.IGNORECASE), "Executed "),
    (re.compile(r"^participated\s+in\s+", re.IGNORECASE), "Collaborated on "),
    (re.compile(r"^handled\s+", re.IGNORECASE), "Managed "),
    (re.compile(r"^(?:utilized|used)\s+", re.IGNORECASE), "Implemented "),
)


def polish_bullet(bullet: str) -> str:
    """Strong opening verb, single spaces, capitalised, no trailing punctuation."""
    text = normalize_line(strip_bullet_prefix(bullet))
    for pattern, replacement in _WEAK_OPENINGS:
        if pattern.match(text):
            text = pattern.sub(replacement, text, count=1)
            break
    return normalize_bullet_text(re.sub(r"\s+([,;:])", r"\1", text))


class RuleBasedBulletRewriter:
    """Deterministic rewriter used when no language model is configured."""

    async def rewrite_bullets(self, bullets: list[str], *, context: RewriteContext) -> list[str]:
        return [polish_bullet(bullet) or bullet for bullet in bullets]

    async def write_summary(
        self,
        resume: ResumeData,
        *,
        job_description: str | None,
        target_role: str | None,
    ) -> str:
        role = target_role or resume.target_role or (resume.work_experience[0].role if resume.work_experience else "")
        role = role or "Software professional"
        skills = resume.all_skills()[:5]
        sentences = [f"{role} with hands-on experience delivering production software."]
        if skills:
            sentences.append(f"Skilled in {', '.join(skills)}.")
        if resume.work_experience:
            latest = resume.work_experience[0]
            sentences.append(f"Most recently worked as {latest.role} at {latest.company}." if latest.company else "")
        elif resume.projects:
            sentences.append(f"Built {len(resume.projects)} project(s) including {resume.projects[0].title}.")
        sentences.append("Focused on writing maintainable code, measurable results and close collaboration with teams.")
        return " ".join(sentence for sentence in sentences if sentence)


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


def rewriter_llm_configured() -> bool:
    if not settings.rewriter_llm_enabled:
        return False
    api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    return bool(api_key) and not _looks_like_placeholder(api_key)


@lru_cache(maxsize=1)
def _client() -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=(os.getenv("OPENAI_API_KEY") or "").strip(),
        base_url=(os.getenv("OPENAI_BASE_URL") or None),
        timeout=float(os.getenv("REWRITER_LLM_TIMEOUT_S", "20")),
        max_retries=int(os.getenv("OPENAI_MAX_RETRIES", "2")),
    )


def _model() -> str:
    return (os.getenv("AI_MODEL") or os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip()


_BULLET_SYSTEM_PROMPT = (
    "You rewrite resume bullet points. Start each bullet with a strong action verb, keep facts unchanged, "
    "add measurable impact only when the input states it, and never invent employers or numbers. "
    'Reply with JSON: {"bullets": ["..."]} containing exactly one bullet per input bullet, in order.'
)

_SUMMARY_SYSTEM_PROMPT = (
    "You write concise professional resume summaries of 40 to 60 words using only facts from the resume. "
    'Reply with JSON: {"summary": "..."}.'
)


class OpenAIBulletRewriter:
    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None) -> None:
        self._client = client
        self.model = model or _model()

    @property
    def client(self) -> AsyncOpenAI:
        return self._client or _client()

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.2,
                response_format={"type": "json_object"},
                max_tokens=max_tokens,
            )
        except openai.AuthenticationError as exc:
            raise RewriterError("OpenAI rejected the API key.", code="authentication_error") from exc
        except openai.APITimeoutError as exc:
            raise RewriterError("OpenAI request timed out.", code="analysis_timeout") from exc
        except openai.APIConnectionError as exc:
            raise RewriterError("Could not reach OpenAI.", code="network_error") from exc
        return (response.choices[0].message.content if response.choices else "") or ""

    async def rewrite_bullets(self, bullets: list[str], *, context: RewriteContext) -> list[str]:
        if not bullets:
            return []
        user_prompt = json.dumps(
            {
                "section": context.section,
                "title": context.title,
                "target_role": context.target_role,
                "keywords": list(context.keywords),
                "job_description": (context.job_description or "")[:3000],
                "bullets": bullets,
            },
            ensure_ascii=False,
        )
        content = await self._complete(_BULLET_SYSTEM_PROMPT, user_prompt, max_tokens=900)
        try:
            return parse_rewrite_payload(content, len(bullets))
        except RewriterError as exc:
            logger.warning("rewriter_payload_rejected model=%s code=%s bullets=%s", self.model, exc.code, len(bullets))
            raise

    async def write_summary(
        self,
        resume: ResumeData,
        *,
        job_description: str | None,
        target_role: str | None,
    ) -> str:
        user_prompt = json.dumps(
            {
                "target_role": target_role or resume.target_role,
                "current_summary": resume.summary,
                "skills": resume.all_skills()[:20],
                "experience": [f"{job.role} at {job.company}" for job in resume.work_experience],
                "projects": [project.title for project in resume.projects],
                "job_description": (job_description or "")[:3000],
            },
            ensure_ascii=False,
        )
        content = await self._complete(_SUMMARY_SYSTEM_PROMPT, user_prompt, max_tokens=300)
        try:
            summary = parse_summary_payload(content)
        except RewriterError as exc:
            logger.warning("rewriter_summary_rejected model=%s code=%s", self.model, exc.code)
            raise
        logger.debug("rewriter_summary_written words=%s", word_count(summary))
        return summary


def build_bullet_rewriter() -> BulletRewriter:
    if rewriter_llm_configured():
        return OpenAIBulletRewriter()
    return RuleBasedBulletRewriter()
