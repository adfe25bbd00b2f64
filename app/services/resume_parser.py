from __future__ import annotations

import logging
from io import BytesIO
from typing import Protocol

from docx import Document
from pypdf import PdfReader

from app.schemas.resume import ParsedResume, ResumeData
from app.scoring.sections import identify_missing_sections, parse_resume_text

logger = logging.getLogger(__name__)

SUPPORTED_TEXT_EXTENSIONS = frozenset({"txt", "md", "text"})
SUPPORTED_EXTENSIONS = SUPPORTED_TEXT_EXTENSIONS | {"pdf", "docx"}

PDF_MAGIC = b"%PDF-"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

# Fields that make a parse trustworthy, with their share of the confidence score.
_CONFIDENCE_SIGNALS: tuple[tuple[str, float], ...] = (
    ("contact", 0.2),
    ("skills", 0.2),
    ("experience_or_projects", 0.3),
    ("education", 0.2),
    ("summary", 0.1),
)


class ResumeParseError(RuntimeError):
    def __init__(self, message: str, *, code: str = "parsing_failure"):
        super().__init__(message)
        self.code = code


class ResumeParser(Protocol):
    async def parse(self, content: bytes | str, *, filename: str | None = None) -> ParsedResume:
        """Turn an uploaded resume into structured data."""


def parsing_confidence(resume: ResumeData) -> float:
    present = {
        "contact": bool(resume.email or resume.phone),
        "skills": bool(resume.all_skills()),
        "experience_or_projects": bool(resume.work_experience or resume.projects),
        "education": bool(resume.education),
        "summary": bool((resume.summary or resume.career_objective or "").strip()),
    }
    return round(sum(weight for name, weight in _CONFIDENCE_SIGNALS if present[name]), 2)


def build_parsed_resume(resume: ResumeData) -> ParsedResume:
    return ParsedResume(
        resume=resume,
        missing_sections=identify_missing_sections(resume),
        parsing_confidence=parsing_confidence(resume),
    )


def _extension(filename: str | None) -> str:
    return filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "txt"


def _check_signature(extension: str, content: bytes) -> None:
    if extension == "pdf" and not content.startswith(PDF_MAGIC):
        raise ResumeParseError("File content does not look like a PDF.", code="file_format_error")
    if extension == "docx" and not content.startswith(ZIP_MAGICS):
        raise ResumeParseError("File content does not look like a Word document.", code="file_format_error")


def extract_pdf_text(content: bytes) -> str:
    try:
        reader = PdfReader(BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as exc:  # noqa: BLE001
        raise ResumeParseError("Unable to extract text from this PDF file.") from exc
    return "\n\n".join(page for page in pages if page.strip())


def extract_docx_text(content: bytes) -> str:
    try:
        document = Document(BytesIO(content))
    except Exception as exc:  # noqa: BLE001
        raise ResumeParseError("Unable to extract text from this Word document.") from exc
    return "\n".join(paragraph.text for paragraph in document.paragraphs if paragraph.text.strip())


class PlainTextResumeParser:
    """Heading and contact heuristics over text pulled from plain text, PDF or DOCX uploads."""

    def _decode(self, content: bytes | str, filename: str | None) -> str:
        if isinstance(content, str):
            return content
        extension = _extension(filename)
        if extension not in SUPPORTED_EXTENSIONS:
            raise ResumeParseError(
                f"Unsupported file format '.{extension}'. Upload a PDF, DOCX or text file.",
                code="file_format_error",
            )
        _check_signature(extension, content)
        if extension == "pdf":
            return extract_pdf_text(content)
        if extension == "docx":
            return extract_docx_text(content)
        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ResumeParseError("Resume file is not valid UTF-8 text.", code="file_format_error") from exc

    async def parse(self, content: bytes | str, *, filename: str | None = None) -> ParsedResume:
        text = self._decode(content, filename).replace("\r\n", "\n").strip()
        if not text:
            raise ResumeParseError("Resume text is empty.", code="parsing_failure")

        parsed = build_parsed_resume(parse_resume_text(text))
        logger.info(
            "resume_parsed format=%s chars=%s confidence=%s missing=%s",
            _extension(filename) if isinstance(content, bytes) else "text",
            len(text),
            parsed.parsing_confidence,
            ",".join(section.value for section in parsed.missing_sections) or "none",
        )
        return parsed
