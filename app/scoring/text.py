from __future__ import annotations

import math
import re
from functools import lru_cache

_BULLET_CHARS = "•◦▪▫●○■□◆◇▶►▸-–—*·"
_BULLET_PATTERN = re.compile(rf"^\s*(?:[{re.escape(_BULLET_CHARS)}]|(?:\d+[\.\)]))\s+")
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9+#'\-]*")

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"\+?\d[\d\s().-]{7,}\d")
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:[a-z]{2,3}\.)?linkedin\.com/[^\s|,;]+", re.IGNORECASE)
GITHUB_RE = re.compile(r"(?:https?://)?(?:www\.)?github\.com/[^\s|,;]+", re.IGNORECASE)
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_DATE_TOKEN_RE = re.compile(
    r"(?:(?P<month>jan|feb|mar|apr|may|jun|jul|aug|sept?|oct|nov|dec)[a-z]*\.?\s+)?(?P<year>(?:19|20)\d{2})"
    r"|(?P<num_month>\d{1,2})/(?P<num_year>(?:19|20)\d{2})"
    r"|(?P<present>present|current|now|ongoing)",
    re.IGNORECASE,
)


def round_half_up(value: float) -> int:
    """Round .5 away from zero; `round()` would use banker's rounding."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_line(line: str) -> str:
    return re.sub(r"\s+", " ", line).strip()


def is_bullet_like(line: str) -> bool:
    return bool(_BULLET_PATTERN.match(line))


def strip_bullet_prefix(line: str) -> str:
    return _BULLET_PATTERN.sub("", line).strip()


def words(text: str) -> list[str]:
    return _WORD_RE.findall(text)


def word_count(text: str) -> int:
    return len(words(text))


@lru_cache(maxsize=2048)
def _term_pattern(term: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(term.lower())}(?![a-z0-9+#])")


def contains_term(text: str, term: str) -> bool:
    """Case-insensitive term lookup on token boundaries, so 'go' does not match 'good'."""
    cleaned = term.strip().lower()
    if not cleaned:
        return False
    return bool(_term_pattern(cleaned).search(text.lower()))


def extract_years(text: str) -> list[int]:
    return [int(match) for match in YEAR_RE.findall(text)]


def parse_date_range(text: str, present_year: int | None) -> tuple[int, int] | None:
    """Parse '2019 - 2021', 'Jan 2020 – Present' or '03/2018 - 05/2019' into month indexes.

    'Present' resolves to the end of `present_year`, which callers derive from the
    resume itself so results never depend on the wall clock.
    """
    points: list[tuple[int, bool]] = []
    for match in _DATE_TOKEN_RE.finditer(text or ""):
        if match.group("present"):
            if present_year is None:
                continue
            points.append((present_year * 12 + 12, True))
        elif match.group("year"):
            month_name = (match.group("month") or "").lower()[:4].rstrip(".")
            month = _MONTHS.get(month_name[:3] if month_name != "sept" else "sept", 0)
            points.append((int(match.group("year")) * 12 + (month or 0), month > 0))
        else:
            month = int(match.group("num_month"))
            if not 1 <= month <= 12:
                continue
            points.append((int(match.group("num_year")) * 12 + month, True))
        if len(points) == 2:
            break

    if not points:
        return None

    start_value, start_has_month = points[0]
    start = start_value if start_has_month else start_value + 1
    if len(points) == 1:
        end = start_value if start_has_month else start_value + 12
        return start, end

    end_value, end_has_month = points[1]
    end = end_value if end_has_month else end_value + 12
    if end < start:
        return start, start
    return start, end
