from __future__ import annotations

import re

STRONG_ACTION_VERBS = frozenset(
    {
        "achieved", "accelerated", "accomplished", "advanced", "analyzed", "architected",
        "built", "created", "delivered", "designed", "developed", "drove", "enhanced",
        "established", "executed", "generated", "implemented", "improved", "increased",
        "initiated", "launched", "led", "managed", "optimized", "orchestrated",
        "pioneered", "reduced", "resolved", "scaled", "spearheaded", "streamlined",
        "transformed", "upgraded", "automated", "collaborated", "coordinated",
        "facilitated", "mentored", "negotiated", "presented", "supervised", "engineered",
        "migrated", "refactored", "deployed", "integrated", "shipped", "owned",
    }
)

WEAK_VERBS = (
    "responsible", "duties", "worked", "helped", "assisted", "involved",
    "participated", "contributed", "supported", "handled", "performed",
    "maintained", "operated", "utilized", "used", "did", "was", "were",
)

RESPONSIBILITY_INDICATORS = (
    "responsible for", "duties included", "tasks involved", "job responsibilities",
    "daily tasks", "routine work", "assigned to", "required to", "expected to",
)

ACHIEVEMENT_INDICATORS = (
    "achieved", "accomplished", "delivered", "exceeded", "improved", "increased",
    "reduced", "saved", "generated", "won", "earned", "awarded", "recognized",
    "promoted", "selected", "chosen", "resulted in", "led to",
)

BUSINESS_IMPACT_TERMS = (
    "revenue", "profit", "efficiency", "productivity", "quality",
    "customer satisfaction", "cost reduction",
)

_METRIC_PATTERNS = (
    re.compile(r"\d+(?:\.\d+)?\s?%"),
    re.compile(r"[$€£₹]\s?[\d,]+"),
    re.compile(r"\b\d+(?:\.\d+)?[kK]\+?\b"),
    re.compile(r"\b\d+(?:\.\d+)?[mM]\+?\b"),
    re.compile(r"\b\d+\s*(?:hours?|days?|weeks?|months?|years?)\b", re.IGNORECASE),
    re.compile(r"\b\d+\+?\s*(?:people|users|customers|clients|employees|team members?|engineers)\b", re.IGNORECASE),
    re.compile(r"\b\d+\+?\s*(?:projects?|applications?|systems?|features?|services?)\b", re.IGNORECASE),
    re.compile(r"(?:increased|improved|reduced|decreased|grew|boosted|enhanced|cut)\s+(?:\w+\s+)?(?:by\s+)?\d+", re.IGNORECASE),
)

# Narrower rule used for the quantified-results critical metric.
QUANTIFIED_RESULT_RE = re.compile(
    r"\d+%|\$\d+|\d+\s*(?:users?|customers?|clients?|projects?|team|people|million|k\b)",
    re.IGNORECASE,
)

FIRST_PERSON_RE = re.compile(r"\b(i|me|my|mine|myself)\b", re.IGNORECASE)
_PASSIVE_RE = re.compile(r"\b(?:was|were|been|being|is|are)\s+\w+ed\b(?:\s+by\b)?", re.IGNORECASE)
_VAGUE_RE = re.compile(r"\b(various|several|multiple|many|some|different|etc\.?|stuff|things)\b", re.IGNORECASE)

CLICHES = (
    "team player", "hard worker", "hardworking", "detail-oriented", "self-starter",
    "go-getter", "think outside the box", "synergy", "results-driven", "dynamic",
    "go-to person", "best of breed",
)

UNSUBSTANTIATED_CLAIM_RE = re.compile(
    r"\b(best|top|leading|expert|guru|ninja|rockstar|world-class|industry-leading|cutting-edge)\b",
    re.IGNORECASE,
)

_COMMON_TYPOS = (
    "teh", "recieve", "recieved", "seperate", "occured", "managment", "acheive", "acheived",
    "enviroment", "responsable", "sucessful", "succesful", "definately", "untill", "wich",
    "adress", "begining", "comittee", "developement", "experiance",
)
_GRAMMAR_PATTERNS = (
    re.compile(r"(?<=\S)[ \t]{2,}(?=\S)"),
    re.compile(r"\.{2,}(?!\.)|[!?]{2,}|,{2,}"),
    re.compile(r"(?<=\w)\s+[,;:](?=\s)"),
    re.compile(r"(?:^|\s)i(?=\s)"),
)

LEADERSHIP_TERMS = (
    "led", "lead", "managed", "mentored", "supervised", "headed", "spearheaded",
    "captain", "president", "coordinated", "directed", "owned",
)
AWARD_TERMS = (
    "award", "awarded", "winner", "won", "recognized", "honor", "honour", "scholarship",
    "hackathon", "medal", "dean's list", "finalist",
)
RANKING_RE = re.compile(
    r"\b(ranked|rank\s+\d+|top\s+\d+%?|publication|published|paper|patent|speaker|conference|journal)\b",
    re.IGNORECASE,
)
COLLABORATION_TERMS = (
    "collaborated", "collaboration", "cross-functional", "partnered", "team", "teams",
    "worked with", "paired", "stakeholders",
)
COMMUNICATION_TERMS = (
    "presented", "communicated", "communication", "stakeholder", "documentation",
    "documented", "wrote", "authored", "demo", "trained",
)
LEARNING_TERMS = (
    "learned", "learning", "certified", "certification", "course", "self-taught",
    "upskilled", "training", "workshop", "bootcamp", "mooc",
)
SOFT_SKILLS = (
    "communication", "leadership", "teamwork", "collaboration", "problem solving",
    "problem-solving", "adaptability", "ownership", "mentoring", "time management",
    "critical thinking", "creativity", "attention to detail", "stakeholder management",
)

SENIORITY_LADDER: tuple[tuple[int, tuple[str, ...]], ...] = (
    (0, ("intern", "trainee", "apprentice")),
    (1, ("junior", "associate", "graduate", "jr")),
    (3, ("senior", "sr")),
    (4, ("lead", "staff", "principal")),
    (5, ("manager", "head", "architect")),
    (6, ("director", "vp", "vice president", "cto", "ceo", "chief")),
)

_INFLATED_TITLE_PATTERNS = (
    re.compile(r"\b(?:ceo|cto|founder)\b.*\b(?:startup|small|1-10|solo|self-employed)\b", re.IGNORECASE),
    re.compile(r"\bvp\b.*\b(?:startup|small|1-10)\b", re.IGNORECASE),
    re.compile(r"\bdirector\b.*\b(?:intern|junior|entry)\b", re.IGNORECASE),
    re.compile(r"\b(?:senior|lead|principal)\b.*\b(?:intern|trainee)\b", re.IGNORECASE),
)

OUTDATED_TECH_RE = re.compile(
    r"\b(cobol|fortran|pascal|delphi|vb6|visual basic 6|flash|actionscript|silverlight|jquery)\b",
    re.IGNORECASE,
)
MODERN_TECH_RE = re.compile(
    r"\b(react|vue|angular|typescript|python|golang|rust|kubernetes|docker|aws|azure|gcp)\b",
    re.IGNORECASE,
)
TABLE_GLYPH_RE = re.compile(r"[│┃┆┇┊┋─-╿]")
BULLET_STYLE_RE = re.compile(r"^\s*([•\-\*‣◦▪●◦])\s", re.MULTILINE)


def first_word(text: str) -> str:
    parts = text.strip().split()
    return parts[0].lower().strip(",.;:") if parts else ""


def starts_with_strong_verb(bullet: str) -> bool:
    return first_word(bullet) in STRONG_ACTION_VERBS


def starts_with_weak_verb(bullet: str) -> bool:
    return first_word(bullet) in WEAK_VERBS


def has_metric(text: str) -> bool:
    return any(pattern.search(text) for pattern in _METRIC_PATTERNS)


def count_metrics(text: str) -> int:
    return sum(len(pattern.findall(text)) for pattern in _METRIC_PATTERNS)


def contains_any(text: str, phrases: tuple[str, ...] | frozenset[str]) -> bool:
    lowered = text.lower()
    return any(re.search(rf"(?<![a-z]){re.escape(phrase)}(?![a-z])", lowered) for phrase in phrases)


def count_phrases(text: str, phrases: tuple[str, ...]) -> int:
    lowered = text.lower()
    return sum(len(re.findall(rf"(?<![a-z]){re.escape(phrase)}(?![a-z])", lowered)) for phrase in phrases)


def grammar_error_count(text: str) -> int:
    count = sum(len(pattern.findall(text)) for pattern in _GRAMMAR_PATTERNS)
    return count + count_phrases(text, _COMMON_TYPOS)


def passive_phrase_count(text: str) -> int:
    return len(_PASSIVE_RE.findall(text))


def is_vague(text: str) -> bool:
    return bool(_VAGUE_RE.search(text))


def seniority_level(title: str) -> int:
    """Rough rank of a job title; 2 is a plain individual-contributor title."""
    lowered = title.lower()
    level = 2
    for rank, terms in SENIORITY_LADDER:
        if any(re.search(rf"(?<![a-z]){re.escape(term)}(?![a-z])", lowered) for term in terms):
            level = rank
    return level


def looks_inflated(title_line: str) -> bool:
    return any(pattern.search(title_line) for pattern in _INFLATED_TITLE_PATTERNS)
