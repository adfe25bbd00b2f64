from __future__ import annotations

import re

from app.core.config.scoring import get_scoring_int
from app.schemas.scoring import KeywordTier, MissingKeyword, MissingKeywordBuckets
from app.scoring.text import contains_term, round_half_up

PROGRAMMING_LANGUAGES: tuple[str, ...] = (
    "javascript", "typescript", "python", "java", "c++", "c#", "go", "rust",
    "ruby", "php", "swift", "kotlin", "scala", "r", "matlab", "perl",
)

FRAMEWORKS: tuple[str, ...] = (
    "react", "angular", "vue", "next.js", "nuxt", "express", "django", "flask",
    "spring", "spring boot", "rails", ".net", "laravel", "fastapi", "nest.js", "svelte",
    "node.js", "nodejs", "redux", "graphql", "rest", "restful", "api", "hibernate",
)

DATABASES: tuple[str, ...] = (
    "mysql", "postgresql", "mongodb", "redis", "elasticsearch", "dynamodb",
    "cassandra", "oracle", "sql server", "sqlite", "firebase", "supabase",
)

CLOUD_PLATFORMS: tuple[str, ...] = (
    "aws", "azure", "gcp", "google cloud", "heroku", "vercel", "netlify",
    "digitalocean", "cloudflare", "alibaba cloud", "ec2", "s3", "lambda",
    "cloud", "microservices", "serverless", "saas", "paas", "iaas",
)

DEVOPS_TOOLS: tuple[str, ...] = (
    "docker", "kubernetes", "jenkins", "github actions", "gitlab ci", "terraform",
    "ansible", "puppet", "chef", "circleci", "travis", "argo", "ci/cd", "cicd",
    "devops", "devsecops", "helm", "prometheus", "grafana", "nginx", "apache",
)

TECH_VOCABULARY: tuple[str, ...] = (
    PROGRAMMING_LANGUAGES + FRAMEWORKS + DATABASES + CLOUD_PLATFORMS + DEVOPS_TOOLS
)

_PATTERN_FAMILIES: dict[str, re.Pattern[str]] = {
    "data": re.compile(
        r"\b(tableau|power bi|looker|data visualization|etl|data pipeline|spark|hadoop|kafka|airflow)\b"
    ),
    "testing": re.compile(
        r"\b(jest|mocha|cypress|selenium|junit|pytest|testing|unit test|integration test|e2e)\b"
    ),
    "security": re.compile(
        r"\b(oauth|jwt|ssl|tls|encryption|authentication|authorization|security|sso|saml)\b"
    ),
    "methodology": re.compile(r"\b(agile|scrum|kanban|waterfall|lean|sprint|standup|retrospective)\b"),
    "tools": re.compile(r"\b(jira|confluence|slack|trello|asana|notion|figma|sketch|adobe)\b"),
    "architecture": re.compile(
        r"\b(microservices|monolith|event-driven|cqrs|ddd|clean architecture|solid)\b"
    ),
    "mobile": re.compile(r"\b(ios|android|react native|flutter|xamarin|mobile|responsive)\b"),
    "ai_ml": re.compile(
        r"\b(machine learning|ml|ai|tensorflow|pytorch|scikit-learn|nlp|deep learning|neural network)\b"
    ),
}

# Terms compared between JD and resume for technical-skills alignment.
TECH_TERMS: tuple[str, ...] = (
    "javascript", "typescript", "python", "java", "react", "angular", "vue", "node", "aws", "azure",
    "docker", "kubernetes", "sql", "mysql", "postgresql", "mongodb", "tableau", "power bi", "excel",
    "r", "sas", "spss", "pandas", "numpy", "matplotlib", "seaborn", "plotly", "jupyter", "hadoop",
    "spark", "kafka", "airflow", "dbt", "snowflake", "redshift", "bigquery", "looker", "matlab",
    "tensorflow", "pytorch", "scikit-learn", "machine learning", "data science", "analytics", "etl",
    "data modeling", "statistics", "visualization", "dashboard", "business intelligence",
    "data warehouse", "nosql", "redis", "elasticsearch", "cassandra", "oracle", "sqlite", "mariadb",
    "firebase", "supabase", "git", "jira", "agile", "scrum", "api", "rest", "graphql", "json",
    "linux", "unix", "bash", "powershell", "terraform", "jenkins", "ci/cd", "devops", "cloud", "gcp",
    "google cloud", "go", "rust", "c++", "c#", "kotlin", "swift", "flutter", "django", "flask",
    "fastapi", "spring", "ansible", "helm", "microservices",
)

_COMMON_ACRONYMS = frozenset(
    {
        "THE", "AND", "FOR", "WITH", "YOU", "ARE", "WILL", "CAN", "OUR", "USA", "UK", "EU", "HR",
        "CEO", "CFO", "COO", "CTO", "VP", "SVP", "EVP", "MD", "GM", "PM", "AM", "FM", "TV", "PC",
        "IT", "IS", "AS", "AT", "BY", "DO", "GO", "IF", "IN", "NO", "OF", "ON", "OR", "SO", "TO",
        "UP", "WE", "BE", "HE", "ME", "MY", "AN", "US",
    }
)
_ACRONYM_RE = re.compile(r"\b[A-Z]{2,5}\b")

_IMPACT_BY_TIER: dict[KeywordTier, int] = {
    KeywordTier.CRITICAL: 10,
    KeywordTier.IMPORTANT: 6,
    KeywordTier.NICE_TO_HAVE: 3,
}


def extract_jd_keywords(job_description: str | None) -> list[str]:
    """Ordered, de-duplicated JD keywords: vocabulary, then pattern families, then acronyms."""
    if not job_description:
        return []

    keywords: list[str] = []
    seen: set[str] = set()

    def _add(term: str) -> None:
        key = term.lower()
        if key not in seen:
            seen.add(key)
            keywords.append(term)

    for term in TECH_VOCABULARY:
        if contains_term(job_description, term):
            _add(term)

    lowered = job_description.lower()
    for pattern in _PATTERN_FAMILIES.values():
        for match in pattern.findall(lowered):
            _add(match)

    for acronym in _ACRONYM_RE.findall(job_description):
        if acronym not in _COMMON_ACRONYMS:
            _add(acronym)

    return keywords


def tech_terms_in(text: str) -> list[str]:
    return [term for term in TECH_TERMS if contains_term(text, term)]


def vocabulary_hits(text: str) -> list[str]:
    return [term for term in TECH_VOCABULARY if contains_term(text, term)]


def keyword_match_rate(text: str, keywords: list[str]) -> int:
    if not keywords:
        return 100
    matched = sum(1 for keyword in keywords if contains_term(text, keyword))
    return round_half_up(matched / len(keywords) * 100)


def classify_keyword_tier(index: int, total: int) -> KeywordTier:
    if index < total / 3:
        return KeywordTier.CRITICAL
    if index < total * 2 / 3:
        return KeywordTier.IMPORTANT
    return KeywordTier.NICE_TO_HAVE


def suggest_placement(keyword: str) -> str:
    lowered = keyword.lower()
    if lowered in PROGRAMMING_LANGUAGES or lowered in FRAMEWORKS:
        return "Skills section - Technical Skills"
    if lowered in CLOUD_PLATFORMS or lowered in DEVOPS_TOOLS:
        return "Skills section - Tools & Platforms"
    if lowered in DATABASES:
        return "Skills section - Databases"
    return "Experience section - relevant bullet points"


def find_missing_keywords(text: str, keywords: list[str]) -> list[MissingKeyword]:
    limit = get_scoring_int("scoring.missing_keywords.max_returned", 50)
    missing: list[MissingKeyword] = []
    for index, keyword in enumerate(keywords):
        if contains_term(text, keyword):
            continue
        tier = classify_keyword_tier(index, len(keywords))
        missing.append(
            MissingKeyword(
                keyword=keyword,
                tier=tier,
                impact=_IMPACT_BY_TIER[tier],
                suggested_placement=suggest_placement(keyword),
            )
        )
    return missing[:limit]


def bucket_missing_keywords(missing: list[MissingKeyword]) -> MissingKeywordBuckets:
    size = get_scoring_int("scoring.missing_keywords.bucket_size", 5)
    critical = [item.keyword for item in missing if item.tier == KeywordTier.CRITICAL]
    important = [item.keyword for item in missing if item.tier == KeywordTier.IMPORTANT]
    optional = [item.keyword for item in missing if item.tier == KeywordTier.NICE_TO_HAVE]
    return MissingKeywordBuckets(
        critical=critical[:size],
        important=important[:size],
        optional=optional[:size],
    )
