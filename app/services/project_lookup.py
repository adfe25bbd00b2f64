from __future__ import annotations

import logging
from typing import Protocol

import httpx

from app.core.config import settings
from app.schemas.pipeline import ProjectSuggestion, RoleCategory
from app.scoring.text import contains_term

logger = logging.getLogger(__name__)

_ROLE_TERMS: dict[RoleCategory, tuple[str, ...]] = {
    RoleCategory.MOBILE: ("mobile", "android", "ios", "flutter", "react native", "swift", "kotlin"),
    RoleCategory.DATA: (
        "data", "machine learning", "ml", "analytics", "pandas", "spark", "tensorflow", "pytorch", "etl",
    ),
    RoleCategory.EMBEDDED: ("embedded", "firmware", "rtos", "microcontroller", "fpga", "c"),
    RoleCategory.IOT: ("iot", "internet of things", "mqtt", "raspberry pi", "arduino", "esp32", "sensor"),
    RoleCategory.FRONTEND: ("frontend", "front-end", "react", "angular", "vue", "css", "ui", "next.js"),
    RoleCategory.BACKEND: (
        "backend", "back-end", "api", "django", "flask", "fastapi", "spring", "node.js", "microservices",
    ),
}

PROJECT_CATALOG: dict[RoleCategory, list[ProjectSuggestion]] = {
    RoleCategory.BACKEND: [
        ProjectSuggestion(
            title="Full Stack FastAPI Template",
            url="https://github.com/fastapi/full-stack-fastapi-template",
            description="Production-style API with auth, database migrations and background jobs.",
        ),
        ProjectSuggestion(
            title="RealWorld API",
            url="https://github.com/gothinkster/realworld",
            description="Implement the RealWorld blogging API contract with tests and CI.",
        ),
    ],
    RoleCategory.FRONTEND: [
        ProjectSuggestion(
            title="RealWorld Frontend",
            url="https://github.com/gothinkster/realworld",
            description="Build the RealWorld client with routing, state management and API integration.",
        ),
        ProjectSuggestion(
            title="App Ideas Collection",
            url="https://github.com/florinpop17/app-ideas",
            description="Pick an intermediate UI project and ship it with accessibility checks.",
        ),
    ],
    RoleCategory.FULLSTACK: [
        ProjectSuggestion(
            title="RealWorld Full Stack",
            url="https://github.com/gothinkster/realworld",
            description="Pair a RealWorld backend and frontend and deploy them together.",
        ),
        ProjectSuggestion(
            title="Full Stack FastAPI Template",
            url="https://github.com/fastapi/full-stack-fastapi-template",
            description="Extend the template with a new feature end to end.",
        ),
    ],
    RoleCategory.MOBILE: [
        ProjectSuggestion(
            title="Flutter Samples",
            url="https://github.com/flutter/samples",
            description="Adapt a sample app and publish it with offline support.",
        ),
        ProjectSuggestion(
            title="Android Architecture Samples",
            url="https://github.com/android/architecture-samples",
            description="Rebuild the to-do app with a modern architecture and tests.",
        ),
    ],
    RoleCategory.DATA: [
        ProjectSuggestion(
            title="Data Engineering Zoomcamp",
            url="https://github.com/DataTalksClub/data-engineering-zoomcamp",
            description="Build an end-to-end batch and streaming pipeline with a dashboard.",
        ),
        ProjectSuggestion(
            title="Python Data Science Handbook",
            url="https://github.com/jakevdp/PythonDataScienceHandbook",
            description="Publish an analysis notebook on a public dataset with clear findings.",
        ),
    ],
    RoleCategory.EMBEDDED: [
        ProjectSuggestion(
            title="Awesome Embedded",
            url="https://github.com/nhivp/Awesome-Embedded",
            description="Write a driver for a common sensor and document the timing constraints.",
        ),
        ProjectSuggestion(
            title="Zephyr RTOS",
            url="https://github.com/zephyrproject-rtos/zephyr",
            description="Port a Zephyr sample to a development board and add a feature.",
        ),
    ],
    RoleCategory.IOT: [
        ProjectSuggestion(
            title="Home Assistant",
            url="https://github.com/home-assistant/core",
            description="Build a custom integration for a home sensor.",
        ),
        ProjectSuggestion(
            title="ESP-IDF Examples",
            url="https://github.com/espressif/esp-idf",
            description="Create an MQTT telemetry device with over-the-air updates.",
        ),
    ],
}

if set(PROJECT_CATALOG) != set(RoleCategory):
    raise RuntimeError("PROJECT_CATALOG does not cover every RoleCategory.")


def classify_role(role: str | None, tech_stack: list[str] | None = None) -> RoleCategory:
    text = " ".join([role or "", *(tech_stack or [])])
    if not text.strip():
        return RoleCategory.FULLSTACK
    if contains_term(text, "full stack") or contains_term(text, "fullstack") or contains_term(text, "full-stack"):
        return RoleCategory.FULLSTACK

    hits = {category: any(contains_term(text, term) for term in terms) for category, terms in _ROLE_TERMS.items()}
    if hits[RoleCategory.FRONTEND] and hits[RoleCategory.BACKEND]:
        return RoleCategory.FULLSTACK
    for category in (
        RoleCategory.MOBILE,
        RoleCategory.DATA,
        RoleCategory.IOT,
        RoleCategory.EMBEDDED,
        RoleCategory.FRONTEND,
        RoleCategory.BACKEND,
    ):
        if hits[category]:
            return category
    return RoleCategory.FULLSTACK


def catalog_projects(role: str | None, tech_stack: list[str] | None = None) -> list[ProjectSuggestion]:
    return [item.model_copy() for item in PROJECT_CATALOG[classify_role(role, tech_stack)]]


class ProjectLookup(Protocol):
    async def suggest_projects(self, tech_stack: list[str], role: str | None) -> list[ProjectSuggestion]:
        """Return project ideas for a tech stack and target role."""


class CatalogProjectLookup:
    async def suggest_projects(self, tech_stack: list[str], role: str | None) -> list[ProjectSuggestion]:
        return catalog_projects(role, tech_stack)


class GitHubProjectLookup:
    """Searches GitHub repositories; any HTTP failure or empty result falls back to the catalog."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        api_url: str | None = None,
        token: str | None = None,
        timeout_s: float | None = None,
        limit: int = 3,
    ) -> None:
        self._client = client
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.token = token if token is not None else settings.github_token
        self.timeout_s = timeout_s or settings.github_timeout_s
        self.limit = limit

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _search(self, client: httpx.AsyncClient, query: str) -> list[dict]:
        response = await client.get(
            f"{self.api_url}/search/repositories",
            params={"q": query, "sort": "stars", "order": "desc", "per_page": self.limit},
            headers=self._headers(),
        )
        response.raise_for_status()
        items = response.json().get("items") or []
        return [item for item in items if isinstance(item, dict)]

    async def suggest_projects(self, tech_stack: list[str], role: str | None) -> list[ProjectSuggestion]:
        terms = [term for term in tech_stack[:3] if term.strip()]
        query = " ".join(terms) if terms else classify_role(role, tech_stack).value
        query = f"{query} stars:>100"
        try:
            if self._client is not None:
                items = await self._search(self._client, query)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s, follow_redirects=True) as client:
                    items = await self._search(client, query)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("project_lookup_failed query=%s error=%s", query, exc)
            return catalog_projects(role, tech_stack)

        if not items:
            logger.warning("project_lookup_empty query=%s", query)
            return catalog_projects(role, tech_stack)

        return [
            ProjectSuggestion(
                title=str(item.get("full_name") or item.get("name") or ""),
                url=item.get("html_url"),
                description=str(item.get("description") or ""),
                source="github",
            )
            for item in items[: self.limit]
        ]


def build_project_lookup() -> ProjectLookup:
    if settings.project_lookup_enabled:
        return GitHubProjectLookup()
    return CatalogProjectLookup()
