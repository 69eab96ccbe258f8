from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from repo_harvest.config import GitHubSettings, SearchSettings
from repo_harvest.github_client import GitHubApiGateway

UTC = timezone.utc
FIXED_NOW = datetime(2024, 1, 1, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.current = now
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@dataclass
class SearchCall:
    created: str
    per_page: int
    page: int


@dataclass
class StubGitHub:
    """In-memory stand-in for GitHub's search and contents endpoints.

    Search filtering mirrors GitHub: ``created:A..B`` is inclusive on both days.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    reported_counts: dict[str, int] = field(default_factory=dict)
    readmes: dict[str, dict[str, Any]] = field(default_factory=dict)
    default_branches: dict[str, str] = field(default_factory=dict)
    failing_ranges: set[str] = field(default_factory=set)
    failing_readmes: set[str] = field(default_factory=set)
    headers: dict[str, str] = field(default_factory=lambda: {"X-RateLimit-Remaining": "4000"})
    calls: list[SearchCall] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/search/repositories":
            return self._search(request)
        match = re.fullmatch(r"/repos/([^/]+/[^/]+)/readme", path)
        if match and match.group(1) in self.failing_readmes:
            return httpx.Response(503, text="unavailable")
        if match:
            payload = self.readmes.get(match.group(1))
            if payload is None:
                return httpx.Response(404, json={"message": "Not Found"}, headers=self.headers)
            return httpx.Response(200, json=payload, headers=self.headers)
        match = re.fullmatch(r"/repos/([^/]+/[^/]+)", path)
        if match and match.group(1) in self.default_branches:
            return httpx.Response(
                200, json={"default_branch": self.default_branches[match.group(1)]}, headers=self.headers
            )
        return httpx.Response(404, json={"message": "Not Found"}, headers=self.headers)

    def _search(self, request: httpx.Request) -> httpx.Response:
        tokens = [token for token in re.split(r"[\s+]+", request.url.params["q"]) if token]
        created = next(token.split(":", 1)[1] for token in tokens if token.startswith("created:"))
        min_stars = 0
        for token in tokens:
            if token.startswith("stars:>="):
                min_stars = int(token[len("stars:>="):])
        per_page = int(request.url.params["per_page"])
        page = int(request.url.params["page"])
        self.calls.append(SearchCall(created=created, per_page=per_page, page=page))

        if created in self.failing_ranges:
            return httpx.Response(503, text="unavailable")

        start_text, end_text = created.split("..")
        start, end = date.fromisoformat(start_text), date.fromisoformat(end_text)
        matches = [
            item
            for item in self.items
            if start <= _created_day(item) <= end and item["stargazers_count"] >= min_stars
        ]
        matches.sort(key=lambda item: (-item["stargazers_count"], item["id"]))
        total = self.reported_counts.get(created, len(matches))
        window = matches[(page - 1) * per_page : page * per_page]
        return httpx.Response(200, json={"total_count": total, "items": window}, headers=self.headers)

    def count_calls(self) -> list[SearchCall]:
        return [call for call in self.calls if call.per_page == 1]

    def pages(self) -> list[SearchCall]:
        return [call for call in self.calls if call.per_page != 1]


def _created_day(item: dict[str, Any]) -> date:
    return datetime.fromisoformat(item["created_at"].replace("Z", "+00:00")).date()


def make_item(repo_id: int, created_at: datetime, stars: int = 10) -> dict[str, Any]:
    return {
        "id": repo_id,
        "name": f"repo-{repo_id}",
        "full_name": f"owner/repo-{repo_id}",
        "html_url": f"https://github.com/owner/repo-{repo_id}",
        "description": "demo",
        "created_at": created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "updated_at": created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "pushed_at": created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "language": "Python",
        "homepage": None,
        "size": 10,
        "stargazers_count": stars,
        "watchers_count": stars,
        "forks_count": 0,
        "open_issues_count": 0,
        "topics": ["ocr"],
        "default_branch": "main",
        "is_template": False,
    }


def make_items(count: int, start: datetime, spacing: timedelta, base_id: int = 1) -> list[dict[str, Any]]:
    return [
        make_item(base_id + index, start + spacing * index, stars=10 + index % 500)
        for index in range(count)
    ]


def encode_readme(text: str) -> str:
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub() -> StubGitHub:
    return StubGitHub()


@pytest.fixture
def github_settings() -> GitHubSettings:
    return GitHubSettings(token="test-token", request_timeout=5.0)


@pytest.fixture
def search_settings() -> SearchSettings:
    return SearchSettings(keywords="x")


@pytest.fixture
def make_gateway(stub: StubGitHub, github_settings: GitHubSettings, clock: FakeClock):
    """Build a gateway bound to ``stub``; must be called inside a running event loop."""

    def factory() -> tuple[GitHubApiGateway, httpx.AsyncClient]:
        client = httpx.AsyncClient(transport=httpx.MockTransport(stub.handler))
        return GitHubApiGateway(github_settings, client, clock=clock), client

    return factory
