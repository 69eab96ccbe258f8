"""Application configuration helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, NonNegativeInt, PositiveInt

from .errors import ConfigurationError
from .models import SearchCriteria


UTC = timezone.utc

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_USER_AGENT = "repo-harvest/0.1"
DEFAULT_ACCEPT = "application/vnd.github.v3+json"


class GitHubSettings(BaseModel):
    """Configuration options for the GitHub REST API."""

    token: str | None = Field(default=None, description="Personal access token used as a bearer token.")
    api_url: str = Field(default=DEFAULT_API_URL)
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent with every request.")
    accept: str = Field(default=DEFAULT_ACCEPT, description="Versioned JSON media type requested from GitHub.")
    request_timeout: float = Field(default=30.0, ge=1.0, description="Timeout for a single HTTP request in seconds.")
    rate_limit_threshold: NonNegativeInt = Field(
        default=5, description="Pause until the quota resets once fewer calls than this remain."
    )


class DatabaseSettings(BaseModel):
    """Configuration for connecting to Postgres."""

    dsn: str | None = Field(default=None, description="Database connection string.")
    statement_timeout: float = Field(default=60.0, ge=1.0, description="Statement timeout in seconds.")
    batch_size: PositiveInt = Field(default=500, description="Number of documents upserted per batch.")


class SearchSettings(BaseModel):
    """Default search criteria and the limits of GitHub's search API."""

    keywords: str = Field(default="", description="Free text matched against name, description, readme and topics.")
    min_stars: NonNegativeInt = Field(default=0)
    include_forks: bool = Field(default=False)
    created_from: datetime = Field(default_factory=lambda: datetime.now(tz=UTC) - timedelta(days=365))
    created_to: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    language: str | None = Field(default=None)
    pushed_since: date | None = Field(default=None, description="Only repositories pushed on or after this day.")
    result_window: PositiveInt = Field(
        default=1_000,
        description="Maximum number of repositories reachable through a single search query.",
    )
    page_size: PositiveInt = Field(default=100, le=100, description="Number of repositories fetched per page.")

    def criteria(self) -> SearchCriteria:
        """Build the criteria used when a search is started without explicit criteria."""

        if not self.keywords.strip():
            raise ConfigurationError("SEARCH_KEYWORDS must be set to search without explicit criteria")
        return SearchCriteria(
            keywords=self.keywords,
            min_stars=self.min_stars,
            include_forks=self.include_forks,
            created_from=self.created_from,
            created_to=self.created_to,
            language=self.language,
            pushed_since=self.pushed_since,
        )


class AppConfig(BaseModel):
    """Root configuration container."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, overrides: dict[str, Any] | None = None) -> "AppConfig":
        """Construct a configuration object from environment variables."""

        env = env if env is not None else os.environ
        overrides = overrides or {}

        github = GitHubSettings(
            token=overrides.get("github_token") or env.get("GITHUB_TOKEN") or env.get("GH_TOKEN"),
            api_url=overrides.get("github_api_url") or env.get("GITHUB_API_URL") or DEFAULT_API_URL,
            user_agent=overrides.get("github_user_agent") or env.get("GITHUB_USER_AGENT") or DEFAULT_USER_AGENT,
            request_timeout=float(overrides.get("github_request_timeout") or env.get("GITHUB_REQUEST_TIMEOUT", 30.0)),
            rate_limit_threshold=int(
                overrides.get("github_rate_limit_threshold") or env.get("GITHUB_RATE_LIMIT_THRESHOLD", 5)
            ),
        )

        database = DatabaseSettings(
            dsn=overrides.get("database_dsn") or env.get("DATABASE_DSN") or env.get("DATABASE_URL"),
            statement_timeout=float(overrides.get("database_statement_timeout") or env.get("DATABASE_STATEMENT_TIMEOUT", 60.0)),
            batch_size=int(overrides.get("database_batch_size") or env.get("DATABASE_BATCH_SIZE", 500)),
        )

        now = datetime.now(tz=UTC)
        search = SearchSettings(
            keywords=overrides.get("keywords") or env.get("SEARCH_KEYWORDS") or "",
            min_stars=int(_first_set(overrides.get("min_stars"), env.get("SEARCH_MIN_STARS"), 0)),
            include_forks=_parse_bool(_first_set(overrides.get("include_forks"), env.get("SEARCH_INCLUDE_FORKS"), False)),
            created_from=overrides.get("created_from")
            or _parse_datetime(env.get("SEARCH_CREATED_FROM"))
            or now - timedelta(days=365),
            created_to=overrides.get("created_to") or _parse_datetime(env.get("SEARCH_CREATED_TO")) or now,
            language=overrides.get("language") or env.get("SEARCH_LANGUAGE") or None,
            pushed_since=overrides.get("pushed_since") or _parse_date(env.get("SEARCH_PUSHED_SINCE")),
            result_window=int(overrides.get("result_window") or env.get("SEARCH_RESULT_WINDOW") or 1_000),
            page_size=int(overrides.get("page_size") or env.get("SEARCH_PAGE_SIZE") or 100),
        )

        return cls(github=github, database=database, search=search)

    def require_github_token(self) -> str:
        if not self.github.token:
            raise ConfigurationError("A GitHub token is required (set GITHUB_TOKEN)")
        return self.github.token

    def require_database(self) -> str:
        if not self.database.dsn:
            raise ConfigurationError("A database DSN is required (set DATABASE_DSN)")
        return self.database.dsn


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid datetime format: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid date format: {value}") from exc


__all__ = [
    "AppConfig",
    "GitHubSettings",
    "DatabaseSettings",
    "SearchSettings",
    "UTC",
]
