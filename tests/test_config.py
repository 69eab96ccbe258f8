from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from repo_harvest.config import AppConfig
from repo_harvest.errors import ConfigurationError

UTC = timezone.utc


def test_from_env_reads_search_defaults():
    config = AppConfig.from_env(
        env={
            "GITHUB_TOKEN": "token",
            "DATABASE_DSN": "postgresql://localhost/test",
            "SEARCH_KEYWORDS": "ocr",
            "SEARCH_MIN_STARS": "10",
            "SEARCH_INCLUDE_FORKS": "true",
            "SEARCH_CREATED_FROM": "2020-01-01T00:00:00Z",
            "SEARCH_CREATED_TO": "2020-01-31",
            "SEARCH_LANGUAGE": "Python",
            "SEARCH_PUSHED_SINCE": "2023-01-01",
        }
    )

    criteria = config.search.criteria()

    assert config.require_github_token() == "token"
    assert config.require_database() == "postgresql://localhost/test"
    assert criteria.keywords == "ocr"
    assert criteria.min_stars == 10
    assert criteria.include_forks is True
    assert criteria.created_from == datetime(2020, 1, 1, tzinfo=UTC)
    assert criteria.created_to == datetime(2020, 1, 31, tzinfo=UTC)
    assert criteria.language == "Python"
    assert criteria.pushed_since == date(2023, 1, 1)


def test_overrides_take_precedence_over_env():
    config = AppConfig.from_env(
        env={"SEARCH_KEYWORDS": "ocr", "SEARCH_MIN_STARS": "10", "SEARCH_INCLUDE_FORKS": "true"},
        overrides={"keywords": "llm", "min_stars": 0, "include_forks": False},
    )

    assert config.search.keywords == "llm"
    assert config.search.min_stars == 0
    assert config.search.include_forks is False


def test_missing_credentials_are_fatal():
    config = AppConfig.from_env(env={})

    with pytest.raises(ConfigurationError):
        config.require_github_token()
    with pytest.raises(ConfigurationError):
        config.require_database()


def test_default_window_spans_the_last_year():
    config = AppConfig.from_env(env={})

    span = config.search.created_to - config.search.created_from

    assert span.days == 365
    assert config.search.result_window == 1000
    assert config.search.page_size == 100


def test_page_size_above_platform_limit_is_rejected():
    with pytest.raises(ValidationError):
        AppConfig.from_env(env={"SEARCH_PAGE_SIZE": "500"})


def test_invalid_created_from_is_reported():
    with pytest.raises(ConfigurationError):
        AppConfig.from_env(env={"SEARCH_CREATED_FROM": "yesterday"})
