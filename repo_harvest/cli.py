"""Command line interface for the repository harvester."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from .config import AppConfig
from .db import Database
from .errors import ConfigurationError
from .github_client import GitHubApiGateway
from .harvester import Harvester
from .readme import ReadmeFetcher
from .search import RepositorySearchEngine

app = typer.Typer(add_completion=False)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%SZ"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(overrides: dict[str, Any], *, github: bool = False) -> AppConfig:
    config = AppConfig.from_env(overrides={key: value for key, value in overrides.items() if value is not None})
    try:
        config.require_database()
        if github:
            config.require_github_token()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return config


@app.command("init-db")
def init_db(
    dsn: Optional[str] = typer.Option(None, help="Postgres DSN to use"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Create database schema."""

    configure_logging(log_level)
    config = _load_config({"database_dsn": dsn})

    async def runner() -> None:
        async with Database(config.database) as database:
            await database.create_schema()

    asyncio.run(runner())


@app.command("harvest")
def harvest(
    keywords: Optional[str] = typer.Option(None, help="Search keywords"),
    min_stars: Optional[int] = typer.Option(None, min=0, help="Minimum star count"),
    created_from: Optional[datetime] = typer.Option(None, formats=DATE_FORMATS, help="Earliest creation date"),
    created_to: Optional[datetime] = typer.Option(None, formats=DATE_FORMATS, help="Latest creation date"),
    language: Optional[str] = typer.Option(None, help="Primary language filter"),
    include_forks: Optional[bool] = typer.Option(None, "--include-forks/--exclude-forks", help="Include forks"),
    skip_readmes: bool = typer.Option(False, "--skip-readmes", help="Do not fetch READMEs"),
    timeout: Optional[float] = typer.Option(None, min=1.0, help="Abort the run after this many seconds"),
    dsn: Optional[str] = typer.Option(None, help="Postgres DSN"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Search GitHub, store matching repositories and their READMEs."""

    configure_logging(log_level)
    config = _load_config(
        {
            "keywords": keywords,
            "min_stars": min_stars,
            "created_from": created_from,
            "created_to": created_to,
            "language": language,
            "include_forks": include_forks,
            "database_dsn": dsn,
            "github_token": github_token,
        },
        github=True,
    )
    try:
        criteria = config.search.criteria()
    except (ConfigurationError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc

    async def runner() -> None:
        async with GitHubApiGateway(config.github) as gateway:
            async with Database(config.database) as database:
                engine = RepositorySearchEngine(gateway, config.search)
                harvester = Harvester(engine, ReadmeFetcher(gateway), database, governor=gateway.governor)
                result = await asyncio.wait_for(
                    harvester.run(criteria, fetch_readmes=not skip_readmes),
                    timeout,
                )
                typer.echo(
                    f"Persisted {result.repositories_written} repositories and {result.readmes_written} READMEs. "
                    f"Remaining rate limit: {result.rate_limit_remaining}"
                )
                if result.unavailable_calls:
                    typer.echo(
                        f"Warning: {result.unavailable_calls} GitHub calls failed; results may be incomplete.",
                        err=True,
                    )
                if result.readmes_unavailable:
                    typer.echo(
                        f"Warning: {result.readmes_unavailable} READMEs were unavailable; "
                        "`repo-harvest readmes` retries them.",
                        err=True,
                    )

    asyncio.run(runner())


@app.command("readmes")
def readmes(
    dsn: Optional[str] = typer.Option(None, help="Postgres DSN"),
    github_token: Optional[str] = typer.Option(None, envvar="GITHUB_TOKEN", help="GitHub token"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Fetch READMEs for stored repositories that do not have one yet."""

    configure_logging(log_level)
    config = _load_config({"database_dsn": dsn, "github_token": github_token}, github=True)

    async def runner() -> None:
        async with GitHubApiGateway(config.github) as gateway:
            async with Database(config.database) as database:
                harvester = Harvester(None, ReadmeFetcher(gateway), database, governor=gateway.governor)
                tally = await harvester.backfill_readmes()
                typer.echo(f"Stored {tally.written} READMEs; {tally.missing} repositories have none.")
                if tally.unavailable:
                    typer.echo(
                        f"Warning: {tally.unavailable} READMEs were unavailable; run again to retry them.",
                        err=True,
                    )

    asyncio.run(runner())


@app.command("dump")
def dump(
    output: Path = typer.Option(..., exists=False, dir_okay=False, help="Destination file"),
    dsn: Optional[str] = typer.Option(None, help="Postgres DSN"),
    format: str = typer.Option("csv", help="Export format"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """Dump stored repositories into a file."""

    configure_logging(log_level)
    config = _load_config({"database_dsn": dsn})

    if format.lower() != "csv":
        raise typer.BadParameter("Only CSV format is supported currently")

    async def runner() -> None:
        async with Database(config.database) as database:
            await _write_csv(database, output)

    asyncio.run(runner())


async def _write_csv(database: Database, path: Path) -> None:
    import csv

    fieldnames = [
        "id",
        "full_name",
        "html_url",
        "language",
        "stargazers_count",
        "forks_count",
        "created_at",
        "default_branch",
        "has_readme",
    ]

    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        async for record in database.stream_repositories():
            writer.writerow(
                {
                    "id": record.id,
                    "full_name": record.full_name,
                    "html_url": record.html_url,
                    "language": record.language or "",
                    "stargazers_count": record.stargazers_count,
                    "forks_count": record.forks_count,
                    "created_at": record.created_at.isoformat() if record.created_at else "",
                    "default_branch": record.default_branch or "",
                    "has_readme": record.readme is not None,
                }
            )


__all__ = ["app"]
