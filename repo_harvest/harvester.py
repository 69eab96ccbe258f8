"""High level orchestration: search, persist, then back-fill READMEs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Iterable, Protocol, Sequence

from .clock import SystemClock
from .models import RepositoryRecord, SearchCriteria
from .rate_limiter import RateLimitGovernor
from .readme import FOUND, UNAVAILABLE, ReadmeFetcher
from .search import RepositorySearchEngine

LOGGER = logging.getLogger(__name__)


class RepositoryStore(Protocol):
    async def upsert_repositories(self, records: Sequence[RepositoryRecord], ingested_at: datetime) -> int: ...

    async def update_readme(self, repository_id: int, readme: str | None, read_at: datetime) -> None: ...

    def stream_repositories(self, *, missing_readme: bool = False) -> AsyncIterator[RepositoryRecord]: ...


@dataclass(slots=True)
class ReadmePass:
    """Tally of one README pass. Unavailable READMEs stay unread for the next backfill."""

    written: int = 0
    missing: int = 0
    unavailable: int = 0


@dataclass(slots=True)
class HarvestResult:
    repositories_found: int
    repositories_written: int
    readmes_written: int
    unavailable_calls: int
    rate_limit_remaining: int | None
    finished_at: datetime
    readmes_unavailable: int = 0

    @property
    def complete(self) -> bool:
        return self.unavailable_calls == 0 and self.readmes_unavailable == 0


class Harvester:
    """Runs a search, upserts the results and stores each repository's README.

    ``engine`` may be ``None`` when the harvester is only used to back-fill READMEs.
    """

    def __init__(
        self,
        engine: RepositorySearchEngine | None,
        readmes: ReadmeFetcher,
        database: RepositoryStore,
        *,
        governor: RateLimitGovernor | None = None,
        clock: SystemClock | None = None,
    ) -> None:
        self._engine = engine
        self._readmes = readmes
        self._database = database
        self._governor = governor
        self._clock = clock or SystemClock()

    async def run(self, criteria: SearchCriteria | None = None, *, fetch_readmes: bool = True) -> HarvestResult:
        if self._engine is None:
            raise RuntimeError("Harvester was built without a search engine")
        results = await self._engine.search(criteria)
        if not results.complete:
            LOGGER.warning(
                "%s GitHub calls returned no data; the result set may be incomplete",
                results.unavailable_calls,
            )

        written = await self._database.upsert_repositories(results.records, self._clock.now())
        LOGGER.info("Persisted %s repositories", written)

        readme_pass = ReadmePass()
        if fetch_readmes:
            readme_pass = await self.store_readmes(results.records)

        return HarvestResult(
            repositories_found=len(results),
            repositories_written=written,
            readmes_written=readme_pass.written,
            unavailable_calls=results.unavailable_calls,
            rate_limit_remaining=self._rate_limit_remaining(),
            finished_at=self._clock.now(),
            readmes_unavailable=readme_pass.unavailable,
        )

    async def backfill_readmes(self) -> ReadmePass:
        """Fetch READMEs for stored repositories that were never read."""

        pending = [record async for record in self._database.stream_repositories(missing_readme=True)]
        LOGGER.info("%s stored repositories have no README yet", len(pending))
        return await self.store_readmes(pending)

    async def store_readmes(self, records: Iterable[RepositoryRecord]) -> ReadmePass:
        tally = ReadmePass()
        for record in records:
            lookup = await self._readmes.lookup(record.full_name, record.default_branch)
            if lookup.status == UNAVAILABLE:
                tally.unavailable += 1
                LOGGER.warning("README of %s is unavailable; leaving it for a later backfill", record.full_name)
                continue
            await self._database.update_readme(record.id, lookup.text, self._clock.now())
            if lookup.status != FOUND:
                tally.missing += 1
                LOGGER.debug("No README for %s", record.full_name)
                continue
            tally.written += 1
            LOGGER.debug("Stored README for %s (%s chars)", record.full_name, len(lookup.text or ""))
        LOGGER.info(
            "Stored %s READMEs (%s missing, %s unavailable)", tally.written, tally.missing, tally.unavailable
        )
        return tally

    def _rate_limit_remaining(self) -> int | None:
        if self._governor is None or self._governor.latest is None:
            return None
        return self._governor.latest.remaining


__all__ = ["Harvester", "HarvestResult", "ReadmePass", "RepositoryStore"]
