"""Repository search that works around GitHub's 1000 result window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Callable, Protocol

from .config import SearchSettings
from .models import RepositoryRecord, ResultSet, SearchCriteria, SearchQuery
from .query_builder import render_created_range


LOGGER = logging.getLogger(__name__)


class SearchGateway(Protocol):
    async def search(self, query_string: str) -> dict[str, Any] | None: ...


@dataclass(slots=True, frozen=True)
class SearchEvent:
    """Progress notification emitted while a search runs.

    ``kind`` is one of ``count``, ``split``, ``clamp``, ``page`` or ``unavailable``.
    """

    kind: str
    criteria: SearchCriteria
    count: int | None = None
    page: int | None = None
    items: int | None = None


ProgressSink = Callable[[SearchEvent], None]


def split_criteria(criteria: SearchCriteria) -> tuple[SearchCriteria, SearchCriteria] | None:
    """Bisect the creation range at its midpoint.

    When a half at the midpoint would render the same day range as its parent,
    the range is cut at the end of its first day instead. Returns ``None`` only
    for ranges that render as a single day, which includes zero-width ranges.
    """

    start, end = criteria.created_from, criteria.created_to
    if start.date() == end.date():
        return None
    midpoint = criteria.midpoint()
    rendered = render_created_range(criteria)
    if start < midpoint < end:
        first = criteria.with_range(start, midpoint)
        second = criteria.with_range(midpoint, end)
        if render_created_range(first) != rendered and render_created_range(second) != rendered:
            return first, second
    next_day = datetime.combine(start.date() + timedelta(days=1), time.min, tzinfo=start.tzinfo)
    first = criteria.with_range(start, next_day - timedelta(microseconds=1))
    second = criteria.with_range(next_day, end)
    return first, second


class RepositorySearchEngine:
    """Enumerates every repository matching a set of criteria.

    Each partition of the creation range is first asked for its match count. Partitions
    above the result window are bisected; the rest are paged through. Partitions
    wait on an explicit stack and run one at a time, older half first.
    """

    def __init__(
        self,
        gateway: SearchGateway,
        settings: SearchSettings,
        *,
        progress: ProgressSink | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._progress = progress

    async def search(self, criteria: SearchCriteria | None = None) -> ResultSet:
        """Collect all matches for ``criteria``, or for the configured criteria.

        The returned set holds each repository id once. Only a transport failure
        raises; non-success responses leave ``ResultSet.complete`` false.
        """

        if criteria is None:
            criteria = self._settings.criteria()

        collected = ResultSet()
        stack: list[SearchCriteria] = [criteria]
        window = self._settings.result_window

        while stack:
            current = stack.pop()
            count = await self.count(current)
            if count is None:
                collected.unavailable_calls += 1
                self._emit(SearchEvent("unavailable", current))
                continue
            self._emit(SearchEvent("count", current, count=count))
            if count == 0:
                continue
            if count > window:
                halves = split_criteria(current)
                if halves is not None:
                    LOGGER.debug(
                        "Splitting %s (%s matches) at %s",
                        render_created_range(current),
                        count,
                        halves[0].created_to.isoformat(),
                    )
                    self._emit(SearchEvent("split", current, count=count))
                    stack.append(halves[1])
                    stack.append(halves[0])
                    continue
                LOGGER.warning(
                    "Search result count %s exceeds limit %s for unsplittable range %s; clamping to limit.",
                    count,
                    window,
                    render_created_range(current),
                )
                self._emit(SearchEvent("clamp", current, count=count))
            await self._paginate(current, min(count, window), collected)

        result = collected.deduplicated()
        LOGGER.info(
            "Search for %r finished with %s repositories (%s duplicates dropped, %s unavailable calls)",
            criteria.keywords,
            len(result),
            len(collected) - len(result),
            result.unavailable_calls,
        )
        return result

    async def count(self, criteria: SearchCriteria) -> int | None:
        """Total match count for ``criteria``, or ``None`` if GitHub gave no answer."""

        payload = await self._gateway.search(SearchQuery(criteria, page=1, page_size=1).render())
        if payload is None:
            return None
        try:
            return int(payload.get("total_count") or 0)
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring malformed total_count %r", payload.get("total_count"))
            return 0

    async def _paginate(self, criteria: SearchCriteria, total: int, collected: ResultSet) -> None:
        page_size = self._settings.page_size
        window = self._settings.result_window
        fetched = 0
        page = 1
        while fetched < total and page * page_size <= window:
            payload = await self._gateway.search(SearchQuery(criteria, page=page, page_size=page_size).render())
            if payload is None:
                collected.unavailable_calls += 1
                self._emit(SearchEvent("unavailable", criteria, page=page))
                break
            items = payload.get("items")
            if not isinstance(items, list):
                LOGGER.warning("Search page %s for %s has no item list", page, render_created_range(criteria))
                break
            for item in items:
                record = _parse_item(item)
                if record is not None:
                    collected.add(record)
            fetched += len(items)
            self._emit(SearchEvent("page", criteria, count=total, page=page, items=len(items)))
            LOGGER.debug(
                "Page %s of %s returned %s repositories (%s/%s)",
                page,
                render_created_range(criteria),
                len(items),
                fetched,
                total,
            )
            if len(items) < page_size:
                break
            page += 1

    def _emit(self, event: SearchEvent) -> None:
        if self._progress is not None:
            self._progress(event)


def _parse_item(item: Any) -> RepositoryRecord | None:
    if not isinstance(item, dict):
        return None
    try:
        return RepositoryRecord.from_api(item)
    except (KeyError, TypeError, ValueError) as exc:
        LOGGER.warning("Skipping malformed search item: %s", exc)
        return None


__all__ = ["RepositorySearchEngine", "SearchEvent", "ProgressSink", "split_criteria"]
