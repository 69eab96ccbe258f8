"""Domain models used by the harvester."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Iterable, Iterator

from .query_builder import render_query


UTC = timezone.utc


@dataclass(slots=True, frozen=True)
class SearchCriteria:
    """Filters for one repository search.

    ``created_from`` and ``created_to`` are inclusive bounds on the creation
    timestamp. Narrower criteria are derived with :meth:`with_range`; an
    instance is never changed in place.
    """

    keywords: str
    created_from: datetime
    created_to: datetime
    min_stars: int = 0
    include_forks: bool = False
    language: str | None = None
    pushed_since: date | None = None

    def __post_init__(self) -> None:
        if not self.keywords or not self.keywords.strip():
            raise ValueError("keywords must not be empty")
        if self.min_stars < 0:
            raise ValueError("min_stars must be zero or greater")
        object.__setattr__(self, "created_from", _as_utc(self.created_from))
        object.__setattr__(self, "created_to", _as_utc(self.created_to))
        if self.created_from > self.created_to:
            raise ValueError("created_from must not be later than created_to")

    def with_range(self, created_from: datetime, created_to: datetime) -> "SearchCriteria":
        return replace(self, created_from=created_from, created_to=created_to)

    def midpoint(self) -> datetime:
        """Temporal midpoint of the creation range, not aligned to any calendar unit."""

        return self.created_from + (self.created_to - self.created_from) / 2


@dataclass(slots=True, frozen=True)
class SearchQuery:
    """A single call to the search endpoint: criteria plus pagination."""

    criteria: SearchCriteria
    page: int = 1
    page_size: int = 100

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page numbers start at 1")
        if not 1 <= self.page_size <= 100:
            raise ValueError("page_size must be between 1 and 100")

    def render(self) -> str:
        return render_query(self.criteria, self.page, self.page_size)


@dataclass(slots=True, frozen=True)
class RepositoryRecord:
    """Normalized representation of a repository search result."""

    id: int
    name: str
    full_name: str
    html_url: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    language: str | None = None
    homepage: str | None = None
    size: int = 0
    stargazers_count: int = 0
    watchers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    topics: tuple[str, ...] = ()
    default_branch: str | None = None
    is_template: bool = False
    readme: str | None = None
    readme_read_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RepositoryRecord":
        """Convert one ``items`` entry of a search response.

        Raises ``KeyError`` or ``ValueError`` when the payload has no usable ``id``.
        """

        return cls(
            # ids exceed 32 bits; always keep them as Python ints
            id=int(payload["id"]),
            name=payload.get("name") or "",
            full_name=payload.get("full_name") or "",
            html_url=payload.get("html_url") or "",
            description=payload.get("description"),
            created_at=_parse_timestamp(payload.get("created_at")),
            updated_at=_parse_timestamp(payload.get("updated_at")),
            pushed_at=_parse_timestamp(payload.get("pushed_at")),
            language=payload.get("language"),
            homepage=payload.get("homepage"),
            size=int(payload.get("size") or 0),
            stargazers_count=int(payload.get("stargazers_count") or 0),
            watchers_count=int(payload.get("watchers_count") or 0),
            forks_count=int(payload.get("forks_count") or 0),
            open_issues_count=int(payload.get("open_issues_count") or 0),
            topics=tuple(payload.get("topics") or ()),
            default_branch=payload.get("default_branch"),
            is_template=bool(payload.get("is_template", False)),
        )

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        readme: str | None = None,
        readme_read_at: datetime | None = None,
    ) -> "RepositoryRecord":
        record = cls.from_api(document)
        return replace(record, readme=readme, readme_read_at=readme_read_at)

    def to_document(self) -> dict[str, Any]:
        """Serialize the search fields using GitHub's field names."""

        return {
            "id": self.id,
            "name": self.name,
            "full_name": self.full_name,
            "html_url": self.html_url,
            "description": self.description,
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
            "pushed_at": _format_timestamp(self.pushed_at),
            "language": self.language,
            "homepage": self.homepage,
            "size": self.size,
            "stargazers_count": self.stargazers_count,
            "watchers_count": self.watchers_count,
            "forks_count": self.forks_count,
            "open_issues_count": self.open_issues_count,
            "topics": list(self.topics),
            "default_branch": self.default_branch,
            "is_template": self.is_template,
        }

    def with_readme(self, readme: str | None, read_at: datetime) -> "RepositoryRecord":
        return replace(self, readme=readme, readme_read_at=read_at)


@dataclass(slots=True)
class ResultSet:
    """Repositories collected by one search invocation.

    ``unavailable_calls`` counts API calls that returned no data because of a
    non-success response. A result set with ``complete == False`` may be
    missing matches, even when it is empty.
    """

    records: list[RepositoryRecord] = field(default_factory=list)
    unavailable_calls: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[RepositoryRecord]:
        return iter(self.records)

    @property
    def complete(self) -> bool:
        return self.unavailable_calls == 0

    def add(self, record: RepositoryRecord) -> None:
        self.records.append(record)

    def extend(self, records: Iterable[RepositoryRecord]) -> None:
        self.records.extend(records)

    def merge(self, other: "ResultSet") -> None:
        self.records.extend(other.records)
        self.unavailable_calls += other.unavailable_calls

    def ids(self) -> set[int]:
        return {record.id for record in self.records}

    def deduplicated(self) -> "ResultSet":
        """Return a copy keeping the first record seen for every id."""

        seen: set[int] = set()
        unique: list[RepositoryRecord] = []
        for record in self.records:
            if record.id in seen:
                continue
            seen.add(record.id)
            unique.append(record)
        return ResultSet(records=unique, unavailable_calls=self.unavailable_calls)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(text))


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


__all__ = ["SearchCriteria", "SearchQuery", "RepositoryRecord", "ResultSet", "UTC"]
