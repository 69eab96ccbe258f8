"""Rendering of search criteria into GitHub's repository search grammar."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

if TYPE_CHECKING:
    from .models import SearchCriteria


SEARCH_SCOPE = "in:name,description,readme,topics"
SORT = "stars"
ORDER = "desc"


def render_created_range(criteria: "SearchCriteria") -> str:
    """Day-granular ``created:`` qualifier; the time of day is dropped."""

    return f"created:{criteria.created_from:%Y-%m-%d}..{criteria.created_to:%Y-%m-%d}"


def render_terms(criteria: "SearchCriteria") -> list[str]:
    terms = [
        quote(criteria.keywords, safe=""),
        "archived:false",
        "is:public",
        SEARCH_SCOPE,
        render_created_range(criteria),
    ]
    if criteria.min_stars > 0:
        terms.append(f"stars:>={criteria.min_stars}")
    if not criteria.include_forks:
        terms.append("fork:false")
    if criteria.pushed_since is not None:
        terms.append(f"pushed:>={criteria.pushed_since:%Y-%m-%d}")
    if criteria.language:
        terms.append(f"language:{quote(criteria.language, safe='')}")
    return terms


def render_query(criteria: "SearchCriteria", page: int, page_size: int) -> str:
    """Render the query string for ``GET /search/repositories``."""

    query = "+".join(render_terms(criteria))
    return f"q={query}&sort={SORT}&order={ORDER}&per_page={page_size}&page={page}"


__all__ = ["render_query", "render_terms", "render_created_range"]
