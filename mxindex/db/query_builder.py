"""Catalog search as composable, parameterized predicates.

User input only ever travels as bind parameters. Clauses use positional
``{0}``, ``{1}`` slots that are renumbered into asyncpg ``$n`` placeholders
when predicates are joined, so the same predicate can appear at any position
in a query. Column names in ORDER BY come from a fixed mapping keyed by
``SortField``.
"""

from dataclasses import dataclass
from typing import Any

from mxindex.models.server import SearchFilters, SortField, SortOrder


@dataclass(frozen=True)
class Predicate:
    clause: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class SearchQuery:
    count_sql: str
    count_args: list[Any]
    page_sql: str
    page_args: list[Any]


SORT_COLUMNS: dict[SortField, str] = {
    SortField.NAME: "name",
    SortField.DOMAIN: "domain",
    SortField.CREATED_AT: "created_at",
    SortField.PUBLIC_ROOMS_COUNT: "public_rooms_count",
}

SORT_DIRECTIONS: dict[SortOrder, str] = {SortOrder.ASC: "ASC", SortOrder.DESC: "DESC"}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the input matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def text_match(text: str) -> Predicate:
    return Predicate(
        "(domain ILIKE {0} OR name ILIKE {0} OR description ILIKE {0})",
        (f"%{escape_like(text)}%",),
    )


def registration_is(value: bool) -> Predicate:
    # NULL (unknown) never equals true or false, so unknowns drop out
    return Predicate("registration_open = {0}", (value,))


def has_public_rooms(value: bool) -> Predicate:
    if value:
        return Predicate("public_rooms_count > 0")
    return Predicate("COALESCE(public_rooms_count, 0) = 0")


def supports_room_version(version: str) -> Predicate:
    return Predicate("{0} = ANY(room_versions)", (version,))


def predicates_for(filters: SearchFilters) -> list[Predicate]:
    predicates: list[Predicate] = []
    if filters.search is not None:
        predicates.append(text_match(filters.search))
    if filters.registration_open is not None:
        predicates.append(registration_is(filters.registration_open))
    if filters.has_rooms is not None:
        predicates.append(has_public_rooms(filters.has_rooms))
    if filters.room_version is not None:
        predicates.append(supports_room_version(filters.room_version))
    return predicates


def render(predicates: list[Predicate], *, first_index: int = 1) -> tuple[str, list[Any]]:
    """Join predicates with AND, returning the WHERE body and its bind values."""
    parts: list[str] = []
    args: list[Any] = []
    for predicate in predicates:
        slots = [f"${first_index + len(args) + i}" for i in range(len(predicate.params))]
        parts.append(predicate.clause.format(*slots))
        args.extend(predicate.params)
    return (" AND ".join(parts) if parts else "TRUE"), args


def order_by(filters: SearchFilters) -> str:
    column = SORT_COLUMNS[filters.sort_by]
    direction = SORT_DIRECTIONS[filters.sort_order]
    if filters.sort_by is SortField.DOMAIN:
        return f"domain {direction}"
    return f"{column} {direction} NULLS LAST, domain ASC"


def build_search_query(filters: SearchFilters) -> SearchQuery:
    where, args = render(predicates_for(filters))
    limit_slot = len(args) + 1
    return SearchQuery(
        count_sql=f"SELECT COUNT(*) FROM servers WHERE {where}",
        count_args=list(args),
        page_sql=(
            f"SELECT * FROM servers WHERE {where} "
            f"ORDER BY {order_by(filters)} "
            f"LIMIT ${limit_slot} OFFSET ${limit_slot + 1}"
        ),
        page_args=[*args, filters.limit, filters.offset],
    )
