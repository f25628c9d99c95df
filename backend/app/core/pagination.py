"""Pagination parsing and the sort-field guard.

Every paginated endpoint declares one immutable ``SortConstraint`` at import
time and calls ``validate_pageable`` at the top of its handler with the raw
query values. Nothing reaches the query layer until page, size and every
sort term have been accepted.

Constraint semantics:
    - whitelist non-empty: only listed fields may be sorted on.
    - blacklist non-empty: listed fields may never be sorted on.
    - both empty: sorting is closed; any sort term is rejected.
"""
import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from app.core.config import settings
from app.core.exceptions import InvalidParameter

logger = logging.getLogger(__name__)


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortTerm:
    field: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class SortConstraint:
    whitelist: frozenset[str] = frozenset()
    blacklist: frozenset[str] = frozenset()

    @classmethod
    def allow(cls, *fields: str) -> "SortConstraint":
        return cls(whitelist=frozenset(fields))

    @classmethod
    def deny(cls, *fields: str) -> "SortConstraint":
        return cls(blacklist=frozenset(fields))

    @property
    def is_closed(self) -> bool:
        return not self.whitelist and not self.blacklist


# Sorting disabled entirely.
NO_SORT = SortConstraint()


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page request produced by ``validate_pageable``."""

    page: int
    size: int
    sort: tuple[SortTerm, ...] = ()

    @property
    def offset(self) -> int:
        return self.page * self.size


# ─── Page / size ───

def _parse_non_negative_int(raw: str | None, field: str) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidParameter(f"'{field}' must be a valid integer, but got: {raw}")
    if value < 0:
        raise InvalidParameter(f"'{field}' must be >= 0, but got: {raw}")
    return value


def validate_page(raw_page: str | None, raw_size: str | None) -> tuple[int | None, int | None]:
    """Reject a present-but-invalid page or size; absent values pass as None."""
    page = _parse_non_negative_int(raw_page, "page")
    size = _parse_non_negative_int(raw_size, "size")
    return page, size


# ─── Sort ───

def parse_sort_params(raw_sort: Iterable[str]) -> list[SortTerm]:
    """Parse repeated ``sort`` query values of the form ``field[,field...][,asc|desc]``.

    A trailing direction applies to every field in the same value.
    """
    terms: list[SortTerm] = []
    for raw in raw_sort:
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        if not parts:
            continue
        direction = SortDirection.ASC
        if parts[-1].lower() in (SortDirection.ASC.value, SortDirection.DESC.value):
            direction = SortDirection(parts.pop().lower())
        terms.extend(SortTerm(field=p, direction=direction) for p in parts)
    return terms


def validate_sort(constraint: SortConstraint, sort_terms: Sequence[SortTerm]) -> None:
    """Raise InvalidParameter on the first term the constraint does not permit."""
    if constraint.is_closed:
        if sort_terms:
            logger.warning("Rejected sort on closed endpoint: %s", [t.field for t in sort_terms])
            raise InvalidParameter("Sorting is forbidden")
        return

    for term in sort_terms:
        if constraint.whitelist and term.field not in constraint.whitelist:
            logger.warning("Rejected sort field %r (not whitelisted)", term.field)
            raise InvalidParameter(
                f"Sorting by field '{term.field}' is not allowed. "
                f"Allowed fields: {sorted(constraint.whitelist)}"
            )
        if term.field in constraint.blacklist:
            logger.warning("Rejected sort field %r (blacklisted)", term.field)
            raise InvalidParameter(
                f"Sorting by field '{term.field}' is forbidden. "
                f"Forbidden fields: {sorted(constraint.blacklist)}"
            )


def validate_pageable(
    raw_page: str | None,
    raw_size: str | None,
    sort_terms: Sequence[SortTerm],
    constraint: SortConstraint,
    default_size: int | None = None,
) -> PageRequest:
    """Validate raw pagination input against ``constraint`` and build a PageRequest.

    Absent page defaults to 0. Absent or zero size falls back to
    ``default_size``; sizes above ``MAX_PAGE_SIZE`` are capped.
    """
    page, size = validate_page(raw_page, raw_size)
    validate_sort(constraint, sort_terms)

    if not size:
        size = default_size or settings.DEFAULT_PAGE_SIZE
    size = min(size, settings.MAX_PAGE_SIZE)
    return PageRequest(page=page or 0, size=size, sort=tuple(sort_terms))


# ─── Query helpers ───

def order_by_clauses(sort_terms: Sequence[SortTerm], columns: Mapping[str, Any]) -> list[Any]:
    """Map accepted sort terms onto SQLAlchemy column expressions."""
    clauses = []
    for term in sort_terms:
        column = columns.get(term.field)
        if column is None:
            raise InvalidParameter(f"Unknown sort field '{term.field}'")
        clauses.append(column.desc() if term.direction is SortDirection.DESC else column.asc())
    return clauses


def total_pages(total: int, size: int) -> int:
    return math.ceil(total / size) if size else 0
