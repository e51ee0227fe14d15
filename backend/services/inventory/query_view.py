import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence


@dataclass(frozen=True)
class QueryView:
    rows: list[Mapping[str, Any]]
    total_matched: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_matched / self.page_size))


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lower()


def row_matches(row: Mapping[str, Any], needle: str) -> bool:
    if not needle:
        return True
    return any(needle in _cell_text(value) for value in row.values())


def query_rows(
    rows: Sequence[Mapping[str, Any]],
    search_term: str | None,
    page: int,
    page_size: int,
) -> QueryView:
    """
    Case-insensitive substring filter over every cell, then a 1-indexed page.

    A page past the end, or below 1, returns no rows but keeps ``total_matched``.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    needle = (search_term or "").lower()
    matched = [row for row in rows if row_matches(row, needle)]

    start = (page - 1) * page_size
    return QueryView(
        rows=matched[start : start + page_size] if page >= 1 else [],
        total_matched=len(matched),
        page=page,
        page_size=page_size,
    )
