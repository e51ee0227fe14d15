import re
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping

import pandas as pd

from services.inventory.field_normalizer import (
    SemanticField,
    canonical_value,
    is_missing,
    resolve_field,
)

# "2024", "45000", "45000.0": numbers in text cells, never calendar dates
_NUMERIC_TEXT = re.compile(r"^[+-]?\d+(\.\d+)?$")


@dataclass(frozen=True)
class AggregationBucket:
    label: str
    count: int


@dataclass(frozen=True)
class TimeSeriesPoint:
    period_key: str
    count: int


def aggregate_by(
    rows: Iterable[Mapping[str, Any]],
    field: SemanticField,
    top_n: int | None = None,
) -> list[AggregationBucket]:
    """
    Count rows per canonical label of ``field``.

    Buckets come back by descending count; equal counts keep the order in which
    their labels were first seen. Rows without the field land in the field's
    fallback bucket, so counts always add up to the number of rows.
    """
    counts = Counter(canonical_value(row, field) for row in rows)
    buckets = sorted(
        (AggregationBucket(label=label, count=count) for label, count in counts.items()),
        key=lambda b: b.count,
        reverse=True,
    )
    if top_n is not None:
        buckets = buckets[: max(top_n, 0)]
    return buckets


def parse_calendar_date(value: Any) -> date | None:
    if value is None or isinstance(value, (bool, int, float)):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text or _NUMERIC_TEXT.match(text):
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date()


def time_series_by_purchase_date(
    rows: Iterable[Mapping[str, Any]],
) -> list[TimeSeriesPoint]:
    counts: Counter[str] = Counter()
    parsed_cache: dict[str, date | None] = {}

    for row in rows:
        raw = resolve_field(row, SemanticField.PURCHASE_DATE)
        if raw is None:
            continue
        if isinstance(raw, str):
            if raw not in parsed_cache:
                parsed_cache[raw] = parse_calendar_date(raw)
            parsed = parsed_cache[raw]
        else:
            parsed = parse_calendar_date(raw)
        if parsed is None:
            continue
        counts[f"{parsed.year:04d}-{parsed.month:02d}"] += 1

    return [
        TimeSeriesPoint(period_key=key, count=counts[key])
        for key in sorted(counts)
    ]


def duplicate_serials(rows: Iterable[Mapping[str, Any]]) -> list[AggregationBucket]:
    counts = Counter(
        str(resolve_field(row, SemanticField.SERIAL)).strip()
        for row in rows
        if not is_missing(row, SemanticField.SERIAL)
    )
    return [
        AggregationBucket(label=label, count=count)
        for label, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)
        if count > 1
    ]


def summarize(rows: list[Mapping[str, Any]]) -> dict[str, int]:
    return {
        "total_rows": len(rows),
        "locations": len({canonical_value(row, SemanticField.LOCATION) for row in rows}),
        "missing_serial": sum(1 for row in rows if is_missing(row, SemanticField.SERIAL)),
        "missing_location": sum(1 for row in rows if is_missing(row, SemanticField.LOCATION)),
    }
