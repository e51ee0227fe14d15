import csv
import math
import re
from datetime import date, datetime, time
from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Any

import numpy as np
import pandas as pd

from services.inventory.errors import ParseError, UnsupportedFormatError

DELIMITED_TEXT = "delimited-text"
SPREADSHEET_BINARY = "spreadsheet-binary"

FORMAT_BY_EXTENSION = {
    ".csv": DELIMITED_TEXT,
    ".txt": DELIMITED_TEXT,
    ".xlsx": SPREADSHEET_BINARY,
    ".xls": SPREADSHEET_BINARY,
}

ROW_ID_FIELD = "id"
SOURCE_ID_FIELD = "source_id"

_UNNAMED_HEADER = re.compile(r"^Unnamed: \d+(_level_\d+)?$")

# candidates in preference order; a file with none of them is one column
DELIMITERS = (",", ";", "\t", "|")
_SNIFF_LINES = 20

Row = dict[str, Any]


def detect_format(filename: str | None) -> str:
    suffix = PurePath((filename or "").strip()).suffix.lower()
    file_format = FORMAT_BY_EXTENSION.get(suffix)
    if file_format is None:
        raise UnsupportedFormatError(
            f"Unsupported file type {suffix or '(none)'!r}; expected one of "
            + ", ".join(sorted(FORMAT_BY_EXTENSION))
        )
    return file_format


def _clean_header(value: Any) -> str:
    name = "" if value is None else str(value).strip()
    if _UNNAMED_HEADER.match(name):
        return ""
    if name == ROW_ID_FIELD:
        return SOURCE_ID_FIELD
    return name


def _dedupe_headers(names: list[str]) -> list[str]:
    seen: dict[str, int] = {}
    out: list[str] = []
    for name in names:
        candidate = name
        while candidate in seen:
            seen[name] += 1
            candidate = f"{name}.{seen[name]}"
        seen.setdefault(candidate, 0)
        out.append(candidate)
    return out


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, datetime):
        if value.time() == time(0, 0) and value.tzinfo is None:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        if value.is_integer():
            return int(value)
    return value


def _is_blank(record: Row) -> bool:
    return all(isinstance(v, str) and not v.strip() for v in record.values())


def _frame_to_rows(df: pd.DataFrame) -> list[Row]:
    headers = [_clean_header(col) for col in df.columns]
    keep = [bool(h) for h in headers]
    if not any(keep):
        raise ParseError("File has no header columns")

    df = df.loc[:, keep]
    df.columns = _dedupe_headers([h for h in headers if h])

    rows: list[Row] = []
    for record in df.to_dict(orient="records"):
        cleaned = {key: _cell_value(value) for key, value in record.items()}
        if _is_blank(cleaned):
            continue
        row: Row = {ROW_ID_FIELD: len(rows) + 1}
        row.update(cleaned)
        rows.append(row)
    return rows


def _decode_text(buffer: bytes) -> str:
    try:
        return buffer.decode("utf-8-sig")
    except UnicodeDecodeError:
        return buffer.decode("latin-1")


def sniff_delimiter(text: str) -> str:
    """Pick the field separator of delimited text (Excel in some locales writes ';')."""
    lines = [line for line in text.splitlines() if line.strip()][:_SNIFF_LINES]
    if not lines:
        return DELIMITERS[0]
    try:
        return csv.Sniffer().sniff("\n".join(lines), delimiters="".join(DELIMITERS)).delimiter
    except csv.Error:
        pass
    # rows disagree (short rows, stray separators in values): trust the header
    header = lines[0]
    best = max(DELIMITERS, key=header.count)
    return best if header.count(best) else DELIMITERS[0]


def _read_delimited(buffer: bytes) -> pd.DataFrame:
    text = _decode_text(buffer)
    if not text.strip():
        raise ParseError("File is empty")
    try:
        return pd.read_csv(
            StringIO(text),
            sep=sniff_delimiter(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
        )
    except pd.errors.EmptyDataError as exc:
        raise ParseError("File has no header row") from exc
    except (pd.errors.ParserError, ValueError) as exc:
        raise ParseError(f"Failed to parse delimited text: {exc}") from exc


def _read_spreadsheet(buffer: bytes) -> pd.DataFrame:
    if not buffer:
        raise ParseError("File is empty")
    try:
        # only the first sheet is read; later sheets are ignored
        return pd.read_excel(BytesIO(buffer), sheet_name=0, header=0)
    except Exception as exc:
        raise ParseError(f"Failed to parse spreadsheet: {exc}") from exc


def parse_rows(buffer: bytes, file_format: str) -> list[Row]:
    """
    Decode an uploaded file into flat rows keyed by the header.

    Every row gets a 1-based synthetic ``id`` as its first key. Cell values
    from delimited text stay raw strings; spreadsheet cells keep numbers and
    render dates as ISO strings. Missing cells become "".
    """
    if file_format == DELIMITED_TEXT:
        df = _read_delimited(buffer)
    elif file_format == SPREADSHEET_BINARY:
        df = _read_spreadsheet(buffer)
    else:
        raise UnsupportedFormatError(f"Unknown file format: {file_format!r}")

    df = df.astype(object).where(pd.notnull(df), "")
    return _frame_to_rows(df)


def header_of(rows: list[Row]) -> list[str]:
    if not rows:
        return []
    return [key for key in rows[0].keys() if key != ROW_ID_FIELD]
