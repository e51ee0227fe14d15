from typing import Any, List

from pydantic import BaseModel


class BucketOut(BaseModel):
    name: str
    value: int


class TimeSeriesPointOut(BaseModel):
    name: str  # YYYY-MM
    value: int


class SummaryOut(BaseModel):
    total_rows: int
    locations: int
    missing_serial: int
    missing_location: int
    updated: str | None = None
    version: int


class RowsPageOut(BaseModel):
    rows: List[dict[str, Any]]
    total_matched: int
    page: int
    page_size: int
    total_pages: int
    version: int


class DatasetOut(BaseModel):
    rows: List[dict[str, Any]]
    updated: str | None = None
    version: int
    source: str | None = None


class UploadOut(BaseModel):
    ok: bool = True
    rows: int
    version: int
    updated: str | None = None
    source: str | None = None


class PreviewOut(BaseModel):
    filename: str
    file_format: str
    columns: List[str]
    rows: List[dict[str, Any]]
    total_rows: int
