# routers/analytics.py

from fastapi import APIRouter, Depends, Query

from models.inventory import BucketOut, RowsPageOut, SummaryOut, TimeSeriesPointOut
from services.inventory import get_dataset_store
from services.inventory.aggregation import (
    AggregationBucket,
    aggregate_by,
    duplicate_serials,
    summarize,
    time_series_by_purchase_date,
)
from services.inventory.dataset_store import DatasetStore
from services.inventory.field_normalizer import SemanticField
from services.inventory.query_view import query_rows

router = APIRouter(prefix="/api", tags=["analytics"])

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 500


def _buckets_out(buckets: list[AggregationBucket]) -> list[dict]:
    return [{"name": b.label, "value": b.count} for b in buckets]


@router.get("/analytics/by-location", response_model=list[BucketOut])
def analytics_by_location(
    top: int | None = Query(10, ge=1),
    store: DatasetStore = Depends(get_dataset_store),
):
    rows = store.snapshot().rows
    return _buckets_out(aggregate_by(rows, SemanticField.LOCATION, top_n=top))


@router.get("/analytics/by-status", response_model=list[BucketOut])
def analytics_by_status(
    top: int | None = Query(None, ge=1),
    store: DatasetStore = Depends(get_dataset_store),
):
    rows = store.snapshot().rows
    return _buckets_out(aggregate_by(rows, SemanticField.STATUS, top_n=top))


@router.get("/analytics/by-user", response_model=list[BucketOut])
def analytics_by_user(
    top: int | None = Query(7, ge=1),
    store: DatasetStore = Depends(get_dataset_store),
):
    rows = store.snapshot().rows
    return _buckets_out(aggregate_by(rows, SemanticField.USER, top_n=top))


@router.get("/analytics/purchase-timeline", response_model=list[TimeSeriesPointOut])
def analytics_purchase_timeline(
    store: DatasetStore = Depends(get_dataset_store),
):
    points = time_series_by_purchase_date(store.snapshot().rows)
    return [{"name": p.period_key, "value": p.count} for p in points]


@router.get("/analytics/summary", response_model=SummaryOut)
def analytics_summary(
    store: DatasetStore = Depends(get_dataset_store),
):
    snapshot = store.snapshot()
    summary = summarize(list(snapshot.rows))
    summary.update({"updated": snapshot.updated_at, "version": snapshot.version})
    return summary


@router.get("/analytics/duplicate-serials", response_model=list[BucketOut])
def analytics_duplicate_serials(
    store: DatasetStore = Depends(get_dataset_store),
):
    return _buckets_out(duplicate_serials(store.snapshot().rows))


@router.get("/rows", response_model=RowsPageOut)
def list_rows(
    q: str = Query(""),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    store: DatasetStore = Depends(get_dataset_store),
):
    snapshot = store.snapshot()
    view = query_rows(snapshot.rows, q, page=page, page_size=page_size)
    return {
        "rows": view.rows,
        "total_matched": view.total_matched,
        "page": view.page,
        "page_size": view.page_size,
        "total_pages": view.total_pages,
        "version": snapshot.version,
    }
