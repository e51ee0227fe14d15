from __future__ import annotations

import json
import logging
import os
import re

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from db.deps import get_db
from models.inventory import DatasetOut, PreviewOut, UploadOut
from services.inventory import get_dataset_store
from services.inventory.dataset_store import DatasetSnapshot, DatasetStore
from services.inventory.errors import (
    ConcurrentWriteError,
    ParseError,
    UnsupportedFormatError,
)
from services.inventory.row_parser import ROW_ID_FIELD, detect_format, header_of, parse_rows
from services.upload_log_service import DELETE_ACTION, UPLOAD_ACTION, list_writes, record_write

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["inventory-files"])

MAX_UPLOAD_BYTES = int(float(os.getenv("MAX_UPLOAD_MB", "20")) * 1024 * 1024)
PREVIEW_ROWS = int(os.getenv("PREVIEW_ROWS", "10"))


async def _read_upload(file: UploadFile) -> bytes:
    contents = await file.read(MAX_UPLOAD_BYTES + 1)
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file.")
    if len(contents) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit.",
        )
    return contents


def _audit_write(db: Session, action: str, snapshot: DatasetSnapshot) -> None:
    # the snapshot is already committed and broadcast; a failed audit row must not undo that
    try:
        record_write(db=db, action=action, snapshot=snapshot)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record %s of dataset version %s", action, snapshot.version)


def _export_records(snapshot: DatasetSnapshot) -> list[dict]:
    return [
        {k: v for k, v in row.items() if k != ROW_ID_FIELD}
        for row in snapshot.rows
    ]


@router.post("/upload", response_model=UploadOut)
async def upload_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    store: DatasetStore = Depends(get_dataset_store),
):
    filename = file.filename or ""
    try:
        detect_format(filename)
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    contents = await _read_upload(file)

    try:
        snapshot = await run_in_threadpool(store.ingest, contents, filename)
    except ConcurrentWriteError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (ParseError, UnsupportedFormatError) as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse file: {exc}")

    _audit_write(db, UPLOAD_ACTION, snapshot)

    logger.info(
        "UPLOAD: file=%s format=%s rows=%s version=%s",
        filename,
        snapshot.file_format,
        len(snapshot.rows),
        snapshot.version,
    )

    return {
        "ok": True,
        "rows": len(snapshot.rows),
        "version": snapshot.version,
        "updated": snapshot.updated_at,
        "source": snapshot.source_name,
    }


@router.post("/preview", response_model=PreviewOut)
async def preview_file(
    file: UploadFile = File(...),
    limit: int = Query(PREVIEW_ROWS, ge=1, le=100),
):
    filename = file.filename or ""
    try:
        file_format = detect_format(filename)
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    contents = await _read_upload(file)
    try:
        rows = await run_in_threadpool(parse_rows, contents, file_format)
    except ParseError as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse file: {exc}")

    return {
        "filename": filename,
        "file_format": file_format,
        "columns": header_of(rows),
        "rows": rows[:limit],
        "total_rows": len(rows),
    }


@router.get("/data", response_model=DatasetOut)
def get_dataset(store: DatasetStore = Depends(get_dataset_store)):
    snapshot = store.snapshot()
    return {
        "rows": list(snapshot.rows),
        "updated": snapshot.updated_at,
        "version": snapshot.version,
        "source": snapshot.source_name,
    }


@router.get("/status")
def dataset_status(store: DatasetStore = Depends(get_dataset_store)):
    return store.describe()


@router.delete("/delete")
def delete_dataset(
    db: Session = Depends(get_db),
    store: DatasetStore = Depends(get_dataset_store),
):
    previous_rows = len(store.snapshot().rows)
    try:
        snapshot = store.delete()
    except ConcurrentWriteError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    _audit_write(db, DELETE_ACTION, snapshot)
    logger.info("DELETE: rows=%s version=%s", previous_rows, snapshot.version)

    return {"ok": True, "deleted_rows": previous_rows, "version": snapshot.version}


@router.get("/download")
def download_dataset(
    format: str = Query("csv"),
    store: DatasetStore = Depends(get_dataset_store),
):
    fmt = (format or "csv").strip().lower()
    if fmt not in {"csv", "json"}:
        raise HTTPException(status_code=400, detail="format must be csv or json")

    snapshot = store.snapshot()
    payloads = _export_records(snapshot)
    if not payloads:
        raise HTTPException(status_code=404, detail="No inventory data loaded")

    stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", os.path.splitext(snapshot.source_name or "")[0]) or "inventory"
    file_tag = f"{stem}_v{snapshot.version}"

    if fmt == "json":
        content = json.dumps(payloads, ensure_ascii=False, default=str).encode("utf-8")
        media_type = "application/json"
        filename = f"{file_tag}.json"
    else:
        df = pd.DataFrame(payloads, columns=snapshot.columns)
        content = df.to_csv(index=False).encode("utf-8")
        media_type = "text/csv"
        filename = f"{file_tag}.csv"

    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/uploads")
def list_uploads(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return {"items": list_writes(db, limit=limit)}
