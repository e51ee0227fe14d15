from sqlalchemy.orm import Session

from models.upload_records import UploadRecord
from services.inventory.dataset_store import DatasetSnapshot

UPLOAD_ACTION = "upload"
DELETE_ACTION = "delete"


def record_write(
    db: Session,
    action: str,
    snapshot: DatasetSnapshot,
    filename: str | None = None,
) -> UploadRecord:
    record = UploadRecord(
        action=action,
        filename=filename if filename is not None else snapshot.source_name,
        file_format=snapshot.file_format,
        row_count=len(snapshot.rows),
        dataset_version=snapshot.version,
    )
    db.add(record)
    db.flush()
    return record


def list_writes(db: Session, limit: int = 50) -> list[dict]:
    records = (
        db.query(UploadRecord)
        .order_by(UploadRecord.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": r.id,
            "action": r.action,
            "filename": r.filename,
            "file_format": r.file_format,
            "rows": int(r.row_count or 0),
            "version": r.dataset_version,
            "created_at": r.created_at.isoformat() if r.created_at is not None else None,
        }
        for r in records
    ]
