# models/upload_records.py

from sqlalchemy import Column, DateTime, Integer, String, func
from db.base import Base


class UploadRecord(Base):
    __tablename__ = "upload_records"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False, index=True)  # upload / delete
    filename = Column(String, nullable=True)
    file_format = Column(String, nullable=True)          # delimited-text / spreadsheet-binary
    row_count = Column(Integer, nullable=False, default=0)
    dataset_version = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
