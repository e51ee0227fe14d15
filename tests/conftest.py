"""
Shared fixtures for the inventory backend test suite.

DATABASE_URL is pointed at an in-memory SQLite database before any backend
module is imported, so the app never touches a real database.
"""
import os
from io import BytesIO

os.environ["DATABASE_URL"] = "sqlite://"

import pandas as pd
import pytest

from services.inventory.change_notifier import ChangeNotifier
from services.inventory.dataset_store import DatasetStore


INVENTORY_CSV = (
    "hostname,Location,status,user,purchase_date,serial\n"
    "pc-01,HQ,Active,ana,2024-03-15,SN-1\n"
    "pc-02,HQ,Active,luis,2024-03-02,SN-2\n"
    "pc-03,Warehouse,Retired,ana,not-a-date,\n"
    "pc-04,Branch,In repair,,2023-11-30,SN-2\n"
)


class RecordingNotifier(ChangeNotifier):
    def __init__(self):
        super().__init__(max_pending=10)
        self.published = []

    def publish(self, event):
        self.published.append(event)
        return super().publish(event)


def make_xlsx(*sheets):
    """Build an .xlsx buffer; each sheet is a (name, DataFrame) pair."""
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, frame in sheets:
            frame.to_excel(writer, sheet_name=name, index=False)
    return buffer.getvalue()


@pytest.fixture
def inventory_csv():
    return INVENTORY_CSV.encode("utf-8")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store(notifier):
    return DatasetStore(notifier, clock=lambda: "2024-05-01T12:00:00+00:00")


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient

    from db.base import Base
    from db.session import engine
    from main import app
    from services.inventory import get_dataset_store

    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides[get_dataset_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
