# services/inventory/__init__.py

import os

from services.inventory.change_notifier import ChangeNotifier
from services.inventory.dataset_store import DatasetStore

SSE_MAX_PENDING_EVENTS = int(os.getenv("SSE_MAX_PENDING_EVENTS", "100"))

notifier = ChangeNotifier(max_pending=SSE_MAX_PENDING_EVENTS)
dataset_store = DatasetStore(notifier)


def get_dataset_store() -> DatasetStore:
    return dataset_store
