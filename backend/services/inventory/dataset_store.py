import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from services.inventory.change_notifier import ChangeEvent, ChangeNotifier, EventType, Subscription
from services.inventory.errors import ConcurrentWriteError, InventoryError
from services.inventory.row_parser import Row, detect_format, header_of, parse_rows

logger = logging.getLogger(__name__)


class DatasetState(str, Enum):
    IDLE = "idle"
    DATASET_READY = "dataset_ready"


@dataclass(frozen=True)
class DatasetSnapshot:
    rows: tuple[Row, ...] = ()
    updated_at: str | None = None
    version: int = 0
    source_name: str | None = None
    file_format: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.rows and self.updated_at is None

    @property
    def columns(self) -> list[str]:
        return header_of(list(self.rows[:1]))


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatasetStore:
    """
    Holds the single process-wide dataset.

    Writers are serialized with a non-blocking lock: a second write while one
    is in flight raises ConcurrentWriteError. Readers grab ``snapshot()`` once
    and keep that reference; writes swap in a new snapshot instead of
    mutating the current one.
    """

    def __init__(
        self,
        notifier: ChangeNotifier,
        parser: Callable[[bytes, str], list[Row]] = parse_rows,
        clock: Callable[[], str] = _utc_now_iso,
    ):
        self.notifier = notifier
        self._parser = parser
        self._clock = clock
        self._write_lock = threading.Lock()
        self._snapshot = DatasetSnapshot()
        self._state = DatasetState.IDLE
        self.last_error: str | None = None

    @property
    def state(self) -> DatasetState:
        return self._state

    def snapshot(self) -> DatasetSnapshot:
        return self._snapshot

    def subscribe(self) -> Subscription:
        return self.notifier.subscribe(self.snapshot)

    def _acquire(self, action: str) -> None:
        if not self._write_lock.acquire(blocking=False):
            logger.warning("Rejected %s: another write is in progress", action)
            raise ConcurrentWriteError("Another upload or delete is in progress; retry shortly.")

    def ingest(self, buffer: bytes, filename: str) -> DatasetSnapshot:
        file_format = detect_format(filename)
        self._acquire("ingest")
        try:
            try:
                rows = self._parser(buffer, file_format)
            except InventoryError as exc:
                # state and snapshot stay as they were
                self.last_error = str(exc)
                logger.warning("Ingestion of %s failed: %s", filename, exc)
                raise

            snapshot = DatasetSnapshot(
                rows=tuple(rows),
                updated_at=self._clock(),
                version=self._snapshot.version + 1,
                source_name=filename,
                file_format=file_format,
            )
            self._snapshot = snapshot
            self._state = DatasetState.DATASET_READY
            self.last_error = None
            self.notifier.publish(ChangeEvent(EventType.UPDATED, snapshot.version))
            return snapshot
        finally:
            self._write_lock.release()

    def delete(self) -> DatasetSnapshot:
        self._acquire("delete")
        try:
            current = self._snapshot
            if current.is_empty:
                snapshot = current
            else:
                snapshot = DatasetSnapshot(version=current.version + 1)
                self._snapshot = snapshot
            self._state = DatasetState.IDLE
            self.notifier.publish(ChangeEvent(EventType.DELETED, snapshot.version))
            return snapshot
        finally:
            self._write_lock.release()

    def describe(self) -> dict[str, Any]:
        current = self._snapshot
        return {
            "state": self._state.value,
            "version": current.version,
            "rows": len(current.rows),
            "updated": current.updated_at,
            "source": current.source_name,
            "last_error": self.last_error,
        }
