from __future__ import annotations

from threading import RLock
from typing import Callable, Dict, List

from request_tracker.errors import NotFoundError
from request_tracker.workflow.models import Request


class SnapshotStore:
    """Holds the last confirmed snapshot per request id.

    Snapshots are immutable; every write swaps the whole object under the lock,
    so readers never observe a half-applied update.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._snapshots: Dict[str, Request] = {}

    def get(self, request_id: str) -> Request | None:
        with self._lock:
            return self._snapshots.get(str(request_id))

    def require(self, request_id: str) -> Request:
        snapshot = self.get(request_id)
        if snapshot is None:
            raise NotFoundError(details=f"Request {request_id} is not loaded.")
        return snapshot

    def put(self, request: Request) -> Request:
        with self._lock:
            self._snapshots[request.id] = request
        return request

    def replace(self, request_id: str, update: Callable[[Request], Request]) -> Request:
        with self._lock:
            current = self.require(request_id)
            updated = update(current)
            if updated.id != current.id:
                raise ValueError(f"snapshot {current.id} cannot become {updated.id}")
            self._snapshots[current.id] = updated
            return updated

    def discard(self, request_id: str) -> None:
        with self._lock:
            self._snapshots.pop(str(request_id), None)

    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._snapshots)

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()
