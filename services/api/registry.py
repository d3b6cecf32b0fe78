"""In-memory registry of datasets the API can analyse."""
from __future__ import annotations

import threading
from typing import Dict, List, Optional

from services.workers.analysis import DatasetHandle


class DatasetRegistry:
    """Maps dataset ids to immutable handles; shared across request threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._datasets: Dict[str, DatasetHandle] = {}

    def register(self, handle: DatasetHandle) -> DatasetHandle:
        with self._lock:
            self._datasets[handle.dataset_id] = handle
        return handle

    def get(self, dataset_id: str) -> Optional[DatasetHandle]:
        with self._lock:
            return self._datasets.get(dataset_id)

    def list(self) -> List[DatasetHandle]:
        with self._lock:
            return sorted(self._datasets.values(), key=lambda item: item.dataset_id)
