"""
JSON File Queue Storage

Persists the offline queue to a local JSON file so pending operations
survive process restarts. The file is rewritten through a temporary file
and an atomic rename, so a crash mid-write leaves the previous queue
intact.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Union

import structlog

from moneytrack.models.queue import QueuedOperation
from moneytrack.services.storage.interface import QueueStorageInterface, StorageError


logger = structlog.get_logger("moneytrack.storage")


class JsonFileQueueStorage(QueueStorageInterface):
    """
    Offline queue stored as one JSON document:

        {"operations": [<QueuedOperation>, ...]}

    in enqueue order.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> list[QueuedOperation]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise StorageError(f"Offline queue file is corrupt: {self._path}: {e}")

        operations = []
        for item in raw.get("operations", []):
            operations.append(QueuedOperation.model_validate(item))
        return operations

    def _write(self, operations: list[QueuedOperation]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        payload = {"operations": [op.model_dump(mode="json") for op in operations]}
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)

    async def load(self) -> list[QueuedOperation]:
        async with self._lock:
            return self._read()

    async def put(self, operation: QueuedOperation) -> None:
        async with self._lock:
            operations = self._read()
            for index, existing in enumerate(operations):
                if existing.id == operation.id:
                    operations[index] = operation
                    break
            else:
                operations.append(operation)
            self._write(operations)
            logger.debug("queue_file_written", path=str(self._path), size=len(operations))

    async def remove(self, operation_id: str) -> bool:
        async with self._lock:
            operations = self._read()
            remaining = [op for op in operations if op.id != operation_id]
            if len(remaining) == len(operations):
                return False
            self._write(remaining)
            return True

    async def get(self, operation_id: str) -> Optional[QueuedOperation]:
        async with self._lock:
            for operation in self._read():
                if operation.id == operation_id:
                    return operation
        return None
