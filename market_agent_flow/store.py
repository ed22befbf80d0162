"""Suspension stores: durable records of pipeline instances keyed by id."""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .errors import ConcurrentResumeError, NotFoundError
from .instance import PipelineInstance, PipelineStatus

logger = logging.getLogger(__name__)


@runtime_checkable
class SuspensionStore(Protocol):
    """Protocol for instance persistence.

    `save` with `expected_revision` is a compare-and-set: it fails with
    ConcurrentResumeError unless the stored revision equals the expected one.
    A successful save bumps `instance.revision`.
    """

    def save(self, instance: PipelineInstance, expected_revision: int | None = None) -> None: ...

    def load(self, instance_id: str) -> PipelineInstance: ...

    def list(self, status: PipelineStatus | None = None) -> list[PipelineInstance]: ...


def _check_revision(instance_id: str, expected: int | None, current: int | None) -> None:
    if expected is None:
        return
    actual = -1 if current is None else current
    if actual != expected:
        raise ConcurrentResumeError(
            instance_id, f"stale snapshot (expected revision {expected}, found {actual})"
        )


class InMemorySuspensionStore:
    """Process-local store. Snapshots are deep-copied in and out."""

    def __init__(self):
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def save(self, instance: PipelineInstance, expected_revision: int | None = None) -> None:
        with self._lock:
            current = self._records.get(instance.id)
            _check_revision(instance.id, expected_revision, current["revision"] if current else None)
            instance.revision += 1
            self._records[instance.id] = copy.deepcopy(instance.to_dict())

    def load(self, instance_id: str) -> PipelineInstance:
        with self._lock:
            record = self._records.get(instance_id)
            if record is None:
                raise NotFoundError(f"No pipeline instance with id '{instance_id}'")
            return PipelineInstance.from_dict(copy.deepcopy(record))

    def list(self, status: PipelineStatus | None = None) -> list[PipelineInstance]:
        with self._lock:
            records = [copy.deepcopy(r) for r in self._records.values()]
        instances = [PipelineInstance.from_dict(r) for r in records]
        if status is not None:
            instances = [i for i in instances if i.status is status]
        return instances


class JsonFileSuspensionStore:
    """One JSON document per instance under `directory`.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so a crash never leaves a half-written snapshot.
    Compare-and-set is exact within one process; across processes the last
    write wins.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, instance_id: str) -> Path:
        if not instance_id or Path(instance_id).name != instance_id or instance_id.startswith("."):
            raise NotFoundError(f"No pipeline instance with id '{instance_id}'")
        return self.directory / f"{instance_id}.json"

    def _read(self, path: Path) -> dict[str, Any] | None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    def save(self, instance: PipelineInstance, expected_revision: int | None = None) -> None:
        path = self._path(instance.id)
        with self._lock:
            current = self._read(path)
            _check_revision(instance.id, expected_revision, current["revision"] if current else None)
            instance.revision += 1
            data = instance.to_dict()
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{instance.id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp, path)
            except BaseException:
                instance.revision -= 1
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        logger.debug("Saved instance %s (revision %d) to %s", instance.id, instance.revision, path)

    def load(self, instance_id: str) -> PipelineInstance:
        path = self._path(instance_id)
        with self._lock:
            data = self._read(path)
        if data is None:
            raise NotFoundError(f"No pipeline instance with id '{instance_id}'")
        return PipelineInstance.from_dict(data)

    def list(self, status: PipelineStatus | None = None) -> list[PipelineInstance]:
        instances = []
        with self._lock:
            for path in sorted(self.directory.glob("*.json")):
                data = self._read(path)
                if data is not None:
                    instances.append(PipelineInstance.from_dict(data))
        if status is not None:
            instances = [i for i in instances if i.status is status]
        return instances
