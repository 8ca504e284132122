# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/store/filestore.py
from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..errors import ExternalCallError
from .base import LEASES, DocumentStore


class JsonFileStore(DocumentStore):
    """
    One JSON document per file:

        <root>/clusters/<cluster_name>.json
        <root>/environments/<name>.json
        <root>/leases/<cluster_name>.json

    Writes go through a temp file + os.replace so a reader never sees a
    partially written document. Lease check-and-write holds an exclusive
    flock on <root>/leases/.<cluster_name>.lock, so separate processes
    sharing one state directory cannot both take the same lease.
    """

    def __init__(self, root: str | Path, **kwargs):
        super().__init__(**kwargs)
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, collection: str, key: str) -> Path:
        return self.root / collection / f"{key}.json"

    def _lease_lock_path(self, name: str) -> Path:
        return self.root / LEASES / f".{name}.lock"

    @contextmanager
    def _lease_guard(self, name: str) -> Iterator[None]:
        path = self._lease_lock_path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a+")
        except OSError as e:
            raise ExternalCallError(f"error opening lease lock {path}: {e}", cause=e) from e

        with handle:
            # blocks until any other process finishes its check-and-write
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _read(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(collection, key)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ExternalCallError(f"error reading {path}: {e}", cause=e) from e

    def _write(self, collection: str, key: str, doc: Dict[str, Any]) -> None:
        path = self._path(collection, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(doc, f, indent=2, default=str)
            os.replace(tmp, path)
            tmp = None
        except (OSError, TypeError, ValueError) as e:
            raise ExternalCallError(f"error writing {path}: {e}", cause=e) from e
        finally:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)

    def _remove(self, collection: str, key: str) -> None:
        self._path(collection, key).unlink(missing_ok=True)

    def _scan(self, collection: str) -> List[Dict[str, Any]]:
        folder = self.root / collection
        if not folder.is_dir():
            return []
        docs = []
        for path in sorted(folder.glob("*.json")):
            doc = self._read(collection, path.stem)
            if doc is not None:
                docs.append(doc)
        return docs
