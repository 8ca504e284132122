# src/clusterforge/store/memory.py
from __future__ import annotations

import copy
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .base import DocumentStore


class InMemoryStore(DocumentStore):
    """Process-local store. Used by tests and by one-shot local runs."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._docs: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    def _read(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        doc = self._docs[collection].get(key)
        return copy.deepcopy(doc) if doc is not None else None

    def _write(self, collection: str, key: str, doc: Dict[str, Any]) -> None:
        self._docs[collection][key] = copy.deepcopy(doc)

    def _remove(self, collection: str, key: str) -> None:
        self._docs[collection].pop(key, None)

    def _scan(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._docs[collection].values()]
