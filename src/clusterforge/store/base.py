# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/store/base.py

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, Dict, List, Optional

from pydantic import ValidationError

from ..config.models import ClusterDefinition
from ..errors import (
    AlreadyExistsError,
    InvalidFieldError,
    InvalidInputError,
    LeaseHeldError,
    NotFoundError,
)
from .models import (
    ClusterRecord,
    Environment,
    EnvironmentUpdate,
    Lease,
    is_valid_id,
    utcnow,
)

log = logging.getLogger("clusterforge")

CLUSTERS = "clusters"
ENVIRONMENTS = "environments"
LEASES = "leases"


class DocumentStore(ABC):
    """
    Cluster record, lease and environment operations on top of four
    document primitives. Backends only implement the primitives.

    Every public operation runs under one store-wide lock, so a reader never
    sees a half-applied update and lease acquisition is check-and-set.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow):
        self._lock = threading.RLock()
        self._clock = clock

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _read(self, collection: str, key: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def _write(self, collection: str, key: str, doc: Dict[str, Any]) -> None: ...

    @abstractmethod
    def _remove(self, collection: str, key: str) -> None: ...

    @abstractmethod
    def _scan(self, collection: str) -> List[Dict[str, Any]]: ...

    def _lease_guard(self, name: str) -> ContextManager:
        """Held across a lease check-and-write. Backends shared between processes override it."""
        return nullcontext()

    # ------------------------------------------------------------------
    # Cluster records
    # ------------------------------------------------------------------

    def create_record(self, definition: ClusterDefinition) -> ClusterRecord:
        with self._lock:
            if self._read(CLUSTERS, definition.cluster_name) is not None:
                raise AlreadyExistsError(f"cluster {definition.cluster_name} already exists")

            record = ClusterRecord.from_definition(definition)
            self._write(CLUSTERS, record.cluster_name, record.model_dump(mode="json"))
            log.info("inserted cluster record %s (id=%s)", record.cluster_name, record.id)
            return record

    def import_record(self, record: ClusterRecord) -> ClusterRecord:
        """Insert a complete record (restore from backup)."""
        with self._lock:
            if self._read(CLUSTERS, record.cluster_name) is not None:
                raise AlreadyExistsError(f"cluster {record.cluster_name} already exists")
            self._write(CLUSTERS, record.cluster_name, record.model_dump(mode="json"))
        return record

    def get_record(self, name: str) -> ClusterRecord:
        with self._lock:
            doc = self._read(CLUSTERS, name)
        if doc is None:
            raise NotFoundError(f"cluster {name} not found")
        return ClusterRecord.model_validate(doc)

    def update_field(self, name: str, field: str, value: Any) -> None:
        if field not in ClusterRecord.checkpoint_fields():
            raise InvalidFieldError(f"{field} is not a cluster checkpoint field")

        with self._lock:
            doc = self._read(CLUSTERS, name)
            if doc is None:
                raise NotFoundError(f"cluster {name} not found")

            doc[field] = value
            if field != "last_updated":
                doc["last_updated"] = self._clock()
            try:
                record = ClusterRecord.model_validate(doc)
            except ValidationError as e:
                raise InvalidFieldError(f"invalid value for {field}: {e}") from e

            self._write(CLUSTERS, name, record.model_dump(mode="json"))
        log.debug("cluster %s: %s updated", name, field)

    def delete_record(self, record_id: str) -> None:
        if not is_valid_id(record_id):
            raise InvalidInputError(f"invalid id {record_id}")

        with self._lock:
            for doc in self._scan(CLUSTERS):
                if doc.get("id") == record_id:
                    self._remove(CLUSTERS, doc["cluster_name"])
                    log.info("cluster %s deleted", doc["cluster_name"])
                    return
        raise NotFoundError(f"no cluster with id {record_id}")

    def list_records(self) -> List[ClusterRecord]:
        with self._lock:
            docs = self._scan(CLUSTERS)
        return [ClusterRecord.model_validate(d) for d in docs]

    # ------------------------------------------------------------------
    # Leases
    # ------------------------------------------------------------------

    def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> Lease:
        with self._lock, self._lease_guard(name):
            now = self._clock()
            doc = self._read(LEASES, name)
            if doc is not None:
                current = Lease.model_validate(doc)
                if current.holder != holder and not current.expired(now):
                    raise LeaseHeldError(
                        f"cluster {name} is being provisioned by {current.holder} "
                        f"(lease expires {current.expires_at.isoformat()})"
                    )
                if current.holder != holder:
                    log.warning("taking over expired lease on %s from %s", name, current.holder)

            lease = Lease(
                cluster_name=name,
                holder=holder,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            self._write(LEASES, name, lease.model_dump(mode="json"))
            return lease

    def release_lease(self, name: str, holder: str) -> None:
        with self._lock, self._lease_guard(name):
            doc = self._read(LEASES, name)
            if doc is None:
                return
            if doc.get("holder") != holder:
                log.warning("lease on %s is held by %s, not releasing for %s", name, doc.get("holder"), holder)
                return
            self._remove(LEASES, name)

    def get_lease(self, name: str) -> Optional[Lease]:
        with self._lock:
            doc = self._read(LEASES, name)
        return Lease.model_validate(doc) if doc is not None else None

    # ------------------------------------------------------------------
    # Environments
    # ------------------------------------------------------------------

    def list_environments(self) -> List[Environment]:
        with self._lock:
            docs = self._scan(ENVIRONMENTS)
        return [Environment.model_validate(d) for d in docs]

    def get_environment(self, name: str) -> Environment:
        with self._lock:
            doc = self._read(ENVIRONMENTS, name)
        if doc is None:
            raise NotFoundError(f"environment {name} not found")
        return Environment.model_validate(doc)

    def insert_environment(self, env: Environment) -> Environment:
        with self._lock:
            if self._read(ENVIRONMENTS, env.name) is not None:
                raise AlreadyExistsError(f"environment {env.name} already exists")
            self._write(ENVIRONMENTS, env.name, env.model_dump(mode="json"))
        log.info("inserted environment %s", env.name)
        return env

    def _find_environment(self, env_id: str) -> Dict[str, Any]:
        if not is_valid_id(env_id):
            raise InvalidInputError(f"invalid id {env_id}")
        for doc in self._scan(ENVIRONMENTS):
            if doc.get("id") == env_id:
                return doc
        raise NotFoundError(f"no environment with id {env_id}")

    def delete_environment(self, env_id: str) -> None:
        with self._lock:
            doc = self._find_environment(env_id)
            self._remove(ENVIRONMENTS, doc["name"])
        log.info("environment deleted")

    def update_environment(self, env_id: str, update: EnvironmentUpdate) -> Environment:
        with self._lock:
            doc = self._find_environment(env_id)
            doc.update(update.model_dump(exclude_none=True))
            env = Environment.model_validate(doc)
            self._write(ENVIRONMENTS, env.name, env.model_dump(mode="json"))
        return env
