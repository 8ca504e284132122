# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Any, List, Optional, Protocol

from ..config.models import ClusterDefinition
from .models import ClusterRecord, Environment, EnvironmentUpdate, Lease


class ClusterRecordStore(Protocol):
    def create_record(self, definition: ClusterDefinition) -> ClusterRecord: ...
    def import_record(self, record: ClusterRecord) -> ClusterRecord: ...
    def get_record(self, name: str) -> ClusterRecord: ...
    def update_field(self, name: str, field: str, value: Any) -> None: ...
    def delete_record(self, record_id: str) -> None: ...
    def list_records(self) -> List[ClusterRecord]: ...

    def acquire_lease(self, name: str, holder: str, ttl_seconds: int) -> Lease: ...
    def release_lease(self, name: str, holder: str) -> None: ...
    def get_lease(self, name: str) -> Optional[Lease]: ...


class EnvironmentStore(Protocol):
    def list_environments(self) -> List[Environment]: ...
    def get_environment(self, name: str) -> Environment: ...
    def insert_environment(self, env: Environment) -> Environment: ...
    def delete_environment(self, env_id: str) -> None: ...
    def update_environment(self, env_id: str, update: EnvironmentUpdate) -> Environment: ...
