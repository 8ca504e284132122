# src/clusterforge/storage/backup.py

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..config.models import PushBucketObject, StateStoreCredentials, StateStoreDetails
from ..errors import InvalidInputError
from ..store.models import ClusterRecord
from .object_storage import ObjectStorage

log = logging.getLogger("clusterforge")


def remote_record_path(cluster_name: str) -> str:
    return f"clusters/{cluster_name}.json"


def export_cluster_record(store, storage: ObjectStorage, cluster_name: str, workdir: Path) -> str:
    """
    Export a cluster record as JSON into its own state store bucket.
    Returns the remote object key.
    """
    record = store.get_record(cluster_name)
    if not record.state_store_credentials or not record.state_store_details:
        raise InvalidInputError(f"cluster {cluster_name} has no state store yet")

    workdir.mkdir(parents=True, exist_ok=True)
    local = workdir / f"{cluster_name}.json"
    local.write_text(record.model_dump_json(indent=2))

    remote = remote_record_path(cluster_name)
    storage.put_object(
        StateStoreCredentials.model_validate(record.state_store_credentials),
        StateStoreDetails.model_validate(record.state_store_details),
        PushBucketObject(local_file_path=local, remote_file_path=remote, content_type="application/json"),
    )
    return remote


def import_cluster_record(
    store,
    storage: ObjectStorage,
    credentials: StateStoreCredentials,
    details: StateStoreDetails,
    cluster_name: str,
    workdir: Path,
) -> ClusterRecord:
    """Restore a previously exported cluster record into the local store."""
    local = storage.get_object(credentials, details, remote_record_path(cluster_name), workdir / f"{cluster_name}.json")
    record = ClusterRecord.model_validate(json.loads(local.read_text()))
    if record.cluster_name != cluster_name:
        raise InvalidInputError(f"object holds cluster {record.cluster_name}, expected {cluster_name}")

    store.import_record(record)
    log.info("restored cluster record %s from bucket %s", cluster_name, details.name)
    return record
