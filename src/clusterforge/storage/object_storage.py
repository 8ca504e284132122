# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/storage/object_storage.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config.models import PushBucketObject, StateStoreCredentials, StateStoreDetails
from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")

ClientFactory = Callable[[StateStoreCredentials, StateStoreDetails], Any]


def s3_client(credentials: StateStoreCredentials, details: StateStoreDetails):
    """S3 client for any S3-compatible state store (Spaces, Vultr, ...)."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{details.hostname}",
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        region_name=details.region or "us-east-1",
    )


class ObjectStorage:
    def __init__(self, client_factory: Optional[ClientFactory] = None):
        self._client_factory = client_factory or s3_client

    def create_bucket(self, credentials: StateStoreCredentials, details: StateStoreDetails) -> None:
        s3 = self._client_factory(credentials, details)
        try:
            s3.head_bucket(Bucket=details.name)
            log.info("state store bucket %s already exists", details.name)
            return
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise ExternalCallError(f"error checking bucket {details.name}: {e}", cause=e) from e

        try:
            s3.create_bucket(Bucket=details.name)
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError(f"error creating bucket {details.name}: {e}", cause=e) from e
        log.info("created state store bucket %s", details.name)

    def put_object(
        self,
        credentials: StateStoreCredentials,
        details: StateStoreDetails,
        obj: PushBucketObject,
    ) -> None:
        local = Path(obj.local_file_path)
        if not local.is_file():
            raise ExternalCallError(f"error during object local copy file lookup: {local} does not exist")

        s3 = self._client_factory(credentials, details)
        try:
            with local.open("rb") as body:
                s3.put_object(
                    Bucket=details.name,
                    Key=obj.remote_file_path,
                    Body=body,
                    ContentType=obj.content_type,
                )
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError(f"error during object put: {e}", cause=e) from e
        log.info(
            "uploaded %s (%d bytes) to state store bucket %s successfully",
            local, local.stat().st_size, details.name,
        )

    def get_object(
        self,
        credentials: StateStoreCredentials,
        details: StateStoreDetails,
        remote_file_path: str,
        local_file_path: str | Path,
    ) -> Path:
        local = Path(local_file_path)
        local.parent.mkdir(parents=True, exist_ok=True)

        s3 = self._client_factory(credentials, details)
        try:
            resp = s3.get_object(Bucket=details.name, Key=remote_file_path)
            local.write_bytes(resp["Body"].read())
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError(
                f"error retrieving {remote_file_path} from bucket {details.name}: {e}", cause=e
            ) from e
        return local
