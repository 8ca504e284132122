# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/temporal/workflows.py

from __future__ import annotations

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

from .models import ProvisionRequest, ProvisionStatus

# activities are imported via workflow.unsafe.imports_passed_through
# to avoid workflow sandbox issues
with workflow.unsafe.imports_passed_through():
    from .activities import activity_provision_cluster


@workflow.defn
class ProvisionClusterWorkflow:
    def __init__(self) -> None:
        self._status = ProvisionStatus(
            phase="PENDING",
            message="Waiting to start",
            completed_stages=[],
        )

    @workflow.query
    def status(self) -> ProvisionStatus:
        return self._status

    @workflow.run
    async def run(self, req: ProvisionRequest) -> ProvisionStatus:
        self._status.phase = "RUNNING"
        self._status.message = "Provisioning started"
        self._status.current_stage = "provision"

        # A failed run resumes from its markers on the next request;
        # the server must never replay it on its own.
        no_retry = RetryPolicy(maximum_attempts=1)

        try:
            result: ProvisionStatus = await workflow.execute_activity(
                activity_provision_cluster,
                req,
                start_to_close_timeout=timedelta(hours=3),
                retry_policy=no_retry,
            )
        except Exception as e:
            self._status.phase = "FAILED"
            self._status.error = f"{e}"
            self._status.message = "Provisioning failed"
            raise

        self._status = result
        self._status.current_stage = None
        return self._status
