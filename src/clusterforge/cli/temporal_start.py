# src/clusterforge/cli/temporal_start.py

from __future__ import annotations

from clusterforge.temporal.client import get_temporal_client
from clusterforge.temporal.settings import load_temporal_settings
from clusterforge.temporal.models import ProvisionRequest


async def start_provision_workflow(req: ProvisionRequest, cluster_name: str) -> str:
    from clusterforge.temporal.workflows import ProvisionClusterWorkflow
    client = await get_temporal_client()
    settings = load_temporal_settings()

    # one workflow id per cluster: a second start is rejected while one runs
    workflow_id = f"clusterforge-provision:{cluster_name}"

    handle = await client.start_workflow(
        ProvisionClusterWorkflow.run,
        req,
        id=workflow_id,
        task_queue=settings.task_queue,
    )

    return f"{handle.id} / {handle.run_id}"
