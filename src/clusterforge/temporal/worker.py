# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/temporal/worker.py

from __future__ import annotations

import asyncio
import concurrent.futures

from temporalio.worker import Worker

from .client import get_temporal_client
from .settings import load_temporal_settings
from .workflows import ProvisionClusterWorkflow
from .activities import activity_provision_cluster


async def main() -> None:
    settings = load_temporal_settings()
    client = await get_temporal_client()

    # provisioning blocks on terraform, kubectl and DNS polling
    with concurrent.futures.ThreadPoolExecutor(max_workers=4) as activity_executor:
        worker = Worker(
            client,
            task_queue=settings.task_queue,
            workflows=[ProvisionClusterWorkflow],
            activities=[activity_provision_cluster],
            activity_executor=activity_executor,
        )

        print(
            "[clusterforge-worker] starting. "
            f"address={settings.address} "
            f"ns={settings.namespace} "
            f"tq={settings.task_queue}"
        )

        await worker.run()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
