# src/clusterforge/temporal/activities.py

from __future__ import annotations

from typing import List

from temporalio import activity

from clusterforge.config.loader import load_definition
from clusterforge.config.settings import load_settings
from clusterforge.controller.cancel import CancelToken
from clusterforge.controller.create import create_cluster
from clusterforge.controller.factory import build_collaborators
from clusterforge.logging.log import init_logging
from clusterforge.observers.dispatcher import EventBus
from clusterforge.observers.events import BaseEvent, StageSkipped, StageSucceeded
from clusterforge.observers.jsonfile import JsonFileObserver
from clusterforge.observers.logger import LoggerObserver

from .models import ProvisionRequest, ProvisionStatus


class _StageCollector:
    """Remembers which stages ran or were skipped, for the workflow status."""

    def __init__(self) -> None:
        self.done: List[str] = []

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, (StageSucceeded, StageSkipped)):
            self.done.append(event.stage)


@activity.defn
def activity_provision_cluster(req: ProvisionRequest) -> ProvisionStatus:
    definition = load_definition(req.definition_path)
    settings = load_settings()
    logger, run_id, log_path = init_logging(
        base_dir=settings.log_dir,
        cluster_name=definition.cluster_name,
        verbose=req.debug,
    )

    collector = _StageCollector()
    bus = EventBus([
        LoggerObserver(logger),
        JsonFileObserver(settings.log_dir / "events.jsonl"),
        collector,
    ])
    collaborators = build_collaborators(definition, settings, bus=bus)

    activity.logger.info("provisioning %s (run_id=%s, log=%s)", definition.cluster_name, run_id, log_path)
    record = create_cluster(
        definition,
        collaborators,
        cancel=CancelToken(timeout_seconds=req.timeout_seconds),
        run_id=run_id,
        lease_ttl_seconds=settings.lease_ttl_seconds,
    )
    return ProvisionStatus(
        phase="SUCCEEDED",
        message=f"cluster {record.cluster_name} is {record.status}",
        cluster_name=record.cluster_name,
        completed_stages=collector.done,
    )
