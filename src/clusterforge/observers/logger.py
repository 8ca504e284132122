from __future__ import annotations
import logging
from .events import BaseEvent, StageFailed, StageSkipped, RunSummary


class LoggerObserver:
    """Mirrors run events into the clusterforge log file."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _level(self, event: BaseEvent) -> int:
        if isinstance(event, StageFailed):
            return logging.ERROR
        if isinstance(event, RunSummary) and event.status != "PROVISIONED":
            return logging.ERROR
        if isinstance(event, StageSkipped):
            return logging.DEBUG
        return logging.INFO

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts", "run_id"))
        self.logger.log(self._level(event), "[EVENT] %s: %s", etype, msg)
