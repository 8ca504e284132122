# src/clusterforge/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single provisioning run
    cluster: str      # cluster name
    provider: str     # cloud provider

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(cluster: str, provider: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": now_ts(),
        "run_id": run_id or str(uuid.uuid4()),
        "cluster": cluster,
        "provider": provider,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    stages: List[str]

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str              # "PROVISIONED" | "FAILED" | "CANCELLED"
    completed: List[str]
    skipped: List[str]
    failed_stage: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Stage lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StageStarted(BaseEvent):
    stage: str

@dataclass(frozen=True)
class StageSkipped(BaseEvent):
    stage: str
    marker: str

@dataclass(frozen=True)
class StageSucceeded(BaseEvent):
    stage: str
    duration_ms: int

@dataclass(frozen=True)
class StageFailed(BaseEvent):
    stage: str
    error: str


# ---------------------------------------------------------------------
# Scoped resources (port-forward)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ScopeOpened(BaseEvent):
    scope: str

@dataclass(frozen=True)
class ScopeClosed(BaseEvent):
    scope: str
