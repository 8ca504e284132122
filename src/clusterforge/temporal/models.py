# src/clusterforge/temporal/models.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, List

@dataclass
class ProvisionRequest:
    # cluster definition YAML, readable by the worker
    definition_path: str

    # overall deadline for the run; None means no deadline
    timeout_seconds: Optional[float] = None
    debug: bool = False

@dataclass
class ProvisionStatus:
    phase: str
    message: str = ""
    cluster_name: Optional[str] = None
    current_stage: Optional[str] = None
    completed_stages: Optional[List[str]] = None
    error: Optional[str] = None
