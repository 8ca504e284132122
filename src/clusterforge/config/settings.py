# src/clusterforge/config/settings.py

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import os


@dataclass(frozen=True)
class Settings:
    state_dir: Path
    log_dir: Path
    backup_resolver: str
    telemetry_endpoint: str
    telemetry_write_key: str
    kubectl_version: str
    terraform_version: str
    lease_ttl_seconds: int


def load_settings() -> Settings:
    # sensible defaults for local runs; override via env
    home = Path(os.getenv("CLUSTERFORGE_HOME", str(Path.home() / ".clusterforge")))
    return Settings(
        state_dir=Path(os.getenv("CLUSTERFORGE_STATE_DIR", str(home / "state"))),
        log_dir=Path(os.getenv("CLUSTERFORGE_LOG_DIR", str(home / "logs"))),
        backup_resolver=os.getenv("CLUSTERFORGE_BACKUP_RESOLVER", "8.8.8.8"),
        telemetry_endpoint=os.getenv("CLUSTERFORGE_TELEMETRY_ENDPOINT", "https://api.segment.io/v1/track"),
        telemetry_write_key=os.getenv("CLUSTERFORGE_TELEMETRY_WRITE_KEY", ""),
        kubectl_version=os.getenv("CLUSTERFORGE_KUBECTL_VERSION", "v1.28.4"),
        terraform_version=os.getenv("CLUSTERFORGE_TERRAFORM_VERSION", "1.5.7"),
        lease_ttl_seconds=int(os.getenv("CLUSTERFORGE_LEASE_TTL_SECONDS", str(4 * 60 * 60))),
    )
