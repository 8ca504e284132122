# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/clusterforge/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

FORMAT = "%(asctime)s | %(levelname)-7s | %(cluster)s | %(message)s"


class RunContextFilter(logging.Filter):
    """Stamps every record with the cluster and run it belongs to."""

    def __init__(self, cluster_name: str | None, run_id: str):
        super().__init__()
        self.cluster_name = cluster_name or "-"
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.cluster = self.cluster_name
        record.run_id = self.run_id
        return True


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "clusterforge",
    cluster_name: str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Initializes:
      - a per-run log file with the full DEBUG trace
      - console output at INFO (DEBUG with verbose)
      - returns run_id so observers and the pipeline can reuse it

    Every line carries the cluster name, so interleaved runs stay readable.
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path.home() / ".clusterforge" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    prefix = f"{name}-{cluster_name}" if cluster_name else name
    log_path = base_dir / f"{prefix}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    context = RunContextFilter(cluster_name, run_id)

    # File = FULL TRACE
    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)

    # Console = INFO by default, DEBUG when --debug is passed
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in (fh, ch):
        handler.setFormatter(formatter)
        handler.addFilter(context)
        logger.addHandler(handler)

    logger.info("=== clusterforge run started ===")
    logger.info("run_id=%s", run_id)
    logger.info("log_file=%s", log_path)

    return logger, run_id, log_path
