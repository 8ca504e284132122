# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/terraform/runner.py
from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")


class TerraformRunner:
    """
    A pragmatic wrapper around the `terraform` CLI.
    - `apply` = `init` + `apply -auto-approve` in one working directory.
    - Testable by mocking subprocess.run.
    """

    def __init__(self, binary: str | Path = "terraform", env: Optional[Mapping[str, str]] = None):
        self.binary = str(binary)
        self.env = dict(env or {})

    # ------------------------- internal helpers -------------------------

    def _env(self, extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        env.update(extra or {})
        env.setdefault("TF_IN_AUTOMATION", "1")
        return env

    def _run(self, argv: List[str], working_dir: Path, env: Optional[Mapping[str, str]]) -> subprocess.CompletedProcess:
        log.debug("[terraform] (%s) $ %s", working_dir, " ".join(argv))
        try:
            cp = subprocess.run(
                argv,
                cwd=str(working_dir),
                env=self._env(env),
                check=False,
                text=True,
                capture_output=True,
            )
        except OSError as e:
            raise ExternalCallError(f"could not execute {self.binary}: {e}", cause=e) from e

        if cp.returncode != 0:
            raise ExternalCallError(
                f"terraform {argv[1]} failed (rc={cp.returncode}) in {working_dir}\n{cp.stderr or cp.stdout}"
            )
        return cp

    @staticmethod
    def _var_args(variables: Optional[Mapping[str, Any]]) -> List[str]:
        args: List[str] = []
        for key, value in (variables or {}).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (list, dict)):
                value = json.dumps(value)
            args += ["-var", f"{key}={value}"]
        return args

    # ------------------------- public API -------------------------

    def apply(
        self,
        working_dir: str | Path,
        variables: Optional[Mapping[str, Any]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        working_dir = Path(working_dir)
        if not working_dir.is_dir():
            raise ExternalCallError(f"terraform working directory {working_dir} does not exist")

        log.info("executing terraform apply in %s", working_dir)
        self._run([self.binary, "init", "-input=false", "-no-color"], working_dir, env)
        self._run(
            [self.binary, "apply", "-auto-approve", "-input=false", "-no-color"] + self._var_args(variables),
            working_dir,
            env,
        )
        log.info("terraform apply in %s complete", working_dir)

    def output(self, working_dir: str | Path, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        cp = self._run([self.binary, "output", "-json"], Path(working_dir), env)
        raw = json.loads(cp.stdout or "{}")
        return {k: v.get("value") for k, v in raw.items()}
