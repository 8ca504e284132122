# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/gitops/repository.py
from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import paramiko
import requests
from jinja2 import Environment, FileSystemLoader, StrictUndefined
from jinja2.exceptions import TemplateError

from ..config.models import ClusterDefinition
from ..errors import ExternalCallError, NotFoundError

log = logging.getLogger("clusterforge")

GITHUB_API = "https://api.github.com"
GITLAB_API = "https://gitlab.com/api/v4"


def generate_bot_keypair(bits: int = 4096) -> Dict[str, str]:
    """RSA key pair for the bot user that pushes to the gitops repository."""
    key = paramiko.RSAKey.generate(bits)
    buf = io.StringIO()
    key.write_private_key(buf)
    return {
        "public_key": f"{key.get_name()} {key.get_base64()}",
        "private_key": buf.getvalue(),
    }


def render_templates(root: Path, tokens: Dict[str, Any]) -> List[Path]:
    """
    Render every `*.j2` under `root` in place: `values.yaml.j2` becomes
    `values.yaml` and the template is removed.
    """
    root = Path(root)
    env = Environment(loader=FileSystemLoader(str(root)), autoescape=False, undefined=StrictUndefined,
                      keep_trailing_newline=True)
    rendered: List[Path] = []
    for tmpl in sorted(root.rglob("*.j2")):
        rel = tmpl.relative_to(root).as_posix()
        try:
            text = env.get_template(rel).render(**tokens)
        except TemplateError as e:
            raise ExternalCallError(f"error rendering {rel}: {e}", cause=e) from e
        target = tmpl.with_suffix("")
        target.write_text(text)
        tmpl.unlink()
        rendered.append(target)
    log.debug("rendered %d template(s) under %s", len(rendered), root)
    return rendered


class GitopsRepository:
    """
    The per-cluster gitops repository: owner check against the git host,
    template checkout and rendering, and the push to the destination repo.
    """

    def __init__(
        self,
        definition: ClusterDefinition,
        *,
        session: Optional[requests.Session] = None,
        git_binary: str = "git",
        timeout: int = 30,
    ):
        self.definition = definition
        self.session = session or requests.Session()
        self.git_binary = git_binary
        self.timeout = timeout

    # ------------------------------------------------------------------
    # git subprocess
    # ------------------------------------------------------------------

    def _git(self, args: List[str], *, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> str:
        argv = [self.git_binary] + args
        log.debug("[git] $ %s", " ".join(argv))
        full_env = dict(os.environ)
        full_env.update(env or {})
        try:
            cp = subprocess.run(argv, cwd=str(cwd) if cwd else None, env=full_env,
                                check=False, text=True, capture_output=True)
        except OSError as e:
            raise ExternalCallError(f"could not execute git: {e}", cause=e) from e
        if cp.returncode != 0:
            raise ExternalCallError(f"git {args[0]} failed: {cp.stderr or cp.stdout}")
        return cp.stdout

    # ------------------------------------------------------------------
    # owner check
    # ------------------------------------------------------------------

    def verify_owner(self) -> None:
        d = self.definition
        if d.git_provider == "github":
            url = f"{GITHUB_API}/users/{d.git_owner}"
            headers = {"Authorization": f"token {d.git_token}", "Accept": "application/vnd.github+json"}
        else:
            url = f"{GITLAB_API}/groups/{d.git_owner}"
            headers = {"PRIVATE-TOKEN": d.git_token}

        try:
            resp = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalCallError(f"error contacting {d.git_provider}: {e}", cause=e) from e
        if resp.status_code == 404:
            raise NotFoundError(f"{d.git_provider} owner {d.git_owner} not found")
        if resp.status_code >= 400:
            raise ExternalCallError(f"{d.git_provider} owner lookup returned {resp.status_code}: {resp.text}")
        log.info("%s owner %s verified", d.git_provider, d.git_owner)

    def generate_bot_keypair(self) -> Dict[str, str]:
        pair = generate_bot_keypair()
        log.info("bot key pair generated for %s", self.definition.cluster_name)
        return pair

    # ------------------------------------------------------------------
    # template
    # ------------------------------------------------------------------

    def _fetch_template(self, dest: Path) -> None:
        d = self.definition
        if d.gitops_template_dir is not None:
            src = Path(d.gitops_template_dir)
            if not src.is_dir():
                raise NotFoundError(f"gitops template directory {src} does not exist")
            shutil.copytree(src, dest, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))
            return

        checkout = dest.parent / "gitops-template"
        if checkout.exists():
            shutil.rmtree(checkout)
        self._git(["clone", "--depth", "1", "--branch", d.gitops_template_branch, d.gitops_template_url, str(checkout)])
        shutil.copytree(checkout, dest, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))
        shutil.rmtree(checkout)

    def prepare(self, tokens: Dict[str, Any]) -> Path:
        dest = self.definition.gitops_dir
        dest.mkdir(parents=True, exist_ok=True)
        self._fetch_template(dest)
        render_templates(dest, tokens)
        log.info("gitops repository prepared at %s", dest)
        return dest

    # ------------------------------------------------------------------
    # push
    # ------------------------------------------------------------------

    def push(self, private_key: str) -> None:
        d = self.definition
        repo = d.gitops_dir
        if not repo.is_dir():
            raise NotFoundError(f"gitops directory {repo} does not exist")

        key_path = d.base_dir / "kbot_ssh_key"
        key_path.write_text(private_key)
        key_path.chmod(0o600)
        env = {"GIT_SSH_COMMAND": f"ssh -i {key_path} -o StrictHostKeyChecking=no -o IdentitiesOnly=yes"}

        if not (repo / ".git").exists():
            self._git(["init", "-b", "main"], cwd=repo)
            self._git(["remote", "add", "origin", d.destination_gitops_repo_url], cwd=repo)
        self._git(["add", "-A"], cwd=repo)
        self._git(
            ["-c", "user.name=kbot", "-c", "user.email=kbot@clusterforge.local",
             "commit", "--allow-empty", "-m", "initial gitops commit"],
            cwd=repo,
        )
        self._git(["push", "-u", "origin", "main"], cwd=repo, env=env)
        log.info("gitops repository pushed to %s", d.destination_gitops_repo_url)
