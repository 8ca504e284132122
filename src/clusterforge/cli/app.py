# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/cli/app.py
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from clusterforge.config.loader import load_definition
from clusterforge.config.models import StateStoreCredentials, StateStoreDetails
from clusterforge.config.settings import load_settings
from clusterforge.controller.cancel import CancelToken
from clusterforge.controller.create import create_cluster
from clusterforge.controller.factory import build_collaborators
from clusterforge.errors import ProvisionError
from clusterforge.logging.log import init_logging
from clusterforge.observers.console import ConsoleObserver
from clusterforge.observers.dispatcher import EventBus
from clusterforge.observers.jsonfile import JsonFileObserver
from clusterforge.observers.logger import LoggerObserver
from clusterforge.providers.registry import build_provider
from clusterforge.storage.backup import export_cluster_record, import_cluster_record
from clusterforge.storage.object_storage import ObjectStorage
from clusterforge.store.filestore import JsonFileStore
from clusterforge.store.models import Environment
from clusterforge.temporal.models import ProvisionRequest

# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="clusterforge management cluster provisioning CLI")
env_cli = typer.Typer(help="Manage environments")
app.add_typer(env_cli, name="env")


def _store() -> JsonFileStore:
    return JsonFileStore(load_settings().state_dir)


def _fail(e: ProvisionError) -> None:
    where = f" (stage {e.stage})" if e.stage else ""
    typer.secho(f"error{where}: {e}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


# ------------------------------------------------------------------------------
# Provision
# ------------------------------------------------------------------------------

@app.command()
def provision(
    config: Path = typer.Argument(..., help="Cluster definition YAML"),
    temporal: bool = typer.Option(False, "--temporal", help="Run provisioning as a Temporal workflow"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up after this many seconds"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Provision the cluster described by CONFIG, resuming from any completed stages."""
    try:
        definition = load_definition(config)
    except ProvisionError as e:
        _fail(e)

    # ------------------------------------------------------------------
    # TEMPORAL PATH (early exit)
    # ------------------------------------------------------------------
    if temporal:
        from clusterforge.cli.temporal_start import start_provision_workflow

        req = ProvisionRequest(definition_path=str(config.resolve()), timeout_seconds=timeout, debug=debug)
        workflow_id = asyncio.run(start_provision_workflow(req, definition.cluster_name))
        typer.echo(f"[temporal] Provisioning workflow started: {workflow_id}")
        raise typer.Exit(0)

    settings = load_settings()
    logger, run_id, log_path = init_logging(
        base_dir=settings.log_dir,
        cluster_name=definition.cluster_name,
        verbose=debug,
    )
    bus = EventBus([
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(settings.log_dir / "events", per_run=True),
    ])
    collaborators = build_collaborators(definition, settings, bus=bus)

    try:
        record = create_cluster(
            definition,
            collaborators,
            cancel=CancelToken(timeout_seconds=timeout),
            run_id=run_id,
            lease_ttl_seconds=settings.lease_ttl_seconds,
        )
    except ProvisionError as e:
        typer.echo(f"full log: {log_path}", err=True)
        _fail(e)
    except KeyboardInterrupt:
        typer.secho("interrupted; rerun the same command to resume", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(130)

    typer.secho(f"cluster {record.cluster_name} is {record.status}", fg=typer.colors.GREEN)
    if record.argocd_password:
        typer.echo(f"argocd: {record.argocd_username} / {record.argocd_password}")


# ------------------------------------------------------------------------------
# Records
# ------------------------------------------------------------------------------

@app.command()
def status(name: str = typer.Argument(..., help="Cluster name")):
    """Show the stored record for one cluster."""
    try:
        record = _store().get_record(name)
    except ProvisionError as e:
        _fail(e)
    typer.echo(record.model_dump_json(indent=2, exclude={"git_auth", "state_store_credentials", "argocd_password"}))


@app.command("list")
def list_clusters():
    """List every known cluster record."""
    records = _store().list_records()
    if not records:
        typer.echo("no clusters")
        return
    for r in records:
        flag = " (in progress)" if r.in_progress else ""
        typer.echo(f"{r.id}  {r.cluster_name:<24} {r.cloud_provider:<13} {r.status or '-'}{flag}")


@app.command()
def delete(record_id: str = typer.Argument(..., help="24 character record id")):
    """Delete a cluster record (the infrastructure is left alone)."""
    try:
        _store().delete_record(record_id)
    except ProvisionError as e:
        _fail(e)
    typer.echo(f"deleted cluster record {record_id}")


@app.command()
def export(name: str = typer.Argument(..., help="Cluster name")):
    """Back the cluster record up into its state store bucket."""
    settings = load_settings()
    try:
        key = export_cluster_record(_store(), ObjectStorage(), name, settings.state_dir / "exports")
    except ProvisionError as e:
        _fail(e)
    typer.echo(f"exported {name} to {key}")


@app.command()
def restore(
    name: str = typer.Argument(..., help="Cluster name"),
    bucket: str = typer.Option(..., "--bucket"),
    hostname: str = typer.Option(..., "--hostname", help="Object storage endpoint host"),
    access_key_id: str = typer.Option(..., "--access-key-id", envvar="CLUSTERFORGE_STATE_STORE_ACCESS_KEY_ID"),
    secret_access_key: str = typer.Option(
        ..., "--secret-access-key", envvar="CLUSTERFORGE_STATE_STORE_SECRET_ACCESS_KEY"
    ),
    region: Optional[str] = typer.Option(None, "--region"),
):
    """Restore a cluster record previously exported to a state store bucket."""
    settings = load_settings()
    try:
        record = import_cluster_record(
            _store(),
            ObjectStorage(),
            StateStoreCredentials(access_key_id=access_key_id, secret_access_key=secret_access_key),
            StateStoreDetails(name=bucket, hostname=hostname, region=region),
            name,
            settings.state_dir / "imports",
        )
    except ProvisionError as e:
        _fail(e)
    typer.echo(f"restored {record.cluster_name} ({record.id})")


# ------------------------------------------------------------------------------
# Provider lookups
# ------------------------------------------------------------------------------

@app.command()
def domains(config: Path = typer.Argument(..., help="Cluster definition YAML")):
    """List the DNS zones the provider account manages."""
    try:
        for d in build_provider(load_definition(config)).list_domains():
            typer.echo(d)
    except ProvisionError as e:
        _fail(e)


@app.command()
def regions(config: Path = typer.Argument(..., help="Cluster definition YAML")):
    """List the provider's available regions."""
    try:
        for r in build_provider(load_definition(config)).list_regions():
            typer.echo(r)
    except ProvisionError as e:
        _fail(e)


@app.command()
def sizes(
    config: Path = typer.Argument(..., help="Cluster definition YAML"),
    region: Optional[str] = typer.Option(None, "--region", help="Defaults to the definition's region"),
):
    """List node instance types available in a region."""
    try:
        definition = load_definition(config)
        for s in build_provider(definition).list_instance_types(region or definition.cloud_region):
            typer.echo(s)
    except ProvisionError as e:
        _fail(e)


# ------------------------------------------------------------------------------
# Environments
# ------------------------------------------------------------------------------

@env_cli.command("list")
def env_list():
    for env in _store().list_environments():
        typer.echo(f"{env.id}  {env.name:<16} {env.color:<8} {env.description}")


@env_cli.command("create")
def env_create(
    name: str = typer.Argument(...),
    color: str = typer.Option("", "--color"),
    description: str = typer.Option("", "--description"),
):
    try:
        env = _store().insert_environment(Environment(name=name, color=color, description=description))
    except ProvisionError as e:
        _fail(e)
    typer.echo(f"created environment {env.name} ({env.id})")


@env_cli.command("delete")
def env_delete(env_id: str = typer.Argument(...)):
    try:
        _store().delete_environment(env_id)
    except ProvisionError as e:
        _fail(e)
    typer.echo(f"deleted environment {env_id}")


if __name__ == "__main__":
    app()
