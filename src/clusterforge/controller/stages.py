# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/controller/stages.py
from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, ContextManager, List, Optional, Sequence, Union

from ..errors import NotFoundError, ProvisionError
from ..observers.dispatcher import EventBus
from ..observers.events import (
    ScopeClosed,
    ScopeOpened,
    StageFailed,
    StageSkipped,
    StageStarted,
    StageSucceeded,
    new_ctx,
)
from ..store.interface import ClusterRecordStore
from .cancel import CancelToken

log = logging.getLogger("clusterforge")


@dataclass(frozen=True)
class Stage:
    name: str
    action: Callable[[], None]
    # record field that, once True, makes the stage skippable on resume
    marker: Optional[str] = None
    # runs before in_progress is reset, e.g. to flag a failed infra apply
    on_failure: Optional[Callable[[BaseException], None]] = None


@dataclass(frozen=True)
class StageScope:
    """Stages that share one resource, opened before the first and closed after the last."""

    name: str
    scope: Callable[[], ContextManager]
    stages: Sequence[Stage]


Step = Union[Stage, StageScope]


@dataclass
class RunReport:
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed_stage: Optional[str] = None


def stage_names(steps: Sequence[Step]) -> List[str]:
    names: List[str] = []
    for step in steps:
        if isinstance(step, StageScope):
            names.extend(s.name for s in step.stages)
        else:
            names.append(step.name)
    return names


class StageRunner:
    """
    Executes steps strictly in order against one cluster record.

    A failing step resets `in_progress` on the record and re-raises the
    exception it caught; nothing after it runs.
    """

    def __init__(
        self,
        *,
        store: ClusterRecordStore,
        cluster_name: str,
        provider: str,
        cancel: CancelToken,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.store = store
        self.cluster_name = cluster_name
        self.provider = provider
        self.cancel = cancel
        self.bus = bus or EventBus()
        self.run_id = run_id or new_ctx(cluster_name, provider)["run_id"]
        self.report = RunReport()

    def _ctx(self):
        return new_ctx(self.cluster_name, self.provider, self.run_id)

    def _marker_set(self, marker: str) -> bool:
        return bool(getattr(self.store.get_record(self.cluster_name), marker))

    def _fail(self, name: str, exc: BaseException, on_failure=None) -> None:
        self.report.failed_stage = name
        if isinstance(exc, ProvisionError) and exc.stage is None:
            exc.stage = name
        log.error("stage %s failed: %s", name, exc)
        self.bus.emit(StageFailed(stage=name, error=str(exc), **self._ctx()))

        if on_failure is not None:
            try:
                on_failure(exc)
            except Exception as hook_err:
                # the reset below still has to happen
                log.error("failure hook for stage %s raised: %s", name, hook_err)

        try:
            self.store.update_field(self.cluster_name, "in_progress", False)
        except NotFoundError:
            # nothing to reset when the record was never created
            log.debug("no record for %s while resetting in_progress", self.cluster_name)
        except ProvisionError as reset_err:
            raise reset_err from exc

    def run_stage(self, stage: Stage) -> None:
        try:
            self.cancel.raise_if_cancelled(stage.name)
            if stage.marker and self._marker_set(stage.marker):
                log.info("stage %s already complete (%s), skipping", stage.name, stage.marker)
                self.report.skipped.append(stage.name)
                self.bus.emit(StageSkipped(stage=stage.name, marker=stage.marker, **self._ctx()))
                return

            log.info("stage %s starting", stage.name)
            self.bus.emit(StageStarted(stage=stage.name, **self._ctx()))
            t0 = time.monotonic()
            stage.action()
            if stage.marker:
                self.store.update_field(self.cluster_name, stage.marker, True)
        except BaseException as e:
            self._fail(stage.name, e, stage.on_failure)
            raise

        ms = int((time.monotonic() - t0) * 1000)
        self.report.completed.append(stage.name)
        self.bus.emit(StageSucceeded(stage=stage.name, duration_ms=ms, **self._ctx()))
        log.info("stage %s complete (%d ms)", stage.name, ms)

    def run_scope(self, scope: StageScope) -> None:
        try:
            pending = [s for s in scope.stages if not (s.marker and self._marker_set(s.marker))]
        except BaseException as e:
            self._fail(scope.name, e)
            raise

        if not pending:
            # everything inside is done; don't open the resource at all
            for s in scope.stages:
                self.run_stage(s)
            return

        with ExitStack() as stack:
            try:
                self.cancel.raise_if_cancelled(scope.name)
                stack.enter_context(scope.scope())
            except BaseException as e:
                self._fail(scope.name, e)
                raise
            self.bus.emit(ScopeOpened(scope=scope.name, **self._ctx()))
            stack.callback(lambda: self.bus.emit(ScopeClosed(scope=scope.name, **self._ctx())))

            for s in scope.stages:
                self.run_stage(s)

    def run(self, steps: Sequence[Step]) -> RunReport:
        for step in steps:
            if isinstance(step, StageScope):
                self.run_scope(step)
            else:
                self.run_stage(step)
        return self.report


def run_stages(steps: Sequence[Step], **kwargs) -> RunReport:
    return StageRunner(**kwargs).run(steps)
