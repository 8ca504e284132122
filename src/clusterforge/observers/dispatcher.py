# src/clusterforge/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List
from .events import BaseEvent

log = logging.getLogger("clusterforge")


class EventBus:
    def __init__(self, observers: List = None):
        self._observers = observers or []

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break provisioning
                log.debug("observer %s failed on %s: %s", type(ob).__name__, type(event).__name__, e)
