from __future__ import annotations
import json
from pathlib import Path
from .interface import Observer
from .events import BaseEvent


class JsonFileObserver(Observer):
    """
    Appends one JSON line per event. With `per_run=True`, `path` is a
    directory and each run writes `<cluster>-<run_id>.jsonl` inside it.
    """

    def __init__(self, path: str | Path, *, per_run: bool = False):
        self.path = Path(path)
        self.per_run = per_run
        (self.path if per_run else self.path.parent).mkdir(parents=True, exist_ok=True)

    def _target(self, event: BaseEvent) -> Path:
        if not self.per_run:
            return self.path
        return self.path / f"{event.cluster}-{event.run_id}.jsonl"

    def notify(self, event: BaseEvent) -> None:
        record = {"type": event.__class__.__name__, **event.dict()}
        with self._target(event).open("a") as f:
            f.write(json.dumps(record, default=str) + "\n")
