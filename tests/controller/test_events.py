import json

from clusterforge.observers.dispatcher import EventBus
from clusterforge.observers.events import StageFailed, StageStarted, new_ctx
from clusterforge.observers.jsonfile import JsonFileObserver


class Exploding:
    def notify(self, event):
        raise RuntimeError("observer bug")


def test_bus_survives_failing_observer(tmp_path):
    path = tmp_path / "events.jsonl"
    bus = EventBus([Exploding(), JsonFileObserver(path)])
    ctx = new_ctx("kf-mgmt", "digitalocean", "run-1")

    bus.emit(StageStarted(stage="git-init", **ctx))
    bus.emit(StageFailed(stage="git-init", error="boom", **ctx))

    lines = [json.loads(line) for line in path.read_text().splitlines()]
    assert [e["type"] for e in lines] == ["StageStarted", "StageFailed"]
    assert lines[1]["run_id"] == "run-1"


def test_per_run_files(tmp_path):
    obs = JsonFileObserver(tmp_path / "events", per_run=True)
    obs.notify(StageStarted(stage="init", **new_ctx("kf-mgmt", "digitalocean", "r1")))
    assert (tmp_path / "events" / "kf-mgmt-r1.jsonl").is_file()
