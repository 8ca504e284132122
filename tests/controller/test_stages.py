import pytest

from clusterforge.controller.cancel import CancelToken
from clusterforge.controller.stages import Stage, StageScope, run_stages
from clusterforge.errors import ExternalCallError
from clusterforge.observers.dispatcher import EventBus
from clusterforge.store.memory import InMemoryStore


class BrokenResetStore(InMemoryStore):
    def update_field(self, name, field, value):
        if field == "in_progress" and value is False:
            raise ExternalCallError("store went away")
        super().update_field(name, field, value)


def runner_kwargs(store, **extra):
    kwargs = dict(store=store, cluster_name="kf-mgmt", provider="digitalocean", cancel=CancelToken())
    kwargs.update(extra)
    return kwargs


def test_marker_is_set_after_success(definition):
    store = InMemoryStore()
    store.create_record(definition)
    calls = []

    report = run_stages([Stage("git-init", lambda: calls.append(1), "git_init_check")], **runner_kwargs(store))

    assert calls == [1]
    assert report.completed == ["git-init"]
    assert store.get_record("kf-mgmt").git_init_check is True


def test_failing_reset_is_chained_to_original(definition):
    store = BrokenResetStore()
    store.create_record(definition)
    original = RuntimeError("stage blew up")

    def fail():
        raise original

    with pytest.raises(ExternalCallError) as ei:
        run_stages([Stage("git-init", fail, "git_init_check")], **runner_kwargs(store))

    assert ei.value.__cause__ is original


def test_non_provision_errors_propagate_untouched(definition):
    store = InMemoryStore()
    store.create_record(definition)
    store.update_field("kf-mgmt", "in_progress", True)
    original = KeyError("missing")
    later = []

    def fail():
        raise original

    with pytest.raises(KeyError) as ei:
        run_stages([Stage("a", fail), Stage("b", lambda: later.append(1))], **runner_kwargs(store))

    assert ei.value is original
    assert later == []
    assert store.get_record("kf-mgmt").in_progress is False


def test_scope_wraps_inner_stages(definition):
    store = InMemoryStore()
    store.create_record(definition)
    trail = []

    class Scope:
        def __enter__(self):
            trail.append("open")

        def __exit__(self, *exc):
            trail.append("close")
            return False

    steps = [StageScope("pf", Scope, [
        Stage("one", lambda: trail.append("one")),
        Stage("two", lambda: trail.append("two")),
    ])]
    events = []

    class Capture:
        def notify(self, event):
            events.append(type(event).__name__)

    run_stages(steps, **runner_kwargs(store, bus=EventBus([Capture()])))

    assert trail == ["open", "one", "two", "close"]
    assert events[0] == "ScopeOpened"
    assert events[-1] == "ScopeClosed"
