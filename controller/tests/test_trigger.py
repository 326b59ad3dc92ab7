"""Tests for trigger evaluation."""

from controller.src.models.pipeline import Event, EventKind
from controller.src.services.trigger import evaluate_trigger, should_run

def _definition(make_definition):
    return make_definition(
        [{"name": "Build", "run": "make"}],
        on={"push": {"branches": ["main", "release/*"], "paths": ["backend/**"]}, "manual": None},
    )

def test_push_to_main_runs(make_definition):
    definition = _definition(make_definition)
    event = Event(kind=EventKind.PUSH, ref="refs/heads/main", changed_paths=("backend/src/App.java",))
    assert should_run(definition, event)

def test_push_to_feature_branch_does_not_run(make_definition):
    definition = _definition(make_definition)
    event = Event(kind=EventKind.PUSH, ref="refs/heads/feature-x", changed_paths=("backend/pom.xml",))
    assert not should_run(definition, event)

def test_branch_glob(make_definition):
    definition = _definition(make_definition)
    assert should_run(definition, Event(kind=EventKind.PUSH, ref="release/1.2"))

def test_unrelated_paths_do_not_run(make_definition):
    definition = _definition(make_definition)
    event = Event(kind=EventKind.PUSH, ref="main", changed_paths=("frontend/package.json", "README.md"))
    assert not should_run(definition, event)

def test_push_without_path_info_runs(make_definition):
    definition = _definition(make_definition)
    assert should_run(definition, Event(kind=EventKind.PUSH, ref="main"))

def test_manual_dispatch_ignores_push_filters(make_definition):
    definition = _definition(make_definition)
    assert evaluate_trigger(definition.trigger, Event(kind=EventKind.MANUAL, ref="feature-x"))

def test_event_kind_not_listed(make_definition):
    definition = make_definition([{"name": "Build", "run": "make"}], on={"push": None})
    assert not should_run(definition, Event(kind=EventKind.MANUAL, ref="main"))
