"""
Pytest configuration, shared fixtures and shared BDD steps for Chronus tests.
"""
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest
from pytest_bdd import given, parsers, then, when

from chronus import Anchor, ChronusEngine, EventKind, Frame

CURSOR = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def engine():
    """An engine with the cursor pinned to 2024-01-01 08:00 UTC."""
    return ChronusEngine(cursor=CURSOR)


@pytest.fixture
def events(engine) -> Dict[EventKind, List[Any]]:
    """Every event the engine emits, grouped by kind."""
    seen: Dict[EventKind, List[Any]] = {kind: [] for kind in EventKind}
    for kind in EventKind:
        engine.on(kind, seen[kind].append)
    return seen


@pytest.fixture
def make_anchor():
    def _make(anchor_id: str, at: datetime, **fields) -> Anchor:
        fields.setdefault("label", anchor_id.title())
        fields.setdefault("frame", Frame.DAILY)
        fields.setdefault("context_id", "cairo")
        fields.setdefault("source", "test")
        return Anchor(id=anchor_id, at=at, **fields)

    return _make


@pytest.fixture
def test_context():
    """Shared context for passing data between BDD steps."""
    return {"engine": None, "events": None, "error": None, "providers": {}}


# =============================================================================
# Shared BDD steps
# =============================================================================


@given(parsers.parse('a fresh engine with the cursor at "{cursor}"'))
def fresh_engine(test_context, cursor: str):
    engine = ChronusEngine(cursor=cursor)
    seen: Dict[EventKind, List[Any]] = {kind: [] for kind in EventKind}
    for kind in EventKind:
        engine.on(kind, seen[kind].append)
    test_context["engine"] = engine
    test_context["events"] = seen


@given(parsers.parse('the context "{context_id}" is registered'))
def context_registered(test_context, context_id: str):
    test_context["engine"].add_context({"id": context_id, "label": context_id.title()})


@then(parsers.parse("the call fails with {error_name}"))
def call_failed_with(test_context, error_name: str):
    error = test_context["error"]
    assert error is not None, "expected the call to fail"
    assert type(error).__name__ == error_name


@then(parsers.parse('the anchors for "{context_id}" {frame} are "{anchor_ids}"'))
def anchors_in_bucket(test_context, context_id: str, frame: str, anchor_ids: str):
    anchors = test_context["engine"].get_anchors(context_id=context_id, frame=frame)
    expected = [part.strip() for part in anchor_ids.split(",") if part.strip()]
    assert [a.id for a in anchors] == expected


@then(parsers.parse('there are no anchors for "{context_id}" {frame}'))
def no_anchors_in_bucket(test_context, context_id: str, frame: str):
    assert test_context["engine"].get_anchors(context_id=context_id, frame=frame) == []


@when(parsers.parse('I set the frame to "{frame}"'))
def set_frame(test_context, frame: str):
    test_context["engine"].set_frame(frame)


@when(parsers.parse('I activate the context "{context_id}"'))
def activate_context(test_context, context_id: str):
    test_context["engine"].set_active_context(context_id)


@then(parsers.parse("{count:d} {kind} events were emitted"))
def count_events(test_context, count: int, kind: str):
    assert len(test_context["events"][EventKind(kind)]) == count
