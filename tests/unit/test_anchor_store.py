"""
Tests for writing anchors into the engine's buckets.

Anchor records may omit their frame and context id; the bucket they are
written to supplies both.
"""
from datetime import datetime, timedelta, timezone

import pytest

from chronus import ChronusError, EventKind, Frame, FunctionProvider, InvalidAnchor

CURSOR = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


class TestUpsertAnchors:
    def test_bare_records_are_sorted_into_the_bucket(self, engine):
        engine.upsert_anchors(
            "cairo",
            "daily",
            [
                {"id": "a", "at": CURSOR + timedelta(hours=2)},
                {"id": "b", "at": CURSOR + timedelta(hours=1)},
            ],
        )

        anchors = engine.get_anchors(context_id="cairo", frame="daily")
        assert [a.id for a in anchors] == ["b", "a"]
        assert {(a.frame, a.context_id) for a in anchors} == {(Frame.DAILY, "cairo")}

    def test_explicit_fields_are_kept(self, engine):
        [anchor] = engine.upsert_anchors(
            "cairo", "weekly", [{"id": "a", "at": CURSOR, "frame": "daily", "context_id": "elsewhere"}]
        )
        assert anchor.frame is Frame.DAILY
        assert anchor.context_id == "elsewhere"

    def test_invalid_record_raises_invalid_anchor(self, engine):
        with pytest.raises(InvalidAnchor):
            engine.upsert_anchors("cairo", "daily", [{"id": "no-time"}])
        with pytest.raises(ChronusError):
            engine.upsert_anchors("cairo", "daily", ["not-a-record"])
        assert engine.get_anchors(context_id="cairo") == []

    def test_provider_records_without_frame_are_written(self, engine, events):
        engine.add_context({"id": "cairo"})
        engine.register_provider(
            FunctionProvider("bare", lambda q: [{"id": "x", "at": q.cursor, "label": "X"}])
        )

        assert [a.id for a in engine.get_anchors()] == ["x"]
        assert engine.get_anchors()[0].context_id == "cairo"
        assert events[EventKind.PROVIDER_ERROR] == []
