"""Tests for blend subsets and sequence step flattening."""
from datetime import datetime, timedelta, timezone

from chronus import EventKind, SequenceLibrary, blend_subset, pick_sequence_steps

CURSOR = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


def _fill(engine, make_anchor):
    engine.add_context({"id": "cairo"})
    engine.upsert_anchors(
        "cairo",
        "daily",
        [
            make_anchor("civil-noon", CURSOR + timedelta(hours=4), source="chronus/civil"),
            make_anchor("run-1", CURSOR + timedelta(hours=1), source="chronus/runner"),
            make_anchor("run-2", CURSOR + timedelta(hours=6), source="chronus/runner"),
        ],
    )


class TestBlendSubset:
    def test_no_filters_returns_bucket(self, engine, make_anchor):
        _fill(engine, make_anchor)
        assert [a.id for a in blend_subset(engine)] == ["run-1", "civil-noon", "run-2"]

    def test_filter_by_source(self, engine, make_anchor):
        _fill(engine, make_anchor)
        picked = blend_subset(engine, sources=["chronus/runner"])
        assert [a.id for a in picked] == ["run-1", "run-2"]

    def test_window_is_inclusive(self, engine, make_anchor):
        _fill(engine, make_anchor)
        picked = blend_subset(
            engine,
            start=CURSOR + timedelta(hours=1),
            end=(CURSOR + timedelta(hours=4)).isoformat(),
        )
        assert [a.id for a in picked] == ["run-1", "civil-noon"]

    def test_other_bucket_is_empty(self, engine, make_anchor):
        _fill(engine, make_anchor)
        assert blend_subset(engine, context_id="ny") == []
        assert blend_subset(engine, frame="weekly") == []

    def test_does_not_write(self, engine, make_anchor, events):
        _fill(engine, make_anchor)
        before = len(events[EventKind.BLEND_UPDATED])
        blend_subset(engine, sources=["nobody"])
        assert len(engine.get_anchors()) == 3
        assert len(events[EventKind.BLEND_UPDATED]) == before


class TestPickSequenceSteps:
    def test_steps_carry_their_sequence(self):
        library = SequenceLibrary()
        library.upsert_sequences(
            [
                {"id": "morning", "label": "Morning", "steps": [{"id": "wake", "offsetMs": 0}, {"id": "run"}]},
                {"id": "evening", "steps": [{"id": "read"}]},
            ]
        )

        steps = pick_sequence_steps(library, ["morning"])

        assert [(s.sequence_id, s.id) for s in steps] == [("morning", "wake"), ("morning", "run")]
        assert steps[0].sequence_label == "Morning"
        assert steps[0].offset_ms == 0

    def test_all_sequences_by_default(self):
        library = SequenceLibrary()
        library.upsert_sequences([{"id": "a", "steps": [{"id": "x"}]}, {"id": "b", "steps": [{"id": "y"}]}])

        assert [s.id for s in pick_sequence_steps(library)] == ["x", "y"]
