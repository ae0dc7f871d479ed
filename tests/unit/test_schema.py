"""Tests for timestamp normalization and the core models."""
from datetime import date, datetime, timedelta, timezone

import pytest

from chronus import Anchor, Frame, InvalidCursor, InvalidFrame, to_timestamp

UTC = timezone.utc


class TestToTimestamp:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-01-01T08:00:00Z", datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
            ("2024-01-01T10:00:00+02:00", datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
            ("2024-01-01", datetime(2024, 1, 1, tzinfo=UTC)),
            (date(2024, 1, 1), datetime(2024, 1, 1, tzinfo=UTC)),
            (datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
            (1704096000, datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
        ],
    )
    def test_accepted_inputs(self, value, expected):
        result = to_timestamp(value)
        assert result == expected
        assert result.tzinfo is not None

    def test_keeps_the_given_offset(self):
        result = to_timestamp("2024-01-01T10:00:00+02:00")
        assert result.utcoffset() == timedelta(hours=2)

    @pytest.mark.parametrize("value", ["yesterday", "", None, True, [2024, 1, 1]])
    def test_rejected_inputs(self, value):
        with pytest.raises(InvalidCursor):
            to_timestamp(value)


class TestFrame:
    def test_coerce(self):
        assert Frame.coerce("weekly") is Frame.WEEKLY
        assert Frame.coerce(Frame.ANNUAL) is Frame.ANNUAL

    def test_unknown_frame(self):
        with pytest.raises(InvalidFrame):
            Frame.coerce("hourly")


class TestAnchor:
    def test_accepts_wire_names(self):
        anchor = Anchor.model_validate(
            {"id": "a", "at": "2024-01-01T08:00:00Z", "frame": "daily", "contextId": "cairo"}
        )
        assert anchor.context_id == "cairo"
        assert anchor.priority == 0
        assert anchor.meta == {}

    def test_is_frozen(self):
        anchor = Anchor(id="a", at="2024-01-01", frame="daily")
        with pytest.raises(Exception):
            anchor.label = "changed"
