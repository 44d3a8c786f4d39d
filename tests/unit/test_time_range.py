"""Unit tests for half-open time ranges."""
from datetime import datetime, timedelta, timezone

import pytest

from booking_core.time_range import TimeRange, as_utc, overlaps

UTC = timezone.utc
PLUS_8 = timezone(timedelta(hours=8))


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 1, 1, hour, minute, tzinfo=UTC)


class TestOverlap:
    """Test the overlap predicate."""

    @pytest.mark.parametrize(
        "a, b, expected",
        [
            (TimeRange(at(9), at(10)), TimeRange(at(9, 30), at(10, 30)), True),
            (TimeRange(at(9), at(12)), TimeRange(at(10), at(11)), True),
            (TimeRange(at(9), at(10)), TimeRange(at(9), at(10)), True),
            (TimeRange(at(9), at(10)), TimeRange(at(10), at(11)), False),
            (TimeRange(at(9), at(10)), TimeRange(at(11), at(12)), False),
        ],
    )
    def test_overlap_is_symmetric(self, a, b, expected):
        assert overlaps(a, b) is expected
        assert overlaps(b, a) is expected

    def test_touching_ranges_do_not_overlap(self):
        assert not overlaps(TimeRange(at(9), at(10)), TimeRange(at(10), at(11)))

    def test_ranges_compare_as_instants_across_offsets(self):
        # 17:00-18:00 at +08:00 is 09:00-10:00 UTC.
        local = TimeRange(datetime(2024, 1, 1, 17, tzinfo=PLUS_8), datetime(2024, 1, 1, 18, tzinfo=PLUS_8))
        assert local.start == at(9)
        assert overlaps(local, TimeRange(at(9, 30), at(11)))
        assert not overlaps(local, TimeRange(at(10), at(11)))


class TestTimeRange:
    """Test normalization and validity."""

    def test_naive_datetimes_are_treated_as_utc(self):
        naive = TimeRange(datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 10))
        assert naive == TimeRange(at(9), at(10))
        assert naive.start.tzinfo is UTC

    def test_validity_and_duration(self):
        assert TimeRange(at(9), at(10)).is_valid
        assert TimeRange(at(9), at(10)).duration == timedelta(hours=1)
        assert not TimeRange(at(10), at(10)).is_valid
        assert not TimeRange(at(11), at(10)).is_valid

    def test_as_utc_converts_aware_values(self):
        assert as_utc(datetime(2024, 1, 1, 8, tzinfo=PLUS_8)) == datetime(2024, 1, 1, 0, tzinfo=UTC)
