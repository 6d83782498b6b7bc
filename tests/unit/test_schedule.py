"""
Unit Tests - Archive Boundaries
"""
import random
from datetime import datetime, timedelta, timezone

import pytest

from statshub.archive.schedule import EPOCH, next_boundary, truncate

UTC = timezone.utc


class TestBoundaries:
    """Tests for clock-aligned boundaries"""

    def test_next_boundary_examples(self):
        """Test common intervals"""
        t = datetime(2024, 5, 1, 12, 3, 20, tzinfo=UTC)

        assert next_boundary(t, timedelta(minutes=10)) == datetime(2024, 5, 1, 12, 10, tzinfo=UTC)
        assert next_boundary(t, timedelta(hours=1)) == datetime(2024, 5, 1, 13, 0, tzinfo=UTC)
        assert next_boundary(t, timedelta(hours=24)) == datetime(2024, 5, 2, 0, 0, tzinfo=UTC)

    def test_on_boundary_moves_to_next(self):
        """Test an instant exactly on a boundary yields the following one"""
        t = datetime(2024, 5, 1, 12, 10, tzinfo=UTC)

        assert truncate(t, timedelta(minutes=10)) == t
        assert next_boundary(t, timedelta(minutes=10)) == datetime(2024, 5, 1, 12, 20, tzinfo=UTC)

    def test_naive_datetimes_are_utc(self):
        """Test naive input is treated as UTC"""
        naive = datetime(2024, 5, 1, 12, 3, 20)

        assert next_boundary(naive, timedelta(minutes=10)) == datetime(2024, 5, 1, 12, 10, tzinfo=UTC)

    def test_other_timezones_align_to_utc_epoch(self):
        """Test boundaries are epoch aligned regardless of input offset"""
        t = datetime(2024, 5, 1, 14, 3, 20, tzinfo=timezone(timedelta(hours=2)))

        assert next_boundary(t, timedelta(hours=1)) == datetime(2024, 5, 1, 13, 0, tzinfo=UTC)

    @pytest.mark.parametrize("interval", [
        timedelta(seconds=7),
        timedelta(minutes=10),
        timedelta(hours=1),
        timedelta(hours=24),
    ])
    def test_properties(self, interval):
        """Test strictly later, epoch aligned and idempotent"""
        rng = random.Random(3)
        for _ in range(200):
            now = EPOCH + timedelta(microseconds=rng.randrange(0, 2_000_000_000_000_000))
            boundary = next_boundary(now, interval)

            assert boundary > now
            assert boundary - now <= interval
            assert (boundary - EPOCH) % interval == timedelta(0)
            assert next_boundary(now, interval) == boundary

    def test_non_positive_interval(self):
        """Test invalid intervals"""
        with pytest.raises(ValueError):
            next_boundary(datetime.now(UTC), timedelta(0))
