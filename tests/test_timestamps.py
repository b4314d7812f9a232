"""Tests de normalización de timestamps.

Ejecutar:
    pytest tests/test_timestamps.py -v
"""

import pytest

from quality.timestamps import MAX_MILLIS_EPOCH, normalize_timestamp


class TestNormalizeTimestamp:
    """Millisecond epochs pass through, over-precise values are scaled down."""

    @pytest.mark.parametrize("ts", [0, 1, 1_729_747_200_000, MAX_MILLIS_EPOCH])
    def test_millis_unchanged(self, ts):
        assert normalize_timestamp(ts) == ts

    def test_nanoseconds_to_millis(self):
        assert normalize_timestamp(1_761_204_205_212_000_000) == 1_761_204_205_212

    def test_just_above_bound_truncates(self):
        assert normalize_timestamp(MAX_MILLIS_EPOCH + 1) == (MAX_MILLIS_EPOCH + 1) // 1_000_000

    def test_integer_division_truncates(self):
        """Sub-millisecond part is dropped, never rounded up."""
        assert normalize_timestamp(1_761_204_205_212_999_999) == 1_761_204_205_212
