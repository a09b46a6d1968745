"""
tests/test_durations.py -- Unit tests for core/durations.py.

Covers:
  - every unit suffix and the bare-seconds form
  - rejection of zero, negative and malformed values
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from core.durations import parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("45s", timedelta(seconds=45)),
            ("15m", timedelta(minutes=15)),
            ("12h", timedelta(hours=12)),
            ("30d", timedelta(days=30)),
            ("2w", timedelta(weeks=2)),
            ("900", timedelta(seconds=900)),
            (" 15 m ", timedelta(minutes=15)),
            ("7D", timedelta(days=7)),
        ],
    )
    def test_accepted_forms(self, value: str, expected: timedelta) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "0", "0m", "-5m", "15x", "m", "1.5h", "15 minutes"])
    def test_rejected_forms(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)

