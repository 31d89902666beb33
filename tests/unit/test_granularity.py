from datetime import timedelta

import pytest

from klinefetch.errors import UnsupportedGranularityError
from klinefetch.granularity import DEFAULT_CANDLE_CAP, Granularity


def test_from_token_round_trips_every_member() -> None:
    """Tests that every member can be looked up by its own token."""
    for member in Granularity:
        assert Granularity.from_token(member.token) is member
        assert str(member) == member.token


def test_tokens_are_case_sensitive() -> None:
    """Tests that '1m' is a minute while '1M' is a month."""
    assert Granularity.from_token("1m").step == timedelta(minutes=1)
    assert Granularity.from_token("1M").step == timedelta(days=30)


def test_unknown_token_is_rejected() -> None:
    """Tests that unknown tokens raise a dedicated error."""
    with pytest.raises(UnsupportedGranularityError, match="Unsupported interval '2m'"):
        Granularity.from_token("2m")


def test_max_span_is_step_times_cap() -> None:
    """Tests the per-request span for the default and custom caps."""
    assert DEFAULT_CANDLE_CAP == 1000
    assert Granularity.H1.max_span() == timedelta(hours=1000)
    assert Granularity.M1.max_span(500) == timedelta(minutes=500)

    with pytest.raises(ValueError, match="positive"):
        Granularity.D1.max_span(0)
