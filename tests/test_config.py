import dataclasses
import math

import pytest

from alephbft.config import Config, default_config, exponential_slowdown
from alephbft.nodes import NodeCount, NodeIndex


def as_ms(seconds):
    return round(seconds * 1000)


def test_default_config_identity_fields():
    config = default_config(4, 1, 7)
    assert config.node_ix == NodeIndex(1)
    assert config.n_members == NodeCount(4)
    assert config.session_id == 7
    assert config.max_round == 5000


def test_default_config_intervals():
    delays = default_config(4, 0, 0).delay_config
    assert as_ms(delays.tick_interval) == 100
    assert as_ms(delays.requests_interval) == 3000


def test_default_broadcast_delay_doubles():
    schedule = default_config(4, 0, 0).delay_config.unit_broadcast_delay
    assert [as_ms(schedule(t)) for t in range(4)] == [4000, 8000, 16000, 32000]


def test_default_creation_delay_shape():
    schedule = default_config(4, 0, 0).delay_config.unit_creation_delay
    assert as_ms(schedule(0)) == 5000
    assert all(as_ms(schedule(t)) == 500 for t in (1, 2, 1500, 3000))
    later = [schedule(t) for t in range(3000, 3200)]
    assert later == sorted(later)
    assert later[-1] > later[0]


def test_slowdown_below_start_is_base():
    assert as_ms(exponential_slowdown(3, 250.0, 10, 7.0)) == 250


def test_slowdown_is_whole_milliseconds():
    for t in range(50):
        value = exponential_slowdown(t, 333.3, 5, 1.37) * 1000
        assert math.isclose(value, round(value), abs_tol=1e-6)


def test_slowdown_negative_and_nan_clamp_to_zero():
    assert exponential_slowdown(0, -10.0, 0, 2.0) == 0
    assert exponential_slowdown(0, math.nan, 0, 2.0) == 0


def test_config_rejects_out_of_range_round():
    base = default_config(4, 0, 0)
    with pytest.raises(ValueError):
        dataclasses.replace(base, max_round=70000)


def test_config_is_frozen():
    config = default_config(4, 0, 0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.max_round = 10  # type: ignore[misc]
    assert config.max_round == 5000


def test_config_coerces_indices():
    base = default_config(4, 0, 0)
    config = Config(
        node_ix=2,
        session_id=0,
        n_members=4,
        delay_config=base.delay_config,
        max_round=5000,
    )
    assert config.node_ix == NodeIndex(2)
    assert isinstance(config.n_members, NodeCount) and config.n_members == 4