"""Tests for optimizer configuration."""

import pytest

from stompopt.core.config import ChompConfig, NoiseAdaptationConfig, StompConfig
from stompopt.core.errors import ConfigurationError, MalformedTaskOutput, StompError


def test_defaults_validate():
    StompConfig().validate()
    ChompConfig().validate()
    NoiseAdaptationConfig().validate()


def test_rollouts_per_iteration_clamped():
    assert StompConfig(num_rollouts=10).rollouts_per_iteration == 10
    assert StompConfig(num_rollouts=2, min_rollouts=5).rollouts_per_iteration == 5
    assert StompConfig(num_rollouts=50, max_rollouts=20).rollouts_per_iteration == 20


def test_from_dict_with_nested_adaptation():
    config = StompConfig.from_dict({
        "num_rollouts": 15,
        "noise_stddev": [0.1, 0.2],
        "adaptation": {"enabled": True, "strategy": "decay", "decay": 0.9},
    })

    assert config.num_rollouts == 15
    assert config.adaptation.enabled
    assert config.adaptation.decay == 0.9
    config.validate()


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError, match="num_rolouts"):
        StompConfig.from_dict({"num_rolouts": 3})
    with pytest.raises(ConfigurationError):
        StompConfig.from_dict({"adaptation": {"grow": 2.0}})
    with pytest.raises(ConfigurationError):
        ChompConfig.from_dict({"step": 1.0})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"num_rollouts": -1},
        {"min_rollouts": 5, "max_rollouts": 2},
        {"num_reused_rollouts": -2},
        {"cost_sensitivity": 0.0},
        {"weight_epsilon": 0.0},
        {"adaptation": NoiseAdaptationConfig(shrink_factor=1.5)},
        {"adaptation": NoiseAdaptationConfig(target_success_rate=2.0)},
    ],
)
def test_invalid_stomp_config(kwargs):
    with pytest.raises(ConfigurationError):
        StompConfig(**kwargs).validate()


def test_invalid_chomp_config():
    with pytest.raises(ConfigurationError):
        ChompConfig(max_update=0.0).validate()
    with pytest.raises(ConfigurationError):
        ChompConfig(finite_difference_step=-1e-3).validate()


def test_error_hierarchy():
    """Configuration errors are also ValueErrors."""
    assert issubclass(ConfigurationError, StompError)
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(MalformedTaskOutput, StompError)
    assert issubclass(MalformedTaskOutput, RuntimeError)
