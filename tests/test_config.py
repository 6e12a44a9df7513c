"""Tests for configuration defaults, validation and loading."""

import json

import pytest

from syntrometry.config import (
    AdaptationConfig,
    AgentConfig,
    CascadeConfig,
    SyntrometryConfig,
)


class TestDefaults:
    """The defaults are the values the simulation runs with."""

    def test_cascade_defaults(self):
        config = CascadeConfig()
        assert config.levels == 4
        assert config.stage == 2
        assert config.coherence_scale == 0.5
        assert config.metron_tau == 0.1
        assert config.perturbation_mode == "continuous"

    def test_agent_defaults(self):
        config = AgentConfig()
        assert config.dimensions == 12
        assert config.base_state_dim == 18
        assert config.embedding_dim == 64
        assert config.memory_size == 15
        assert config.belief_input_dim == 12 + 2 + 64

    def test_adaptation_defaults(self):
        config = AdaptationConfig()
        assert config.learning_rate == 0.006
        assert config.decay == 0.03
        assert (config.param_min, config.param_max) == (0.05, 0.95)


class TestValidation:
    """Invalid values raise ValueError at construction."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"levels": -1},
            {"stage": 1},
            {"stage_increment": -1},
            {"rule": "median"},
            {"metron_tau": 0.0},
            {"perturbation_mode": "quantum"},
        ],
    )
    def test_cascade(self, kwargs):
        with pytest.raises(ValueError):
            CascadeConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"dimensions": 0},
            {"memory_size": 0},
            {"context_feature_dim": -1},
            {"dimensions": 20, "base_state_dim": 18},
        ],
    )
    def test_agent(self, kwargs):
        with pytest.raises(ValueError):
            AgentConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [{"param_min": 0.6, "param_max": 0.4}, {"param_max": 1.5}, {"param_min": -0.1}],
    )
    def test_adaptation(self, kwargs):
        with pytest.raises(ValueError):
            AdaptationConfig(**kwargs)


class TestLoading:
    """JSON and environment loading."""

    def test_json_round_trip(self, tmp_path):
        config = SyntrometryConfig(
            cascade=CascadeConfig(levels=3, stage_increment=1),
            agent=AgentConfig(memory_size=30, seed=5),
        )
        path = tmp_path / "nested" / "config.json"
        config.to_json(path)

        loaded = SyntrometryConfig.from_json(path)

        assert loaded == config

    def test_partial_json_uses_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"agent": {"embedding_dim": 32}}))

        config = SyntrometryConfig.from_json(path)

        assert config.agent.embedding_dim == 32
        assert config.cascade.levels == 4

    def test_missing_json(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SyntrometryConfig.from_json(tmp_path / "absent.json")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SYNTROMETRY_CASCADE_LEVELS", "5")
        monkeypatch.setenv("SYNTROMETRY_CASCADE_PERTURBATION_MODE", "discrete")
        monkeypatch.setenv("SYNTROMETRY_AGENT_MEMORY_SIZE", "30")
        monkeypatch.setenv("SYNTROMETRY_AGENT_SEED", "42")
        monkeypatch.setenv("SYNTROMETRY_ADAPTATION_LEARNING_RATE", "0.01")

        config = SyntrometryConfig.from_env()

        assert config.cascade.levels == 5
        assert config.cascade.perturbation_mode == "discrete"
        assert config.agent.memory_size == 30
        assert config.agent.seed == 42
        assert config.adaptation.learning_rate == 0.01

    def test_unparseable_env_value_is_ignored(self, monkeypatch):
        monkeypatch.setenv("SYNTROMETRY_CASCADE_LEVELS", "many")
        assert SyntrometryConfig.from_env().cascade.levels == 4
