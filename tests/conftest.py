"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from syntrometry.config import AgentConfig, SyntrometryConfig


class LinearBeliefModel:
    """Deterministic numpy belief model for agent tests."""

    def __init__(self, input_dim: int, embedding_dim: int, cascade_dim: int, seed: int = 0):
        rng = np.random.default_rng(seed)
        self.w_embed = rng.normal(0.0, 0.3, size=(embedding_dim, input_dim))
        self.w_project = rng.normal(0.0, 0.3, size=(cascade_dim, embedding_dim))
        self.embed_calls = 0

    def embed(self, features):
        self.embed_calls += 1
        return np.tanh(self.w_embed @ np.asarray(features, dtype=np.float64))

    def project(self, embedding):
        return np.tanh(self.w_project @ np.asarray(embedding, dtype=np.float64))

    def get_weights(self):
        return {"w_embed": self.w_embed.tolist(), "w_project": self.w_project.tolist()}

    def set_weights(self, weights):
        w_embed = np.asarray(weights["w_embed"], dtype=np.float64)
        w_project = np.asarray(weights["w_project"], dtype=np.float64)
        if w_embed.shape != self.w_embed.shape or w_project.shape != self.w_project.shape:
            raise ValueError("weight shapes do not match")
        self.w_embed = w_embed
        self.w_project = w_project


@pytest.fixture
def small_config():
    """Seeded configuration with a small embedding."""
    return SyntrometryConfig(agent=AgentConfig(embedding_dim=8, hidden_dim=8, seed=7))


@pytest.fixture
def make_belief_model():
    """Factory for LinearBeliefModel instances sized to a config."""

    def _make(config: SyntrometryConfig, seed: int = 0) -> LinearBeliefModel:
        agent_cfg = config.agent
        return LinearBeliefModel(
            input_dim=agent_cfg.belief_input_dim,
            embedding_dim=agent_cfg.embedding_dim,
            cascade_dim=agent_cfg.dimensions,
            seed=seed,
        )

    return _make


@pytest.fixture
def raw_state():
    """A raw state of the default base width (18)."""
    return np.linspace(-0.5, 0.5, 18)
