"""Tests for the torch-backed default belief model."""

import numpy as np
import pytest
import torch

from syntrometry.agent import BeliefModel, TorchBeliefModel

INPUT_DIM = 22
EMBEDDING_DIM = 8
CASCADE_DIM = 12


def _model(seed=1, hidden_dim=8):
    return TorchBeliefModel(
        input_dim=INPUT_DIM,
        embedding_dim=EMBEDDING_DIM,
        cascade_dim=CASCADE_DIM,
        hidden_dim=hidden_dim,
        seed=seed,
    )


class TestTorchBeliefModel:
    """Tests for embed() and project()."""

    def test_satisfies_protocol(self):
        assert isinstance(_model(), BeliefModel)

    def test_embed_shape_and_range(self):
        embedding = _model().embed(np.linspace(-1.0, 1.0, INPUT_DIM))
        assert embedding.shape == (EMBEDDING_DIM,)
        assert embedding.dtype == np.float64
        assert np.all(np.abs(embedding) < 1.0)

    def test_project_shape_and_range(self):
        projected = _model().project(np.full(EMBEDDING_DIM, 0.3))
        assert projected.shape == (CASCADE_DIM,)
        assert np.all(np.abs(projected) < 1.0)

    def test_inference_is_deterministic(self):
        """Dropout is inactive, so repeated calls agree."""
        model = _model()
        x = np.linspace(-1.0, 1.0, INPUT_DIM)
        assert np.array_equal(model.embed(x), model.embed(x))

    def test_seeded_models_agree(self):
        x = np.linspace(-1.0, 1.0, INPUT_DIM)
        assert np.array_equal(_model(seed=4).embed(x), _model(seed=4).embed(x))

    def test_seeding_leaves_global_rng_alone(self):
        torch.manual_seed(0)
        expected = torch.rand(3)
        torch.manual_seed(0)
        _model(seed=123)
        assert torch.equal(torch.rand(3), expected)

    def test_wrong_width_raises(self):
        with pytest.raises(ValueError):
            _model().embed(np.zeros(INPUT_DIM + 1))
        with pytest.raises(ValueError):
            _model().project(np.zeros(EMBEDDING_DIM - 1))


class TestWeights:
    """Tests for weight export and import."""

    def test_round_trip(self):
        source, target = _model(seed=1), _model(seed=2)
        x = np.linspace(-1.0, 1.0, INPUT_DIM)
        assert not np.allclose(source.embed(x), target.embed(x))

        target.set_weights(source.get_weights())

        assert np.allclose(source.embed(x), target.embed(x))
        e = source.embed(x)
        assert np.allclose(source.project(e), target.project(e))

    def test_weights_are_plain_lists(self):
        weights = _model().get_weights()
        assert set(weights) == {"belief_network", "cascade_input_layer"}
        for tensors in weights.values():
            assert all(isinstance(v, list) for v in tensors.values())

    def test_shape_mismatch_leaves_model_untouched(self):
        model = _model(seed=1)
        x = np.linspace(-1.0, 1.0, INPUT_DIM)
        before = model.embed(x)

        with pytest.raises(ValueError):
            model.set_weights(_model(seed=2, hidden_dim=4).get_weights())

        assert np.array_equal(model.embed(x), before)

    def test_missing_network_raises(self):
        weights = _model().get_weights()
        del weights["cascade_input_layer"]
        with pytest.raises(ValueError):
            _model().set_weights(weights)
