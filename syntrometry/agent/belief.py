"""Belief model: the embedding collaborator of a step.

The agent only needs two transforms:

    embed(x)   [perturbed core, context features, self-state] -> belief embedding (E)
    project(e) belief embedding -> cascade input (D)

Any object with these methods (and weight export/import for persistence)
can be plugged in. TorchBeliefModel is the default: small dense layers run
in eval mode without gradients. Nothing here is trained.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np
import torch
from torch import nn

logger = logging.getLogger(__name__)

DROPOUT_RATE = 0.1


@runtime_checkable
class BeliefModel(Protocol):
    """Embedding collaborator consumed by SyntrometricAgent."""

    def embed(self, features: np.ndarray) -> np.ndarray: ...

    def project(self, embedding: np.ndarray) -> np.ndarray: ...

    def get_weights(self) -> Optional[dict[str, Any]]: ...

    def set_weights(self, weights: dict[str, Any]) -> None: ...


class BeliefNetwork(nn.Module):
    """Dense feed-forward transform to the belief embedding.

    Linear(input, 2H) -> ReLU -> Dropout -> Linear(2H, E) -> Tanh
    """

    def __init__(self, input_dim: int, hidden_dim: int, embedding_dim: int):
        super().__init__()
        self.layers = nn.Sequential(
            nn.Linear(input_dim, hidden_dim * 2),
            nn.ReLU(),
            nn.Dropout(DROPOUT_RATE),
            nn.Linear(hidden_dim * 2, embedding_dim),
            nn.Tanh(),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.layers(x)


class CascadeInputLayer(nn.Module):
    """Projects a belief embedding to the cascade input width."""

    def __init__(self, embedding_dim: int, cascade_dim: int):
        super().__init__()
        self.linear = nn.Linear(embedding_dim, cascade_dim)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.tanh(self.linear(x))


class TorchBeliefModel:
    """Default BeliefModel backed by torch modules.

    Attributes:
        input_dim: Width of the embed() input (D + F + E)
        embedding_dim: Width of the belief embedding (E)
        cascade_dim: Width of the projection (D)
    """

    def __init__(
        self,
        input_dim: int,
        embedding_dim: int,
        cascade_dim: int,
        hidden_dim: int = 64,
        seed: Optional[int] = None,
    ):
        """Build both networks.

        Args:
            input_dim: Width of the embed() input
            embedding_dim: Belief embedding width
            cascade_dim: Projection width
            hidden_dim: Hidden layer is 2 * hidden_dim wide
            seed: Seeds weight initialisation for reproducible runs
        """
        self.input_dim = input_dim
        self.embedding_dim = embedding_dim
        self.cascade_dim = cascade_dim

        with torch.random.fork_rng(devices=[]):
            if seed is not None:
                torch.manual_seed(seed)
            self.belief_network = BeliefNetwork(input_dim, hidden_dim, embedding_dim)
            self.cascade_input_layer = CascadeInputLayer(embedding_dim, cascade_dim)

        # Inference only: dropout stays inactive
        self.belief_network.eval()
        self.cascade_input_layer.eval()

    def _run(self, module: nn.Module, values: np.ndarray, width: int, name: str) -> np.ndarray:
        vector = np.asarray(values, dtype=np.float32).reshape(-1)
        if vector.shape[0] != width:
            raise ValueError(f"{name} expects width {width}, got {vector.shape[0]}")
        with torch.no_grad():
            out = module(torch.from_numpy(vector).unsqueeze(0))
        return out.squeeze(0).numpy().astype(np.float64)

    def embed(self, features: np.ndarray) -> np.ndarray:
        """Belief embedding of width E."""
        return self._run(self.belief_network, features, self.input_dim, "embed")

    def project(self, embedding: np.ndarray) -> np.ndarray:
        """Cascade input of width D."""
        return self._run(self.cascade_input_layer, embedding, self.embedding_dim, "project")

    def get_weights(self) -> dict[str, Any]:
        """Serialize both networks' parameters as nested lists."""
        return {
            "belief_network": {
                k: v.tolist() for k, v in self.belief_network.state_dict().items()
            },
            "cascade_input_layer": {
                k: v.tolist() for k, v in self.cascade_input_layer.state_dict().items()
            },
        }

    def set_weights(self, weights: dict[str, Any]) -> None:
        """Load parameters produced by get_weights().

        Raises:
            ValueError: If a network is missing or any tensor has the wrong shape.
        """
        modules = (
            ("belief_network", self.belief_network),
            ("cascade_input_layer", self.cascade_input_layer),
        )
        # Validate everything before touching either network
        staged = []
        for name, module in modules:
            data = weights.get(name) if isinstance(weights, dict) else None
            if not isinstance(data, dict):
                raise ValueError(f"Missing weights for {name}")
            expected = module.state_dict()
            if set(data) != set(expected):
                raise ValueError(
                    f"Weight keys for {name} do not match: {sorted(data)} vs {sorted(expected)}"
                )
            loaded = {}
            for key, reference in expected.items():
                tensor = torch.tensor(data[key], dtype=reference.dtype)
                if tensor.shape != reference.shape:
                    raise ValueError(
                        f"{name}.{key} has shape {tuple(tensor.shape)}, "
                        f"expected {tuple(reference.shape)}"
                    )
                loaded[key] = tensor
            staged.append((module, loaded))

        for module, loaded in staged:
            module.load_state_dict(loaded)
        logger.debug("Belief model weights loaded")
