"""Configuration for the syntrometric cognitive core.

Tunable constants are grouped by the layer that reads them:

- CascadeConfig: perturbation, cascade reduction and coherence scaling
- AgentConfig: vector dimensions, memory capacity, self-state dynamics
- AdaptationConfig: thresholds and rates of the parameter rule engine

None of the defaults is derived; they are the values the simulation has
always run with.

Usage:
    config = SyntrometryConfig()
    config = SyntrometryConfig.from_json("syntrometry.json")
    config = SyntrometryConfig.from_env()

Environment variables use the SYNTROMETRY_ prefix followed by the section
and field name, e.g. SYNTROMETRY_CASCADE_LEVELS=5 or
SYNTROMETRY_AGENT_MEMORY_SIZE=30.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "SYNTROMETRY"

PERTURBATION_MODES = ("continuous", "discrete")
REDUCTION_RULES = ("pyramidal", "average")


@dataclass
class CascadeConfig:
    """Perturbation and cascade settings.

    Attributes:
        levels: Number of reductions applied after the initial level
        stage: Sliding-window size of the first reducer (at least 2)
        stage_increment: Window growth per level (0 keeps every level at `stage`)
        rule: Reduction rule, "pyramidal" or "average"
        coherence_scale: Multiplier applied to |mean|/stddev before clamping
        metron_tau: Quantization step of the discrete perturbation mode
        perturbation_mode: "continuous" (Gaussian noise) or "discrete"
    """

    levels: int = 4
    stage: int = 2
    stage_increment: int = 0
    rule: str = "pyramidal"
    coherence_scale: float = 0.5
    metron_tau: float = 0.1
    perturbation_mode: str = "continuous"

    def __post_init__(self) -> None:
        if self.levels < 0:
            raise ValueError(f"levels must be >= 0, got {self.levels}")
        if self.stage < 2:
            raise ValueError(f"stage must be >= 2, got {self.stage}")
        if self.stage_increment < 0:
            raise ValueError(f"stage_increment must be >= 0, got {self.stage_increment}")
        if self.rule not in REDUCTION_RULES:
            raise ValueError(f"rule must be one of {REDUCTION_RULES}, got {self.rule!r}")
        if self.metron_tau <= 0:
            raise ValueError(f"metron_tau must be positive, got {self.metron_tau}")
        if self.perturbation_mode not in PERTURBATION_MODES:
            raise ValueError(
                f"perturbation_mode must be one of {PERTURBATION_MODES}, "
                f"got {self.perturbation_mode!r}"
            )


@dataclass
class AgentConfig:
    """Dimensions and persistent-state dynamics of the agent.

    Attributes:
        dimensions: Core state width D, also the cascade input width
        base_state_dim: Width of the raw state handed in each tick
        context_feature_dim: Width F of the context feature vector
        embedding_dim: Belief embedding width E
        hidden_dim: Width of the belief network's hidden layer is 2 * hidden_dim
        memory_size: Capacity N of the embedding memory
        self_state_decay: Multiplier applied to the self-state each step
        self_state_learn_rate: Base rate at which embeddings enter the self-state
        seed: Seed for parameter/self-state initialisation and perturbation noise
    """

    dimensions: int = 12
    base_state_dim: int = 18
    context_feature_dim: int = 2
    embedding_dim: int = 64
    hidden_dim: int = 64
    memory_size: int = 15
    self_state_decay: float = 0.98
    self_state_learn_rate: float = 0.05
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("dimensions", "embedding_dim", "hidden_dim", "memory_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.context_feature_dim < 0:
            raise ValueError(
                f"context_feature_dim must be >= 0, got {self.context_feature_dim}"
            )
        if self.base_state_dim < self.dimensions:
            raise ValueError(
                f"base_state_dim ({self.base_state_dim}) must be >= "
                f"dimensions ({self.dimensions})"
            )

    @property
    def belief_input_dim(self) -> int:
        """Width of [perturbed core, context features, self-state]."""
        return self.dimensions + self.context_feature_dim + self.embedding_dim


@dataclass
class AdaptationConfig:
    """Thresholds and rates of the integration/reflexivity rule engine."""

    learning_rate: float = 0.006
    decay: float = 0.03
    high_rih: float = 0.7
    high_trust: float = 0.7
    rising_rih: float = 0.02
    rising_trust: float = 0.6
    low_rih: float = 0.3
    low_trust: float = 0.4
    falling_rih: float = -0.03
    falling_trust: float = 0.7
    high_variance_threshold: float = 0.15
    increasing_variance_threshold: float = 0.01
    low_variance_threshold: float = 0.02
    param_min: float = 0.05
    param_max: float = 0.95

    def __post_init__(self) -> None:
        if not 0.0 <= self.param_min < self.param_max <= 1.0:
            raise ValueError(
                f"need 0 <= param_min < param_max <= 1, "
                f"got [{self.param_min}, {self.param_max}]"
            )


@dataclass
class SyntrometryConfig:
    """Top-level configuration combining all sections."""

    cascade: CascadeConfig = field(default_factory=CascadeConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    adaptation: AdaptationConfig = field(default_factory=AdaptationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyntrometryConfig":
        """Build from a nested dictionary; missing sections use defaults."""
        return cls(
            cascade=CascadeConfig(**data.get("cascade", {})),
            agent=AgentConfig(**data.get("agent", {})),
            adaptation=AdaptationConfig(**data.get("adaptation", {})),
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "SyntrometryConfig":
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist.
            json.JSONDecodeError: If the file is not valid JSON.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "SyntrometryConfig":
        """Load configuration from SYNTROMETRY_* environment variables."""
        return cls(
            cascade=CascadeConfig(**_load_from_env(f"{ENV_PREFIX}_CASCADE", CascadeConfig)),
            agent=AgentConfig(**_load_from_env(f"{ENV_PREFIX}_AGENT", AgentConfig)),
            adaptation=AdaptationConfig(
                **_load_from_env(f"{ENV_PREFIX}_ADAPTATION", AdaptationConfig)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cascade": asdict(self.cascade),
            "agent": asdict(self.agent),
            "adaptation": asdict(self.adaptation),
        }

    def to_json(self, path: str | Path) -> None:
        """Save configuration to a JSON file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)


def _load_from_env(prefix: str, config_class: type) -> dict[str, Any]:
    """Read typed field values for a config dataclass from the environment.

    Annotations are strings here (postponed evaluation), so the type is
    matched by name.
    """
    result: dict[str, Any] = {}
    for field_info in fields(config_class):
        env_key = f"{prefix}_{field_info.name}".upper()
        env_val = os.environ.get(env_key)
        if env_val is None:
            continue

        field_type = str(field_info.type)
        try:
            if field_type == "int":
                result[field_info.name] = int(env_val)
            elif field_type == "float":
                result[field_info.name] = float(env_val)
            elif field_type == "Optional[int]":
                result[field_info.name] = None if env_val.lower() in ("", "none") else int(env_val)
            else:
                result[field_info.name] = env_val
        except ValueError as e:
            logger.warning(f"Failed to parse {env_key}={env_val}: {e}")

    return result
