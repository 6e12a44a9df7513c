"""Heuristic self-tuning of the integration and reflexivity parameters.

No gradients are involved. Each step an ordered list of rules inspects the
step's scores and accumulates two deltas:

    performance group (first match wins)
      1. high or rising RIH with trust   -> integration up, reflexivity down
      2. low RIH, low trust, or falling  -> integration down, reflexivity up
    variance group (first match wins)
      3. high or rising cascade variance -> damp with integration, explore a little
      4. low, non-rising variance        -> reflexivity up
    always
      5. mean reversion of both parameters toward 0.5

The summed deltas are scaled by the learning rate, added, and the results
clamped to [param_min, param_max]. The order and thresholds match the
simulation's behaviour exactly; swapping the rule list changes the policy
without touching the step orchestration.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from syntrometry.config import AdaptationConfig
from syntrometry.utils.vectors import clamp

logger = logging.getLogger(__name__)

NEUTRAL_PARAM = 0.5


@dataclass
class ControlParameters:
    """The two self-tuned control parameters.

    Attributes:
        integration: Reliance on new input over internal state
        reflexivity: Amount of self-perturbation / exploration
    """

    integration: float = NEUTRAL_PARAM
    reflexivity: float = NEUTRAL_PARAM

    @classmethod
    def random(cls, rng: Optional[np.random.Generator] = None) -> "ControlParameters":
        """Draw both parameters uniformly from [0.25, 0.75]."""
        rng = rng if rng is not None else np.random.default_rng()
        return cls(
            integration=float(rng.uniform(0.25, 0.75)),
            reflexivity=float(rng.uniform(0.25, 0.75)),
        )

    def clamped(self, low: float, high: float) -> "ControlParameters":
        return ControlParameters(
            integration=clamp(self.integration, low, high),
            reflexivity=clamp(self.reflexivity, low, high),
        )

    def to_dict(self) -> dict:
        return {"integration": self.integration, "reflexivity": self.reflexivity}


@dataclass(frozen=True)
class AdaptationSignals:
    """Scores a rule may inspect, plus the parameters before the update."""

    trust: float
    rih: float
    rih_delta: float
    variance: float
    variance_delta: float
    params: ControlParameters


@dataclass(frozen=True)
class ParameterRule:
    """One entry of the adaptation policy.

    Attributes:
        name: Identifier used in debug logging
        predicate: Whether the rule fires for the given signals
        delta: (d_integration, d_reflexivity) contributed when it fires
        group: Rules sharing a group are exclusive; the first match wins.
            None means the rule is evaluated independently.
    """

    name: str
    predicate: Callable[[AdaptationSignals], bool]
    delta: Callable[[AdaptationSignals], tuple[float, float]]
    group: Optional[str] = None


def default_rules(config: AdaptationConfig) -> list[ParameterRule]:
    """The standard policy, in evaluation order."""
    c = config

    def high_performance(s: AdaptationSignals) -> bool:
        return (s.rih > c.high_rih and s.trust > c.high_trust) or (
            s.rih_delta > c.rising_rih and s.trust > c.rising_trust
        )

    def low_performance(s: AdaptationSignals) -> bool:
        return (
            s.rih < c.low_rih
            or s.trust < c.low_trust
            or (s.rih_delta < c.falling_rih and s.trust < c.falling_trust)
        )

    def high_variance(s: AdaptationSignals) -> bool:
        return (
            s.variance > c.high_variance_threshold
            or s.variance_delta > c.increasing_variance_threshold
        )

    def low_variance(s: AdaptationSignals) -> bool:
        return s.variance < c.low_variance_threshold and s.variance_delta <= 0

    def damp_variance(s: AdaptationSignals) -> tuple[float, float]:
        return (
            0.6 * clamp(s.variance - c.high_variance_threshold, 0.0, 1.0),
            0.4 * clamp(s.variance_delta, 0.0, 0.1),
        )

    def mean_reversion(s: AdaptationSignals) -> tuple[float, float]:
        return (
            (NEUTRAL_PARAM - s.params.integration) * c.decay,
            (NEUTRAL_PARAM - s.params.reflexivity) * c.decay,
        )

    return [
        ParameterRule("exploit_stability", high_performance, lambda s: (1.0, -1.0), "performance"),
        ParameterRule("explore_adapt", low_performance, lambda s: (-1.0, 1.2), "performance"),
        ParameterRule("damp_variance", high_variance, damp_variance, "variance"),
        ParameterRule("unstick_low_variance", low_variance, lambda s: (0.0, 0.3), "variance"),
        ParameterRule("mean_reversion", lambda s: True, mean_reversion),
    ]


def _finite_or(value: float, default: float, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        value = math.nan
    if math.isfinite(value):
        return value
    logger.warning(f"Non-finite adaptation signal {name}={value}, using {default}")
    return default


class ParameterAdapter:
    """Evaluates the rule list once per step.

    Attributes:
        config: Thresholds, learning rate and bounds
        rules: Ordered policy; defaults to default_rules(config)
    """

    def __init__(
        self,
        config: Optional[AdaptationConfig] = None,
        rules: Optional[list[ParameterRule]] = None,
    ):
        self.config = config or AdaptationConfig()
        self.rules = rules if rules is not None else default_rules(self.config)

    def step(
        self,
        params: ControlParameters,
        trust: float,
        rih: float,
        rih_delta: float,
        variance: float,
        variance_delta: float,
    ) -> ControlParameters:
        """Compute the next parameters.

        Args:
            params: Parameters before the update (not modified)
            trust: Trust score of this step
            rih: Coherence score of this step
            rih_delta: Change in coherence since the previous step
            variance: Variance feature of the last cascade level
            variance_delta: Change in variance since the previous step

        Returns:
            New ControlParameters within [param_min, param_max]
        """
        c = self.config
        current = ControlParameters(
            integration=_finite_or(params.integration, NEUTRAL_PARAM, "integration"),
            reflexivity=_finite_or(params.reflexivity, NEUTRAL_PARAM, "reflexivity"),
        )
        signals = AdaptationSignals(
            trust=_finite_or(trust, 0.5, "trust"),
            rih=_finite_or(rih, 0.0, "rih"),
            rih_delta=_finite_or(rih_delta, 0.0, "rih_delta"),
            variance=_finite_or(variance, 0.0, "variance"),
            variance_delta=_finite_or(variance_delta, 0.0, "variance_delta"),
            params=current,
        )

        d_integration = 0.0
        d_reflexivity = 0.0
        fired_groups: set[str] = set()
        for rule in self.rules:
            if rule.group is not None and rule.group in fired_groups:
                continue
            if not rule.predicate(signals):
                continue
            di, dr = rule.delta(signals)
            d_integration += di
            d_reflexivity += dr
            if rule.group is not None:
                fired_groups.add(rule.group)
            logger.debug(f"Adaptation rule {rule.name} fired: dI={di:+.4f} dR={dr:+.4f}")

        updated = ControlParameters(
            integration=current.integration + d_integration * c.learning_rate,
            reflexivity=current.reflexivity + d_reflexivity * c.learning_rate,
        )
        return updated.clamped(c.param_min, c.param_max)
