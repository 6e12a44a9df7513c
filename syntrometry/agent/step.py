"""One cognitive step of the syntrometric agent.

Each tick runs, in order:

    1. normalise the raw state and take the D core dimensions
    2. modulate and perturb the core (Enyphansyntrix)
    3. embed [perturbed core, context features, self-state]
    4. project the embedding to the cascade width
    5. reduce through the cascade (Strukturkondensation)
    6. score coherence of the last level and affinities between levels
    7. estimate trust against memory
    8. adapt integration / reflexivity
    9. blend the embedding into the self-state
   10. remember the embedding

Everything is computed into locals first and committed in one place, so a
failure anywhere in 3-10 leaves memory, parameters and self-state exactly as
they were. The caller then gets the previous step's result flagged as
degraded.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np
from pydantic import ValidationError

from syntrometry.agent.belief import BeliefModel, TorchBeliefModel
from syntrometry.agent.memory import MemoryStore, utc_now
from syntrometry.agent.parameters import ControlParameters, ParameterAdapter
from syntrometry.agent.persistence import (
    AgentStateRecord,
    DecodedState,
    LoadReport,
    decode_state,
    encode_state,
)
from syntrometry.agent.schemas import (
    AnomalyKind,
    Diagnostic,
    StepContext,
    StepMetrics,
    StepResult,
)
from syntrometry.agent.self_state import SelfStateTracker
from syntrometry.agent.trust import TrustEstimator
from syntrometry.cascade import (
    AffinityScorer,
    CascadeProcessor,
    CoherenceScorer,
    PerturbationOperator,
)
from syntrometry.config import SyntrometryConfig
from syntrometry.utils.vectors import EPSILON, as_vector, clamp, fit_length, zeros

logger = logging.getLogger(__name__)

# Maximum diagnostics retained across steps
DIAGNOSTIC_HISTORY = 50

# Variance and mean feature bounds
MAX_CASCADE_VARIANCE = 10.0
MAX_CASCADE_MEAN = 10.0

# Input modulation and perturbation-scale coefficients
MODULATION_GAIN = 0.1
BASE_PERTURBATION = 0.005
COHERENCE_PERTURBATION_GAIN = 0.02
REFLEXIVITY_PERTURBATION_GAIN = 0.02
MIN_PERTURBATION = 0.001
MAX_PERTURBATION = 0.05

EmbedFn = Callable[[np.ndarray], Any]


class UpstreamFailure(RuntimeError):
    """The embedding collaborator raised or returned an unusable vector."""


@dataclass
class _StepOutcome:
    """Values computed by a step, not yet committed."""

    embedding: np.ndarray
    history: list[np.ndarray]
    coherence: float
    affinities: list[float]
    variance: float
    mean: float
    trust: float
    params: ControlParameters
    self_state: np.ndarray
    self_state_reset: bool


class SyntrometricAgent:
    """Owns the persistent state and runs one step per tick.

    Persistent across steps: memory, control parameters, self-state and the
    previous step's coherence, variance and trust. Everything else is
    rebuilt inside step().

    Example:
        agent = SyntrometricAgent(SyntrometryConfig())
        result = agent.step(raw_state, context_features=[0.3, 0.1])
        print(result.summary())
    """

    def __init__(
        self,
        config: Optional[SyntrometryConfig] = None,
        belief_model: Optional[BeliefModel] = None,
    ):
        """Initialize a fresh agent.

        Args:
            config: Dimensions and tunable constants
            belief_model: Embedding collaborator; a TorchBeliefModel is built
                when omitted
        """
        self.config = config or SyntrometryConfig()
        agent_cfg = self.config.agent
        cascade_cfg = self.config.cascade

        if belief_model is None:
            belief_model = TorchBeliefModel(
                input_dim=agent_cfg.belief_input_dim,
                embedding_dim=agent_cfg.embedding_dim,
                cascade_dim=agent_cfg.dimensions,
                hidden_dim=agent_cfg.hidden_dim,
                seed=agent_cfg.seed,
            )
        self.belief_model = belief_model

        self.affinity = AffinityScorer()
        self.coherence = CoherenceScorer(scale=cascade_cfg.coherence_scale)
        self.cascade = CascadeProcessor(
            levels=cascade_cfg.levels,
            stage=cascade_cfg.stage,
            rule=cascade_cfg.rule,
            stage_increment=cascade_cfg.stage_increment,
        )
        self.trust_estimator = TrustEstimator()
        self.adapter = ParameterAdapter(self.config.adaptation)
        self.diagnostics: deque[Diagnostic] = deque(maxlen=DIAGNOSTIC_HISTORY)
        self._in_step = False
        self._init_state()

    def _init_state(self) -> None:
        """Fresh persistent state and caches."""
        agent_cfg = self.config.agent
        self.rng = np.random.default_rng(agent_cfg.seed)
        self.perturbation = PerturbationOperator(
            dimensions=agent_cfg.dimensions,
            mode=self.config.cascade.perturbation_mode,
            metron_tau=self.config.cascade.metron_tau,
            rng=self.rng,
        )
        self.memory = MemoryStore(
            capacity=agent_cfg.memory_size, embedding_dim=agent_cfg.embedding_dim
        )
        self.params = ControlParameters.random(self.rng)
        self.self_state = SelfStateTracker(
            dimensions=agent_cfg.embedding_dim,
            decay=agent_cfg.self_state_decay,
            base_learn_rate=agent_cfg.self_state_learn_rate,
            rng=self.rng,
        )
        self.last_coherence = 0.0
        self.last_variance = 0.0
        self.last_trust = 1.0
        self.tick = 0
        self._last_result: Optional[StepResult] = None
        self._latest_embedding: Optional[np.ndarray] = None

    def reset(self) -> None:
        """Discard all persistent state and start fresh (model weights are kept)."""
        self._guard("reset")
        self._init_state()
        self.diagnostics.clear()
        logger.info("Agent state reset")

    def latest_embedding(self) -> Optional[np.ndarray]:
        """Copy of the most recent belief embedding, if any step succeeded."""
        if self._latest_embedding is None:
            return None
        return self._latest_embedding.copy()

    @property
    def last_result(self) -> Optional[StepResult]:
        return self._last_result

    # ------------------------------------------------------------------
    # Step
    # ------------------------------------------------------------------

    def step(
        self,
        raw_state: Any,
        context_features: Any = None,
        context: StepContext | dict | None = None,
        embed: Optional[EmbedFn] = None,
        project: Optional[EmbedFn] = None,
    ) -> StepResult:
        """Run one tick.

        Args:
            raw_state: Vector of width base_state_dim (padded or truncated)
            context_features: Vector of width context_feature_dim
            context: Event label and reward of this tick
            embed: Overrides belief_model.embed for this call
            project: Overrides belief_model.project for this call

        Returns:
            StepResult; `degraded` is set when the previous result was reused

        Raises:
            RuntimeError: If called while another step is running.
        """
        self._guard("step")
        self._in_step = True
        try:
            return self._run(raw_state, context_features, context, embed, project)
        finally:
            self._in_step = False

    def _guard(self, operation: str) -> None:
        if self._in_step:
            raise RuntimeError(f"Cannot {operation} while a step is in progress")

    def _note(
        self, diagnostics: list[Diagnostic], kind: AnomalyKind, component: str, message: str
    ) -> None:
        diagnostic = Diagnostic(kind=kind, component=component, message=message, tick=self.tick)
        diagnostics.append(diagnostic)
        self.diagnostics.append(diagnostic)

    def _run(
        self,
        raw_state: Any,
        context_features: Any,
        context: StepContext | dict | None,
        embed: Optional[EmbedFn],
        project: Optional[EmbedFn],
    ) -> StepResult:
        self.tick += 1
        diagnostics: list[Diagnostic] = []
        step_context = self._read_context(context, diagnostics)
        core = self._read_core_state(raw_state, diagnostics)
        features = self._read_context_features(context_features, diagnostics)

        try:
            outcome = self._compute(
                core,
                features,
                embed or self.belief_model.embed,
                project or self.belief_model.project,
            )
        except Exception as e:
            logger.error(f"Step {self.tick} failed, reusing previous metrics: {e}")
            self._note(diagnostics, AnomalyKind.UPSTREAM_FAILURE, "step", str(e))
            return self._degraded_result(step_context, diagnostics)

        return self._commit(outcome, step_context, diagnostics)

    def _read_context(
        self, context: StepContext | dict | None, diagnostics: list[Diagnostic]
    ) -> StepContext:
        if context is None:
            return StepContext()
        if isinstance(context, StepContext):
            return context
        try:
            return StepContext.model_validate(context)
        except ValidationError as e:
            self._note(diagnostics, AnomalyKind.INVALID_INPUT, "context", str(e))
            return StepContext()

    def _read_core_state(self, raw_state: Any, diagnostics: list[Diagnostic]) -> np.ndarray:
        agent_cfg = self.config.agent
        vector = as_vector(raw_state)
        if vector is None:
            self._note(
                diagnostics,
                AnomalyKind.INVALID_INPUT,
                "raw_state",
                "raw state missing or non-finite, using zeros",
            )
            vector = zeros(agent_cfg.base_state_dim)
        elif vector.shape[0] != agent_cfg.base_state_dim:
            logger.debug(
                f"Raw state width {vector.shape[0]} fitted to {agent_cfg.base_state_dim}"
            )
        state = fit_length(vector, agent_cfg.base_state_dim)
        return state[: agent_cfg.dimensions]

    def _read_context_features(
        self, context_features: Any, diagnostics: list[Diagnostic]
    ) -> np.ndarray:
        width = self.config.agent.context_feature_dim
        if context_features is None:
            return zeros(width)
        vector = as_vector(context_features)
        if vector is None:
            self._note(
                diagnostics,
                AnomalyKind.INVALID_INPUT,
                "context_features",
                "context features non-finite, using zeros",
            )
            return zeros(width)
        return fit_length(vector, width)

    def _perturb(self, core: np.ndarray) -> np.ndarray:
        reflexivity = self.params.reflexivity
        modulation = self.last_coherence * (reflexivity * 2.0 - 1.0)
        modulated = np.clip(core + modulation * MODULATION_GAIN, -1.0, 1.0)
        scale = clamp(
            BASE_PERTURBATION
            + (1.0 - self.last_coherence) * COHERENCE_PERTURBATION_GAIN
            + reflexivity * REFLEXIVITY_PERTURBATION_GAIN,
            MIN_PERTURBATION,
            MAX_PERTURBATION,
        )
        return self.perturbation.apply(modulated, scale)

    def _compute(
        self,
        core: np.ndarray,
        features: np.ndarray,
        embed: EmbedFn,
        project: EmbedFn,
    ) -> _StepOutcome:
        embedding_dim = self.config.agent.embedding_dim
        perturbed = self._perturb(core)

        self_input = self.self_state.state
        if self_input.shape != (embedding_dim,):
            # Reset happens at commit; embed sees the zero state it will become
            self_input = zeros(embedding_dim)
        belief_input = np.concatenate([perturbed, features, self_input])
        raw_embedding = embed(belief_input)
        if raw_embedding is None:
            raise UpstreamFailure("embedding function returned nothing")
        embedding = as_vector(raw_embedding)
        if embedding is None or embedding.shape[0] != embedding_dim:
            got = "non-finite values" if embedding is None else f"width {embedding.shape[0]}"
            raise UpstreamFailure(f"embedding has {got}, expected width {embedding_dim}")

        raw_cascade_input = project(embedding.copy())
        cascade_input = as_vector(raw_cascade_input)
        if cascade_input is None or cascade_input.size == 0:
            raise UpstreamFailure("projection returned an empty or non-finite vector")

        history = self.cascade.process(cascade_input)
        last_level = history[-1]
        coherence = self.coherence.compute(last_level)
        affinities = self.affinity.adjacent(history)

        variance = 0.0
        mean = 0.0
        if last_level.size > 0:
            mean = float(last_level.mean())
        if last_level.size > 1:
            variance = float(last_level.var())
        variance = clamp(variance, 0.0, MAX_CASCADE_VARIANCE)
        mean = clamp(mean, -MAX_CASCADE_MEAN, MAX_CASCADE_MEAN)

        trust = self.trust_estimator.compute(embedding, self.memory)

        params_before = ControlParameters(self.params.integration, self.params.reflexivity)
        new_params = self.adapter.step(
            params_before,
            trust=trust,
            rih=coherence,
            rih_delta=coherence - self.last_coherence,
            variance=variance,
            variance_delta=variance - self.last_variance,
        )

        reset = self.self_state.state.shape != embedding.shape
        new_self_state = self.self_state.compute(embedding, trust, params_before.integration)

        return _StepOutcome(
            embedding=embedding,
            history=history,
            coherence=coherence,
            affinities=affinities,
            variance=variance,
            mean=mean,
            trust=trust,
            params=new_params,
            self_state=new_self_state,
            self_state_reset=reset,
        )

    def _commit(
        self, outcome: _StepOutcome, context: StepContext, diagnostics: list[Diagnostic]
    ) -> StepResult:
        if outcome.self_state_reset:
            self.self_state.resets += 1
            self.self_state.dimensions = outcome.embedding.shape[0]
            self._note(
                diagnostics,
                AnomalyKind.DIMENSION_MISMATCH,
                "self_state",
                f"self-state reset to zeros of width {outcome.embedding.shape[0]}",
            )
        last_level = outcome.history[-1]
        if last_level.size > 1 and outcome.variance < EPSILON:
            self._note(
                diagnostics,
                AnomalyKind.DEGENERATE_NUMERIC,
                "coherence",
                "last cascade level has no dispersion",
            )

        self.self_state.set_state(outcome.self_state)
        self.memory.add(outcome.embedding, timestamp=utc_now())
        self.params = outcome.params
        self.last_coherence = outcome.coherence
        self.last_variance = outcome.variance
        self.last_trust = outcome.trust
        self._latest_embedding = outcome.embedding.copy()

        affinities = outcome.affinities
        metrics = StepMetrics(
            coherence=outcome.coherence,
            affinities=affinities,
            avg_affinity=sum(affinities) / len(affinities) if affinities else 0.0,
            trust=outcome.trust,
            cascade_variance=outcome.variance,
            cascade_mean=outcome.mean,
            embedding_norm=float(np.linalg.norm(outcome.embedding)),
            self_state_norm=self.self_state.norm,
        )
        result = StepResult(
            tick=self.tick,
            cascade_history=[level.tolist() for level in outcome.history],
            metrics=metrics,
            integration=self.params.integration,
            reflexivity=self.params.reflexivity,
            context=context,
            diagnostics=diagnostics,
        )
        self._last_result = result
        logger.debug(f"Step {self.tick}: {result.summary()}")
        return result

    def _degraded_result(
        self, context: StepContext, diagnostics: list[Diagnostic]
    ) -> StepResult:
        if self._last_result is not None:
            return self._last_result.model_copy(
                deep=True,
                update={
                    "tick": self.tick,
                    "context": context,
                    "degraded": True,
                    "diagnostics": diagnostics,
                },
            )
        return StepResult(
            tick=self.tick,
            metrics=StepMetrics(
                coherence=self.last_coherence,
                trust=self.last_trust,
                cascade_variance=self.last_variance,
                self_state_norm=self.self_state.norm,
            ),
            integration=self.params.integration,
            reflexivity=self.params.reflexivity,
            context=context,
            degraded=True,
            diagnostics=diagnostics,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def get_state(self) -> AgentStateRecord:
        """Snapshot of the persistent state, including model weights."""
        self._guard("save state")
        return encode_state(self)

    def load_state(self, data: AgentStateRecord | dict) -> LoadReport:
        """Restore persistent state from a record or its JSON dictionary.

        Fields that fail validation fall back to fresh defaults; the load
        itself never aborts.
        """
        self._guard("load state")
        if isinstance(data, AgentStateRecord):
            data = data.to_json_dict()
        decoded = decode_state(
            data,
            embedding_dim=self.config.agent.embedding_dim,
            param_min=self.config.adaptation.param_min,
            param_max=self.config.adaptation.param_max,
        )
        report = decoded.report

        if not report.version_ok:
            self._init_state()
        else:
            self._apply_decoded(decoded)

        for diagnostic in report.diagnostics:
            self.diagnostics.append(diagnostic)
        logger.info(
            f"Loaded agent state v{report.version}: {len(self.memory)} memories, "
            f"{len(report.fallbacks)} fields defaulted"
        )
        return report

    def _apply_decoded(self, decoded: DecodedState) -> None:
        agent_cfg = self.config.agent
        report = decoded.report

        self.memory.clear()
        for entry in decoded.memory:
            self.memory.add(entry.embedding, timestamp=entry.timestamp)
        # Entries beyond capacity were evicted by the store
        report.memory_loaded = len(self.memory)

        self.last_coherence = 0.0 if decoded.last_coherence is None else decoded.last_coherence
        self.last_variance = 0.0 if decoded.last_variance is None else decoded.last_variance
        self.last_trust = 1.0 if decoded.last_trust is None else decoded.last_trust
        fresh = ControlParameters.random(self.rng)
        self.params = ControlParameters(
            integration=fresh.integration if decoded.integration is None else decoded.integration,
            reflexivity=fresh.reflexivity if decoded.reflexivity is None else decoded.reflexivity,
        )

        if decoded.self_state is None:
            self.self_state.reset(agent_cfg.embedding_dim)
        else:
            self.self_state.set_state(decoded.self_state)

        if decoded.weights is not None:
            try:
                self.belief_model.set_weights(decoded.weights)
            except (ValueError, TypeError, RuntimeError, AttributeError) as e:
                logger.warning(f"Keeping current model weights: {e}")
                report.fallbacks.append("externalModelWeights")
                report.diagnostics.append(
                    Diagnostic(
                        kind=AnomalyKind.DIMENSION_MISMATCH,
                        component="externalModelWeights",
                        message=str(e),
                    )
                )

        self._last_result = None
        self._latest_embedding = None
