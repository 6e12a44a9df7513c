"""Stateful layer of the syntrometric core.

The cascade package scores a single level history; this package owns what
persists between ticks and runs the step:

- MemoryStore: bounded FIFO of recent belief embeddings
- TrustEstimator: familiarity of the current embedding given memory
- ParameterAdapter: rule-based tuning of integration and reflexivity
- SelfStateTracker: decaying blend of embeddings
- TorchBeliefModel: default embedding collaborator
- SyntrometricAgent: the orchestrator, one step() per tick
- StateStore: JSON save/restore of the persistent state
"""

from syntrometry.agent.belief import BeliefModel, TorchBeliefModel
from syntrometry.agent.memory import MemoryEntry, MemoryStore
from syntrometry.agent.parameters import (
    AdaptationSignals,
    ControlParameters,
    ParameterAdapter,
    ParameterRule,
    default_rules,
)
from syntrometry.agent.persistence import (
    STATE_VERSION,
    AgentStateRecord,
    LoadReport,
    SavedStateInfo,
    StateStore,
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
from syntrometry.agent.step import SyntrometricAgent, UpstreamFailure
from syntrometry.agent.trust import TrustEstimator

__all__ = [
    "BeliefModel",
    "TorchBeliefModel",
    "MemoryEntry",
    "MemoryStore",
    "AdaptationSignals",
    "ControlParameters",
    "ParameterAdapter",
    "ParameterRule",
    "default_rules",
    "STATE_VERSION",
    "AgentStateRecord",
    "LoadReport",
    "SavedStateInfo",
    "StateStore",
    "decode_state",
    "encode_state",
    "AnomalyKind",
    "Diagnostic",
    "StepContext",
    "StepMetrics",
    "StepResult",
    "SelfStateTracker",
    "SyntrometricAgent",
    "UpstreamFailure",
    "TrustEstimator",
]
