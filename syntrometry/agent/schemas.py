"""Pydantic schemas for step inputs, outputs and diagnostics.

- StepContext: external context handed in with each tick
- StepMetrics: scores produced by one step
- StepResult: everything a caller renders after a step
- Diagnostic: record of a recoverable anomaly
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class AnomalyKind(str, Enum):
    """Categories of recoverable anomalies."""
    INVALID_INPUT = "invalid_input"            # Wrong length, empty or NaN vector
    DEGENERATE_NUMERIC = "degenerate_numeric"  # Near-zero norm or variance
    DIMENSION_MISMATCH = "dimension_mismatch"  # Persistent field reset to default
    UPSTREAM_FAILURE = "upstream_failure"      # Embedding model raised or returned junk


class Diagnostic(BaseModel):
    """A recoverable anomaly observed during a step or a load."""
    kind: AnomalyKind
    component: str
    message: str
    tick: int = 0
    timestamp: datetime = Field(default_factory=utc_now)


class StepContext(BaseModel):
    """External context of a tick (environment event and reward)."""
    event_label: Optional[str] = None
    reward: float = 0.0


class StepMetrics(BaseModel):
    """Scores of one step."""
    coherence: float = 0.0              # RIH of the last cascade level, [0, 1]
    affinities: list[float] = Field(default_factory=list)  # Adjacent levels, [-1, 1]
    avg_affinity: float = 0.0
    trust: float = 1.0                  # [0, 1]
    cascade_variance: float = 0.0       # Variance of the last level, clamped to [0, 10]
    cascade_mean: float = 0.0
    embedding_norm: float = 0.0
    self_state_norm: float = 0.0


class StepResult(BaseModel):
    """Output of SyntrometricAgent.step()."""
    tick: int = 0
    cascade_history: list[list[float]] = Field(default_factory=list)
    metrics: StepMetrics = Field(default_factory=StepMetrics)
    integration: float = 0.5
    reflexivity: float = 0.5
    context: StepContext = Field(default_factory=StepContext)
    degraded: bool = False
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    def summary(self) -> str:
        """One-line status, e.g. 'R:0.42 A:0.97 T:0.88 CV:0.01 I:0.51 Ψ:0.47'."""
        m = self.metrics
        text = (
            f"R:{m.coherence:.2f} A:{m.avg_affinity:.2f} T:{m.trust:.2f} "
            f"CV:{m.cascade_variance:.2f} I:{self.integration:.2f} Ψ:{self.reflexivity:.2f}"
        )
        if self.degraded:
            text += " | degraded"
        return text
