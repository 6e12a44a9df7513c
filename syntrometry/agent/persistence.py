"""Save and restore the agent's persistent state as JSON.

The on-disk document uses camelCase keys:

    {
      "version": "2.3.1",
      "savedAt": "2026-01-01T00:00:00+00:00",
      "memoryBuffer": [{"timestamp": ..., "embedding": [...]}],
      "lastCoherence": 0.42, "lastVariance": 0.01, "lastTrust": 0.9,
      "integration": 0.51, "reflexivity": 0.47,
      "selfState": [...],
      "externalModelWeights": {...} | null
    }

Loading is field-wise lenient: a field that is missing, malformed or of the
wrong width falls back to its fresh default and is reported, but the load
never aborts. A version mismatch discards the whole document.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from syntrometry.agent.memory import MemoryEntry, utc_now
from syntrometry.agent.schemas import AnomalyKind, Diagnostic
from syntrometry.utils.vectors import as_vector, clamp

if TYPE_CHECKING:
    from syntrometry.agent.step import SyntrometricAgent

logger = logging.getLogger(__name__)

STATE_VERSION = "2.3.1"

MAX_PERSISTED_VARIANCE = 10.0

PERSISTED_FIELDS = (
    "memoryBuffer",
    "lastCoherence",
    "lastVariance",
    "lastTrust",
    "integration",
    "reflexivity",
    "selfState",
    "externalModelWeights",
)


class MemoryRecord(BaseModel):
    """Serialized memory entry."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    embedding: list[float]


class AgentStateRecord(BaseModel):
    """Serialized persistent state of a SyntrometricAgent."""
    model_config = ConfigDict(populate_by_name=True)

    version: str = STATE_VERSION
    saved_at: datetime = Field(default_factory=utc_now, alias="savedAt")
    memory_buffer: list[MemoryRecord] = Field(default_factory=list, alias="memoryBuffer")
    last_coherence: float = Field(0.0, alias="lastCoherence")
    last_variance: float = Field(0.0, alias="lastVariance")
    last_trust: float = Field(1.0, alias="lastTrust")
    integration: float = 0.5
    reflexivity: float = 0.5
    self_state: list[float] = Field(default_factory=list, alias="selfState")
    external_model_weights: Optional[dict[str, Any]] = Field(
        None, alias="externalModelWeights"
    )

    def to_json_dict(self) -> dict[str, Any]:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class LoadReport(BaseModel):
    """What a load restored and what fell back to defaults."""
    version: Optional[str] = None
    version_ok: bool = True
    memory_loaded: int = 0
    memory_dropped: int = 0
    fallbacks: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def clean(self) -> bool:
        """True when every field was restored as saved."""
        return self.version_ok and not self.fallbacks and self.memory_dropped == 0


class SavedStateInfo(BaseModel):
    """Summary of a saved document, read without touching an agent."""
    version: Optional[str] = None
    saved_at: Optional[datetime] = None
    memory_size: int = 0
    last_coherence: Optional[float] = None
    last_trust: Optional[float] = None
    has_model_weights: bool = False


@dataclass
class DecodedState:
    """Validated fields of a document; None marks a field to reinitialize."""

    report: LoadReport
    memory: list[MemoryEntry] = field(default_factory=list)
    last_coherence: Optional[float] = None
    last_variance: Optional[float] = None
    last_trust: Optional[float] = None
    integration: Optional[float] = None
    reflexivity: Optional[float] = None
    self_state: Optional[np.ndarray] = None
    weights: Optional[dict[str, Any]] = None


def encode_state(agent: "SyntrometricAgent") -> AgentStateRecord:
    """Snapshot an agent's persistent state."""
    weights = None
    get_weights = getattr(agent.belief_model, "get_weights", None)
    if callable(get_weights):
        weights = get_weights()

    return AgentStateRecord(
        memory_buffer=[
            MemoryRecord(timestamp=entry.timestamp, embedding=entry.embedding.tolist())
            for entry in agent.memory
        ],
        last_coherence=agent.last_coherence,
        last_variance=agent.last_variance,
        last_trust=agent.last_trust,
        integration=agent.params.integration,
        reflexivity=agent.params.reflexivity,
        self_state=agent.self_state.state.tolist(),
        external_model_weights=weights,
    )


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept ISO-8601 strings, datetimes, or milliseconds since the epoch."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        millis = _number(value)
        if millis is None:
            return None
        try:
            return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _fallback(report: LoadReport, name: str, kind: AnomalyKind, message: str) -> None:
    logger.warning(f"Persisted field {name} reset to default: {message}")
    report.fallbacks.append(name)
    report.diagnostics.append(Diagnostic(kind=kind, component=name, message=message))


def _decode_memory(raw: Any, embedding_dim: int, decoded: DecodedState) -> None:
    report = decoded.report
    if raw is None:
        return
    if not isinstance(raw, list):
        _fallback(report, "memoryBuffer", AnomalyKind.INVALID_INPUT, "not a list")
        return

    for item in raw:
        if not isinstance(item, dict):
            report.memory_dropped += 1
            continue
        embedding = as_vector(item.get("embedding"))
        timestamp = _parse_timestamp(item.get("timestamp"))
        if embedding is None or embedding.shape[0] != embedding_dim or timestamp is None:
            report.memory_dropped += 1
            continue
        decoded.memory.append(MemoryEntry(embedding=embedding, timestamp=timestamp))

    report.memory_loaded = len(decoded.memory)
    if report.memory_dropped:
        report.diagnostics.append(
            Diagnostic(
                kind=AnomalyKind.DIMENSION_MISMATCH,
                component="memoryBuffer",
                message=f"dropped {report.memory_dropped} malformed entries",
            )
        )
        logger.warning(f"Dropped {report.memory_dropped} persisted memory entries")


def decode_state(
    data: Any,
    embedding_dim: int,
    param_min: float = 0.05,
    param_max: float = 0.95,
) -> DecodedState:
    """Validate a persisted document field by field.

    Args:
        data: Parsed JSON document
        embedding_dim: Required width of memory entries and the self-state
        param_min: Lower bound loaded parameters are clamped to
        param_max: Upper bound loaded parameters are clamped to

    Returns:
        DecodedState whose report lists every field that fell back
    """
    report = LoadReport()
    decoded = DecodedState(report=report)

    if not isinstance(data, dict):
        report.version_ok = False
        _fallback(report, "version", AnomalyKind.INVALID_INPUT, "document is not an object")
        report.fallbacks.extend(PERSISTED_FIELDS)
        return decoded

    version = data.get("version")
    report.version = version if isinstance(version, str) else None
    if version != STATE_VERSION:
        report.version_ok = False
        _fallback(
            report,
            "version",
            AnomalyKind.INVALID_INPUT,
            f"saved version {version!r} does not match {STATE_VERSION}",
        )
        report.fallbacks.extend(PERSISTED_FIELDS)
        return decoded

    _decode_memory(data.get("memoryBuffer"), embedding_dim, decoded)

    coherence = _number(data.get("lastCoherence"))
    if coherence is None or not 0.0 <= coherence <= 1.0:
        _fallback(report, "lastCoherence", AnomalyKind.INVALID_INPUT, "expected a number in [0, 1]")
    else:
        decoded.last_coherence = coherence

    variance = _number(data.get("lastVariance"))
    if variance is None or variance < 0.0:
        _fallback(report, "lastVariance", AnomalyKind.INVALID_INPUT, "expected a non-negative number")
    else:
        decoded.last_variance = min(variance, MAX_PERSISTED_VARIANCE)

    trust = _number(data.get("lastTrust"))
    if trust is None or not 0.0 <= trust <= 1.0:
        _fallback(report, "lastTrust", AnomalyKind.INVALID_INPUT, "expected a number in [0, 1]")
    else:
        decoded.last_trust = trust

    for name in ("integration", "reflexivity"):
        value = _number(data.get(name))
        if value is None:
            _fallback(report, name, AnomalyKind.INVALID_INPUT, "expected a number")
        else:
            setattr(decoded, name, clamp(value, param_min, param_max))

    self_state = as_vector(data.get("selfState"))
    if self_state is None or self_state.shape[0] != embedding_dim:
        got = "invalid" if self_state is None else f"width {self_state.shape[0]}"
        _fallback(
            report,
            "selfState",
            AnomalyKind.DIMENSION_MISMATCH,
            f"{got} self-state, expected width {embedding_dim}",
        )
    else:
        decoded.self_state = self_state

    weights = data.get("externalModelWeights")
    if isinstance(weights, dict):
        decoded.weights = weights
    elif weights is not None:
        _fallback(report, "externalModelWeights", AnomalyKind.INVALID_INPUT, "not an object")

    return decoded


class StateStore:
    """JSON file holding one agent's saved state.

    Example:
        store = StateStore(Path("~/.syntrometry/state.json").expanduser())
        store.save(agent)
        ...
        report = store.load(agent)
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, agent: "SyntrometricAgent") -> bool:
        """Write the agent's state.

        Returns:
            True if the file was written

        Raises:
            RuntimeError: If the agent is in the middle of a step.
        """
        record = agent.get_state()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(record.to_json_dict(), f)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save agent state to {self.path}: {e}")
            return False

        logger.info(f"Saved agent state ({len(record.memory_buffer)} memories) to {self.path}")
        return True

    def _read(self) -> Optional[dict[str, Any]]:
        if not self.path.exists():
            logger.debug(f"No saved state at {self.path}")
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read agent state from {self.path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.error(f"Saved state at {self.path} is not a JSON object")
            return None
        return data

    def load(self, agent: "SyntrometricAgent") -> Optional[LoadReport]:
        """Restore the agent from the file.

        Returns:
            LoadReport, or None when there is no readable file (agent untouched)

        Raises:
            RuntimeError: If the agent is in the middle of a step.
        """
        data = self._read()
        if data is None:
            return None
        return agent.load_state(data)

    def has_saved_state(self) -> bool:
        """True if a readable document of the current version exists."""
        data = self._read()
        return data is not None and data.get("version") == STATE_VERSION

    def saved_state_info(self) -> Optional[SavedStateInfo]:
        """Summary of the saved document without loading it."""
        data = self._read()
        if data is None:
            return None
        memory = data.get("memoryBuffer")
        version = data.get("version")
        return SavedStateInfo(
            version=version if isinstance(version, str) else None,
            saved_at=_parse_timestamp(data.get("savedAt")),
            memory_size=len(memory) if isinstance(memory, list) else 0,
            last_coherence=_number(data.get("lastCoherence")),
            last_trust=_number(data.get("lastTrust")),
            has_model_weights=isinstance(data.get("externalModelWeights"), dict),
        )

    def clear(self) -> bool:
        """Delete the saved document.

        Returns:
            True if a file was removed
        """
        if not self.path.exists():
            return False
        try:
            self.path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete saved state {self.path}: {e}")
            return False
        logger.info(f"Cleared saved agent state at {self.path}")
        return True
