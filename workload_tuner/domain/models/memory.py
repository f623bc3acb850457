from typing import Dict, Any, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timedelta
from enum import IntEnum
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class SemanticFact(BaseModel):
    """A durable weighted claim about what helps which metric.

    Frozen: the semantic store replaces the record when reinforcing or
    weakening it, so weight and confidence only move through those operations.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    statement: str
    category: str = "General"
    synaptic_weight: float = Field(default=0.5, ge=0.0, le=1.0, description="Influence strength")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reinforcement_count: int = Field(default=0, ge=0)
    linked_fact_ids: Tuple[str, ...] = ()
    parameters: Dict[str, float] = Field(default_factory=dict)
    learned_at: datetime = Field(default_factory=datetime.utcnow)
    last_reinforced_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def strength(self) -> float:
        return self.synaptic_weight * self.confidence


class EmotionalSignificance(IntEnum):
    """How much an experience mattered, signed"""
    VERY_NEGATIVE = -2
    NEGATIVE = -1
    NEUTRAL = 0
    POSITIVE = 1
    VERY_POSITIVE = 2

    @property
    def is_positive(self) -> bool:
        return self >= EmotionalSignificance.POSITIVE

    @property
    def is_negative(self) -> bool:
        return self <= EmotionalSignificance.NEGATIVE


class Episode(BaseModel):
    """One recorded experience. Immutable once recorded."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    context: str
    actions: Tuple[str, ...] = ()
    outcome: str = ""
    metrics: Dict[str, Tuple[float, float]] = Field(
        default_factory=dict,
        description="Metric name -> (before, after)"
    )
    significance: EmotionalSignificance = EmotionalSignificance.NEUTRAL
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    duration_after_action: timedelta = timedelta(0)
    tags: Tuple[str, ...] = ()
    user_approved: bool = False
    notes: str = ""

    @property
    def primary_tag(self) -> str:
        return self.tags[0] if self.tags else "General"

    def metric_deltas(self) -> Dict[str, float]:
        """after - before for every metric"""
        return {name: after - before for name, (before, after) in self.metrics.items()}


class CausalNode(BaseModel):
    """A named event in the causal graph"""
    id: str = Field(default_factory=_new_id)
    event: str
    category: str = ""
    causal_strength: float = Field(default=0.5, ge=0.0, le=1.0)
    observation_count: int = 0


class CausalLink(BaseModel):
    """Directed cause -> effect relation, referenced by node ids"""
    id: str = Field(default_factory=_new_id)
    cause_node_id: str
    effect_node_id: str
    strength: float = Field(default=0.5, ge=0.0, le=1.0)
    reliability_percent: float = Field(default=50.0, ge=0.0, le=100.0)
    observation_count: int = 0
    typical_latency: timedelta = timedelta(0)
    exception_ids: List[str] = Field(default_factory=list)


class CausalException(BaseModel):
    """A condition under which a link's strength is disregarded"""
    id: str = Field(default_factory=_new_id)
    causal_link_id: str
    condition: str
    reason: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    learned_at: datetime = Field(default_factory=datetime.utcnow)


class CausalChain(BaseModel):
    """Ordered cause -> effect path"""
    id: str = Field(default_factory=_new_id)
    chain_type: str
    node_ids: List[str] = Field(default_factory=list)
    link_ids: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    verification_count: int = 0
    established_at: datetime = Field(default_factory=datetime.utcnow)


class CausalPrediction(BaseModel):
    """Result of predict_outcome()"""
    chains_found: int = 0
    chain_id: Optional[str] = None
    chain_type: Optional[str] = None
    predicted_outcome: Optional[str] = None
    full_chain: List[str] = Field(default_factory=list)
    chain_confidence: float = 0.0
    chain_verifications: int = 0
    alternative_outcomes: List[str] = Field(default_factory=list)
    exceptions_applied: List[str] = Field(default_factory=list)


class AttentionVector(BaseModel):
    """Query-scoped weighting over memory topics"""
    id: str = Field(default_factory=_new_id)
    query: str
    key_weights: Dict[str, float] = Field(default_factory=dict)
    attention_scores: Dict[str, float] = Field(default_factory=dict)
    related_memory_ids: List[str] = Field(default_factory=list)
    value: Dict[str, Any] = Field(default_factory=dict, description="Knowledge recalled per key")
    confidence: float = 0.5
    urgent: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
