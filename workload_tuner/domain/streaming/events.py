from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum


class EventType(str, Enum):
    """Orchestration event types"""
    UNIT_CREATED = "unit_created"
    UNIT_EVICTED = "unit_evicted"
    CYCLE_SKIPPED = "cycle_skipped"
    ACTION = "action"
    LEARNING = "learning"
    CYCLE_COMPLETED = "cycle_completed"


class BaseEvent(BaseModel):
    """Base model for all observability events"""
    type: EventType
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    cycle: Optional[int] = None


class UnitCreatedEvent(BaseEvent):
    """A reasoning unit was spawned for a detected workload"""
    type: Literal[EventType.UNIT_CREATED] = EventType.UNIT_CREATED
    agent_id: str
    agent_type: str
    matched_process: Optional[str] = None


class UnitEvictedEvent(BaseEvent):
    """A reasoning unit was retired after its workload disappeared"""
    type: Literal[EventType.UNIT_EVICTED] = EventType.UNIT_EVICTED
    agent_id: str
    agent_type: str
    absent_cycles: int


class CycleSkippedEvent(BaseEvent):
    """Snapshot acquisition failed; the cycle did nothing"""
    type: Literal[EventType.CYCLE_SKIPPED] = EventType.CYCLE_SKIPPED
    reason: str


class ActionEvent(BaseEvent):
    """An action was applied, successfully or not"""
    type: Literal[EventType.ACTION] = EventType.ACTION
    agent_type: str
    action_name: str
    success: bool
    message: str = ""
    improvement: float = 0.0


class LearningEvent(BaseEvent):
    """A unit updated its confidence from feedback"""
    type: Literal[EventType.LEARNING] = EventType.LEARNING
    agent_type: str
    scenario: str
    success: bool
    previous_confidence: float
    confidence: float


class CycleCompletedEvent(BaseEvent):
    """Summary of one finished cycle"""
    type: Literal[EventType.CYCLE_COMPLETED] = EventType.CYCLE_COMPLETED
    active_units: List[str] = Field(default_factory=list)
    excluded_units: List[str] = Field(default_factory=list)
    plan_summary: Dict[str, Any] = Field(default_factory=dict)
    actions_applied: int = 0
    duration_ms: float = 0.0
