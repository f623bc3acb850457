from typing import Dict, Any, List, Set
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from enum import Enum
import uuid


class AgentState(str, Enum):
    """Lifecycle state of a reasoning unit"""
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ACTIVE = "active"
    OPTIMIZING = "optimizing"
    ERROR = "error"
    SHUTDOWN = "shutdown"


class ResourceDimension(str, Enum):
    """Shared hardware resources a unit can claim"""
    CPU = "cpu"
    GPU = "gpu"
    RAM = "ram"
    NETWORK = "network"
    STORAGE_IO = "storage_io"


# Dimensions the conflict resolver arbitrates. RAM is declared but not split.
CONTENDED_DIMENSIONS = (
    ResourceDimension.GPU,
    ResourceDimension.CPU,
    ResourceDimension.NETWORK,
    ResourceDimension.STORAGE_IO,
)


class FeedbackType(str, Enum):
    """Outcome classification routed into learn()"""
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"
    USER_REJECTED = "user_rejected"

    @property
    def is_success(self) -> bool:
        return self in (FeedbackType.SUCCESS, FeedbackType.PARTIAL_SUCCESS)


class ResourceRequirements(BaseModel):
    """Declared demand of one unit"""
    agent_type: str = Field(description="Domain name of the declaring unit")
    cpu: float = Field(default=0.0, ge=0.0, le=1.0)
    gpu: float = Field(default=0.0, ge=0.0, le=1.0)
    ram: float = Field(default=0.0, ge=0.0, le=1.0)
    network: float = Field(default=0.0, ge=0.0, le=1.0)
    storage_io: float = Field(default=0.0, ge=0.0, le=1.0)
    priority: float = Field(default=0.5, ge=0.0, le=1.0)
    requires_elevation: bool = Field(default=False, description="Needs admin rights to apply")
    conflicts_with: Set[str] = Field(default_factory=set, description="Domains this unit contends with")

    def demand_for(self, dimension: ResourceDimension) -> float:
        """Get the declared share for one dimension"""
        return getattr(self, dimension.value)

    def conflicts_with_domain(self, domain: str) -> bool:
        """Case-insensitive membership test on conflicts_with"""
        target = domain.lower()
        return any(name.lower() == target for name in self.conflicts_with)


class Recommendation(BaseModel):
    """A unit's proposed response for one cycle"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_type: str = Field(default="", description="Domain of the recommending unit")
    title: str = Field(default="")
    description: str = Field(default="")
    reasoning: str = Field(default="", description="Why this is recommended")
    actions: List[str] = Field(default_factory=list, description="Ordered action names")
    action_parameters: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    optimization_metric: str = Field(default="", description="FPS, InputLatency, CompileTime, ...")
    expected_improvement: float = Field(default=0.0, description="Expected improvement in percent")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    auto_apply: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def no_opinion(cls, agent_type: str, title: str = "No action needed") -> "Recommendation":
        """Zero-confidence, empty recommendation"""
        return cls(agent_type=agent_type, title=title, confidence=0.0, auto_apply=False)

    @property
    def has_opinion(self) -> bool:
        return bool(self.actions) and self.confidence > 0.0


class ActionResult(BaseModel):
    """Outcome of applying one named action"""
    action_name: str
    success: bool = False
    message: str = ""
    improvement: float = Field(default=0.0, description="Measured improvement delta")
    metrics: Dict[str, float] = Field(default_factory=dict)
    executed_at: datetime = Field(default_factory=datetime.utcnow)


class AgentFeedback(BaseModel):
    """Feedback routed into a unit's learn()"""
    feedback_type: FeedbackType
    action_name: str = ""
    optimization_metric: str = ""
    description: str = ""
    measured_improvement: float = 0.0
    user_feedback: str = ""
    feedback_time: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_result(cls, result: ActionResult, optimization_metric: str = "") -> "AgentFeedback":
        """Build feedback from an applied action"""
        return cls(
            feedback_type=FeedbackType.SUCCESS if result.success else FeedbackType.FAILURE,
            action_name=result.action_name,
            optimization_metric=optimization_metric,
            description=result.message,
            measured_improvement=result.improvement,
        )


class ExecutedAction(BaseModel):
    """An action applied during a cycle, kept until the learn step"""
    agent_type: str
    scenario: str
    optimization_metric: str = ""
    result: ActionResult


class ResolutionPlan(BaseModel):
    """Conflict resolver output"""
    execution_plan: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Unit -> ordered actions, in serialization order"
    )
    allocations: Dict[str, Dict[ResourceDimension, float]] = Field(default_factory=dict)
    admitted: List[str] = Field(default_factory=list)
    deferred: List[str] = Field(default_factory=list, description="Recorded but not applied")
    dropped: List[str] = Field(default_factory=list, description="Admitted but starved of a resource")
    reductions: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("allocations")
    @classmethod
    def _shares_in_range(cls, value: Dict[str, Dict[ResourceDimension, float]]):
        for shares in value.values():
            for share in shares.values():
                if share < 0.0 or share > 1.0:
                    raise ValueError(f"Allocation share out of range: {share}")
        return value

    def allocation_for(self, agent_type: str, dimension: ResourceDimension) -> float:
        """Get the share granted to a unit, 0.0 when none"""
        return self.allocations.get(agent_type, {}).get(dimension, 0.0)

    def get_plan_summary(self) -> Dict[str, Any]:
        """Get a compact summary for logging"""
        return {
            "planned_units": list(self.execution_plan.keys()),
            "planned_actions": sum(len(actions) for actions in self.execution_plan.values()),
            "admitted": len(self.admitted),
            "deferred": len(self.deferred),
            "dropped": len(self.dropped),
            "reductions": len(self.reductions),
        }
