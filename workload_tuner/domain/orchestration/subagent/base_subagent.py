from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Tuple
from pydantic import BaseModel
from datetime import datetime
import time
import uuid
import structlog

from workload_tuner.domain.actuation.system_actuator import SystemActuator, SimulatedActuator
from workload_tuner.domain.context.memory_system import MemorySystem
from workload_tuner.domain.models.agent_state import (
    AgentState,
    ActionResult,
    AgentFeedback,
    Recommendation,
    ResourceRequirements,
)
from workload_tuner.domain.models.memory import Episode, EmotionalSignificance
from workload_tuner.domain.models.snapshots import SystemSnapshot, ActivitySnapshot
from workload_tuner.infrastructure.observability.logging import agent_logger

logger = structlog.get_logger(__name__)

# Weight of the previous value in every moving average a unit keeps
RETAINED_WEIGHT = 0.7

DEFAULT_EXPECTED_IMPROVEMENT = 20.0


class ActionSpec(BaseModel):
    """What a unit reports after successfully applying one action"""
    name: str
    message: str
    improvement: float = 0.0
    metric: Optional[str] = None


def normalize_action(name: str) -> str:
    """Case, space and underscore insensitive key for action lookup"""
    return name.lower().replace(" ", "").replace("_", "")


class BaseTaskAgent(ABC):
    """Base class for workload-specific reasoning units.

    Subclasses supply ``AGENT_TYPE``, ``AGENT_NAME``, ``REQUIREMENTS`` and an
    ``ACTIONS`` table, and implement ``_reason``. Only ``apply`` has side
    effects, and it reaches the host exclusively through the actuator.
    """

    AGENT_TYPE: str = ""
    AGENT_NAME: str = ""
    DESCRIPTION: str = ""
    PROCESS_KEYWORDS: Tuple[str, ...] = ()
    REQUIREMENTS: ResourceRequirements = ResourceRequirements(agent_type="")
    ACTIONS: List[ActionSpec] = []

    def __init__(
        self,
        memory: Optional[MemorySystem] = None,
        actuator: Optional[SystemActuator] = None,
        auto_apply_floor: float = 0.5,
    ):
        self.agent_id = str(uuid.uuid4())
        self.name = self.AGENT_NAME
        self.agent_type = self.AGENT_TYPE
        self.description = self.DESCRIPTION
        self.state = AgentState.UNINITIALIZED
        self.confidence = 0.5
        self.created_at = datetime.utcnow()
        self.last_active = datetime.utcnow()

        self.memory = memory
        self.actuator = actuator or SimulatedActuator()
        self.auto_apply_floor = auto_apply_floor

        self._system_context = SystemSnapshot()
        self._requirements = self.REQUIREMENTS.model_copy(deep=True)
        self._priority = self._requirements.priority
        self._success_rates: Dict[str, float] = {}
        self._current_metrics: Dict[str, float] = {}
        self._actions = {normalize_action(spec.name): spec for spec in self.ACTIONS}

    async def initialize(self, system_context: SystemSnapshot):
        """Take the machine profile and become READY"""

        if self.state in (AgentState.ACTIVE, AgentState.OPTIMIZING):
            self._system_context = system_context
            return

        self._system_context = system_context
        self.state = AgentState.READY
        self.update_activity()

        agent_logger.log_agent_event(
            "initialized",
            self.agent_type,
            data={"cpu_model": system_context.cpu_model, "gpu_model": system_context.gpu_model},
            agent_id=self.agent_id,
        )

    async def activate(self):
        if self.state != AgentState.READY:
            raise ValueError(f"Cannot activate {self.agent_type} unit from state {self.state.value}")
        self.state = AgentState.ACTIVE
        self.update_activity()

    async def reason(self, scenario: str, context: Dict[str, Any]) -> Recommendation:
        """Propose actions for the current context without changing any state"""

        recommendation = await self._reason(scenario, context)
        return self._finalize(recommendation)

    @abstractmethod
    async def _reason(self, scenario: str, context: Dict[str, Any]) -> Recommendation:
        """Domain reasoning; return Recommendation.no_opinion when nothing applies"""
        pass

    def _finalize(self, recommendation: Recommendation) -> Recommendation:
        """Stamp the unit type and enforce the auto-apply floor"""

        if not recommendation.actions:
            return Recommendation.no_opinion(self.agent_type, recommendation.title or "No action needed")

        confidence = max(0.0, min(1.0, recommendation.confidence))
        return recommendation.model_copy(update={
            "agent_type": self.agent_type,
            "actions": list(dict.fromkeys(recommendation.actions)),
            "confidence": confidence,
            "auto_apply": recommendation.auto_apply and confidence > self.auto_apply_floor,
        })

    async def apply(self, action_name: str, params: Optional[Dict[str, Any]] = None) -> ActionResult:
        """Apply one named action through the actuator"""

        params = params or {}
        spec = self._actions.get(normalize_action(action_name))

        if spec is None:
            return ActionResult(action_name=action_name, message=f"Action not implemented: {action_name}")

        if self.state != AgentState.ACTIVE:
            return ActionResult(
                action_name=action_name,
                message=f"{self.agent_type} unit is {self.state.value}, not active",
            )

        self.state = AgentState.OPTIMIZING
        started = time.perf_counter()
        try:
            applied = await self.actuator.perform(self.agent_type, spec.name, params)
        except Exception as e:
            self.state = AgentState.ERROR
            result = ActionResult(action_name=action_name, message=f"Error: {e}")
            logger.error("Action raised", agent_type=self.agent_type, action=action_name, error=str(e))
        else:
            self.state = AgentState.ACTIVE
            if applied:
                result = ActionResult(
                    action_name=action_name,
                    success=True,
                    message=spec.message,
                    improvement=spec.improvement,
                )
                if spec.metric:
                    self._current_metrics[spec.metric] = self._current_metrics.get(spec.metric, 0.0) + spec.improvement
                    result.metrics = {spec.metric: spec.improvement}
            else:
                result = ActionResult(action_name=action_name, message=f"Could not apply {action_name}")
        finally:
            # Cancelled while the actuator call was pending
            if self.state == AgentState.OPTIMIZING:
                self.state = AgentState.ACTIVE
                logger.warning("Action interrupted", agent_type=self.agent_type, action=action_name)

        self.update_activity()

        agent_logger.log_action_execution(
            agent_type=self.agent_type,
            action_name=action_name,
            params=params,
            success=result.success,
            message=result.message,
            improvement=result.improvement,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return result

    async def learn(self, scenario: str, feedback: AgentFeedback) -> Optional[Episode]:
        """Fold an outcome into confidence and record it as an episode"""

        outcome = 1.0 if feedback.feedback_type.is_success else 0.0
        self.confidence = max(0.0, min(1.0, RETAINED_WEIGHT * self.confidence + (1 - RETAINED_WEIGHT) * outcome))

        if feedback.action_name:
            previous = self._success_rates.get(feedback.action_name)
            if previous is None:
                self._success_rates[feedback.action_name] = outcome
            else:
                self._success_rates[feedback.action_name] = RETAINED_WEIGHT * previous + (1 - RETAINED_WEIGHT) * outcome

        logger.debug(
            "Unit learned",
            agent_type=self.agent_type,
            scenario=scenario,
            feedback=feedback.feedback_type.value,
            confidence=round(self.confidence, 3),
        )

        if self.memory is None:
            return None

        episode = self._episode_from_feedback(scenario, feedback)
        try:
            await self.memory.learn_from_experience(episode)
        except Exception as e:
            logger.error("Failed to record lesson", agent_type=self.agent_type, error=str(e))
            return None
        return episode

    def _episode_from_feedback(self, scenario: str, feedback: AgentFeedback) -> Episode:
        success = feedback.feedback_type.is_success
        improvement = feedback.measured_improvement

        if not success:
            significance = EmotionalSignificance.NEGATIVE
        elif improvement >= 25:
            significance = EmotionalSignificance.VERY_POSITIVE
        elif improvement > 0:
            significance = EmotionalSignificance.POSITIVE
        else:
            significance = EmotionalSignificance.NEUTRAL

        metric = feedback.optimization_metric or "General"
        return Episode(
            context=f"{self.agent_type} {scenario}: {feedback.description}".strip(),
            actions=(feedback.action_name,) if feedback.action_name else (),
            outcome=feedback.description,
            metrics={metric: (0.0, improvement)},
            significance=significance,
            confidence=self.confidence,
            tags=(self.agent_type, metric, "Success" if success else "Failure"),
            user_approved=success,
            notes=feedback.user_feedback,
        )

    def declare_requirements(self) -> ResourceRequirements:
        """Current demand, reflecting any priority set by the orchestrator"""
        return self._requirements.model_copy(update={"priority": self._priority}, deep=True)

    def set_resource_priority(self, priority: float):
        self._priority = max(0.0, min(1.0, priority))

    async def get_current_metrics(self) -> Dict[str, float]:
        return dict(self._current_metrics)

    async def shutdown(self):
        self.state = AgentState.SHUTDOWN
        agent_logger.log_agent_event("shutdown", self.agent_type, agent_id=self.agent_id)

    def update_activity(self):
        """Update last activity timestamp"""
        self.last_active = datetime.utcnow()

    def has_action(self, action_name: str) -> bool:
        return normalize_action(action_name) in self._actions

    def system_from(self, context: Dict[str, Any]) -> SystemSnapshot:
        """Fresh snapshot from the cycle context, else the one from initialization"""
        system = context.get("system")
        return system if isinstance(system, SystemSnapshot) else self._system_context

    @staticmethod
    def activity_from(context: Dict[str, Any]) -> ActivitySnapshot:
        activity = context.get("activity")
        return activity if isinstance(activity, ActivitySnapshot) else ActivitySnapshot()

    @staticmethod
    def metric_from(context: Dict[str, Any], key: str, default: float = 0.0) -> float:
        """Numeric reading from the context, tolerating missing or malformed values"""
        try:
            return float(context.get(key, default))
        except (TypeError, ValueError):
            return default

    @staticmethod
    def detect_bottleneck(system: SystemSnapshot) -> str:
        """Main hardware constraint of the machine"""

        if system.gpu_temp > 85 or system.gpu_usage > 90:
            return "GPU"
        if system.cpu_temp > 85 or (system.cpu_cores is not None and system.cpu_cores < 8):
            return "CPU"
        if system.total_ram_gb is not None and system.total_ram_gb < 16:
            return "RAM"
        if system.storage_type == "HDD":
            return "Storage"
        if system.network_usage > 90:
            return "Network"
        return "Balanced"

    def expected_improvement(self, action: str) -> float:
        """Learned success rate of an action as a percentage"""
        if action in self._success_rates:
            return self._success_rates[action] * 100
        return DEFAULT_EXPECTED_IMPROVEMENT

    def get_info(self) -> Dict[str, Any]:
        """Get unit information"""
        return {
            "id": self.agent_id,
            "name": self.name,
            "type": self.agent_type,
            "description": self.description,
            "state": self.state.value,
            "confidence": round(self.confidence, 4),
            "priority": self._priority,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat(),
        }
