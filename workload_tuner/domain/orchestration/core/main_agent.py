from typing import TypedDict, List, Dict, Any, Optional, Literal
from langgraph.graph import StateGraph, END
import asyncio
import time
import structlog

from workload_tuner.domain.actuation.system_actuator import SystemActuator, SimulatedActuator
from workload_tuner.domain.context.attention_mechanism import AttentionMechanism
from workload_tuner.domain.context.memory_system import MemorySystem
from workload_tuner.domain.context.snapshot_provider import (
    ActivitySnapshotProvider,
    InMemorySnapshotProvider,
    SystemSnapshotProvider,
)
from workload_tuner.domain.context.state.state_manager import StateManager
from workload_tuner.domain.models.agent_state import (
    AgentFeedback,
    AgentState,
    ExecutedAction,
    Recommendation,
    ResolutionPlan,
    ResourceRequirements,
)
from workload_tuner.domain.models.snapshots import ActivitySnapshot, SystemSnapshot
from workload_tuner.domain.orchestration.core.conflict_resolver import ConflictResolver, ResolverPolicy
from workload_tuner.domain.orchestration.subagent.agent_registry import AgentRegistry
from workload_tuner.domain.orchestration.subagent.base_subagent import BaseTaskAgent
from workload_tuner.domain.streaming.event_emitter import EventEmitter
from workload_tuner.domain.streaming.events import (
    ActionEvent,
    CycleCompletedEvent,
    CycleSkippedEvent,
    LearningEvent,
    UnitCreatedEvent,
    UnitEvictedEvent,
)
from workload_tuner.infrastructure.config.settings import OrchestratorSettings, RetentionPolicy
from workload_tuner.infrastructure.observability.logging import agent_logger, metrics

logger = structlog.get_logger(__name__)


class CycleState(TypedDict):
    """State carried through one orchestration cycle"""
    cycle: int
    system: Optional[SystemSnapshot]
    activity: Optional[ActivitySnapshot]
    error: Optional[str]
    detected: Dict[str, str]
    created_units: List[str]
    evicted_units: List[str]
    attention_scores: Dict[str, float]
    recommendations: Dict[str, Recommendation]
    excluded_units: List[str]
    plan: Optional[ResolutionPlan]
    executed: List[ExecutedAction]
    node_trace: List[str]


def scenario_for(agent_type: str) -> str:
    return f"{agent_type}_optimization"


class AgentOrchestrator:
    """Runs the observe, reason, resolve, apply and learn cycle over the active units"""

    def __init__(
        self,
        settings: Optional[OrchestratorSettings] = None,
        registry: Optional[AgentRegistry] = None,
        memory: Optional[MemorySystem] = None,
        attention: Optional[AttentionMechanism] = None,
        resolver: Optional[ConflictResolver] = None,
        system_provider: Optional[SystemSnapshotProvider] = None,
        activity_provider: Optional[ActivitySnapshotProvider] = None,
        actuator: Optional[SystemActuator] = None,
        emitter: Optional[EventEmitter] = None,
        state_manager: Optional[StateManager] = None,
    ):
        self.settings = settings or OrchestratorSettings()
        self.registry = registry or AgentRegistry()
        self.memory = memory or MemorySystem(episode_capacity=self.settings.episode_capacity)
        self.attention = attention or AttentionMechanism(
            self.memory,
            max_active=self.settings.max_active_attention,
            relevance_floor=self.settings.attention_relevance_floor,
            dampening=self.settings.attention_dampening,
            history_limit=self.settings.attention_history_limit,
        )
        self.resolver = resolver or ConflictResolver(ResolverPolicy.from_settings(self.settings))

        default_provider = InMemorySnapshotProvider()
        self.system_provider = system_provider or default_provider
        self.activity_provider = activity_provider or default_provider
        self.actuator = actuator or SimulatedActuator()
        self.emitter = emitter or EventEmitter()
        self.state_manager = state_manager or StateManager()

        # One unit per workload domain, in creation order
        self.units: Dict[str, BaseTaskAgent] = {}
        self.cycle_count = 0
        self._last_system = SystemSnapshot()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the per-cycle graph"""

        workflow = StateGraph(CycleState)

        workflow.add_node("acquire", self.acquire_node)
        workflow.add_node("detect", self.detect_node)
        workflow.add_node("collect", self.collect_node)
        workflow.add_node("resolve", self.resolve_node)
        workflow.add_node("execute", self.execute_node)
        workflow.add_node("learn", self.learn_node)

        workflow.set_entry_point("acquire")

        # Acquisition failure skips the rest of the cycle
        workflow.add_conditional_edges(
            "acquire",
            self.route_after_acquire,
            {
                "continue": "detect",
                "skip": END
            }
        )

        workflow.add_edge("detect", "collect")
        workflow.add_edge("collect", "resolve")
        workflow.add_edge("resolve", "execute")
        workflow.add_edge("execute", "learn")
        workflow.add_edge("learn", END)

        return workflow.compile()

    def _trace(self, state: CycleState, node: str) -> List[str]:
        trace = list(state.get("node_trace") or [])
        if trace:
            agent_logger.log_cycle_transition(state["cycle"], trace[-1], node)
        trace.append(node)
        return trace

    async def acquire_node(self, state: CycleState) -> Dict[str, Any]:
        """Pull both snapshots"""

        trace = self._trace(state, "acquire")
        try:
            system = await self.system_provider.get_system_snapshot()
            activity = await self.activity_provider.get_activity_snapshot()
        except Exception as e:
            logger.warning("Snapshot acquisition failed, skipping cycle", error=str(e))
            metrics.increment_counter("cycles_skipped")
            await self.emitter.emit(CycleSkippedEvent(cycle=state["cycle"], reason=str(e)))
            return {"error": str(e), "node_trace": trace}

        self._last_system = system
        return {"system": system, "activity": activity, "node_trace": trace}

    def route_after_acquire(self, state: CycleState) -> Literal["continue", "skip"]:
        return "skip" if state.get("error") else "continue"

    async def detect_node(self, state: CycleState) -> Dict[str, Any]:
        """Spawn units for new workloads, apply retention and focus attention"""

        trace = self._trace(state, "detect")
        activity = state["activity"]
        system = state["system"]

        detected = self.registry.match(activity)
        created = await self.detect_and_create_agents_for(activity, system=system, detected=detected)
        evicted = await self._apply_retention(detected, state["cycle"])

        attention_scores: Dict[str, float] = {}
        if detected:
            query = " ".join(list(detected.keys()) + [activity.category])
            try:
                vector = await self.attention.create_attention(query)
                attention_scores = dict(vector.attention_scores)
            except ValueError as e:
                logger.warning("Could not focus attention", query=query, error=str(e))

        return {
            "detected": detected,
            "created_units": created,
            "evicted_units": evicted,
            "attention_scores": attention_scores,
            "node_trace": trace,
        }

    async def detect_and_create_agents_for(
        self,
        activity: ActivitySnapshot,
        system: Optional[SystemSnapshot] = None,
        detected: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        """Create units for newly detected workloads; returns the ids of the new units.

        Units left in ERROR whose workload is still detected are initialized again.
        """

        system = system or self._last_system
        if detected is None:
            detected = self.registry.match(activity)

        created: List[str] = []
        for agent_type, process in detected.items():
            unit = self.units.get(agent_type)

            if unit is None:
                agent_class = self.registry.get_agent_class(agent_type)
                unit = agent_class(
                    memory=self.memory,
                    actuator=self.actuator,
                    auto_apply_floor=self.settings.auto_apply_floor,
                )
                await unit.initialize(system)
                await unit.activate()
                self.units[agent_type] = unit
                created.append(unit.agent_id)

                logger.info("Created unit", agent_type=agent_type, agent_id=unit.agent_id, process=process)
                await self.emitter.emit(UnitCreatedEvent(
                    cycle=self.cycle_count,
                    agent_id=unit.agent_id,
                    agent_type=agent_type,
                    matched_process=process,
                ))

            elif unit.state in (AgentState.ERROR, AgentState.SHUTDOWN):
                logger.info("Re-initializing unit", agent_type=agent_type, previous_state=unit.state.value)
                await unit.initialize(system)
                await unit.activate()

        metrics.set_gauge("active_units", len(self.units))
        return created

    async def _apply_retention(self, detected: Dict[str, str], cycle: int) -> List[str]:
        absences = await self.state_manager.update_presence(self.units.keys(), detected.keys(), cycle)
        if self.settings.retention_policy != RetentionPolicy.EVICT:
            return []

        evicted: List[str] = []
        for agent_type, absent_cycles in absences.items():
            if absent_cycles < self.settings.eviction_grace_cycles:
                continue

            unit = self.units.pop(agent_type)
            await unit.shutdown()
            await self.state_manager.clear_state(agent_type)
            evicted.append(agent_type)

            logger.info("Evicted unit", agent_type=agent_type, absent_cycles=absent_cycles)
            await self.emitter.emit(UnitEvictedEvent(
                cycle=cycle,
                agent_id=unit.agent_id,
                agent_type=agent_type,
                absent_cycles=absent_cycles,
            ))

        if evicted:
            metrics.set_gauge("active_units", len(self.units))
        return evicted

    def _build_context(self, state: CycleState, agent_type: str) -> Dict[str, Any]:
        """Reasoning context for one unit: snapshot readings plus the cycle's focus"""

        system = state["system"]
        context: Dict[str, Any] = dict(system.additional_metrics)
        context.update({
            "system": system,
            "activity": state["activity"],
            "cycle": state["cycle"],
            "attention": dict(state.get("attention_scores") or {}),
            "matched_process": (state.get("detected") or {}).get(agent_type),
        })
        context.setdefault("ram_usage", system.ram_usage)
        return context

    async def _reason_with_timeout(
        self,
        unit: BaseTaskAgent,
        context: Dict[str, Any],
    ) -> Recommendation:
        return await asyncio.wait_for(
            unit.reason(scenario_for(unit.agent_type), context),
            timeout=self.settings.reason_timeout_seconds,
        )

    async def collect_node(self, state: CycleState) -> Dict[str, Any]:
        """Ask every active unit for a recommendation, concurrently"""

        trace = self._trace(state, "collect")
        active = [unit for unit in self.units.values() if unit.state == AgentState.ACTIVE]

        results = await asyncio.gather(
            *(self._reason_with_timeout(unit, self._build_context(state, unit.agent_type)) for unit in active),
            return_exceptions=True,
        )

        recommendations: Dict[str, Recommendation] = {}
        excluded: List[str] = []
        for unit, result in zip(active, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    "Unit reasoning timed out",
                    agent_type=unit.agent_type,
                    timeout_s=self.settings.reason_timeout_seconds,
                )
                excluded.append(unit.agent_type)
            elif isinstance(result, BaseException):
                logger.error("Unit reasoning failed", agent_type=unit.agent_type, error=str(result))
                excluded.append(unit.agent_type)
            else:
                recommendations[unit.agent_type] = result

        if excluded:
            metrics.increment_counter("units_excluded", len(excluded))

        return {"recommendations": recommendations, "excluded_units": excluded, "node_trace": trace}

    async def resolve_node(self, state: CycleState) -> Dict[str, Any]:
        trace = self._trace(state, "resolve")
        recommendations = state.get("recommendations") or {}

        requirements: Dict[str, ResourceRequirements] = {
            agent_type: self.units[agent_type].declare_requirements()
            for agent_type in recommendations
            if agent_type in self.units
        }
        plan = self.resolver.resolve(recommendations, requirements)

        logger.debug("Resolved plan", **plan.get_plan_summary())
        return {"plan": plan, "node_trace": trace}

    async def execute_node(self, state: CycleState) -> Dict[str, Any]:
        """Apply planned actions one at a time, in plan order"""

        trace = self._trace(state, "execute")
        plan = state.get("plan")
        recommendations = state.get("recommendations") or {}
        executed: List[ExecutedAction] = []

        if plan is None:
            return {"executed": executed, "node_trace": trace}

        for agent_type, actions in plan.execution_plan.items():
            unit = self.units.get(agent_type)
            if unit is None:
                continue
            recommendation = recommendations.get(agent_type)

            for action_name in actions:
                if unit.state != AgentState.ACTIVE:
                    logger.warning(
                        "Unit left active state, skipping remaining actions",
                        agent_type=agent_type,
                        state=unit.state.value,
                    )
                    break

                params = recommendation.action_parameters.get(action_name, {}) if recommendation else {}
                result = await unit.apply(action_name, params)
                executed.append(ExecutedAction(
                    agent_type=agent_type,
                    scenario=scenario_for(agent_type),
                    optimization_metric=recommendation.optimization_metric if recommendation else "",
                    result=result,
                ))

                metrics.increment_counter(
                    "actions_applied",
                    tags={"agent_type": agent_type, "success": str(result.success).lower()},
                )
                await self.emitter.emit(ActionEvent(
                    cycle=state["cycle"],
                    agent_type=agent_type,
                    action_name=action_name,
                    success=result.success,
                    message=result.message,
                    improvement=result.improvement,
                ))

        return {"executed": executed, "node_trace": trace}

    async def learn_node(self, state: CycleState) -> Dict[str, Any]:
        """Feed every action result back into the unit that applied it"""

        trace = self._trace(state, "learn")
        for executed in state.get("executed") or []:
            unit = self.units.get(executed.agent_type)
            if unit is None:
                continue

            previous = unit.confidence
            feedback = AgentFeedback.from_result(executed.result, executed.optimization_metric)
            await unit.learn(executed.scenario, feedback)

            await self.emitter.emit(LearningEvent(
                cycle=state["cycle"],
                agent_type=executed.agent_type,
                scenario=executed.scenario,
                success=feedback.feedback_type.is_success,
                previous_confidence=previous,
                confidence=unit.confidence,
            ))

        return {"node_trace": trace}

    def _initial_state(self) -> CycleState:
        return {
            "cycle": self.cycle_count,
            "system": None,
            "activity": None,
            "error": None,
            "detected": {},
            "created_units": [],
            "evicted_units": [],
            "attention_scores": {},
            "recommendations": {},
            "excluded_units": [],
            "plan": None,
            "executed": [],
            "node_trace": [],
        }

    async def run_cycle(self) -> CycleState:
        """Run exactly one cycle and return its final state"""

        self.cycle_count += 1
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(cycle=self.cycle_count):
            final_state: CycleState = await self.workflow.ainvoke(self._initial_state())
            duration_ms = (time.perf_counter() - started) * 1000
            metrics.record_latency("orchestration_cycle", duration_ms)

            if final_state.get("error"):
                return final_state

            if self.cycle_count % self.settings.consolidation_interval_cycles == 0:
                await self.memory.consolidate_memories()

            plan = final_state.get("plan")
            await self.emitter.emit(CycleCompletedEvent(
                cycle=self.cycle_count,
                active_units=[t for t, u in self.units.items() if u.state == AgentState.ACTIVE],
                excluded_units=list(final_state.get("excluded_units") or []),
                plan_summary=plan.get_plan_summary() if plan else {},
                actions_applied=len(final_state.get("executed") or []),
                duration_ms=duration_ms,
            ))

        return final_state

    async def run_orchestration(self, cancel_event: asyncio.Event):
        """Run cycles until the event is set, then shut every unit down"""

        logger.info("Orchestration started", cycle_interval_s=self.settings.cycle_interval_seconds)
        try:
            while not cancel_event.is_set():
                started = time.perf_counter()
                try:
                    await self.run_cycle()
                except Exception as e:
                    logger.error("Orchestration cycle failed", cycle=self.cycle_count, error=str(e), exc_info=True)

                # Sleep until the next cadence tick, not a full interval after the cycle
                remaining = self.settings.cycle_interval_seconds - (time.perf_counter() - started)
                if remaining <= 0:
                    # Overran the interval; start the next cycle after yielding to the loop
                    await asyncio.sleep(0)
                    continue
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.shutdown()
            logger.info("Orchestration stopped", cycles=self.cycle_count)

    async def shutdown(self):
        for unit in self.units.values():
            if unit.state != AgentState.SHUTDOWN:
                await unit.shutdown()

    def set_unit_priority(self, agent_type: str, priority: float) -> bool:
        """Override a unit's resource priority; False when no such unit exists"""

        unit = self.units.get(agent_type)
        if unit is None:
            return False
        unit.set_resource_priority(priority)
        return True

    def get_active_units(self) -> List[Dict[str, Any]]:
        return [unit.get_info() for unit in self.units.values()]

    def get_unit(self, agent_type: str) -> Optional[BaseTaskAgent]:
        return self.units.get(agent_type)

    async def get_memory_statistics(self) -> Dict[str, Any]:
        return await self.memory.get_memory_statistics()

