import asyncio

import pytest

from workload_tuner.domain.actuation.system_actuator import SimulatedActuator
from workload_tuner.domain.context.memory_system import MemorySystem
from workload_tuner.domain.models.agent_state import (
    ActionResult,
    AgentFeedback,
    AgentState,
    FeedbackType,
)
from workload_tuner.domain.models.snapshots import ActivitySnapshot, SystemSnapshot
from workload_tuner.domain.orchestration.subagent.content_creation_agent import ContentCreationAgent
from workload_tuner.domain.orchestration.subagent.development_agent import DevelopmentAgent
from workload_tuner.domain.orchestration.subagent.gaming_agent import GamingAgent
from workload_tuner.domain.orchestration.subagent.streaming_agent import StreamingAgent


async def _active(agent):
    await agent.initialize(SystemSnapshot(cpu_model="Ryzen 7", gpu_model="RTX 4070", cpu_cores=8))
    await agent.activate()
    return agent


@pytest.mark.asyncio
async def test_lifecycle_transitions() -> None:
    agent = GamingAgent()
    assert agent.state == AgentState.UNINITIALIZED

    with pytest.raises(ValueError):
        await agent.activate()

    await agent.initialize(SystemSnapshot())
    assert agent.state == AgentState.READY

    await agent.activate()
    assert agent.state == AgentState.ACTIVE

    await agent.shutdown()
    assert agent.state == AgentState.SHUTDOWN


@pytest.mark.asyncio
async def test_unknown_action_fails_without_state_change() -> None:
    agent = await _active(GamingAgent())

    result = await agent.apply("TeleportFrames")

    assert result.success is False
    assert result.message == "Action not implemented: TeleportFrames"
    assert agent.state == AgentState.ACTIVE


@pytest.mark.asyncio
async def test_successful_apply_reports_action_message() -> None:
    actuator = SimulatedActuator()
    agent = await _active(GamingAgent(actuator=actuator))

    result = await agent.apply("DisableVSync")

    assert result.success is True
    assert result.message == "VSync disabled - reduced input latency"
    assert result.improvement == 1.5
    assert list(actuator.performed) == [("Gaming", "DisableVSync", {})]
    assert agent.state == AgentState.ACTIVE
    assert (await agent.get_current_metrics())["InputLatency"] == 1.5


@pytest.mark.asyncio
async def test_refused_action_keeps_unit_active() -> None:
    agent = await _active(GamingAgent(actuator=SimulatedActuator(failing_actions={"DisableVSync"})))

    result = await agent.apply("DisableVSync")

    assert result.success is False
    assert result.message == "Could not apply DisableVSync"
    assert agent.state == AgentState.ACTIVE


@pytest.mark.asyncio
async def test_actuator_fault_moves_unit_to_error() -> None:
    agent = await _active(GamingAgent(actuator=SimulatedActuator(raising_actions={"DisableVSync"})))

    result = await agent.apply("DisableVSync")

    assert result.success is False
    assert result.message.startswith("Error: ")
    assert agent.state == AgentState.ERROR

    await agent.initialize(SystemSnapshot())
    assert agent.state == AgentState.READY


@pytest.mark.asyncio
async def test_learning_is_a_moving_average() -> None:
    agent = await _active(GamingAgent())
    success = AgentFeedback(feedback_type=FeedbackType.SUCCESS, action_name="DisableVSync")
    failure = AgentFeedback(feedback_type=FeedbackType.FAILURE, action_name="DisableVSync")

    await agent.learn("Gaming_optimization", success)
    assert agent.confidence == pytest.approx(0.65)

    await agent.learn("Gaming_optimization", failure)
    assert agent.confidence == pytest.approx(0.455)
    assert agent.expected_improvement("DisableVSync") == pytest.approx(70.0)


@pytest.mark.asyncio
async def test_learning_records_episode_in_memory() -> None:
    memory = MemorySystem()
    agent = await _active(GamingAgent(memory=memory))
    result = ActionResult(action_name="DisableVSync", success=True, message="VSync disabled", improvement=30)

    episode = await agent.learn("Gaming_optimization", AgentFeedback.from_result(result, "InputLatency"))

    assert episode is not None
    assert episode.tags == ("Gaming", "InputLatency", "Success")
    assert episode.significance.name == "VERY_POSITIVE"
    assert memory.episodic.contains(episode.id)


@pytest.mark.asyncio
async def test_reason_is_deterministic_and_side_effect_free() -> None:
    actuator = SimulatedActuator()
    agent = await _active(GamingAgent(actuator=actuator))
    context = {
        "activity": ActivitySnapshot(running_processes=["VALORANT.exe"]),
        "system": SystemSnapshot(current_fps=100, input_latency_ms=5.0),
    }

    first = await agent.reason("Gaming_optimization", context)
    second = await agent.reason("Gaming_optimization", context)

    assert first.actions == second.actions
    assert first.confidence == second.confidence
    assert first.actions[:4] == ["DisableVSync", "BoostTimerResolution", "MaxPollingRate", "ReduceRenderLatency"]
    assert first.optimization_metric == "InputLatency"
    assert actuator.performed_count == 0
    assert agent.confidence == 0.5


@pytest.mark.asyncio
async def test_auto_apply_requires_confidence_above_floor() -> None:
    agent = await _active(StreamingAgent(auto_apply_floor=0.95))

    recommendation = await agent.reason("Streaming_optimization", {"platform": "Twitch", "drop_frame_rate": 5})

    assert "ReduceBitrate" in recommendation.actions
    assert recommendation.auto_apply is False


@pytest.mark.asyncio
async def test_no_opinion_when_nothing_applies() -> None:
    agent = await _active(StreamingAgent())

    recommendation = await agent.reason("Streaming_optimization", {"platform": "Twitch", "bitrate": 8})

    assert recommendation.actions == []
    assert recommendation.confidence == 0.0
    assert recommendation.auto_apply is False


@pytest.mark.asyncio
async def test_development_unit_tunes_slow_builds() -> None:
    agent = await _active(DevelopmentAgent())

    recommendation = await agent.reason(
        "Development_optimization",
        {"ide": "Visual Studio 2022", "compile_time": 75, "ram_usage": 60},
    )

    assert recommendation.actions == [
        "EnableIncrementalBuild",
        "OptimizeProjectReferences",
        "DisableUnnecessaryExtensions",
        "EnableParallelBuilds",
    ]
    assert recommendation.auto_apply is True


@pytest.mark.asyncio
async def test_content_creation_unit_handles_heavy_renders() -> None:
    agent = await _active(ContentCreationAgent())

    recommendation = await agent.reason(
        "ContentCreation_optimization",
        {"tool": "Blender", "content_type": "4K animation", "estimated_render_time": 150},
    )

    assert recommendation.actions[:2] == ["EnableGPUAcceleration", "OptimizeRenderSettings"]
    assert "EnableOptixDenoising" in recommendation.actions
    assert "EnableProxyEditing" in recommendation.actions
    assert recommendation.auto_apply is True


def test_requirements_reflect_priority_override() -> None:
    agent = GamingAgent()

    agent.set_resource_priority(1.7)

    assert agent.declare_requirements().priority == 1.0
    assert GamingAgent.REQUIREMENTS.priority == 0.9


def test_bottleneck_detection() -> None:
    assert GamingAgent.detect_bottleneck(SystemSnapshot(gpu_temp=90)) == "GPU"
    assert GamingAgent.detect_bottleneck(SystemSnapshot(cpu_cores=4)) == "CPU"
    assert GamingAgent.detect_bottleneck(SystemSnapshot(total_ram_gb=8)) == "RAM"
    assert GamingAgent.detect_bottleneck(SystemSnapshot(storage_type="HDD")) == "Storage"
    assert GamingAgent.detect_bottleneck(SystemSnapshot()) == "Balanced"


class StallingActuator(SimulatedActuator):
    """Blocks inside perform until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def perform(self, domain, action, params) -> bool:
        self.entered.set()
        await self.release.wait()
        return await super().perform(domain, action, params)


@pytest.mark.asyncio
async def test_cancelled_apply_does_not_leave_unit_optimizing() -> None:
    actuator = StallingActuator()
    agent = await _active(GamingAgent(actuator=actuator))

    task = asyncio.create_task(agent.apply("DisableVSync"))
    await actuator.entered.wait()
    assert agent.state == AgentState.OPTIMIZING

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert agent.state == AgentState.ACTIVE
    assert actuator.performed_count == 0
