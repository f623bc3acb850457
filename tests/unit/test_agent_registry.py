import pytest

from workload_tuner.domain.models.snapshots import ActivitySnapshot
from workload_tuner.domain.orchestration.subagent.agent_registry import AgentRegistry
from workload_tuner.domain.orchestration.subagent.base_subagent import BaseTaskAgent
from workload_tuner.domain.orchestration.subagent.gaming_agent import GamingAgent


def test_default_signatures_match_running_processes() -> None:
    registry = AgentRegistry()
    activity = ActivitySnapshot(running_processes=["obs64.exe", "VALORANT.exe", "Code.exe"])

    detected = registry.match(activity)

    assert detected == {"Gaming": "VALORANT.exe", "Streaming": "obs64.exe", "Development": "Code.exe"}


def test_active_process_alone_is_enough() -> None:
    registry = AgentRegistry()

    detected = registry.match(ActivitySnapshot(active_process="Blender.exe"))

    assert detected == {"ContentCreation": "Blender.exe"}


def test_custom_keywords_override_class_defaults() -> None:
    registry = AgentRegistry(include_defaults=False)
    registry.register(GamingAgent, keywords=["eldenring"])

    assert registry.match(ActivitySnapshot(running_processes=["VALORANT.exe"])) == {}
    assert registry.match(ActivitySnapshot(running_processes=["eldenring.exe"])) == {"Gaming": "eldenring.exe"}
    assert registry.get_agent_class("Gaming") is GamingAgent


def test_unit_class_without_type_is_rejected() -> None:
    class Nameless(BaseTaskAgent):
        async def _reason(self, scenario, context):
            raise NotImplementedError

    registry = AgentRegistry(include_defaults=False)

    with pytest.raises(ValueError):
        registry.register(Nameless, keywords=["x"])
