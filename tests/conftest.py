# tests/conftest.py
from typing import List

import pytest

from workload_tuner.domain.actuation.system_actuator import SimulatedActuator
from workload_tuner.domain.context.memory_system import MemorySystem
from workload_tuner.domain.context.snapshot_provider import InMemorySnapshotProvider
from workload_tuner.domain.models.snapshots import ActivitySnapshot, SystemSnapshot
from workload_tuner.domain.streaming.event_emitter import EventEmitter
from workload_tuner.domain.streaming.events import BaseEvent, EventType
from workload_tuner.infrastructure.config.settings import OrchestratorSettings


class EventRecorder:
    """Collects every event it is registered for."""

    def __init__(self) -> None:
        self.events: List[BaseEvent] = []

    async def __call__(self, event: BaseEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[BaseEvent]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def settings() -> OrchestratorSettings:
    """Fast cadence and a floor that fresh units can pass."""
    return OrchestratorSettings(
        cycle_interval_seconds=0.01,
        reason_timeout_seconds=0.2,
        admission_floor=0.5,
    )


@pytest.fixture
def memory() -> MemorySystem:
    return MemorySystem()


@pytest.fixture
def actuator() -> SimulatedActuator:
    return SimulatedActuator()


@pytest.fixture
def gaming_activity() -> ActivitySnapshot:
    return ActivitySnapshot(
        running_processes=["explorer.exe", "VALORANT.exe"],
        active_process="VALORANT.exe",
        category="Gaming",
        is_user_active=True,
    )


@pytest.fixture
def gaming_system() -> SystemSnapshot:
    return SystemSnapshot(cpu_usage=55, gpu_usage=70, current_fps=110, input_latency_ms=6.5, cpu_cores=12)


@pytest.fixture
def provider(gaming_system: SystemSnapshot, gaming_activity: ActivitySnapshot) -> InMemorySnapshotProvider:
    return InMemorySnapshotProvider(system=gaming_system, activity=gaming_activity)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def emitter(recorder: EventRecorder) -> EventEmitter:
    emitter = EventEmitter()
    for event_type in EventType:
        emitter.register_event_handler(event_type, recorder)
    return emitter
