import asyncio

import pytest

from workload_tuner.application.service.orchestration_service import OrchestrationService
from workload_tuner.domain.actuation.system_actuator import SimulatedActuator
from workload_tuner.domain.context.memory_system import MemorySystem
from workload_tuner.domain.orchestration.core.main_agent import AgentOrchestrator
from workload_tuner.infrastructure.observability.logging import metrics


class SlowActuator(SimulatedActuator):
    """Takes a while to apply each action."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay
        self.started = 0
        self.completed = 0

    async def perform(self, domain, action, params) -> bool:
        self.started += 1
        await asyncio.sleep(self.delay)
        applied = await super().perform(domain, action, params)
        self.completed += 1
        return applied


def _service(settings, provider, emitter, actuator=None) -> OrchestrationService:
    orchestrator = AgentOrchestrator(
        settings=settings,
        memory=MemorySystem(),
        system_provider=provider,
        activity_provider=provider,
        actuator=actuator,
        emitter=emitter,
    )
    return OrchestrationService(orchestrator=orchestrator)


@pytest.mark.asyncio
async def test_start_runs_cycles_until_stopped(settings, provider, emitter) -> None:
    service = _service(settings, provider, emitter)

    await service.start()
    assert service.is_running
    while service.orchestrator.cycle_count < 2:
        await asyncio.sleep(0.01)
    await service.stop(timeout=2)

    assert not service.is_running
    units = service.get_active_units()
    assert [u["type"] for u in units] == ["Gaming"]
    assert units[0]["state"] == "shutdown"


@pytest.mark.asyncio
async def test_start_twice_keeps_single_loop(settings, provider, emitter) -> None:
    service = _service(settings, provider, emitter)

    await service.start()
    first_task = service._task
    await service.start()

    assert service._task is first_task
    await service.stop(timeout=2)


@pytest.mark.asyncio
async def test_stop_without_start_is_a_no_op(settings, provider, emitter) -> None:
    service = _service(settings, provider, emitter)

    await service.stop()

    assert not service.is_running


@pytest.mark.asyncio
async def test_memory_statistics_available_through_service(settings, provider, emitter) -> None:
    service = _service(settings, provider, emitter)

    stats = await service.get_memory_statistics()

    assert stats["overall_health"]["status"] in {"healthy", "learning", "developing"}


@pytest.mark.asyncio
async def test_stop_timeout_lets_in_flight_apply_finish(settings, provider, emitter) -> None:
    actuator = SlowActuator(delay=0.1)
    service = _service(settings, provider, emitter, actuator=actuator)

    await service.start()
    while actuator.started == 0:
        await asyncio.sleep(0.01)

    assert await service.stop(timeout=0.01) is False
    assert service.is_running

    assert await service.stop(timeout=5) is True
    assert not service.is_running
    assert actuator.completed == actuator.started
    assert all(u["state"] == "shutdown" for u in service.get_active_units())


@pytest.mark.asyncio
async def test_metrics_exposed_through_service(settings, provider, emitter) -> None:
    metrics.reset()
    service = _service(settings, provider, emitter)

    await service.orchestrator.run_cycle()
    summary = service.get_metrics()

    assert summary["latency"]["orchestration_cycle"]["count"] == 1
    assert summary["gauges"]["active_units"] == 1
    assert summary["counters"]["actions_applied"] >= 1
