import pytest

from workload_tuner.domain.streaming.event_emitter import EventEmitter
from workload_tuner.domain.streaming.events import ActionEvent, CycleSkippedEvent, EventType


@pytest.mark.asyncio
async def test_events_reach_only_handlers_of_their_type() -> None:
    emitter = EventEmitter()
    actions, skips = [], []

    async def on_action(event):
        actions.append(event)

    async def on_skip(event):
        skips.append(event)

    emitter.register_event_handler(EventType.ACTION, on_action)
    emitter.register_event_handler("cycle_skipped", on_skip)

    await emitter.emit(ActionEvent(agent_type="Gaming", action_name="DisableVSync", success=True))

    assert len(actions) == 1
    assert skips == []


@pytest.mark.asyncio
async def test_failing_handler_does_not_block_others() -> None:
    emitter = EventEmitter()
    received = []

    async def broken(event):
        raise RuntimeError("sink offline")

    async def healthy(event):
        received.append(event.reason)

    emitter.register_event_handler(EventType.CYCLE_SKIPPED, broken)
    emitter.register_event_handler(EventType.CYCLE_SKIPPED, healthy)

    await emitter.emit(CycleSkippedEvent(reason="sensor timeout"))

    assert received == ["sensor timeout"]


@pytest.mark.asyncio
async def test_unregistered_handler_stops_receiving() -> None:
    emitter = EventEmitter()
    received = []

    async def handler(event):
        received.append(event)

    emitter.register_event_handler(EventType.CYCLE_SKIPPED, handler)
    emitter.unregister_event_handler(EventType.CYCLE_SKIPPED, handler)

    await emitter.emit(CycleSkippedEvent(reason="ignored"))

    assert received == []
