from typing import List, Optional, Protocol, Union

from workload_tuner.domain.models.snapshots import SystemSnapshot, ActivitySnapshot


class SystemSnapshotProvider(Protocol):
    """Supplies hardware and performance readings on demand"""

    async def get_system_snapshot(self) -> SystemSnapshot:
        ...


class ActivitySnapshotProvider(Protocol):
    """Supplies process and window readings on demand"""

    async def get_activity_snapshot(self) -> ActivitySnapshot:
        ...


class InMemorySnapshotProvider:
    """Serves queued snapshots, repeating the last one once the queue is drained.

    A queued exception is raised instead of returned, which lets hosts and
    tests simulate telemetry outages.
    """

    def __init__(
        self,
        system: Optional[SystemSnapshot] = None,
        activity: Optional[ActivitySnapshot] = None,
    ):
        self._system_queue: List[Union[SystemSnapshot, Exception]] = []
        self._activity_queue: List[Union[ActivitySnapshot, Exception]] = []
        self._last_system = system or SystemSnapshot()
        self._last_activity = activity or ActivitySnapshot()

    def push_system(self, snapshot: Union[SystemSnapshot, Exception]):
        self._system_queue.append(snapshot)

    def push_activity(self, snapshot: Union[ActivitySnapshot, Exception]):
        self._activity_queue.append(snapshot)

    def set_activity(self, activity: ActivitySnapshot):
        """Replace the standing activity reading"""
        self._activity_queue.clear()
        self._last_activity = activity

    def set_system(self, system: SystemSnapshot):
        """Replace the standing system reading"""
        self._system_queue.clear()
        self._last_system = system

    async def get_system_snapshot(self) -> SystemSnapshot:
        if self._system_queue:
            item = self._system_queue.pop(0)
            if isinstance(item, Exception):
                raise item
            self._last_system = item
        return self._last_system

    async def get_activity_snapshot(self) -> ActivitySnapshot:
        if self._activity_queue:
            item = self._activity_queue.pop(0)
            if isinstance(item, Exception):
                raise item
            self._last_activity = item
        return self._last_activity
