from typing import Dict, Any, Iterable
import asyncio
from datetime import datetime


class StateManager:
    """Tracks whether each unit's workload was seen, cycle by cycle"""

    def __init__(self):
        self.states: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def update_presence(self, known: Iterable[str], detected: Iterable[str], cycle: int) -> Dict[str, int]:
        """Record one detection pass; returns consecutive absent cycles per known unit"""

        detected = set(detected)
        async with self._lock:
            absences: Dict[str, int] = {}
            for agent_type in known:
                state = self.states.setdefault(agent_type, {
                    "agent_type": agent_type,
                    "absent_cycles": 0,
                    "last_seen_cycle": cycle,
                    "created_at": datetime.utcnow().isoformat(),
                })

                if agent_type in detected:
                    state["absent_cycles"] = 0
                    state["last_seen_cycle"] = cycle
                else:
                    state["absent_cycles"] += 1

                state["last_updated"] = datetime.utcnow().isoformat()
                absences[agent_type] = state["absent_cycles"]
            return absences

    async def get_current_state(self, agent_type: str) -> Dict[str, Any]:
        async with self._lock:
            return dict(self.states.get(agent_type, {"agent_type": agent_type, "absent_cycles": 0}))

    async def clear_state(self, agent_type: str):
        """Forget a retired unit"""

        async with self._lock:
            self.states.pop(agent_type, None)

    async def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        async with self._lock:
            return {agent_type: dict(state) for agent_type, state in self.states.items()}
