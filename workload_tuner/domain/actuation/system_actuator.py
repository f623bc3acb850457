from typing import Deque, Dict, Any, Optional, Protocol, Set, Tuple
from collections import deque
import structlog

logger = structlog.get_logger(__name__)


class SystemActuator(Protocol):
    """Performs one named action against the operating system.

    Returns True when the change took effect, False when it could not be
    applied. Raising signals an unexpected fault.
    """

    async def perform(self, domain: str, action: str, params: Dict[str, Any]) -> bool:
        ...


class SimulatedActuator:
    """Actuator that records requested actions without touching the host.

    Only the most recent ``history_limit`` requests are kept in
    ``performed``; ``performed_count`` counts all of them.
    """

    def __init__(
        self,
        failing_actions: Optional[Set[str]] = None,
        raising_actions: Optional[Set[str]] = None,
        history_limit: int = 100,
    ):
        self.failing_actions = set(failing_actions or ())
        self.raising_actions = set(raising_actions or ())
        self.performed: Deque[Tuple[str, str, Dict[str, Any]]] = deque(maxlen=history_limit)
        self.performed_count = 0

    async def perform(self, domain: str, action: str, params: Dict[str, Any]) -> bool:
        if action in self.raising_actions:
            raise RuntimeError(f"Actuator fault while applying {action}")

        self.performed.append((domain, action, dict(params)))
        self.performed_count += 1
        if action in self.failing_actions:
            logger.debug("Simulated action refused", domain=domain, action=action)
            return False

        logger.debug("Simulated action applied", domain=domain, action=action)
        return True
