from typing import Dict, Any, List, Optional
import asyncio
import structlog

from workload_tuner.domain.orchestration.core.main_agent import AgentOrchestrator
from workload_tuner.infrastructure.config.settings import OrchestratorSettings, get_settings
from workload_tuner.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)


class OrchestrationService:
    """Host-facing facade that owns the orchestration loop as a background task"""

    def __init__(
        self,
        orchestrator: Optional[AgentOrchestrator] = None,
        settings: Optional[OrchestratorSettings] = None,
        configure_logging: bool = False,
    ):
        self.settings = settings or (orchestrator.settings if orchestrator else get_settings())
        if configure_logging:
            setup_logging(self.settings.log_level, self.settings.log_format, self.settings.service_name)

        self.orchestrator = orchestrator or AgentOrchestrator(settings=self.settings)
        self._cancel_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        """Start the orchestration loop"""

        if self.is_running:
            logger.warning("Orchestration service already running")
            return

        self._cancel_event = asyncio.Event()
        self._task = asyncio.create_task(self.orchestrator.run_orchestration(self._cancel_event))
        logger.info("Orchestration service started")

    async def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the loop to stop and wait for the in-flight cycle to finish.

        A timeout only ends the wait. The cycle keeps running so an action
        being applied is never interrupted, and the loop exits on its own
        once the cycle completes. Returns False when the loop was still
        running at the timeout.
        """

        if self._task is None:
            return True

        self._cancel_event.set()
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        if not done:
            logger.warning("Orchestration loop still finishing its cycle", timeout_s=timeout)
            return False

        task, self._task, self._cancel_event = self._task, None, None
        if not task.cancelled() and task.exception() is not None:
            logger.error("Orchestration loop ended with an error", error=str(task.exception()))

        logger.info("Orchestration service stopped")
        return True

    def get_active_units(self) -> List[Dict[str, Any]]:
        return self.orchestrator.get_active_units()

    async def get_memory_statistics(self) -> Dict[str, Any]:
        return await self.orchestrator.get_memory_statistics()

    def get_metrics(self) -> Dict[str, Any]:
        """Counters, gauges and cycle latencies collected so far"""
        return metrics.get_metrics_summary()
