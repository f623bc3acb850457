import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "workload-tuner"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.utcnow().isoformat()

    # Orchestration cycle currently running, bound by the orchestrator
    cycle = structlog.contextvars.get_contextvars().get("cycle")
    if cycle is not None:
        event_dict["cycle"] = cycle

    return event_dict


class AgentLogger:
    """Specialized logger for reasoning unit and orchestration events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_agent_event(
        self,
        event_type: str,
        agent_type: str,
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log unit lifecycle events"""

        self.logger.info(
            "agent_event",
            event_type=event_type,
            agent_type=agent_type,
            data=data or {},
            **kwargs
        )

    def log_action_execution(
        self,
        agent_type: str,
        action_name: str,
        params: Optional[Dict[str, Any]] = None,
        success: bool = True,
        message: Optional[str] = None,
        improvement: Optional[float] = None,
        duration_ms: Optional[float] = None
    ):
        """Log an applied action"""

        log = self.logger.info if success else self.logger.warning
        log(
            "action_execution",
            agent_type=agent_type,
            action_name=action_name,
            params=params or {},
            success=success,
            message=message,
            improvement=improvement,
            duration_ms=duration_ms
        )

    def log_cycle_transition(
        self,
        cycle: int,
        from_node: str,
        to_node: str,
        condition: Optional[str] = None,
        state_summary: Optional[Dict[str, Any]] = None
    ):
        """Log orchestration graph transitions"""

        self.logger.debug(
            "cycle_transition",
            cycle_number=cycle,
            from_node=from_node,
            to_node=to_node,
            condition=condition,
            state_summary=state_summary or {}
        )

    def log_memory_update(
        self,
        memory_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log memory mutations"""

        self.logger.info(
            "memory_update",
            memory_type=memory_type,
            action=action,
            details=details or {}
        )


# Global logger instance
agent_logger = AgentLogger("workload_tuner")


class LatencyStats:
    """Running count, total and extremes of one timed operation"""

    def __init__(self):
        self.count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0

    def add(self, duration_ms: float):
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0.0,
            "min": self.min_ms or 0.0,
            "max": self.max_ms,
        }


class MetricsCollector:
    """In-process counters, gauges and latencies for the orchestration loop"""

    def __init__(self):
        self.counters: Dict[str, int] = {}
        self.gauges: Dict[str, float] = {}
        self.latencies: Dict[str, LatencyStats] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).add(duration_ms)
        agent_logger.logger.debug(
            "metric", metric_type="latency", operation=operation, duration_ms=duration_ms, tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        agent_logger.logger.debug("metric", metric_type="counter", name=name, value=value, tags=tags or {})

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        self.gauges[name] = value
        agent_logger.logger.debug("metric", metric_type="gauge", name=name, value=value, tags=tags or {})

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Snapshot of every metric, latencies reduced to count/avg/min/max"""
        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
            "latency": {operation: stats.summary() for operation, stats in self.latencies.items()},
        }

    def reset(self):
        self.counters.clear()
        self.gauges.clear()
        self.latencies.clear()


# Global metrics collector
metrics = MetricsCollector()
