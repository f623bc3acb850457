from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetentionPolicy(str, Enum):
    """What happens to a unit whose workload is no longer detected"""
    RETAIN = "retain"
    EVICT = "evict"


class OrchestratorSettings(BaseSettings):
    """Orchestrator configuration, overridable through WORKLOAD_TUNER_* variables"""

    model_config = SettingsConfigDict(env_prefix="WORKLOAD_TUNER_")

    # Run-loop
    cycle_interval_seconds: float = Field(default=5.0, gt=0)
    reason_timeout_seconds: float = Field(default=0.3, gt=0)
    consolidation_interval_cycles: int = Field(default=60, ge=1)

    # Conflict resolution
    resource_ceiling: float = Field(default=0.30, gt=0, le=1.0, description="Per-unit share cap")
    min_viable_share: float = Field(default=0.10, ge=0, le=1.0)
    admission_floor: float = Field(default=0.8, ge=0, le=1.0)
    auto_apply_floor: float = Field(default=0.5, ge=0, le=1.0)

    # Attention
    max_active_attention: int = Field(default=3, ge=1)
    attention_relevance_floor: float = Field(default=0.3, ge=0, le=1.0)
    attention_dampening: float = Field(default=0.1, ge=0)
    attention_history_limit: int = Field(default=100, ge=1)

    # Memory
    episode_capacity: int = Field(default=5000, ge=1, description="Episodes kept before the oldest are evicted")

    # Unit retention
    retention_policy: RetentionPolicy = RetentionPolicy.RETAIN
    eviction_grace_cycles: int = Field(default=3, ge=1)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    service_name: str = "workload-tuner"

    @field_validator("min_viable_share")
    @classmethod
    def _floor_below_ceiling(cls, value: float, info):
        ceiling = info.data.get("resource_ceiling")
        if ceiling is not None and value > ceiling:
            raise ValueError("min_viable_share cannot exceed resource_ceiling")
        return value


@lru_cache()
def get_settings() -> OrchestratorSettings:
    """Process-wide settings loaded from the environment"""
    return OrchestratorSettings()
