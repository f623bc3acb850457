import pytest
from pydantic import ValidationError

from workload_tuner.domain.orchestration.core.conflict_resolver import ResolverPolicy
from workload_tuner.infrastructure.config.settings import OrchestratorSettings, RetentionPolicy


def test_defaults() -> None:
    settings = OrchestratorSettings()

    assert settings.cycle_interval_seconds == 5.0
    assert settings.reason_timeout_seconds == 0.3
    assert settings.retention_policy == RetentionPolicy.RETAIN
    assert settings.consolidation_interval_cycles == 60
    assert settings.episode_capacity == 5000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKLOAD_TUNER_RETENTION_POLICY", "evict")
    monkeypatch.setenv("WORKLOAD_TUNER_ADMISSION_FLOOR", "0.6")

    settings = OrchestratorSettings()

    assert settings.retention_policy == RetentionPolicy.EVICT
    assert ResolverPolicy.from_settings(settings).admission_floor == 0.6


def test_min_viable_share_cannot_exceed_ceiling() -> None:
    with pytest.raises(ValidationError):
        OrchestratorSettings(resource_ceiling=0.2, min_viable_share=0.3)
