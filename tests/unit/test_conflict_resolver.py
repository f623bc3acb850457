from typing import Dict, Tuple

import pytest

from workload_tuner.domain.models.agent_state import (
    Recommendation,
    ResourceDimension,
    ResourceRequirements,
)
from workload_tuner.domain.orchestration.core.conflict_resolver import ConflictResolver, ResolverPolicy

GPU = ResourceDimension.GPU


def _unit(
    name: str,
    *,
    gpu: float = 0.0,
    cpu: float = 0.0,
    priority: float = 0.5,
    confidence: float = 0.9,
    auto_apply: bool = False,
    conflicts_with: Tuple[str, ...] = (),
    actions: Tuple[str, ...] = ("Tune",),
) -> Tuple[Recommendation, ResourceRequirements]:
    recommendation = Recommendation(
        agent_type=name,
        title=f"{name} plan",
        actions=list(actions),
        confidence=confidence,
        auto_apply=auto_apply,
    )
    requirements = ResourceRequirements(
        agent_type=name,
        gpu=gpu,
        cpu=cpu,
        priority=priority,
        conflicts_with=set(conflicts_with),
    )
    return recommendation, requirements


def _split(*units: Tuple[Recommendation, ResourceRequirements]):
    recommendations: Dict[str, Recommendation] = {}
    requirements: Dict[str, ResourceRequirements] = {}
    for recommendation, demand in units:
        recommendations[recommendation.agent_type] = recommendation
        requirements[demand.agent_type] = demand
    return recommendations, requirements


def test_gpu_scenario_caps_both_units_at_ceiling() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.30))
    recommendations, requirements = _split(
        _unit("A", gpu=0.95, priority=0.9),
        _unit("B", gpu=0.30, priority=0.5),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.allocation_for("A", GPU) == pytest.approx(0.30)
    assert plan.allocation_for("B", GPU) == pytest.approx(0.30)
    assert list(plan.execution_plan) == ["A", "B"]
    assert plan.reductions == []


def test_gpu_scenario_with_conflict_reduces_lower_priority_to_min_viable_share() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.30, min_viable_share=0.10))
    recommendations, requirements = _split(
        _unit("A", gpu=0.95, priority=0.9, conflicts_with=("B",)),
        _unit("B", gpu=0.30, priority=0.5),
    )

    plan = resolver.resolve(recommendations, requirements)

    # overflow is 0.95 + 0.30 - 1.0 = 0.25, so B would fall to 0.05 without the floor
    assert plan.allocation_for("A", GPU) == pytest.approx(0.30)
    assert plan.allocation_for("B", GPU) == pytest.approx(0.10)
    assert plan.reductions == [
        {"unit": "B", "dimension": "gpu", "from": pytest.approx(0.30), "to": pytest.approx(0.10), "in_favor_of": "A"}
    ]


def test_reduction_never_raises_a_share() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.30, min_viable_share=0.10))
    recommendations, requirements = _split(
        _unit("A", gpu=0.95, priority=0.9, conflicts_with=("B",)),
        _unit("B", gpu=0.08, priority=0.5),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.allocation_for("B", GPU) == pytest.approx(0.08)
    assert plan.reductions == []


def test_sole_demander_is_not_capped() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.30))
    recommendations, requirements = _split(
        _unit("A", gpu=0.95, priority=0.9),
        _unit("B", cpu=0.40, priority=0.5),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.allocation_for("A", GPU) == pytest.approx(0.95)
    assert plan.allocation_for("B", ResourceDimension.CPU) == pytest.approx(0.40)


def test_shares_never_exceed_ceiling_when_contended() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.25))
    recommendations, requirements = _split(
        _unit("A", gpu=0.9, cpu=0.6, priority=0.9),
        _unit("B", gpu=0.7, cpu=0.9, priority=0.7),
        _unit("C", gpu=0.5, cpu=0.2, priority=0.4),
    )

    plan = resolver.resolve(recommendations, requirements)

    for unit, shares in plan.allocations.items():
        for share in shares.values():
            assert 0.0 <= share <= 0.25
    for dimension in (GPU, ResourceDimension.CPU):
        assert sum(plan.allocation_for(u, dimension) for u in plan.allocations) <= 1.0 + 1e-9


def test_unit_starved_of_a_demanded_dimension_is_dropped() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.5))
    recommendations, requirements = _split(
        _unit("A", gpu=0.6, priority=0.9),
        _unit("B", gpu=0.6, priority=0.8),
        _unit("C", gpu=0.6, priority=0.2),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.dropped == ["C"]
    assert "C" not in plan.execution_plan
    assert "C" not in plan.allocations
    assert plan.admitted == ["A", "B", "C"]


def test_admission_requires_auto_apply_or_confidence_above_floor() -> None:
    resolver = ConflictResolver(ResolverPolicy(admission_floor=0.8))
    recommendations, requirements = _split(
        _unit("AtFloor", confidence=0.8),
        _unit("Above", confidence=0.81),
        _unit("AutoApply", confidence=0.6, auto_apply=True),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.deferred == ["AtFloor"]
    assert set(plan.admitted) == {"Above", "AutoApply"}


@pytest.mark.parametrize("confidence", [0.1, 0.5, 0.79, 0.8])
def test_raising_confidence_never_removes_a_unit_from_admission(confidence: float) -> None:
    resolver = ConflictResolver()
    others = [_unit("Other", gpu=0.3, priority=0.6, confidence=0.9)]

    before = resolver.resolve(*_split(_unit("Probe", gpu=0.2, confidence=confidence), *others))
    after = resolver.resolve(*_split(_unit("Probe", gpu=0.2, confidence=min(1.0, confidence + 0.15)), *others))

    if "Probe" in before.admitted:
        assert "Probe" in after.admitted


def test_equal_priorities_keep_declaration_order() -> None:
    resolver = ConflictResolver(ResolverPolicy(resource_ceiling=0.30))
    recommendations, requirements = _split(
        _unit("First", gpu=0.5, priority=0.7),
        _unit("Second", gpu=0.5, priority=0.7),
        _unit("Third", gpu=0.5, priority=0.9),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.admitted == ["Third", "First", "Second"]
    assert list(plan.execution_plan) == ["Third", "First", "Second"]


def test_resolve_is_deterministic() -> None:
    resolver = ConflictResolver()
    recommendations, requirements = _split(
        _unit("A", gpu=0.95, priority=0.9, conflicts_with=("B",)),
        _unit("B", gpu=0.30, priority=0.5),
    )

    first = resolver.resolve(recommendations, requirements)
    second = resolver.resolve(recommendations, requirements)

    assert first.allocations == second.allocations
    assert first.execution_plan == second.execution_plan


def test_units_without_actions_are_not_planned() -> None:
    resolver = ConflictResolver()
    recommendations, requirements = _split(
        _unit("Idle", gpu=0.2, actions=(), auto_apply=True),
        _unit("Busy", gpu=0.2, actions=("Tune", "Boost")),
    )

    plan = resolver.resolve(recommendations, requirements)

    assert plan.execution_plan == {"Busy": ["Tune", "Boost"]}
