from typing import Dict, List, Any, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field

from workload_tuner.domain.models.agent_state import (
    CONTENDED_DIMENSIONS,
    Recommendation,
    ResolutionPlan,
    ResourceDimension,
    ResourceRequirements,
)


class ResolverPolicy(BaseModel):
    """Admission and allocation limits for one resolution"""
    model_config = ConfigDict(frozen=True)

    admission_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    resource_ceiling: float = Field(default=0.30, gt=0.0, le=1.0, description="Per-unit share cap")
    min_viable_share: float = Field(default=0.10, ge=0.0, le=1.0)

    @classmethod
    def from_settings(cls, settings) -> "ResolverPolicy":
        return cls(
            admission_floor=settings.admission_floor,
            resource_ceiling=settings.resource_ceiling,
            min_viable_share=settings.min_viable_share,
        )


class ConflictResolver:
    """Turns competing recommendations and resource demands into one plan.

    Pure: the same inputs always give the same plan and nothing outside the
    returned ResolutionPlan is touched. Input order is the declaration order
    used to break priority ties.
    """

    def __init__(self, policy: Optional[ResolverPolicy] = None):
        self.policy = policy or ResolverPolicy()

    def is_admissible(self, recommendation: Recommendation) -> bool:
        return recommendation.auto_apply or recommendation.confidence > self.policy.admission_floor

    def resolve(
        self,
        recommendations: Dict[str, Recommendation],
        requirements: Dict[str, ResourceRequirements],
    ) -> ResolutionPlan:
        eligible: List[str] = []
        deferred: List[str] = []
        for unit, recommendation in recommendations.items():
            if self.is_admissible(recommendation):
                eligible.append(unit)
            else:
                deferred.append(unit)

        demands = {unit: requirements.get(unit) or ResourceRequirements(agent_type=unit) for unit in eligible}

        # sorted() is stable, so equal priorities keep declaration order
        ordered = sorted(eligible, key=lambda unit: demands[unit].priority, reverse=True)

        allocations: Dict[str, Dict[ResourceDimension, float]] = {unit: {} for unit in ordered}
        reductions: List[Dict[str, Any]] = []

        for dimension in CONTENDED_DIMENSIONS:
            shares = self._allocate_dimension(dimension, ordered, demands)
            reductions.extend(self._reduce_conflicts(dimension, ordered, demands, shares))
            for unit, share in shares.items():
                allocations[unit][dimension] = share

        dropped = [
            unit for unit in ordered
            if any(
                demands[unit].demand_for(dimension) > 0 and allocations[unit].get(dimension, 0.0) <= 0.0
                for dimension in CONTENDED_DIMENSIONS
            )
        ]

        execution_plan = {
            unit: list(recommendations[unit].actions)
            for unit in ordered
            if unit not in dropped and recommendations[unit].actions
        }

        return ResolutionPlan(
            execution_plan=execution_plan,
            allocations={unit: shares for unit, shares in allocations.items() if unit not in dropped},
            admitted=ordered,
            deferred=deferred,
            dropped=dropped,
            reductions=reductions,
        )

    def _allocate_dimension(
        self,
        dimension: ResourceDimension,
        ordered: List[str],
        demands: Dict[str, ResourceRequirements],
    ) -> Dict[str, float]:
        """Sequential capped allocation in priority order"""

        demanders = [unit for unit in ordered if demands[unit].demand_for(dimension) > 0]
        if len(demanders) == 1:
            unit = demanders[0]
            return {unit: min(demands[unit].demand_for(dimension), 1.0)}

        shares: Dict[str, float] = {}
        headroom = 1.0
        for unit in demanders:
            share = max(0.0, min(demands[unit].demand_for(dimension), self.policy.resource_ceiling, headroom))
            shares[unit] = share
            headroom -= share
        return shares

    def _reduce_conflicts(
        self,
        dimension: ResourceDimension,
        ordered: List[str],
        demands: Dict[str, ResourceRequirements],
        shares: Dict[str, float],
    ) -> List[Dict[str, Any]]:
        """Cut the lower-priority side of each conflicting pair by the dimension's overflow"""

        overflow = sum(demands[unit].demand_for(dimension) for unit in shares) - 1.0
        if overflow <= 0:
            return []

        reductions: List[Dict[str, Any]] = []
        for higher, lower in self._conflicting_pairs(ordered, demands):
            if higher not in shares or lower not in shares or any(r["unit"] == lower for r in reductions):
                continue

            current = shares[lower]
            reduced = min(current, max(self.policy.min_viable_share, current - overflow))
            if reduced < current:
                shares[lower] = reduced
                reductions.append({
                    "unit": lower,
                    "dimension": dimension.value,
                    "from": current,
                    "to": reduced,
                    "in_favor_of": higher,
                })
        return reductions

    @staticmethod
    def _conflicting_pairs(
        ordered: List[str],
        demands: Dict[str, ResourceRequirements],
    ) -> List[Tuple[str, str]]:
        pairs = []
        for i, higher in enumerate(ordered):
            for lower in ordered[i + 1:]:
                if (
                    demands[higher].conflicts_with_domain(demands[lower].agent_type)
                    or demands[lower].conflicts_with_domain(demands[higher].agent_type)
                ):
                    pairs.append((higher, lower))
        return pairs
