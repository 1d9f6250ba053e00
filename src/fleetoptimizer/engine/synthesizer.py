"""Before/after comparison, cost-regression guard and rationale text"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..core.base import BaseExplainer, CapacityClass, NodePoolState
from ..core.exceptions import FleetOptimizerError
from .disruptions import DisruptionInsights
from .requirements import CapacityTarget
from .selector import FleetCandidate

logger = logging.getLogger(__name__)

# A candidate costing more than this multiple of the current fleet is discarded
COST_REGRESSION_LIMIT = 1.1

NO_NODES_RATIONALE = "No nodes currently exist in this NodePool."
ALREADY_OPTIMAL = "No cost-saving recommendations available. Current configuration is already optimal."


@dataclass
class Recommendation:
    node_pool: str
    current: NodePoolState
    current_cost: float
    recommended: FleetCandidate
    cost_savings: float = 0.0
    cost_savings_percent: float = 0.0
    rationale: str = ""
    explanation: Optional[str] = None
    has_recommendation: bool = False
    target: Optional[CapacityTarget] = None
    insights: DisruptionInsights = field(default_factory=DisruptionInsights)

    @property
    def recommended_cost(self) -> float:
        return self.recommended.hourly_cost

    def to_dict(self) -> Dict[str, Any]:
        current = self.current
        return {
            "node_pool": self.node_pool,
            "has_recommendation": self.has_recommendation,
            "current": {
                "node_count": current.node_count,
                "instance_types": current.distinct_instance_types(),
                "capacity_type": current.pool_capacity_class.value,
                "spot_nodes": current.spot_nodes,
                "on_demand_nodes": current.on_demand_nodes,
                "architecture": current.arch.value,
                "cpu_used": current.total_cpu_used,
                "cpu_allocatable": current.total_cpu_allocatable,
                "memory_used": current.total_memory_used,
                "memory_allocatable": current.total_memory_allocatable,
                "cpu_utilization": current.cpu_utilization,
                "memory_utilization": current.memory_utilization,
                "hourly_cost": self.current_cost,
                "taints": list(current.taints),
            },
            "recommended": self.recommended.to_dict(),
            "cost_savings": self.cost_savings,
            "cost_savings_percent": self.cost_savings_percent,
            "rationale": self.rationale,
            "explanation": self.explanation,
            "disruptions": self.insights.to_dict(),
        }


def current_fleet(state: NodePoolState, current_cost: float) -> FleetCandidate:
    """The pool as it stands, in FleetCandidate form"""
    return FleetCandidate(
        instance_types=state.distinct_instance_types() if state.node_count else [],
        node_count=state.node_count,
        capacity_class=state.pool_capacity_class,
        total_cpu=state.total_cpu_allocatable,
        total_memory=state.total_memory_allocatable,
        hourly_cost=current_cost,
    )


class RecommendationSynthesizer:
    """Builds the final Recommendation for a pool"""

    def __init__(self, explainer: Optional[BaseExplainer] = None):
        self.explainer = explainer

    def synthesize(self, state: NodePoolState, current_cost: float, candidate: FleetCandidate,
                   target: Optional[CapacityTarget] = None,
                   insights: Optional[DisruptionInsights] = None) -> Recommendation:
        insights = insights or DisruptionInsights()

        if state.node_count == 0:
            return Recommendation(
                node_pool=state.name,
                current=state,
                current_cost=0.0,
                recommended=FleetCandidate.empty(),
                rationale=NO_NODES_RATIONALE,
                target=target,
                insights=insights,
            )

        if candidate.is_empty:
            accepted = False
        elif candidate.hourly_cost > current_cost * COST_REGRESSION_LIMIT:
            logger.info(
                f"Pool {state.name}: discarding candidate at ${candidate.hourly_cost:.2f}/hr, "
                f"more than {COST_REGRESSION_LIMIT}x the current ${current_cost:.2f}/hr",
                extra={'node_pool': state.name}
            )
            accepted = False
        else:
            accepted = candidate.hourly_cost < current_cost

        if not accepted:
            rationale = self._current_summary(state, current_cost) + ALREADY_OPTIMAL
            rationale += self._disruption_notes(insights)
            recommendation = Recommendation(
                node_pool=state.name,
                current=state,
                current_cost=current_cost,
                recommended=current_fleet(state, current_cost),
                rationale=rationale,
                target=target,
                insights=insights,
            )
        else:
            savings = current_cost - candidate.hourly_cost
            percent = savings / current_cost * 100 if current_cost > 0 else 0.0
            recommendation = Recommendation(
                node_pool=state.name,
                current=state,
                current_cost=current_cost,
                recommended=candidate,
                cost_savings=savings,
                cost_savings_percent=percent,
                rationale=self._rationale(state, current_cost, candidate, target,
                                          insights, savings, percent),
                has_recommendation=True,
                target=target,
                insights=insights,
            )

        recommendation.explanation = self._explain(recommendation)
        return recommendation

    def _current_summary(self, state: NodePoolState, current_cost: float) -> str:
        return (
            f"Current setup: {state.node_count} nodes providing "
            f"{state.total_cpu_allocatable:.1f} CPU cores ({state.cpu_utilization:.1f}% used) and "
            f"{state.total_memory_allocatable:.1f} GiB memory ({state.memory_utilization:.1f}% used) "
            f"at ${current_cost:.2f}/hr. "
        )

    def _rationale(self, state, current_cost, candidate, target, insights, savings, percent) -> str:
        text = self._current_summary(state, current_cost)

        if target is not None and target.is_overprovisioned:
            text += (
                f"The pool is over-provisioned, so capacity is sized for "
                f"{target.target_utilization * 100:.0f}% utilization. "
            )

        types = ", ".join(
            f"{t} x{n}" for t, n in candidate.nodes_per_type().items() if n
        )
        text += (
            f"Recommended: {candidate.node_count} nodes with {types} "
            f"({candidate.capacity_class.value}) providing {candidate.total_cpu:.1f} CPU cores "
            f"and {candidate.total_memory:.1f} GiB memory at ${candidate.hourly_cost:.2f}/hr. "
        )

        if candidate.capacity_class == CapacityClass.SPOT and state.on_demand_nodes > 0:
            text += f"Converting {state.on_demand_nodes} on-demand nodes to spot for additional savings. "
        elif candidate.capacity_class == CapacityClass.SPOT and state.spot_nodes > 0:
            text += "Maintaining spot instances. "

        text += self._disruption_notes(insights, trailing=True)
        text += f"Potential savings: ${savings:.2f}/hr ({percent:.1f}%)."
        return text

    def _disruption_notes(self, insights: DisruptionInsights, trailing: bool = False) -> str:
        notes = []
        if insights.has_high_consolidation:
            notes.append(
                f"Frequent consolidations ({insights.consolidation_rate:.1f}/day) "
                f"point to excess capacity."
            )
        if insights.has_expiration_issues:
            notes.append(
                "Many disruptions are expirations or drift; review node expiry settings."
            )
        if not notes:
            return ""
        joined = " ".join(notes)
        return f"{joined} " if trailing else f" {joined}"

    def _explain(self, recommendation: Recommendation) -> Optional[str]:
        if self.explainer is None:
            return None
        try:
            text = self.explainer.explain(recommendation.to_dict())
        except FleetOptimizerError as e:
            logger.warning(f"Explanation unavailable for {recommendation.node_pool}: {e}")
            return None
        return text.strip() or None
