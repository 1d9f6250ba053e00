"""The fleet recommendation pipeline for one or many node pools"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence

from ..catalog.resolver import InstanceCatalogResolver
from ..core.base import (
    Architecture, CapacityClass, DisruptionEvent, NodePoolState, Workload
)
from ..core.retry import CallContext
from ..pricing.resolver import PricingResolver
from .disruptions import DEFAULT_WINDOW_DAYS, DisruptionInsights, summarize_disruptions
from .requirements import CapacityRequirementCalculator, requirement_from_workloads
from .selector import FleetCandidate, OptimalFleetSelector, order_capacity_classes
from .synthesizer import Recommendation, RecommendationSynthesizer

logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    """Emitted before and after each pool is analysed"""
    node_pool: str
    index: int
    total: int
    message: str
    recommendation: Optional[Recommendation] = None

    @property
    def done(self) -> bool:
        return self.recommendation is not None

    @property
    def progress(self) -> float:
        """Percent of pools finished"""
        if self.total <= 0:
            return 100.0
        finished = self.index if self.done else self.index - 1
        return finished / self.total * 100


class FleetRecommendationEngine:
    """Usage snapshot in, minimum-cost fleet recommendation out"""

    def __init__(self, pricing: PricingResolver,
                 catalog_resolver: InstanceCatalogResolver,
                 calculator: Optional[CapacityRequirementCalculator] = None,
                 selector: Optional[OptimalFleetSelector] = None,
                 synthesizer: Optional[RecommendationSynthesizer] = None):
        self.pricing = pricing
        self.catalog_resolver = catalog_resolver
        self.calculator = calculator or CapacityRequirementCalculator()
        self.selector = selector or OptimalFleetSelector(catalog_resolver, pricing)
        self.synthesizer = synthesizer or RecommendationSynthesizer()

    def current_cost(self, state: NodePoolState, ctx: Optional[CallContext] = None) -> float:
        """Price every node at its own capacity class"""
        total = 0.0
        for node in state.nodes:
            if not node.instance_type:
                continue
            quote = self.pricing.quote(node.instance_type, state.node_capacity_class(node), ctx)
            total += quote.price_per_hour
        if total <= 0 and state.estimated_hourly_cost > 0:
            return state.estimated_hourly_cost
        return total

    def recommend(self, state: NodePoolState, insights: Optional[DisruptionInsights] = None,
                  ctx: Optional[CallContext] = None) -> Recommendation:
        insights = insights or DisruptionInsights()
        current_cost = self.current_cost(state, ctx)
        target = self.calculator.calculate(state, insights)

        if target.is_zero:
            candidate = FleetCandidate.empty()
        else:
            candidate = self.selector.select(
                target, state.arch, order_capacity_classes(state), ctx
            )

        recommendation = self.synthesizer.synthesize(state, current_cost, candidate, target, insights)
        logger.info(
            f"Pool {state.name}: {state.node_count} nodes at ${current_cost:.2f}/hr -> "
            + (f"{candidate.node_count} nodes at ${candidate.hourly_cost:.2f}/hr"
               if recommendation.has_recommendation else "no change"),
            extra={'node_pool': state.name}
        )
        return recommendation

    def stream(self, pools: Sequence[NodePoolState],
               disruptions: Iterable[DisruptionEvent] = (),
               window_days: int = DEFAULT_WINDOW_DAYS,
               ctx: Optional[CallContext] = None) -> Iterator[ProgressEvent]:
        """Analyse pools one at a time, yielding progress as it goes"""
        disruptions = list(disruptions)
        total = len(pools)
        for index, state in enumerate(pools, start=1):
            yield ProgressEvent(
                node_pool=state.name, index=index, total=total,
                message=f"Analyzing NodePool '{state.name}' ({index}/{total})",
            )
            insights = summarize_disruptions(disruptions, node_pool=state.name,
                                             window_days=window_days)
            recommendation = self.recommend(state, insights, ctx)
            if recommendation.has_recommendation:
                message = (
                    f"Found recommendation for NodePool '{state.name}': "
                    f"{state.node_count} nodes -> {recommendation.recommended.node_count} nodes, "
                    f"savings: ${recommendation.cost_savings:.2f}/hr "
                    f"({recommendation.cost_savings_percent:.1f}%)"
                )
            elif state.node_count == 0:
                message = f"NodePool '{state.name}' has no nodes"
            else:
                message = (
                    f"No recommendation for NodePool '{state.name}' - current cost "
                    f"(${recommendation.current_cost:.2f}/hr) is already optimal"
                )
            yield ProgressEvent(
                node_pool=state.name, index=index, total=total,
                message=message, recommendation=recommendation,
            )

    def recommend_all(self, pools: Sequence[NodePoolState],
                      disruptions: Iterable[DisruptionEvent] = (),
                      ctx: Optional[CallContext] = None) -> List[Recommendation]:
        return [e.recommendation for e in self.stream(pools, disruptions, ctx=ctx) if e.done]

    def size_workloads(self, workloads: Iterable[Workload],
                       architecture=Architecture.AMD64,
                       allowed_classes: Optional[Sequence[CapacityClass]] = None,
                       ctx: Optional[CallContext] = None) -> FleetCandidate:
        """Fleet for a set of workloads that are not yet scheduled anywhere"""
        allowed_classes = list(allowed_classes or [CapacityClass.ON_DEMAND])
        target, gpu = requirement_from_workloads(workloads)
        if gpu > 0:
            return self.selector.plan_gpu_fleet(gpu, allowed_classes[0], ctx)
        return self.selector.select(target, architecture, allowed_classes, ctx)
