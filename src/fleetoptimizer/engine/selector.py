"""Minimum-cost fleet search over instance type combinations"""

import logging
import math
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..catalog.instance_types import InstanceTypeSpec, parse_instance_type
from ..catalog.resolver import InstanceCatalogResolver
from ..core.base import CapacityClass, NodePoolState, normalize_capacity_class
from ..core.logging import get_performance_logger
from ..core.retry import CallContext
from ..pricing.resolver import PricingResolver, distribute_nodes
from .requirements import CapacityTarget, nodes_needed

logger = logging.getLogger(__name__)

BIN_PACKING_HEADROOM = 1.1
MAX_COMBINATION_SIZE = 3
GPUS_PER_NODE = 4


@dataclass
class FleetCandidate:
    instance_types: List[str] = field(default_factory=list)
    node_count: int = 0
    capacity_class: Optional[CapacityClass] = None
    total_cpu: float = 0.0
    total_memory: float = 0.0
    hourly_cost: float = 0.0

    @classmethod
    def empty(cls) -> "FleetCandidate":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.instance_types or self.node_count == 0

    def nodes_per_type(self) -> Dict[str, int]:
        return distribute_nodes(self.instance_types, self.node_count)

    def to_dict(self) -> Dict:
        return {
            "instance_types": list(self.instance_types),
            "nodes_per_type": self.nodes_per_type(),
            "node_count": self.node_count,
            "capacity_class": self.capacity_class.value if self.capacity_class else None,
            "total_cpu": self.total_cpu,
            "total_memory": self.total_memory,
            "hourly_cost": self.hourly_cost,
        }


def order_capacity_classes(state: NodePoolState) -> List[CapacityClass]:
    """Spot is tried first for any pool that has nodes, to bias toward savings"""
    if state.spot_nodes > 0 or state.on_demand_nodes > 0:
        return [CapacityClass.SPOT, CapacityClass.ON_DEMAND]
    return [CapacityClass.ON_DEMAND, CapacityClass.SPOT]


def provisioned_capacity(specs: Sequence[InstanceTypeSpec], node_count: int) -> Tuple[float, float]:
    """Total (cores, GiB) when node_count nodes are spread across specs"""
    counts = distribute_nodes([s.identifier for s in specs], node_count)
    cpu = sum(s.vcpus * counts[s.identifier] for s in specs)
    memory = sum(s.memory_gib * counts[s.identifier] for s in specs)
    return cpu, memory


class OptimalFleetSelector:
    """Searches single types and 2- and 3-type combinations for the cheapest fleet.

    Node counts come from the combination's average per-node capacity and
    are then topped up until the uneven split actually covers the target.
    """

    def __init__(self, catalog_resolver: InstanceCatalogResolver, pricing: PricingResolver,
                 max_combination_size: int = MAX_COMBINATION_SIZE):
        self.catalog_resolver = catalog_resolver
        self.pricing = pricing
        self.max_combination_size = max_combination_size
        self.performance = get_performance_logger()

    def select(self, target: CapacityTarget, architecture,
               allowed_classes: Iterable[CapacityClass],
               ctx: Optional[CallContext] = None) -> FleetCandidate:
        if target.is_zero:
            return FleetCandidate.empty()

        cpu = target.required_cpu * BIN_PACKING_HEADROOM
        memory = target.required_memory * BIN_PACKING_HEADROOM

        identifiers = self.catalog_resolver.candidate_types(
            architecture, target.required_cpu, target.required_memory, ctx
        )
        specs = [s for s in (parse_instance_type(t) for t in identifiers) if s is not None]
        if not specs:
            logger.warning("No candidate instance types available for the fleet search")
            return FleetCandidate.empty()

        best: Optional[FleetCandidate] = None
        evaluated = 0
        with self.performance.timer("fleet_search", candidates=len(specs)):
            for capacity_class in allowed_classes:
                capacity_class = normalize_capacity_class(capacity_class)
                for size in range(1, self.max_combination_size + 1):
                    for combo in combinations(specs, size):
                        candidate = self.evaluate(combo, capacity_class, cpu, memory,
                                                  target.min_nodes, ctx)
                        evaluated += 1
                        if candidate.hourly_cost <= 0:
                            continue
                        if best is None or candidate.hourly_cost < best.hourly_cost:
                            best = candidate

        if best is None:
            logger.warning(f"None of {evaluated} fleet candidates could be priced")
            return FleetCandidate.empty()

        logger.debug(
            f"Best of {evaluated} candidates: {best.node_count} x {best.instance_types} "
            f"({best.capacity_class.value}) at ${best.hourly_cost:.4f}/hr"
        )
        return best

    def evaluate(self, specs: Sequence[InstanceTypeSpec], capacity_class: CapacityClass,
                 cpu: float, memory: float, min_nodes: int = 0,
                 ctx: Optional[CallContext] = None) -> FleetCandidate:
        avg_cpu = sum(s.vcpus for s in specs) / len(specs)
        avg_memory = sum(s.memory_gib for s in specs) / len(specs)

        nodes = max(nodes_needed(cpu, memory, avg_cpu, avg_memory), min_nodes)
        total_cpu, total_memory = provisioned_capacity(specs, nodes)
        while total_cpu < cpu or total_memory < memory:
            nodes += 1
            total_cpu, total_memory = provisioned_capacity(specs, nodes)

        types = [s.identifier for s in specs]
        return FleetCandidate(
            instance_types=types,
            node_count=nodes,
            capacity_class=capacity_class,
            total_cpu=total_cpu,
            total_memory=total_memory,
            hourly_cost=self.pricing.fleet_cost(types, capacity_class, nodes, ctx),
        )

    def plan_gpu_fleet(self, gpu_count: int, capacity_class=CapacityClass.ON_DEMAND,
                       ctx: Optional[CallContext] = None) -> FleetCandidate:
        """Accelerator fleet sized at four GPUs per node"""
        types = self.catalog_resolver.gpu_candidate_types(gpu_count)
        if not types:
            return FleetCandidate.empty()

        capacity_class = normalize_capacity_class(capacity_class)
        nodes = math.ceil(gpu_count / GPUS_PER_NODE)
        specs = [s for s in (parse_instance_type(t) for t in types) if s is not None]
        total_cpu, total_memory = provisioned_capacity(specs, nodes)
        return FleetCandidate(
            instance_types=types,
            node_count=nodes,
            capacity_class=capacity_class,
            total_cpu=total_cpu,
            total_memory=total_memory,
            hourly_cost=self.pricing.fleet_cost(types, capacity_class, nodes, ctx),
        )
