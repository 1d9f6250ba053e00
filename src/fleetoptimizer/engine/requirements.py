"""Turns observed usage into a target capacity for the fleet search"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ..catalog.instance_types import parse_instance_type
from ..core.base import NodePoolState, Workload
from .disruptions import DisruptionInsights

logger = logging.getLogger(__name__)

OVERPROVISIONED_UTILIZATION = 50.0  # percent
LOW_UTILIZATION = 25.0  # percent
NORMAL_TARGET_UTILIZATION = 0.75
OVERPROVISIONED_TARGET_UTILIZATION = 0.85
CAPACITY_HEADROOM = 1.2
WORKLOAD_REQUEST_BUFFER = 1.3

# Share of the current node count a recommendation may remove
MAX_REDUCTION_PERCENT = 50
RELAXED_MAX_REDUCTION_PERCENT = 70

DEFAULT_NODE_CPU = 4.0
DEFAULT_NODE_MEMORY = 8.0


@dataclass(frozen=True)
class CapacityTarget:
    required_cpu: float = 0.0
    required_memory: float = 0.0
    target_utilization: float = NORMAL_TARGET_UTILIZATION
    min_nodes: int = 0
    node_estimate: int = 0
    is_overprovisioned: bool = False
    cpu_utilization: float = 0.0
    memory_utilization: float = 0.0

    @property
    def is_zero(self) -> bool:
        return self.required_cpu <= 0 and self.required_memory <= 0


def minimum_node_floor(current_nodes: int, cpu_utilization: float, memory_utilization: float) -> int:
    """Fewest nodes a recommendation may propose for a pool of current_nodes.

    Reductions are capped at 50%, or 70% when both axes are below 25%.
    """
    if current_nodes <= 0:
        return 0
    if cpu_utilization < LOW_UTILIZATION and memory_utilization < LOW_UTILIZATION:
        reduction = RELAXED_MAX_REDUCTION_PERCENT
    else:
        reduction = MAX_REDUCTION_PERCENT
    keep = 100 - reduction
    # integer ceiling avoids float error in N * (1 - reduction)
    return max(1, (current_nodes * keep + 99) // 100)


def average_node_capacity(state: NodePoolState) -> Tuple[float, float]:
    """Average (cores, GiB) per node in the pool's current shape"""
    if state.node_count > 0 and state.total_cpu_allocatable > 0 and state.total_memory_allocatable > 0:
        return (state.total_cpu_allocatable / state.node_count,
                state.total_memory_allocatable / state.node_count)

    specs = [s for s in (parse_instance_type(t) for t in state.distinct_instance_types()) if s]
    if not specs:
        return DEFAULT_NODE_CPU, DEFAULT_NODE_MEMORY
    return (sum(s.vcpus for s in specs) / len(specs),
            sum(s.memory_gib for s in specs) / len(specs))


def nodes_needed(cpu: float, memory: float, node_cpu: float, node_memory: float) -> int:
    """ceil(max(cpu / node_cpu, memory / node_memory)), 0 for a zero requirement"""
    if cpu <= 0 and memory <= 0:
        return 0
    ratios = []
    if node_cpu > 0:
        ratios.append(cpu / node_cpu)
    if node_memory > 0:
        ratios.append(memory / node_memory)
    if not ratios:
        return 0
    return max(1, math.ceil(max(ratios)))


class CapacityRequirementCalculator:
    """Computes the capacity a pool should have from its usage and disruptions"""

    def calculate(self, state: NodePoolState,
                  insights: Optional[DisruptionInsights] = None) -> CapacityTarget:
        insights = insights or DisruptionInsights()
        cpu_used = state.total_cpu_used
        memory_used = state.total_memory_used

        if state.node_count == 0 and cpu_used <= 0 and memory_used <= 0:
            return CapacityTarget()

        cpu_util = state.cpu_utilization
        memory_util = state.memory_utilization
        overprovisioned = (
            cpu_util < OVERPROVISIONED_UTILIZATION
            or memory_util < OVERPROVISIONED_UTILIZATION
            or insights.has_high_consolidation
        )
        target_util = OVERPROVISIONED_TARGET_UTILIZATION if overprovisioned else NORMAL_TARGET_UTILIZATION

        required_cpu = cpu_used / target_util * CAPACITY_HEADROOM
        required_memory = memory_used / target_util * CAPACITY_HEADROOM

        node_cpu, node_memory = average_node_capacity(state)
        estimate = nodes_needed(required_cpu, required_memory, node_cpu, node_memory)
        floor = minimum_node_floor(state.node_count, cpu_util, memory_util)

        if estimate < floor:
            logger.debug(
                f"Pool {state.name}: naive estimate {estimate} nodes is below the floor of "
                f"{floor}, raising required capacity",
                extra={'node_pool': state.name}
            )
            required_cpu = max(required_cpu, node_cpu * floor)
            required_memory = max(required_memory, node_memory * floor)
            estimate = floor

        return CapacityTarget(
            required_cpu=required_cpu,
            required_memory=required_memory,
            target_utilization=target_util,
            min_nodes=floor,
            node_estimate=estimate,
            is_overprovisioned=overprovisioned,
            cpu_utilization=cpu_util,
            memory_utilization=memory_util,
        )


def requirement_from_workloads(workloads: Iterable[Workload]) -> Tuple[CapacityTarget, int]:
    """Sum workload requests with a 30% buffer; also return the largest GPU ask"""
    cpu = 0.0
    memory = 0.0
    gpu = 0
    for workload in workloads:
        cpu += workload.cpu_cores
        memory += workload.memory_gib
        gpu = max(gpu, workload.gpu)

    cpu *= WORKLOAD_REQUEST_BUFFER
    memory *= WORKLOAD_REQUEST_BUFFER
    target = CapacityTarget(
        required_cpu=cpu,
        required_memory=memory,
        min_nodes=1 if (cpu > 0 or memory > 0) else 0,
    )
    return target, gpu
