from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from ..units import parse_cpu, parse_memory


class CapacityClass(Enum):
    ON_DEMAND = "on-demand"
    SPOT = "spot"


class Architecture(Enum):
    AMD64 = "amd64"
    ARM64 = "arm64"


def normalize_capacity_class(value: Optional[str],
                             default: CapacityClass = CapacityClass.ON_DEMAND) -> CapacityClass:
    """Map the many spellings seen in node labels onto a CapacityClass"""
    if isinstance(value, CapacityClass):
        return value
    if not value:
        return default
    if value.strip().lower() == "spot":
        return CapacityClass.SPOT
    return CapacityClass.ON_DEMAND


def normalize_architecture(value: Optional[str]) -> Architecture:
    if isinstance(value, Architecture):
        return value
    lowered = (value or "").strip().lower()
    if lowered in ("arm64", "aarch64", "arm"):
        return Architecture.ARM64
    return Architecture.AMD64


@dataclass(frozen=True)
class Workload:
    """A workload's declared resource requests"""
    name: str
    namespace: str = "default"
    cpu_request: str = "0"
    memory_request: str = "0"
    gpu: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    kind: str = "deployment"

    @property
    def cpu_cores(self) -> float:
        return parse_cpu(self.cpu_request)

    @property
    def memory_gib(self) -> float:
        return parse_memory(self.memory_request)


@dataclass(frozen=True)
class NodeUsageSnapshot:
    """Observed usage of a single node, in cores and GiB"""
    name: str
    node_pool: str
    instance_type: str
    capacity_type: str = ""
    architecture: str = ""
    cpu_used: float = 0.0
    cpu_allocatable: float = 0.0
    memory_used: float = 0.0
    memory_allocatable: float = 0.0
    pod_count: int = 0
    created_at: Optional[datetime] = None


@dataclass
class NodePoolState:
    """Current state of a node pool, aggregated from its nodes"""
    name: str
    nodes: List[NodeUsageSnapshot] = field(default_factory=list)
    architecture: str = "amd64"
    capacity_type: str = "on-demand"
    instance_types: List[str] = field(default_factory=list)
    taints: List[str] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    estimated_hourly_cost: float = 0.0

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def total_cpu_used(self) -> float:
        return sum(n.cpu_used for n in self.nodes)

    @property
    def total_cpu_allocatable(self) -> float:
        return sum(n.cpu_allocatable for n in self.nodes)

    @property
    def total_memory_used(self) -> float:
        return sum(n.memory_used for n in self.nodes)

    @property
    def total_memory_allocatable(self) -> float:
        return sum(n.memory_allocatable for n in self.nodes)

    @property
    def cpu_utilization(self) -> float:
        """CPU utilization in percent, 0 when nothing is allocatable"""
        allocatable = self.total_cpu_allocatable
        if allocatable <= 0:
            return 0.0
        return self.total_cpu_used / allocatable * 100

    @property
    def memory_utilization(self) -> float:
        allocatable = self.total_memory_allocatable
        if allocatable <= 0:
            return 0.0
        return self.total_memory_used / allocatable * 100

    @property
    def arch(self) -> Architecture:
        if self.architecture:
            return normalize_architecture(self.architecture)
        for node in self.nodes:
            if node.architecture:
                return normalize_architecture(node.architecture)
        return Architecture.AMD64

    @property
    def pool_capacity_class(self) -> CapacityClass:
        return normalize_capacity_class(self.capacity_type)

    def node_capacity_class(self, node: NodeUsageSnapshot) -> CapacityClass:
        """A node's own label wins; otherwise it inherits the pool's class"""
        return normalize_capacity_class(node.capacity_type, default=self.pool_capacity_class)

    @property
    def spot_nodes(self) -> int:
        return sum(1 for n in self.nodes if self.node_capacity_class(n) == CapacityClass.SPOT)

    @property
    def on_demand_nodes(self) -> int:
        return self.node_count - self.spot_nodes

    def distinct_instance_types(self) -> List[str]:
        """Instance types in use, in first-seen order; configured types if no nodes"""
        seen: List[str] = []
        for node in self.nodes:
            if node.instance_type and node.instance_type not in seen:
                seen.append(node.instance_type)
        if not seen:
            seen = [t for t in self.instance_types if t]
        return seen
