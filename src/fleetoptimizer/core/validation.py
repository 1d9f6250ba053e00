"""Input validation for snapshots and CLI arguments"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .base import (
    DisruptionEvent, NodePoolState, NodeUsageSnapshot, Workload,
    normalize_architecture, normalize_capacity_class
)
from .exceptions import ValidationError
from .units import parse_cpu, parse_memory


class Validator:
    """Central validation utility"""

    PATTERNS = {
        'instance_type': re.compile(r'^[a-z][a-z0-9-]*\.[a-z0-9]+$'),
        'node_pool': re.compile(r'^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$'),
    }

    CAPACITY_CLASSES = ('on-demand', 'ondemand', 'spot')
    ARCHITECTURES = ('amd64', 'x86_64', 'arm64', 'aarch64')

    @classmethod
    def validate_instance_type(cls, instance_type: str) -> str:
        """Validate an instance type identifier such as m6i.xlarge"""
        value = (instance_type or "").strip().lower()
        if not cls.PATTERNS['instance_type'].match(value):
            raise ValidationError(f"Invalid instance type: {instance_type}")
        return value

    @classmethod
    def validate_capacity_class(cls, capacity_class: str) -> str:
        value = (capacity_class or "").strip().lower()
        if value not in cls.CAPACITY_CLASSES:
            raise ValidationError(f"Invalid capacity class: {capacity_class}")
        return normalize_capacity_class(value).value

    @classmethod
    def validate_architecture(cls, architecture: str) -> str:
        value = (architecture or "").strip().lower()
        if value not in cls.ARCHITECTURES:
            raise ValidationError(f"Invalid architecture: {architecture}")
        return normalize_architecture(value).value

    @classmethod
    def validate_node_pool_name(cls, name: str) -> str:
        if not name or len(name) > 253 or not cls.PATTERNS['node_pool'].match(name):
            raise ValidationError(f"Invalid node pool name: {name}")
        return name

    @classmethod
    def validate_positive(cls, value: Union[int, float, str], name: str = "value") -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a number")
        if number <= 0:
            raise ValidationError(f"{name} must be positive")
        return number


class SnapshotModel(BaseModel):
    """Base model for snapshot validation"""
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')


class NodeModel(SnapshotModel):
    name: str
    node_pool: Optional[str] = None
    instance_type: str = ""
    capacity_type: str = ""
    architecture: str = ""
    cpu_used: float = 0.0
    cpu_allocatable: float = 0.0
    memory_used: float = 0.0
    memory_allocatable: float = 0.0
    pod_count: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None

    @field_validator('cpu_used', 'cpu_allocatable', mode='before')
    @classmethod
    def parse_cpu_quantity(cls, value: Any) -> float:
        return parse_cpu(value)

    @field_validator('memory_used', 'memory_allocatable', mode='before')
    @classmethod
    def parse_memory_quantity(cls, value: Any) -> float:
        return parse_memory(value)

    def to_snapshot(self, pool_name: str) -> NodeUsageSnapshot:
        return NodeUsageSnapshot(
            name=self.name,
            node_pool=self.node_pool or pool_name,
            instance_type=self.instance_type,
            capacity_type=self.capacity_type,
            architecture=self.architecture,
            cpu_used=self.cpu_used,
            cpu_allocatable=self.cpu_allocatable,
            memory_used=self.memory_used,
            memory_allocatable=self.memory_allocatable,
            pod_count=self.pod_count,
            created_at=self.created_at,
        )


class NodePoolModel(SnapshotModel):
    name: str
    architecture: str = "amd64"
    capacity_type: str = "on-demand"
    instance_types: List[str] = Field(default_factory=list)
    taints: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    min_size: Optional[int] = Field(default=None, ge=0)
    max_size: Optional[int] = Field(default=None, ge=0)
    estimated_hourly_cost: float = Field(default=0.0, ge=0)
    nodes: List[NodeModel] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def validate_name(cls, name: str) -> str:
        try:
            return Validator.validate_node_pool_name(name)
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator('architecture')
    @classmethod
    def validate_architecture(cls, architecture: str) -> str:
        return normalize_architecture(architecture).value

    def to_state(self) -> NodePoolState:
        return NodePoolState(
            name=self.name,
            nodes=[n.to_snapshot(self.name) for n in self.nodes],
            architecture=self.architecture,
            capacity_type=self.capacity_type,
            instance_types=list(self.instance_types),
            taints=list(self.taints),
            labels=dict(self.labels),
            min_size=self.min_size,
            max_size=self.max_size,
            estimated_hourly_cost=self.estimated_hourly_cost,
        )


class DisruptionModel(SnapshotModel):
    node_name: str
    node_pool: str
    reason: str
    instance_type: str = ""
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    event_count: int = Field(default=1, ge=1)

    def to_event(self) -> DisruptionEvent:
        return DisruptionEvent(**self.model_dump())


class WorkloadModel(SnapshotModel):
    name: str
    namespace: str = "default"
    cpu_request: str = "0"
    memory_request: str = "0"
    gpu: int = Field(default=0, ge=0)
    labels: Dict[str, str] = Field(default_factory=dict)
    kind: str = "deployment"

    @field_validator('cpu_request', 'memory_request', mode='before')
    @classmethod
    def stringify(cls, value: Any) -> str:
        return str(value)

    def to_workload(self) -> Workload:
        return Workload(**self.model_dump())


class InventorySnapshot(SnapshotModel):
    """A point-in-time dump of node pools, nodes, disruptions and workloads.

    Nodes may be nested under their pool or listed at the top level with a
    node_pool field; top-level nodes naming an unknown pool create it.
    """
    node_pools: List[NodePoolModel] = Field(default_factory=list)
    nodes: List[NodeModel] = Field(default_factory=list)
    disruptions: List[DisruptionModel] = Field(default_factory=list)
    workloads: List[WorkloadModel] = Field(default_factory=list)

    def node_pool_states(self) -> List[NodePoolState]:
        states = {pool.name: pool.to_state() for pool in self.node_pools}
        for node in self.nodes:
            if not node.node_pool:
                continue
            state = states.get(node.node_pool)
            if state is None:
                state = states[node.node_pool] = NodePoolState(
                    name=node.node_pool,
                    architecture=node.architecture or "amd64",
                )
            state.nodes.append(node.to_snapshot(node.node_pool))
        return list(states.values())

    def disruption_events(self) -> List[DisruptionEvent]:
        return [d.to_event() for d in self.disruptions]

    def workload_list(self) -> List[Workload]:
        return [w.to_workload() for w in self.workloads]


def load_snapshot(data: Optional[Dict[str, Any]]) -> InventorySnapshot:
    """Validate raw snapshot data, raising our ValidationError on bad input"""
    try:
        return InventorySnapshot.model_validate(data or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid inventory snapshot: {e}") from e
