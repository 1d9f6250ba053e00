"""Tests for validation module"""

import pytest

from fleetoptimizer.core.base import CapacityClass
from fleetoptimizer.core.exceptions import ValidationError
from fleetoptimizer.core.validation import (
    InventorySnapshot, NodeModel, NodePoolModel, Validator, WorkloadModel, load_snapshot
)


class TestValidator:
    """Test Validator class"""

    def test_validate_instance_type(self):
        """Test instance type validation"""
        assert Validator.validate_instance_type("m6i.xlarge") == "m6i.xlarge"
        assert Validator.validate_instance_type(" M6I.XLARGE ") == "m6i.xlarge"
        assert Validator.validate_instance_type("x2gd.4xlarge") == "x2gd.4xlarge"

        with pytest.raises(ValidationError):
            Validator.validate_instance_type("m6i")

        with pytest.raises(ValidationError):
            Validator.validate_instance_type("m6i.x large")

    def test_validate_capacity_class(self):
        """Test capacity class validation"""
        assert Validator.validate_capacity_class("spot") == "spot"
        assert Validator.validate_capacity_class("On-Demand") == "on-demand"
        assert Validator.validate_capacity_class("ondemand") == "on-demand"

        with pytest.raises(ValidationError):
            Validator.validate_capacity_class("reserved")

    def test_validate_architecture(self):
        """Test architecture aliases"""
        assert Validator.validate_architecture("x86_64") == "amd64"
        assert Validator.validate_architecture("aarch64") == "arm64"

        with pytest.raises(ValidationError):
            Validator.validate_architecture("riscv64")

    def test_validate_node_pool_name(self):
        """Test node pool names follow Kubernetes naming"""
        assert Validator.validate_node_pool_name("general-purpose") == "general-purpose"

        with pytest.raises(ValidationError):
            Validator.validate_node_pool_name("Bad_Name")

        with pytest.raises(ValidationError):
            Validator.validate_node_pool_name("")

    def test_validate_positive(self):
        assert Validator.validate_positive("2.5") == 2.5

        with pytest.raises(ValidationError):
            Validator.validate_positive(-1)

        with pytest.raises(ValidationError):
            Validator.validate_positive(0, "cpu")

        with pytest.raises(ValidationError):
            Validator.validate_positive("abc")


class TestSnapshotModels:
    """Test pydantic snapshot models"""

    def test_node_quantities_parsed(self):
        """Test Kubernetes quantities become cores and GiB"""
        node = NodeModel(name="n1", cpu_used="1500m", cpu_allocatable="4",
                         memory_used="2048Mi", memory_allocatable="16Gi")
        assert node.cpu_used == 1.5
        assert node.memory_used == 2.0
        assert node.memory_allocatable == 16.0

    def test_node_pool_to_state(self):
        pool = NodePoolModel(
            name="workers",
            architecture="aarch64",
            capacity_type="spot",
            nodes=[{"name": "n1", "instance_type": "m7g.xlarge", "cpu_allocatable": 4}],
        )
        state = pool.to_state()
        assert state.architecture == "arm64"
        assert state.pool_capacity_class == CapacityClass.SPOT
        assert state.nodes[0].node_pool == "workers"

    def test_invalid_pool_name(self):
        with pytest.raises(Exception):
            NodePoolModel(name="Not Valid")

    def test_workload_requests_stringified(self):
        workload = WorkloadModel(name="api", cpu_request=2, memory_request=4).to_workload()
        assert workload.cpu_cores == 2.0
        assert workload.memory_gib == 4.0


class TestInventorySnapshot:
    """Test snapshot loading"""

    def test_load_snapshot(self, snapshot_data):
        snapshot = load_snapshot(snapshot_data)
        states = snapshot.node_pool_states()
        assert [s.name for s in states] == ["workers", "empty"]
        assert states[0].node_count == 10
        assert states[0].cpu_utilization == pytest.approx(20.0)
        assert len(snapshot.disruption_events()) == 2
        assert len(snapshot.workload_list()) == 2

    def test_top_level_nodes_join_pools(self):
        snapshot = InventorySnapshot.model_validate({
            "node_pools": [{"name": "workers"}],
            "nodes": [
                {"name": "n1", "node_pool": "workers", "instance_type": "m6i.xlarge"},
                {"name": "n2", "node_pool": "batch", "instance_type": "c6i.xlarge",
                 "architecture": "amd64"},
                {"name": "orphan"},
            ],
        })
        states = {s.name: s for s in snapshot.node_pool_states()}
        assert states["workers"].node_count == 1
        assert states["batch"].node_count == 1
        assert len(states) == 2

    def test_empty_snapshot(self):
        assert load_snapshot(None).node_pool_states() == []

    def test_invalid_snapshot(self):
        with pytest.raises(ValidationError):
            load_snapshot({"node_pools": [{"name": "ok", "nodes": [{"pod_count": -1}]}]})
