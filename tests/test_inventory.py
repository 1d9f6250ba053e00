"""Tests for snapshot inventory"""

import json

import pytest

from fleetoptimizer.core.exceptions import InventoryUnavailableError, OperationCancelledError
from fleetoptimizer.core.retry import CallContext
from fleetoptimizer.providers.inventory import SnapshotInventory


class TestSnapshotInventory:
    """Test reading node pools and disruptions from a file"""

    def test_yaml_snapshot(self, snapshot_file):
        inventory = SnapshotInventory(snapshot_file)
        pools = inventory.list_node_pools()
        assert [p.name for p in pools] == ["workers", "empty"]
        assert pools[0].total_memory_allocatable == 160.0

    def test_json_snapshot(self, tmp_path, snapshot_data):
        path = tmp_path / "cluster.json"
        path.write_text(json.dumps(snapshot_data))
        assert len(SnapshotInventory(path).list_node_pools()) == 2

    def test_disruption_window(self, snapshot_file):
        """Test old events drop out while undated events are kept"""
        events = SnapshotInventory(snapshot_file).list_disruptions(window_hours=168)
        assert [e.node_name for e in events] == ["workers-0"]

    def test_workloads(self, snapshot_file):
        workloads = SnapshotInventory(snapshot_file).list_workloads()
        assert [w.name for w in workloads] == ["api", "worker"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(InventoryUnavailableError):
            SnapshotInventory(tmp_path / "absent.yaml").list_node_pools()

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("node_pools: [unclosed")
        with pytest.raises(InventoryUnavailableError):
            SnapshotInventory(path).list_node_pools()

    def test_invalid_contents(self, tmp_path):
        path = tmp_path / "invalid.json"
        path.write_text(json.dumps({"node_pools": [{"name": "BAD NAME"}]}))
        with pytest.raises(InventoryUnavailableError):
            SnapshotInventory(path).list_node_pools()

    def test_cancelled_context(self, snapshot_file):
        ctx = CallContext()
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            SnapshotInventory(snapshot_file).list_node_pools(ctx)
