"""Tests for capacity requirements and disruption insights"""

from datetime import datetime

import pytest

from fleetoptimizer.core.base import DisruptionEvent, NodePoolState, Workload
from fleetoptimizer.engine.disruptions import (
    DisruptionInsights, DisruptionKind, classify_reason, summarize_disruptions
)
from fleetoptimizer.engine.requirements import (
    CapacityRequirementCalculator, average_node_capacity, minimum_node_floor,
    nodes_needed, requirement_from_workloads
)

from conftest import make_pool


class TestMinimumNodeFloor:
    """Test how far a pool may shrink"""

    @pytest.mark.parametrize("nodes,cpu,memory,expected", [
        (10, 30.0, 30.0, 5),
        (10, 20.0, 20.0, 3),
        (10, 20.0, 25.0, 5),
        (3, 30.0, 30.0, 2),
        (3, 10.0, 10.0, 1),
        (1, 5.0, 5.0, 1),
        (7, 10.0, 10.0, 3),
    ])
    def test_floor(self, nodes, cpu, memory, expected):
        assert minimum_node_floor(nodes, cpu, memory) == expected

    def test_empty_pool(self):
        assert minimum_node_floor(0, 0.0, 0.0) == 0


class TestNodeCapacity:
    def test_nodes_needed(self):
        assert nodes_needed(22, 88, 4, 16) == 6
        assert nodes_needed(1, 1, 4, 16) == 1
        assert nodes_needed(0, 0, 4, 16) == 0

    def test_average_from_allocatable(self):
        assert average_node_capacity(make_pool(count=2)) == (4.0, 16.0)

    def test_average_from_instance_types(self):
        pool = make_pool(count=2, instance_type="c6i.2xlarge", cpu_allocatable=0.0,
                         memory_allocatable=0.0)
        assert average_node_capacity(pool) == (8.0, 16.0)

    def test_default_capacity(self):
        assert average_node_capacity(NodePoolState(name="bare")) == (4.0, 8.0)


class TestCapacityRequirementCalculator:
    """Test required capacity computation"""

    def test_overprovisioned_pool_hits_floor(self, overprovisioned_pool):
        """Test 10 nodes at 20%/25% keep at least five nodes' worth of capacity"""
        target = CapacityRequirementCalculator().calculate(overprovisioned_pool)
        assert target.is_overprovisioned
        assert target.target_utilization == 0.85
        assert target.min_nodes == 5
        assert target.node_estimate == 5
        assert target.required_cpu == pytest.approx(20.0)
        assert target.required_memory == pytest.approx(80.0)

    def test_busy_pool(self):
        """Test a well-used pool is sized for 75% utilization"""
        pool = make_pool(count=4, cpu_used=3.0, memory_used=12.0)
        target = CapacityRequirementCalculator().calculate(pool)
        assert not target.is_overprovisioned
        assert target.target_utilization == 0.75
        assert target.required_cpu == pytest.approx(12.0 / 0.75 * 1.2)
        assert target.required_memory == pytest.approx(48.0 / 0.75 * 1.2)
        assert target.min_nodes == 2

    def test_high_consolidation_marks_overprovisioned(self):
        pool = make_pool(count=4, cpu_used=3.0, memory_used=12.0)
        insights = DisruptionInsights(total=21, consolidations=21, window_days=7)
        target = CapacityRequirementCalculator().calculate(pool, insights)
        assert target.is_overprovisioned
        assert target.target_utilization == 0.85

    def test_empty_pool(self):
        target = CapacityRequirementCalculator().calculate(NodePoolState(name="empty"))
        assert target.is_zero
        assert target.min_nodes == 0


class TestWorkloadRequirement:
    def test_requests_are_buffered(self):
        workloads = [
            Workload("api", cpu_request="500m", memory_request="1Gi"),
            Workload("worker", cpu_request="2", memory_request="4Gi"),
        ]
        target, gpu = requirement_from_workloads(workloads)
        assert target.required_cpu == pytest.approx(2.5 * 1.3)
        assert target.required_memory == pytest.approx(5 * 1.3)
        assert target.min_nodes == 1
        assert gpu == 0

    def test_largest_gpu_request(self):
        workloads = [Workload("train", gpu=3), Workload("infer", gpu=1)]
        assert requirement_from_workloads(workloads)[1] == 3


class TestDisruptions:
    """Test disruption summaries"""

    @pytest.mark.parametrize("reason,kind", [
        ("Consolidation", DisruptionKind.CONSOLIDATION),
        ("Underutilized consolidated", DisruptionKind.CONSOLIDATION),
        ("Expired", DisruptionKind.EXPIRATION),
        ("Drifted", DisruptionKind.EXPIRATION),
        ("SpotTermination", DisruptionKind.TERMINATION),
        ("Deleted", DisruptionKind.TERMINATION),
        ("Unknown", DisruptionKind.OTHER),
        ("", DisruptionKind.OTHER),
    ])
    def test_classify_reason(self, reason, kind):
        assert classify_reason(reason) == kind

    def test_summary_for_one_pool(self):
        events = [
            DisruptionEvent("n1", "workers", "Consolidation"),
            DisruptionEvent("n2", "workers", "Expired", last_seen=datetime(2026, 1, 1)),
            DisruptionEvent("n3", "batch", "Consolidation"),
        ]
        insights = summarize_disruptions(events, node_pool="workers")
        assert insights.total == 2
        assert insights.consolidations == 1
        assert insights.expirations == 1
        assert insights.has_expiration_issues
        assert not insights.has_high_consolidation

    def test_high_consolidation_threshold(self):
        """Test more than two consolidations a day is high"""
        assert not DisruptionInsights(total=14, consolidations=14, window_days=7).has_high_consolidation
        assert DisruptionInsights(total=15, consolidations=15, window_days=7).has_high_consolidation

    def test_empty(self):
        insights = summarize_disruptions([])
        assert insights.total == 0
        assert insights.average_per_day == 0
        assert not insights.has_expiration_issues

    def test_average_per_day_reported(self):
        insights = DisruptionInsights(total=14, consolidations=7, expirations=7, window_days=7)
        data = insights.to_dict()
        assert data["average_per_day"] == pytest.approx(2.0)
        assert data["consolidation_rate"] == pytest.approx(1.0)
