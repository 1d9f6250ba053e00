"""Pytest configuration and fixtures"""

import pytest
import os
from unittest.mock import patch
import yaml

from fleetoptimizer.catalog.resolver import InstanceCatalogResolver
from fleetoptimizer.core.base import (
    BaseExplainer, BasePricingCatalog, CapacityClass, CatalogPrice,
    NodePoolState, NodeUsageSnapshot
)
from fleetoptimizer.core.config import Settings
from fleetoptimizer.core.exceptions import CatalogNotFoundError
from fleetoptimizer.core.retry import RetryPolicy
from fleetoptimizer.engine.recommender import FleetRecommendationEngine
from fleetoptimizer.pricing.cache import PriceCache
from fleetoptimizer.pricing.resolver import PricingResolver


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeCatalog(BasePricingCatalog):
    """In-memory pricing catalog that records every call.

    Entries of `errors` are raised, in order, before any price or listing
    is returned.
    """

    name = "fake"

    def __init__(self, prices=None, types=None, errors=None, price_class=CapacityClass.ON_DEMAND):
        self.prices = dict(prices or {})
        self.types = dict(types or {})
        self.errors = list(errors or [])
        self.price_class = price_class
        self.price_calls = []
        self.list_calls = []

    def get_price(self, instance_type, capacity_class, ctx=None):
        self.price_calls.append((instance_type, capacity_class))
        if self.errors:
            raise self.errors.pop(0)
        if instance_type not in self.prices:
            raise CatalogNotFoundError(f"no price for {instance_type}")
        return CatalogPrice(self.prices[instance_type], self.price_class)

    def list_instance_types(self, architecture, ctx=None):
        self.list_calls.append(architecture)
        if self.errors:
            raise self.errors.pop(0)
        return list(self.types.get(architecture, []))


class FakeExplainer(BaseExplainer):
    def __init__(self, text="Enhanced explanation.", price=0.5, error=None):
        self.text = text
        self.price = price
        self.error = error
        self.contexts = []

    def explain(self, context):
        self.contexts.append(context)
        if self.error:
            raise self.error
        return self.text

    def estimate_price(self, instance_type):
        if self.error:
            raise self.error
        return self.price


def make_node(name, pool="workers", instance_type="m6i.xlarge", cpu_used=0.8, cpu_allocatable=4.0,
              memory_used=4.0, memory_allocatable=16.0, capacity_type="", architecture=""):
    return NodeUsageSnapshot(
        name=name,
        node_pool=pool,
        instance_type=instance_type,
        capacity_type=capacity_type,
        architecture=architecture,
        cpu_used=cpu_used,
        cpu_allocatable=cpu_allocatable,
        memory_used=memory_used,
        memory_allocatable=memory_allocatable,
    )


def make_pool(name="workers", count=10, capacity_type="on-demand", architecture="amd64", **node_kwargs):
    return NodePoolState(
        name=name,
        nodes=[make_node(f"{name}-{i}", pool=name, **node_kwargs) for i in range(count)],
        architecture=architecture,
        capacity_type=capacity_type,
    )


@pytest.fixture
def clock():
    """Manually advanced clock"""
    return FakeClock()


@pytest.fixture
def no_wait_retry():
    """Retry policy that never sleeps"""
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def offline_pricing():
    """Resolver backed only by the static table and family heuristic"""
    return PricingResolver(cache=PriceCache())


@pytest.fixture
def offline_engine(offline_pricing):
    """Engine with no catalog and no text model"""
    return FleetRecommendationEngine(
        pricing=offline_pricing,
        catalog_resolver=InstanceCatalogResolver(),
    )


@pytest.fixture
def overprovisioned_pool():
    """Ten m6i.xlarge nodes at 20% CPU and 25% memory"""
    return make_pool()


@pytest.fixture
def test_settings():
    """Settings with every network collaborator disabled"""
    return Settings(
        environment="test",
        aws={"enabled": False},
        llm={"enabled": False},
        retry={"base_delay": 0.0, "max_delay": 0.0},
        logging={"level": "DEBUG", "console": False},
    )


@pytest.fixture
def snapshot_data():
    return {
        "node_pools": [
            {
                "name": "workers",
                "architecture": "amd64",
                "capacity_type": "on-demand",
                "nodes": [
                    {
                        "name": f"workers-{i}",
                        "instance_type": "m6i.xlarge",
                        "cpu_used": "800m",
                        "cpu_allocatable": "4",
                        "memory_used": "4Gi",
                        "memory_allocatable": "16Gi",
                    }
                    for i in range(10)
                ],
            },
            {"name": "empty", "architecture": "arm64"},
        ],
        "disruptions": [
            {"node_name": "workers-0", "node_pool": "workers", "reason": "Consolidation"},
            {"node_name": "workers-1", "node_pool": "workers", "reason": "Expired",
             "last_seen": "2000-01-01T00:00:00Z"},
        ],
        "workloads": [
            {"name": "api", "cpu_request": "500m", "memory_request": "1Gi"},
            {"name": "worker", "cpu_request": 2, "memory_request": "4Gi"},
        ],
    }


@pytest.fixture
def snapshot_file(tmp_path, snapshot_data):
    """Snapshot written as YAML"""
    path = tmp_path / "cluster.yaml"
    with open(path, 'w') as f:
        yaml.dump(snapshot_data, f)
    return path


@pytest.fixture
def temp_config_file(tmp_path):
    """Create temporary config file"""
    path = tmp_path / "config.yaml"
    config = {
        "app_name": "Fleet Optimizer Test",
        "environment": "test",
        "aws": {"enabled": False, "region": "eu-west-1"},
        "cache": {"ttl": 600},
    }
    with open(path, 'w') as f:
        yaml.dump(config, f)
    return path


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests"""
    import fleetoptimizer.core.config as config_module
    config_module.settings = None
    yield
    config_module.settings = None


@pytest.fixture
def mock_env_vars():
    """Mock environment variables"""
    env_vars = {
        "FLEETOPT_ENVIRONMENT": "test",
        "FLEETOPT_DEBUG": "true",
        "FLEETOPT_AWS__REGION": "eu-west-1",
        "FLEETOPT_CACHE__TTL": "60",
    }

    with patch.dict(os.environ, env_vars):
        yield env_vars


def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow"
    )
    config.addinivalue_line(
        "markers", "aws: mark test as AWS-specific"
    )
