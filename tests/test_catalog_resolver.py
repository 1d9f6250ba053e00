"""Tests for candidate instance type resolution"""

import pytest

from fleetoptimizer.catalog.instance_types import FamilyClass, parse_instance_type
from fleetoptimizer.catalog.resolver import (
    GPU_CANDIDATE_TYPES, InstanceCatalogResolver, classify_requirement
)
from fleetoptimizer.core.base import Architecture
from fleetoptimizer.core.exceptions import CatalogAuthorizationError, TransientCatalogError

from conftest import FakeCatalog


class TestClassifyRequirement:
    """Test family class selection"""

    def test_memory_heavy(self):
        """Test more than 8 GiB per core is memory optimized"""
        assert classify_requirement(2, 20) == FamilyClass.MEMORY_OPTIMIZED

    def test_cpu_heavy(self):
        """Test more than 8 cores is compute optimized"""
        assert classify_requirement(16, 32) == FamilyClass.COMPUTE_OPTIMIZED

    def test_general(self):
        assert classify_requirement(4, 16) == FamilyClass.GENERAL_PURPOSE
        assert classify_requirement(8, 64) == FamilyClass.GENERAL_PURPOSE

    def test_zero_cpu(self):
        assert classify_requirement(0, 16) == FamilyClass.GENERAL_PURPOSE


class TestStaticFallback:
    """Test candidates without a catalog"""

    def test_amd64_general_ranked_by_efficiency(self):
        """Test burstable types rank first on price per weighted capacity"""
        resolver = InstanceCatalogResolver()
        candidates = resolver.candidate_types(Architecture.AMD64, 4, 16)
        assert candidates[:2] == ["t3.xlarge", "t3.2xlarge"]
        assert len(candidates) <= 10
        assert all(parse_instance_type(c).architecture == Architecture.AMD64 for c in candidates)

    def test_arm64_memory(self):
        """Test an ARM memory requirement stays within ARM memory families"""
        resolver = InstanceCatalogResolver()
        candidates = resolver.candidate_types("arm64", 2, 20)
        assert candidates
        assert {c.split('.')[0] for c in candidates} <= {"r6g", "r7g", "x2gd", "x8g"}

    def test_compute_requires_four_vcpus(self):
        resolver = InstanceCatalogResolver()
        for candidate in resolver.candidate_types("amd64", 16, 32):
            spec = parse_instance_type(candidate)
            assert spec.family_class == FamilyClass.COMPUTE_OPTIMIZED
            assert spec.vcpus >= 4

    def test_fallback_cap(self):
        resolver = InstanceCatalogResolver(max_fallback_candidates=3)
        assert len(resolver.candidate_types("amd64", 4, 16)) == 3


class TestCatalogCandidates:
    """Test candidates listed by a catalog"""

    def test_catalog_universe_is_filtered(self, no_wait_retry):
        """Test accelerators, other architectures and other families are dropped"""
        catalog = FakeCatalog(types={Architecture.AMD64: [
            "m5.large", "m5.xlarge", "r5.xlarge", "g4dn.xlarge", "m6g.xlarge", "bogus.type",
        ]})
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        candidates = resolver.candidate_types(Architecture.AMD64, 2, 8)
        assert sorted(candidates) == ["m5.large", "m5.xlarge"]

    def test_catalog_cap(self, no_wait_retry):
        types = [f"m5.{n}xlarge" for n in range(2, 30)]
        catalog = FakeCatalog(types={Architecture.AMD64: types})
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        assert len(resolver.candidate_types("amd64", 4, 16)) == 20

    def test_universe_cached_per_architecture(self, no_wait_retry):
        catalog = FakeCatalog(types={Architecture.AMD64: ["m5.xlarge"]})
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        resolver.candidate_types("amd64", 4, 16)
        resolver.candidate_types("amd64", 2, 8)
        assert catalog.list_calls == [Architecture.AMD64]

    def test_transient_failure_is_retried(self, no_wait_retry):
        catalog = FakeCatalog(
            types={Architecture.AMD64: ["m5.xlarge"]},
            errors=[TransientCatalogError("throttled")],
        )
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        assert resolver.candidate_types("amd64", 4, 16) == ["m5.xlarge"]
        assert len(catalog.list_calls) == 2

    def test_failure_falls_back_to_static_table(self, no_wait_retry):
        """Test an authorization failure is not retried and uses the static table"""
        catalog = FakeCatalog(errors=[CatalogAuthorizationError("denied")])
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        candidates = resolver.candidate_types("amd64", 4, 16)
        assert len(catalog.list_calls) == 1
        assert candidates == resolver.fallback_candidates(Architecture.AMD64, FamilyClass.GENERAL_PURPOSE)

    def test_unexpected_failure_falls_back_to_static_table(self, no_wait_retry):
        catalog = FakeCatalog(errors=[ConnectionError("reset by peer")] * 3)
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        candidates = resolver.candidate_types("amd64", 4, 16)
        assert len(catalog.list_calls) == 3
        assert candidates == resolver.fallback_candidates(Architecture.AMD64, FamilyClass.GENERAL_PURPOSE)

    def test_non_catalog_exception_falls_back(self, no_wait_retry):
        catalog = FakeCatalog(errors=[RuntimeError("bad page")])
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        assert resolver.candidate_types("amd64", 4, 16)
        assert len(catalog.list_calls) == 1

    def test_failure_is_not_cached(self, no_wait_retry):
        catalog = FakeCatalog(
            types={Architecture.AMD64: ["m5.xlarge"]},
            errors=[CatalogAuthorizationError("denied")],
        )
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        resolver.candidate_types("amd64", 4, 16)
        assert resolver.candidate_types("amd64", 4, 16) == ["m5.xlarge"]

    def test_no_matching_family_uses_static_table(self, no_wait_retry):
        catalog = FakeCatalog(types={Architecture.AMD64: ["c5.xlarge"]})
        resolver = InstanceCatalogResolver(catalog=catalog, retry_policy=no_wait_retry)
        candidates = resolver.candidate_types("amd64", 2, 32)
        assert all(parse_instance_type(c).family_class == FamilyClass.MEMORY_OPTIMIZED
                   for c in candidates)


class TestEfficiency:
    """Test cost efficiency ranking"""

    def test_cost_efficiency(self):
        resolver = InstanceCatalogResolver(price_estimator=lambda t: 0.76)
        spec = parse_instance_type("m6i.xlarge")
        # 0.7 * 4 vCPU + 0.3 * 16 GiB = 7.6
        assert resolver.cost_efficiency(spec) == pytest.approx(0.1)

    def test_unpriced_types_rank_last(self):
        prices = {"m6i.xlarge": 0.192, "m6a.xlarge": None, "t3.xlarge": 0.1664}
        resolver = InstanceCatalogResolver(price_estimator=prices.get)
        ranked = resolver._rank([parse_instance_type(t) for t in prices])
        assert ranked == ["t3.xlarge", "m6i.xlarge", "m6a.xlarge"]

    def test_ties_keep_input_order(self):
        resolver = InstanceCatalogResolver(price_estimator=lambda t: 1.0)
        specs = [parse_instance_type(t) for t in ("m6a.xlarge", "m6i.xlarge")]
        assert resolver._rank(specs) == ["m6a.xlarge", "m6i.xlarge"]


class TestGPUCandidates:
    def test_only_for_gpu_requests(self):
        resolver = InstanceCatalogResolver()
        assert resolver.gpu_candidate_types(0) == []
        assert resolver.gpu_candidate_types(2) == GPU_CANDIDATE_TYPES
