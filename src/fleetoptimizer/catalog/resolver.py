"""Candidate instance type generation for the fleet search"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from ..core.base import Architecture, BasePricingCatalog, normalize_architecture
from ..core.exceptions import FleetOptimizerError
from ..core.retry import CallContext, RetryPolicy
from ..pricing.tables import estimate_on_demand
from .instance_types import FamilyClass, InstanceTypeSpec, parse_instance_type

logger = logging.getLogger(__name__)

MEMORY_RATIO_THRESHOLD = 8.0
COMPUTE_CPU_THRESHOLD = 8.0
CPU_EFFICIENCY_WEIGHT = 0.7
MEMORY_EFFICIENCY_WEIGHT = 0.3

GPU_CANDIDATE_TYPES = ['g4dn.xlarge', 'g4dn.2xlarge', 'g5.xlarge', 'g5.2xlarge']

STATIC_CANDIDATES: Dict[Architecture, Dict[FamilyClass, List[str]]] = {
    Architecture.ARM64: {
        FamilyClass.MEMORY_OPTIMIZED: [
            'r6g.xlarge', 'r6g.2xlarge', 'r6g.4xlarge',
            'r7g.xlarge', 'r7g.2xlarge', 'r7g.4xlarge',
            'x2gd.xlarge', 'x2gd.2xlarge', 'x2gd.4xlarge',
            'x8g.xlarge', 'x8g.2xlarge', 'x8g.4xlarge',
        ],
        FamilyClass.COMPUTE_OPTIMIZED: [
            'c6g.xlarge', 'c6g.2xlarge', 'c6g.4xlarge',
            'c7g.xlarge', 'c7g.2xlarge', 'c7g.4xlarge',
            'c6gn.xlarge', 'c6gn.2xlarge',
        ],
        FamilyClass.GENERAL_PURPOSE: [
            'm6g.xlarge', 'm6g.2xlarge', 'm6g.4xlarge',
            'm7g.xlarge', 'm7g.2xlarge', 'm7g.4xlarge',
            'm8g.xlarge', 'm8g.2xlarge',
            't4g.xlarge', 't4g.2xlarge',
        ],
    },
    Architecture.AMD64: {
        FamilyClass.MEMORY_OPTIMIZED: [
            'r6i.xlarge', 'r6i.2xlarge', 'r6i.4xlarge',
            'r6a.xlarge', 'r6a.2xlarge', 'r6a.4xlarge',
            'r8i.xlarge', 'r8i.2xlarge',
        ],
        FamilyClass.COMPUTE_OPTIMIZED: [
            'c6i.xlarge', 'c6i.2xlarge', 'c6i.4xlarge',
            'c6a.xlarge', 'c6a.2xlarge', 'c6a.4xlarge',
        ],
        FamilyClass.GENERAL_PURPOSE: [
            'm6i.xlarge', 'm6i.2xlarge', 'm6i.4xlarge', 'm6i.8xlarge',
            'm6a.xlarge', 'm6a.2xlarge', 'm6a.4xlarge',
            't3.xlarge', 't3.2xlarge',
        ],
    },
}


def classify_requirement(required_cpu: float, required_memory: float) -> FamilyClass:
    """Pick the family class whose shape fits a CPU/memory requirement"""
    ratio = required_memory / required_cpu if required_cpu > 0 else 0.0
    if ratio > MEMORY_RATIO_THRESHOLD:
        return FamilyClass.MEMORY_OPTIMIZED
    if required_cpu > COMPUTE_CPU_THRESHOLD:
        return FamilyClass.COMPUTE_OPTIMIZED
    return FamilyClass.GENERAL_PURPOSE


def family_matches(spec: InstanceTypeSpec, family_class: FamilyClass) -> bool:
    if family_class == FamilyClass.GENERAL_PURPOSE:
        return spec.family_class in (FamilyClass.GENERAL_PURPOSE, FamilyClass.BURSTABLE)
    if family_class == FamilyClass.COMPUTE_OPTIMIZED:
        return spec.family_class == family_class and spec.vcpus >= 4
    return spec.family_class == family_class


class InstanceCatalogResolver:
    """Produces ranked candidate instance types for a capacity requirement.

    The type universe comes from the pricing catalog when one is configured;
    on failure or an empty result a static table keyed by architecture and
    family class is used instead.
    """

    def __init__(self,
                 catalog: Optional[BasePricingCatalog] = None,
                 price_estimator: Optional[Callable[[str], Optional[float]]] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 list_timeout: float = 60.0,
                 max_candidates: int = 20,
                 max_fallback_candidates: int = 10):
        self.catalog = catalog
        self.price_estimator = price_estimator or estimate_on_demand
        self.retry_policy = retry_policy or RetryPolicy()
        self.list_timeout = list_timeout
        self.max_candidates = max_candidates
        self.max_fallback_candidates = max_fallback_candidates
        self._universe: Dict[Architecture, List[str]] = {}
        self._lock = threading.Lock()

    def candidate_types(self, architecture, required_cpu: float, required_memory: float,
                        ctx: Optional[CallContext] = None) -> List[str]:
        arch = normalize_architecture(architecture)
        family_class = classify_requirement(required_cpu, required_memory)

        universe = self._fetch_universe(arch, ctx)
        if universe:
            candidates = self._filter(universe, arch, family_class)
            if candidates:
                ranked = self._rank(candidates)[:self.max_candidates]
                logger.debug(
                    f"{len(ranked)} {family_class.value} {arch.value} candidates from catalog"
                )
                return ranked
            logger.info(
                f"Catalog offered no {family_class.value} {arch.value} types, using static table"
            )

        return self.fallback_candidates(arch, family_class)

    def fallback_candidates(self, architecture: Architecture, family_class: FamilyClass) -> List[str]:
        static = STATIC_CANDIDATES[architecture][family_class]
        candidates = self._filter(static, architecture, family_class)
        return self._rank(candidates)[:self.max_fallback_candidates]

    def gpu_candidate_types(self, gpu_count: int) -> List[str]:
        """Accelerator types, only offered when a workload asks for GPUs"""
        if gpu_count <= 0:
            return []
        return list(GPU_CANDIDATE_TYPES)

    def cost_efficiency(self, spec: InstanceTypeSpec) -> float:
        """Price per weighted unit of capacity; lower is better"""
        price = self.price_estimator(spec.identifier)
        weight = CPU_EFFICIENCY_WEIGHT * spec.vcpus + MEMORY_EFFICIENCY_WEIGHT * spec.memory_gib
        if price is None or price <= 0 or weight <= 0:
            return float('inf')
        return price / weight

    def _fetch_universe(self, arch: Architecture, ctx: Optional[CallContext]) -> List[str]:
        if self.catalog is None:
            return []

        with self._lock:
            cached = self._universe.get(arch)
        if cached:
            return cached

        try:
            types = self.retry_policy.call(
                lambda attempt_ctx: self.catalog.list_instance_types(arch, attempt_ctx),
                ctx,
                description=f"list {arch.value} instance types",
                attempt_timeout=self.list_timeout,
            )
        except FleetOptimizerError as e:
            logger.warning(f"Instance type listing failed, falling back to static table: {e}")
            return []
        except Exception as e:
            logger.warning(
                f"Instance type listing failed unexpectedly, falling back to static table: {e}"
            )
            return []

        types = sorted(set(types or []))
        if types:
            with self._lock:
                self._universe[arch] = types
        return types

    def _filter(self, types: List[str], arch: Architecture, family_class: FamilyClass) -> List[InstanceTypeSpec]:
        specs = []
        for identifier in types:
            spec = parse_instance_type(identifier)
            if spec is None or spec.is_accelerator:
                continue
            if spec.vcpus <= 0 or spec.memory_gib <= 0:
                continue
            if spec.architecture != arch or not family_matches(spec, family_class):
                continue
            specs.append(spec)
        return specs

    def _rank(self, specs: List[InstanceTypeSpec]) -> List[str]:
        # sorted() is stable, so equally efficient types keep catalog order
        return [s.identifier for s in sorted(specs, key=self.cost_efficiency)]
