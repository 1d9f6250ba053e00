"""Structured parsing of EC2-style instance type identifiers.

An identifier such as ``x2gd.4xlarge`` is split once into a family token
(series ``x``, generation ``2``, attributes ``gd``) and a size token
(``4xlarge``). The series maps to a capacity template giving the memory
per vCPU and a coarse family class; the size scales the template.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

from ..core.base import Architecture


class FamilyClass(Enum):
    GENERAL_PURPOSE = "general-purpose"
    COMPUTE_OPTIMIZED = "compute-optimized"
    MEMORY_OPTIMIZED = "memory-optimized"
    BURSTABLE = "burstable"
    ACCELERATOR = "accelerator"


@dataclass(frozen=True)
class FamilyTemplate:
    memory_per_vcpu: float
    family_class: FamilyClass
    min_vcpus: float = 0.0


FAMILY_TEMPLATES = {
    't': FamilyTemplate(4.0, FamilyClass.BURSTABLE, min_vcpus=2),
    'm': FamilyTemplate(4.0, FamilyClass.GENERAL_PURPOSE),
    'a': FamilyTemplate(2.0, FamilyClass.GENERAL_PURPOSE),
    'c': FamilyTemplate(2.0, FamilyClass.COMPUTE_OPTIMIZED),
    'r': FamilyTemplate(8.0, FamilyClass.MEMORY_OPTIMIZED),
    'x': FamilyTemplate(16.0, FamilyClass.MEMORY_OPTIMIZED),
    'z': FamilyTemplate(8.0, FamilyClass.MEMORY_OPTIMIZED),
    'g': FamilyTemplate(4.0, FamilyClass.ACCELERATOR),
    'p': FamilyTemplate(8.0, FamilyClass.ACCELERATOR),
    'inf': FamilyTemplate(2.0, FamilyClass.ACCELERATOR),
    'trn': FamilyTemplate(4.0, FamilyClass.ACCELERATOR),
    'dl': FamilyTemplate(8.0, FamilyClass.ACCELERATOR),
}

# vCPUs at the reference size (xlarge)
REFERENCE_VCPUS = 4

SIZE_MULTIPLIERS = {
    'nano': 1 / 32,
    'micro': 1 / 16,
    'small': 1 / 8,
    'medium': 1 / 4,
    'large': 1 / 2,
    'xlarge': 1.0,
}

_FAMILY_RE = re.compile(r'^([a-z]+?)(\d+)([a-z-]*)$')
_SIZE_RE = re.compile(r'^(\d+)xlarge$')


def size_multiplier(size: str) -> Optional[float]:
    """Multiplier relative to xlarge; None for sizes we cannot scale (metal)"""
    size = size.lower()
    if size in SIZE_MULTIPLIERS:
        return SIZE_MULTIPLIERS[size]
    match = _SIZE_RE.match(size)
    if match:
        return float(match.group(1))
    return None


@dataclass(frozen=True)
class InstanceTypeSpec:
    identifier: str
    family: str
    series: str
    generation: int
    attributes: str
    size: str
    vcpus: float
    memory_gib: float
    architecture: Architecture
    family_class: FamilyClass

    @property
    def is_accelerator(self) -> bool:
        return self.family_class == FamilyClass.ACCELERATOR

    @property
    def memory_per_vcpu(self) -> float:
        return self.memory_gib / self.vcpus if self.vcpus else 0.0


@lru_cache(maxsize=1024)
def parse_instance_type(identifier: str) -> Optional[InstanceTypeSpec]:
    """Parse an identifier into an InstanceTypeSpec, or None if unknown"""
    if not identifier or '.' not in identifier:
        return None

    family, _, size = identifier.strip().lower().partition('.')
    match = _FAMILY_RE.match(family)
    if not match:
        return None
    series, generation, attributes = match.groups()

    template = FAMILY_TEMPLATES.get(series)
    multiplier = size_multiplier(size)
    if template is None or multiplier is None:
        return None

    vcpus = max(template.min_vcpus, REFERENCE_VCPUS * multiplier)
    memory = template.memory_per_vcpu * REFERENCE_VCPUS * multiplier
    architecture = Architecture.ARM64 if ('g' in attributes or series == 'a') else Architecture.AMD64

    return InstanceTypeSpec(
        identifier=identifier.strip().lower(),
        family=family,
        series=series,
        generation=int(generation),
        attributes=attributes,
        size=size,
        vcpus=vcpus,
        memory_gib=memory,
        architecture=architecture,
        family_class=template.family_class,
    )
