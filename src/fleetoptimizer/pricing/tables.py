"""Offline on-demand price data (USD per hour, us-east-1 list prices)"""

from typing import Optional

from ..catalog.instance_types import size_multiplier

STATIC_ON_DEMAND_PRICES = {
    # Burstable
    't3.micro': 0.0104,
    't3.small': 0.0208,
    't3.medium': 0.0416,
    't3.large': 0.0832,
    't3.xlarge': 0.1664,
    't3.2xlarge': 0.3328,
    # General purpose
    'm6i.large': 0.096,
    'm6i.xlarge': 0.192,
    'm6i.2xlarge': 0.384,
    'm6i.4xlarge': 0.768,
    'm6i.8xlarge': 1.536,
    'm6a.large': 0.0864,
    'm6a.xlarge': 0.1728,
    'm6a.2xlarge': 0.3456,
    'm6a.4xlarge': 0.6912,
    'm6a.8xlarge': 1.3824,
    # Compute optimized
    'c6i.large': 0.085,
    'c6i.xlarge': 0.17,
    'c6i.2xlarge': 0.34,
    'c6i.4xlarge': 0.68,
    'c6i.8xlarge': 1.36,
    'c6a.large': 0.0765,
    'c6a.xlarge': 0.153,
    'c6a.2xlarge': 0.306,
    'c6a.4xlarge': 0.612,
    'c6a.8xlarge': 1.224,
    # Memory optimized
    'r6i.medium': 0.063,
    'r6i.large': 0.126,
    'r6i.xlarge': 0.252,
    'r6i.2xlarge': 0.504,
    'r6i.4xlarge': 1.008,
    'r6i.8xlarge': 2.016,
    'r6a.large': 0.1134,
    'r6a.xlarge': 0.2268,
    'r6a.2xlarge': 0.4536,
    'r6a.4xlarge': 0.9072,
    'r6a.8xlarge': 1.8144,
    'r8i.xlarge': 0.252,
    'r8i.2xlarge': 0.504,
    'r8i.4xlarge': 1.008,
    'x2gd.large': 0.0334,
    'x2gd.xlarge': 0.0669,
    'x2gd.2xlarge': 0.1338,
    'x2gd.4xlarge': 0.2676,
    'x8g.large': 0.0336,
    'x8g.xlarge': 0.0672,
    'x8g.2xlarge': 0.1344,
    'x8g.4xlarge': 0.2688,
    # Graviton
    'm6g.medium': 0.0384,
    'm6g.large': 0.0768,
    'm6g.xlarge': 0.1536,
    'm6g.2xlarge': 0.3072,
    'm6g.4xlarge': 0.6144,
    'm6g.8xlarge': 1.2288,
    'c6g.medium': 0.034,
    'c6g.large': 0.068,
    'c6g.xlarge': 0.136,
    'c6g.2xlarge': 0.272,
    'c6g.4xlarge': 0.544,
    'c6g.8xlarge': 1.088,
    # GPU
    'g4dn.xlarge': 0.526,
    'g4dn.2xlarge': 0.752,
    'g5.xlarge': 1.006,
    'g5.2xlarge': 1.212,
}

# Price of each family at the xlarge reference size
FAMILY_BASE_PRICES = {
    't3': 0.1664,
    't4g': 0.1664,
    'm5': 0.192,
    'm6i': 0.192,
    'm6a': 0.1728,
    'm6g': 0.1536,
    'c5': 0.17,
    'c6i': 0.17,
    'c6a': 0.153,
    'c6g': 0.136,
    'r5': 0.252,
    'r6i': 0.252,
    'r6a': 0.2268,
    'r8i': 0.252,
    'x2gd': 0.0669,
    'x8g': 0.0672,
    'g4dn': 0.526,
    'g4ad': 0.526,
    'g5': 1.006,
}

DEFAULT_FAMILY_BASE_PRICE = 0.20


def static_price(instance_type: str) -> Optional[float]:
    return STATIC_ON_DEMAND_PRICES.get(instance_type.strip().lower())


def family_heuristic_price(instance_type: str) -> Optional[float]:
    """Family base price scaled by size; None when the size cannot be scaled"""
    family, sep, size = instance_type.strip().lower().partition('.')
    if not sep or not family:
        return None
    multiplier = size_multiplier(size)
    if multiplier is None:
        return None
    return FAMILY_BASE_PRICES.get(family, DEFAULT_FAMILY_BASE_PRICE) * multiplier


def estimate_on_demand(instance_type: str) -> Optional[float]:
    """Best offline estimate: static table first, then the family heuristic"""
    price = static_price(instance_type)
    if price is not None:
        return price
    return family_heuristic_price(instance_type)
