from .capacity import (
    Architecture, CapacityClass, NodePoolState, NodeUsageSnapshot, Workload,
    normalize_architecture, normalize_capacity_class
)
from .providers import (
    BaseExplainer, BaseInventoryProvider, BasePricingCatalog, CatalogPrice, DisruptionEvent
)

__all__ = [
    'Architecture', 'CapacityClass', 'NodePoolState', 'NodeUsageSnapshot', 'Workload',
    'normalize_architecture', 'normalize_capacity_class',
    'BaseExplainer', 'BaseInventoryProvider', 'BasePricingCatalog', 'CatalogPrice', 'DisruptionEvent'
]
