"""Multi-tier hourly price resolution"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.base import BaseExplainer, BasePricingCatalog, CapacityClass, normalize_capacity_class
from ..core.retry import CallContext, RetryPolicy
from .cache import PriceCache, PriceQuote, PriceSource, cache_key
from .sources import (
    CacheSource, CatalogApiSource, FamilyHeuristicSource, PriceSourceBase,
    StaticTableSource, TextModelSource
)

logger = logging.getLogger(__name__)


def build_price_sources(cache: PriceCache,
                        catalog: Optional[BasePricingCatalog] = None,
                        estimator: Optional[BaseExplainer] = None,
                        retry_policy: Optional[RetryPolicy] = None,
                        catalog_timeout: float = 30.0) -> List[PriceSourceBase]:
    """The standard chain: cache, catalog, static table, family heuristic, text model"""
    sources: List[PriceSourceBase] = [CacheSource(cache)]
    if catalog is not None:
        sources.append(CatalogApiSource(catalog, retry_policy, timeout=catalog_timeout))
    sources.append(StaticTableSource())
    sources.append(FamilyHeuristicSource())
    if estimator is not None:
        sources.append(TextModelSource(estimator))
    return sources


class PricingResolver:
    """Resolves (instance type, capacity class) to a USD hourly price.

    Sources are tried in order and the first hit wins. Every resolved
    price is written back to the cache, so within the TTL a key never
    reaches the catalog twice. Unresolved lookups are not cached.
    """

    def __init__(self, cache: Optional[PriceCache] = None,
                 sources: Optional[Sequence[PriceSourceBase]] = None,
                 **source_options):
        self.cache = cache or PriceCache()
        if sources is None:
            sources = build_price_sources(self.cache, **source_options)
        self.sources = list(sources)

    def quote(self, instance_type: str, capacity_class,
              ctx: Optional[CallContext] = None) -> PriceQuote:
        capacity_class = normalize_capacity_class(capacity_class)

        for source in self.sources:
            quote = source.try_price(instance_type, capacity_class, ctx)
            if quote is None:
                continue
            if quote.source != PriceSource.PROCESS_CACHE:
                logger.debug(
                    f"Priced {instance_type} ({capacity_class.value}) at "
                    f"${quote.price_per_hour:.4f}/hr from {quote.source.value}",
                    extra={'instance_type': instance_type,
                           'capacity_class': capacity_class.value,
                           'price_source': quote.source.value}
                )
                quote = self.cache.put(cache_key(instance_type, capacity_class), quote)
            return quote

        logger.warning(f"No price source could price {instance_type} ({capacity_class.value})")
        return PriceQuote(instance_type, capacity_class, 0.0, PriceSource.UNRESOLVED)

    def price(self, instance_type: str, capacity_class,
              ctx: Optional[CallContext] = None) -> Tuple[float, str]:
        """Return (hourly price, source tag)"""
        quote = self.quote(instance_type, capacity_class, ctx)
        return quote.price_per_hour, quote.source.value

    def fleet_cost(self, instance_types: Sequence[str], capacity_class, node_count: int,
                   ctx: Optional[CallContext] = None) -> float:
        """Hourly cost of node_count nodes spread evenly across instance_types.

        Types that no source can price are left out of the total.
        """
        if not instance_types or node_count <= 0:
            return 0.0

        total = 0.0
        for instance_type, nodes in distribute_nodes(instance_types, node_count).items():
            if nodes == 0:
                continue
            quote = self.quote(instance_type, capacity_class, ctx)
            total += quote.price_per_hour * nodes
        return total


def distribute_nodes(instance_types: Sequence[str], node_count: int) -> Dict[str, int]:
    """Split node_count as evenly as possible; the remainder goes to the first types"""
    if not instance_types:
        return {}
    per_type, remainder = divmod(max(0, node_count), len(instance_types))
    return {
        instance_type: per_type + (1 if i < remainder else 0)
        for i, instance_type in enumerate(instance_types)
    }
