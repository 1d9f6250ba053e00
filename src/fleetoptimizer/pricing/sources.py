"""Price sources, tried in priority order by the PricingResolver"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..core.base import BaseExplainer, BasePricingCatalog, CapacityClass
from ..core.exceptions import FleetOptimizerError
from ..core.retry import CallContext, RetryPolicy
from .cache import PriceCache, PriceQuote, PriceSource, cache_key
from .tables import family_heuristic_price, static_price

logger = logging.getLogger(__name__)

# Spot is modelled as a flat discount on the on-demand price
SPOT_PRICE_MULTIPLIER = 0.25


def apply_capacity_class(on_demand_price: float, capacity_class: CapacityClass) -> float:
    if capacity_class == CapacityClass.SPOT:
        return on_demand_price * SPOT_PRICE_MULTIPLIER
    return on_demand_price


class PriceSourceBase(ABC):
    """One tier of the price lookup chain"""

    source: PriceSource

    @abstractmethod
    def try_price(self, instance_type: str, capacity_class: CapacityClass,
                  ctx: Optional[CallContext] = None) -> Optional[PriceQuote]:
        """Return a quote for the requested class, or None on a miss"""
        pass

    def _quote(self, instance_type: str, capacity_class: CapacityClass, price: float) -> PriceQuote:
        return PriceQuote(instance_type, capacity_class, price, self.source)


class CacheSource(PriceSourceBase):
    source = PriceSource.PROCESS_CACHE

    def __init__(self, cache: PriceCache):
        self.cache = cache

    def try_price(self, instance_type, capacity_class, ctx=None):
        quote = self.cache.get(cache_key(instance_type, capacity_class))
        if quote is None:
            return None
        return PriceQuote(quote.instance_type, quote.capacity_class, quote.price_per_hour,
                          self.source, quote.expires_at)


class CatalogApiSource(PriceSourceBase):
    """Remote catalog lookup with timeout and backoff.

    A catalog that quotes the requested class directly is trusted as is;
    an on-demand quote for a spot request gets the flat discount.
    """
    source = PriceSource.CATALOG_API

    def __init__(self, catalog: BasePricingCatalog, retry_policy: Optional[RetryPolicy] = None,
                 timeout: float = 30.0):
        self.catalog = catalog
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout

    def try_price(self, instance_type, capacity_class, ctx=None):
        try:
            result = self.retry_policy.call(
                lambda attempt_ctx: self.catalog.get_price(instance_type, capacity_class, attempt_ctx),
                ctx,
                description=f"price lookup for {instance_type}",
                attempt_timeout=self.timeout,
            )
        except FleetOptimizerError as e:
            logger.debug(f"Catalog price unavailable for {instance_type}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Catalog price lookup for {instance_type} failed unexpectedly: {e}")
            return None

        if result is None or result.price <= 0:
            return None

        price = result.price
        if capacity_class == CapacityClass.SPOT and result.capacity_class != CapacityClass.SPOT:
            price = apply_capacity_class(price, capacity_class)
        return self._quote(instance_type, capacity_class, price)


class StaticTableSource(PriceSourceBase):
    source = PriceSource.STATIC_TABLE

    def try_price(self, instance_type, capacity_class, ctx=None):
        price = static_price(instance_type)
        if price is None:
            return None
        return self._quote(instance_type, capacity_class, apply_capacity_class(price, capacity_class))


class FamilyHeuristicSource(PriceSourceBase):
    source = PriceSource.FAMILY_HEURISTIC

    def try_price(self, instance_type, capacity_class, ctx=None):
        price = family_heuristic_price(instance_type)
        if price is None or price <= 0:
            return None
        return self._quote(instance_type, capacity_class, apply_capacity_class(price, capacity_class))


class TextModelSource(PriceSourceBase):
    """Last resort: ask the text model for an on-demand estimate"""
    source = PriceSource.TEXT_MODEL_ESTIMATE

    def __init__(self, estimator: BaseExplainer):
        self.estimator = estimator

    def try_price(self, instance_type, capacity_class, ctx=None):
        try:
            price = self.estimator.estimate_price(instance_type)
        except FleetOptimizerError as e:
            logger.debug(f"Text model estimate failed for {instance_type}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Text model estimate for {instance_type} failed unexpectedly: {e}")
            return None
        if not price or price <= 0:
            return None
        return self._quote(instance_type, capacity_class, apply_capacity_class(price, capacity_class))
