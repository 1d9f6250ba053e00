from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .capacity import Architecture, CapacityClass, NodePoolState

if TYPE_CHECKING:
    from ..retry import CallContext


@dataclass(frozen=True)
class CatalogPrice:
    """A price returned by the catalog and the class it was quoted for.

    Catalogs that only know on-demand prices report CapacityClass.ON_DEMAND
    even when asked for spot, so the caller can apply its own discount.
    """
    price: float
    capacity_class: CapacityClass


@dataclass(frozen=True)
class DisruptionEvent:
    """A node removal or replacement reported by the provisioning layer"""
    node_name: str
    node_pool: str
    reason: str
    instance_type: str = ""
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    event_count: int = 1


class BaseInventoryProvider(ABC):
    """Source of node pool state and disruption history"""

    @abstractmethod
    def list_node_pools(self, ctx: Optional["CallContext"] = None) -> List[NodePoolState]:
        """Return every node pool with its per-node usage"""
        pass

    @abstractmethod
    def list_disruptions(self, window_hours: int = 168,
                         ctx: Optional["CallContext"] = None) -> List[DisruptionEvent]:
        """Return disruption events seen within the trailing window"""
        pass


class BasePricingCatalog(ABC):
    """Remote price catalog"""

    name = "catalog"

    @abstractmethod
    def get_price(self, instance_type: str, capacity_class: CapacityClass,
                  ctx: Optional["CallContext"] = None) -> CatalogPrice:
        """Hourly USD price; raises a CatalogError subclass on failure"""
        pass

    @abstractmethod
    def list_instance_types(self, architecture: Architecture,
                            ctx: Optional["CallContext"] = None) -> List[str]:
        """Instance type identifiers available for an architecture"""
        pass


class BaseExplainer(ABC):
    """Optional text model that polishes rationales and guesses prices"""

    @abstractmethod
    def explain(self, context: Dict[str, Any]) -> str:
        pass

    @abstractmethod
    def estimate_price(self, instance_type: str) -> float:
        """On-demand hourly USD estimate; raises on failure"""
        pass
