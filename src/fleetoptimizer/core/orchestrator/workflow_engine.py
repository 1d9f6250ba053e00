import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ...catalog.resolver import InstanceCatalogResolver
from ...engine.recommender import FleetRecommendationEngine, ProgressEvent
from ...engine.selector import OptimalFleetSelector
from ...engine.synthesizer import Recommendation, RecommendationSynthesizer
from ...pricing.cache import PriceCache
from ...pricing.resolver import PricingResolver
from ..base import BaseExplainer, BaseInventoryProvider, BasePricingCatalog
from ..config import Settings
from ..exceptions import InventoryUnavailableError
from ..logging import run_context
from ..retry import CallContext, RetryPolicy, call_with_timeout


@dataclass
class WorkflowResult:
    """Result of a recommendation run"""
    workflow_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    success: bool = False
    recommendations: List[Recommendation] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_current_cost(self) -> float:
        return sum(r.current_cost for r in self.recommendations)

    @property
    def total_recommended_cost(self) -> float:
        return sum(r.recommended_cost if r.has_recommendation else r.current_cost
                   for r in self.recommendations)

    @property
    def total_savings(self) -> float:
        return sum(r.cost_savings for r in self.recommendations if r.has_recommendation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "total_node_pools": len(self.recommendations),
            "total_recommendations": sum(1 for r in self.recommendations if r.has_recommendation),
            "total_current_cost": self.total_current_cost,
            "total_recommended_cost": self.total_recommended_cost,
            "total_savings": self.total_savings,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "errors": self.errors,
            "metadata": self.metadata,
        }


class RecommendationWorkflow:
    """Loads inventory, then runs the engine over every node pool in turn"""

    def __init__(self, engine: FleetRecommendationEngine, inventory: BaseInventoryProvider,
                 inventory_timeout: float = 30.0, disruption_window_hours: int = 168):
        self.engine = engine
        self.inventory = inventory
        self.inventory_timeout = inventory_timeout
        self.disruption_window_hours = disruption_window_hours
        self.logger = logging.getLogger(__name__)
        self.current_workflow: Optional[WorkflowResult] = None

    def run(self, progress_callback: Optional[Callable[[ProgressEvent], None]] = None,
            ctx: Optional[CallContext] = None,
            node_pools: Optional[Sequence[str]] = None) -> WorkflowResult:
        ctx = ctx or CallContext()
        workflow_id = f"workflow_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.current_workflow = result = WorkflowResult(workflow_id=workflow_id, started_at=datetime.now())
        with run_context(workflow_id):
            return self._run(result, progress_callback, ctx, node_pools)

    def _run(self, result: WorkflowResult,
             progress_callback: Optional[Callable[[ProgressEvent], None]],
             ctx: CallContext, node_pools: Optional[Sequence[str]]) -> WorkflowResult:
        workflow_id = result.workflow_id
        self.logger.info(f"Starting workflow: {workflow_id}")

        try:
            with ctx.child(self.inventory_timeout) as pools_ctx:
                pools = call_with_timeout(self.inventory.list_node_pools, pools_ctx, pools_ctx)
        except Exception as e:
            result.completed_at = datetime.now()
            result.errors.append({
                "phase": "inventory",
                "error": str(e),
                "timestamp": datetime.now().isoformat()
            })
            self.logger.error(f"Inventory unavailable: {e}")
            if isinstance(e, InventoryUnavailableError):
                raise
            raise InventoryUnavailableError(f"Inventory unavailable: {e}") from e

        if node_pools:
            wanted = set(node_pools)
            pools = [p for p in pools if p.name in wanted]

        disruptions = []
        try:
            with ctx.child(self.inventory_timeout) as disruptions_ctx:
                disruptions = call_with_timeout(
                    self.inventory.list_disruptions, disruptions_ctx,
                    self.disruption_window_hours, disruptions_ctx
                )
        except Exception as e:
            self.logger.warning(f"Disruption history unavailable, continuing without it: {e}")
            result.errors.append({
                "phase": "disruptions",
                "error": str(e),
                "timestamp": datetime.now().isoformat()
            })

        window_days = max(1, self.disruption_window_hours // 24)
        for event in self.engine.stream(pools, disruptions, window_days=window_days, ctx=ctx):
            if progress_callback:
                progress_callback(event)
            if event.done:
                result.recommendations.append(event.recommendation)

        result.success = True
        result.completed_at = datetime.now()
        result.metadata = {
            "node_pools": [p.name for p in pools],
            "disruption_events": len(disruptions),
        }
        self.logger.info(
            f"Workflow {workflow_id} analysed {len(pools)} node pools, "
            f"potential savings ${result.total_savings:.2f}/hr"
        )
        return result

    def save_workflow_result(self, filepath):
        """Save workflow result to file"""
        if self.current_workflow:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                json.dump(self.current_workflow.to_dict(), f, indent=2, default=str)
            self.logger.info(f"Saved workflow result to {path}")

    def get_workflow_summary(self) -> Dict[str, Any]:
        """Get summary of current workflow"""
        if not self.current_workflow:
            return {}

        workflow = self.current_workflow
        return {
            "workflow_id": workflow.workflow_id,
            "status": "completed" if workflow.success else "failed",
            "duration_seconds": (
                (workflow.completed_at - workflow.started_at).total_seconds()
                if workflow.completed_at else None
            ),
            "node_pools": len(workflow.recommendations),
            "total_savings": workflow.total_savings,
            "errors": len(workflow.errors),
        }


def build_engine(settings: Settings,
                 catalog: Optional[BasePricingCatalog] = None,
                 explainer: Optional[BaseExplainer] = None,
                 cache: Optional[PriceCache] = None) -> FleetRecommendationEngine:
    """Wire the engine from configuration; explicit collaborators take precedence"""
    if catalog is None and settings.aws.enabled:
        from ...providers.aws.pricing_client import AWSPricingCatalog
        catalog = AWSPricingCatalog.from_config(settings.aws)
    if explainer is None and settings.llm.enabled:
        from ...providers.llm.client import LLMClient
        explainer = LLMClient.from_config(settings.llm)

    retry_policy = RetryPolicy.from_config(settings.retry)
    pricing = PricingResolver(
        cache=cache or PriceCache(ttl=settings.cache.ttl),
        catalog=catalog,
        estimator=explainer if settings.llm.estimate_prices else None,
        retry_policy=retry_policy,
        catalog_timeout=settings.catalog.price_timeout,
    )
    catalog_resolver = InstanceCatalogResolver(
        catalog=catalog,
        retry_policy=retry_policy,
        list_timeout=settings.catalog.list_timeout,
        max_candidates=settings.catalog.max_candidates,
        max_fallback_candidates=settings.catalog.max_fallback_candidates,
    )
    return FleetRecommendationEngine(
        pricing=pricing,
        catalog_resolver=catalog_resolver,
        selector=OptimalFleetSelector(catalog_resolver, pricing),
        synthesizer=RecommendationSynthesizer(explainer),
    )
