from .disruptions import DisruptionInsights, summarize_disruptions
from .requirements import CapacityRequirementCalculator, CapacityTarget, requirement_from_workloads
from .selector import FleetCandidate, OptimalFleetSelector, order_capacity_classes
from .synthesizer import Recommendation, RecommendationSynthesizer
from .recommender import FleetRecommendationEngine, ProgressEvent

__all__ = [
    'DisruptionInsights', 'summarize_disruptions',
    'CapacityRequirementCalculator', 'CapacityTarget', 'requirement_from_workloads',
    'FleetCandidate', 'OptimalFleetSelector', 'order_capacity_classes',
    'Recommendation', 'RecommendationSynthesizer',
    'FleetRecommendationEngine', 'ProgressEvent',
]
