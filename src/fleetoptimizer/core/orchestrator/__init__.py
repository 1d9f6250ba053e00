from .workflow_engine import RecommendationWorkflow, WorkflowResult, build_engine

__all__ = ["RecommendationWorkflow", "WorkflowResult", "build_engine"]
