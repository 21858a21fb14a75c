from .plan_execution_service import PlanExecutionService, sequence_key

__all__ = ["PlanExecutionService", "sequence_key"]
