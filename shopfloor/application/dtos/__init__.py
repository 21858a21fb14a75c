from .execution_dtos import (
    AssignmentResponse,
    CompletionReport,
    CompletionResult,
    LaunchResult,
    LaunchSummary,
    LaunchWarning,
    ReconciliationReport,
    RepairResponse,
    ResumeResult,
    ScrapResult,
    ViolationResponse,
)

__all__ = [
    "AssignmentResponse",
    "CompletionReport",
    "CompletionResult",
    "LaunchResult",
    "LaunchSummary",
    "LaunchWarning",
    "ReconciliationReport",
    "RepairResponse",
    "ResumeResult",
    "ScrapResult",
    "ViolationResponse",
]
