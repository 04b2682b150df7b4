"""
Progress scoring: status percentages, readiness stages and group aggregation.
"""

from .engine import (
    ApplicationProgress,
    GroupLevel,
    GroupProgress,
    ProgressScoringEngine,
    ScoringFilter,
)
from .status_maps import (
    ReadinessStage,
    application_status_label,
    package_percentage,
    readiness_percentage,
    readiness_stage_for,
    readiness_text,
)

__all__ = [
    "application_status_label",
    "ApplicationProgress",
    "GroupLevel",
    "GroupProgress",
    "package_percentage",
    "ProgressScoringEngine",
    "readiness_percentage",
    "readiness_stage_for",
    "readiness_text",
    "ReadinessStage",
    "ScoringFilter",
]
