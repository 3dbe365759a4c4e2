"""Analysis task definitions."""

from ravi.tasks.visibility import (
    VisibilityAnalyzer,
    VisibilityReport,
    VisibilityRequest,
    run_visibility_analysis,
)

__all__ = [
    "VisibilityAnalyzer",
    "VisibilityReport",
    "VisibilityRequest",
    "run_visibility_analysis",
]
