"""Progress tracking module.

Provides functionality for:
- Applying monotonic progress deltas to participants
- Detecting challenge completion
- Mapping activity events onto challenge requirements
"""

from .aggregator import ProgressAggregator
from .events import ActivityEvent, DEFAULT_METRIC_MAP, matching_requirements, requirement_type_for
from .schemas import ProgressResult

__all__ = [
    "ProgressAggregator",
    "ActivityEvent",
    "DEFAULT_METRIC_MAP",
    "matching_requirements",
    "requirement_type_for",
    "ProgressResult",
]
