"""Summary and aggregation package."""

from smallbooks.queries.aggregation import AggregationEngine, AggregationError
from smallbooks.queries.executor import SummaryExecutor

__all__ = [
    "AggregationEngine",
    "AggregationError",
    "SummaryExecutor",
]
