"""
Summary Execution

Reads one owner's records from storage and hands them to the
aggregation engine. Only real stored data is ever summarized; an
owner with no records gets an all-zero summary, not an error.
"""

from datetime import date
from typing import Optional

from smallbooks.models.summary import SummaryFilter, TransactionSummary
from smallbooks.queries.aggregation import AggregationEngine
from smallbooks.services.storage import TransactionStorageInterface


class SummaryExecutor:
    """Bridges transaction storage and the aggregation engine."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        engine: Optional[AggregationEngine] = None,
    ):
        self._storage = storage
        self._engine = engine or AggregationEngine()

    async def execute(
        self,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> TransactionSummary:
        """
        Summarize an owner's transactions within an inclusive window.

        Raises:
            StorageError: If the records cannot be read
        """
        flt = SummaryFilter(owner_id=owner_id, start_date=start_date, end_date=end_date)
        if flt.is_inverted:
            return self._engine.summarize([], flt)

        records = await self._storage.find_by_date_range(owner_id, start_date, end_date)
        return self._engine.summarize(records, flt)
