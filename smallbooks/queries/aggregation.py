"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and exact.
Amounts are summed as Decimals, never floats, so totals match the
ledger to the cent regardless of record order.

GUARANTEES:
- Records are read once, in a single pass, and never mutated
- Empty input or an inverted window yields zeros, never an error
- A summary never mixes owners
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from smallbooks.models.summary import (
    CategoryTotal,
    SummaryFilter,
    TransactionSummary,
    TypeTotal,
)
from smallbooks.models.transaction import (
    TransactionCategory,
    TransactionKind,
    TransactionRecord,
)

_CATEGORY_ORDER = {category: index for index, category in enumerate(TransactionCategory)}


class AggregationError(Exception):
    """Records from more than one owner were passed without an owner filter."""
    pass


class _Bucket:
    __slots__ = ("total", "count")

    def __init__(self):
        self.total = Decimal("0")
        self.count = 0

    def add(self, amount: Decimal) -> None:
        self.total += amount
        self.count += 1

    def freeze(self) -> TypeTotal:
        return TypeTotal(total=self.total, count=self.count)


class AggregationEngine:
    """
    Rolls transaction records up into a TransactionSummary.

    by_type:              kind -> (total, count), both kinds always present
    by_type_and_category: kind -> category -> (total, count)
    by_category:          expense categories ranked by total, descending
    net_position:         income total - expense total
    """

    def summarize(
        self,
        records: Iterable[TransactionRecord],
        filter: Optional[SummaryFilter] = None,
    ) -> TransactionSummary:
        """
        Summarize records inside the filter's inclusive date window.

        With filter.owner_id set, other owners' records are skipped.
        Without it, all records must share one owner.

        Raises:
            AggregationError: If records span owners and no owner_id is given
        """
        flt = filter or SummaryFilter()

        by_type = {kind: _Bucket() for kind in TransactionKind}
        by_pair: dict[tuple[TransactionKind, TransactionCategory], _Bucket] = defaultdict(_Bucket)
        owner_seen: Optional[str] = None
        matched = 0

        for record in records:
            if flt.owner_id is not None:
                if record.owner_id != flt.owner_id:
                    continue
            elif owner_seen is None:
                owner_seen = record.owner_id
            elif record.owner_id != owner_seen:
                raise AggregationError(
                    "Records belong to more than one owner; pass an owner_id filter"
                )

            if not flt.contains(record.occurred_on):
                continue

            by_type[record.kind].add(record.amount)
            by_pair[(record.kind, record.category)].add(record.amount)
            matched += 1

        by_type_and_category: dict[TransactionKind, dict[TransactionCategory, TypeTotal]] = {
            kind: {} for kind in TransactionKind
        }
        for (kind, category), bucket in sorted(
            by_pair.items(), key=lambda item: _CATEGORY_ORDER[item[0][1]]
        ):
            by_type_and_category[kind][category] = bucket.freeze()

        by_category = sorted(
            (
                CategoryTotal(category=category, total=total.total, count=total.count)
                for category, total in by_type_and_category[TransactionKind.EXPENSE].items()
            ),
            key=lambda row: (-row.total, _CATEGORY_ORDER[row.category]),
        )

        income = by_type[TransactionKind.INCOME].total
        expense = by_type[TransactionKind.EXPENSE].total

        return TransactionSummary(
            owner_id=flt.owner_id or owner_seen,
            start_date=flt.start_date,
            end_date=flt.end_date,
            by_type={kind: bucket.freeze() for kind, bucket in by_type.items()},
            by_type_and_category=by_type_and_category,
            by_category=by_category,
            net_position=income - expense,
            record_count=matched,
        )
