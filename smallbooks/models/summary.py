"""
Summary Models

Inputs and outputs of the aggregation engine.

DESIGN DECISION: Summaries are read-only snapshots. They echo the
window they were computed for so a dashboard can label its numbers
without re-deriving the filter.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from smallbooks.models.transaction import (
    TransactionCategory,
    TransactionKind,
    utc_now,
)


class SummaryFilter(BaseModel):
    """
    Owner and inclusive date window for a summary.

    Missing bounds are unbounded. An inverted window (start after end)
    is valid input and simply matches nothing.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    owner_id: Optional[str] = Field(default=None, min_length=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def is_inverted(self) -> bool:
        return (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        )

    def contains(self, day: date) -> bool:
        """Inclusive on both ends."""
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True


class TypeTotal(BaseModel):
    """Sum and record count of one group."""
    model_config = ConfigDict(frozen=True)

    total: Decimal = Field(default=Decimal("0"))
    count: int = Field(default=0, ge=0)


class CategoryTotal(BaseModel):
    """One row of the ranked category list."""
    model_config = ConfigDict(frozen=True)

    category: TransactionCategory
    total: Decimal
    count: int = Field(ge=0)


class TransactionSummary(BaseModel):
    """
    Grouped totals for one owner over one window.

    by_type always carries both kinds, zero-filled.
    by_category is expense-only, ranked by total descending.
    """

    owner_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    generated_at: datetime = Field(default_factory=utc_now)

    by_type: dict[TransactionKind, TypeTotal]
    by_type_and_category: dict[TransactionKind, dict[TransactionCategory, TypeTotal]]
    by_category: list[CategoryTotal] = Field(default_factory=list)
    net_position: Decimal = Decimal("0")
    record_count: int = 0

    @property
    def total_income(self) -> Decimal:
        return self.by_type[TransactionKind.INCOME].total

    @property
    def total_expense(self) -> Decimal:
        return self.by_type[TransactionKind.EXPENSE].total

    def total_for(
        self,
        kind: TransactionKind,
        category: TransactionCategory,
    ) -> TypeTotal:
        """Zero-filled lookup into by_type_and_category."""
        return self.by_type_and_category.get(kind, {}).get(category, TypeTotal())

    def to_display_dict(self) -> dict:
        """Plain dict with string amounts, for tables and JSON."""
        return {
            "window": {
                "start_date": self.start_date.isoformat() if self.start_date else None,
                "end_date": self.end_date.isoformat() if self.end_date else None,
            },
            "by_type": {
                kind.value: {"total": str(t.total), "count": t.count}
                for kind, t in self.by_type.items()
            },
            "by_type_and_category": {
                kind.value: {
                    cat.value: {"total": str(t.total), "count": t.count}
                    for cat, t in cats.items()
                }
                for kind, cats in self.by_type_and_category.items()
            },
            "by_category": [
                {"category": row.category.value, "total": str(row.total), "count": row.count}
                for row in self.by_category
            ],
            "net_position": str(self.net_position),
            "record_count": self.record_count,
        }
