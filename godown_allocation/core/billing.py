# godown_allocation/core/billing.py
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from godown_allocation.utils.date_utils import to_date, to_datetime

Entry = Dict[str, Any]

SINGLETON_PREFIX = 'no-bill-'


@dataclass
class Bill:
    """A purchase bill: stock entries sharing one purchase number.

    Entries without a purchase number each form their own bill with
    bill_number None.
    """
    key: str
    bill_number: Optional[str]
    date: Optional[date]
    entries: List[Entry] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.entries)

    @property
    def total_quantity(self) -> int:
        return sum(e.get('quantity') or 0 for e in self.entries)

    @property
    def total_amount(self) -> float:
        return sum((e.get('quantity') or 0) * (e.get('purchase_price') or 0) for e in self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bill_number': self.bill_number,
            'date': self.date,
            'item_count': self.item_count,
            'total_quantity': self.total_quantity,
            'total_amount': self.total_amount,
            'entries': list(self.entries),
        }


def bill_key(entry: Entry) -> str:
    """Grouping key: the purchase number, or a per-entry key when there is none."""
    return entry.get('purchase_number') or f"{SINGLETON_PREFIX}{entry['id']}"


def group_into_bills(entries: List[Entry]) -> List[Bill]:
    """Group stock entries into bills, newest first.

    Entries are ordered by creation time descending; a bill takes the date of
    its newest entry and bills keep the order in which they first appear.

    Args:
        entries: Stock entry rows of one godown

    Returns:
        List of Bill objects
    """
    ordered = sorted(
        entries,
        key=lambda e: to_datetime(e.get('created_at')) or datetime.min,
        reverse=True
    )

    bills: Dict[str, Bill] = {}
    for entry in ordered:
        key = bill_key(entry)
        if key not in bills:
            bills[key] = Bill(
                key=key,
                bill_number=entry.get('purchase_number') or None,
                date=to_date(entry.get('created_at'))
            )
        bills[key].entries.append(entry)

    return list(bills.values())
