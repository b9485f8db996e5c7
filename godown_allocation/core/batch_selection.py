# godown_allocation/core/batch_selection.py
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from godown_allocation.models import BatchSelectionPolicy
from godown_allocation.utils.date_utils import to_date, to_datetime

Entry = Dict[str, Any]


def _creation_key(entry: Entry) -> Tuple[datetime, str]:
    return (to_datetime(entry.get('created_at')) or datetime.min, str(entry.get('id')))


def order_by_creation(entries: List[Entry]) -> List[Entry]:
    """Oldest created entry first."""
    return sorted(entries, key=_creation_key)


def order_by_expiry(entries: List[Entry]) -> List[Entry]:
    """Earliest expiry first; entries without an expiry date go last, oldest first."""
    def key(entry):
        expiry = to_date(entry.get('expiry_date'))
        return (expiry is None, expiry or date.max, _creation_key(entry))
    return sorted(entries, key=key)


STRATEGIES: Dict[BatchSelectionPolicy, Callable[[List[Entry]], List[Entry]]] = {
    BatchSelectionPolicy.FIFO_CREATED: order_by_creation,
    BatchSelectionPolicy.FIFO_EXPIRY: order_by_expiry,
}


def get_strategy(policy: BatchSelectionPolicy) -> Callable[[List[Entry]], List[Entry]]:
    """Get the ordering function for a batch selection policy."""
    return STRATEGIES[policy]


def select_entry(entries: List[Entry], policy: BatchSelectionPolicy) -> Optional[Entry]:
    """Pick the stock entry a transfer adjusts, or None when there are none."""
    ordered = get_strategy(policy)(entries)
    return ordered[0] if ordered else None


def plan_decrement(current: int, requested: int, allow_negative: bool) -> Tuple[int, int]:
    """Work out the new quantity of a source entry after taking `requested` units.

    With allow_negative the entry simply goes down by the full amount.
    Otherwise the result is floored at zero, and an entry that is already at
    or below zero is left as it is.

    Args:
        current: Current entry quantity
        requested: Units the transfer takes
        allow_negative: Whether the entry may go below zero

    Returns:
        Tuple with the new quantity and the units actually taken
    """
    if allow_negative:
        return current - requested, requested

    new_quantity = min(current, max(0, current - requested))
    return new_quantity, current - new_quantity
