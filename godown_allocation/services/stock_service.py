# godown_allocation/services/stock_service.py
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from godown_allocation.config import config
from godown_allocation.db import DatabaseInterface, get_database
from godown_allocation.models import GodownType
from godown_allocation.core.billing import Bill, group_into_bills
from godown_allocation.exceptions import ValidationError
from godown_allocation.logging_setup import get_logger
from godown_allocation.services.assignment_service import AssignmentService
from godown_allocation.services.godown_service import GodownService
from godown_allocation.utils.date_utils import day_end, day_start, expiry_cutoff, to_date
from godown_allocation.utils.validation import (
    is_blank, is_valid_date, is_window_days, raise_if_errors, validate_stock_entry
)

logger = get_logger('stock')

PRODUCT_EXPAND = {'product': ('products', 'product_id')}

class StockService:
    """Stock ledger: owns every read and write of godown_stock rows."""

    def __init__(self, database: Optional[DatabaseInterface] = None):
        """Initialize the stock service.

        Args:
            database: Data-access interface (defaults to the configured one)
        """
        self.db = database or get_database()
        self.godowns = GodownService(self.db)

    def _entry_row(
        self,
        godown_id: str,
        product_id: str,
        quantity: int,
        purchase_price: float,
        batch_number: Optional[str],
        expiry_date: Optional[date],
        purchase_number: Optional[str]
    ) -> Dict[str, Any]:
        raise_if_errors(
            validate_stock_entry(godown_id, product_id, quantity, purchase_price, expiry_date),
            "Fill all required fields"
        )
        return {
            'godown_id': godown_id,
            'product_id': product_id,
            'quantity': int(quantity),
            'purchase_price': purchase_price,
            'batch_number': (batch_number or '').strip() or None,
            'expiry_date': to_date(expiry_date),
            'purchase_number': (purchase_number or '').strip() or None,
        }

    def add_stock(
        self,
        godown_id: str,
        product_id: str,
        quantity: int,
        purchase_price: float = 0,
        batch_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        purchase_number: Optional[str] = None
    ) -> Dict[str, Any]:
        """Record a stock-in. Always creates a new entry, never merges batches.

        Returns:
            The stored stock entry
        """
        row = self._entry_row(godown_id, product_id, quantity, purchase_price,
                              batch_number, expiry_date, purchase_number)
        self.godowns.get_godown(godown_id)

        entry = self.db.insert('godown_stock', row)[0]
        logger.info(f"Added {row['quantity']} of product {product_id} to godown {godown_id}")
        return entry

    def record_purchase(self, godown_id: str, purchase_number: str, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Record a purchase bill: every line becomes a stock entry sharing the purchase number.

        Args:
            godown_id: Receiving godown
            purchase_number: Bill number shared by the lines
            items: Dictionaries with product_id, quantity and optionally
                purchase_price, batch_number, expiry_date

        Returns:
            The stored stock entries
        """
        if is_blank(purchase_number):
            raise ValidationError("Purchase number is required")

        items = list(items or [])
        if not items:
            raise ValidationError("A purchase needs at least one item")

        rows = []
        errors = {}
        for index, item in enumerate(items):
            try:
                rows.append(self._entry_row(
                    godown_id,
                    item.get('product_id'),
                    item.get('quantity'),
                    item.get('purchase_price', 0),
                    item.get('batch_number'),
                    item.get('expiry_date'),
                    purchase_number
                ))
            except ValidationError as e:
                errors[f"items[{index}]"] = e.details
        if errors:
            raise ValidationError("Invalid purchase lines", code='invalid_input', details=errors)

        with self.db.transaction():
            self.godowns.get_godown(godown_id)
            entries = self.db.insert('godown_stock', rows)

        logger.info(f"Recorded purchase {purchase_number} with {len(entries)} line(s) at godown {godown_id}")
        return entries

    def remove_stock_entry(self, entry_id: str) -> int:
        """Hard-delete a stock entry, whatever its remaining quantity."""
        if is_blank(entry_id):
            raise ValidationError("Stock entry ID is required")
        removed = self.db.delete('godown_stock', {'id': entry_id})
        if removed:
            logger.info(f"Removed stock entry {entry_id}")
        return removed

    def stock_entries(self, godown_id: str) -> List[Dict[str, Any]]:
        """Raw stock entries of a godown, newest first, with the product attached."""
        return self.db.select(
            'godown_stock',
            filters={'godown_id': godown_id},
            order=['-created_at', 'id'],
            expand=PRODUCT_EXPAND
        )

    def _totals(self, entries: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        totals: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            product = entry.get('product') or {}
            bucket = totals.setdefault(entry['product_id'], {
                'product_id': entry['product_id'],
                'product_name': product.get('name') or 'Unknown',
                'reference_price': product.get('mrp') or 0,
                'total_quantity': 0,
            })
            bucket['total_quantity'] += entry.get('quantity') or 0
        return totals

    def aggregate_by_product(self, godown_id: str) -> List[Dict[str, Any]]:
        """Sum quantities per product across all entries of a godown.

        Returns:
            List of dictionaries with product_id, product_name, total_quantity
            and reference_price (the product MRP)
        """
        entries = self.db.select('godown_stock', filters={'godown_id': godown_id},
                                 order='created_at', expand=PRODUCT_EXPAND)
        return list(self._totals(entries).values())

    def grouped_availability(self, godown_id: str) -> List[Dict[str, Any]]:
        """Per-product totals sorted by product name, for transfer pickers.

        Negative totals are kept and flagged with negative=True.
        """
        grouped = []
        for total in self.aggregate_by_product(godown_id):
            negative = total['total_quantity'] < 0
            if negative:
                logger.warning(
                    f"Negative stock for product {total['product_id']} at godown {godown_id}: "
                    f"{total['total_quantity']}"
                )
            grouped.append({
                'product_id': total['product_id'],
                'product_name': total['product_name'],
                'total_quantity': total['total_quantity'],
                'negative': negative,
            })
        return sorted(grouped, key=lambda g: (g['product_name'].casefold(), g['product_id']))

    def product_total(self, godown_id: str, product_id: str) -> int:
        rows = self.db.select('godown_stock', columns=['quantity'],
                              filters={'godown_id': godown_id, 'product_id': product_id})
        return sum(r['quantity'] or 0 for r in rows)

    def available_quantity(self, product_id: str, godown_ids: Iterable[str]) -> int:
        """Total quantity of a product across several godowns."""
        godown_ids = list(godown_ids)
        if not godown_ids:
            return 0
        rows = self.db.select('godown_stock', columns=['quantity'],
                              filters={'product_id': product_id, 'godown_id': godown_ids})
        return sum(r['quantity'] or 0 for r in rows)

    def customer_available_stock(
        self,
        product_id: str,
        local_body_id: Optional[str],
        ward_number: Optional[int],
        fallback_stock: int = 0
    ) -> int:
        """Stock a customer at the given location can order.

        Sums the product across the godowns serving the location; when no
        godown serves it, or they hold nothing, the product's own stock
        figure is used instead.
        """
        if not local_body_id or not ward_number:
            return fallback_stock

        godown_ids = AssignmentService(self.db).serving_godowns(local_body_id, ward_number)
        if not godown_ids:
            return fallback_stock

        total = self.available_quantity(product_id, godown_ids)
        return total if total > 0 else fallback_stock

    def bill_grouped_history(
        self,
        godown_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> List[Bill]:
        """Purchase history of a godown grouped into bills, newest first.

        Args:
            godown_id: Godown ID
            from_date: Earliest day to include
            to_date: Last day to include (the whole day counts)

        Returns:
            List of Bill objects
        """
        errors = {}
        if not is_valid_date(from_date):
            errors['from_date'] = f"From date must be YYYY-MM-DD: {from_date}"
        if not is_valid_date(to_date):
            errors['to_date'] = f"To date must be YYYY-MM-DD: {to_date}"
        raise_if_errors(errors, "Invalid date range")

        filters: Dict[str, Any] = {'godown_id': godown_id}
        if from_date:
            filters['created_at__gte'] = day_start(from_date)
        if to_date:
            filters['created_at__lte'] = day_end(to_date)

        entries = self.db.select('godown_stock', filters=filters, order='-created_at', expand=PRODUCT_EXPAND)
        return group_into_bills(entries)

    def seller_listings(self, godown_id: str) -> List[Dict[str, Any]]:
        """Approved, active seller products bound to an area godown."""
        godown = self.godowns.get_godown(godown_id)
        if godown['godown_type'] != GodownType.AREA.value:
            return []
        return self.db.select(
            'seller_products',
            filters={'area_godown_id': godown_id, 'is_approved': True, 'is_active': True},
            order='name'
        )

    def expiring_entries(self, godown_id: str, within_days: Optional[int] = None) -> List[Dict[str, Any]]:
        """Entries with stock left whose expiry date falls within the window.

        Already expired entries are included. The window defaults to the
        configured expiry_warning_days.
        """
        if within_days is None:
            within_days = config.stock_rules['expiry_warning_days']
        if not is_window_days(within_days):
            raise ValidationError(
                f"Expiry window must be a whole number of days: {within_days}",
                code='invalid_input',
                details={'within_days': within_days}
            )
        cutoff = expiry_cutoff(within_days)

        return self.db.select(
            'godown_stock',
            filters={'godown_id': godown_id, 'quantity__gt': 0, 'expiry_date__lte': cutoff},
            order='expiry_date',
            expand=PRODUCT_EXPAND
        )
