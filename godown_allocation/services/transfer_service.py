# godown_allocation/services/transfer_service.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from godown_allocation.config import config
from godown_allocation.db import DatabaseInterface, get_database
from godown_allocation.models import BatchSelectionPolicy, GodownType, TransferStatus, TransferType
from godown_allocation.core.batch_selection import plan_decrement, select_entry
from godown_allocation.core.tier_rules import allowed_target_types, default_transfer_type, filter_targets, is_valid_target
from godown_allocation.exceptions import InvalidStateError, NotFoundError, ValidationError
from godown_allocation.logging_setup import get_logger
from godown_allocation.services.godown_service import GodownService
from godown_allocation.utils.date_utils import to_datetime
from godown_allocation.utils.validation import is_blank, raise_if_errors, validate_transfer

logger = get_logger('transfers')

TRANSFER_EXPAND = {
    'product': ('products', 'product_id'),
    'from_godown': ('godowns', 'from_godown_id'),
    'to_godown': ('godowns', 'to_godown_id'),
}


@dataclass
class StockWarning:
    """A reconciliation anomaly raised while completing a transfer.

    Codes:
        insufficient_stock: source total was below the transfer quantity
        missing_source: source godown had no entry for the product
        clamped_source: the source entry was floored at zero
        negative_balance: the source entry went below zero
    """
    code: str
    godown_id: str
    product_id: str
    message: str
    requested: int = 0
    applied: int = 0


@dataclass
class TransferResult:
    transfer: Dict[str, Any]
    warnings: List[StockWarning] = field(default_factory=list)

    @property
    def status(self) -> str:
        return self.transfer['status']


class TransferService:
    """Moves stock between godowns through a pending -> completed/rejected workflow."""

    def __init__(
        self,
        database: Optional[DatabaseInterface] = None,
        allow_negative_stock: Optional[bool] = None,
        batch_selection: Optional[BatchSelectionPolicy] = None
    ):
        """Initialize the transfer service.

        Args:
            database: Data-access interface (defaults to the configured one)
            allow_negative_stock: Let source entries go below zero instead of
                clamping (defaults to the STOCK configuration)
            batch_selection: Which source entry a completed transfer draws
                from (defaults to the STOCK configuration)
        """
        self.db = database or get_database()
        self.godowns = GodownService(self.db)

        rules = config.stock_rules
        self.allow_negative_stock = (
            rules['allow_negative_stock'] if allow_negative_stock is None else allow_negative_stock
        )
        self.batch_selection = batch_selection or BatchSelectionPolicy(rules['batch_selection'])

    # -- queries --------------------------------------------------------

    def get_transfer(self, transfer_id: str) -> Dict[str, Any]:
        if is_blank(transfer_id):
            raise ValidationError("Transfer ID is required")
        transfer = self.db.select_one('stock_transfers', {'id': transfer_id})
        if not transfer:
            raise NotFoundError(f"Transfer with ID {transfer_id} not found")
        return transfer

    def transfer_targets(self, from_godown_id: str) -> List[Dict[str, Any]]:
        """Active godowns that transfers out of the given godown may go to."""
        source = self.godowns.get_godown(from_godown_id)
        candidates = self.db.select('godowns', filters={'is_active': True}, order='name')
        return filter_targets(source, candidates)

    def transfers_for_godown(self, godown_id: str) -> List[Dict[str, Any]]:
        """Transfers into or out of a godown, newest first."""
        outgoing = self.db.select('stock_transfers', filters={'from_godown_id': godown_id}, expand=TRANSFER_EXPAND)
        incoming = self.db.select('stock_transfers', filters={'to_godown_id': godown_id}, expand=TRANSFER_EXPAND)

        merged = {t['id']: t for t in outgoing + incoming}
        return sorted(
            merged.values(),
            key=lambda t: to_datetime(t.get('created_at')) or datetime.min,
            reverse=True
        )

    def pending_transfers(self) -> List[Dict[str, Any]]:
        return self.db.select(
            'stock_transfers',
            filters={'status': TransferStatus.PENDING.value},
            order='-created_at',
            expand=TRANSFER_EXPAND
        )

    # -- workflow -------------------------------------------------------

    def create_transfer(
        self,
        from_godown_id: str,
        to_godown_id: str,
        product_id: str,
        quantity: int,
        batch_number: Optional[str] = None,
        transfer_type: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Request a transfer. Available stock is not checked at this point.

        Args:
            from_godown_id: Source godown
            to_godown_id: Destination godown, which must be allowed for the
                source tier (local -> micro, micro -> local, area -> any)
            product_id: Product to move
            quantity: Units to move
            batch_number: Optional batch to draw from
            transfer_type: 'transfer' or 'return'; defaults to 'return' out of
                micro godowns and 'transfer' otherwise
            created_by: Optional user ID

        Returns:
            The stored transfer, status 'pending'
        """
        raise_if_errors(
            validate_transfer(from_godown_id, to_godown_id, product_id, quantity),
            "Fill all required fields"
        )

        source = self.godowns.get_godown(from_godown_id)
        source_type = GodownType.from_string(source['godown_type'])

        if transfer_type is None:
            kind = default_transfer_type(source_type)
        else:
            try:
                kind = TransferType.from_string(transfer_type)
            except ValueError as e:
                raise ValidationError(str(e), details={'transfer_type': transfer_type})

        target = self.db.select_one('godowns', {'id': to_godown_id})
        if not target or not is_valid_target(source, target):
            allowed = sorted(t.value for t in allowed_target_types(source_type))
            raise ValidationError(
                f"Godown {to_godown_id} is not a valid destination for a {source_type.value} godown",
                code='invalid_target',
                details={'allowed_types': allowed}
            )

        transfer = self.db.insert('stock_transfers', {
            'from_godown_id': from_godown_id,
            'to_godown_id': to_godown_id,
            'product_id': product_id,
            'quantity': int(quantity),
            'batch_number': (batch_number or '').strip() or None,
            'transfer_type': kind.value,
            'status': TransferStatus.PENDING.value,
            'created_by': created_by,
        })[0]

        logger.info(
            f"Created {kind.value} {transfer['id']}: {quantity} of product {product_id} "
            f"from {from_godown_id} to {to_godown_id}"
        )
        return transfer

    def _lock_pending(self, transfer_id: str, action: str) -> Dict[str, Any]:
        if is_blank(transfer_id):
            raise ValidationError("Transfer ID is required")

        transfer = self.db.select_one('stock_transfers', {'id': transfer_id}, for_update=True)
        if not transfer:
            raise NotFoundError(f"Transfer with ID {transfer_id} not found")

        if TransferStatus(transfer['status']).is_terminal:
            logger.warning(f"Refused to {action} transfer {transfer_id} in status {transfer['status']}")
            raise InvalidStateError(
                f"Cannot {action} transfer {transfer_id}: it is already {transfer['status']}",
                code='not_pending',
                details={'status': transfer['status']}
            )
        return transfer

    def _set_status(self, transfer: Dict[str, Any], status: TransferStatus) -> Dict[str, Any]:
        # Conditional on 'pending' so a concurrent decision cannot be applied twice
        updated = self.db.update(
            'stock_transfers',
            {'status': status.value},
            {'id': transfer['id'], 'status': TransferStatus.PENDING.value}
        )
        if not updated:
            raise InvalidStateError(
                f"Transfer {transfer['id']} was decided by another request",
                code='not_pending'
            )
        return updated[0]

    def _receive(self, transfer: Dict[str, Any]) -> None:
        """Add the transfer quantity to the destination's oldest entry, or open one."""
        entries = self.db.select(
            'godown_stock',
            filters={'godown_id': transfer['to_godown_id'], 'product_id': transfer['product_id']},
            for_update=True
        )
        entry = select_entry(entries, BatchSelectionPolicy.FIFO_CREATED)

        if entry:
            self.db.update('godown_stock', {'quantity': entry['quantity'] + transfer['quantity']}, {'id': entry['id']})
        else:
            self.db.insert('godown_stock', {
                'godown_id': transfer['to_godown_id'],
                'product_id': transfer['product_id'],
                'quantity': transfer['quantity'],
                'purchase_price': 0,
                'batch_number': transfer.get('batch_number'),
            })

    def _dispatch(self, transfer: Dict[str, Any]) -> List[StockWarning]:
        """Take the transfer quantity from one source entry and report anomalies."""
        godown_id = transfer['from_godown_id']
        product_id = transfer['product_id']
        requested = transfer['quantity']

        entries = self.db.select(
            'godown_stock',
            filters={'godown_id': godown_id, 'product_id': product_id},
            for_update=True
        )
        if not entries:
            return [StockWarning(
                'missing_source', godown_id, product_id,
                f"Godown {godown_id} has no stock entry for product {product_id}; "
                f"transfer {transfer['id']} took nothing from it",
                requested=requested, applied=0
            )]

        batch = transfer.get('batch_number')
        candidates = [e for e in entries if batch and e.get('batch_number') == batch] or entries
        entry = select_entry(candidates, self.batch_selection)

        new_quantity, applied = plan_decrement(entry['quantity'], requested, self.allow_negative_stock)
        self.db.update('godown_stock', {'quantity': new_quantity}, {'id': entry['id']})

        warnings = []
        total = sum(e['quantity'] or 0 for e in entries)
        if total < requested:
            # applied is what left the single adjusted entry, not the godown total
            warnings.append(StockWarning(
                'insufficient_stock', godown_id, product_id,
                f"Godown {godown_id} held {total} of product {product_id} "
                f"but transfer {transfer['id']} moved {requested}",
                requested=requested, applied=applied
            ))

        if new_quantity < 0:
            warnings.append(StockWarning(
                'negative_balance', godown_id, product_id,
                f"Stock entry {entry['id']} at godown {godown_id} is now {new_quantity}",
                requested=requested, applied=applied
            ))
        elif applied < requested:
            warnings.append(StockWarning(
                'clamped_source', godown_id, product_id,
                f"Stock entry {entry['id']} at godown {godown_id} held {entry['quantity']}; "
                f"took {applied} of {requested} and clamped at zero",
                requested=requested, applied=applied
            ))
        return warnings

    def approve(self, transfer_id: str) -> TransferResult:
        """Complete a pending transfer and reconcile both ledgers.

        The status change, the destination increment and the source decrement
        run in one transaction.

        Returns:
            TransferResult with the completed transfer and any stock warnings

        Raises:
            InvalidStateError: the transfer is not pending
        """
        with self.db.transaction():
            transfer = self._lock_pending(transfer_id, 'approve')
            transfer = self._set_status(transfer, TransferStatus.COMPLETED)
            self._receive(transfer)
            warnings = self._dispatch(transfer)

        for warning in warnings:
            logger.warning(f"[{warning.code}] {warning.message}")
        logger.info(f"Transfer {transfer_id} completed ({transfer['quantity']} of product {transfer['product_id']})")
        return TransferResult(transfer, warnings)

    def reject(self, transfer_id: str) -> Dict[str, Any]:
        """Reject a pending transfer. Stock is not touched."""
        with self.db.transaction():
            transfer = self._lock_pending(transfer_id, 'reject')
            transfer = self._set_status(transfer, TransferStatus.REJECTED)

        logger.info(f"Transfer {transfer_id} rejected")
        return transfer
