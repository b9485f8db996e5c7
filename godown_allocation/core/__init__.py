from .tier_rules import (
    allowed_target_types, is_valid_target, filter_targets,
    default_transfer_type, is_customer_visible, uses_ward_assignment
)
from .batch_selection import order_by_creation, order_by_expiry, get_strategy, select_entry, plan_decrement
from .billing import Bill, bill_key, group_into_bills

__all__ = [
    'allowed_target_types',
    'is_valid_target',
    'filter_targets',
    'default_transfer_type',
    'is_customer_visible',
    'uses_ward_assignment',
    'order_by_creation',
    'order_by_expiry',
    'get_strategy',
    'select_entry',
    'plan_decrement',
    'Bill',
    'bill_key',
    'group_into_bills'
]
