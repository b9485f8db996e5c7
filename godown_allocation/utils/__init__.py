from .date_utils import to_datetime, to_date, day_start, day_end, expiry_cutoff
from .validation import (
    is_blank, is_positive_int, is_valid_date, is_window_days, raise_if_errors,
    validate_stock_entry, validate_transfer, validate_ward_numbers
)

__all__ = [
    'to_datetime',
    'to_date',
    'day_start',
    'day_end',
    'expiry_cutoff',
    'is_blank',
    'is_positive_int',
    'is_valid_date',
    'is_window_days',
    'raise_if_errors',
    'validate_stock_entry',
    'validate_transfer',
    'validate_ward_numbers'
]
