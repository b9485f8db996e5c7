from numbers import Number
from typing import Any, Dict, Iterable, Optional

from godown_allocation.exceptions import ValidationError
from godown_allocation.utils.date_utils import to_date

def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    return value is None or (isinstance(value, str) and not value.strip())

def is_positive_int(value: Any) -> bool:
    """True for integral numbers greater than zero (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, Number):
        return False
    return value > 0 and int(value) == value

def is_valid_date(value: Any) -> bool:
    """True for empty values and for anything to_date can read."""
    try:
        to_date(value)
    except (TypeError, ValueError):
        return False
    return True

def is_window_days(value: Any) -> bool:
    """True for whole numbers of days, zero included (bools excluded)."""
    return not isinstance(value, bool) and isinstance(value, int) and value >= 0

def raise_if_errors(errors: Dict[str, str], message: str):
    """Raise a ValidationError carrying the field errors, if there are any."""
    if errors:
        raise ValidationError(message, code='invalid_input', details=errors)

def validate_stock_entry(
    godown_id: Any,
    product_id: Any,
    quantity: Any,
    purchase_price: Any,
    expiry_date: Any = None
) -> Dict[str, str]:
    """Validate a stock-in line.

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if is_blank(godown_id):
        errors['godown_id'] = 'Godown ID is required'

    if is_blank(product_id):
        errors['product_id'] = 'Product ID is required'

    if not is_positive_int(quantity):
        errors['quantity'] = 'Quantity must be a whole number greater than zero'

    if isinstance(purchase_price, bool) or not isinstance(purchase_price, Number) or purchase_price < 0:
        errors['purchase_price'] = 'Purchase price must be zero or more'

    if not is_valid_date(expiry_date):
        errors['expiry_date'] = f"Expiry date must be YYYY-MM-DD: {expiry_date}"

    return errors

def validate_transfer(
    from_godown_id: Any,
    to_godown_id: Any,
    product_id: Any,
    quantity: Any
) -> Dict[str, str]:
    """Validate a transfer request.

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    if is_blank(from_godown_id):
        errors['from_godown_id'] = 'Source godown is required'

    if is_blank(to_godown_id):
        errors['to_godown_id'] = 'Destination godown is required'

    if is_blank(product_id):
        errors['product_id'] = 'Product ID is required'

    if not is_positive_int(quantity):
        errors['quantity'] = 'Quantity must be a whole number greater than zero'

    return errors

def validate_ward_numbers(ward_numbers: Iterable[Any], ward_count: Optional[int]) -> Dict[str, str]:
    """Validate ward numbers against the local body's ward count."""
    errors = {}
    wards = list(ward_numbers)

    if not wards:
        errors['ward_numbers'] = 'Select at least one ward'
        return errors

    invalid = list(dict.fromkeys(
        w for w in wards if not is_positive_int(w) or (ward_count is not None and w > ward_count)
    ))
    if invalid:
        errors['ward_numbers'] = f"Wards out of range 1..{ward_count}: {', '.join(str(w) for w in invalid)}"

    return errors
