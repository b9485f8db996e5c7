# godown_allocation/core/tier_rules.py
from typing import Dict, Iterable, List, Set, Any

from godown_allocation.models import GodownType, TransferType

# Destination tiers a source tier may send stock to
ALLOWED_TARGET_TYPES: Dict[GodownType, Set[GodownType]] = {
    GodownType.LOCAL: {GodownType.MICRO},
    GodownType.MICRO: {GodownType.LOCAL},
    GodownType.AREA: {GodownType.MICRO, GodownType.LOCAL, GodownType.AREA},
}

CUSTOMER_VISIBLE_TYPES = {GodownType.MICRO, GodownType.AREA}

WARD_ASSIGNED_TYPES = {GodownType.MICRO}


def allowed_target_types(source_type: GodownType) -> Set[GodownType]:
    """Get the tiers a godown of the given tier may transfer to."""
    return ALLOWED_TARGET_TYPES.get(source_type, set())


def is_valid_target(source: Dict[str, Any], target: Dict[str, Any]) -> bool:
    """Check whether target is an allowed destination for transfers out of source.

    Args:
        source: Source godown row
        target: Candidate destination godown row

    Returns:
        True when the target is active, distinct from the source, and of an
        allowed tier
    """
    if target['id'] == source['id'] or not target.get('is_active', True):
        return False

    source_type = GodownType.from_string(source['godown_type'])
    target_type = GodownType.from_string(target['godown_type'])
    return target_type in allowed_target_types(source_type)


def filter_targets(source: Dict[str, Any], godowns: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the godowns a transfer out of source may be addressed to."""
    return [g for g in godowns if is_valid_target(source, g)]


def default_transfer_type(source_type: GodownType) -> TransferType:
    """Micro godowns send stock back up as returns; everything else is a transfer."""
    if source_type is GodownType.MICRO:
        return TransferType.RETURN
    return TransferType.TRANSFER


def is_customer_visible(godown_type: GodownType) -> bool:
    return godown_type in CUSTOMER_VISIBLE_TYPES


def uses_ward_assignment(godown_type: GodownType) -> bool:
    """Micro godowns are assigned ward by ward; the other tiers by whole local body."""
    return godown_type in WARD_ASSIGNED_TYPES
