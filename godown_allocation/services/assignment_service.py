# godown_allocation/services/assignment_service.py
from typing import Any, Dict, Iterable, List, Optional

from godown_allocation.db import DatabaseInterface, get_database
from godown_allocation.models import GodownType
from godown_allocation.core.tier_rules import uses_ward_assignment
from godown_allocation.exceptions import ConflictError, ValidationError
from godown_allocation.logging_setup import get_logger
from godown_allocation.services.godown_service import GodownService
from godown_allocation.utils.validation import is_blank, raise_if_errors, validate_ward_numbers

logger = get_logger('assignments')

class AssignmentService:
    """Assigns local bodies and wards to godowns.

    Micro godowns are assigned ward by ward and a ward belongs to at most one
    micro godown. Local and area godowns cover whole local bodies and may
    overlap freely.
    """

    def __init__(self, database: Optional[DatabaseInterface] = None):
        """Initialize the assignment service.

        Args:
            database: Data-access interface (defaults to the configured one)
        """
        self.db = database or get_database()
        self.godowns = GodownService(self.db)

    def _tier(self, godown: Dict[str, Any]) -> GodownType:
        return GodownType.from_string(godown['godown_type'])

    def _wards_held_by_others(self, godown_id: str, local_body_id: str, for_update: bool = False) -> List[int]:
        rows = self.db.select(
            'godown_wards',
            columns=['ward_number'],
            filters={'local_body_id': local_body_id, 'godown_id__neq': godown_id},
            for_update=for_update
        )
        return sorted({r['ward_number'] for r in rows})

    def assign_wards(
        self,
        godown_id: str,
        local_body_id: str,
        ward_numbers: Optional[Iterable[int]] = None,
        all_wards: bool = False
    ) -> List[int]:
        """Replace a micro godown's wards in one local body.

        All earlier ward rows of the (godown, local body) pair are replaced by
        the new set in a single transaction.

        Args:
            godown_id: Micro godown ID
            local_body_id: Local body ID
            ward_numbers: Wards to assign
            all_wards: Assign every ward 1..ward_count instead of ward_numbers

        Returns:
            Sorted list of assigned ward numbers

        Raises:
            ValidationError: not a micro godown, no wards, or wards out of range
            ConflictError: a ward is held by another micro godown
        """
        godown = self.godowns.get_godown(godown_id)
        tier = self._tier(godown)
        if not uses_ward_assignment(tier):
            raise ValidationError(
                f"Wards can only be assigned to micro godowns; {godown['name']} is a {tier.value} godown"
            )

        body = self.godowns.get_local_body(local_body_id)
        ward_count = body.get('ward_count') or 0

        if all_wards:
            wards = list(range(1, ward_count + 1))
        else:
            wards = list(ward_numbers or [])

        raise_if_errors(validate_ward_numbers(wards, ward_count), "Invalid ward selection")
        wards = sorted(set(wards))

        with self.db.transaction():
            held = self._wards_held_by_others(godown_id, local_body_id, for_update=True)
            clashing = sorted(set(wards) & set(held))
            if clashing:
                logger.warning(
                    f"Ward assignment for godown {godown_id} in {body['name']} rejected; "
                    f"wards {clashing} belong to other micro godowns"
                )
                raise ConflictError(
                    f"Ward {', '.join(str(w) for w in clashing)} already assigned to other micro godowns",
                    code='ward_taken',
                    details={'local_body_id': local_body_id, 'wards': clashing}
                )

            link = {'godown_id': godown_id, 'local_body_id': local_body_id}
            if not self.db.select_one('godown_local_bodies', link):
                self.db.insert('godown_local_bodies', link)

            self.db.delete('godown_wards', link)
            self.db.insert('godown_wards', [dict(link, ward_number=w) for w in wards])

        logger.info(f"Assigned {len(wards)} ward(s) of {body['name']} to godown {godown_id}")
        return wards

    def assign_areas(self, godown_id: str, local_body_ids: Iterable[str]) -> List[str]:
        """Assign whole local bodies to a local or area godown.

        Local bodies already assigned to the godown are skipped.

        Returns:
            IDs of the newly assigned local bodies

        Raises:
            ValidationError: micro godown, nothing selected, or everything
                already assigned
        """
        godown = self.godowns.get_godown(godown_id)
        tier = self._tier(godown)
        if uses_ward_assignment(tier):
            raise ValidationError(
                f"{godown['name']} is a micro godown; assign wards instead of whole panchayaths"
            )

        requested = list(dict.fromkeys(i for i in (local_body_ids or []) if not is_blank(i)))
        if not requested:
            raise ValidationError("Select at least one panchayath")

        with self.db.transaction():
            known = {b['id'] for b in self.db.select('locations_local_bodies', columns=['id'],
                                                     filters={'id': requested})}
            missing = [i for i in requested if i not in known]
            if missing:
                raise ValidationError("Unknown local bodies", details={'local_body_ids': missing})

            existing = {
                r['local_body_id'] for r in self.db.select(
                    'godown_local_bodies', columns=['local_body_id'], filters={'godown_id': godown_id}
                )
            }
            new_ids = [i for i in requested if i not in existing]
            if not new_ids:
                raise ValidationError("All selected panchayaths are already assigned")

            self.db.insert('godown_local_bodies', [
                {'godown_id': godown_id, 'local_body_id': i} for i in new_ids
            ])

        logger.info(f"Assigned {len(new_ids)} panchayath(s) to {tier.value} godown {godown_id}")
        return new_ids

    def remove_assignment(self, godown_id: str, local_body_id: str) -> None:
        """Remove a local body (and its wards) from a godown. Absent assignments are ignored."""
        if is_blank(godown_id) or is_blank(local_body_id):
            raise ValidationError("Godown ID and local body ID are required")

        link = {'godown_id': godown_id, 'local_body_id': local_body_id}
        with self.db.transaction():
            wards = self.db.delete('godown_wards', link)
            links = self.db.delete('godown_local_bodies', link)

        if links or wards:
            logger.info(f"Removed local body {local_body_id} ({wards} ward(s)) from godown {godown_id}")
        else:
            logger.debug(f"No assignment of local body {local_body_id} on godown {godown_id}")

    def assigned_wards(self, godown_id: str, local_body_id: str) -> List[int]:
        rows = self.db.select(
            'godown_wards',
            columns=['ward_number'],
            filters={'godown_id': godown_id, 'local_body_id': local_body_id}
        )
        return sorted(r['ward_number'] for r in rows)

    def wards_held_by_others(self, godown_id: str, local_body_id: str) -> List[int]:
        return self._wards_held_by_others(godown_id, local_body_id)

    def available_wards(self, godown_id: str, local_body_id: str) -> List[int]:
        """Wards the godown may be offered: its own plus the unassigned ones."""
        body = self.godowns.get_local_body(local_body_id)
        held = set(self._wards_held_by_others(godown_id, local_body_id))
        return [w for w in range(1, (body.get('ward_count') or 0) + 1) if w not in held]

    def assignments_for_godown(self, godown_id: str) -> List[Dict[str, Any]]:
        """Local bodies assigned to a godown, with the wards held in each."""
        links = self.db.select(
            'godown_local_bodies',
            filters={'godown_id': godown_id},
            order='created_at',
            expand={'local_body': ('locations_local_bodies', 'local_body_id')}
        )

        wards_by_body: Dict[str, List[int]] = {}
        for row in self.db.select('godown_wards', filters={'godown_id': godown_id}):
            wards_by_body.setdefault(row['local_body_id'], []).append(row['ward_number'])

        assignments = []
        for link in links:
            body = link.get('local_body') or {}
            wards = sorted(wards_by_body.get(link['local_body_id'], []))
            ward_count = body.get('ward_count')
            assignments.append({
                'assignment_id': link['id'],
                'local_body_id': link['local_body_id'],
                'local_body_name': body.get('name', 'Unknown'),
                'wards': wards,
                'all_wards': bool(wards) and ward_count is not None and len(wards) == ward_count,
            })
        return assignments

    def serving_godowns(self, local_body_id: str, ward_number: int) -> List[str]:
        """Godowns visible to a customer living in the given ward.

        These are the micro godown holding the ward and the area godowns
        covering the local body.
        """
        micro_ids = {
            r['godown_id'] for r in self.db.select(
                'godown_wards', columns=['godown_id'],
                filters={'local_body_id': local_body_id, 'ward_number': ward_number}
            )
        }
        area_ids = {
            r['godown_id'] for r in self.db.select(
                'godown_local_bodies', columns=['godown_id'],
                filters={'local_body_id': local_body_id}
            )
        }
        candidates = micro_ids | area_ids
        if not candidates:
            return []

        godowns = self.db.select('godowns', filters={'id': list(candidates), 'is_active': True}, order='name')
        return [
            g['id'] for g in godowns
            if (g['godown_type'] == GodownType.MICRO.value and g['id'] in micro_ids)
            or (g['godown_type'] == GodownType.AREA.value and g['id'] in area_ids)
        ]
