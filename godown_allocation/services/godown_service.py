# godown_allocation/services/godown_service.py
from typing import List, Dict, Optional, Any

from godown_allocation.db import DatabaseInterface, get_database
from godown_allocation.models import GodownType
from godown_allocation.exceptions import NotFoundError, ValidationError
from godown_allocation.logging_setup import get_logger

logger = get_logger('godowns')

class GodownService:
    """Service for the godown registry and local body reference data."""

    def __init__(self, database: Optional[DatabaseInterface] = None):
        """Initialize the godown service.

        Args:
            database: Data-access interface (defaults to the configured one)
        """
        self.db = database or get_database()

    def create_godown(self, name: str, godown_type: str) -> Dict[str, Any]:
        """Create a godown.

        Args:
            name: Display name
            godown_type: 'micro', 'local' or 'area'

        Returns:
            The stored godown row
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError("Godown name is required", details={'name': 'required'})

        try:
            tier = GodownType.from_string(godown_type)
        except ValueError as e:
            raise ValidationError(str(e), details={'godown_type': godown_type})

        godown = self.db.insert('godowns', {'name': name, 'godown_type': tier.value, 'is_active': True})[0]
        logger.info(f"Created {tier.value} godown {godown['id']} ({name})")
        return godown

    def get_godown(self, godown_id: str) -> Dict[str, Any]:
        """Get a godown by ID.

        Raises:
            NotFoundError if the godown does not exist
        """
        if not godown_id:
            raise ValidationError("Godown ID is required")
        godown = self.db.select_one('godowns', {'id': godown_id})
        if not godown:
            raise NotFoundError(f"Godown with ID {godown_id} not found")
        return godown

    def list_godowns(self, godown_type: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        """List godowns, newest first."""
        filters = {}
        if godown_type:
            try:
                filters['godown_type'] = GodownType.from_string(godown_type).value
            except ValueError as e:
                raise ValidationError(str(e), details={'godown_type': godown_type})
        if active_only:
            filters['is_active'] = True
        return self.db.select('godowns', filters=filters, order='-created_at')

    def count_by_type(self) -> Dict[str, int]:
        counts = {t.value: 0 for t in GodownType}
        for godown in self.db.select('godowns', columns='godown_type'):
            counts[godown['godown_type']] = counts.get(godown['godown_type'], 0) + 1
        return counts

    def set_active(self, godown_id: str, is_active: bool) -> Dict[str, Any]:
        """Soft-activate or deactivate a godown."""
        self.get_godown(godown_id)
        godown = self.db.update('godowns', {'is_active': bool(is_active)}, {'id': godown_id})[0]
        logger.info(f"Godown {godown_id} {'activated' if is_active else 'deactivated'}")
        return godown

    def delete_godown(self, godown_id: str) -> None:
        """Delete a godown together with the rows it owns.

        Ward rows, local body assignments and stock entries go with it.
        Transfers only reference godowns by ID and are kept.
        """
        with self.db.transaction():
            self.get_godown(godown_id)
            wards = self.db.delete('godown_wards', {'godown_id': godown_id})
            areas = self.db.delete('godown_local_bodies', {'godown_id': godown_id})
            stock = self.db.delete('godown_stock', {'godown_id': godown_id})
            self.db.delete('godowns', {'id': godown_id})

        logger.info(
            f"Deleted godown {godown_id} with {wards} ward(s), {areas} assignment(s), {stock} stock entr(ies)"
        )

    def list_local_bodies(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """List active local bodies, optionally matching name or body type."""
        bodies = self.db.select('locations_local_bodies', filters={'is_active': True}, order='name')
        if search and search.strip():
            needle = search.strip().lower()
            bodies = [
                b for b in bodies
                if needle in (b.get('name') or '').lower() or needle in (b.get('body_type') or '').lower()
            ]
        return bodies

    def get_local_body(self, local_body_id: str) -> Dict[str, Any]:
        if not local_body_id:
            raise ValidationError("Local body ID is required")
        body = self.db.select_one('locations_local_bodies', {'id': local_body_id})
        if not body:
            raise NotFoundError(f"Local body with ID {local_body_id} not found")
        return body
