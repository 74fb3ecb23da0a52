"""
Join bookkeeping for cross-relation filters
"""

from typing import Callable, Dict, List, Tuple

from sqlalchemy import and_
from sqlalchemy.sql import Select

import models
from logging_setup import logger
from .conditions import QueryBuildError
from .field_resolver import BASE_ENTITY

# Relation name -> (joined model, ON clause factory)
RELATIONSHIPS: Dict[str, Tuple[type, Callable]] = {
    "batches": (models.Batch, lambda: models.Batch.inventory_id == models.Inventory.id),
    "inventory_logs": (models.InventoryLog, lambda: models.InventoryLog.inventory_id == models.Inventory.id),
    "shipments": (models.Shipment, lambda: models.Shipment.inventory_id == models.Inventory.id),
    "receipts": (models.Receipt, lambda: models.Receipt.inventory_id == models.Inventory.id),
    "audit_logs": (
        models.AuditLog,
        lambda: and_(
            models.AuditLog.auditable_type == "Inventory",
            models.AuditLog.auditable_id == models.Inventory.id,
        ),
    ),
}


class JoinManager:
    """
    Tracks relations joined into one query context.

    Every relation is one-to-many from inventories, so the first join also turns on
    DISTINCT; it stays on for the life of the context.
    """

    def __init__(self):
        self.joined: List[str] = []
        self.distinct_applied = False

    def ensure_joined(self, entity: str) -> bool:
        """Record a join once. Returns True when a new join was added."""
        if entity == BASE_ENTITY or entity in self.joined:
            return False
        if entity not in RELATIONSHIPS:
            raise QueryBuildError(f"No relationship defined from {BASE_ENTITY} to {entity}")

        self.joined.append(entity)
        logger.debug(f"Joined relation {entity}")
        self.apply_distinct()
        return True

    def apply_distinct(self) -> None:
        if not self.distinct_applied:
            self.distinct_applied = True

    def apply(self, statement: Select) -> Select:
        """Render recorded joins and DISTINCT onto a select over inventories"""
        for entity in self.joined:
            target, onclause = RELATIONSHIPS[entity]
            statement = statement.join(target, onclause())
        if self.distinct_applied:
            statement = statement.distinct()
        return statement
