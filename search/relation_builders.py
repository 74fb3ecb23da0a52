"""
Scoped condition builders, one per relation of inventories
"""

from typing import Any, List

from enums import CompareOp, LogicOp
from .conditions import ConditionGroup, Predicate, QueryBuildError, build_predicate
from .field_resolver import FieldResolver


class RelationConditionBuilder:
    """Accumulates predicates on one relation for a single with_*_conditions block"""

    entity: str = ""

    def __init__(self, resolver: FieldResolver):
        self.resolver = resolver
        self.predicates: List[Predicate] = []
        self.closed = False

    def _add(self, field: str, operator: CompareOp, value: Any, upper: Any = None) -> "RelationConditionBuilder":
        if self.closed:
            raise QueryBuildError(f"{type(self).__name__} was already applied; open a new block")
        predicate = build_predicate(self.resolver, f"{self.entity}.{field}", operator, value, upper)
        if predicate is not None:
            self.predicates.append(predicate)
        return self

    def close(self) -> ConditionGroup:
        """Finish the block and return its predicates as an AND group"""
        self.closed = True
        return ConditionGroup(operator=LogicOp.AND, children=list(self.predicates))


class BatchConditionBuilder(RelationConditionBuilder):
    entity = "batches"

    def lot_code(self, code: str):
        return self._add("lot_code", CompareOp.CONTAINS, code)

    def expires_before(self, day):
        return self._add("expires_on", CompareOp.LT, day)

    def expires_after(self, day):
        return self._add("expires_on", CompareOp.GT, day)

    def expires_between(self, start, end):
        return self._add("expires_on", CompareOp.BETWEEN, start, end)

    def quantity_greater_than(self, quantity: int):
        return self._add("quantity", CompareOp.GT, quantity)


class InventoryLogConditionBuilder(RelationConditionBuilder):
    entity = "inventory_logs"

    def action_type(self, operation_type):
        return self._add("operation_type", CompareOp.EQ, operation_type)

    def quantity_changed_by(self, delta: int):
        return self._add("delta", CompareOp.EQ, delta)

    def changed_after(self, moment):
        return self._add("created_at", CompareOp.GT, moment)

    def by_user(self, user_id: int):
        return self._add("user_id", CompareOp.EQ, user_id)


class ShipmentConditionBuilder(RelationConditionBuilder):
    entity = "shipments"

    def status(self, status):
        return self._add("shipment_status", CompareOp.EQ, status)

    def destination_like(self, destination: str):
        return self._add("destination", CompareOp.CONTAINS, destination)

    def scheduled_after(self, day):
        return self._add("scheduled_date", CompareOp.GT, day)

    def tracking_number(self, number: str):
        return self._add("tracking_number", CompareOp.EQ, number)


class ReceiptConditionBuilder(RelationConditionBuilder):
    entity = "receipts"

    def status(self, status):
        return self._add("receipt_status", CompareOp.EQ, status)

    def source_like(self, source: str):
        return self._add("source", CompareOp.CONTAINS, source)

    def received_after(self, day):
        return self._add("receipt_date", CompareOp.GT, day)

    def cost_range(self, minimum: float, maximum: float):
        return self._add("cost_per_unit", CompareOp.BETWEEN, minimum, maximum)


class AuditConditionBuilder(RelationConditionBuilder):
    entity = "audit_logs"

    def action(self, action):
        return self._add("action", CompareOp.EQ, action)

    def changed_fields_include(self, field_name: str):
        return self._add("changed_fields", CompareOp.CONTAINS, field_name)

    def created_after(self, moment):
        return self._add("created_at", CompareOp.GT, moment)

    def by_user(self, user_id: int):
        return self._add("user_id", CompareOp.EQ, user_id)
