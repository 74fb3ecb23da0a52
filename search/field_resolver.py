"""
Field resolver for advanced search functionality
Maps caller-supplied field names like 'price' or 'batches.lot_code' onto whitelisted columns
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

import enums
import models
from logging_setup import logger

BASE_ENTITY = "inventories"

ENTITY_MODELS: Dict[str, Type] = {
    "inventories": models.Inventory,
    "batches": models.Batch,
    "inventory_logs": models.InventoryLog,
    "shipments": models.Shipment,
    "receipts": models.Receipt,
    "audit_logs": models.AuditLog,
}

# Allowed 'entity.field' pairs and the Python type their values are coerced to.
# Enum types translate symbolic input into the stored representation.
ALLOWED_FIELDS: Dict[str, Any] = {
    "inventories.name": str,
    "inventories.price": float,
    "inventories.quantity": int,
    "inventories.status": enums.InventoryStatus,
    "inventories.created_at": datetime,
    "inventories.updated_at": datetime,
    "batches.lot_code": str,
    "batches.expires_on": date,
    "batches.quantity": int,
    "inventory_logs.operation_type": enums.OperationType,
    "inventory_logs.delta": int,
    "inventory_logs.created_at": datetime,
    "inventory_logs.user_id": int,
    "shipments.shipment_status": enums.ShipmentStatus,
    "shipments.destination": str,
    "shipments.scheduled_date": date,
    "shipments.tracking_number": str,
    "receipts.receipt_status": enums.ReceiptStatus,
    "receipts.source": str,
    "receipts.receipt_date": date,
    "receipts.cost_per_unit": float,
    "audit_logs.action": enums.AuditAction,
    "audit_logs.changed_fields": str,
    "audit_logs.created_at": datetime,
    "audit_logs.user_id": int,
}

# Short names accepted for base entity fields
FIELD_ALIASES: Dict[str, str] = {
    "name": "inventories.name",
    "price": "inventories.price",
    "quantity": "inventories.quantity",
    "status": "inventories.status",
    "created_at": "inventories.created_at",
    "updated_at": "inventories.updated_at",
}


def _is_enum(value_type: Any) -> bool:
    return isinstance(value_type, type) and issubclass(value_type, enums.CaseInsensitiveEnum)


class FieldResolutionError(Exception):
    """Custom exception for field resolution errors"""
    pass


class QualifiedField(BaseModel):
    """A whitelisted column reference. Only FieldResolver creates these."""

    model_config = ConfigDict(frozen=True)

    entity: str
    field: str

    @property
    def path(self) -> str:
        return f"{self.entity}.{self.field}"

    @property
    def is_base(self) -> bool:
        return self.entity == BASE_ENTITY

    def column(self, source: Any = None):
        """SQLAlchemy column for this field, optionally taken from an aliased entity"""
        return getattr(source if source is not None else ENTITY_MODELS[self.entity], self.field)


class FieldResolver:
    """Resolves raw field names against the static whitelist"""

    def __init__(self, allowed_fields: Optional[Dict[str, Any]] = None, aliases: Optional[Dict[str, str]] = None):
        self.allowed_fields = allowed_fields if allowed_fields is not None else ALLOWED_FIELDS
        self.aliases = aliases if aliases is not None else FIELD_ALIASES
        # validators for plain column types, plus date for date-only timestamp input
        value_types = {t for t in self.allowed_fields.values() if not _is_enum(t)} | {date}
        self._adapters: Dict[Any, TypeAdapter] = {t: TypeAdapter(t) for t in value_types}

    def resolve(self, raw_field: Any) -> Optional[QualifiedField]:
        """
        Resolve a caller-supplied field name

        Returns:
            QualifiedField, or None (with a logged warning) when the name is not whitelisted
        """
        field_name = str(raw_field).strip() if raw_field is not None else ""
        field_path = self.aliases.get(field_name, field_name)

        if field_path not in self.allowed_fields:
            logger.warning(f"Potentially unsafe field name rejected: {raw_field!r}")
            return None

        entity, field = field_path.split(".", 1)
        return QualifiedField(entity=entity, field=field)

    def require(self, raw_field: Any) -> QualifiedField:
        """Like resolve, but raises for callers that cannot continue without the field"""
        qualified = self.resolve(raw_field)
        if qualified is None:
            raise FieldResolutionError(f"Unknown field: {raw_field}")
        return qualified

    def coerce_value(self, field: QualifiedField, value: Any, end_of_day: bool = False) -> Any:
        """
        Convert input into the stored representation of the field

        Raises:
            ValueError: when the value cannot be converted
        """
        value_type = self.allowed_fields[field.path]

        if isinstance(value_type, type) and issubclass(value_type, enums.CodedEnum):
            return self._enum_member(value_type, value).code
        if _is_enum(value_type):
            return self._enum_member(value_type, value).value

        if value_type is str:
            return str(value)
        if value_type is datetime and isinstance(value, str) and len(value.strip()) == 10:
            # plain date given for a timestamp column
            value = self._adapt(date, value, field)
        if value_type is datetime and isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)

        value = self._adapt(value_type, value, field)
        if value_type is datetime:
            # timestamps are stored in UTC; naive input is taken as UTC
            value = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
        return value

    def _adapt(self, value_type: Any, value: Any, field: QualifiedField) -> Any:
        try:
            return self._adapters[value_type].validate_python(value)
        except ValidationError as e:
            raise ValueError(f"Invalid value for {field.path}: {value!r}") from e

    @staticmethod
    def _enum_member(enum_cls, value: Any):
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, int) and issubclass(enum_cls, enums.CodedEnum):
            return enum_cls.from_code(value)
        try:
            return enum_cls(value)
        except ValueError as e:
            raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}") from e

    def available_fields(self) -> Dict[str, List[str]]:
        """Whitelisted fields grouped by entity, plus the alias table"""
        grouped: Dict[str, List[str]] = {}
        for field_path in self.allowed_fields:
            entity, field = field_path.split(".", 1)
            grouped.setdefault(entity, []).append(field)
        return {"fields": grouped, "aliases": dict(self.aliases)}
