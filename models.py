from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Field, Relationship, SQLModel

import enums


def utcnow() -> datetime:
    """Timestamps are stored as timezone-aware UTC"""
    return datetime.now(timezone.utc)


class Inventory(SQLModel, table=True):
    __tablename__ = "inventories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, index=True)
    price: float = Field(default=0.0, nullable=False)
    quantity: int = Field(default=0, nullable=False)
    status: int = Field(default=enums.InventoryStatus.active.code, nullable=False)  # InventoryStatus code
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    batches: List["Batch"] = Relationship(back_populates="inventory")
    inventory_logs: List["InventoryLog"] = Relationship(back_populates="inventory")
    shipments: List["Shipment"] = Relationship(back_populates="inventory")
    receipts: List["Receipt"] = Relationship(back_populates="inventory")


class Batch(SQLModel, table=True):
    __tablename__ = "batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_id: int = Field(foreign_key="inventories.id", nullable=False, index=True)
    lot_code: str = Field(nullable=False)
    expires_on: Optional[date] = Field(default=None)
    quantity: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    inventory: Optional[Inventory] = Relationship(back_populates="batches")


class InventoryLog(SQLModel, table=True):
    __tablename__ = "inventory_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_id: int = Field(foreign_key="inventories.id", nullable=False, index=True)
    user_id: Optional[int] = Field(default=None)
    delta: int = Field(nullable=False)
    operation_type: str = Field(nullable=False)  # OperationType value
    previous_quantity: int = Field(default=0, nullable=False)
    current_quantity: int = Field(default=0, nullable=False)
    note: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    inventory: Optional[Inventory] = Relationship(back_populates="inventory_logs")


class Shipment(SQLModel, table=True):
    __tablename__ = "shipments"

    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_id: int = Field(foreign_key="inventories.id", nullable=False, index=True)
    quantity: int = Field(nullable=False)
    destination: str = Field(nullable=False)
    scheduled_date: date = Field(nullable=False)
    shipment_status: int = Field(default=enums.ShipmentStatus.pending.code, nullable=False)  # ShipmentStatus code
    tracking_number: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    inventory: Optional[Inventory] = Relationship(back_populates="shipments")


class Receipt(SQLModel, table=True):
    __tablename__ = "receipts"

    id: Optional[int] = Field(default=None, primary_key=True)
    inventory_id: int = Field(foreign_key="inventories.id", nullable=False, index=True)
    quantity: int = Field(nullable=False)
    source: str = Field(nullable=False)
    receipt_date: date = Field(nullable=False)
    receipt_status: int = Field(default=enums.ReceiptStatus.expected.code, nullable=False)  # ReceiptStatus code
    batch_number: Optional[str] = Field(default=None)
    cost_per_unit: Optional[float] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    inventory: Optional[Inventory] = Relationship(back_populates="receipts")


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    # polymorphic owner, e.g. ("Inventory", 42)
    auditable_type: str = Field(nullable=False, index=True)
    auditable_id: int = Field(nullable=False, index=True)
    user_id: Optional[int] = Field(default=None)
    action: str = Field(nullable=False)  # AuditAction value
    message: str = Field(nullable=False)
    changed_fields: Optional[str] = Field(default=None)
    ip_address: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)


# === Search request / response models ===


class SearchParams(BaseModel):
    """Flat parameter bag accepted by the search dispatcher (camelCase or snake_case keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    keyword: Optional[str] = None
    status: Optional[str] = None
    low_stock: Optional[bool] = None
    stock_filter: Optional[enums.StockFilter] = None
    low_stock_threshold: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    created_from: Optional[date] = None
    created_to: Optional[date] = None
    lot_code: Optional[str] = None
    expires_before: Optional[date] = None
    expires_after: Optional[date] = None
    expiring_soon_days: Optional[int] = None
    recently_updated_days: Optional[int] = None
    shipment_status: Optional[str] = None
    destination: Optional[str] = None
    receipt_status: Optional[str] = None
    source: Optional[str] = None
    or_conditions: Optional[List[Dict[str, Any]]] = None
    complex_condition: Optional[Dict[str, Any]] = None
    sort: Optional[str] = None
    direction: Optional[str] = None
    page: Optional[int] = None
    per_page: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def blank_strings_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: (None if isinstance(value, str) and not value.strip() else value) for key, value in data.items()}
        return data

    @field_validator("stock_filter", mode="before")
    @classmethod
    def parse_stock_filter(cls, value: Any) -> Any:
        # accepts "outOfStock" as well as "out_of_stock"
        if isinstance(value, str):
            return enums.StockFilter(value)
        return value


class InventoryRecord(BaseModel):
    id: int
    name: str
    price: float
    quantity: int
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_inventory(cls, inventory: Inventory) -> "InventoryRecord":
        return cls(
            id=inventory.id,
            name=inventory.name,
            price=inventory.price,
            quantity=inventory.quantity,
            status=enums.InventoryStatus.from_code(inventory.status).value,
            created_at=inventory.created_at,
            updated_at=inventory.updated_at,
        )


class SearchResult(BaseModel):
    records: List[InventoryRecord] = []
    total_count: int = 0
    page: int = 1
    per_page: Optional[int] = None
    total_pages: int = 0
    has_next: bool = False
    has_prev: bool = False
    metadata: Dict[str, Any] = {}


class ExplainResponse(BaseModel):
    path: enums.SearchPath
    sql: str
    params: Dict[str, Any]
    joins: List[str]
    distinct: bool
    warnings: List[str] = []
    complexity: Dict[str, Any] = {}
