import enum
from typing import Dict, Type


class CaseInsensitiveEnum(str, enum.Enum):
    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class CodedEnum(CaseInsensitiveEnum):
    """Symbolic value persisted as an integer code (see STORAGE_CODES)."""

    @property
    def code(self) -> int:
        return STORAGE_CODES[type(self)][self]

    @classmethod
    def from_code(cls, code: int) -> "CodedEnum":
        for member, member_code in STORAGE_CODES[cls].items():
            if member_code == code:
                return member
        raise ValueError(f"Unknown {cls.__name__} code: {code}")


class InventoryStatus(CodedEnum):
    active = "active"
    archived = "archived"


class ShipmentStatus(CodedEnum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    returned = "returned"
    cancelled = "cancelled"


class ReceiptStatus(CodedEnum):
    expected = "expected"
    partial = "partial"
    completed = "completed"
    rejected = "rejected"
    delayed = "delayed"


class OperationType(CaseInsensitiveEnum):
    add = "add"
    remove = "remove"
    adjust = "adjust"
    ship = "ship"
    receive = "receive"


class AuditAction(CaseInsensitiveEnum):
    create = "create"
    update = "update"
    delete = "delete"
    view = "view"
    export = "export"
    import_ = "import"
    login = "login"
    logout = "logout"


class StockFilter(CaseInsensitiveEnum):
    out_of_stock = "out_of_stock"
    low_stock = "low_stock"
    in_stock = "in_stock"

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        value = value.strip()
        # camelCase spellings such as "outOfStock"
        snake = "".join("_" + c if c.isupper() and i and value[i - 1].islower() else c for i, c in enumerate(value))
        for member in cls:
            if member.value in (value.lower(), snake.lower()):
                return member
        return None


class SortDirection(CaseInsensitiveEnum):
    asc = "asc"
    desc = "desc"


class CompareOp(CaseInsensitiveEnum):
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    CONTAINS = "contains"


class LogicOp(CaseInsensitiveEnum):
    AND = "AND"
    OR = "OR"


class SearchPath(str, enum.Enum):
    simple = "simple"
    advanced = "advanced"


STORAGE_CODES: Dict[Type[CodedEnum], Dict[CodedEnum, int]] = {
    InventoryStatus: {
        InventoryStatus.active: 0,
        InventoryStatus.archived: 1,
    },
    ShipmentStatus: {
        ShipmentStatus.pending: 0,
        ShipmentStatus.processing: 1,
        ShipmentStatus.shipped: 2,
        ShipmentStatus.delivered: 3,
        ShipmentStatus.returned: 4,
        ShipmentStatus.cancelled: 5,
    },
    ReceiptStatus: {
        ReceiptStatus.expected: 0,
        ReceiptStatus.partial: 1,
        ReceiptStatus.completed: 2,
        ReceiptStatus.rejected: 3,
        ReceiptStatus.delayed: 4,
    },
}


def _check_storage_codes() -> None:
    for enum_cls, mapping in STORAGE_CODES.items():
        missing = set(enum_cls) - set(mapping)
        if missing:
            raise RuntimeError(f"{enum_cls.__name__} has no storage code for: {sorted(m.value for m in missing)}")
        if len(set(mapping.values())) != len(mapping):
            raise RuntimeError(f"{enum_cls.__name__} storage codes are not unique")
    for enum_cls in CodedEnum.__subclasses__():
        if enum_cls not in STORAGE_CODES:
            raise RuntimeError(f"{enum_cls.__name__} is missing from STORAGE_CODES")


_check_storage_codes()
