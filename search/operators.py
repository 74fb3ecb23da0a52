"""
Search operators and their SQLAlchemy translations
"""
from typing import Any, Dict

from sqlalchemy.sql.elements import ColumnElement

from enums import CompareOp
from .utils import LIKE_ESCAPE_CHAR


class SearchOperators:
    """Maps comparison operators to SQLAlchemy expressions. Values are always bound parameters."""

    OPERATORS: Dict[CompareOp, Dict[str, Any]] = {
        CompareOp.EQ: {
            "build": lambda column, value, upper: column == value,
            "params": 1,
            "description": "Exact match",
        },
        CompareOp.GT: {
            "build": lambda column, value, upper: column > value,
            "params": 1,
            "description": "Greater than",
        },
        CompareOp.GTE: {
            "build": lambda column, value, upper: column >= value,
            "params": 1,
            "description": "Greater than or equal",
        },
        CompareOp.LT: {
            "build": lambda column, value, upper: column < value,
            "params": 1,
            "description": "Less than",
        },
        CompareOp.LTE: {
            "build": lambda column, value, upper: column <= value,
            "params": 1,
            "description": "Less than or equal",
        },
        CompareOp.BETWEEN: {
            "build": lambda column, value, upper: column.between(value, upper),
            "params": 2,
            "description": "Between two values (inclusive)",
        },
        CompareOp.CONTAINS: {
            # value arrives already escaped by sanitize_like_parameter
            "build": lambda column, value, upper: column.ilike(f"%{value}%", escape=LIKE_ESCAPE_CHAR),
            "params": 1,
            "description": "Case-insensitive contains, wildcards in the value are literal",
        },
    }

    @classmethod
    def get_operator(cls, operator: Any) -> Dict[str, Any]:
        """Get operator definition"""
        try:
            return cls.OPERATORS[CompareOp(operator)]
        except (ValueError, KeyError):
            raise ValueError(f"Unsupported operator: {operator}")

    @classmethod
    def validate_operator_value(cls, operator: Any, value: Any, upper: Any = None) -> bool:
        """Validate that a value is appropriate for the given operator"""
        op_def = cls.get_operator(operator)

        if value is None:
            raise ValueError(f"Operator '{operator}' requires a value")
        if op_def["params"] == 2 and upper is None:
            raise ValueError(f"Operator '{operator}' requires a lower and an upper bound")

        return True

    @classmethod
    def get_sql_expression(cls, operator: Any, column: Any, value: Any, upper: Any = None) -> ColumnElement:
        """Build the SQLAlchemy boolean expression for an operator"""
        op_def = cls.get_operator(operator)
        return op_def["build"](column, value, upper)

    @classmethod
    def describe(cls) -> Dict[str, Dict[str, Any]]:
        return {
            op.value: {"description": op_def["description"], "params": op_def["params"]}
            for op, op_def in cls.OPERATORS.items()
        }
