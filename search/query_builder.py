"""
Fluent query context for advanced inventory search

Every operation only records intent (conditions, joins, ordering, pagination).
Nothing touches the database until results(), count() or to_debug_query_string().
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased
from sqlalchemy.sql import Select

import models
from enums import CompareOp, LogicOp, SortDirection
from logging_setup import logger
from . import config
from .conditions import (
    Condition,
    ConditionGroup,
    ConditionGroupBuilder,
    Predicate,
    QueryBuildError,
    build_predicate,
    to_node,
)
from .field_resolver import FieldResolver, QualifiedField
from .joins import JoinManager
from .relation_builders import (
    AuditConditionBuilder,
    BatchConditionBuilder,
    InventoryLogConditionBuilder,
    ReceiptConditionBuilder,
    RelationConditionBuilder,
    ShipmentConditionBuilder,
)
from .utils import format_sql_query, is_blank

Ordering = Tuple[QualifiedField, SortDirection]


class QueryContext:
    """Per-request search state over inventories. Not thread safe; do not share."""

    def __init__(
        self,
        db: Optional[Session] = None,
        base_scope: Optional[Select] = None,
        resolver: Optional[FieldResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.base_scope = base_scope if base_scope is not None else select(models.Inventory)
        self.resolver = resolver or FieldResolver()
        self.clock = clock or models.utcnow
        self.root = ConditionGroup(operator=LogicOp.AND)
        self.joins = JoinManager()
        self.orderings: List[Ordering] = []
        self.page: Optional[int] = None
        self.per_page: Optional[int] = None
        self.materialized = False

    @classmethod
    def build(cls, db: Optional[Session] = None, **kwargs) -> "QueryContext":
        return cls(db, **kwargs)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------
    def where(self, condition: Condition) -> "QueryContext":
        self._ensure_open()
        self.root.add(self._attach(to_node(self.resolver, condition)))
        return self

    def or_where(self, condition: Condition) -> "QueryContext":
        """Union of everything accumulated so far with rows matching condition"""
        self._ensure_open()
        node = self._attach(to_node(self.resolver, condition))
        if node is None:
            return self
        union = ConditionGroup(operator=LogicOp.OR, children=[self.root, node])
        self.root = ConditionGroup(operator=LogicOp.AND, children=[union])
        return self

    def where_any(self, conditions: Iterable[Condition]) -> "QueryContext":
        self._ensure_open()
        nodes = [node for node in (to_node(self.resolver, c) for c in conditions) if node is not None]
        if not nodes:
            return self
        self.root.add(self._attach(ConditionGroup(operator=LogicOp.OR, children=nodes)))
        return self

    def where_all(self, conditions: Iterable[Condition]) -> "QueryContext":
        for condition in conditions:
            self.where(condition)
        return self

    def complex_where(self, block: Callable[[ConditionGroupBuilder], Any]) -> "QueryContext":
        """
        Build a nested AND/OR subtree:

            context.complex_where(lambda b: b.or_group(lambda g: g.where({"quantity": 0}).where({"status": "archived"})))
        """
        self._ensure_open()
        builder = ConditionGroupBuilder(self.resolver, LogicOp.AND)
        block(builder)
        self.root.add(self._attach(builder.group))
        return self

    def condition(self, field: Any, operator: Any, value: Any, upper: Any = None) -> Optional[Predicate]:
        """Validated predicate for use with where/or_where; None if the field or value is rejected"""
        return build_predicate(self.resolver, field, operator, value, upper)

    # ------------------------------------------------------------------
    # Search helpers
    # ------------------------------------------------------------------
    def search_keywords(self, keyword: Optional[str], fields: Sequence[str] = ("name",)) -> "QueryContext":
        self._ensure_open()
        if is_blank(keyword):
            return self

        predicates = [build_predicate(self.resolver, field, CompareOp.CONTAINS, keyword.strip()) for field in fields]
        predicates = [p for p in predicates if p is not None]
        if not predicates:
            return self

        self.root.add(self._attach(ConditionGroup(operator=LogicOp.OR, children=predicates)))
        return self

    def between_dates(self, field: str, start: Any, end: Any) -> "QueryContext":
        return self._range(field, start, end)

    def in_range(self, field: str, minimum: Any, maximum: Any) -> "QueryContext":
        return self._range(field, minimum, maximum)

    def _range(self, field: str, lower: Any, upper: Any) -> "QueryContext":
        self._ensure_open()
        qualified = self.resolver.resolve(field)
        if qualified is None:
            return self
        if is_blank(lower) and is_blank(upper):
            return self

        if not is_blank(lower) and not is_blank(upper):
            predicate = self.condition(qualified.path, CompareOp.BETWEEN, lower, upper)
        elif not is_blank(lower):
            predicate = self.condition(qualified.path, CompareOp.GTE, lower)
        else:
            predicate = self.condition(qualified.path, CompareOp.LTE, upper)
        return self.where(predicate)

    def with_status(self, status: Any) -> "QueryContext":
        if is_blank(status):
            return self
        return self.where(self.condition("status", CompareOp.EQ, status))

    def out_of_stock(self) -> "QueryContext":
        return self.where(self.condition("quantity", CompareOp.LTE, 0))

    def low_stock(self, threshold: int = config.DEFAULT_LOW_STOCK_THRESHOLD) -> "QueryContext":
        return self.where_all(
            [
                self.condition("quantity", CompareOp.GT, 0),
                self.condition("quantity", CompareOp.LTE, threshold),
            ]
        )

    def in_stock(self, threshold: int = config.DEFAULT_LOW_STOCK_THRESHOLD) -> "QueryContext":
        return self.where(self.condition("quantity", CompareOp.GT, threshold))

    def expiring_soon(self, days: int = config.DEFAULT_EXPIRING_DAYS) -> "QueryContext":
        today = self.clock().date()
        return self.with_batch_conditions(lambda batches: batches.expires_between(today, today + timedelta(days=days)))

    def recently_updated(self, days: int = config.DEFAULT_RECENT_DAYS) -> "QueryContext":
        return self.where(self.condition("updated_at", CompareOp.GTE, self.clock() - timedelta(days=days)))

    def modified_by_user(self, user_id: int) -> "QueryContext":
        return self.with_inventory_log_conditions(lambda logs: logs.by_user(user_id))

    # ------------------------------------------------------------------
    # Relation blocks
    # ------------------------------------------------------------------
    def with_batch_conditions(self, block: Callable[[BatchConditionBuilder], Any]) -> "QueryContext":
        return self._with_relation(BatchConditionBuilder, block)

    def with_inventory_log_conditions(self, block: Callable[[InventoryLogConditionBuilder], Any]) -> "QueryContext":
        return self._with_relation(InventoryLogConditionBuilder, block)

    def with_shipment_conditions(self, block: Callable[[ShipmentConditionBuilder], Any]) -> "QueryContext":
        return self._with_relation(ShipmentConditionBuilder, block)

    def with_receipt_conditions(self, block: Callable[[ReceiptConditionBuilder], Any]) -> "QueryContext":
        return self._with_relation(ReceiptConditionBuilder, block)

    def with_audit_conditions(self, block: Callable[[AuditConditionBuilder], Any]) -> "QueryContext":
        return self._with_relation(AuditConditionBuilder, block)

    def _with_relation(self, builder_cls, block: Callable[[RelationConditionBuilder], Any]) -> "QueryContext":
        self._ensure_open()
        builder = builder_cls(self.resolver)
        block(builder)
        group = builder.close()
        if group.is_empty():
            return self

        self.joins.ensure_joined(builder.entity)
        self.root.add(group)
        return self

    # ------------------------------------------------------------------
    # Shape of the result
    # ------------------------------------------------------------------
    def distinct(self) -> "QueryContext":
        self._ensure_open()
        self.joins.apply_distinct()
        return self

    def order_by(self, field: Any, direction: Any = SortDirection.asc) -> "QueryContext":
        self._ensure_open()
        qualified = self.resolver.resolve(field)
        if qualified is None:
            return self
        if not qualified.is_base:
            logger.warning(f"Ordering by related field {qualified.path} is not supported, ignoring")
            return self
        try:
            direction = SortDirection(direction)
        except ValueError:
            logger.warning(f"Invalid sort direction rejected: {direction!r}")
            return self

        self.orderings.append((qualified, direction))
        return self

    def order_by_multiple(self, orderings: Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]) -> "QueryContext":
        items = orderings.items() if isinstance(orderings, Mapping) else orderings
        for field, direction in items:
            self.order_by(field, direction)
        return self

    def paginate(self, page: Any = config.DEFAULT_PAGE, per_page: Any = config.DEFAULT_PER_PAGE) -> "QueryContext":
        self._ensure_open()
        try:
            page = int(page)
        except (TypeError, ValueError):
            logger.warning(f"Invalid page {page!r}, using {config.DEFAULT_PAGE}")
            page = config.DEFAULT_PAGE
        try:
            per_page = int(per_page)
        except (TypeError, ValueError):
            logger.warning(f"Invalid per_page {per_page!r}, using {config.DEFAULT_PER_PAGE}")
            per_page = config.DEFAULT_PER_PAGE

        self.page = max(1, page)
        self.per_page = max(1, min(per_page, config.MAX_PER_PAGE))
        return self

    @property
    def offset(self) -> int:
        if not self.per_page:
            return 0
        return (self.page - 1) * self.per_page

    # ------------------------------------------------------------------
    # Compilation (pure) and materialization
    # ------------------------------------------------------------------
    def to_statement(self) -> Select:
        """Filtered, joined and de-duplicated select over inventories, without ordering or paging"""
        statement = self.joins.apply(self.base_scope)
        criteria = self.root.to_expression()
        if criteria is not None:
            statement = statement.where(criteria)
        return statement

    def order_clauses(self, source: Any = None) -> list:
        orderings = self.orderings or [
            (self.resolver.require(config.DEFAULT_SORT_FIELD), SortDirection(config.DEFAULT_SORT_DIRECTION))
        ]
        clauses = []
        for field, direction in orderings:
            column = field.column(source)
            clauses.append(column.desc() if direction == SortDirection.desc else column.asc())
        # stable pages when sort values tie
        clauses.append(getattr(source if source is not None else models.Inventory, "id").asc())
        return clauses

    def to_page_statement(self) -> Select:
        """Ordered page of matching inventories with a windowed total count column"""
        matched = self.to_statement().subquery("matched_inventories")
        inventory = aliased(models.Inventory, matched)
        statement = select(inventory, func.count().over().label("total_count")).order_by(*self.order_clauses(inventory))
        if self.per_page:
            statement = statement.limit(self.per_page).offset(self.offset)
        return statement

    def to_count_statement(self) -> Select:
        return select(func.count()).select_from(self.to_statement().subquery("matched_inventories"))

    def summary(self) -> dict:
        return {
            "joins": list(self.joins.joined),
            "distinct": self.joins.distinct_applied,
            "conditions": sum(1 for _ in self.root.iter_predicates()),
            "orderings": [f"{field.path} {direction.value}" for field, direction in self.orderings],
        }

    def results(self):
        from .engine import SearchEngine

        return SearchEngine(self._require_db()).materialize(self)

    def count(self) -> int:
        from .engine import SearchEngine

        return SearchEngine(self._require_db()).count(self)

    def to_debug_query_string(self) -> str:
        dialect = self.db.get_bind().dialect if self.db is not None else None
        return format_sql_query(str(self.to_page_statement().compile(dialect=dialect)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _attach(self, node: Union[Predicate, ConditionGroup, None]):
        """Join every relation the node filters on"""
        if node is not None:
            for predicate in node.iter_predicates():
                self.joins.ensure_joined(predicate.field.entity)
        return node

    def _ensure_open(self) -> None:
        if self.materialized:
            raise QueryBuildError("Query context was already materialized; build a new one per search")

    def _require_db(self) -> Session:
        if self.db is None:
            raise QueryBuildError("Query context has no database session to execute against")
        return self.db
