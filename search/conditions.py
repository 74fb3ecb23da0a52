"""
Predicates and AND/OR condition trees for the inventory search engine
"""

from typing import Any, Callable, Iterator, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict
from sqlalchemy import and_, or_

from enums import CompareOp, LogicOp
from logging_setup import logger
from .field_resolver import FieldResolver, QualifiedField
from .operators import SearchOperators
from .utils import sanitize_like_parameter


class QueryBuildError(Exception):
    """Custom exception for query building errors"""
    pass


class Predicate(BaseModel):
    """Single field/operator/value comparison. Build through build_predicate only."""

    model_config = ConfigDict(frozen=True)

    field: QualifiedField
    operator: CompareOp
    value: Any
    upper: Any = None

    def to_expression(self):
        return SearchOperators.get_sql_expression(self.operator, self.field.column(), self.value, self.upper)

    def iter_predicates(self) -> Iterator["Predicate"]:
        yield self


class ConditionGroup(BaseModel):
    """AND/OR node. Empty groups do not restrict results and count as absent inside a parent."""

    operator: LogicOp = LogicOp.AND
    children: List[Union[Predicate, "ConditionGroup"]] = []

    def add(self, node: Union[Predicate, "ConditionGroup", None]) -> None:
        if node is not None:
            self.children.append(node)

    def is_empty(self) -> bool:
        return not self.children

    def iter_predicates(self) -> Iterator[Predicate]:
        for child in self.children:
            yield from child.iter_predicates()

    def to_expression(self):
        """SQLAlchemy expression for the subtree, or None when it does not restrict anything"""
        # empty subgroups are skipped, as if never added
        parts = [expression for expression in (child.to_expression() for child in self.children) if expression is not None]

        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        return and_(*parts) if self.operator == LogicOp.AND else or_(*parts)


ConditionGroup.model_rebuild()

Condition = Union[Predicate, ConditionGroup, Mapping[str, Any], None]


def build_predicate(
    resolver: FieldResolver, raw_field: Any, operator: Any, value: Any, upper: Any = None
) -> Optional[Predicate]:
    """
    Validate the field, coerce the value(s) and build a Predicate

    Returns None (with a logged warning) for non-whitelisted fields, unusable values
    or unsupported operators, so the caller can skip that one filter.
    """
    field = resolver.resolve(raw_field)
    if field is None:
        return None

    try:
        operator = CompareOp(operator)
        SearchOperators.validate_operator_value(operator, value, upper)

        if operator == CompareOp.CONTAINS:
            if resolver.allowed_fields[field.path] is not str:
                raise ValueError(f"'contains' is only supported on text fields, not {field.path}")
            value = sanitize_like_parameter(value)
        else:
            value = resolver.coerce_value(field, value, end_of_day=operator == CompareOp.LTE)
            if operator == CompareOp.BETWEEN:
                upper = resolver.coerce_value(field, upper, end_of_day=True)
    except ValueError as e:
        logger.warning(f"Skipping condition on {field.path}: {e}")
        return None

    return Predicate(field=field, operator=operator, value=value, upper=upper)


def condition_from_mapping(resolver: FieldResolver, mapping: Mapping[str, Any]) -> ConditionGroup:
    """
    Turn {field: value} or {field: {operator: value}} into an AND group

    'between' takes a two-element list. Unknown fields are dropped.
    """
    group = ConditionGroup(operator=LogicOp.AND)
    for raw_field, criteria in mapping.items():
        if isinstance(criteria, Mapping):
            for operator, value in criteria.items():
                upper = None
                if str(operator).lower() == CompareOp.BETWEEN.value:
                    if not isinstance(value, (list, tuple)) or len(value) != 2:
                        logger.warning(f"Skipping 'between' on {raw_field}: expected two bounds, got {value!r}")
                        continue
                    value, upper = value
                group.add(build_predicate(resolver, raw_field, operator, value, upper))
        else:
            group.add(build_predicate(resolver, raw_field, CompareOp.EQ, criteria))
    return group


def to_node(resolver: FieldResolver, condition: Condition) -> Union[Predicate, ConditionGroup, None]:
    if condition is None or isinstance(condition, (Predicate, ConditionGroup)):
        return condition
    if isinstance(condition, Mapping):
        group = condition_from_mapping(resolver, condition)
        # every key was rejected: the condition is absent, not "match all"
        return None if group.is_empty() else group
    raise QueryBuildError(f"Unsupported condition type: {type(condition).__name__}")


class ConditionGroupBuilder:
    """
    Builds one AND or OR group. The group's kind alone decides how its direct
    children combine; mixing is done only by nesting and_group / or_group.
    """

    def __init__(self, resolver: FieldResolver, operator: LogicOp = LogicOp.AND):
        self.resolver = resolver
        self.group = ConditionGroup(operator=operator)

    def predicate(self, field: Any, operator: Any, value: Any, upper: Any = None) -> Optional[Predicate]:
        return build_predicate(self.resolver, field, operator, value, upper)

    def where(self, condition: Condition) -> "ConditionGroupBuilder":
        self.group.add(to_node(self.resolver, condition))
        return self

    def and_group(self, block: Callable[["ConditionGroupBuilder"], Any]) -> "ConditionGroupBuilder":
        return self._nest(LogicOp.AND, block)

    def or_group(self, block: Callable[["ConditionGroupBuilder"], Any]) -> "ConditionGroupBuilder":
        return self._nest(LogicOp.OR, block)

    def _nest(self, operator: LogicOp, block) -> "ConditionGroupBuilder":
        sub_builder = ConditionGroupBuilder(self.resolver, operator)
        block(sub_builder)
        self.group.add(sub_builder.group)
        return self
