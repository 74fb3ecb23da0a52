"""
Advanced Search Module for inventory

Composes filters on inventories and their batches, stock logs, shipments, receipts
and audit trail into one deferred query, with nested AND/OR groups and pagination.
"""

from .conditions import ConditionGroup, ConditionGroupBuilder, Predicate, QueryBuildError
from .dispatcher import SearchDispatcher
from .engine import SearchEngine, SearchEngineError
from .field_resolver import FieldResolver, FieldResolutionError
from .operators import SearchOperators
from .parser import ConditionParser, ParseError
from .query_builder import QueryContext
from .validators import SearchValidator
from .utils import sanitize_like_parameter, format_sql_query, estimate_query_complexity

__all__ = [
    "ConditionGroup",
    "ConditionGroupBuilder",
    "Predicate",
    "QueryBuildError",
    "SearchDispatcher",
    "SearchEngine",
    "SearchEngineError",
    "FieldResolver",
    "FieldResolutionError",
    "SearchOperators",
    "ConditionParser",
    "ParseError",
    "QueryContext",
    "SearchValidator",
    "sanitize_like_parameter",
    "format_sql_query",
    "estimate_query_complexity",
]
