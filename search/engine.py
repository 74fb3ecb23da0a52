"""
Search engine: materializes a composed QueryContext against the database
"""

import math
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models
from logging_setup import logger
from .query_builder import QueryContext
from .utils import estimate_query_complexity, format_sql_query
from .validators import SearchValidator


class SearchEngineError(Exception):
    """Custom exception for search engine errors"""
    pass


class SearchEngine:
    """Executes query contexts; the only component that reads from the store"""

    def __init__(self, db: Session):
        self.db = db

    def materialize(self, context: QueryContext) -> models.SearchResult:
        """
        Execute the page query for a context

        One statement returns the page and a windowed total count. A second
        count statement runs only when the page lies past the last match.
        """
        context.materialized = True
        statement = context.to_page_statement()

        try:
            rows = self.db.execute(statement).all()
            if rows:
                total_count = rows[0].total_count
            elif context.offset:
                total_count = self.db.execute(context.to_count_statement()).scalar_one()
            else:
                total_count = 0
        except SQLAlchemyError as e:
            logger.error(f"Search execution failed: {e}")
            raise SearchEngineError(f"Search execution failed: {e}") from e

        records = [models.InventoryRecord.from_inventory(row[0]) for row in rows]
        page = context.page or 1
        per_page = context.per_page
        total_pages = math.ceil(total_count / per_page) if per_page else (1 if total_count else 0)

        logger.info(f"Search matched {total_count} inventories, returning {len(records)} (page {page})")
        return models.SearchResult(
            records=records,
            total_count=total_count,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
            metadata=context.summary(),
        )

    def count(self, context: QueryContext) -> int:
        context.materialized = True
        try:
            return self.db.execute(context.to_count_statement()).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Search count failed: {e}")
            raise SearchEngineError(f"Search count failed: {e}") from e

    def debug_query(self, context: QueryContext) -> str:
        compiled = context.to_page_statement().compile(dialect=self.db.get_bind().dialect)
        return format_sql_query(str(compiled))

    def explain(self, context: QueryContext) -> Dict[str, Any]:
        """
        Describe the query without executing it

        Returns:
            Dict with SQL, bound parameters, joins and complexity details
        """
        compiled = context.to_page_statement().compile(dialect=self.db.get_bind().dialect)
        return {
            "sql": format_sql_query(str(compiled)),
            "params": dict(compiled.params),
            "joins": list(context.joins.joined),
            "distinct": context.joins.distinct_applied,
            "warnings": SearchValidator.validate_relation_fanout(context),
            "complexity": estimate_query_complexity(context),
        }
