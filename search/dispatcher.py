"""
Dispatches a flat search parameter bag to the simple or advanced query path
"""

from typing import Any, Dict, Mapping, Tuple, Union

from sqlalchemy.orm import Session

import models
from enums import SearchPath, SortDirection, StockFilter
from logging_setup import logger
from . import config
from .engine import SearchEngine
from .field_resolver import FieldResolver
from .parser import ConditionParser
from .query_builder import QueryContext
from .utils import is_blank
from .validators import SearchValidator

# Any of these switches the search onto the full composition engine
ADVANCED_SEARCH_PARAMS = (
    "min_price",
    "max_price",
    "created_from",
    "created_to",
    "lot_code",
    "expires_before",
    "expires_after",
    "expiring_soon_days",
    "recently_updated_days",
    "shipment_status",
    "destination",
    "receipt_status",
    "source",
    "or_conditions",
    "complex_condition",
    "stock_filter",
    "low_stock_threshold",
)

KEYWORD_FIELDS = ("name",)

ParamBag = Union[models.SearchParams, Mapping[str, Any]]


class SearchDispatcher:
    """Builds the QueryContext for a parameter bag and hands it to the SearchEngine"""

    def __init__(self, db: Session, resolver: FieldResolver = None, clock=None):
        self.db = db
        self.resolver = resolver or FieldResolver()
        self.clock = clock
        self.parser = ConditionParser()

    @staticmethod
    def coerce_params(params: ParamBag) -> models.SearchParams:
        if isinstance(params, models.SearchParams):
            return params
        return models.SearchParams.model_validate(dict(params or {}))

    @staticmethod
    def requires_advanced(params: models.SearchParams) -> bool:
        return any(not is_blank(getattr(params, name)) for name in ADVANCED_SEARCH_PARAMS)

    def dispatch(self, params: ParamBag) -> models.SearchResult:
        path, context = self.build(params)
        result = SearchEngine(self.db).materialize(context)
        result.metadata["path"] = path.value
        return result

    def build(self, params: ParamBag) -> Tuple[SearchPath, QueryContext]:
        params = self.coerce_params(params)

        for warning in SearchValidator.validate_params(params, self.resolver):
            logger.warning(f"Search parameter: {warning}")

        context = QueryContext(self.db, resolver=self.resolver, clock=self.clock)
        if self.requires_advanced(params):
            path = SearchPath.advanced
            self._apply_advanced(context, params)
        else:
            path = SearchPath.simple
            self._apply_simple(context, params)

        self._apply_ordering(context, params)
        context.paginate(
            params.page if params.page is not None else config.DEFAULT_PAGE,
            params.per_page if params.per_page is not None else config.DEFAULT_PER_PAGE,
        )
        logger.debug(f"Built {path.value} search: {context.summary()}")
        return path, context

    def explain(self, params: ParamBag) -> Dict[str, Any]:
        params = self.coerce_params(params)
        path, context = self.build(params)
        explanation = SearchEngine(self.db).explain(context)
        explanation["path"] = path
        explanation["warnings"] = SearchValidator.validate_params(params, self.resolver) + explanation["warnings"]
        return explanation

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    def _apply_simple(self, context: QueryContext, params: models.SearchParams) -> None:
        context.search_keywords(params.keyword, KEYWORD_FIELDS)
        context.with_status(params.status)
        if params.low_stock:
            context.out_of_stock()

    def _apply_advanced(self, context: QueryContext, params: models.SearchParams) -> None:
        context.search_keywords(params.keyword, KEYWORD_FIELDS)
        context.with_status(params.status)

        threshold = params.low_stock_threshold if params.low_stock_threshold is not None else config.DEFAULT_LOW_STOCK_THRESHOLD
        if params.stock_filter == StockFilter.out_of_stock:
            context.out_of_stock()
        elif params.stock_filter == StockFilter.low_stock:
            context.low_stock(threshold)
        elif params.stock_filter == StockFilter.in_stock:
            context.in_stock(threshold)
        elif params.low_stock:
            context.out_of_stock()

        context.in_range("price", params.min_price, params.max_price)
        context.between_dates("created_at", params.created_from, params.created_to)

        if not is_blank(params.lot_code) or params.expires_before or params.expires_after:

            def batch_filters(batches):
                if not is_blank(params.lot_code):
                    batches.lot_code(params.lot_code)
                if params.expires_before:
                    batches.expires_before(params.expires_before)
                if params.expires_after:
                    batches.expires_after(params.expires_after)

            context.with_batch_conditions(batch_filters)

        if params.expiring_soon_days is not None:
            context.expiring_soon(params.expiring_soon_days)
        if params.recently_updated_days is not None:
            context.recently_updated(params.recently_updated_days)

        if not is_blank(params.shipment_status) or not is_blank(params.destination):

            def shipment_filters(shipments):
                if not is_blank(params.shipment_status):
                    shipments.status(params.shipment_status)
                if not is_blank(params.destination):
                    shipments.destination_like(params.destination)

            context.with_shipment_conditions(shipment_filters)

        if not is_blank(params.receipt_status) or not is_blank(params.source):

            def receipt_filters(receipts):
                if not is_blank(params.receipt_status):
                    receipts.status(params.receipt_status)
                if not is_blank(params.source):
                    receipts.source_like(params.source)

            context.with_receipt_conditions(receipt_filters)

        if params.or_conditions:
            context.where_any([condition for condition in params.or_conditions if condition])

        if params.complex_condition:
            context.complex_where(lambda builder: self.parser.apply(builder, params.complex_condition))

    def _apply_ordering(self, context: QueryContext, params: models.SearchParams) -> None:
        direction = params.direction or config.DEFAULT_SORT_DIRECTION
        try:
            direction = SortDirection(direction)
        except ValueError:
            direction = SortDirection(config.DEFAULT_SORT_DIRECTION)
        context.order_by(params.sort or config.DEFAULT_SORT_FIELD, direction)
