"""
Additional validators for search functionality
"""

from typing import List

import enums
import models
from . import config
from .field_resolver import BASE_ENTITY, FieldResolver


class SearchValidator:
    """Non-fatal checks on search input. Every method returns warning messages."""

    @staticmethod
    def validate_params(params: models.SearchParams, resolver: FieldResolver = None) -> List[str]:
        """Flag parameters the engine will ignore or adjust"""
        resolver = resolver or FieldResolver()
        warnings = []

        if params.sort:
            field_path = resolver.aliases.get(params.sort, params.sort)
            if field_path not in resolver.allowed_fields:
                warnings.append(f"Unknown sort field '{params.sort}' ignored; default ordering used")
            elif not field_path.startswith(f"{BASE_ENTITY}."):
                warnings.append(f"Sorting by related field '{params.sort}' is not supported; default ordering used")

        if params.direction:
            try:
                enums.SortDirection(params.direction)
            except ValueError:
                warnings.append(f"Invalid sort direction '{params.direction}' ignored")

        for name, enum_cls in (
            ("status", enums.InventoryStatus),
            ("shipment_status", enums.ShipmentStatus),
            ("receipt_status", enums.ReceiptStatus),
        ):
            value = getattr(params, name)
            if value is None:
                continue
            try:
                enum_cls(value)
            except ValueError:
                warnings.append(f"Unknown {name} '{value}' ignored")

        if params.page is not None and params.page < 1:
            warnings.append(f"page {params.page} raised to 1")
        if params.per_page is not None and not 1 <= params.per_page <= config.MAX_PER_PAGE:
            warnings.append(f"per_page {params.per_page} clamped to 1..{config.MAX_PER_PAGE}")

        return warnings

    @staticmethod
    def validate_relation_fanout(context) -> List[str]:
        """Check for potential performance issues with many joined relations"""
        warnings = []
        joined = context.joins.joined

        if len(joined) > 1:
            warnings.append("Cross-relation query detected. Consider indexes on the joined foreign keys.")

        if len(joined) > config.RELATION_FANOUT_WARNING:
            warnings.append(
                f"Query joins {len(joined)} relations ({', '.join(joined)}). "
                "This may have significant performance impact on large datasets."
            )

        return warnings
