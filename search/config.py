"""
Search defaults, overridable through environment variables
"""

import os

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = int(os.environ.get("SEARCH_DEFAULT_PER_PAGE", "20"))
MAX_PER_PAGE = int(os.environ.get("SEARCH_MAX_PER_PAGE", "100"))

DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("SEARCH_LOW_STOCK_THRESHOLD", "10"))
DEFAULT_EXPIRING_DAYS = int(os.environ.get("SEARCH_EXPIRING_DAYS", "30"))
DEFAULT_RECENT_DAYS = int(os.environ.get("SEARCH_RECENT_DAYS", "7"))

DEFAULT_SORT_FIELD = "updated_at"
DEFAULT_SORT_DIRECTION = "desc"

# joined relations beyond this count produce a performance warning
RELATION_FANOUT_WARNING = int(os.environ.get("SEARCH_RELATION_FANOUT_WARNING", "2"))
