"""
Utility functions for search functionality
"""

from typing import Any, Dict
import re

LIKE_ESCAPE_CHAR = "\\"
_LIKE_SPECIAL = re.compile(r"([%_\\])")


def sanitize_like_parameter(value: Any) -> str:
    """Escape LIKE wildcards so user input is matched literally"""
    return _LIKE_SPECIAL.sub(lambda match: LIKE_ESCAPE_CHAR + match.group(1), str(value))


def is_blank(value: Any) -> bool:
    """None, empty and whitespace-only strings and empty collections are blank"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def format_sql_query(sql: str) -> str:
    """Format SQL query for better readability"""
    formatted = " ".join(sql.split())

    # Add line breaks before major clauses
    clauses = ["FROM", "JOIN", "WHERE", "ORDER BY", "LIMIT", "OFFSET"]
    for clause in clauses:
        formatted = formatted.replace(f" {clause} ", f"\n{clause} ")

    return formatted


def count_group_conditions(group) -> int:
    """Recursively count predicates in a condition group"""
    count = 0

    for child in group.children:
        if hasattr(child, "children"):  # Nested ConditionGroup
            count += count_group_conditions(child)
        else:  # Predicate
            count += 1

    return count


def estimate_query_complexity(context) -> Dict[str, Any]:
    """Estimate query complexity for performance warnings"""
    complexity = {"score": 0, "factors": []}

    condition_count = count_group_conditions(context.root)
    if condition_count > 5:
        complexity["score"] += condition_count // 5
        complexity["factors"].append(f"Many filter conditions ({condition_count})")

    joined = context.joins.joined
    if joined:
        complexity["score"] += len(joined)
        complexity["factors"].append(f"Cross-relation query ({len(joined)} joined relations)")

    complexity["conditions"] = condition_count
    return complexity
