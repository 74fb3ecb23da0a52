from typing import Any, List, Mapping

from enums import LogicOp
from .conditions import ConditionGroupBuilder

GROUP_KEYS = {op.value.lower(): op for op in LogicOp}
MAX_DEPTH = 8


class ParseError(Exception):
    """Raised on invalid structure in a complex condition tree."""

    pass


class ConditionParser:
    """
    Applies a JSON complex condition onto a ConditionGroupBuilder.

    A group node holds only "and" / "or" keys, each with a list of nodes:
        {"or": [{"quantity": 0}, {"and": [{"status": "archived"}, {"price": {"gte": 10}}]}]}
    Anything else is a leaf mapping of field -> value or field -> {operator: value}.
    """

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth

    def apply(self, builder: ConditionGroupBuilder, condition: Any) -> None:
        if not isinstance(condition, Mapping):
            raise ParseError(f"Complex condition must be an object, got {type(condition).__name__}")
        self.parse_node(builder, condition, depth=0)

    def parse_node(self, builder: ConditionGroupBuilder, node: Mapping, depth: int) -> None:
        if depth > self.max_depth:
            raise ParseError(f"Complex condition is nested deeper than {self.max_depth} levels")

        keys = {str(key).lower() for key in node}
        group_keys = keys & set(GROUP_KEYS)

        if not group_keys:
            builder.where(node)
            return

        if group_keys != keys:
            mixed = sorted(keys - group_keys)
            raise ParseError(
                f"Ambiguous condition: fields {mixed} sit next to and/or groups; wrap them in an explicit group"
            )

        for key, children in node.items():
            logic_op = GROUP_KEYS[str(key).lower()]
            self.parse_group(builder, logic_op, children, depth + 1)

    def parse_group(self, builder: ConditionGroupBuilder, logic_op: LogicOp, children: Any, depth: int) -> None:
        if not isinstance(children, list):
            raise ParseError(f"Expected a list under '{logic_op.value.lower()}', got {type(children).__name__}")

        nodes: List[Mapping] = []
        for child in children:
            if not isinstance(child, Mapping):
                raise ParseError(f"Expected an object inside '{logic_op.value.lower()}', got {child!r}")
            if child:
                nodes.append(child)

        def fill(group_builder: ConditionGroupBuilder) -> None:
            for child in nodes:
                self.parse_node(group_builder, child, depth)

        if logic_op == LogicOp.AND:
            builder.and_group(fill)
        else:
            builder.or_group(fill)
