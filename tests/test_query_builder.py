"""
Tests for QueryContext composition and materialization
"""

import pytest
from sqlalchemy.dialects import sqlite

from enums import CompareOp, LogicOp
from search import config
from search.conditions import QueryBuildError
from search.query_builder import QueryContext


def compile_sql(context):
    return str(context.to_page_statement().compile(dialect=sqlite.dialect()))


def letters(result):
    return [record.name[0] for record in result.records]


EMPTY_SQL = compile_sql(QueryContext())


@pytest.mark.parametrize(
    "compose",
    [
        lambda c: c.search_keywords("", ["name"]),
        lambda c: c.search_keywords("   ", ["name"]),
        lambda c: c.search_keywords("widget", []),
        lambda c: c.where_any([]),
        lambda c: c.where_all([]),
        lambda c: c.where_any([{}, None]),
        lambda c: c.in_range("price", None, ""),
        lambda c: c.between_dates("created_at", None, None),
        lambda c: c.with_status(None),
        lambda c: c.with_batch_conditions(lambda batches: None),
        lambda c: c.complex_where(lambda builder: builder.or_group(lambda group: None)),
    ],
)
def test_identity_operations(compose):
    context = QueryContext()
    compose(context)
    assert compile_sql(context) == EMPTY_SQL
    assert context.joins.joined == []


@pytest.mark.parametrize(
    "compose",
    [
        lambda c: c.order_by("bogus_field", "asc"),
        lambda c: c.in_range("bogus_field", 1, 10),
        lambda c: c.between_dates("bogus_field", "2024-01-01", "2024-02-01"),
        lambda c: c.search_keywords("widget", ["bogus_field"]),
        lambda c: c.where({"bogus_field": 1}),
    ],
)
def test_unknown_field_is_same_as_omitted(compose, caplog):
    context = QueryContext()
    compose(context)
    assert compile_sql(context) == EMPTY_SQL
    assert "Potentially unsafe field name rejected" in caplog.text


def test_unknown_keyword_field_is_dropped_from_the_list():
    with_unknown = QueryContext().search_keywords("widget", ["name", "bogus_field"])
    without = QueryContext().search_keywords("widget", ["name"])
    assert compile_sql(with_unknown) == compile_sql(without)


def test_relation_predicate_joins_its_relation():
    context = QueryContext().where({"batches.lot_code": {"contains": "LOT"}})
    assert context.joins.joined == ["batches"]
    assert context.joins.distinct_applied


def test_keyword_search_over_related_field_joins(test_db, inventories):
    context = QueryContext(test_db).search_keywords("berlin", ["name", "shipments.destination"])
    assert context.joins.joined == ["shipments"]
    assert letters(context.results()) == ["B"]


def test_where_mapping_with_operators(test_db, inventories):
    result = QueryContext(test_db).where({"price": {"gte": 15, "lt": 45}, "status": "active"}).results()
    assert letters(result) == ["B", "C"]


def test_where_between_mapping(test_db, inventories):
    result = QueryContext(test_db).where({"price": {"between": [20, 40]}}).results()
    assert letters(result) == ["C", "D"]


def test_where_predicate(test_db, inventories):
    context = QueryContext(test_db)
    context.where(context.condition("quantity", CompareOp.GT, 10))
    assert letters(context.results()) == ["E"]


def test_condition_rejects_bad_input():
    context = QueryContext()
    assert context.condition("bogus_field", "eq", 1) is None
    assert context.condition("price", "near", 1) is None
    assert context.condition("price", "eq", "cheap") is None
    assert context.condition("price", "between", 1) is None
    assert context.condition("price", "contains", "1") is None


def test_where_rejects_unsupported_condition_type():
    with pytest.raises(QueryBuildError):
        QueryContext().where("quantity = 0")


def test_or_where_unions_with_previous_conditions(test_db, inventories):
    context = QueryContext(test_db).where({"quantity": 0}).or_where({"status": "archived"})
    assert context.root.operator == LogicOp.AND
    assert context.root.children[0].operator == LogicOp.OR
    assert letters(context.results()) == ["A", "D"]


def test_or_where_keeps_earlier_and_conditions_together(test_db, inventories):
    # (price > 20 AND status = active) OR quantity = 0
    context = QueryContext(test_db).where({"price": {"gt": 20}}).with_status("active").or_where({"quantity": 0})
    assert letters(context.results()) == ["A", "C", "E"]


def test_where_any_and_where_all(test_db, inventories):
    result = QueryContext(test_db).where_any([{"quantity": 0}, {"price": {"gt": 40}}]).results()
    assert letters(result) == ["A", "E"]

    result = QueryContext(test_db).where_all([{"quantity": 10}, {"status": "active"}]).results()
    assert letters(result) == ["C"]


def test_complex_where_nested_groups(test_db, inventories):
    def block(builder):
        builder.or_group(
            lambda any_of: any_of.where({"quantity": 0}).and_group(
                lambda all_of: all_of.where({"status": "active"}).where({"price": {"gte": 40}})
            )
        )

    result = QueryContext(test_db).complex_where(block).results()
    assert letters(result) == ["A", "E"]


def test_empty_branch_in_or_group_is_omitted(test_db, inventories):
    def block(builder):
        builder.or_group(lambda any_of: any_of.where({"quantity": 0}).and_group(lambda all_of: None))

    assert letters(QueryContext(test_db).complex_where(block).results()) == ["A"]


def test_or_where_with_only_unknown_fields_is_omitted(test_db, inventories, caplog):
    result = QueryContext(test_db).where({"quantity": 0}).or_where({"bogus_field": 1}).results()
    assert letters(result) == ["A"]
    assert "bogus_field" in caplog.text


def test_where_any_skips_conditions_with_only_unknown_fields(test_db, inventories):
    result = QueryContext(test_db).where_any([{"bogus_field": 1}, {"quantity": 0}]).results()
    assert letters(result) == ["A"]
    # nothing left to restrict on
    assert QueryContext(test_db).where_any([{"bogus_field": 1}]).results().total_count == 5


def test_stock_helpers(test_db, inventories):
    assert letters(QueryContext(test_db).out_of_stock().results()) == ["A"]
    assert letters(QueryContext(test_db).low_stock().results()) == ["B", "C", "D"]
    assert letters(QueryContext(test_db).low_stock(5).results()) == ["B"]
    assert letters(QueryContext(test_db).in_stock().results()) == ["E"]


def test_with_status(test_db, inventories):
    assert letters(QueryContext(test_db).with_status("archived").results()) == ["A", "D"]
    # unknown status is dropped, not an error
    assert QueryContext(test_db).with_status("discontinued").results().total_count == 5


def test_in_range_and_between_dates(test_db, inventories):
    assert letters(QueryContext(test_db).in_range("price", 10, 30).results()) == ["B", "C"]
    assert letters(QueryContext(test_db).in_range("price", 30, None).results()) == ["D", "E"]
    assert letters(QueryContext(test_db).in_range("price", None, 15).results()) == ["A", "B"]
    # the upper date bound covers the whole day
    result = QueryContext(test_db).between_dates("created_at", "2024-02-10", "2024-03-10").results()
    assert letters(result) == ["B", "C"]


def test_time_based_helpers(test_db, inventories, clock):
    assert letters(QueryContext(test_db, clock=clock).recently_updated(5).results()) == ["A", "B", "C"]
    assert letters(QueryContext(test_db, clock=clock).expiring_soon(10).results()) == ["A"]
    assert letters(QueryContext(test_db, clock=clock).expiring_soon().results()) == ["A"]
    assert letters(QueryContext(test_db, clock=clock).expiring_soon(100).results()) == ["A", "C"]


def test_modified_by_user(test_db, inventories):
    assert letters(QueryContext(test_db).modified_by_user(7).results()) == ["B"]


def test_default_ordering_is_most_recently_updated_first(test_db, inventories):
    assert letters(QueryContext(test_db).results()) == ["A", "B", "C", "D", "E"]


def test_order_by_and_order_by_multiple(test_db, inventories):
    assert letters(QueryContext(test_db).order_by("price", "desc").results()) == ["E", "D", "C", "B", "A"]

    result = QueryContext(test_db).order_by_multiple({"quantity": "desc", "price": "asc"}).results()
    assert letters(result) == ["E", "C", "D", "B", "A"]

    result = QueryContext(test_db).order_by_multiple([("status", "asc"), ("name", "desc")]).results()
    assert letters(result) == ["E", "C", "B", "D", "A"]


def test_order_by_rejects_bad_direction_and_related_fields(caplog):
    context = QueryContext().order_by("price", "sideways").order_by("batches.lot_code", "asc")
    assert context.orderings == []
    assert "Invalid sort direction rejected" in caplog.text
    assert "Ordering by related field batches.lot_code is not supported" in caplog.text


@pytest.mark.parametrize(
    "page, per_page, expected",
    [
        (0, 1000, (1, config.MAX_PER_PAGE)),
        (-3, 0, (1, 1)),
        ("2", "5", (2, 5)),
        ("x", None, (config.DEFAULT_PAGE, config.DEFAULT_PER_PAGE)),
    ],
)
def test_paginate_clamps(page, per_page, expected):
    context = QueryContext().paginate(page, per_page)
    assert (context.page, context.per_page) == expected


def test_offset():
    assert QueryContext().offset == 0
    assert QueryContext().paginate(3, 10).offset == 20


def test_debug_query_string_without_database():
    sql = QueryContext().where({"quantity": 0}).paginate(2, 10).to_debug_query_string()
    assert "ORDER BY" in sql
    assert "LIMIT" in sql
    assert "total_count" in sql


def test_count(test_db, inventories):
    assert QueryContext(test_db).with_status("active").count() == 3


def test_context_is_frozen_after_materialization(test_db, inventories):
    context = QueryContext(test_db).out_of_stock()
    context.results()
    with pytest.raises(QueryBuildError):
        context.where({"quantity": 3})
    with pytest.raises(QueryBuildError):
        context.paginate(2, 10)


def test_materialize_requires_a_session():
    with pytest.raises(QueryBuildError):
        QueryContext().results()


def test_summary():
    context = QueryContext().where({"quantity": 0}).with_batch_conditions(lambda b: b.lot_code("LOT"))
    context.order_by("price", "asc")
    assert context.summary() == {
        "joins": ["batches"],
        "distinct": True,
        "conditions": 2,
        "orderings": ["inventories.price asc"],
    }


def test_build_classmethod(test_db):
    context = QueryContext.build(test_db)
    assert context.db is test_db
    assert context.root.is_empty()
