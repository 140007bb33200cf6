"""Tests for filter expression parsing and query building."""

import pytest
from sqlalchemy import select

from app.models.todo import TodoLists
from app.services.query import apply_filters, parse_filter_pairs, parse_filter_string

ALLOWED = ("id", "title", "colour")


def where_sql(filters: str) -> str:
    stmt = apply_filters(select(TodoLists), TodoLists, parse_filter_string(filters), ALLOWED)
    return str(stmt.whereclause) if stmt.whereclause is not None else ""


@pytest.mark.unit
class TestParseFilters:
    def test_bracket_and_underscore_syntax(self):
        conditions = parse_filter_string("title[contains]=home&colour_eq=%23FFFFFF")

        assert [(c.field, c.operator, c.value) for c in conditions] == [
            ("title", "contains", "home"),
            ("colour", "eq", "#FFFFFF"),
        ]

    def test_logic_prefixes(self):
        conditions = parse_filter_string("or_title[eq]=a&and_colour[eq]=b&id[gt]=1")

        assert [(c.logic, c.explicit_logic) for c in conditions] == [
            ("or", True),
            ("and", True),
            ("and", False),
        ]

    def test_logic_or_changes_default(self):
        conditions = parse_filter_string("title[eq]=a&colour[eq]=b&logic=or")
        assert all(c.logic == "or" for c in conditions)

    def test_groups(self):
        conditions = parse_filter_pairs(
            [("title[eq]", "a"), ("group1", "2"), ("colour[eq]", "b")]
        )
        assert [c.group for c in conditions] == [0, 2]

    def test_invalid_conditions_skipped(self):
        conditions = parse_filter_string("title[bogus]=a&plain=b&colour[eq]=&id[isnull]=")
        assert [(c.field, c.operator) for c in conditions] == [("id", "isnull")]

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty(self, value):
        assert parse_filter_string(value) == []


@pytest.mark.unit
class TestApplyFilters:
    def test_unknown_field_ignored(self):
        assert where_sql("created_by[eq]=admin") == ""

    def test_unconvertible_value_ignored(self):
        assert where_sql("id[gt]=abc") == ""

    def test_and_by_default(self):
        sql = where_sql("title[eq]=a&colour[eq]=b")
        assert " AND " in sql and " OR " not in sql

    def test_mixed_without_explicit_and_is_or(self):
        sql = where_sql("or_title[eq]=a&colour[eq]=b")
        assert " OR " in sql and " AND " not in sql

    def test_range_and_in(self):
        sql = where_sql("id[range]=1,5&colour[in]=a,b")
        assert ">=" in sql and "<=" in sql and " IN " in sql
