"""
Tests for sqlodata.odata.navigation module.
"""

import pytest

from sqlodata.core.errors import BadRequestError, NotFoundError
from sqlodata.odata.navigation import (
    build_navigation_sql,
    is_entity_segment,
    key_column,
    key_literal,
    navigation_context,
    parse_collection_and_key,
)
from sqlodata.odata.relationships import forward_edge


class TestParsing:
    """Tests for path and reference parsing."""

    def test_parse_collection_and_key(self):
        assert parse_collection_and_key("customers(1)") == ("customers", "1")
        assert parse_collection_and_key("customers('abc')") == ("customers", "'abc'")

    def test_is_entity_segment(self):
        assert is_entity_segment("customers(1)")
        assert not is_entity_segment("customers")

    @pytest.mark.parametrize("segment", ["customers()", "1customers(1)", "customers(1"])
    def test_invalid_segment(self, segment):
        assert is_entity_segment(segment)
        with pytest.raises(BadRequestError, match="Invalid entity key syntax"):
            parse_collection_and_key(segment)

    def test_key_literal(self):
        assert key_literal("42") == "42"
        assert key_literal("-1.5") == "-1.5"
        assert key_literal("'abc'") == "'abc'"
        assert key_literal("'O''Brien'") == "'O''Brien'"
        assert key_literal("abc") == "'abc'"
        assert key_literal("1 OR 1=1") == "'1 OR 1=1'"

    def test_key_column(self, registry):
        assert key_column(registry.get("sales_test", "customers")) == "id"
        assert key_column(registry.get("sales_test", "big_purchases")) == "id"


class TestNavigationSql:
    """Tests for SQL generation."""

    def test_belongs_to(self, registry):
        purchases = registry.get("sales_test", "purchases")
        edge = forward_edge("purchases", "customer_id", "customers", "id")
        query = build_navigation_sql(purchases, "1", edge)
        assert query.sql == (
            "SELECT target.* FROM sales_test.customers AS target "
            "INNER JOIN (SELECT * FROM sales_test.purchases) AS source "
            "ON target.id = source.customer_id WHERE source.id = 1"
        )
        assert query.context_set == "customer"

    def test_navigation_context(self):
        assert navigation_context("http://h/sales_test", "Customer", single=True) == (
            "http://h/sales_test/$metadata#customer/$entity"
        )
        assert navigation_context("http://h/sales_test", "Purchases", single=False) == (
            "http://h/sales_test/$metadata#purchases"
        )


class TestNavigate:
    """Tests for ODataService.navigate."""

    def test_belongs_to_returns_entity(self, service, base_url):
        body = service.navigate("sales_test", "purchases(1)", "Customer", {}, base_url)
        assert body["@odata.context"] == "http://localhost:5050/sales_test/$metadata#customer/$entity"
        assert body["id"] == 1
        assert body["name"] == "John Doe"
        assert body["signup_date"] == "2023-01-15"

    def test_context_uses_property_name(self, service, base_url):
        body = service.navigate("sales_test", "purchases(1)", "CUSTOMERS", {}, base_url)
        assert body["@odata.context"] == "http://localhost:5050/sales_test/$metadata#customer/$entity"

    def test_has_many_returns_collection(self, service, base_url):
        body = service.navigate("sales_test", "customers(1)", "Purchases", {}, base_url)
        assert body["@odata.context"] == "http://localhost:5050/sales_test/$metadata#purchases"
        assert sorted(p["product"] for p in body["value"]) == ["Laptop", "Mouse"]

    def test_missing_key(self, service, base_url):
        with pytest.raises(NotFoundError, match="Related entity not found"):
            service.navigate("sales_test", "customers(99)", "Purchases", {}, base_url)

    def test_missing_related_row(self, service, base_url):
        # purchase 5 points at a customer that does not exist
        with pytest.raises(NotFoundError):
            service.navigate("sales_test", "purchases(5)", "Customer", {}, base_url)

    def test_unknown_navigation_property(self, service, base_url):
        with pytest.raises(NotFoundError, match="Navigation property 'Supplier' not found on 'purchases'"):
            service.navigate("sales_test", "purchases(1)", "Supplier", {}, base_url)

    def test_malformed_segment(self, service, base_url):
        with pytest.raises(BadRequestError):
            service.navigate("sales_test", "purchases[1]", "Customer", {}, base_url)
