"""
Tests for sqlodata.odata.formatter module.
"""

import datetime
import decimal
import uuid

from sqlodata.odata.formatter import (
    collection_envelope,
    content_type,
    context_url,
    entity_context_url,
    entity_envelope,
    format_row,
    format_rows_with_expansion,
    metadata_level,
    serialize_value,
)
from sqlodata.odata.query_builder import Expansion
from sqlodata.odata.relationships import forward_edge


def customer_expansion():
    edge = forward_edge("purchases", "customer_id", "customers", "id")
    return Expansion(
        name="Customer",
        alias="customer",
        columns=("id", "name"),
        aliases=("customer__id", "customer_name"),
        relationship=edge,
    )


def purchases_expansion():
    edge = forward_edge("purchases", "customer_id", "customers", "id").reverse()
    return Expansion(
        name="Purchases",
        alias="purchases",
        columns=("id", "product"),
        aliases=("purchases_items",),
        relationship=edge,
    )


class TestSerializeValue:
    """Tests for value serialization."""

    def test_temporal(self):
        assert serialize_value(datetime.date(2024, 1, 5)) == "2024-01-05"
        assert serialize_value(datetime.time(9, 3, 7)) == "09:03:07"
        assert serialize_value(datetime.datetime(2024, 1, 5, 9, 3, 7, 120)) == "2024-01-05T09:03:07"

    def test_scalars_pass_through(self):
        for value in (None, True, 3, 2.5, "text"):
            assert serialize_value(value) == value

    def test_decimal(self):
        assert serialize_value(decimal.Decimal("75.00")) == 75
        assert serialize_value(decimal.Decimal("25.50")) == 25.5

    def test_other_types(self):
        uid = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert serialize_value(uid) == "12345678-1234-5678-1234-567812345678"
        assert serialize_value(b"\x00\x01") == "AAE="
        assert serialize_value({"d": datetime.date(2024, 1, 5)}) == {"d": "2024-01-05"}
        assert serialize_value([datetime.time(1, 2, 3)]) == ["01:02:03"]


class TestRows:
    """Tests for row shaping."""

    def test_format_row_keeps_order(self):
        row = format_row((2, "Jane"), ["id", "name"])
        assert list(row.items()) == [("id", 2), ("name", "Jane")]

    def test_expansion_nested(self):
        rows = [
            (1, 1, "Laptop", 1, "John Doe"),
            (5, 99, "Webcam", None, None),
        ]
        columns = ["id", "customer_id", "product", "customer__id", "customer_name"]
        entities = format_rows_with_expansion(rows, columns, [customer_expansion()])
        assert entities[0] == {
            "id": 1, "customer_id": 1, "product": "Laptop",
            "Customer": {"id": 1, "name": "John Doe"},
        }
        assert entities[1]["Customer"] is None
        assert list(entities[0]) == ["id", "customer_id", "product", "Customer"]

    def test_expansion_without_columns_is_omitted(self):
        empty = Expansion(
            name="Customer", alias="customer", columns=(), aliases=(),
            relationship=customer_expansion().relationship,
        )
        entities = format_rows_with_expansion([(1, "Laptop")], ["id", "product"], [empty])
        assert entities == [{"id": 1, "product": "Laptop"}]

    def test_has_many_expansion_is_list(self):
        rows = [
            (1, "John Doe", [{"id": 2, "product": "Mouse"}, {"product": "Laptop", "id": 1}]),
            (4, "Alice Brown", None),
        ]
        columns = ["id", "name", "purchases_items"]
        entities = format_rows_with_expansion(rows, columns, [purchases_expansion()])
        assert entities[0] == {
            "id": 1, "name": "John Doe",
            "Purchases": [{"id": 2, "product": "Mouse"}, {"id": 1, "product": "Laptop"}],
        }
        assert list(entities[0]["Purchases"][1]) == ["id", "product"]
        assert entities[1]["Purchases"] == []


class TestEnvelopes:
    """Tests for context URLs, content types and envelopes."""

    def test_context_url(self):
        assert context_url("http://h/sales_test", "customers") == "http://h/sales_test/$metadata#customers"
        assert context_url("http://h/sales_test", "customers", "id, ,name") == (
            "http://h/sales_test/$metadata#customers(id,name)"
        )
        assert entity_context_url("http://h/sales_test", "customers") == (
            "http://h/sales_test/$metadata#customers/$entity"
        )

    def test_content_type(self):
        assert metadata_level(None) == "minimal"
        assert metadata_level("application/json;odata.metadata=none") == "none"
        assert content_type() == (
            "application/json;odata.metadata=minimal;odata.streaming=true;IEEE754Compatible=false"
        )
        assert "odata.metadata=full" in content_type("application/json;odata.metadata=full")

    def test_collection_envelope_key_order(self):
        body = collection_envelope("ctx", [{"id": 1}], next_link="next", count=10)
        assert list(body) == ["@odata.context", "value", "@odata.nextLink", "@odata.count"]
        assert list(collection_envelope("ctx", [])) == ["@odata.context", "value"]

    def test_entity_envelope(self):
        body = entity_envelope("ctx", {"id": 1, "name": "John Doe"})
        assert list(body.items()) == [("@odata.context", "ctx"), ("id", 1), ("name", "John Doe")]
