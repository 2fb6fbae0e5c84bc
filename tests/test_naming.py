"""
Tests for sqlodata.odata.naming module.
"""

import pytest

from sqlodata.odata.naming import (
    belongs_to_name,
    has_many_name,
    pascal_case,
    pluralize,
    singularize,
    strip_schema,
)


@pytest.mark.parametrize("word,plural", [
    ("customer", "customers"),
    ("category", "categories"),
    ("box", "boxes"),
    ("address", "addresses"),
    ("batch", "batches"),
    ("wish", "wishes"),
    ("quiz", "quizes"),
])
def test_pluralize(word, plural):
    assert pluralize(word) == plural


@pytest.mark.parametrize("word,singular", [
    ("customers", "customer"),
    ("categories", "category"),
    ("boxes", "box"),
    ("class", "class"),
    ("statuses", "statuse"),
    ("item", "item"),
])
def test_singularize(word, singular):
    assert singularize(word) == singular


def test_pascal_case():
    assert pascal_case("order_items") == "OrderItems"
    assert pascal_case("customers") == "Customers"
    assert pascal_case("__odd__name") == "OddName"


def test_strip_schema():
    assert strip_schema("sales_test.customers") == "customers"
    assert strip_schema("customers") == "customers"


def test_navigation_names():
    assert belongs_to_name("customers") == "Customer"
    assert belongs_to_name("sales_test.customers") == "Customer"
    assert has_many_name("purchases") == "Purchases"
    assert has_many_name("order_items") == "OrderItems"
