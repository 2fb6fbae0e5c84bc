"""
Tests for sqlodata.odata.query_builder module.
"""

import pytest

from sqlodata.core.config import ODataConfig
from sqlodata.core.errors import BadRequestError
from sqlodata.odata.filter import FilterPolicy, WhereFragment
from sqlodata.odata.params import parse_options
from sqlodata.odata.query_builder import (
    QueryBuilder,
    apply_filter,
    apply_orderby,
    apply_pagination,
    apply_select,
    parse_orderby,
    resolve_filter,
    select_columns,
    split_csv,
)
from sqlodata.odata.relationships import RelationshipIndex
from sqlodata.odata.schema_cache import SchemaCache


@pytest.fixture
def builder(engine, registry, config):
    return QueryBuilder(
        RelationshipIndex(engine, registry),
        SchemaCache(engine, registry),
        config,
    )


def options(config, **params):
    return parse_options({f"${k}": v for k, v in params.items()}, config)


class TestHelpers:
    """Tests for helper functions."""

    def test_split_csv(self):
        assert split_csv("a, b,,c ,") == ["a", "b", "c"]
        assert split_csv("") == []
        assert split_csv(None) == []

    def test_parse_orderby(self):
        assert parse_orderby("name desc, id, bad-col, age sideways, city ASC") == [
            "name DESC", "id ASC", "city ASC",
        ]
        assert parse_orderby("1bad") == []

    def test_select_columns(self):
        assert select_columns(" id , name ,") == ["id", "name"]
        with pytest.raises(BadRequestError, match="Invalid \\$select item"):
            select_columns("id, name; DROP TABLE x")


class TestStages:
    """Tests for individual stages."""

    def test_apply_select(self):
        assert apply_select("SELECT * FROM t", ["a", "b"]) == (
            "SELECT a, b FROM (SELECT * FROM t) AS selected_data"
        )
        assert apply_select("SELECT * FROM t", []) == "SELECT * FROM t"

    def test_apply_filter(self):
        frag = WhereFragment("a = 1")
        assert apply_filter("SELECT * FROM t", frag) == (
            "SELECT * FROM (SELECT * FROM t) AS filtered_data WHERE a = 1"
        )
        assert apply_filter("SELECT * FROM t WHERE b = 2 OR c = 3", frag) == (
            "SELECT * FROM (SELECT * FROM t WHERE b = 2 OR c = 3) AS filtered_data WHERE a = 1"
        )
        assert apply_filter("SELECT * FROM t", None) == "SELECT * FROM t"

    def test_apply_orderby(self):
        assert apply_orderby("SELECT * FROM t", "a desc") == (
            "SELECT * FROM (SELECT * FROM t) AS ordered_data ORDER BY a DESC"
        )
        assert apply_orderby("SELECT * FROM t", "bad-col") == "SELECT * FROM t"

    def test_apply_pagination(self):
        assert apply_pagination("SELECT * FROM t", 10, 5) == (
            "SELECT * FROM (SELECT * FROM t) AS paginated_data LIMIT 6 OFFSET 10"
        )

    def test_resolve_filter_policies(self):
        assert resolve_filter("id eq 1", FilterPolicy.REJECT).sql == "id = 1"
        assert resolve_filter("id === 1", FilterPolicy.IGNORE) is None
        with pytest.raises(BadRequestError, match="Invalid \\$filter expression 'id === 1'"):
            resolve_filter("id === 1", FilterPolicy.REJECT)


class TestQueryBuilder:
    """Tests for QueryBuilder."""

    def test_stage_order(self, builder, registry, config):
        plan = builder.build(
            registry.get("sales_test", "customers"),
            options(config, select="id,name", filter="id gt 3", orderby="name desc", top="2", skip="1"),
        )
        assert plan.sql == (
            "SELECT * FROM (SELECT * FROM (SELECT * FROM (SELECT id, name FROM "
            "(SELECT * FROM sales_test.customers) AS selected_data) AS filtered_data WHERE id > 3) "
            "AS ordered_data ORDER BY name DESC) "
            "AS paginated_data LIMIT 3 OFFSET 1"
        )
        assert plan.select == ["id", "name"]
        assert plan.top == 2
        assert plan.skip == 1

    def test_filter_wraps_existing_where(self, builder, registry, config):
        plan = builder.build(registry.get("sales_test", "big_purchases"), options(config, filter="customer_id eq 1"))
        assert "WHERE amount > 100) AS filtered_data WHERE customer_id = 1" in plan.sql

    def test_rejected_filter(self, builder, registry, config):
        with pytest.raises(BadRequestError):
            builder.build(registry.get("sales_test", "customers"), options(config, filter="name ~ 'x'"))

    def test_ignored_filter(self, engine, registry):
        cfg = ODataConfig(filter_policy="ignore")
        builder = QueryBuilder(RelationshipIndex(engine, registry), SchemaCache(engine, registry), cfg)
        plan = builder.build(registry.get("sales_test", "customers"), options(cfg, filter="name ~ 'x'"))
        assert "WHERE" not in plan.sql

    def test_expansion_aliases(self, builder, registry):
        purchases = registry.get("sales_test", "purchases")
        [exp] = builder.expansions(purchases, "Customer")
        assert exp.name == "Customer"
        assert exp.alias == "customer"
        assert exp.columns == ("id", "name", "email", "city", "signup_date")
        # customer_id already exists on purchases
        assert exp.aliases == (
            "customer__id", "customer_name", "customer_email", "customer_city", "customer_signup_date",
        )

    def test_unknown_expansion_skipped(self, builder, registry):
        purchases = registry.get("sales_test", "purchases")
        assert builder.expansions(purchases, "Supplier, Customer, customer")[0].name == "Customer"
        assert len(builder.expansions(purchases, "Supplier, Customer, customer")) == 1
        assert builder.expansions(purchases, "Supplier") == []

    def test_expand_sql_keeps_every_row(self, builder, registry, config, engine):
        plan = builder.build(registry.get("sales_test", "purchases"), options(config, expand="Customer"))
        assert "LEFT JOIN sales_test.customers AS \"customer\"" in plan.sql
        assert "AS expanded_data" in plan.sql
        result = engine.execute(plan.sql)
        assert len(result.rows) == 5
        assert result.columns[:5] == ["id", "customer_id", "product", "amount", "purchase_date"]
        assert result.columns[5:] == list(plan.expansions[0].aliases)

    def test_has_many_expansion_aggregates(self, builder, registry, config, engine):
        customers = registry.get("sales_test", "customers")
        [exp] = builder.expansions(customers, "Purchases")
        assert exp.aliases == ("purchases_items",)
        assert exp.columns == ("id", "customer_id", "product", "amount", "purchase_date")

        plan = builder.build(customers, options(config, expand="Purchases", orderby="id"))
        assert "GROUP BY related.customer_id" in plan.sql
        result = engine.execute(plan.sql)
        assert len(result.rows) == 10
        assert result.columns[-1] == "purchases_items"
        assert [p["product"] for p in result.rows[0][-1]] == ["Laptop", "Mouse"]
        assert result.rows[3][-1] is None

    def test_select_keeps_expanded_columns(self, builder, registry, config, engine):
        plan = builder.build(
            registry.get("sales_test", "purchases"),
            options(config, expand="Customer", select="id,product"),
        )
        result = engine.execute(plan.sql)
        assert result.columns[:2] == ["id", "product"]
        assert result.columns[2:] == list(plan.expansions[0].aliases)

    def test_count_base(self, builder, registry, config):
        sql = builder.count_base(registry.get("sales_test", "customers"), options(config, filter="id le 3", top="1"))
        assert sql == "SELECT * FROM (SELECT * FROM sales_test.customers) AS filtered_data WHERE id <= 3"

    def test_build_entity(self, builder, registry, config):
        plan = builder.build_entity(registry.get("sales_test", "customers"), "id = 1", options(config))
        assert plan.sql == "SELECT * FROM (SELECT * FROM sales_test.customers) AS keyed_data WHERE id = 1"
