"""
Example: Basic OData usage with sqlodata
========================================

This example shows how to serve DuckDB tables as OData collections, both
in-process and over HTTP.
"""

from sqlodata import CollectionRegistry, DuckDBEngine, ODataConfig, ODataService


def seed(engine):
    """Create a small sales_test schema."""
    engine.execute("CREATE SCHEMA IF NOT EXISTS sales_test")
    engine.execute(
        "CREATE TABLE IF NOT EXISTS sales_test.customers "
        "(id INTEGER, name VARCHAR, email VARCHAR)"
    )
    engine.execute(
        "CREATE TABLE IF NOT EXISTS sales_test.purchases "
        "(id INTEGER, customer_id INTEGER, product VARCHAR, amount DECIMAL(10, 2))"
    )
    engine.execute(
        "INSERT INTO sales_test.customers SELECT i, 'Customer ' || i, 'customer' || i || '@email.com' "
        "FROM range(1, 11) t(i)"
    )
    engine.execute(
        "INSERT INTO sales_test.purchases VALUES "
        "(1, 1, 'Laptop', 999.99), (2, 1, 'Mouse', 25.50), (3, 2, 'Keyboard', 75.00)"
    )


def example_in_process():
    """Query collections without the HTTP gateway."""

    engine = DuckDBEngine(":memory:")
    seed(engine)
    registry = CollectionRegistry.from_yaml("config/collections.yml")
    svc = ODataService(engine, registry, ODataConfig(default_page_size=5))

    base = "http://localhost:5050"

    # Discover what's available
    print("Entity Sets:", [e["name"] for e in svc.service_document("sales_test", base)["value"]])
    print(svc.metadata("sales_test"))

    # First page; the next link points at the second one
    page = svc.collection("sales_test", "customers", {"$orderby": "id"}, base)
    print(f"Got {len(page['value'])} customers, next: {page.get('@odata.nextLink')}")

    # Filter, select and expand
    purchases = svc.collection(
        "sales_test",
        "purchases",
        {"$filter": "amount gt 50", "$expand": "Customer", "$select": "id,product", "$count": "true"},
        base,
    )
    print(f"{purchases['@odata.count']} purchases over 50:", purchases["value"])

    # Entity by key and navigation
    print("Customer 1:", svc.entity("sales_test", "customers", "1", {}, base))
    print("Their purchases:", svc.navigate("sales_test", "customers(1)", "Purchases", {}, base)["value"])


def example_gateway():
    """Serve the same collections over HTTP."""
    from fastapi.testclient import TestClient
    from sqlodata.api import ODataGateway, create_app

    engine = DuckDBEngine(":memory:")
    seed(engine)
    gateway = ODataGateway(
        config=ODataConfig(),
        engine=engine,
        registry=CollectionRegistry.from_yaml("config/collections.yml"),
    )
    client = TestClient(create_app(gateway))

    print(client.get("/sales_test/customers", params={"$top": "3"}).json())
    print(client.get("/sales_test/purchases(1)/Customer").json())


if __name__ == "__main__":
    # Uncomment the example you want to run
    # example_in_process()
    # example_gateway()

    print("Run from the repository root and uncomment an example to run.")
    print("To serve a database file: ODATA_DATABASE=sales.duckdb "
          "ODATA_COLLECTIONS=config/collections.yml python -m sqlodata.api")
