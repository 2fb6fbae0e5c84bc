"""
Pytest configuration and shared fixtures.
"""

import pytest
from fastapi.testclient import TestClient

from sqlodata.core.collections import CollectionRegistry
from sqlodata.core.config import ODataConfig
from sqlodata.core.connection import DuckDBEngine
from sqlodata.odata.service import ODataService
from sqlodata.api.gateway import ODataGateway, create_app


SALES_SETUP = [
    "CREATE SCHEMA sales_test",
    """
    CREATE TABLE sales_test.customers (
        id INTEGER,
        name VARCHAR,
        email VARCHAR,
        city VARCHAR,
        signup_date DATE
    )
    """,
    """
    INSERT INTO sales_test.customers VALUES
        (1, 'John Doe', 'john.doe@email.com', 'Berlin', '2023-01-15'),
        (2, 'Jane Smith', 'jane.smith@email.com', 'Paris', '2023-02-20'),
        (3, 'Bob Johnson', 'bob.johnson@email.com', 'Berlin', '2023-03-05'),
        (4, 'Alice Brown', 'alice.brown@email.com', 'Madrid', '2023-04-11'),
        (5, 'Charlie Wilson', 'charlie.wilson@email.com', 'Rome', '2023-05-30'),
        (6, 'Diana Prince', 'diana.prince@email.com', 'Paris', '2023-06-01'),
        (7, 'Edward Norton', 'edward.norton@email.com', 'Vienna', '2023-07-19'),
        (8, 'Fiona Apple', 'fiona.apple@email.com', NULL, '2023-08-08'),
        (9, 'George Miller', 'george.miller@email.com', 'Lisbon', '2023-09-23'),
        (10, 'Sean O''Brien', 'sean.obrien@email.com', 'Dublin', '2023-10-02')
    """,
    """
    CREATE TABLE sales_test.purchases (
        id INTEGER,
        customer_id INTEGER,
        product VARCHAR,
        amount DECIMAL(10, 2),
        purchase_date DATE
    )
    """,
    """
    INSERT INTO sales_test.purchases VALUES
        (1, 1, 'Laptop', 999.99, '2024-01-15'),
        (2, 1, 'Mouse', 25.50, '2024-01-16'),
        (3, 2, 'Keyboard', 75.00, '2024-02-01'),
        (4, 3, 'Monitor', 300.00, '2024-02-10'),
        (5, 99, 'Webcam', 49.99, '2024-03-05')
    """,
]

SALES_COLLECTIONS = {
    "collection_groups": [
        {
            "name": "sales_test",
            "collections": [
                {
                    "name": "customers",
                    "query": "SELECT * FROM sales_test.customers",
                    "primary_key": ["id"],
                },
                {
                    "name": "purchases",
                    "table": "sales_test.purchases",
                    "primary_key": ["id"],
                    "references": [{"col": "customer_id", "ref": "customers(id)"}],
                },
                {
                    "name": "big_purchases",
                    "query": "SELECT id, customer_id, amount FROM sales_test.purchases WHERE amount > 100",
                },
            ],
        }
    ]
}


@pytest.fixture
def engine():
    """In-memory DuckDB with the sales_test schema."""
    eng = DuckDBEngine(":memory:")
    for stmt in SALES_SETUP:
        eng.execute(stmt)
    yield eng
    eng.close()


@pytest.fixture
def registry():
    """Collections of the sales_test group."""
    return CollectionRegistry.from_dict(SALES_COLLECTIONS)


@pytest.fixture
def config():
    return ODataConfig()


@pytest.fixture
def service(engine, registry, config):
    return ODataService(engine, registry, config)


@pytest.fixture
def gateway(engine, registry, config):
    return ODataGateway(config=config, engine=engine, registry=registry)


@pytest.fixture
def client(gateway):
    """TestClient on an app bound to the sales_test database."""
    app = create_app(gateway=gateway, warm_on_startup=False)
    return TestClient(app)


@pytest.fixture
def base_url():
    return "http://localhost:5050"
