"""
Tests for sqlodata.api module.
"""

from sqlodata import __version__
from sqlodata.api.gateway import get_gateway


class TestGateway:
    """Tests for gateway wiring."""

    def test_create_app_installs_gateway(self, client, gateway):
        assert get_gateway() is gateway

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "version": __version__, "groups": ["sales_test"]}


class TestServiceRoot:
    """Tests for service document and $metadata endpoints."""

    def test_service_document(self, client):
        response = client.get("/sales_test/")
        assert response.status_code == 200
        assert response.headers["OData-Version"] == "4.0"
        body = response.json()
        assert body["@odata.context"] == "http://testserver/sales_test/$metadata"
        assert [e["name"] for e in body["value"]] == ["customers", "purchases", "big_purchases"]

    def test_service_document_without_slash(self, client):
        assert client.get("/sales_test").status_code == 200

    def test_metadata(self, client):
        response = client.get("/sales_test/$metadata")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert response.headers["OData-Version"] == "4.0"
        assert '<EntitySet Name="customers" EntityType="Default.Customers" />' in response.text

    def test_unknown_group(self, client):
        response = client.get("/hr/$metadata")
        assert response.status_code == 404
        assert response.json() == {"error": {"message": "Collection group 'hr' not found"}}
        assert response.headers["OData-Version"] == "4.0"


class TestCollections:
    """Tests for collection, entity and navigation endpoints."""

    def test_paging_end_to_end(self, client):
        response = client.get("/sales_test/customers", params={"$top": "5", "$skip": "0"})
        assert response.status_code == 200
        body = response.json()
        assert [e["id"] for e in body["value"]] == [1, 2, 3, 4, 5]
        assert body["@odata.nextLink"] == "http://testserver/sales_test/customers?$skip=5&$top=5"

        response = client.get("/sales_test/customers?$top=5&$skip=5")
        body = response.json()
        assert [e["id"] for e in body["value"]] == [6, 7, 8, 9, 10]
        assert "@odata.nextLink" not in body

    def test_content_negotiation(self, client):
        response = client.get(
            "/sales_test/customers?$top=1",
            headers={"Accept": "application/json;odata.metadata=none"},
        )
        assert response.headers["content-type"] == (
            "application/json;odata.metadata=none;odata.streaming=true;IEEE754Compatible=false"
        )
        assert response.headers["OData-Version"] == "4.0"

    def test_prefer_header(self, client):
        response = client.get("/sales_test/customers", headers={"Prefer": "odata.maxpagesize=3"})
        body = response.json()
        assert len(body["value"]) == 3
        assert body["@odata.nextLink"] == "http://testserver/sales_test/customers?$skip=3&$top=3"

    def test_filter_select(self, client):
        response = client.get("/sales_test/customers", params={
            "$filter": "name eq 'John Doe'",
            "$select": "id,email",
        })
        assert response.json()["value"] == [{"id": 1, "email": "john.doe@email.com"}]

    def test_bad_filter(self, client):
        response = client.get("/sales_test/customers", params={"$filter": "name === 'x'"})
        assert response.status_code == 400
        assert response.json()["error"]["message"].startswith("Invalid $filter expression")

    def test_unknown_collection(self, client):
        response = client.get("/sales_test/nope")
        assert response.status_code == 404
        assert response.json() == {"error": {"message": "Collection 'nope' not found"}}

    def test_execution_failure(self, client):
        response = client.get("/sales_test/customers", params={"$orderby": "no_such_column"})
        assert response.status_code == 500
        assert "no_such_column" in response.json()["error"]["message"]

    def test_entity(self, client):
        response = client.get("/sales_test/customers(1)")
        assert response.status_code == 200
        body = response.json()
        assert body["@odata.context"] == "http://testserver/sales_test/$metadata#customers/$entity"
        assert body["email"] == "john.doe@email.com"

    def test_entity_not_found(self, client):
        response = client.get("/sales_test/customers(42)")
        assert response.status_code == 404

    def test_malformed_key_segment(self, client):
        for segment in ("customers()", "customers(1"):
            response = client.get(f"/sales_test/{segment}")
            assert response.status_code == 400
            assert "Invalid entity key syntax" in response.json()["error"]["message"]

    def test_navigation(self, client):
        response = client.get("/sales_test/purchases(1)/Customer")
        assert response.status_code == 200
        assert response.json()["name"] == "John Doe"

    def test_navigation_collection(self, client):
        response = client.get("/sales_test/customers(1)/Purchases")
        assert response.status_code == 200
        assert len(response.json()["value"]) == 2

    def test_navigation_missing_key(self, client):
        assert client.get("/sales_test/customers(99)/Purchases").status_code == 404

    def test_navigation_bad_segment(self, client):
        response = client.get("/sales_test/customers/Purchases")
        assert response.status_code == 400
        assert "Invalid entity key syntax" in response.json()["error"]["message"]
