"""
API tests for customers, vehicles and the catalog.

These endpoints only feed the document modules, so the tests focus on
organization scoping, normalization and soft deactivation.
"""

from decimal import Decimal

from tests.conftest import OTHER_ORG_ID


# ============================================================
# Tests for customers and vehicles
# ============================================================


class TestCustomers:
    """Tests for customer registration and vehicles."""

    async def test_create_and_search(self, client):
        """Test creazione cliente e ricerca per nome."""
        response = await client.post(
            "/api/v1/customers/",
            json={"name": "  Officina Rossi ", "email": "Info@Rossi.IT", "tax_id": "abc123"},
        )

        assert response.status_code == 201
        created = response.json()["data"]
        assert created["name"] == "Officina Rossi"
        assert created["tax_id"] == "ABC123"

        response = await client.get("/api/v1/customers/", params={"search": "rossi"})
        body = response.json()
        assert body["total"] == 1
        assert body["data"][0]["id"] == created["id"]

    async def test_customer_of_other_organization(self, client, customer):
        """Test cliente non visibile da un'altra organizzazione."""
        response = await client.get(
            f"/api/v1/customers/{customer.id}",
            headers={"X-Organization-ID": str(OTHER_ORG_ID)},
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    async def test_add_vehicle(self, client, customer):
        """Test registrazione veicolo con targa normalizzata."""
        response = await client.post(
            f"/api/v1/customers/{customer.id}/vehicles",
            json={"brand": "Fiat", "model": "Panda", "year": 2019, "license_plate": "ab 123-cd"},
        )

        assert response.status_code == 201
        vehicle = response.json()["data"]
        assert vehicle["license_plate"] == "AB123CD"
        assert vehicle["display_name"] == "Fiat Panda (AB123CD)"

        response = await client.get(f"/api/v1/customers/{customer.id}/vehicles")
        plates = [v["license_plate"] for v in response.json()["data"]]
        assert "AB123CD" in plates

    async def test_invalid_vin(self, client, customer):
        """Test VIN con lettere non ammesse: 400."""
        response = await client.post(
            f"/api/v1/customers/{customer.id}/vehicles",
            json={"brand": "Fiat", "model": "Panda", "vin": "ZFA3120000J1234IO"},
        )

        assert response.status_code == 400


# ============================================================
# Tests for the catalog
# ============================================================


class TestCatalog:
    """Tests for catalog services and products."""

    async def test_service_default_tax(self, client):
        """Test servizio senza aliquota: applicata quella di default."""
        response = await client.post(
            "/api/v1/catalog/services",
            json={"name": "Allineamento", "unit_price": "80.00"},
        )

        assert response.status_code == 201
        assert Decimal(response.json()["data"]["tax_percent"]) == Decimal("16")

    async def test_deactivated_product_hidden(self, client, product):
        """Test prodotto disattivato: escluso dall'elenco e non più risolvibile."""
        response = await client.delete(f"/api/v1/catalog/products/{product.id}")
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        response = await client.get("/api/v1/catalog/products")
        assert all(p["id"] != str(product.id) for p in response.json()["data"])

        response = await client.delete(f"/api/v1/catalog/products/{product.id}")
        assert response.status_code == 404

    async def test_catalog_scoped_to_organization(self, client, service_item):
        """Test catalogo di un'altra organizzazione vuoto."""
        response = await client.get(
            "/api/v1/catalog/services",
            headers={"X-Organization-ID": str(OTHER_ORG_ID)},
        )

        assert response.json()["total"] == 0
