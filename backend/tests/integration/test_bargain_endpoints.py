"""
Integration tests for the bargain endpoints.

WHAT: Test the REST contract of the negotiation workflow
WHY: Ensure status codes and error bodies match the documented mapping
HOW: FastAPI TestClient against the test database and the SQL catalog
"""

import pytest
from fastapi.testclient import TestClient

from bargain_market.main import app
from bargain_market.services.catalog import get_catalog


def as_user(user_id, role):
    return {"X-User-Id": user_id, "X-User-Role": role}


BUYER = as_user("buyer_1", "buyer")
OTHER_BUYER = as_user("buyer_2", "buyer")
SELLER = as_user("seller_1", "seller")
ADMIN = as_user("admin_1", "admin")


@pytest.fixture
def client():
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def products():
    catalog = get_catalog()
    catalog.add_product("Laptop", price=100.0, stock=5, owner_id="seller_1", product_id="laptop")
    catalog.add_product("Phone", price=50.0, stock=10, owner_id="seller_1", product_id="phone")
    return catalog


@pytest.fixture
def open_thread(client, products):
    response = client.post(
        "/api/v1/bargains",
        json={"product_id": "laptop", "proposed_price": 40.0, "message": "Would you take 40?"},
        headers=BUYER
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
class TestCreateBargain:

    def test_create(self, open_thread):
        assert open_thread["status"] == "pending"
        assert open_thread["current_offer"] == 40.0
        assert open_thread["seller_id"] == "seller_1"
        assert open_thread["messages"][0]["text"] == "Would you take 40?"

    def test_duplicate_is_conflict(self, client, open_thread):
        response = client.post(
            "/api/v1/bargains",
            json={"product_id": "laptop", "proposed_price": 45.0},
            headers=BUYER
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "DUPLICATE_ACTIVE_THREAD"
        assert body["details"]["thread_id"] == open_thread["thread_id"]
        assert "timestamp" in body

    def test_offer_at_catalog_price(self, client, products):
        response = client.post(
            "/api/v1/bargains",
            json={"product_id": "laptop", "proposed_price": 100.0},
            headers=BUYER
        )
        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_OFFER"

    def test_unknown_product(self, client, products):
        response = client.post(
            "/api/v1/bargains",
            json={"product_id": "missing", "proposed_price": 10.0},
            headers=BUYER
        )
        assert response.status_code == 404

    def test_seller_cannot_open(self, client, products):
        response = client.post(
            "/api/v1/bargains",
            json={"product_id": "laptop", "proposed_price": 40.0},
            headers=SELLER
        )
        assert response.status_code == 403
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_missing_identity_headers(self, client, products):
        response = client.post("/api/v1/bargains", json={"product_id": "laptop", "proposed_price": 40.0})
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_unknown_role(self, client, products):
        response = client.get("/api/v1/bargains", headers=as_user("x", "superuser"))
        assert response.status_code == 400

    def test_negative_price_is_request_validation(self, client, products):
        response = client.post(
            "/api/v1/bargains",
            json={"product_id": "laptop", "proposed_price": -1},
            headers=BUYER
        )
        assert response.status_code == 400


@pytest.mark.integration
class TestTransitions:

    def test_counter_accept_and_resolved_price(self, client, open_thread):
        thread_id = open_thread["thread_id"]

        countered = client.post(f"/api/v1/bargains/{thread_id}/counter", json={"amount": 70.0}, headers=SELLER)
        assert countered.status_code == 200
        assert countered.json()["status"] == "countered"

        accepted = client.post(f"/api/v1/bargains/{thread_id}/accept", headers=BUYER)
        assert accepted.status_code == 200
        assert accepted.json()["accepted_price"] == 70.0

        price = client.get("/api/v1/pricing/laptop", headers=BUYER).json()
        assert price["resolved_price"] == 70.0
        assert price["source_thread_id"] == thread_id

        other = client.get("/api/v1/pricing/laptop", headers=OTHER_BUYER).json()
        assert other["resolved_price"] is None

    def test_accept_closed_thread(self, client, open_thread):
        thread_id = open_thread["thread_id"]
        assert client.post(f"/api/v1/bargains/{thread_id}/reject", headers=SELLER).status_code == 200

        response = client.post(f"/api/v1/bargains/{thread_id}/accept", headers=SELLER)
        assert response.status_code == 409
        assert response.json()["error"] == "THREAD_CLOSED"

    def test_buyer_nothing_to_accept(self, client, open_thread):
        response = client.post(f"/api/v1/bargains/{open_thread['thread_id']}/accept", headers=BUYER)
        assert response.status_code == 422
        assert response.json()["error"] == "NOTHING_TO_ACCEPT"

    def test_revise_offer(self, client, open_thread):
        thread_id = open_thread["thread_id"]
        client.post(f"/api/v1/bargains/{thread_id}/counter", json={"amount": 80.0}, headers=SELLER)

        response = client.post(f"/api/v1/bargains/{thread_id}/offer", json={"amount": 60.0}, headers=BUYER)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["current_offer"] == 60.0
        assert body["counter_offer"] is None

    def test_reject_with_message(self, client, open_thread):
        response = client.post(
            f"/api/v1/bargains/{open_thread['thread_id']}/reject",
            json={"message": "Too low"},
            headers=SELLER
        )
        assert response.json()["messages"][-1]["text"] == "Too low"

    def test_revoke(self, client, open_thread):
        thread_id = open_thread["thread_id"]
        client.post(f"/api/v1/bargains/{thread_id}/accept", headers=SELLER)

        response = client.post(f"/api/v1/bargains/{thread_id}/revoke", headers=SELLER)
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        assert client.get("/api/v1/pricing/laptop", headers=BUYER).json()["resolved_price"] is None


@pytest.mark.integration
class TestReadsAndMessages:

    def test_list_and_get(self, client, open_thread):
        listing = client.get("/api/v1/bargains", headers=SELLER).json()
        assert listing["total"] == 1

        assert client.get("/api/v1/bargains", headers=OTHER_BUYER).json()["total"] == 0

        thread_id = open_thread["thread_id"]
        assert client.get(f"/api/v1/bargains/{thread_id}", headers=ADMIN).status_code == 200
        assert client.get(f"/api/v1/bargains/{thread_id}", headers=OTHER_BUYER).status_code == 403
        assert client.get("/api/v1/bargains/missing", headers=ADMIN).status_code == 404

    def test_post_message(self, client, open_thread):
        thread_id = open_thread["thread_id"]
        response = client.post(f"/api/v1/bargains/{thread_id}/messages", json={"text": "Hi"}, headers=SELLER)
        assert response.status_code == 200
        assert [m["sequence"] for m in response.json()["messages"]] == [0, 1]

    def test_blank_message(self, client, open_thread):
        response = client.post(
            f"/api/v1/bargains/{open_thread['thread_id']}/messages",
            json={"text": "   "},
            headers=SELLER
        )
        assert response.status_code == 400
