"""
HTTP API tests.

Verifies:
- X-User-Id actor resolution (401) and role permissions (403)
- Domain errors map to their status codes with a structured body
- Transfer, sale and adjustment flows through the API
"""

import re

import pytest

from branchstock.models import StockMovement
from branchstock.services import stock_service


NUMBER_RE = r"^{tag}/{code}/\d{{4}}/\d{{2}}/\d{{3}}$"


class TestAuthentication:

    def test_missing_header(self, client, db_session):
        response = client.get("/api/stocks")
        assert response.status_code == 401
        assert response.get_json()["code"] == "unauthenticated"

    def test_malformed_header(self, client, db_session):
        response = client.get("/api/stocks", headers={"X-User-Id": "abc"})
        assert response.status_code == 401

    def test_unknown_user(self, client, db_session):
        response = client.get("/api/stocks", headers={"X-User-Id": "9999"})
        assert response.status_code == 401

    def test_inactive_user(self, client, db_session, admin, headers):
        admin.is_active = False
        db_session.commit()

        response = client.get("/api/stocks", headers=headers(admin))
        assert response.status_code == 401

    def test_cashier_cannot_adjust(self, client, db_session, cashier, jakarta, product, headers):
        response = client.post(
            "/api/stocks/adjust",
            json={"branch_id": jakarta.id, "product_id": product.id, "quantity": 5},
            headers=headers(cashier),
        )

        assert response.status_code == 403
        body = response.get_json()
        assert body["code"] == "permission_denied"
        assert body["details"]["required_permission"] == "ADJUST_STOCK"
        assert db_session.query(StockMovement).count() == 0


class TestSystemRoutes:

    def test_health(self, client, db_session, jakarta):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["branches"] == 1

    def test_enums(self, client, db_session):
        body = client.get("/api/meta/enums").get_json()

        assert {"value": "pending", "label": "Awaiting Approval"} in body["transfer_statuses"]
        assert body["transfer_status_colors"]["received"] == "green"
        assert [o["value"] for o in body["movement_types"]] == ["in", "out"]

    def test_permissions(self, client, db_session):
        body = client.get("/api/meta/permissions").get_json()

        assert "CREATE_SALE" in body["roles"]["cashier"]
        assert any(p["code"] == "SEND_TRANSFER" for p in body["permissions"])


class TestStockRoutes:

    def test_adjust_and_list(self, client, db_session, admin, jakarta, product, headers):
        response = client.post(
            "/api/stocks/adjust",
            json={"branch_id": jakarta.id, "product_id": product.id, "quantity": 7, "notes": "Recount"},
            headers=headers(admin),
        )

        assert response.status_code == 201
        movement = response.get_json()
        assert (movement["type"], movement["stock_before"], movement["stock_after"]) == ("in", 0, 7)

        body = client.get(f"/api/stocks?branch_id={jakarta.id}", headers=headers(admin)).get_json()
        assert body["count"] == 1
        row = body["items"][0]
        assert (row["sku"], row["branch_code"], row["quantity"]) == ("SKU-001", "JKT", 7)

        body = client.get(
            f"/api/stocks/movements?product_id={product.id}&reference_type=adjustment",
            headers=headers(admin),
        ).get_json()
        assert [m["notes"] for m in body["items"]] == ["Recount"]

    def test_negative_adjust_beyond_stock(self, client, db_session, admin, jakarta, product, headers):
        response = client.post(
            "/api/stocks/adjust",
            json={"branch_id": jakarta.id, "product_id": product.id, "quantity": -1},
            headers=headers(admin),
        )

        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "insufficient_stock"
        assert body["details"]["available"] == 0

    def test_zero_adjust_is_invalid(self, client, db_session, admin, jakarta, product, headers):
        response = client.post(
            "/api/stocks/adjust",
            json={"branch_id": jakarta.id, "product_id": product.id, "quantity": 0},
            headers=headers(admin),
        )
        assert response.status_code == 400
        assert response.get_json()["details"]["field"] == "quantity"

    def test_bad_date_filter(self, client, db_session, admin, headers):
        response = client.get("/api/stocks/movements?start=yesterday", headers=headers(admin))
        assert response.status_code == 400

    def test_min_stock_and_low_list(self, client, db_session, admin, jakarta, product, headers, stock_up):
        stock_up(jakarta, product, 8, admin)

        response = client.put(
            "/api/stocks/min-stock",
            json={"branch_id": jakarta.id, "product_id": product.id, "min_stock": 10},
            headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.get_json()["is_low_stock"] is True

        body = client.get("/api/stocks/low", headers=headers(admin)).get_json()
        assert [row["sku"] for row in body["items"]] == ["SKU-001"]


class TestTransferRoutes:

    def test_full_lifecycle(
        self, client, db_session, admin, branch_admin, jakarta, bandung, product, headers, stock_up
    ):
        stock_up(bandung, product, 10, admin)

        response = client.post(
            "/api/transfers",
            json={
                "type": "request",
                "from_branch_id": bandung.id,
                "items": [{"product_id": product.id, "quantity_requested": 5}],
            },
            headers=headers(admin),
        )
        assert response.status_code == 201
        created = response.get_json()
        assert created["status"] == "pending"
        assert created["to_branch_id"] == jakarta.id
        assert re.match(NUMBER_RE.format(tag="TRF", code="BDG"), created["transfer_number"])
        transfer_id = created["id"]
        item_id = created["items"][0]["id"]

        response = client.post(f"/api/transfers/{transfer_id}/approve", headers=headers(branch_admin))
        assert response.status_code == 200
        assert response.get_json()["status"] == "approved"

        response = client.post(f"/api/transfers/{transfer_id}/send", json={}, headers=headers(branch_admin))
        assert response.status_code == 200
        sent = response.get_json()
        assert sent["status"] == "sent"
        assert re.match(NUMBER_RE.format(tag="SJ", code="BDG"), sent["delivery_note_number"])
        assert stock_service.quantity_of(bandung.id, product.id) == 5

        response = client.post(
            f"/api/transfers/{transfer_id}/receive",
            json={"items": [{"id": item_id, "quantity_received": 4}], "receiving_notes": "One short"},
            headers=headers(admin),
        )
        assert response.status_code == 200
        received = response.get_json()
        assert received["status"] == "received"
        assert received["items"][0]["quantity_received"] == 4
        assert stock_service.quantity_of(jakarta.id, product.id) == 4

        response = client.get(f"/api/transfers?branch_id={jakarta.id}&status=received", headers=headers(admin))
        assert response.get_json()["count"] == 1

    def test_wrong_state_is_conflict(self, client, db_session, admin, bandung, product, headers):
        created = client.post(
            "/api/transfers",
            json={"from_branch_id": bandung.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(admin),
        ).get_json()

        response = client.post(f"/api/transfers/{created['id']}/send", json={}, headers=headers(admin))

        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "invalid_transfer_state"
        assert body["details"] == {"transfer_id": created["id"], "current": "pending", "required": "approved"}

    def test_reject_requires_reason(self, client, db_session, admin, bandung, product, headers):
        created = client.post(
            "/api/transfers",
            json={"from_branch_id": bandung.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(admin),
        ).get_json()

        response = client.post(f"/api/transfers/{created['id']}/reject", json={}, headers=headers(admin))
        assert response.status_code == 400

        response = client.post(
            f"/api/transfers/{created['id']}/reject",
            json={"rejection_reason": "Stock reserved for promo"},
            headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.get_json()["status"] == "rejected"

    def test_cashier_cannot_create(self, client, db_session, cashier, bandung, product, headers):
        response = client.post(
            "/api/transfers",
            json={"from_branch_id": bandung.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(cashier),
        )
        assert response.status_code == 403

    def test_delete_and_not_found(self, client, db_session, admin, bandung, product, headers):
        created = client.post(
            "/api/transfers",
            json={"from_branch_id": bandung.id, "items": [{"product_id": product.id, "quantity": 1}], "draft": True},
            headers=headers(admin),
        ).get_json()
        assert created["status"] == "draft"

        response = client.delete(f"/api/transfers/{created['id']}", headers=headers(admin))
        assert response.get_json() == {"deleted": True, "id": created["id"]}

        response = client.get(f"/api/transfers/{created['id']}", headers=headers(admin))
        assert response.status_code == 404


class TestSaleRoutes:

    def test_sale_defaults_to_cashier_branch(self, client, db_session, cashier, admin, jakarta, product, headers, stock_up):
        stock_up(jakarta, product, 10, admin)

        response = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 4}], "payment_method": "cash"},
            headers=headers(cashier),
        )

        assert response.status_code == 201
        sale = response.get_json()
        assert sale["branch_id"] == jakarta.id
        assert sale["grand_total"] == "40000.00"
        assert re.match(NUMBER_RE.format(tag="INV", code="JKT"), sale["invoice_number"])
        assert stock_service.quantity_of(jakarta.id, product.id) == 6

    def test_oversell_is_conflict(self, client, db_session, cashier, admin, jakarta, product, headers, stock_up):
        stock_up(jakarta, product, 10, admin)

        response = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 20}]},
            headers=headers(cashier),
        )

        assert response.status_code == 409
        assert response.get_json()["details"]["sku"] == "SKU-001"
        assert stock_service.quantity_of(jakarta.id, product.id) == 10

    def test_cashier_cannot_cancel(self, client, db_session, cashier, admin, jakarta, product, headers, stock_up):
        stock_up(jakarta, product, 10, admin)
        sale = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 1}]},
            headers=headers(cashier),
        ).get_json()

        response = client.delete(f"/api/sales/{sale['id']}", headers=headers(cashier))
        assert response.status_code == 403

        response = client.delete(f"/api/sales/{sale['id']}", headers=headers(admin))
        assert response.status_code == 200
        assert response.get_json()["invoice_number"] == sale["invoice_number"]
        assert stock_service.quantity_of(jakarta.id, product.id) == 10


class TestCatalogRoutes:

    def test_create_product_opens_stock(self, client, db_session, admin, jakarta, bandung, category, headers):
        response = client.post(
            "/api/products",
            json={"sku": "SKU-900", "name": "Cocoa", "category_id": category.id, "price": "7500", "initial_quantity": 2},
            headers=headers(admin),
        )

        assert response.status_code == 201
        product_id = response.get_json()["id"]
        assert stock_service.quantity_of(jakarta.id, product_id) == 2
        assert stock_service.quantity_of(bandung.id, product_id) == 2

    @pytest.mark.parametrize("path,payload", [
        ("/api/branches", {"code": "SBY", "name": "Surabaya"}),
        ("/api/categories", {"name": "Snacks"}),
    ])
    def test_branch_admin_cannot_manage_structure(self, client, db_session, branch_admin, headers, path, payload):
        response = client.post(path, json=payload, headers=headers(branch_admin))
        assert response.status_code == 403


class TestUserRoutes:

    def test_update_and_deactivate(self, client, db_session, admin, cashier, headers):
        response = client.patch(f"/api/users/{cashier.id}", json={"role": "branch_admin"}, headers=headers(admin))
        assert response.status_code == 200
        assert response.get_json()["role"] == "branch_admin"

        response = client.delete(f"/api/users/{cashier.id}", headers=headers(admin))
        assert response.status_code == 200
        assert response.get_json()["is_active"] is False

        # A deactivated user can no longer act
        assert client.get("/api/stocks", headers=headers(cashier)).status_code == 401

    def test_cannot_deactivate_self(self, client, db_session, admin, headers):
        response = client.delete(f"/api/users/{admin.id}", headers=headers(admin))
        assert response.status_code == 400

    def test_branch_admin_cannot_manage_users(self, client, db_session, branch_admin, cashier, headers):
        response = client.patch(f"/api/users/{cashier.id}", json={"name": "X"}, headers=headers(branch_admin))
        assert response.status_code == 403
