"""
Action count tests.

Verifies the per-role counts behind GET /api/stocks/notifications:
- super_admin sees transfers awaiting approval
- branch_admin sees transfers to send / receive and low stock at their branch
- cashiers see nothing
"""

from branchstock.services import notification_service, stock_service, transfer_service


def _request(product, from_branch, to_branch, actor, quantity=1):
    return transfer_service.create_transfer(
        "request", from_branch.id, to_branch.id,
        [{"product_id": product.id, "quantity_requested": quantity}], actor.id,
    )


class TestActionCounts:

    def test_super_admin_counts_pending_transfers(self, db_session, admin, jakarta, bandung, product):
        _request(product, bandung, jakarta, admin)
        _request(product, jakarta, bandung, admin)
        approved = _request(product, bandung, jakarta, admin)
        transfer_service.approve_transfer(approved.id, admin.id)
        _request(product, bandung, jakarta, admin)
        draft = transfer_service.create_transfer(
            "request", bandung.id, jakarta.id, [{"product_id": product.id, "quantity": 1}], admin.id, as_draft=True,
        )
        assert draft.status == "draft"

        assert notification_service.action_counts(admin) == {"transfers": 3, "low_stock": 0, "total": 3}

    def test_branch_admin_counts_work_at_their_branch(
        self, db_session, admin, branch_admin, jakarta, bandung, product, other_product, stock_up
    ):
        stock_up(bandung, product, 10, admin)
        stock_up(jakarta, product, 10, admin)

        # Approved out of Bandung: waiting to be sent
        outbound = _request(product, bandung, jakarta, admin)
        transfer_service.approve_transfer(outbound.id, admin.id)

        # Sent into Bandung: waiting to be received
        inbound = _request(product, jakarta, bandung, admin)
        transfer_service.approve_transfer(inbound.id, admin.id)
        transfer_service.send_transfer(inbound.id, admin.id)

        # Still pending, and approved elsewhere: not Bandung's move
        _request(product, bandung, jakarta, admin)

        # Bandung stock: product at 10 (min 5), other_product at 0 (min 5)
        stock_service.set_min_stock(bandung.id, other_product.id, 5)

        counts = notification_service.action_counts(branch_admin)

        assert counts == {"transfers": 2, "low_stock": 1, "total": 3}

    def test_cashier_gets_nothing(self, db_session, cashier, admin, jakarta, bandung, product):
        _request(product, bandung, jakarta, admin)
        assert notification_service.action_counts(cashier) == {"transfers": 0, "low_stock": 0, "total": 0}

    def test_route(self, client, db_session, admin, jakarta, bandung, product, headers):
        _request(product, bandung, jakarta, admin)

        response = client.get("/api/stocks/notifications", headers=headers(admin))

        assert response.status_code == 200
        assert response.get_json() == {"transfers": 1, "low_stock": 0, "total": 1}

    def test_route_requires_actor(self, client, db_session):
        assert client.get("/api/stocks/notifications").status_code == 401
