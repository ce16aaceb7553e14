"""
Integration Tests: offer administration, code validation and store settings
"""

from decimal import Decimal

API = "/api/v1"


def money(value) -> Decimal:
    return Decimal(str(value))


class TestOfferAdmin:

    def test_create_list_update_delete(self, client, admin_headers):
        resp = client.post(
            f"{API}/offers",
            json={
                "code": " spring15 ",
                "description": "Spring sale",
                "discount_type": "percentage",
                "discount_value": "15",
                "min_order_amount": "40",
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        offer = resp.json()
        assert offer["code"] == "SPRING15"
        assert offer["used_count"] == 0

        listed = client.get(f"{API}/offers", headers=admin_headers).json()
        assert [o["id"] for o in listed] == [offer["id"]]

        resp = client.patch(
            f"{API}/offers/{offer['id']}",
            json={"discount_value": "20", "show_in_cart": False},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert money(resp.json()["discount_value"]) == Decimal("20")
        assert resp.json()["show_in_cart"] is False

        assert client.delete(f"{API}/offers/{offer['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"{API}/offers/{offer['id']}", headers=admin_headers).status_code == 404

    def test_manual_offer_needs_code(self, client, admin_headers):
        resp = client.post(
            f"{API}/offers",
            json={"description": "No code", "discount_value": "5"},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_percentage_over_100_rejected(self, client, admin_headers):
        resp = client.post(
            f"{API}/offers",
            json={"code": "TOO", "description": "Too much", "discount_value": "120"},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_update_rechecks_merged_offer(self, client, admin_headers, make_offer):
        offer = make_offer(code="FIXED", discount_type="fixed", discount_value=Decimal("150"))

        resp = client.patch(
            f"{API}/offers/{offer.id}",
            json={"discount_type": "percentage"},
            headers=admin_headers,
        )

        assert resp.status_code == 422

    def test_duplicate_code_rejected(self, client, admin_headers, make_offer):
        make_offer(code="TAKEN")
        resp = client.post(
            f"{API}/offers",
            json={"code": "taken", "description": "Dup", "discount_value": "5"},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Offer code already exists"

    def test_customers_cannot_manage_offers(self, client, customer_headers):
        assert client.get(f"{API}/offers", headers=customer_headers).status_code == 403
        assert client.get(f"{API}/offers").status_code == 401


class TestValidateCode:

    def test_valid_code(self, client, make_offer):
        make_offer(code="SAVE10", min_order_amount=Decimal("100"))

        resp = client.post(f"{API}/offers/validate", json={"code": "save10", "amount": "150"})

        assert resp.status_code == 200
        assert resp.json()["valid"] is True
        assert money(resp.json()["discount_amount"]) == Decimal("15.00")

    def test_new_users_code_rejected_for_guest(self, client, make_offer):
        make_offer(code="WELCOME", applicable_to="new_users")

        resp = client.post(f"{API}/offers/validate", json={"code": "WELCOME", "amount": "50"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Offer is only valid for new users"

    def test_new_users_code_for_first_time_buyer(self, client, make_offer, customer_headers):
        make_offer(code="WELCOME", applicable_to="new_users")

        resp = client.post(
            f"{API}/offers/validate",
            json={"code": "WELCOME", "amount": "50"},
            headers=customer_headers,
        )

        assert resp.status_code == 200


class TestSettings:

    def test_unconfigured_defaults(self, client):
        body = client.get(f"{API}/settings").json()

        assert body["configured"] is False
        assert money(body["vat_rate"]) == Decimal("20")
        assert len(body["delivery_tiers"]) == 3

    def test_admin_replaces_settings(self, client, admin_headers):
        resp = client.put(
            f"{API}/settings",
            json={
                "delivery_tiers": [
                    {"min_amount": "30", "max_amount": None, "fee": "2.50"},
                    {"min_amount": "0", "max_amount": "29.99", "fee": "4.00"},
                ],
                "free_delivery_enabled": True,
                "free_delivery_amount": "75",
                "vat_enabled": True,
                "vat_rate": "5",
            },
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["configured"] is True
        assert [money(t["min_amount"]) for t in body["delivery_tiers"]] == [Decimal("0"), Decimal("30")]

        info = client.get(f"{API}/settings/delivery-info", params={"amount": "40"}).json()
        assert money(info["current_fee"]) == Decimal("2.50")
        assert money(info["amount_to_free_delivery"]) == Decimal("35.00")

    def test_overlapping_tiers_rejected(self, client, admin_headers):
        resp = client.put(
            f"{API}/settings",
            json={
                "delivery_tiers": [
                    {"min_amount": "0", "max_amount": "50", "fee": "4.00"},
                    {"min_amount": "40", "max_amount": None, "fee": "2.00"},
                ],
            },
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_settings_update_requires_admin(self, client, customer_headers):
        resp = client.put(f"{API}/settings", json={}, headers=customer_headers)
        assert resp.status_code == 403
