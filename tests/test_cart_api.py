"""
Integration Tests: cart, discount and checkout endpoints

Runs the FastAPI app against an in-memory SQLite database.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlmodel import Session, select

from cart_pricing.models.cart import Cart
from cart_pricing.models.offer import Offer
from cart_pricing.models.order import Order
from cart_pricing.routers import cart as cart_router

API = "/api/v1"


def add_item(client, session_id, product, material="Brass", quantity=1, headers=None, **extra):
    payload = {
        "product_id": str(product.id),
        "material_name": material,
        "quantity": quantity,
        "include_packaging": False,
    }
    payload.update(extra)
    return client.post(f"{API}/cart/{session_id}/items", json=payload, headers=headers or {})


def money(value) -> Decimal:
    return Decimal(str(value))


class TestPricingPreview:

    def test_preview_full_configuration(self, client, product):
        resp = client.post(
            f"{API}/pricing/preview",
            json={
                "product_id": str(product.id),
                "material_name": "Brass",
                "size_mm": 300,
                "finish_id": str(product.finishes[0].finish_id),
                "quantity": 2,
                "include_packaging": True,
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert money(body["unit_price"]) == Decimal("117.00")
        assert money(body["total_amount"]) == Decimal("234.00")
        assert money(body["breakdown"]["size"]) == Decimal("10")

    def test_unknown_product(self, client):
        resp = client.post(
            f"{API}/pricing/preview",
            json={"product_id": str(uuid.uuid4()), "material_name": "Brass"},
        )
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Product not found"

    def test_invalid_selection(self, client, product):
        resp = client.post(
            f"{API}/pricing/preview",
            json={"product_id": str(product.id), "material_name": "Steel", "size_mm": 300},
        )
        assert resp.status_code == 400

    def test_invalid_quantity(self, client, product):
        resp = client.post(
            f"{API}/pricing/preview",
            json={"product_id": str(product.id), "material_name": "Brass", "quantity": 0},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Quantity must be at least 1"


class TestCartItems:

    def test_first_add_creates_cart(self, client, product):
        resp = add_item(client, "sess-a", product, quantity=2)

        assert resp.status_code == 200
        cart = resp.json()
        assert cart["session_id"] == "sess-a"
        assert cart["total_quantity"] == 2
        assert money(cart["subtotal"]) == Decimal("200.00")
        assert cart["items"][0]["material_name"] == "Brass"
        assert cart["discount"]["application_method"] == "none"

    def test_get_unknown_cart(self, client):
        assert client.get(f"{API}/cart/nope").status_code == 404

    def test_update_quantity_reuses_stored_unit_price(self, client, product, session):
        item_id = add_item(client, "sess-b", product).json()["items"][0]["id"]

        # Catalog price change after the item was added
        brass = next(m for m in product.materials if m.name == "Brass")
        brass.base_price = Decimal("999.00")
        session.add(brass)
        session.commit()

        resp = client.patch(f"{API}/cart/sess-b/items/{item_id}", json={"quantity": 3})

        assert resp.status_code == 200
        assert money(resp.json()["subtotal"]) == Decimal("300.00")

    def test_update_quantity_below_one(self, client, product):
        item_id = add_item(client, "sess-c", product).json()["items"][0]["id"]
        resp = client.patch(f"{API}/cart/sess-c/items/{item_id}", json={"quantity": 0})
        assert resp.status_code == 400

    def test_unknown_item(self, client, product):
        add_item(client, "sess-d", product)
        resp = client.delete(f"{API}/cart/sess-d/items/{uuid.uuid4()}")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Item not found in cart"

    def test_discount_failure_does_not_block_add(self, client, product, make_offer, monkeypatch):
        make_offer(description="Auto 10%", auto_apply=True)

        def broken(session):
            raise RuntimeError("offer store unavailable")

        monkeypatch.setattr(cart_router.offer_repo, "list_active_auto_offers", broken)

        resp = add_item(client, "sess-re", product)

        assert resp.status_code == 200
        cart = resp.json()
        assert len(cart["items"]) == 1
        assert money(cart["subtotal"]) == Decimal("100.00")
        assert cart["discount"]["offer_id"] is None
        assert money(cart["discount"]["amount"]) == Decimal("0")

    def test_remove_and_clear(self, client, product):
        add_item(client, "sess-e", product)
        cart = add_item(client, "sess-e", product, material="Steel").json()
        assert money(cart["subtotal"]) == Decimal("150.00")

        steel_id = next(i["id"] for i in cart["items"] if i["material_name"] == "Steel")
        cart = client.delete(f"{API}/cart/sess-e/items/{steel_id}").json()
        assert money(cart["subtotal"]) == Decimal("100.00")

        cart = client.delete(f"{API}/cart/sess-e").json()
        assert cart["items"] == []
        assert money(cart["subtotal"]) == Decimal("0")


class TestDiscountCodes:

    def test_code_follows_subtotal(self, client, product, make_offer):
        """150 with SAVE10 (10%, min 100) -> 15.00; dropping to 50 clears it."""
        make_offer(code="SAVE10", min_order_amount=Decimal("100"))
        add_item(client, "sess-f", product)
        cart = add_item(client, "sess-f", product, material="Steel").json()

        resp = client.post(f"{API}/cart/sess-f/discount", json={"code": " save10 "})

        assert resp.status_code == 200
        body = resp.json()
        assert not body["better_offer_applied"]
        assert body["cart"]["discount"]["code"] == "SAVE10"
        assert body["cart"]["discount"]["application_method"] == "manual"
        assert body["cart"]["discount"]["manual_locked"] is True
        assert money(body["cart"]["discount"]["amount"]) == Decimal("15.00")
        assert money(body["cart"]["total"]) == Decimal("135.00")

        brass_id = next(i["id"] for i in cart["items"] if i["material_name"] == "Brass")
        cart = client.delete(f"{API}/cart/sess-f/items/{brass_id}").json()

        assert money(cart["subtotal"]) == Decimal("50.00")
        assert cart["discount"]["code"] is None
        assert cart["discount"]["application_method"] == "none"
        assert money(cart["discount"]["amount"]) == Decimal("0")

    def test_unknown_code(self, client, product):
        add_item(client, "sess-g", product)
        resp = client.post(f"{API}/cart/sess-g/discount", json={"code": "NOPE"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Invalid discount code"

    def test_below_minimum(self, client, product, make_offer):
        make_offer(code="BIG", min_order_amount=Decimal("500"))
        add_item(client, "sess-h", product)

        resp = client.post(f"{API}/cart/sess-h/discount", json={"code": "BIG"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Minimum order amount of £500.00 is required for this offer"

    def test_expired_code(self, client, product, make_offer):
        make_offer(code="OLD", is_active=False)
        add_item(client, "sess-i", product)

        resp = client.post(f"{API}/cart/sess-i/discount", json={"code": "OLD"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Offer is not active"

    def test_second_manual_code_conflicts(self, client, product, make_offer):
        make_offer(code="SAVE10")
        make_offer(code="OTHER", discount_type="fixed", discount_value=Decimal("3"))
        add_item(client, "sess-j", product)
        client.post(f"{API}/cart/sess-j/discount", json={"code": "SAVE10"})

        resp = client.post(f"{API}/cart/sess-j/discount", json={"code": "OTHER"})

        assert resp.status_code == 409

    def test_reapplying_same_code_is_idempotent(self, client, product, make_offer, engine):
        offer = make_offer(code="SAVE10")
        add_item(client, "sess-k", product)

        first = client.post(f"{API}/cart/sess-k/discount", json={"code": "SAVE10"}).json()
        second = client.post(f"{API}/cart/sess-k/discount", json={"code": "SAVE10"}).json()

        assert first["cart"]["discount"] == second["cart"]["discount"]
        with Session(engine) as s:
            assert s.get(Offer, offer.id).manual_apply_count == 1

    def test_better_auto_offer_wins(self, client, product, make_offer, engine):
        """Manual 5.00 vs automatic 12.00 on a 150 cart."""
        make_offer(code="FIVE", discount_type="fixed", discount_value=Decimal("5"))
        auto = make_offer(
            description="Summer sale",
            display_name="Summer Sale 8%",
            discount_value=Decimal("8"),
            auto_apply=True,
        )
        add_item(client, "sess-l", product)
        add_item(client, "sess-l", product, material="Steel")

        resp = client.post(f"{API}/cart/sess-l/discount", json={"code": "FIVE"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["better_offer_applied"] is True
        assert "Summer Sale 8%" in body["message"]
        discount = body["cart"]["discount"]
        assert discount["application_method"] == "auto"
        assert discount["is_auto_applied"] is True
        assert discount["label"] == "Summer Sale 8%"
        assert money(discount["amount"]) == Decimal("12.00")

        with Session(engine) as s:
            stored = s.get(Offer, auto.id)
            assert stored.auto_apply_count == 1

    def test_remove_code_lets_auto_offer_take_over(self, client, product, make_offer):
        make_offer(code="SAVE10")
        auto = make_offer(description="Small auto", discount_type="fixed", discount_value=Decimal("2"), auto_apply=True)
        add_item(client, "sess-m", product)
        client.post(f"{API}/cart/sess-m/discount", json={"code": "SAVE10"})

        cart = client.delete(f"{API}/cart/sess-m/discount").json()

        assert cart["discount"]["offer_id"] == str(auto.id)
        assert cart["discount"]["application_method"] == "auto"
        assert cart["discount"]["manual_locked"] is False

    def test_unlock_lets_better_auto_offer_compete(self, client, product, make_offer):
        make_offer(code="FIVE", discount_type="fixed", discount_value=Decimal("5"))
        add_item(client, "sess-n", product)
        client.post(f"{API}/cart/sess-n/discount", json={"code": "FIVE"})
        # Auto offer appears after the code was locked in
        auto = make_offer(description="Flash sale", discount_value=Decimal("20"), auto_apply=True)

        locked = add_item(client, "sess-n", product, material="Steel").json()
        assert locked["discount"]["code"] == "FIVE"

        cart = client.post(f"{API}/cart/sess-n/discount/unlock").json()

        assert cart["discount"]["offer_id"] == str(auto.id)
        assert money(cart["discount"]["amount"]) == Decimal("30.00")

    def test_near_miss_offers(self, client, product, make_offer):
        make_offer(description="Spend 200", min_order_amount=Decimal("200"), auto_apply=True)
        add_item(client, "sess-o", product)
        add_item(client, "sess-o", product, material="Steel")

        resp = client.get(f"{API}/cart/sess-o/near-miss-offers")

        assert resp.status_code == 200
        [near_miss] = resp.json()
        assert money(near_miss["gap_amount"]) == Decimal("50.00")
        assert money(near_miss["potential_discount"]) == Decimal("20.00")

    def test_new_user_offer_after_login(self, client, product, make_offer, customer_headers):
        welcome = make_offer(
            description="Welcome",
            discount_type="fixed",
            discount_value=Decimal("10"),
            applicable_to="new_users",
            auto_apply=True,
        )
        guest_cart = add_item(client, "sess-p", product).json()
        assert guest_cart["discount"]["offer_id"] is None

        cart = client.post(f"{API}/cart/sess-p/link", headers=customer_headers).json()

        assert cart["user_id"] is not None
        assert cart["discount"]["offer_id"] == str(welcome.id)

    def test_expired_offer_dropped_on_read(self, client, product, make_offer, session):
        offer = make_offer(code="SAVE10")
        add_item(client, "sess-ra", product)
        client.post(f"{API}/cart/sess-ra/discount", json={"code": "SAVE10"})

        offer.valid_to = datetime.now(timezone.utc) - timedelta(minutes=1)
        session.add(offer)
        session.commit()

        cart = client.get(f"{API}/cart/sess-ra").json()

        assert cart["discount"]["code"] is None
        assert cart["discount"]["manual_locked"] is False
        assert money(cart["total"]) == Decimal("100.00")
        stored = session.exec(select(Cart).where(Cart.session_id == "sess-ra")).one()
        assert stored.offer_id is None

    def test_deleted_offer_dropped_on_read(self, client, product, make_offer, admin_headers):
        offer = make_offer(code="GONE", discount_type="fixed", discount_value=Decimal("10"))
        add_item(client, "sess-rb", product)
        client.post(f"{API}/cart/sess-rb/discount", json={"code": "GONE"})

        assert client.delete(f"{API}/offers/{offer.id}", headers=admin_headers).status_code == 204

        cart = client.get(f"{API}/cart/sess-rb").json()

        assert cart["discount"]["code"] is None
        assert money(cart["discount"]["amount"]) == Decimal("0")
        assert money(cart["total"]) == Decimal("100.00")

    def test_linked_owner_decides_new_user_offers(
        self, client, product, make_offer, customer_headers, second_customer_headers
    ):
        # The owner already has an order, so a newcomer's token must not unlock the offer
        add_item(client, "sess-rc", product, headers=customer_headers)
        client.post(
            f"{API}/orders/checkout", json={"session_id": "sess-rc"}, headers=customer_headers
        )
        make_offer(
            description="Welcome",
            discount_type="fixed",
            discount_value=Decimal("10"),
            applicable_to="new_users",
            auto_apply=True,
        )
        add_item(client, "sess-rd", product, headers=customer_headers)

        cart = add_item(client, "sess-rd", product, headers=second_customer_headers).json()

        assert cart["discount"]["offer_id"] is None

    def test_link_requires_login(self, client, product):
        add_item(client, "sess-q", product)
        assert client.post(f"{API}/cart/sess-q/link").status_code == 401


class TestCheckout:

    def test_summary(self, client, product, make_offer):
        make_offer(code="SAVE10")
        add_item(client, "sess-r", product, material="Steel")
        client.post(f"{API}/cart/sess-r/discount", json={"code": "SAVE10"})

        resp = client.get(f"{API}/cart/sess-r/summary")

        assert resp.status_code == 200
        body = resp.json()
        assert money(body["subtotal"]) == Decimal("50.00")
        assert money(body["discount"]) == Decimal("5.00")
        assert money(body["shipping"]) == Decimal("5.99")
        assert money(body["total"]) == Decimal("50.99")
        assert money(body["tax"]) == Decimal("8.50")
        assert body["discount_code"] == "SAVE10"

    def test_summary_of_empty_cart(self, client, product):
        cart = add_item(client, "sess-s", product).json()
        client.delete(f"{API}/cart/sess-s/items/{cart['items'][0]['id']}")

        resp = client.get(f"{API}/cart/sess-s/summary")

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cart is empty"

    def test_checkout_creates_order_and_counts_offer(
        self, client, product, make_offer, customer_headers, engine
    ):
        offer = make_offer(code="SAVE10", max_uses=5)
        add_item(client, "sess-t", product)
        add_item(client, "sess-t", product, material="Steel")
        client.post(f"{API}/cart/sess-t/discount", json={"code": "SAVE10"})

        resp = client.post(
            f"{API}/orders/checkout",
            json={"session_id": "sess-t", "note": "Gate code 1234"},
            headers=customer_headers,
        )

        assert resp.status_code == 201
        order = resp.json()
        assert order["order_number"].startswith("GL")
        assert order["status"] == "pending"
        assert order["discount_code"] == "SAVE10"
        assert money(order["subtotal"]) == Decimal("150.00")
        assert money(order["discount_amount"]) == Decimal("15.00")
        assert money(order["shipping_fee"]) == Decimal("0.00")
        assert money(order["total_amount"]) == Decimal("135.00")
        assert money(order["tax_amount"]) == Decimal("22.50")
        assert len(order["items"]) == 2

        with Session(engine) as s:
            assert s.get(Offer, offer.id).used_count == 1
            cart = s.exec(select(Cart).where(Cart.session_id == "sess-t")).one()
            assert cart.items == []
            assert cart.discount_code is None
            assert s.exec(select(Order)).one().user_id == cart.user_id

        mine = client.get(f"{API}/orders/me", headers=customer_headers).json()
        assert [o["id"] for o in mine] == [order["id"]]

        detail = client.get(f"{API}/orders/me/{order['id']}", headers=customer_headers)
        assert detail.status_code == 200
        assert len(detail.json()["items"]) == 2

    def test_exhausted_offer_dropped_at_checkout(
        self, client, product, make_offer, customer_headers, engine, session
    ):
        offer = make_offer(code="LAST", max_uses=1)
        add_item(client, "sess-u", product)
        client.post(f"{API}/cart/sess-u/discount", json={"code": "LAST"})

        # Used up elsewhere before this buyer checks out
        offer.used_count = 1
        session.add(offer)
        session.commit()

        order = client.post(
            f"{API}/orders/checkout",
            json={"session_id": "sess-u"},
            headers=customer_headers,
        ).json()

        assert order["discount_code"] is None
        assert money(order["discount_amount"]) == Decimal("0")
        with Session(engine) as s:
            assert s.get(Offer, offer.id).used_count == 1

    def test_checkout_requires_login(self, client, product):
        add_item(client, "sess-v", product)
        resp = client.post(f"{API}/orders/checkout", json={"session_id": "sess-v"})
        assert resp.status_code == 401

    def test_checkout_unknown_cart(self, client, customer_headers):
        resp = client.post(
            f"{API}/orders/checkout",
            json={"session_id": "missing"},
            headers=customer_headers,
        )
        assert resp.status_code == 404
