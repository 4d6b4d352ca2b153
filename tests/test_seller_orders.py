"""Tests for the seller side of orders: lifecycle actions, messages and invoices."""

from conftest import API, headers_for
from core.extensions import db, mail
from models.notificationModels import Notification
from models.orderModels import Order, OrderMessage
from services.invoice import format_amount

ORDERS = f"{API}/seller/orders"


class TestSellerOrderAccess:
    def test_lists_only_orders_with_own_lines(self, client, seller_headers, other_seller, make_product,
                                              place_order):
        mine = make_product(price="4000")
        theirs = make_product(owner=other_seller)
        place_order(mine, quantity=2)
        place_order(theirs)

        data = client.get(ORDERS, headers=seller_headers).get_json()["data"]
        assert data["pagination"]["total"] == 1
        order = data["orders"][0]
        assert order["sellerTotal"] == 8000
        assert [item["productId"] for item in order["items"]] == [mine.id]
        assert order["customer"]["email"] == "client@example.com"

    def test_mixed_order_shows_only_seller_lines(self, client, customer_headers, seller_headers, other_seller,
                                                 address, make_product, add_to_cart):
        mine = make_product(price="4000")
        theirs = make_product(price="6000", owner=other_seller)
        add_to_cart(mine)
        add_to_cart(theirs)
        order_id = client.post(f"{API}/orders", json={"shippingAddressId": address.id},
                               headers=customer_headers).get_json()["data"]["id"]

        data = client.get(f"{ORDERS}/{order_id}", headers=seller_headers).get_json()["data"]
        assert data["total"] == 10000
        assert data["sellerTotal"] == 4000
        assert len(data["items"]) == 1

    def test_foreign_seller_forbidden(self, client, other_seller, product, place_order):
        order_id = place_order(product)
        response = client.get(f"{ORDERS}/{order_id}", headers=headers_for(other_seller))
        assert response.status_code == 403

    def test_missing_order(self, client, seller_headers):
        assert client.get(f"{ORDERS}/999", headers=seller_headers).status_code == 404

    def test_customer_forbidden(self, client, customer_headers):
        assert client.get(ORDERS, headers=customer_headers).status_code == 403

    def test_status_shortcuts(self, client, seller_headers, product, place_order):
        first = place_order(product)
        second = place_order(product)
        client.post(f"{ORDERS}/{second}/confirm", headers=seller_headers)

        pending = client.get(f"{ORDERS}/pending", headers=seller_headers).get_json()["data"]["orders"]
        confirmed = client.get(f"{ORDERS}/confirmed", headers=seller_headers).get_json()["data"]["orders"]
        returned = client.get(f"{ORDERS}/returned", headers=seller_headers).get_json()["data"]["orders"]
        assert [o["id"] for o in pending] == [first]
        assert [o["id"] for o in confirmed] == [second]
        assert returned == []

    def test_order_number_filter(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        place_order(product)
        number = db.session.get(Order, order_id).order_number
        data = client.get(f"{ORDERS}?orderNumber={number}", headers=seller_headers).get_json()["data"]
        assert [o["id"] for o in data["orders"]] == [order_id]

    def test_customer_info(self, client, seller_headers, customer, product, place_order):
        order_id = place_order(product)
        place_order(product)
        data = client.get(f"{ORDERS}/{order_id}/customer-info", headers=seller_headers).get_json()["data"]
        assert data["customer"]["id"] == customer.id
        assert data["ordersWithSeller"] == 2
        assert data["shippingAddress"]["city"] == "Dakar"


class TestSellerLifecycle:
    def test_full_flow_notifies_customer(self, client, seller_headers, customer, product, place_order):
        order_id = place_order(product)

        assert client.post(f"{ORDERS}/{order_id}/confirm", headers=seller_headers).status_code == 200
        assert client.post(f"{ORDERS}/{order_id}/process", headers=seller_headers).status_code == 200
        response = client.post(f"{ORDERS}/{order_id}/ship",
                               json={"trackingNumber": "DHL123", "carrier": "DHL"}, headers=seller_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["tracking"]["trackingNumber"] == "DHL123"
        assert client.post(f"{ORDERS}/{order_id}/deliver", headers=seller_headers).status_code == 200
        response = client.post(f"{ORDERS}/{order_id}/refund", json={"reason": "Article abîmé"},
                               headers=seller_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["refundReason"] == "Article abîmé"

        titles = [n.title for n in Notification.query.filter_by(user_id=customer.id).order_by(Notification.id)]
        assert titles == ["Commande confirmée", "Commande en préparation", "Commande expédiée",
                          "Commande livrée", "Remboursement effectué"]
        shipped = Notification.query.filter_by(user_id=customer.id, title="Commande expédiée").one()
        assert "DHL123" in shipped.message

    def test_skipping_a_step_is_rejected(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        response = client.post(f"{ORDERS}/{order_id}/ship", json={}, headers=seller_headers)
        assert response.status_code == 400
        assert db.session.get(Order, order_id).status == "PENDING"

    def test_delivered_cannot_go_back(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        for action in ("confirm", "process", "ship", "deliver"):
            client.post(f"{ORDERS}/{order_id}/{action}", json={}, headers=seller_headers)
        response = client.put(f"{ORDERS}/{order_id}/status", json={"status": "PROCESSING"},
                              headers=seller_headers)
        assert response.status_code == 400
        assert db.session.get(Order, order_id).status == "DELIVERED"

    def test_refund_requires_delivery(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        response = client.post(f"{ORDERS}/{order_id}/refund", json={}, headers=seller_headers)
        assert response.status_code == 400

    def test_seller_cancel_uses_default_reason(self, client, seller_headers, make_product, place_order):
        product = make_product(quantity=10)
        order_id = place_order(product, quantity=2)
        response = client.post(f"{ORDERS}/{order_id}/cancel", json={}, headers=seller_headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "CANCELLED"
        assert data["cancelledReason"] == "Commande annulée"
        assert data["cancelledAt"] is not None
        assert product.stock.reserved_quantity == 0

    def test_unknown_status(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        response = client.put(f"{ORDERS}/{order_id}/status", json={"status": "LOST"}, headers=seller_headers)
        assert response.status_code == 400

    def test_tracking_update(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        response = client.put(f"{ORDERS}/{order_id}/tracking", json={}, headers=seller_headers)
        assert response.status_code == 400
        response = client.put(f"{ORDERS}/{order_id}/tracking",
                              json={"trackingUrl": "https://track.example/1"}, headers=seller_headers)
        assert response.get_json()["data"]["tracking"]["trackingUrl"] == "https://track.example/1"


class TestSellerMessages:
    def test_message_notifies_customer(self, client, seller_headers, customer, product, place_order):
        order_id = place_order(product)
        response = client.post(f"{ORDERS}/{order_id}/messages", json={"message": "Colis prêt demain"},
                               headers=seller_headers)
        assert response.status_code == 201
        assert response.get_json()["data"]["senderRole"] == "SELLER"

        notification = Notification.query.filter_by(user_id=customer.id, type="ORDER_MESSAGE").one()
        assert notification.title == "Nouveau message du vendeur"
        assert notification.data["orderId"] == order_id

    def test_customer_message_is_unread_for_seller(self, client, seller_headers, customer_headers, product,
                                                   place_order):
        order_id = place_order(product)
        client.post(f"{API}/orders/{order_id}/messages", json={"message": "Bonjour"}, headers=customer_headers)

        inbox = client.get(f"{ORDERS}/messages/all", headers=seller_headers).get_json()["data"]
        assert inbox["unreadCount"] == 1

        data = client.get(f"{ORDERS}/{order_id}/messages", headers=seller_headers).get_json()["data"]
        assert data["unreadCount"] == 1
        assert OrderMessage.query.one().is_read is True

        inbox = client.get(f"{ORDERS}/messages/all", headers=seller_headers).get_json()["data"]
        assert inbox["unreadCount"] == 0


class TestInvoices:
    def test_download_invoice(self, client, seller_headers, product, place_order):
        order_id = place_order(product)
        number = db.session.get(Order, order_id).order_number
        response = client.get(f"{ORDERS}/{order_id}/invoice", headers=seller_headers)
        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")
        assert f"facture-{number}.pdf" in response.headers["Content-Disposition"]

    def test_send_invoice_by_mail(self, client, seller_headers, customer, product, place_order):
        order_id = place_order(product)
        number = db.session.get(Order, order_id).order_number
        with mail.record_messages() as outbox:
            response = client.post(f"{ORDERS}/{order_id}/invoice/send", headers=seller_headers)
        assert response.status_code == 200
        assert len(outbox) == 1
        assert outbox[0].recipients == [customer.email]
        attachment = outbox[0].attachments[0]
        assert attachment.filename == f"facture-{number}.pdf"
        assert attachment.data.startswith(b"%PDF")

    def test_format_amount(self):
        assert format_amount(12500) == "12 500 XOF"
