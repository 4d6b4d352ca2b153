"""Tests for product reviews, in-app notifications and favourites."""

from conftest import API, headers_for
from core.extensions import db
from models.orderModels import Order
from services.notifications import create_notification
from services.orders import transition


class TestReviews:
    def test_create_review(self, client, customer_headers, product):
        response = client.post(f"{API}/products/{product.id}/reviews",
                               json={"rating": 5, "title": "Superbe", "comment": "Tissu de qualité"},
                               headers=customer_headers)
        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["rating"] == 5
        assert data["isVerified"] is False
        assert data["user"]["firstName"] == "Awa"

    def test_one_review_per_product(self, client, customer_headers, product):
        client.post(f"{API}/products/{product.id}/reviews", json={"rating": 4}, headers=customer_headers)
        response = client.post(f"{API}/products/{product.id}/reviews", json={"rating": 2},
                               headers=customer_headers)
        assert response.status_code == 409

    def test_rating_bounds(self, client, customer_headers, product):
        for rating in (0, 6, "5", 4.5):
            response = client.post(f"{API}/products/{product.id}/reviews", json={"rating": rating},
                                   headers=customer_headers)
            assert response.status_code == 400

    def test_verified_after_confirmed_order(self, client, customer_headers, product, place_order):
        order = db.session.get(Order, place_order(product))
        transition(order, "CONFIRMED")
        response = client.post(f"{API}/products/{product.id}/reviews", json={"rating": 4},
                               headers=customer_headers)
        assert response.get_json()["data"]["isVerified"] is True

    def test_pending_order_is_not_a_purchase(self, client, customer_headers, product, place_order):
        place_order(product)
        response = client.post(f"{API}/products/{product.id}/reviews", json={"rating": 4},
                               headers=customer_headers)
        assert response.get_json()["data"]["isVerified"] is False

    def test_missing_product(self, client, customer_headers):
        response = client.post(f"{API}/products/999/reviews", json={"rating": 4}, headers=customer_headers)
        assert response.status_code == 404

    def test_only_author_can_edit(self, client, customer_headers, make_user, product):
        review_id = client.post(f"{API}/products/{product.id}/reviews", json={"rating": 3},
                                headers=customer_headers).get_json()["data"]["id"]
        stranger = headers_for(make_user())
        assert client.put(f"{API}/products/reviews/{review_id}", json={"rating": 1},
                          headers=stranger).status_code == 403
        assert client.delete(f"{API}/products/reviews/{review_id}", headers=stranger).status_code == 403

        response = client.put(f"{API}/products/reviews/{review_id}", json={"rating": 5, "comment": "Mieux"},
                              headers=customer_headers)
        assert response.get_json()["data"]["rating"] == 5
        assert client.delete(f"{API}/products/reviews/{review_id}", headers=customer_headers).status_code == 200
        assert client.get(f"{API}/products/reviews/{review_id}").status_code == 404

    def test_helpful_counter(self, client, customer_headers, make_user, product):
        review_id = client.post(f"{API}/products/{product.id}/reviews", json={"rating": 3},
                                headers=customer_headers).get_json()["data"]["id"]
        voter = headers_for(make_user())
        client.post(f"{API}/products/reviews/{review_id}/helpful", headers=voter)
        response = client.post(f"{API}/products/reviews/{review_id}/helpful", headers=voter)
        assert response.get_json()["data"]["helpfulCount"] == 2

    def test_list_and_stats(self, client, make_user, product):
        for rating in (5, 5, 2):
            author = headers_for(make_user())
            client.post(f"{API}/products/{product.id}/reviews", json={"rating": rating}, headers=author)

        listing = client.get(f"{API}/products/{product.id}/reviews?limit=2").get_json()["data"]
        assert len(listing["reviews"]) == 2
        assert listing["pagination"]["total"] == 3
        assert listing["pagination"]["totalPages"] == 2

        stats = client.get(f"{API}/products/{product.id}/reviews/stats").get_json()["data"]
        assert stats["totalReviews"] == 3
        assert stats["averageRating"] == 4.0
        assert stats["ratingDistribution"]["5"] == 2


class TestNotifications:
    def test_list_with_unread_count(self, client, customer, customer_headers):
        create_notification(customer.id, "SYSTEM", "Bienvenue", "Bienvenue sur la plateforme")
        second = create_notification(customer.id, "PROMOTION", "Soldes", "-20% sur la mode")
        second.is_read = True
        db.session.commit()

        data = client.get(f"{API}/notifications", headers=customer_headers).get_json()["data"]
        assert len(data["notifications"]) == 2
        assert data["unreadCount"] == 1

        unread = client.get(f"{API}/notifications?unreadOnly=true", headers=customer_headers).get_json()["data"]
        assert [n["title"] for n in unread["notifications"]] == ["Bienvenue"]

    def test_mark_as_read(self, client, customer, customer_headers):
        notification = create_notification(customer.id, "SYSTEM", "Info", "Texte")
        response = client.put(f"{API}/notifications/{notification.id}/read", headers=customer_headers)
        assert response.get_json()["message"] == "Notification marquée comme lue"
        assert response.get_json()["data"]["readAt"] is not None

        response = client.put(f"{API}/notifications/{notification.id}/read", headers=customer_headers)
        assert response.status_code == 200
        assert response.get_json()["message"] == "Notification déjà lue"

    def test_foreign_notification_not_found(self, client, make_user, customer_headers):
        other = make_user()
        notification = create_notification(other.id, "SYSTEM", "Privé", "Texte")
        assert client.get(f"{API}/notifications/{notification.id}", headers=customer_headers).status_code == 404
        assert client.put(f"{API}/notifications/{notification.id}/read",
                          headers=customer_headers).status_code == 404

    def test_detail_includes_order(self, client, customer, customer_headers, product, place_order):
        order = db.session.get(Order, place_order(product, quantity=2))
        transition(order, "CONFIRMED")
        notification_id = client.get(f"{API}/notifications", headers=customer_headers) \
            .get_json()["data"]["notifications"][0]["id"]

        data = client.get(f"{API}/notifications/{notification_id}", headers=customer_headers).get_json()["data"]
        assert data["order"]["orderNumber"] == order.order_number
        assert data["order"]["items"][0]["quantity"] == 2
        assert data["order"]["total"] == 20000


class TestFavourites:
    def test_add_list_remove(self, client, customer_headers, promoted_product):
        response = client.post(f"{API}/favorites", json={"productId": promoted_product.id},
                               headers=customer_headers)
        assert response.status_code == 201

        data = client.get(f"{API}/favorites", headers=customer_headers).get_json()["data"]
        assert data["pagination"]["total"] == 1
        assert data["favorites"][0]["product"]["finalPrice"] == 8000

        response = client.delete(f"{API}/favorites/{promoted_product.id}", headers=customer_headers)
        assert response.status_code == 200
        response = client.delete(f"{API}/favorites/{promoted_product.id}", headers=customer_headers)
        assert response.status_code == 404

    def test_duplicate_favourite(self, client, customer_headers, product):
        client.post(f"{API}/favorites", json={"productId": product.id}, headers=customer_headers)
        response = client.post(f"{API}/favorites", json={"productId": product.id}, headers=customer_headers)
        assert response.status_code == 409

    def test_unknown_product(self, client, customer_headers):
        response = client.post(f"{API}/favorites", json={"productId": 999}, headers=customer_headers)
        assert response.status_code == 404

    def test_sellers_have_no_favourites(self, client, seller_headers):
        assert client.get(f"{API}/favorites", headers=seller_headers).status_code == 403
