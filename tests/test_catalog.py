"""Tests for the public catalog, categories and promotions listings."""

from datetime import datetime, timedelta

from conftest import API, add_promotion
from core.extensions import db
from models.catalogModels import Category
from models.reviewModels import Review


class TestListProducts:
    def test_lists_with_pricing(self, client, promoted_product):
        response = client.get(f"{API}/products")
        assert response.status_code == 200
        body = response.get_json()["data"]
        assert body["meta"] == {"total": 1, "page": 1, "limit": 20, "totalPages": 1}
        card = body["data"][0]
        assert card["price"] == 10000
        assert card["finalPrice"] == 8000
        assert card["discountAmount"] == 2000
        assert card["hasPromotion"] is True

    def test_archived_excluded(self, client, make_product):
        make_product(status="ARCHIVED")
        visible = make_product()
        data = client.get(f"{API}/products").get_json()["data"]["data"]
        assert [p["id"] for p in data] == [visible.id]

    def test_price_filter_and_sort(self, client, make_product):
        cheap = make_product(price="1000")
        mid = make_product(price="5000")
        make_product(price="20000")
        data = client.get(f"{API}/products/filter?minPrice=500&maxPrice=6000&sortBy=price&sortOrder=asc") \
            .get_json()["data"]["data"]
        assert [p["id"] for p in data] == [cheap.id, mid.id]

    def test_limit_is_capped(self, client, product):
        meta = client.get(f"{API}/products?limit=1000").get_json()["data"]["meta"]
        assert meta["limit"] == 100

    def test_tags_and_discount_filters(self, client, make_product):
        tagged = make_product(tags=["wax", "tissu"])
        make_product(tags=["cuir"])
        add_promotion(tagged, value="30")
        data = client.get(f"{API}/products?tags=wax&minDiscountPercentage=25").get_json()["data"]["data"]
        assert [p["id"] for p in data] == [tagged.id]

    def test_invalid_sort(self, client):
        assert client.get(f"{API}/products/sort?sortBy=rating").status_code == 400


class TestProductDetail:
    def test_detail_with_reviews(self, client, product, make_user):
        for rating in (5, 4):
            author = make_user()
            db.session.add(Review(user_id=author.id, product_id=product.id, rating=rating))
        db.session.commit()

        data = client.get(f"{API}/products/{product.id}").get_json()["data"]
        assert data["description"] == "Boubou brodé main"
        assert len(data["reviews"]) == 2
        assert data["ratingStats"]["averageRating"] == 4.5
        assert data["ratingStats"]["ratingDistribution"]["5"] == 1
        assert data["totalSales"] == 0

    def test_archived_is_not_found(self, client, make_product):
        archived = make_product(status="ARCHIVED")
        response = client.get(f"{API}/products/{archived.id}")
        assert response.status_code == 404
        assert response.get_json()["error"] == "NotFound"


class TestCategories:
    def test_categories_with_counts(self, client, category, product):
        child = Category(name="Boubous", slug="boubous", parent_id=category.id)
        db.session.add(child)
        db.session.commit()

        data = client.get(f"{API}/products/categories").get_json()["data"]
        by_slug = {c["slug"]: c for c in data}
        assert by_slug["mode"]["productCount"] == 1
        assert by_slug["mode"]["children"][0]["slug"] == "boubous"
        assert by_slug["boubous"]["parent"]["slug"] == "mode"

        assert client.get(f"{API}/categories").get_json()["data"] == data
        assert client.get(f"{API}/categories/{category.id}").status_code == 200
        assert client.get(f"{API}/categories/999").status_code == 404


class TestSearch:
    def test_search_matches_name_and_sku(self, client, make_product):
        target = make_product(name="Sac en cuir")
        make_product(name="Chemise")
        data = client.get(f"{API}/products/search?q=cuir").get_json()["data"]["data"]
        assert [p["id"] for p in data] == [target.id]

        by_sku = client.get(f"{API}/products/search?q={target.sku}").get_json()["data"]["data"]
        assert [p["id"] for p in by_sku] == [target.id]

    def test_empty_query(self, client):
        assert client.get(f"{API}/products/search?q=").status_code == 400


class TestPromotions:
    def test_promotion_listing(self, client, make_product):
        promoted = make_product()
        make_product()
        add_promotion(promoted)
        data = client.get(f"{API}/promotions/products").get_json()["data"]["data"]
        assert [p["id"] for p in data] == [promoted.id]
        assert data[0]["promotion"]["discountType"] == "PERCENTAGE"
        assert client.get(f"{API}/products/promotion").get_json()["data"]["data"][0]["id"] == promoted.id

    def test_expired_promotion_not_listed(self, client, product):
        now = datetime.utcnow()
        add_promotion(product, start=now - timedelta(days=5), end=now - timedelta(days=1))
        data = client.get(f"{API}/promotions/products").get_json()["data"]["data"]
        assert data == []

    def test_product_promotion_detail(self, client, promoted_product, product):
        data = client.get(f"{API}/promotions/products/{promoted_product.id}").get_json()["data"]
        assert data["finalPrice"] == 8000
        assert data["promotion"]["discountValue"] == 20.0

    def test_product_without_promotion(self, client, product):
        assert client.get(f"{API}/promotions/products/{product.id}").status_code == 404


class TestFeaturedAndBestSellers:
    def test_featured_includes_recent_products(self, client, make_product):
        recent = make_product()
        old = make_product()
        old.created_at = datetime.utcnow() - timedelta(days=90)
        db.session.commit()
        data = client.get(f"{API}/products/featured").get_json()["data"]
        assert [p["id"] for p in data] == [recent.id]

    def test_best_sellers_order_by_units(self, client, make_product, place_order):
        popular = make_product()
        quiet = make_product()
        make_product(quantity=0)
        place_order(popular, quantity=3)
        place_order(quiet, quantity=1)

        data = client.get(f"{API}/products/meilleursVente").get_json()["data"]
        assert [p["id"] for p in data] == [popular.id, quiet.id]
        assert data[0]["totalSold"] == 3
