"""Pytest fixtures for the marketplace API tests."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token, create_refresh_token

from core.config import Config
from core.extensions import bcrypt, db
from main import create_app
from models.catalogModels import Category, Product, ProductStock, Promotion
from models.userModel import Address, User, UserPreferences, UserSecuritySettings

PASSWORD = "secret123"


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-long-enough-for-hs256-signing"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@sendiaba.test"
    API_PREFIX = "api/v1"
    API_BASE_URL = "http://api.test"
    FRONTEND_URL = "http://front.test"
    PAYDUNYA_MODE = "test"
    PAYDUNYA_TEST_MASTER_KEY = "master-key"
    PAYDUNYA_TEST_PRIVATE_KEY = "private-key"
    PAYDUNYA_TEST_PUBLIC_KEY = "public-key"
    PAYDUNYA_TEST_TOKEN = "token"
    CLOUDINARY_CLOUD_NAME = "demo"
    CLOUDINARY_API_KEY = "key"
    CLOUDINARY_API_SECRET = "secret"


API = "/api/v1"


@pytest.fixture
def app():
    """Application bound to a fresh in-memory database, context pushed for the test."""
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory creating users with a known password."""
    counter = {"n": 0}

    def _make(role="CUSTOMER", email=None, **kwargs):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            password=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
            first_name=kwargs.pop("first_name", "Awa"),
            last_name=kwargs.pop("last_name", f"Diop{counter['n']}"),
            role=role,
            preferences=UserPreferences(),
            security_settings=UserSecuritySettings(),
            **kwargs,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user("CUSTOMER", email="client@example.com")


@pytest.fixture
def seller(make_user):
    return make_user("SELLER", email="vendeur@example.com", first_name="Moussa")


@pytest.fixture
def other_seller(make_user):
    return make_user("SELLER", email="autre@example.com", first_name="Fatou")


def headers_for(user):
    token = create_access_token(identity=str(user.id), additional_claims={"role": user.role, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


def refresh_headers_for(user):
    token = create_refresh_token(identity=str(user.id), additional_claims={"role": user.role, "email": user.email})
    user.refresh_token = token
    db.session.commit()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer):
    return headers_for(customer)


@pytest.fixture
def seller_headers(seller):
    return headers_for(seller)


@pytest.fixture
def category(app):
    category = Category(name="Mode", slug="mode")
    db.session.add(category)
    db.session.commit()
    return category


@pytest.fixture
def make_product(seller, category):
    """Factory for ACTIVE products with a stock row."""
    counter = {"n": 0}

    def _make(price="10000", quantity=10, reserved=0, owner=None, status="ACTIVE", **kwargs):
        counter["n"] += 1
        product = Product(
            seller_id=(owner or seller).id,
            category_id=category.id,
            name=kwargs.pop("name", f"Boubou {counter['n']}"),
            slug=f"boubou-{counter['n']}",
            description="Boubou brodé main",
            sku=f"SKU-{counter['n']}",
            price=Decimal(price),
            status=status,
            tags=kwargs.pop("tags", ["tissu"]),
            stock=ProductStock(quantity=quantity, reserved_quantity=reserved, low_stock_threshold=10),
            **kwargs,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


def add_promotion(product, discount_type="PERCENTAGE", value="20", start=None, end=None, is_active=True):
    now = datetime.utcnow()
    promotion = Promotion(
        product_id=product.id,
        title="Soldes",
        discount_type=discount_type,
        discount_value=Decimal(value),
        start_date=start or now - timedelta(days=1),
        end_date=end or now + timedelta(days=1),
        is_active=is_active,
    )
    db.session.add(promotion)
    db.session.commit()
    return promotion


@pytest.fixture
def promoted_product(product):
    add_promotion(product)
    return product


@pytest.fixture
def address(customer):
    address = Address(
        user_id=customer.id,
        recipient_name="Awa Diop",
        phone="+221771234567",
        address="Rue 10, Médina",
        city="Dakar",
        country="Sénégal",
        is_default=True,
    )
    db.session.add(address)
    db.session.commit()
    return address


@pytest.fixture
def add_to_cart(client, customer_headers):
    def _add(product, quantity=1, headers=None):
        response = client.post(f"{API}/cart/items", json={"productId": product.id, "quantity": quantity},
                               headers=headers or customer_headers)
        assert response.status_code == 201, response.get_json()
        return response

    return _add


@pytest.fixture
def place_order(client, customer_headers, address, add_to_cart):
    """Put ``product`` in the cart and order it; returns the order id."""
    def _place(product, quantity=1):
        add_to_cart(product, quantity)
        response = client.post(f"{API}/orders", json={"shippingAddressId": address.id}, headers=customer_headers)
        assert response.status_code == 201, response.get_json()
        return response.get_json()["data"]["id"]

    return _place


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


@pytest.fixture
def gateway(monkeypatch):
    """Stand-in for the PayDunya HTTP API.

    ``gateway.invoice_status`` is what the verify endpoint reports;
    ``gateway.created`` collects the create-invoice calls. Setting
    ``create_response`` or ``verify_response`` replaces the canned bodies.
    """
    class Gateway:
        invoice_status = "pending"
        create_response = None
        verify_response = None
        created = []
        verified = []

    state = Gateway()
    state.created = []
    state.verified = []
    counter = {"n": 0}

    def fake_post(url, data=None, headers=None, timeout=None):
        counter["n"] += 1
        state.created.append({"url": url, "data": data, "headers": headers})
        if state.create_response is not None:
            return FakeResponse(state.create_response)
        token = f"tok_{counter['n']}"
        return FakeResponse({
            "response_code": "00",
            "response_text": f"https://app.paydunya.com/sandbox-checkout/invoice/{token}",
            "description": "Checkout Invoice Created",
            "token": token,
        })

    def fake_get(url, headers=None, timeout=None):
        state.verified.append(url)
        if state.verify_response is not None:
            return FakeResponse(state.verify_response)
        return FakeResponse({
            "response_code": "00",
            "status": state.invoice_status,
            "receipt_url": "https://app.paydunya.com/receipt/1",
            "invoice": {"token": url.rsplit("/", 1)[-1]},
        })

    monkeypatch.setattr("services.paydunya.requests.post", fake_post)
    monkeypatch.setattr("services.paydunya.requests.get", fake_get)
    return state


@pytest.fixture
def cloudinary_calls(monkeypatch):
    calls = {"upload": [], "destroy": []}

    def fake_upload(content, **options):
        n = len(calls["upload"]) + 1
        calls["upload"].append(options)
        return {
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/v1700000000/{options['folder']}/img{n}.jpg",
            "public_id": f"{options['folder']}/img{n}",
        }

    def fake_destroy(public_id, **options):
        calls["destroy"].append(public_id)
        return {"result": "ok"}

    monkeypatch.setattr("cloudinary.uploader.upload", fake_upload)
    monkeypatch.setattr("cloudinary.uploader.destroy", fake_destroy)
    return calls
