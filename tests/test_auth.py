"""Tests for registration, login, token refresh and password reset."""

from datetime import datetime, timedelta

from conftest import API, PASSWORD, headers_for, refresh_headers_for
from core.extensions import db, mail
from models.userModel import LoginActivity, User


class TestRegister:
    def test_register_creates_user_with_defaults(self, client):
        response = client.post(f"{API}/auth/register", json={
            "email": "Nouveau@Example.com",
            "password": "secret123",
            "firstName": "Awa",
            "lastName": "Diop",
        })
        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "nouveau@example.com"
        assert body["data"]["user"]["role"] == "CUSTOMER"
        assert body["data"]["accessToken"]
        assert body["data"]["refreshToken"]

        user = User.query.filter_by(email="nouveau@example.com").one()
        assert user.preferences.language == "fr"
        assert user.security_settings.session_timeout == 30
        assert user.refresh_token == body["data"]["refreshToken"]

    def test_register_with_role(self, client):
        response = client.post(f"{API}/auth/register", json={
            "email": "shop@example.com", "password": "secret123",
            "firstName": "Moussa", "lastName": "Ba", "role": "SELLER",
        })
        assert response.status_code == 201
        assert response.get_json()["data"]["user"]["role"] == "SELLER"

    def test_register_public_forces_customer(self, client):
        response = client.post(f"{API}/auth/register-public", json={
            "email": "pub@example.com", "password": "secret123",
            "firstName": "Awa", "lastName": "Diop", "role": "ADMIN",
        })
        assert response.status_code == 201
        assert response.get_json()["data"]["user"]["role"] == "CUSTOMER"

    def test_duplicate_email_conflict(self, client, customer):
        response = client.post(f"{API}/auth/register", json={
            "email": customer.email, "password": "secret123", "firstName": "A", "lastName": "B",
        })
        assert response.status_code == 409
        body = response.get_json()
        assert body["success"] is False
        assert body["statusCode"] == 409
        assert body["path"] == f"{API}/auth/register"

    def test_short_password_rejected(self, client):
        response = client.post(f"{API}/auth/register", json={
            "email": "x@example.com", "password": "123", "firstName": "A", "lastName": "B",
        })
        assert response.status_code == 400


class TestLogin:
    def test_login_success_records_activity(self, client, customer):
        response = client.post(f"{API}/auth/login", json={"email": customer.email, "password": PASSWORD},
                               headers={"User-Agent": "Mozilla/5.0 (iPhone) Mobile Safari/604.1"})
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["user"]["id"] == customer.id
        assert customer.last_login is not None

        activity = LoginActivity.query.filter_by(user_id=customer.id).one()
        assert activity.success is True
        assert activity.device == "Mobile"
        assert activity.browser == "Safari"

    def test_wrong_password(self, client, customer):
        response = client.post(f"{API}/auth/login", json={"email": customer.email, "password": "nope"})
        assert response.status_code == 401
        activity = LoginActivity.query.filter_by(user_id=customer.id).one()
        assert activity.success is False

    def test_unknown_email(self, client):
        response = client.post(f"{API}/auth/login", json={"email": "ghost@example.com", "password": "x"})
        assert response.status_code == 401

    def test_inactive_account(self, client, customer):
        customer.is_active = False
        db.session.commit()
        response = client.post(f"{API}/auth/login", json={"email": customer.email, "password": PASSWORD})
        assert response.status_code == 401


class TestTokens:
    def test_missing_token(self, client):
        response = client.get(f"{API}/profile")
        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_refresh_with_stored_token(self, client, customer):
        headers = refresh_headers_for(customer)
        response = client.post(f"{API}/auth/refresh", headers=headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert customer.refresh_token == data["refreshToken"]

    def test_refresh_rejects_unknown_token(self, client, customer):
        headers = refresh_headers_for(customer)
        customer.refresh_token = "something-else"
        db.session.commit()
        response = client.post(f"{API}/auth/refresh", headers=headers)
        assert response.status_code == 401

    def test_access_token_cannot_refresh(self, client, customer):
        response = client.post(f"{API}/auth/refresh", headers=headers_for(customer))
        assert response.status_code == 401

    def test_logout_clears_refresh_token(self, client, customer):
        refresh = refresh_headers_for(customer)
        response = client.post(f"{API}/auth/logout", headers=headers_for(customer))
        assert response.status_code == 200
        assert customer.refresh_token is None
        assert client.post(f"{API}/auth/refresh", headers=refresh).status_code == 401


class TestPasswordReset:
    def test_forgot_password_sends_mail(self, client, customer):
        with mail.record_messages() as outbox:
            response = client.post(f"{API}/auth/forgot-password", json={"email": customer.email})
        assert response.status_code == 200
        assert customer.reset_password_token
        assert len(outbox) == 1
        assert customer.reset_password_token in outbox[0].html
        assert "http://front.test/reset-password?token=" in outbox[0].html

    def test_forgot_password_unknown_email_same_answer(self, client, customer):
        known = client.post(f"{API}/auth/forgot-password", json={"email": customer.email}).get_json()
        unknown = client.post(f"{API}/auth/forgot-password", json={"email": "ghost@example.com"}).get_json()
        assert known["message"] == unknown["message"]

    def test_reset_password(self, client, customer):
        customer.reset_password_token = "reset-token"
        customer.reset_password_expires = datetime.utcnow() + timedelta(hours=1)
        db.session.commit()

        response = client.post(f"{API}/auth/reset-password",
                               json={"token": "reset-token", "newPassword": "nouveau123"})
        assert response.status_code == 200
        assert customer.reset_password_token is None

        login = client.post(f"{API}/auth/login", json={"email": customer.email, "password": "nouveau123"})
        assert login.status_code == 200

    def test_reset_password_expired(self, client, customer):
        customer.reset_password_token = "old-token"
        customer.reset_password_expires = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()
        response = client.post(f"{API}/auth/reset-password",
                               json={"token": "old-token", "newPassword": "nouveau123"})
        assert response.status_code == 400
