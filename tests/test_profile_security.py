"""Tests for the profile, address book, preferences and account security endpoints."""

from datetime import datetime, timedelta

from conftest import API, PASSWORD
from core.extensions import db, mail
from models.userModel import Address, LoginActivity


def new_address(**overrides):
    data = {
        "recipientName": "Awa Diop",
        "phone": "+221771234567",
        "address": "Rue 10, Médina",
        "city": "Dakar",
    }
    data.update(overrides)
    return data


class TestProfile:
    def test_get_profile(self, client, customer, customer_headers):
        response = client.get(f"{API}/profile", headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["email"] == customer.email
        assert data["preferences"]["currency"] == "XOF"
        assert data["addresses"] == []

    def test_update_profile(self, client, customer, customer_headers):
        response = client.put(f"{API}/profile", json={"firstName": "Aminata", "phone": "+221700000000"},
                              headers=customer_headers)
        assert response.status_code == 200
        assert customer.first_name == "Aminata"
        assert customer.phone == "+221700000000"


class TestAddresses:
    def test_first_address_is_default(self, client, customer_headers):
        response = client.post(f"{API}/profile/addresses", json=new_address(), headers=customer_headers)
        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["isDefault"] is True
        assert data["country"] == "Sénégal"

    def test_new_default_unsets_previous(self, client, customer, customer_headers):
        first = client.post(f"{API}/profile/addresses", json=new_address(), headers=customer_headers)
        second = client.post(f"{API}/profile/addresses", json=new_address(city="Thiès", isDefault=True),
                             headers=customer_headers)
        assert second.get_json()["data"]["isDefault"] is True
        assert db.session.get(Address, first.get_json()["data"]["id"]).is_default is False

        listing = client.get(f"{API}/profile/addresses", headers=customer_headers).get_json()["data"]
        assert listing[0]["city"] == "Thiès"

    def test_missing_fields(self, client, customer_headers):
        response = client.post(f"{API}/profile/addresses", json={"city": "Dakar"}, headers=customer_headers)
        assert response.status_code == 400

    def test_deleting_default_promotes_another(self, client, customer, customer_headers):
        first = client.post(f"{API}/profile/addresses", json=new_address(), headers=customer_headers)
        second = client.post(f"{API}/profile/addresses", json=new_address(city="Thiès"), headers=customer_headers)
        first_id = first.get_json()["data"]["id"]
        second_id = second.get_json()["data"]["id"]

        response = client.delete(f"{API}/profile/addresses/{first_id}", headers=customer_headers)
        assert response.status_code == 200
        assert db.session.get(Address, first_id) is None
        assert db.session.get(Address, second_id).is_default is True

    def test_foreign_address_not_found(self, client, make_user, customer_headers):
        stranger = make_user()
        address = Address(user_id=stranger.id, recipient_name="X", phone="1", address="a", city="b")
        db.session.add(address)
        db.session.commit()
        response = client.put(f"{API}/profile/addresses/{address.id}", json={"city": "Dakar"},
                              headers=customer_headers)
        assert response.status_code == 404


class TestPreferences:
    def test_update_preferences(self, client, customer_headers):
        response = client.put(f"{API}/profile/preferences",
                              json={"marketingEmails": True, "language": "en"}, headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["marketingEmails"] is True
        assert data["language"] == "en"
        assert data["pushNotifications"] is True


class TestChangePassword:
    def test_change_password(self, client, customer, customer_headers):
        response = client.post(f"{API}/security/change-password",
                               json={"currentPassword": PASSWORD, "newPassword": "nouveau123"},
                               headers=customer_headers)
        assert response.status_code == 200
        login = client.post(f"{API}/auth/login", json={"email": customer.email, "password": "nouveau123"})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, customer_headers):
        response = client.post(f"{API}/security/change-password",
                               json={"currentPassword": "wrong", "newPassword": "nouveau123"},
                               headers=customer_headers)
        assert response.status_code == 401

    def test_same_password_rejected(self, client, customer_headers):
        response = client.post(f"{API}/security/change-password",
                               json={"currentPassword": PASSWORD, "newPassword": PASSWORD},
                               headers=customer_headers)
        assert response.status_code == 400


class TestEmailVerification:
    def test_resend_then_verify(self, client, customer, customer_headers):
        with mail.record_messages() as outbox:
            response = client.post(f"{API}/security/resend-verification-email", headers=customer_headers)
        assert response.status_code == 200
        assert len(outbox) == 1
        token = customer.email_verification_token
        assert token in outbox[0].html

        response = client.post(f"{API}/security/verify-email", json={"token": token})
        assert response.status_code == 200
        assert customer.email_verified is True

    def test_expired_token(self, client, customer):
        customer.email_verification_token = "expired"
        customer.email_verification_expires = datetime.utcnow() - timedelta(hours=1)
        db.session.commit()
        response = client.post(f"{API}/security/verify-email", json={"token": "expired"})
        assert response.status_code == 400

    def test_resend_when_verified(self, client, customer, customer_headers):
        customer.email_verified = True
        db.session.commit()
        response = client.post(f"{API}/security/resend-verification-email", headers=customer_headers)
        assert response.status_code == 400


class TestSecuritySettings:
    def test_defaults(self, client, customer_headers):
        data = client.get(f"{API}/security/settings", headers=customer_headers).get_json()["data"]
        assert data["sessionTimeout"] == 30
        assert data["twoFactorEnabled"] is False

    def test_session_timeout_bounds(self, client, customer_headers):
        for value in (4, 1441):
            response = client.put(f"{API}/security/settings", json={"sessionTimeout": value},
                                  headers=customer_headers)
            assert response.status_code == 400

        response = client.put(f"{API}/security/settings", json={"sessionTimeout": 60, "loginAlerts": False},
                              headers=customer_headers)
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["sessionTimeout"] == 60
        assert data["loginAlerts"] is False


class TestLoginHistory:
    def test_history_is_limited(self, client, customer, customer_headers):
        for i in range(55):
            db.session.add(LoginActivity(user_id=customer.id, user_agent="Mozilla Firefox/120", device="Desktop",
                                         browser="Firefox", success=True,
                                         created_at=datetime.utcnow() - timedelta(minutes=i)))
        db.session.commit()

        data = client.get(f"{API}/security/login-history?limit=500", headers=customer_headers).get_json()["data"]
        assert len(data) == 50
        assert data[0]["browser"] == "Firefox"


class TestAccountLifecycle:
    def test_deactivate_blocks_login(self, client, customer, customer_headers):
        response = client.post(f"{API}/security/deactivate-account", headers=customer_headers)
        assert response.status_code == 200
        assert customer.is_active is False
        login = client.post(f"{API}/auth/login", json={"email": customer.email, "password": PASSWORD})
        assert login.status_code == 401

        response = client.post(f"{API}/security/reactivate-account", headers=customer_headers)
        assert response.status_code == 200
        assert customer.is_active is True

    def test_delete_account_frees_email(self, client, customer, customer_headers):
        response = client.delete(f"{API}/security/account", headers=customer_headers)
        assert response.status_code == 200
        assert customer.email == f"deleted_{customer.id}@deleted.com"
        assert customer.is_active is False
