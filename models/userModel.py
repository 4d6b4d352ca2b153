from core.extensions import db
from core.imports import datetime


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password = db.Column(db.String(200), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    profile_picture = db.Column(db.String(500), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="CUSTOMER")  # CUSTOMER, SELLER, ENTERPRISE, ADMIN, SUPER_ADMIN
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    email_verification_token = db.Column(db.String(100), nullable=True, index=True)
    email_verification_expires = db.Column(db.DateTime, nullable=True)

    refresh_token = db.Column(db.Text, nullable=True)
    reset_password_token = db.Column(db.String(100), nullable=True, index=True)
    reset_password_expires = db.Column(db.DateTime, nullable=True)

    last_login = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    addresses = db.relationship("Address", backref="user", cascade="all, delete-orphan")
    preferences = db.relationship("UserPreferences", backref="user", uselist=False, cascade="all, delete-orphan")
    security_settings = db.relationship("UserSecuritySettings", backref="user", uselist=False, cascade="all, delete-orphan")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "profilePicture": self.profile_picture,
            "role": self.role,
            "isActive": self.is_active,
            "emailVerified": self.email_verified,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def public_dict(self):
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
        }


class Address(db.Model):
    __tablename__ = "addresses"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    label = db.Column(db.String(100), nullable=True)
    recipient_name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    region = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=False, default="Sénégal")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "label": self.label,
            "recipientName": self.recipient_name,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "region": self.region,
            "postalCode": self.postal_code,
            "country": self.country,
            "isDefault": self.is_default,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class UserPreferences(db.Model):
    __tablename__ = "user_preferences"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    email_notifications = db.Column(db.Boolean, nullable=False, default=True)
    sms_notifications = db.Column(db.Boolean, nullable=False, default=True)
    push_notifications = db.Column(db.Boolean, nullable=False, default=True)
    marketing_emails = db.Column(db.Boolean, nullable=False, default=False)
    language = db.Column(db.String(10), nullable=False, default="fr")
    currency = db.Column(db.String(10), nullable=False, default="XOF")

    def to_dict(self):
        return {
            "emailNotifications": self.email_notifications,
            "smsNotifications": self.sms_notifications,
            "pushNotifications": self.push_notifications,
            "marketingEmails": self.marketing_emails,
            "language": self.language,
            "currency": self.currency,
        }


class UserSecuritySettings(db.Model):
    __tablename__ = "user_security_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    profile_visibility = db.Column(db.Boolean, nullable=False, default=True)
    show_email = db.Column(db.Boolean, nullable=False, default=True)
    show_phone = db.Column(db.Boolean, nullable=False, default=True)
    allow_messages = db.Column(db.Boolean, nullable=False, default=True)
    two_factor_enabled = db.Column(db.Boolean, nullable=False, default=False)
    email_notifications = db.Column(db.Boolean, nullable=False, default=True)
    login_alerts = db.Column(db.Boolean, nullable=False, default=True)
    device_management = db.Column(db.Boolean, nullable=False, default=True)
    session_timeout = db.Column(db.Integer, nullable=False, default=30)  # minutes

    def to_dict(self):
        return {
            "profileVisibility": self.profile_visibility,
            "showEmail": self.show_email,
            "showPhone": self.show_phone,
            "allowMessages": self.allow_messages,
            "twoFactorEnabled": self.two_factor_enabled,
            "emailNotifications": self.email_notifications,
            "loginAlerts": self.login_alerts,
            "deviceManagement": self.device_management,
            "sessionTimeout": self.session_timeout,
        }


class LoginActivity(db.Model):
    __tablename__ = "login_activities"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    device = db.Column(db.String(20), nullable=True)
    browser = db.Column(db.String(20), nullable=True)
    success = db.Column(db.Boolean, nullable=False, default=True)
    failure_reason = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "device": self.device,
            "browser": self.browser,
            "success": self.success,
            "failureReason": self.failure_reason,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
