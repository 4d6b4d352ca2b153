from datetime import timedelta
import os
import re
from dotenv import load_dotenv

load_dotenv()


def parse_duration(value, default):
    """Turn strings like "15m", "7d", "1h" or "30s" into a timedelta."""
    if not value:
        return default
    match = re.fullmatch(r"\s*(\d+)\s*([smhd]?)\s*", str(value))
    if not match:
        return default
    amount, unit = int(match.group(1)), match.group(2) or "s"
    return {
        "s": timedelta(seconds=amount),
        "m": timedelta(minutes=amount),
        "h": timedelta(hours=amount),
        "d": timedelta(days=amount),
    }[unit]


class Config:
    #SQLALCHEMY_DATABASE_URI = "sqlite:///mydatabase.db"
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///marketplace.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    API_PREFIX = os.environ.get("API_PREFIX", "api/v1").strip("/")
    API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:3000").rstrip("/")
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000").rstrip("/")
    CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET") or os.environ.get("JWT_SECRET_KEY", "change-me")
    JWT_ACCESS_TOKEN_EXPIRES = parse_duration(os.environ.get("JWT_EXPIRES_IN"), timedelta(minutes=15))
    JWT_REFRESH_TOKEN_EXPIRES = parse_duration(os.environ.get("JWT_REFRESH_EXPIRES_IN"), timedelta(days=7))

    MAIL_SERVER = os.environ.get("MAIL_HOST", "smtp.gmail.com")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USE_TLS = MAIL_PORT == 587
    MAIL_USE_SSL = MAIL_PORT == 465
    MAIL_USERNAME = os.getenv("MAIL_USER")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_FROM") or os.getenv("MAIL_USER")

    PAYDUNYA_MODE = os.environ.get("PAYDUNYA_MODE", "test")
    PAYDUNYA_TEST_MASTER_KEY = os.environ.get("PAYDUNYA_TEST_MASTER_KEY")
    PAYDUNYA_TEST_PRIVATE_KEY = os.environ.get("PAYDUNYA_TEST_PRIVATE_KEY")
    PAYDUNYA_TEST_PUBLIC_KEY = os.environ.get("PAYDUNYA_TEST_PUBLIC_KEY")
    PAYDUNYA_TEST_TOKEN = os.environ.get("PAYDUNYA_TEST_TOKEN")
    PAYDUNYA_LIVE_MASTER_KEY = os.environ.get("PAYDUNYA_LIVE_MASTER_KEY")
    PAYDUNYA_LIVE_PRIVATE_KEY = os.environ.get("PAYDUNYA_LIVE_PRIVATE_KEY")
    PAYDUNYA_LIVE_PUBLIC_KEY = os.environ.get("PAYDUNYA_LIVE_PUBLIC_KEY")
    PAYDUNYA_LIVE_TOKEN = os.environ.get("PAYDUNYA_LIVE_TOKEN")
    PAYDUNYA_TIMEOUT = int(os.environ.get("PAYDUNYA_TIMEOUT", 30))
    STORE_NAME = os.environ.get("STORE_NAME", "Sendiaba")

    CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME")
    CLOUDINARY_API_KEY = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET = os.environ.get("CLOUDINARY_API_SECRET")
    MAX_IMAGE_SIZE = 5 * 1024 * 1024
