import os
from datetime import timedelta
from dotenv import load_dotenv


load_dotenv()


def _flag(name, default="0"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", os.getenv("JWT_SECRET_KEY", "dev-secret"))
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")
    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///school.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL")
    RATELIMIT_STORAGE_URI = REDIS_URL or "memory://"
    RATELIMIT_ENABLED = True
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    AUDIT_LOG_FILE = os.getenv("AUDIT_LOG_FILE", os.path.join("logs", "audit.log"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    AUTO_CREATE_TABLES = _flag("AUTO_CREATE_TABLES")
    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_TOKEN_LOCATION = ["headers", "cookies"]
    JWT_COOKIE_SECURE = _flag("JWT_COOKIE_SECURE", "1")  # only over HTTPS
    JWT_COOKIE_SAMESITE = "Lax"
    JWT_COOKIE_CSRF_PROTECT = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    AUTO_CREATE_TABLES = False
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_COOKIE_SECURE = False
    AUDIT_LOG_FILE = os.path.join("logs", "audit-test.log")


def get_config():
    env = os.getenv("APP_ENV", "production").lower()
    if env in {"test", "testing"}:
        return TestingConfig
    return Config
