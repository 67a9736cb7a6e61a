import os
from datetime import timedelta
from dotenv import load_dotenv


load_dotenv()


def _env_flag(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")  # used for both Flask and JWT
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")
    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///mess.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL") or "memory://"
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")

    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)         # matches the browser session lifetime
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_TOKEN_LOCATION = ["headers", "cookies"]
    JWT_COOKIE_SECURE = _env_flag("JWT_COOKIE_SECURE", "true")  # only over HTTPS
    JWT_COOKIE_SAMESITE = "Lax"
    JWT_COOKIE_CSRF_PROTECT = False

    AUDIT_LOG_FILE = os.getenv("AUDIT_LOG_FILE", os.path.join("logs", "audit.log"))

    # Billing cycle (Celery worker + beat, Redis broker)
    DAILY_ATTENDANCE_HOUR = int(os.getenv("DAILY_ATTENDANCE_HOUR", "12"))
    CELERY = {
        "broker_url": os.getenv("CELERY_BROKER_URL") or os.getenv("REDIS_URL") or "redis://localhost:6379/0",
        "task_ignore_result": True,
        "enable_utc": False,  # beat follows the host clock, as the batches do
        "broker_connection_retry_on_startup": True,
    }

    # Simulated card gateway
    PAYMENT_GATEWAY_DELAY = float(os.getenv("PAYMENT_GATEWAY_DELAY", "1.0"))
    PAYMENT_DECLINE_RATE = float(os.getenv("PAYMENT_DECLINE_RATE", "0.05"))
