from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from utils.logging import log_rate_limit_violation

# Storage comes from RATELIMIT_STORAGE_URI (Redis when REDIS_URL is set).
LOGIN_LIMIT = "5 per minute"
SENSITIVE_LIMIT = "10 per minute"

db = SQLAlchemy()
jwt = JWTManager()
migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["20000 per day", "1200 per hour"],
    on_breach=log_rate_limit_violation,
)
