from slowapi import Limiter
from slowapi.util import get_remote_address
from app.core.config import settings

# Per-IP limits on the unauthenticated auth endpoints (register/login)
# In-memory storage: limits are per process
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)

auth_rate_limit = limiter.limit(settings.AUTH_RATE_LIMIT)
