from slowapi import Limiter
from slowapi.util import get_remote_address
from mahattati.core.config import settings

# Per-IP limit applied to every /api route by SlowAPIMiddleware
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.get_rate_limit()],
    enabled=settings.RATE_LIMIT_ENABLED,
)
