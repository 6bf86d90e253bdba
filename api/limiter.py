"""
api/limiter.py -- Shared slowapi rate limiter and CareShop's limit values.

One Limiter instance for the whole app: api/main.py mounts it through
SlowAPIMiddleware (which looks for app.state.limiter), api/routes/auth.py
attaches per-route limits with @limiter.limit(). Separate instances would
each keep their own counters and the limits would never trigger.

Counters live in process memory and are keyed by client address, which
matches the single-node deployment model. Limits are read from settings on
every check (the dynamic-limit callable form), so tests can raise them
through the environment.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def auth_rate_limit() -> str:
    """Limit for credential endpoints (login, register), e.g. "10/minute"."""
    return get_settings().login_rate_limit
