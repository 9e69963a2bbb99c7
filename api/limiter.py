"""
api/limiter.py -- Rate limiting for the public credential endpoints.

register and login are the only unauthenticated write paths, so they are the
brute-force and account-spam surface. Both share one per-IP budget taken from
Settings.login_rate_limit (slowapi limit syntax, e.g. "10/minute").

One Limiter instance is shared by api/main.py (SlowAPIMiddleware looks for
app.state.limiter) and api/routes/auth.py (@limiter.limit). Separate instances
would keep separate counters and the limit would never trigger.

Counters live in process memory: each server process enforces its own budget.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings


def credentials_limit() -> str:
    """Limit string for register and login, read from Settings on each request."""
    return get_settings().login_rate_limit


limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
