"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
that apply per-route limits with @limiter.limit().

A single shared instance means all routes share the same in-memory counter
store. Per-module instances would each get an isolated counter and limits
would never trigger.

@limiter.limit() must sit BELOW @router.post(): the router registers whatever
function it is handed, so the limiter wrapper has to be applied first.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit for POST /login and POST /register (brute-force and signup-spam mitigation).

    Passed to slowapi as a callable, so the current LOGIN_RATE_LIMIT setting is
    read on every request instead of once at import.
    """
    return get_settings().login_rate_limit
