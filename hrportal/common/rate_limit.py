"""Rate limiting with slowapi.

A module-level Limiter shared by routers (per-endpoint overrides such as
the login throttle) and wired into the app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from hrportal.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
)
