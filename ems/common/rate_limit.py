"""Rate limiting configuration using slowapi.

The module-level Limiter is imported by routers for per-endpoint limits
and wired into the FastAPI app in main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Default for every endpoint; login overrides with LOGIN_RATE_LIMIT.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
)

LOGIN_RATE_LIMIT = "10/minute"
