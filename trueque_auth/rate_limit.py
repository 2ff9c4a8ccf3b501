"""
Global slowapi rate limiter.

Imported by the routers for per-endpoint limits.  Mounted onto app.state in
main.py so slowapi middleware can find it.

Storage: in-memory by default (single node); set RATE_LIMIT_STORAGE_URI to a
shared backend when running more than one worker.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from trueque_auth.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_settings.rate_limit_storage_uri,
    enabled=_settings.rate_limit_enabled,
)

OTP_SEND_LIMIT = "10/minute"
AUTH_LIMIT = "20/minute"
