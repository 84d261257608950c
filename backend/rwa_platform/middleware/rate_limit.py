"""Request rate limiting keyed on client address."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from rwa_platform.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
