# /shopgenie/utils/rate_limiter.py

from slowapi import Limiter
from shopgenie.utils.request_utils import get_remote_address
from shopgenie.config.settings import settings

# Shared limiter instance, imported by both main.py and the route modules.

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"]
)
