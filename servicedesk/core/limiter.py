# servicedesk/core/limiter.py
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

# Shared by main.py (app.state.limiter) and the routers that decorate endpoints
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().rate_limit_enabled)
