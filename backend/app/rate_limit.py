from slowapi import Limiter
from slowapi.util import get_remote_address

# Global per-IP limiter reused across the auth routes
limiter = Limiter(key_func=get_remote_address)
