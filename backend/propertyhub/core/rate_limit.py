from slowapi import Limiter
from slowapi.util import get_remote_address

from propertyhub.core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    enabled=_settings.RATE_LIMIT_ENABLED,
    storage_uri=_settings.RATE_LIMIT_STORAGE_URI,
)
