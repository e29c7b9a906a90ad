# pbvault/core/rate_limit.py

from fastapi import HTTPException, Request
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limit constants
UPLOAD_LIMIT = "20/minute"


class RateLimit:
    """
    Upload/verify quota for one application, counted per client address
    in the app's own slowapi limiter.
    """

    def __init__(self, quota: str = UPLOAD_LIMIT, enabled: bool = True):
        self.quota = quota
        self.item = parse(quota)
        self.limiter = Limiter(key_func=get_remote_address, enabled=enabled,
                               storage_uri="memory://")

    @property
    def enabled(self) -> bool:
        return self.limiter.enabled

    def hit(self, request: Request) -> bool:
        if not self.limiter.enabled:
            return True
        return self.limiter.limiter.hit(self.item, get_remote_address(request), request.url.path)

    def reset(self):
        self.limiter.reset()


def rate_limit_dependency(request: Request):
    """
    Rate limiting dependency for FastAPI routes.
    Uses the RateLimit installed on the serving app.
    """
    rate_limit = getattr(request.app.state, "rate_limit", None)
    if rate_limit is not None and not rate_limit.hit(request):
        raise HTTPException(status_code=429, detail=f"Rate limit exceeded: {rate_limit.quota}")
    return None
