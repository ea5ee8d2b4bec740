"""Cache policy model.

The policy travels with a ``RequestContext`` so that a caching layer built
on top of microhttp can read it. microhttp itself never reads it.
"""

from datetime import timedelta

from pydantic import BaseModel

DEFAULT_CACHE_DURATION = timedelta(minutes=5)


class CachePolicy(BaseModel):
    """Caching behavior requested for a call.

    Fields:
        duration: How long a cached response stays valid.
        sliding_expiration: Reset the expiry window on every hit.
        force_refresh: Bypass any cached entry and fetch again.
        custom_key_parts: Extra values mixed into the cache key.
        respect_server_cache_headers: Honor Cache-Control from the server.
    """

    duration: timedelta = DEFAULT_CACHE_DURATION
    sliding_expiration: bool = False
    force_refresh: bool = False
    custom_key_parts: tuple[str, ...] | None = None
    respect_server_cache_headers: bool = True

    model_config = {"frozen": True}

    @classmethod
    def default(cls) -> "CachePolicy":
        """Five minute policy that honors server cache headers."""
        return cls()

    @classmethod
    def no_cache(cls) -> "CachePolicy":
        """Policy that asks for no caching at all."""
        return cls(duration=timedelta(0), respect_server_cache_headers=False)
