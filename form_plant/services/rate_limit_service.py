import logging
from abc import ABC, abstractmethod
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter

from form_plant.config.env_config import settings

logger = logging.getLogger(__name__)

NAMESPACE = "fplant"


class RateLimiter(ABC):
    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: float) -> bool:
        """Record one attempt for key; False when the window already holds `limit` attempts."""


class StorageRateLimiter(RateLimiter):
    """
    Moving-window counter on a `limits` storage backend.

    The check and the record are one storage operation, and refused attempts
    are not recorded. ``memory://`` keeps counters inside this process and
    expires idle keys; point RATE_LIMIT_STORAGE_URI at ``redis://`` to share
    them between workers.
    """

    def __init__(self, storage_uri: Optional[str] = None):
        self.storage_uri = storage_uri or settings.RATE_LIMIT_STORAGE_URI
        self.storage: Storage = storage_from_string(self.storage_uri)
        self._strategy = MovingWindowRateLimiter(self.storage)
        logger.debug(f"Rate limiter using {self.storage_uri.split('://', 1)[0]} storage")

    def hit(self, key: str, limit: int, window_seconds: float) -> bool:
        item = RateLimitItemPerSecond(limit, max(int(window_seconds), 1), namespace=NAMESPACE)
        return self._strategy.hit(item, key)

    def reset(self) -> None:
        self.storage.reset()


rate_limiter = StorageRateLimiter()
