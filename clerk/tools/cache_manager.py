import time
from typing import Callable, List, Optional

from clerk.config import Config
from clerk.models.schemas import Product
from clerk.tools.catalog import Catalog
from clerk.utils.logger import get_logger

logger = get_logger(__name__)


class InventoryCache:
    """Time-boxed snapshot of the full catalog; stale reads inside the window are fine"""

    def __init__(self, catalog: Catalog, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.catalog = catalog
        self.cache_duration = ttl_seconds if ttl_seconds is not None else Config.INVENTORY_CACHE_SECONDS
        self.clock = clock
        self._products: List[Product] = []
        self._loaded_at: Optional[float] = None

    def is_stale(self) -> bool:
        return self._loaded_at is None or self.clock() - self._loaded_at >= self.cache_duration

    async def get_inventory(self, force_refresh: bool = False) -> List[Product]:
        if force_refresh or self.is_stale():
            try:
                products = await self.catalog.list_products()
            except Exception as e:
                logger.warning(f"⚠️ Inventory refresh failed, serving {len(self._products)} cached products: {e}")
                return list(self._products)
            self._products = list(products)
            self._loaded_at = self.clock()
            logger.debug(f"📦 Inventory cache refreshed ({len(self._products)} products)")
        return list(self._products)

    def invalidate(self):
        self._loaded_at = None
