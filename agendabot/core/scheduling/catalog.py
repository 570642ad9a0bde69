"""Per-tenant service catalog cache."""

import logging
import time
from typing import Callable, Optional

from agendabot.config import settings
from agendabot.core.session.models import ServiceOffering
from agendabot.core.scheduling.backend_client import (
    BackendError,
    BookingBackendClient,
    FetchResult,
)

logger = logging.getLogger(__name__)


class ServiceCatalog:
    """
    Loads and caches each tenant's service offerings.

    Entries are keyed by tenant and refreshed by an explicit `load`, by
    `invalidate`, or when older than `cache_ttl` seconds (0 keeps them until
    invalidated). A failed load never replaces a previously good entry.
    """

    def __init__(
        self,
        client: BookingBackendClient,
        cache_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._ttl = settings.catalog_cache_ttl if cache_ttl is None else cache_ttl
        self._clock = clock
        self._cache: dict[str, tuple[list[ServiceOffering], float]] = {}

    async def load(self, tenant_id: str) -> FetchResult[ServiceOffering]:
        """Fetch the tenant's services from the backend and cache them.

        Never raises: failures are logged and returned as an empty result
        with an error reason.
        """
        try:
            raw = await self._client.list_services(tenant_id)
        except BackendError as e:
            logger.warning(f"Failed to load services for tenant {tenant_id}: {e}")
            return FetchResult.failure(str(e))

        services: list[ServiceOffering] = []
        for entry in raw:
            try:
                services.append(ServiceOffering.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping service for tenant {tenant_id}: {e}")

        self._cache[tenant_id] = (services, self._clock())
        logger.info(f"Loaded {len(services)} services for tenant {tenant_id}")
        return FetchResult(items=list(services))

    def list(self, tenant_id: str) -> list[ServiceOffering]:
        """Cached services for the tenant; empty before the first successful load."""
        entry = self._cache.get(tenant_id)
        return list(entry[0]) if entry else []

    def is_fresh(self, tenant_id: str) -> bool:
        entry = self._cache.get(tenant_id)
        if entry is None:
            return False
        if self._ttl <= 0:
            return True
        return self._clock() - entry[1] < self._ttl

    async def get(self, tenant_id: str) -> FetchResult[ServiceOffering]:
        """Cached services if fresh, otherwise a new load.

        When a reload fails but an older list is cached, the older list is
        served rather than nothing.
        """
        if self.is_fresh(tenant_id):
            return FetchResult(items=self.list(tenant_id))

        result = await self.load(tenant_id)
        if not result.ok and tenant_id in self._cache:
            logger.info(f"Serving stale catalog for tenant {tenant_id}")
            return FetchResult(items=self.list(tenant_id))
        return result

    def invalidate(self, tenant_id: Optional[str] = None) -> None:
        """Drop one tenant's entry, or every entry when no tenant is given."""
        if tenant_id is None:
            self._cache.clear()
        else:
            self._cache.pop(tenant_id, None)
