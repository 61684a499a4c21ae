from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from receptionist.adapters.base import ClientDataAdapter
from receptionist.adapters.memory_adapter import InMemoryClientAdapter
from receptionist.adapters.mongo_client import MongoClientAdapter, MongoClientFactory
from receptionist.schemas.tenant import TenantConfiguration

logger = logging.getLogger(__name__)

IN_MEMORY = "in_memory"
MONGO = "mongo"


class ClientDataAdapterFactory:
    """Builds one adapter per tenant and keeps it for the process lifetime."""

    def __init__(
        self,
        mongo_factory: Optional[MongoClientFactory] = None,
        bookings_collection: str = "bookings",
    ) -> None:
        self._mongo_factory = mongo_factory
        self._bookings_collection = bookings_collection
        self._adapters: Dict[str, ClientDataAdapter] = {}
        self._lock = threading.Lock()

    def adapter_for(self, tenant: TenantConfiguration) -> ClientDataAdapter:
        key = tenant.tenant_id.lower()
        with self._lock:
            adapter = self._adapters.get(key)
            if adapter is None:
                adapter = self.create_adapter(tenant)
                self._adapters[key] = adapter
        return adapter

    def create_adapter(self, tenant: TenantConfiguration) -> ClientDataAdapter:
        providers = tenant.service_providers()
        db_type = (tenant.db_type or IN_MEMORY).strip().lower().replace("-", "_")
        if db_type in (IN_MEMORY, "inmemory"):
            adapter: ClientDataAdapter = InMemoryClientAdapter(providers)
        elif db_type in (MONGO, "mongodb"):
            if self._mongo_factory is None:
                raise RuntimeError("MongoDB must be configured for tenants with db_type 'mongo'")
            collection = self._mongo_factory.get_collection(self._bookings_collection)
            adapter = MongoClientAdapter(collection, tenant.tenant_id, providers)
        else:
            raise ValueError(f"Unsupported db_type for tenant {tenant.tenant_id}: {tenant.db_type}")
        logger.info("Adapter selected", extra={"tenant_id": tenant.tenant_id, "db_type": db_type})
        return adapter
