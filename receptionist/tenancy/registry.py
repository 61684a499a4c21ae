from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol

from receptionist.schemas.tenant import TenantConfiguration


class TenantRegistry(Protocol):
    def resolve(self, tenant_id: str) -> Optional[TenantConfiguration]:  # pragma: no cover - interface
        ...

    def list_tenant_ids(self) -> List[str]:  # pragma: no cover - interface
        ...


class InMemoryTenantRegistry:
    """Resolves tenants from configurations handed over at construction."""

    def __init__(self, tenants: Dict[str, TenantConfiguration]) -> None:
        if tenants is None:
            raise ValueError("tenants must be provided")
        self._tenants = dict(tenants)
        self._by_folded_id = {key.lower(): config for key, config in self._tenants.items()}

    @classmethod
    def from_configurations(cls, configurations: Iterable[TenantConfiguration]) -> "InMemoryTenantRegistry":
        return cls({config.tenant_id: config for config in configurations})

    def resolve(self, tenant_id: str) -> Optional[TenantConfiguration]:
        if not tenant_id or not tenant_id.strip():
            return None
        return self._by_folded_id.get(tenant_id.strip().lower())

    def list_tenant_ids(self) -> List[str]:
        return list(self._tenants.keys())
