from __future__ import annotations

from typing import Optional

from receptionist.adapters.base import ClientDataAdapter
from receptionist.schemas.tenant import TenantConfiguration
from receptionist.utils.text import fold

INFO_ALIASES = {
    "location": "location",
    "ubicacion": "location",
    "address": "location",
    "hours": "hours",
    "horarios": "hours",
    "services": "services",
    "servicios": "services",
    "insurance": "insurance",
    "seguros": "insurance",
    "pricing": "pricing",
    "prices": "pricing",
    "precios": "pricing",
}


class BusinessInfoService:
    """Answers provider and business questions from the tenant configuration."""

    def __init__(self, tenant: Optional[TenantConfiguration], adapter: ClientDataAdapter) -> None:
        self._tenant = tenant
        self._adapter = adapter

    def provider_info(self, query: str = "all") -> str:
        if not query or fold(query) in {"all", "todos", "any", "cualquiera"}:
            providers = self._adapter.list_providers()
        else:
            providers = self._adapter.search_providers(query)
        if not providers:
            return f"No providers found for '{query}'"
        return "Available providers:\n" + "\n".join(f"- {p.name} ({p.role})" for p in providers)

    def business_info(self, info_type: str) -> str:
        tenant = self._tenant
        if tenant is None:
            return "Business information is not available."

        topic = INFO_ALIASES.get(fold(info_type or ""))
        if topic == "location":
            return f"{tenant.business_name}\n{tenant.address}\nPhone: {tenant.phone}"
        if topic == "hours":
            return f"Opening hours:\n{tenant.working_hours}"
        if topic == "services":
            if not tenant.services:
                return "Please ask the business about the available services."
            return "Available services:\n" + "\n".join(f"- {service}" for service in tenant.services)
        if topic == "insurance":
            if not tenant.accepted_insurance:
                return "Not applicable, or please check with the business."
            return "Accepted insurance:\n" + "\n".join(f"- {name}" for name in tenant.accepted_insurance)
        if topic == "pricing":
            if not tenant.pricing:
                return "Please check prices at the business."
            return "\n".join(f"- {item}: {price}" for item, price in tenant.pricing.items())
        return "Available information types: location, hours, services, insurance, pricing"
