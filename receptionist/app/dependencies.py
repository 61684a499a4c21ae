from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from receptionist.adapters.factory import ClientDataAdapterFactory
from receptionist.adapters.mongo_client import MongoClientFactory
from receptionist.app.config import Settings, get_settings
from receptionist.orchestrator.graph import Responder, TurnOrchestrator
from receptionist.security.audit import AuditTrail
from receptionist.security.input_guard import InputThreatGuard
from receptionist.security.output_filter import OutputSafetyFilter
from receptionist.services.session import SessionStore
from receptionist.tenancy.registry import InMemoryTenantRegistry


@lru_cache(maxsize=1)
def get_tenant_registry() -> InMemoryTenantRegistry:
    return InMemoryTenantRegistry.from_configurations(get_settings().tenants)


@lru_cache(maxsize=1)
def get_adapter_factory() -> ClientDataAdapterFactory:
    settings = get_settings()
    return ClientDataAdapterFactory(
        mongo_factory=MongoClientFactory(settings.mongo_uri, settings.mongo_database),
        bookings_collection=settings.bookings_collection,
    )


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    return SessionStore(idle_timeout=get_settings().session_idle_timeout_seconds)


@lru_cache(maxsize=1)
def get_audit_trail() -> AuditTrail:
    return AuditTrail()


@lru_cache(maxsize=1)
def get_input_guard() -> InputThreatGuard:
    settings = get_settings()
    return InputThreatGuard(
        length_threshold=settings.guard_length_threshold,
        marker_threshold=settings.guard_marker_threshold,
    )


@lru_cache(maxsize=1)
def get_output_filter() -> OutputSafetyFilter:
    return OutputSafetyFilter()


def get_responder() -> Responder:
    # The LLM tool-calling loop lives outside this service and is injected here.
    raise RuntimeError("No responder configured; override get_responder with the agent loop")


def get_orchestrator(
    settings: Settings = Depends(get_settings),
    tenant_registry: InMemoryTenantRegistry = Depends(get_tenant_registry),
    adapter_factory: ClientDataAdapterFactory = Depends(get_adapter_factory),
    session_store: SessionStore = Depends(get_session_store),
    input_guard: InputThreatGuard = Depends(get_input_guard),
    output_filter: OutputSafetyFilter = Depends(get_output_filter),
    audit: AuditTrail = Depends(get_audit_trail),
    responder: Responder = Depends(get_responder),
) -> TurnOrchestrator:
    return TurnOrchestrator(
        tenant_registry=tenant_registry,
        adapter_factory=adapter_factory,
        session_store=session_store,
        input_guard=input_guard,
        output_filter=output_filter,
        audit=audit,
        responder=responder,
        search_days=settings.first_available_days,
    )
