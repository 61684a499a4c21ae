from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Dict, List, Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from receptionist.adapters.factory import ClientDataAdapterFactory
from receptionist.orchestrator.state import TurnState
from receptionist.schemas.audit import AuditEventType, ThreatLevel
from receptionist.security.audit import AuditTrail
from receptionist.security.input_guard import GENERIC_REJECTION, InputThreatGuard
from receptionist.security.output_filter import OutputSafetyFilter
from receptionist.services.appointments import AppointmentDesk
from receptionist.services.booking import BookingService
from receptionist.services.business_info import BusinessInfoService
from receptionist.services.errors import NotFound
from receptionist.services.session import SessionStore
from receptionist.tenancy.registry import TenantRegistry

logger = logging.getLogger(__name__)

Responder = Callable[[TurnState, AppointmentDesk, BusinessInfoService], str]


class TurnOrchestrator:
    """LangGraph state machine for one guarded conversation turn."""

    def __init__(
        self,
        tenant_registry: TenantRegistry,
        adapter_factory: ClientDataAdapterFactory,
        session_store: SessionStore,
        input_guard: InputThreatGuard,
        output_filter: OutputSafetyFilter,
        audit: AuditTrail,
        responder: Responder,
        search_days: int = 30,
    ) -> None:
        self._tenants = tenant_registry
        self._adapters = adapter_factory
        self._sessions = session_store
        self._guard = input_guard
        self._filter = output_filter
        self._audit = audit
        self._responder = responder
        self._search_days = search_days
        self._graph = self._build_graph().compile()

    def _build_graph(self) -> StateGraph:
        graph = StateGraph(TurnState)

        graph.add_node("screen_input", self._screen_node)
        graph.add_node("reject", self._reject_node)
        graph.add_node("respond", self._respond_node)
        graph.add_node("filter_output", self._filter_node)
        graph.add_node("record_reply", self._record_node)

        graph.add_edge(START, "screen_input")
        graph.add_conditional_edges(
            "screen_input",
            self._screen_router,
            {
                True: "reject",
                False: "respond",
            },
        )
        graph.add_edge("reject", END)
        graph.add_edge("respond", "filter_output")
        graph.add_edge("filter_output", "record_reply")
        graph.add_edge("record_reply", END)

        return graph

    def _screen_node(self, state: TurnState) -> Dict[str, Any]:
        result = self._guard.analyze(state.user_message)
        self._audit.log(
            tenant_id=state.tenant_id,
            session_id=state.session_id,
            event_type=AuditEventType.USER_MESSAGE,
            content=state.user_message,
            threat_level=result.level,
        )
        return {
            "threat_level": result.level,
            "blocked": not result.is_allowed,
            "guard_rule": result.matched_rule,
        }

    def _screen_router(self, state: TurnState) -> bool:
        return state.blocked

    def _reject_node(self, state: TurnState) -> Dict[str, Any]:
        self._audit.log(
            tenant_id=state.tenant_id,
            session_id=state.session_id,
            event_type=AuditEventType.SECURITY_BLOCK,
            content=GENERIC_REJECTION,
            threat_level=state.threat_level,
            metadata={"rule": state.guard_rule or ""},
        )
        return {
            "reply": GENERIC_REJECTION,
            "history": [*state.history, {"role": "assistant", "content": GENERIC_REJECTION}],
        }

    def _respond_node(self, state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
        tools = config["configurable"]
        raw_reply = self._responder(state, tools["desk"], tools["business_info"])
        return {"raw_reply": raw_reply or ""}

    def _filter_node(self, state: TurnState) -> Dict[str, Any]:
        result = self._filter.filter(state.raw_reply, state.tenant_id)
        if result.was_modified:
            self._audit.log(
                tenant_id=state.tenant_id,
                session_id=state.session_id,
                event_type=AuditEventType.OUTPUT_FILTERED,
                content="Agent reply filtered",
                metadata={
                    "redacted_items": ", ".join(sorted(result.redacted_items)),
                    "original_length": str(len(state.raw_reply)),
                },
            )
        return {"reply": result.filtered_content, "redacted_items": sorted(result.redacted_items)}

    def _record_node(self, state: TurnState) -> Dict[str, Any]:
        self._audit.log(
            tenant_id=state.tenant_id,
            session_id=state.session_id,
            event_type=AuditEventType.AGENT_RESPONSE,
            content=state.reply,
        )
        return {"history": [*state.history, {"role": "assistant", "content": state.reply}]}

    def run(
        self,
        tenant_id: str,
        session_id: str,
        message: str,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> TurnState:
        tenant = self._tenants.resolve(tenant_id)
        if tenant is None:
            raise NotFound(f"Tenant '{tenant_id}' not found")

        adapter = self._adapters.adapter_for(tenant)
        context = {"tenant_id": tenant.tenant_id, "session_id": session_id}
        desk = AppointmentDesk(
            BookingService(adapter, tenant.tenant_id),
            self._sessions.get(session_id),
            audit=self._audit,
            context=context,
            search_days=self._search_days,
        )
        business_info = BusinessInfoService(tenant, adapter)

        state = TurnState(
            tenant_id=tenant.tenant_id,
            session_id=session_id,
            user_message=message,
            history=[*(history or []), {"role": "user", "content": message}],
        )
        result = self._graph.invoke(
            asdict(state),
            config={"configurable": {"desk": desk, "business_info": business_info}},
        )
        final = self._to_state(result)
        logger.debug("Turn completed", extra={"tenant_id": tenant.tenant_id, "blocked": final.blocked})
        return final

    @staticmethod
    def _to_state(result: Any) -> TurnState:
        if isinstance(result, TurnState):
            return result
        if is_dataclass(result):
            result = asdict(result)
        if isinstance(result, dict):
            level = result.get("threat_level", ThreatLevel.NONE)
            return TurnState(
                tenant_id=result.get("tenant_id", ""),
                session_id=result.get("session_id", ""),
                user_message=result.get("user_message", ""),
                history=list(result.get("history", [])),
                threat_level=ThreatLevel(level),
                blocked=bool(result.get("blocked", False)),
                guard_rule=result.get("guard_rule"),
                raw_reply=result.get("raw_reply", ""),
                reply=result.get("reply", ""),
                redacted_items=list(result.get("redacted_items", [])),
            )
        raise TypeError(f"Unsupported state result from graph: {type(result)!r}")
