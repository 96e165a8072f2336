"""
Chat adapter - Sequences recognizer, router and workflow engine per turn.

Flow for one turn:
1. IntentRecognizer.recognize(text) → IntentResult (collected + new entities)
2. Record the user turn in the conversation context
3. SmartRouter.route(IntentResult) → RouteResult
4. Workflow step: start a domain workflow when the turn asks for one or names
   a new plan domain, advance as far as the entity pool allows, render the
   plan once it completes
5. Record the assistant turn and the slot it asks for, so a bare answer on the
   next turn ("北京", "英语") lands in that slot

All state lives in the SessionStore owned by the orchestrator.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from planner.nlu.intent_recognizer import normalize_entities
from planner.nlu.models import (
    ActionType,
    IntentResult,
    IntentType,
    PlanDomain,
    Slot,
    as_plan_domain,
    is_filled,
    merge_entities,
)
from planner.routing.models import RouteResult
from planner.session_store import Session, SessionStore
from planner.widgets import WidgetDirective
from planner.workflow.definitions import INTENT_DOMAIN, SLOT_LABELS, SLOT_WIDGETS
from planner.workflow.models import PlanOutput
from shared.config import Settings, get_settings, is_llm_configured

logger = logging.getLogger(__name__)

# Intents that may start (or switch) a domain workflow
WORKFLOW_TRIGGER_INTENTS = frozenset({IntentType.TRAVEL, IntentType.PLAN})


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Workflow progress after a turn or an entity update."""

    domain: str | None = None
    phase: str | None = None
    widgets: tuple[WidgetDirective, ...] = ()
    plan: PlanOutput | None = None
    is_complete: bool = False
    advanced: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProcessResult:
    """Everything the UI needs to render one assistant turn."""

    session_id: str
    intent: IntentType
    action: ActionType
    entities: dict[str, Any]
    response: str
    widget: WidgetDirective | None = None
    workflow_domain: str | None = None
    workflow_phase: str | None = None
    workflow_widgets: tuple[WidgetDirective, ...] = ()
    plan: PlanOutput | None = None
    needs_more_info: bool = False
    clarification_question: str | None = None
    confidence: float = 0.0
    source: str = "local"

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "intent": self.intent.value,
            "action": self.action.value,
            "confidence": self.confidence,
            "source": self.source,
            "entities": dict(self.entities),
            "response": self.response,
            "widget": self.widget.to_dict() if self.widget else None,
            "workflow_domain": self.workflow_domain,
            "workflow_phase": self.workflow_phase,
            "workflow_widgets": [widget.to_dict() for widget in self.workflow_widgets],
            "plan": self.plan.to_dict() if self.plan else None,
            "needs_more_info": self.needs_more_info,
            "clarification_question": self.clarification_question,
        }


@dataclass(frozen=True)
class EntityUpdateResult:
    """Outcome of a structured entity update."""

    session_id: str
    entities: dict[str, Any] = field(default_factory=dict)
    workflow: WorkflowSnapshot = field(default_factory=WorkflowSnapshot)


def _changed(before: dict[str, Any], after: dict[str, Any], slot: Slot) -> bool:
    value = after.get(slot.value)
    return is_filled(value) and value != before.get(slot.value)


def _new_domain(before: dict[str, Any], after: dict[str, Any]) -> PlanDomain | None:
    """Plan domain stated this turn, if it differs from the one already collected."""
    if not _changed(before, after, Slot.DOMAIN):
        return None
    return as_plan_domain(after.get(Slot.DOMAIN.value))


def _asked_slot(route_result: RouteResult | None) -> Slot | None:
    """Slot the router's input widget asks for (search widgets ask for nothing)."""
    if route_result is None or route_result.widget is None:
        return None
    try:
        return Slot(route_result.widget.payload.get("slot"))
    except ValueError:
        return None


def _next_pending(route_result: RouteResult | None, snapshot: WorkflowSnapshot) -> Slot | None:
    """The router's question takes precedence over the workflow's next slot."""
    asked = _asked_slot(route_result)
    if asked is not None:
        return asked
    if snapshot.widgets:
        return Slot(snapshot.widgets[0].payload["slot"])
    return None


class ChatOrchestrator:
    """
    Turn processor over a SessionStore.

    One orchestrator per process (created by the API layer); sessions are
    isolated from each other inside the store.
    """

    def __init__(self, store: SessionStore | None = None, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._store = store or SessionStore(settings=self._settings)

    @property
    def store(self) -> SessionStore:
        return self._store

    async def process(self, session_id: str, text: str) -> ProcessResult:
        """
        Process one user turn.

        Args:
            session_id: Conversation identifier
            text: Raw user message

        Returns:
            ProcessResult with the response, optional widget, workflow progress
            and, when the workflow just completed, the generated plan
        """
        session = self._store.get_or_create(session_id)
        pending = session.recognizer.pending_slot
        previous = session.recognizer.get_context().current_state.collected_entities

        intent_result = await session.recognizer.recognize(text)
        session.recognizer.update_context("user", text, intent_result.intent, intent_result.entities)

        route_result = await session.router.route(intent_result)
        session.router.add_history("user", text)

        entities = merge_entities(intent_result.entities, route_result.updated_entities)
        snapshot = self._step_workflow(
            session,
            entities,
            intent_result,
            chosen_domain=_new_domain(previous, entities),
        )

        # A bare answer ("2个人", "北京") to the question asked last turn
        answered_pending = pending is not None and _changed(previous, entities, pending)
        answered = intent_result.needs_clarification and (bool(snapshot.advanced) or answered_pending)

        response = "好的，已记录。" if answered else route_result.response
        if snapshot.plan is not None:
            response = f"{response}\n\n✅ 信息已收集完整，为您生成了「{snapshot.plan.title}」。"
        elif _asked_slot(route_result) is None and snapshot.widgets:
            labels = "、".join(widget.payload["label"] for widget in snapshot.widgets)
            response = f"{response}\n\n接下来请告诉我：{labels}。"

        session.router.add_history("assistant", response)
        session.recognizer.update_context("assistant", response, entities=route_result.updated_entities)
        session.recognizer.set_pending(_next_pending(route_result, snapshot), intent_result.action)

        logger.info(
            f"Turn processed: intent={intent_result.intent.value} | "
            f"workflow={snapshot.domain} | phase={snapshot.phase} | plan={snapshot.plan is not None}",
            extra={
                "session_id": session_id,
                "intent": intent_result.intent.value,
                "domain": snapshot.domain,
                "phase": snapshot.phase,
            },
        )

        return ProcessResult(
            session_id=session_id,
            intent=intent_result.intent,
            action=intent_result.action,
            entities=entities,
            response=response,
            widget=route_result.widget,
            workflow_domain=snapshot.domain,
            workflow_phase=snapshot.phase,
            workflow_widgets=snapshot.widgets,
            plan=snapshot.plan,
            needs_more_info=(intent_result.needs_clarification and not answered) or bool(snapshot.widgets),
            clarification_question=None if answered else intent_result.clarification_question,
            confidence=intent_result.confidence,
            source=intent_result.source,
        )

    def _step_workflow(
        self,
        session: Session,
        entities: dict[str, Any],
        intent_result: IntentResult | None = None,
        chosen_domain: PlanDomain | None = None,
    ) -> WorkflowSnapshot:
        """
        Start or switch the workflow, then advance it as far as `entities` allow.

        A newly chosen plan domain (typed, or picked in the domain widget) wins
        over the intent's default domain. Only travel/plan intents map to one.
        """
        engine = session.workflow

        target = None
        if chosen_domain is not None and engine.get_workflow(chosen_domain) is not None:
            target = chosen_domain
        elif intent_result is not None and intent_result.intent in WORKFLOW_TRIGGER_INTENTS:
            # Plan requests may use a domain collected earlier
            target = (
                engine.resolve_domain(intent_result)
                if intent_result.intent == IntentType.PLAN
                else INTENT_DOMAIN[intent_result.intent]
            )

        if target is not None and engine.get_workflow(target) is not None and engine.active_domain != target:
            engine.start_workflow(IntentResult(intent=IntentType.PLAN, entities={Slot.DOMAIN.value: target.value}))
            session.plan_generated = False

        if engine.active_workflow is None:
            return WorkflowSnapshot()

        advanced = engine.advance_while_possible(entities)

        plan = None
        if engine.is_complete() and not session.plan_generated:
            plan = engine.generate_plan(entities)
            session.plan_generated = True

        widgets = tuple(
            WidgetDirective(
                type=SLOT_WIDGETS[slot],
                payload={"slot": slot.value, "label": SLOT_LABELS[slot]},
            )
            for slot in engine.get_missing_slots(entities)
            if SLOT_WIDGETS[slot] is not None
        )

        state = engine.get_state()
        return WorkflowSnapshot(
            domain=engine.active_domain.value,
            phase=state.current_phase_id,
            widgets=widgets,
            plan=plan,
            is_complete=state.is_complete,
            advanced=tuple(advanced),
        )

    def update_entities(self, session_id: str, entities: dict[str, Any]) -> EntityUpdateResult:
        """
        Apply a structured entity update (e.g. a submitted widget).

        Unknown slots and empty values are dropped. The update is folded into
        the recognizer and router pools, then the active workflow advances. A
        submitted plan domain starts that domain's workflow.
        """
        session = self._store.get_or_create(session_id)
        cleaned = normalize_entities(entities)

        session.recognizer.add_entities(cleaned)
        session.router.update_entities(cleaned)

        collected = session.router.get_context().collected_entities
        snapshot = self._step_workflow(
            session,
            collected,
            chosen_domain=as_plan_domain(cleaned.get(Slot.DOMAIN.value)),
        )
        session.recognizer.set_pending(_next_pending(None, snapshot))

        logger.info(
            f"Entities updated: {sorted(cleaned)} | workflow={snapshot.domain} | phase={snapshot.phase}",
            extra={"session_id": session_id, "domain": snapshot.domain, "phase": snapshot.phase},
        )
        return EntityUpdateResult(session_id=session_id, entities=collected, workflow=snapshot)

    def get_collected_entities(self, session_id: str) -> dict[str, Any]:
        session = self._store.get(session_id)
        if session is None:
            return {}
        return session.recognizer.get_context().current_state.collected_entities

    def get_current_intent(self, session_id: str) -> IntentType | None:
        session = self._store.get(session_id)
        if session is None:
            return None
        return session.recognizer.get_context().current_state.active_intent

    def reset(self, session_id: str) -> None:
        """Clear a session's context and workflow. Idempotent."""
        self._store.reset(session_id)

    def is_llm_ready(self) -> bool:
        return is_llm_configured(self._settings)
