"""
Workflow Engine - Per-session slot-filling state machine.

One engine per session, at most one active workflow per engine. The engine
decides which inputs to request next (widgets for the current phase's missing
required slots), advances phases when their completeness predicate holds and
renders the finished plan.

Phase ordering gates requests: only the current phase's required slots are
ever requested, even if later slots are already known or still missing.
"""

import copy
import logging
from typing import Any

from planner.nlu.models import IntentResult, PlanDomain, Slot, as_plan_domain
from planner.widgets import WidgetType
from planner.workflow.definitions import INTENT_DOMAIN, SLOT_WIDGETS, build_default_workflows
from planner.workflow.models import PlanOutput, WorkflowDefinition, WorkflowPhase, WorkflowState

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Drives one domain workflow at a time."""

    def __init__(
        self,
        workflows: dict[PlanDomain, WorkflowDefinition] | None = None,
        session_id: str = "default",
    ):
        self._workflows = dict(workflows) if workflows is not None else build_default_workflows()
        self._session_id = session_id
        self._active: WorkflowDefinition | None = None
        self._state: WorkflowState | None = None

    @property
    def active_workflow(self) -> WorkflowDefinition | None:
        return self._active

    @property
    def active_domain(self) -> PlanDomain | None:
        return self._active.domain if self._active else None

    def get_workflow(self, domain: PlanDomain) -> WorkflowDefinition | None:
        return self._workflows.get(domain)

    def resolve_domain(self, intent_result: IntentResult) -> PlanDomain:
        """
        Domain for an intent: explicit entities.domain when it names a
        registered workflow, else the static intent → domain table.
        """
        explicit = as_plan_domain(intent_result.entities.get(Slot.DOMAIN.value))
        if explicit is not None and explicit in self._workflows:
            return explicit
        return INTENT_DOMAIN[intent_result.intent]

    def start_workflow(self, intent_result: IntentResult) -> WorkflowDefinition | None:
        """
        Start (or restart) the workflow for the intent's domain.

        Returns:
            The started definition, or None when the domain has no workflow
            (the current workflow, if any, is left untouched in that case)
        """
        domain = self.resolve_domain(intent_result)
        workflow = self._workflows.get(domain)

        if workflow is None:
            logger.info(
                f"No workflow registered for domain={domain.value}",
                extra={"session_id": self._session_id, "domain": domain.value},
            )
            return None

        self._active = workflow
        self._state = WorkflowState(current_phase_id=workflow.start_phase)

        logger.info(
            f"Workflow started: {workflow.name} | domain={domain.value} | phase={workflow.start_phase}",
            extra={"session_id": self._session_id, "domain": domain.value, "phase": workflow.start_phase},
        )
        return workflow

    def _current_phase(self) -> WorkflowPhase | None:
        if self._active is None or self._state is None:
            return None
        phase = self._active.phases.get(self._state.current_phase_id)
        assert phase is not None, (
            f"Workflow state references unknown phase '{self._state.current_phase_id}' "
            f"in {self._active.domain.value}"
        )
        return phase

    @property
    def current_phase(self) -> WorkflowPhase | None:
        return self._current_phase()

    def get_missing_slots(self, entities: dict[str, Any]) -> list[Slot]:
        """Required slots of the current phase not present in `entities`."""
        phase = self._current_phase()
        if phase is None or self._state.is_complete:
            return []
        return phase.missing_slots(entities)

    def get_current_widgets(self, entities: dict[str, Any]) -> list[WidgetType]:
        """
        Widget types for the current phase's missing required slots.

        Slots without a widget mapping are skipped. No active workflow → [].
        """
        widgets = []
        for slot in self.get_missing_slots(entities):
            widget = SLOT_WIDGETS[slot]
            if widget is not None:
                widgets.append(widget)
        return widgets

    def advance_phase(self, entities: dict[str, Any]) -> bool:
        """
        Move past the current phase if its completeness predicate holds.

        No-op (returns False) when there is no active workflow, the workflow is
        already complete, or the current phase is not complete yet.
        """
        phase = self._current_phase()
        if phase is None or self._state.is_complete:
            return False

        if not phase.is_complete(entities):
            return False

        state = self._state
        if phase.id not in state.completed_phases:
            state.completed_phases.append(phase.id)

        if phase.next_phase is not None:
            state.current_phase_id = phase.next_phase
            logger.info(
                f"Workflow transition: {phase.id} -> {phase.next_phase} | domain={self._active.domain.value}",
                extra={"session_id": self._session_id, "domain": self._active.domain.value, "phase": phase.next_phase},
            )
        else:
            state.is_complete = True
            logger.info(
                f"Workflow transition: {phase.id} -> <complete> | domain={self._active.domain.value}",
                extra={"session_id": self._session_id, "domain": self._active.domain.value, "phase": phase.id},
            )
        return True

    def advance_while_possible(self, entities: dict[str, Any]) -> list[str]:
        """Advance until blocked or complete. Returns the phases passed."""
        passed = []
        while True:
            phase = self._current_phase()
            if phase is None or not self.advance_phase(entities):
                return passed
            passed.append(phase.id)

    def generate_plan(self, entities: dict[str, Any]) -> PlanOutput | None:
        """Render the active workflow's plan. None without an active workflow."""
        if self._active is None:
            return None
        plan = self._active.generate_plan(entities)
        logger.info(
            f"Plan generated: {plan.title} | sections={len(plan.sections)} | widgets={len(plan.widgets)}",
            extra={"session_id": self._session_id, "domain": self._active.domain.value},
        )
        return plan

    def is_complete(self) -> bool:
        return self._state.is_complete if self._state else False

    def get_state(self) -> WorkflowState | None:
        """Copy of the workflow state (None when no workflow is active)."""
        return copy.deepcopy(self._state)

    def reset(self) -> None:
        self._active = None
        self._state = None
