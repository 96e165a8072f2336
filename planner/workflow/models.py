"""
Workflow data models.

A WorkflowDefinition is a static, linear graph of WorkflowPhase nodes for one
planning domain. Definitions validate themselves on construction so that an
invalid graph fails at import time instead of mid-conversation.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from planner.nlu.models import PlanDomain, Slot, is_filled
from planner.widgets import WidgetDirective, WidgetType

EntityPredicate = Callable[[dict[str, Any]], bool]


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow graph is malformed."""


@dataclass(frozen=True)
class PlanSection:
    title: str
    content: str
    items: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "content": self.content, "items": list(self.items)}


@dataclass(frozen=True)
class PlanOutput:
    """
    Finished plan for a completed workflow.

    Attributes:
        title: Plan title
        summary: One-line summary
        sections: Narrative sections rendered from collected entities
        widgets: Directives requesting domain search data from the UI
        recommendations: Free-form tips
    """

    title: str
    summary: str
    sections: tuple[PlanSection, ...] = ()
    widgets: tuple[WidgetDirective, ...] = ()
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "sections": [section.to_dict() for section in self.sections],
            "widgets": [widget.to_dict() for widget in self.widgets],
            "recommendations": list(self.recommendations),
        }


PlanGenerator = Callable[[dict[str, Any]], PlanOutput]


@dataclass(frozen=True)
class WorkflowPhase:
    """
    One node of a workflow.

    Completeness defaults to "every required slot is filled"; a custom
    predicate replaces that check. The terminal phase (no next_phase) is
    always complete.
    """

    id: str
    name: str
    description: str = ""
    required_slots: tuple[Slot, ...] = ()
    optional_slots: tuple[Slot, ...] = ()
    widgets: tuple[WidgetType, ...] = ()
    next_phase: str | None = None
    predicate: EntityPredicate | None = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.next_phase is None

    def missing_slots(self, entities: dict[str, Any]) -> list[Slot]:
        """Required slots not yet filled, in declaration order."""
        return [slot for slot in self.required_slots if not is_filled(entities.get(slot.value))]

    def is_complete(self, entities: dict[str, Any]) -> bool:
        if self.is_terminal:
            return True
        if self.predicate is not None:
            return self.predicate(entities)
        return not self.missing_slots(entities)


@dataclass(frozen=True)
class WorkflowDefinition:
    """Static per-domain phase graph plus its plan generator."""

    domain: PlanDomain
    name: str
    description: str
    start_phase: str
    phases: dict[str, WorkflowPhase]
    generate_plan: PlanGenerator = field(compare=False, repr=False)

    def __post_init__(self):
        if self.start_phase not in self.phases:
            raise WorkflowDefinitionError(
                f"{self.domain.value}: start phase '{self.start_phase}' is not defined"
            )

        for phase_id, phase in self.phases.items():
            if phase_id != phase.id:
                raise WorkflowDefinitionError(
                    f"{self.domain.value}: phase registered as '{phase_id}' has id '{phase.id}'"
                )
            if phase.next_phase is not None and phase.next_phase not in self.phases:
                raise WorkflowDefinitionError(
                    f"{self.domain.value}: phase '{phase_id}' points at unknown phase '{phase.next_phase}'"
                )

        terminals = [phase.id for phase in self.phases.values() if phase.is_terminal]
        if len(terminals) != 1:
            raise WorkflowDefinitionError(
                f"{self.domain.value}: expected exactly one terminal phase, found {terminals}"
            )

        visited: set[str] = set()
        phase_id: str | None = self.start_phase
        while phase_id is not None:
            if phase_id in visited:
                raise WorkflowDefinitionError(f"{self.domain.value}: cycle through phase '{phase_id}'")
            visited.add(phase_id)
            phase_id = self.phases[phase_id].next_phase

    def phase_order(self) -> list[str]:
        """Phase ids in traversal order from the start phase."""
        order = []
        phase_id: str | None = self.start_phase
        while phase_id is not None:
            order.append(phase_id)
            phase_id = self.phases[phase_id].next_phase
        return order


@dataclass
class WorkflowState:
    """Progress through the active workflow."""

    current_phase_id: str
    completed_phases: list[str] = field(default_factory=list)
    is_complete: bool = False
