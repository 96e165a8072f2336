"""Routing data models: RouteContext, RouteResult, NextAction."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from planner.nlu.models import IntentType, Role
from planner.widgets import WidgetDirective


class NextActionType(str, Enum):
    ASK = "ask"
    WIDGET = "widget"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class NextAction:
    """What the UI should do after showing the response."""

    type: NextActionType
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class RouteHistoryEntry:
    role: Role
    content: str


@dataclass
class RouteContext:
    """
    Subset of conversation state visible to handlers.

    Attributes:
        session_id: Session this context belongs to
        history: Recent turns (bounded by the router)
        collected_entities: Entity pool accumulated across turns
        previous_intent: Intent of the prior routed turn
    """

    session_id: str
    history: list[RouteHistoryEntry] = field(default_factory=list)
    collected_entities: dict[str, Any] = field(default_factory=dict)
    previous_intent: IntentType | None = None


@dataclass(frozen=True)
class RouteResult:
    """Handler output for one turn."""

    success: bool
    response: str
    widget: WidgetDirective | None = None
    next_action: NextAction | None = None
    updated_entities: dict[str, Any] | None = None
