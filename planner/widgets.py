"""
Widget directives - structured requests for the UI collaborator.

A directive names what kind of input/output widget should be shown next and
carries a type-specific payload (labels, options, city, dates, ...). Rendering
and the actual searches behind search widgets are done elsewhere.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class WidgetType(str, Enum):
    """Fixed widget vocabulary shared with the UI."""

    TEXT_INPUT = "text_input"
    TEXTAREA = "textarea"
    DATE_PICKER = "date_picker"
    DATE_RANGE = "date_range"
    NUMBER_INPUT = "number_input"
    BUDGET_SLIDER = "budget_slider"
    RADIO_CARDS = "radio_cards"
    MULTI_SELECT = "multi_select"
    FLIGHT_SEARCH = "flight_search"
    TRAIN_SEARCH = "train_search"
    HOTEL_SEARCH = "hotel_search"
    ATTRACTION_CARDS = "attraction_cards"
    PLACE_CARDS = "place_cards"
    MAP_VIEW = "map_view"
    CHECKLIST = "checklist"
    TIMELINE = "timeline"


@dataclass(frozen=True)
class WidgetDirective:
    """Request to show a widget of `type` with `payload`."""

    type: WidgetType
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "payload": dict(self.payload)}
