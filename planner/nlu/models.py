"""
NLU data models for the planning assistant.

This module defines the core data structures shared by the recognizer, the
router and the workflow engine:
- IntentType / ActionType / PlanDomain: closed enumerations
- Slot: every entity key the system knows about
- Entities: TypedDict view of the entity pool
- IntentResult: immutable per-turn recognition output
- ConversationContext: per-session conversational state
- merge_entities(): the single merge rule used everywhere (new value wins)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, TypedDict

Role = Literal["user", "assistant"]


class IntentType(str, Enum):
    """Coarse category of what the user wants."""

    TRAVEL = "travel"  # Trip planning
    HOTEL = "hotel"  # Accommodation search
    FLIGHT = "flight"  # Flight search
    TRAIN = "train"  # High-speed rail / train search
    ATTRACTION = "attraction"  # Sights and things to do
    RESTAURANT = "restaurant"  # Food recommendations
    MAP = "map"  # Show a map / location
    PLAN = "plan"  # Generic plan (study / project / event / life)
    WEATHER = "weather"  # Weather lookup
    CHAT = "chat"  # Small talk / greeting
    HELP = "help"  # What can you do
    UNKNOWN = "unknown"


class ActionType(str, Enum):
    """Concrete action within an intent."""

    SEARCH = "search"
    MODIFY = "modify"
    VIEW = "view"
    CREATE = "create"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    ASK = "ask"
    NAVIGATE = "navigate"


class PlanDomain(str, Enum):
    """Planning domains. OTHER has no workflow."""

    TRAVEL = "travel"
    STUDY = "study"
    PROJECT = "project"
    EVENT = "event"
    LIFE = "life"
    OTHER = "other"


def as_plan_domain(value: Any) -> PlanDomain | None:
    """PlanDomain for a raw value, None when it is not a domain name."""
    if isinstance(value, PlanDomain):
        return value
    if not isinstance(value, str):
        return None
    try:
        return PlanDomain(value)
    except ValueError:
        return None


class Slot(str, Enum):
    """Entity keys. Values are the keys used in entity dicts and in LLM JSON."""

    # Travel
    DESTINATION = "destination"
    ORIGIN = "origin"
    DATES = "dates"
    DATE = "date"
    TRAVELERS = "travelers"
    BUDGET = "budget"
    TRANSPORT_MODE = "transport_mode"
    ACCOMMODATION_TYPE = "accommodation_type"
    HOTEL_STAR = "hotel_star"
    PREFERENCES = "preferences"
    KEYWORDS = "keywords"

    # General
    DOMAIN = "domain"
    GOAL = "goal"

    # Study
    SUBJECT = "subject"
    CURRENT_LEVEL = "current_level"
    TARGET_LEVEL = "target_level"
    STUDY_DURATION = "study_duration"
    AVAILABLE_TIME_PER_DAY = "available_time_per_day"
    DEADLINE = "deadline"
    LEARNING_STYLE = "learning_style"

    # Project
    PROJECT_NAME = "project_name"
    PROJECT_TYPE = "project_type"
    PROJECT_BUDGET = "project_budget"
    TEAM_SIZE = "team_size"
    ROLES = "roles"
    DEADLINE_DATE = "deadline_date"
    MILESTONES = "milestones"
    DELIVERABLES = "deliverables"

    # Event
    EVENT_NAME = "event_name"
    EVENT_TYPE = "event_type"
    EVENT_DATE = "event_date"
    EXPECTED_ATTENDEES = "expected_attendees"
    EVENT_BUDGET = "event_budget"
    VENUE_REQUIREMENTS = "venue_requirements"
    CATERING = "catering"

    # Life
    HABIT_NAME = "habit_name"
    HABIT_CATEGORY = "habit_category"
    FREQUENCY = "frequency"
    TRIGGER = "trigger"
    REWARD = "reward"
    DURATION = "duration"


SLOT_NAMES: frozenset[str] = frozenset(slot.value for slot in Slot)


class DateRange(TypedDict):
    """Inclusive ISO date range (YYYY-MM-DD)."""

    start: str
    end: str


class Entities(TypedDict, total=False):
    """
    Entity pool accumulated during a session.

    All fields are optional; presence is the only "filled" signal.
    Only the most commonly read keys are typed here, the full key set is Slot.
    """

    destination: str
    origin: str
    dates: DateRange
    date: str
    travelers: int
    budget: int
    transport_mode: str  # flight | train | car | bus
    domain: str  # PlanDomain value
    subject: str
    project_name: str
    habit_name: str


def is_filled(value: Any) -> bool:
    """A slot is filled when it holds something other than None / "" / empty collection."""
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict, set)) and len(value) == 0:
        return False
    return True


def merge_entities(existing: dict[str, Any], new: dict[str, Any] | None) -> dict[str, Any]:
    """
    Merge entity dicts with last-write-wins semantics.

    Values from `new` overwrite values in `existing`; unfilled values in `new`
    never erase an existing value. Returns a new dict, inputs are not mutated.

    Example:
        >>> merge_entities({"destination": "A", "budget": 1}, {"destination": "B"})
        {'destination': 'B', 'budget': 1}
    """
    merged = dict(existing)
    if new:
        for key, value in new.items():
            if is_filled(value):
                merged[key] = value
    return merged


@dataclass(frozen=True)
class IntentResult:
    """
    Structured recognition output for one turn.

    Attributes:
        intent: Recognized intent category
        action: Recognized action
        confidence: Confidence score 0.0-1.0
        entities: Entity pool as of this turn (collected + extracted, new wins)
        sub_intents: Secondary intents mentioned in the same utterance
        needs_clarification: True when the intent could not be determined
        clarification_question: Follow-up question to ask, if any
        suggested_response: Default reply for handlers that have nothing better
        reasoning: Model's explanation (remote path only)
        source: "llm" or "local"
    """

    intent: IntentType
    action: ActionType = ActionType.SEARCH
    confidence: float = 0.0
    entities: dict[str, Any] = field(default_factory=dict)
    sub_intents: tuple[IntentType, ...] = ()
    needs_clarification: bool = False
    clarification_question: str | None = None
    suggested_response: str | None = None
    reasoning: str | None = None
    source: str = "local"


@dataclass
class HistoryEntry:
    """One turn of conversation history."""

    role: Role
    content: str
    intent: IntentType | None = None
    entities: dict[str, Any] | None = None


@dataclass
class ConversationState:
    """
    Mutable state tracked across turns.

    pending_slot is the slot the last assistant turn asked for and
    pending_action the action of the turn that left it open. Both are cleared
    once nothing is being asked.
    """

    collected_entities: dict[str, Any] = field(default_factory=dict)
    active_intent: IntentType | None = None
    pending_action: ActionType | None = None
    pending_slot: Slot | None = None
    plan_domain: PlanDomain | None = None


@dataclass
class ConversationContext:
    """Per-session conversational context owned by the IntentRecognizer."""

    session_id: str
    history: list[HistoryEntry] = field(default_factory=list)
    current_state: ConversationState = field(default_factory=ConversationState)

    def recent_history(self, window: int) -> list[HistoryEntry]:
        """Last `window` history entries (oldest first)."""
        if window <= 0:
            return []
        return self.history[-window:]
