"""
Natural-language understanding for the planner.

- entity_extractor: pure regex/gazetteer extraction of slot values
- intent_recognizer: remote classification with local keyword fallback
- models: enums, IntentResult, ConversationContext, merge_entities
"""

from planner.nlu.intent_recognizer import IntentRecognizer
from planner.nlu.models import (
    ActionType,
    ConversationContext,
    IntentResult,
    IntentType,
    PlanDomain,
    Slot,
    merge_entities,
)

__all__ = [
    "ActionType",
    "ConversationContext",
    "IntentRecognizer",
    "IntentResult",
    "IntentType",
    "PlanDomain",
    "Slot",
    "merge_entities",
]
