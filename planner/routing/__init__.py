"""
Routing layer: intent → conversational handler.

Key components:
- SmartRouter: per-session dispatcher holding the entity pool
- handlers: built-in slot-filling handlers, one per intent
- models: RouteContext, RouteResult, NextAction
"""

from planner.routing.models import NextAction, NextActionType, RouteContext, RouteResult
from planner.routing.smart_router import SmartRouter

__all__ = [
    "NextAction",
    "NextActionType",
    "RouteContext",
    "RouteResult",
    "SmartRouter",
]
