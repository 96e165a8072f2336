"""
Smart Router - Dispatches recognized intents to conversational handlers.

The router keeps a per-session RouteContext (bounded history, entity pool,
previous intent). route() merges the turn's entities into the pool, calls the
handler registered for the intent and falls back to default_handler when the
intent has no handler or the handler declines.
"""

import copy
import logging
from typing import Any

from planner.nlu.models import IntentResult, IntentType, Role, merge_entities
from planner.routing.handlers import DEFAULT_HANDLERS, RouteHandler, default_handler
from planner.routing.models import RouteContext, RouteHistoryEntry, RouteResult

logger = logging.getLogger(__name__)

# Handlers only ever look at recent turns
ROUTE_HISTORY_LIMIT = 20


class SmartRouter:
    """Per-session intent → handler dispatcher."""

    def __init__(
        self,
        session_id: str = "default",
        handlers: dict[IntentType, RouteHandler | None] | None = None,
        history_limit: int = ROUTE_HISTORY_LIMIT,
    ):
        self._handlers: dict[IntentType, RouteHandler | None] = dict(handlers or DEFAULT_HANDLERS)
        self._history_limit = history_limit
        self._context = RouteContext(session_id=session_id)

    def register(self, intent: IntentType, handler: RouteHandler | None) -> None:
        """Replace the handler for `intent` on this router."""
        self._handlers[intent] = handler

    async def route(self, intent_result: IntentResult) -> RouteResult:
        """
        Route one recognized turn.

        1. Merge the turn's entities into the pool (new values win)
        2. Dispatch to the intent's handler, default handler if none or declined
        3. Fold handler-provided entity updates into the pool
        4. Record the intent as previous_intent for the next turn
        """
        context = self._context
        context.collected_entities = merge_entities(context.collected_entities, intent_result.entities)

        handler = self._handlers.get(intent_result.intent)
        result = await handler(intent_result, context) if handler is not None else None

        if result is None:
            logger.debug(
                f"No handler result for intent={intent_result.intent.value}, using default handler",
                extra={"session_id": context.session_id},
            )
            result = default_handler(intent_result)

        if result.updated_entities:
            context.collected_entities = merge_entities(context.collected_entities, result.updated_entities)

        context.previous_intent = intent_result.intent

        logger.info(
            f"Routed intent={intent_result.intent.value} | success={result.success} | "
            f"widget={result.widget.type.value if result.widget else None}",
            extra={"session_id": context.session_id, "intent": intent_result.intent.value},
        )
        return result

    def add_history(self, role: Role, content: str) -> None:
        self._context.history.append(RouteHistoryEntry(role=role, content=content))
        if len(self._context.history) > self._history_limit:
            del self._context.history[: len(self._context.history) - self._history_limit]

    def update_entities(self, entities: dict[str, Any]) -> None:
        """Merge structured entity updates (e.g. from a widget) into the pool."""
        self._context.collected_entities = merge_entities(self._context.collected_entities, entities)

    def get_context(self) -> RouteContext:
        """Copy of the routing context."""
        return copy.deepcopy(self._context)

    def clear_context(self) -> None:
        self._context = RouteContext(session_id=self._context.session_id)
