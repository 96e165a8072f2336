"""
Tests for SmartRouter and the built-in handlers.

Coverage:
- DEFAULT_HANDLERS is total over IntentType
- Default handler fallback order
- Slot-filling asks (origin → destination → dates) and search widgets
- Entity pool merging and handler-provided updates
- Custom handler registration, declined handlers
- History bounding and context isolation
"""

import pytest

from planner.nlu.models import IntentResult, IntentType
from planner.routing import NextActionType, SmartRouter
from planner.routing.handlers import DEFAULT_HANDLERS, GREETINGS, NOT_UNDERSTOOD_RESPONSE, default_handler
from planner.widgets import WidgetType


def intent(intent_type: IntentType, **entities) -> IntentResult:
    return IntentResult(intent=intent_type, confidence=0.6, entities=entities)


class TestHandlerTable:
    def test_every_intent_has_an_entry(self):
        assert set(DEFAULT_HANDLERS) == set(IntentType)

    def test_only_unknown_routes_to_default(self):
        missing = {intent_type for intent_type, handler in DEFAULT_HANDLERS.items() if handler is None}
        assert missing == {IntentType.UNKNOWN}


class TestDefaultHandler:
    def test_clarification_question_first(self):
        result = default_handler(
            IntentResult(
                intent=IntentType.UNKNOWN,
                needs_clarification=True,
                clarification_question="您想做什么？",
                suggested_response="ignored",
            )
        )
        assert result.success is True
        assert result.response == "您想做什么？"
        assert result.next_action.type == NextActionType.ASK

    def test_suggested_response_second(self):
        result = default_handler(IntentResult(intent=IntentType.CHAT, suggested_response="您好"))
        assert result.response == "您好"

    def test_fixed_fallback_last(self):
        result = default_handler(IntentResult(intent=IntentType.UNKNOWN))
        assert result.success is False
        assert result.response == NOT_UNDERSTOOD_RESPONSE


class TestTravelHandlers:
    @pytest.fixture
    def router(self):
        return SmartRouter(session_id="router-test")

    @pytest.mark.asyncio
    async def test_travel_without_destination_asks_for_it(self, router):
        result = await router.route(intent(IntentType.TRAVEL))

        assert result.widget.type == WidgetType.TEXT_INPUT
        assert result.widget.payload["slot"] == "destination"
        assert result.next_action.type == NextActionType.WIDGET

    @pytest.mark.asyncio
    async def test_travel_with_destination_asks_for_origin(self, router):
        result = await router.route(intent(IntentType.TRAVEL, destination="三亚"))

        assert "三亚" in result.response
        assert result.widget.payload["slot"] == "origin"
        assert result.updated_entities == {"destination": "三亚"}

    @pytest.mark.asyncio
    async def test_hotel_uses_collected_destination(self, router):
        await router.route(intent(IntentType.TRAVEL, destination="杭州"))

        result = await router.route(intent(IntentType.HOTEL, travelers=2))

        assert result.widget.type == WidgetType.HOTEL_SEARCH
        assert result.widget.payload == {"city": "杭州", "travelers": 2}

    @pytest.mark.asyncio
    async def test_flight_asks_origin_then_destination_then_dates(self, router):
        first = await router.route(intent(IntentType.FLIGHT))
        assert first.widget.payload["slot"] == "origin"

        second = await router.route(intent(IntentType.FLIGHT, origin="北京"))
        assert second.widget.payload["slot"] == "destination"

        third = await router.route(intent(IntentType.FLIGHT, destination="上海"))
        assert third.widget.type == WidgetType.DATE_RANGE
        assert third.widget.payload["slot"] == "dates"
        assert "minDate" in third.widget.payload

    @pytest.mark.asyncio
    async def test_flight_search_widget_when_complete(self, router):
        result = await router.route(
            intent(
                IntentType.FLIGHT,
                origin="北京",
                destination="上海",
                dates={"start": "2025-05-01", "end": "2025-05-03"},
                travelers=2,
            )
        )

        assert result.widget.type == WidgetType.FLIGHT_SEARCH
        assert result.widget.payload == {
            "origin": "北京",
            "destination": "上海",
            "date": "2025-05-01",
            "travelers": 2,
        }

    @pytest.mark.asyncio
    async def test_train_search_widget(self, router):
        result = await router.route(
            intent(
                IntentType.TRAIN,
                origin="上海",
                destination="成都",
                dates={"start": "2025-05-01", "end": "2025-05-01"},
            )
        )
        assert result.widget.type == WidgetType.TRAIN_SEARCH

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "intent_type,widget_type",
        [
            (IntentType.ATTRACTION, WidgetType.ATTRACTION_CARDS),
            (IntentType.RESTAURANT, WidgetType.PLACE_CARDS),
            (IntentType.MAP, WidgetType.MAP_VIEW),
        ],
    )
    async def test_city_widgets(self, router, intent_type, widget_type):
        result = await router.route(intent(intent_type, destination="成都"))

        assert result.widget.type == widget_type
        assert result.widget.payload["city"] == "成都"

    @pytest.mark.asyncio
    async def test_city_handlers_ask_without_destination(self, router):
        result = await router.route(intent(IntentType.WEATHER))

        assert result.widget is None
        assert result.next_action.type == NextActionType.ASK


class TestPlanAndChatHandlers:
    @pytest.fixture
    def router(self):
        return SmartRouter(session_id="plan-test")

    @pytest.mark.asyncio
    async def test_plan_without_domain_offers_choices(self, router):
        result = await router.route(intent(IntentType.PLAN))

        assert result.widget.type == WidgetType.RADIO_CARDS
        values = {option["value"] for option in result.widget.payload["options"]}
        assert values == {"travel", "study", "project", "event", "life"}

    @pytest.mark.asyncio
    async def test_plan_with_domain_acknowledges(self, router):
        result = await router.route(intent(IntentType.PLAN, domain="study"))

        assert result.widget is None
        assert result.updated_entities == {"domain": "study"}

    @pytest.mark.asyncio
    async def test_greetings_rotate_with_history(self, router):
        first = await router.route(intent(IntentType.CHAT))
        router.add_history("user", "你好")

        second = await router.route(intent(IntentType.CHAT))

        assert first.response == GREETINGS[0]
        assert second.response == GREETINGS[1]


class TestRouterBehaviour:
    @pytest.mark.asyncio
    async def test_unknown_intent_uses_default_handler(self):
        router = SmartRouter()
        result = await router.route(
            IntentResult(
                intent=IntentType.UNKNOWN,
                needs_clarification=True,
                clarification_question="请再说一遍？",
            )
        )
        assert result.response == "请再说一遍？"

    @pytest.mark.asyncio
    async def test_declined_handler_falls_back(self):
        async def decline(result, context):
            return None

        router = SmartRouter()
        router.register(IntentType.HELP, decline)

        result = await router.route(IntentResult(intent=IntentType.HELP, suggested_response="帮助信息"))

        assert result.response == "帮助信息"

    @pytest.mark.asyncio
    async def test_custom_handler_sees_context(self):
        seen = {}

        async def capture(result, context):
            seen["entities"] = dict(context.collected_entities)
            seen["previous"] = context.previous_intent
            return None

        router = SmartRouter(handlers={**DEFAULT_HANDLERS, IntentType.MAP: capture})
        await router.route(intent(IntentType.TRAVEL, destination="厦门"))
        await router.route(intent(IntentType.MAP, budget=3000))

        assert seen["entities"] == {"destination": "厦门", "budget": 3000}
        assert seen["previous"] == IntentType.TRAVEL

    @pytest.mark.asyncio
    async def test_previous_intent_recorded(self):
        router = SmartRouter()
        await router.route(intent(IntentType.HELP))
        assert router.get_context().previous_intent == IntentType.HELP

    def test_history_is_bounded(self):
        router = SmartRouter(history_limit=3)
        for index in range(5):
            router.add_history("user", f"message {index}")

        history = router.get_context().history
        assert [entry.content for entry in history] == ["message 2", "message 3", "message 4"]

    def test_update_entities_merges(self):
        router = SmartRouter()
        router.update_entities({"destination": "三亚", "budget": 1})
        router.update_entities({"budget": 2, "origin": ""})

        assert router.get_context().collected_entities == {"destination": "三亚", "budget": 2}

    def test_clear_context(self):
        router = SmartRouter(session_id="keep-me")
        router.update_entities({"destination": "三亚"})
        router.add_history("user", "hi")

        router.clear_context()

        context = router.get_context()
        assert context.session_id == "keep-me"
        assert context.collected_entities == {}
        assert context.history == []
