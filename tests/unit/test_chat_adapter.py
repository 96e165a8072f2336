"""
Tests for ChatOrchestrator (recognizer → router → workflow per turn).

All tests run in local-only mode; the remote model is never called.
"""

import pytest

from planner.chat_adapter import ChatOrchestrator
from planner.nlu.models import IntentType, Slot
from planner.session_store import SessionStore
from planner.widgets import WidgetType


@pytest.fixture
def orchestrator(local_settings):
    return ChatOrchestrator(store=SessionStore(settings=local_settings), settings=local_settings)


class TestProcess:
    @pytest.mark.asyncio
    async def test_travel_turn_starts_workflow(self, orchestrator):
        result = await orchestrator.process("s1", "我想去三亚玩，预算1万")

        assert result.intent == IntentType.TRAVEL
        assert result.entities == {"destination": "三亚", "budget": 10000}
        assert result.widget.payload["slot"] == "origin"
        assert result.workflow_domain == "travel"
        assert result.workflow_phase == "dates"
        assert [widget.type for widget in result.workflow_widgets] == [WidgetType.DATE_RANGE]
        assert result.workflow_widgets[0].payload == {"slot": "dates", "label": "出行日期"}
        assert result.needs_more_info is True
        assert result.plan is None

    @pytest.mark.asyncio
    async def test_entities_accumulate_across_turns(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩")
        await orchestrator.process("s1", "预算5000块")

        assert orchestrator.get_collected_entities("s1") == {"destination": "三亚", "budget": 5000}

    @pytest.mark.asyncio
    async def test_bare_answer_fills_workflow_slot(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩")

        result = await orchestrator.process("s1", "12月25日到12月28日")

        assert result.intent == IntentType.UNKNOWN
        assert result.workflow_phase == "travelers"
        assert result.response.startswith("好的，已记录。")
        assert "出行人数" in result.response
        assert result.clarification_question is None

    @pytest.mark.asyncio
    async def test_place_answer_to_origin_question_keeps_destination(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩")

        result = await orchestrator.process("s1", "北京")

        collected = orchestrator.get_collected_entities("s1")
        assert collected["destination"] == "三亚"
        assert collected["origin"] == "北京"
        assert result.workflow_phase == "dates"
        assert result.response == "好的，已记录。\n\n接下来请告诉我：出行日期。"
        assert result.clarification_question is None

    @pytest.mark.asyncio
    async def test_typed_domain_choice_starts_workflow(self, orchestrator):
        first = await orchestrator.process("s1", "帮我制定一个计划")
        assert first.widget.type == WidgetType.RADIO_CARDS
        assert first.workflow_domain is None

        chosen = await orchestrator.process("s1", "学习")
        assert chosen.workflow_domain == "study"
        assert chosen.workflow_phase == "goal"
        assert "学习科目" in chosen.response

        answered = await orchestrator.process("s1", "英语")
        assert answered.entities["subject"] == "英语"
        assert answered.workflow_phase == "current"
        assert "当前水平" in answered.response

    @pytest.mark.asyncio
    async def test_travel_intent_switches_away_from_study(self, orchestrator):
        await orchestrator.process("s1", "帮我制定一个英语学习计划")

        result = await orchestrator.process("s1", "我想去三亚玩")

        assert result.workflow_domain == "travel"
        assert result.workflow_phase == "dates"

    @pytest.mark.asyncio
    async def test_unrecognized_turn_without_workflow_asks(self, orchestrator):
        result = await orchestrator.process("s1", "？？？")

        assert result.intent == IntentType.UNKNOWN
        assert result.needs_more_info is True
        assert result.clarification_question is not None
        assert result.workflow_domain is None

    @pytest.mark.asyncio
    async def test_study_plan_flow(self, orchestrator):
        result = await orchestrator.process("s1", "帮我制定一个英语学习计划")

        assert result.intent == IntentType.PLAN
        assert result.workflow_domain == "study"
        assert result.workflow_phase == "current"
        assert "当前水平" in result.response

    @pytest.mark.asyncio
    async def test_chat_turn_has_no_workflow(self, orchestrator):
        result = await orchestrator.process("s1", "你好")

        assert result.intent == IntentType.CHAT
        assert result.workflow_domain is None
        assert result.workflow_widgets == ()

    @pytest.mark.asyncio
    async def test_turns_recorded_in_context(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩")

        session = orchestrator.store.get("s1")
        history = session.recognizer.get_context().history
        assert [entry.role for entry in history] == ["user", "assistant"]
        assert orchestrator.get_current_intent("s1") == IntentType.TRAVEL

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, orchestrator):
        await orchestrator.process("a", "我想去三亚玩")
        await orchestrator.process("b", "我想去大理玩")

        assert orchestrator.get_collected_entities("a")["destination"] == "三亚"
        assert orchestrator.get_collected_entities("b")["destination"] == "大理"

    @pytest.mark.asyncio
    async def test_to_dict_is_serializable(self, orchestrator):
        result = await orchestrator.process("s1", "我想去三亚玩")
        payload = result.to_dict()

        assert payload["intent"] == "travel"
        assert payload["widget"]["type"] == "text_input"
        assert payload["workflow_widgets"][0]["type"] == "date_range"


class TestTextOnlyConversation:
    """A full travel plan collected through plain replies, no widget submissions."""

    @pytest.mark.asyncio
    async def test_travel_plan_from_plain_replies(self, orchestrator):
        opening = await orchestrator.process("s1", "我想去三亚玩")
        assert opening.workflow_phase == "dates"
        assert opening.widget.payload["slot"] == "origin"
        assert "从哪里出发" in opening.response

        origin = await orchestrator.process("s1", "北京")
        assert origin.workflow_phase == "dates"
        assert origin.response.endswith("出行日期。")

        dates = await orchestrator.process("s1", "12月25日到12月28日")
        assert dates.workflow_phase == "travelers"
        assert dates.response.endswith("出行人数。")

        travelers = await orchestrator.process("s1", "2个人")
        assert travelers.workflow_phase == "transport"
        assert travelers.response.endswith("交通方式。")

        transport = await orchestrator.process("s1", "坐飞机")
        assert transport.intent == IntentType.FLIGHT
        assert transport.widget.type == WidgetType.FLIGHT_SEARCH
        assert transport.widget.payload["origin"] == "北京"
        assert transport.widget.payload["destination"] == "三亚"
        assert transport.workflow_phase == "budget"
        assert transport.response.endswith("旅行预算。")

        budget = await orchestrator.process("s1", "预算5000")
        assert budget.workflow_phase == "complete"
        assert budget.plan is not None
        assert budget.plan.title == "三亚 旅行计划"
        assert "三亚 旅行计划" in budget.response

        closing = await orchestrator.process("s1", "谢谢")
        assert closing.workflow_phase == "complete"
        assert closing.plan is None

        assert orchestrator.get_collected_entities("s1") == {
            "destination": "三亚",
            "origin": "北京",
            "dates": {"start": dates.entities["dates"]["start"], "end": dates.entities["dates"]["end"]},
            "travelers": 2,
            "transport_mode": "flight",
            "domain": "travel",
            "budget": 5000,
        }


class TestUpdateEntities:
    @pytest.mark.asyncio
    async def test_widget_submission_completes_travel_plan(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩，预算1万")

        result = orchestrator.update_entities(
            "s1",
            {
                "dates": {"start": "2025-12-25", "end": "2025-12-28"},
                "travelers": 2,
                "transportMode": "train",
            },
        )

        assert result.workflow.is_complete is True
        assert result.workflow.phase == "complete"
        assert result.workflow.plan.title == "三亚 旅行计划"
        assert result.workflow.widgets == ()
        assert result.entities["transport_mode"] == "train"

    @pytest.mark.asyncio
    async def test_plan_generated_once(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩，预算1万")
        orchestrator.update_entities(
            "s1",
            {"dates": {"start": "2025-12-25", "end": "2025-12-28"}, "travelers": 2, "transport_mode": "car"},
        )

        again = orchestrator.update_entities("s1", {"travelers": 3})

        assert again.workflow.is_complete is True
        assert again.workflow.plan is None

    @pytest.mark.asyncio
    async def test_domain_widget_submission_starts_workflow(self, orchestrator):
        await orchestrator.process("s1", "帮我制定一个计划")

        result = orchestrator.update_entities("s1", {"domain": "study"})

        assert result.workflow.domain == "study"
        assert result.workflow.phase == "goal"
        assert [widget.payload["slot"] for widget in result.workflow.widgets] == ["subject"]
        assert orchestrator.store.get("s1").recognizer.pending_slot == Slot.SUBJECT

    @pytest.mark.asyncio
    async def test_new_domain_restarts_plan_generation(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩，预算1万")
        orchestrator.update_entities(
            "s1",
            {"dates": {"start": "2025-12-25", "end": "2025-12-28"}, "travelers": 2, "transport_mode": "car"},
        )

        result = orchestrator.update_entities("s1", {"domain": "life", "habit_name": "跑步", "habit_category": "运动"})

        assert result.workflow.domain == "life"
        assert result.workflow.phase == "frequency"
        assert result.workflow.plan is None

    def test_unknown_keys_ignored(self, orchestrator):
        result = orchestrator.update_entities("s1", {"favourite_color": "blue", "destination": "厦门"})

        assert result.entities == {"destination": "厦门"}
        assert result.workflow.domain is None

    @pytest.mark.asyncio
    async def test_updates_visible_to_next_turn(self, orchestrator):
        orchestrator.update_entities("s1", {"destination": "厦门"})

        result = await orchestrator.process("s1", "帮我找酒店")

        assert result.widget.type == WidgetType.HOTEL_SEARCH
        assert result.widget.payload["city"] == "厦门"


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_state(self, orchestrator):
        await orchestrator.process("s1", "我想去三亚玩")

        orchestrator.reset("s1")

        assert orchestrator.get_collected_entities("s1") == {}
        assert orchestrator.get_current_intent("s1") is None
        assert orchestrator.store.get("s1").workflow.active_workflow is None

    def test_reset_unknown_session_is_noop(self, orchestrator):
        orchestrator.reset("never-seen")
        assert "never-seen" not in orchestrator.store

    def test_llm_not_ready_in_local_mode(self, orchestrator):
        assert orchestrator.is_llm_ready() is False
