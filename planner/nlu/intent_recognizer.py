"""
Intent Recognizer - Turns raw user text into a typed IntentResult.

Two recognition paths:
- Remote: a chat-completion model classifies the turn and returns JSON
  (used when is_llm_configured() is true)
- Local: deterministic keyword scoring plus the entity extractor

Any failure on the remote path (unconfigured, timeout, transport error,
cancellation, missing or invalid JSON) falls through to the local path in the
same turn. The conversation context is never touched by recognition itself;
callers record turns explicitly with update_context().
"""

import asyncio
import copy
import json
import logging
import math
import re
import time
from dataclasses import replace
from typing import Any

from planner.nlu.entity_extractor import contains_keyword, extract_entities, extract_plan_domain
from planner.nlu.models import (
    SLOT_NAMES,
    ActionType,
    ConversationContext,
    HistoryEntry,
    IntentResult,
    IntentType,
    Role,
    Slot,
    as_plan_domain,
    is_filled,
    merge_entities,
)
from shared.config import Settings, get_settings, is_llm_configured
from shared.llm_client import ChatMessage, call_llm

logger = logging.getLogger(__name__)

LOCAL_CONFIDENCE = 0.6
DEFAULT_REMOTE_CONFIDENCE = 0.5
HISTORY_SNIPPET_CHARS = 100

CLARIFICATION_QUESTION = (
    "抱歉，我不太理解您的意思。您是想规划一次旅行、查询交通和住宿，"
    "还是制定学习、项目、活动或生活计划？"
)

# Slots a short bare answer can fill verbatim when the assistant just asked for them
FREE_TEXT_SLOTS: frozenset[Slot] = frozenset({
    Slot.DESTINATION, Slot.ORIGIN, Slot.GOAL, Slot.SUBJECT, Slot.STUDY_DURATION,
    Slot.PROJECT_NAME, Slot.EVENT_NAME, Slot.HABIT_NAME, Slot.TRIGGER,
})
FREE_TEXT_MAX_CHARS = 20

# ============================================================================
# KEYWORD TABLES
# ============================================================================

INTENT_KEYWORDS: dict[IntentType, tuple[str, ...]] = {
    IntentType.TRAVEL: ("旅游", "旅行", "去", "玩", "度假", "出行", "游玩", "想去", "要去", "trip", "travel"),
    IntentType.HOTEL: ("酒店", "住宿", "宾馆", "民宿", "住哪", "订房", "房间", "hotel"),
    IntentType.FLIGHT: ("机票", "飞机", "航班", "坐飞机", "飞", "flight"),
    IntentType.TRAIN: ("火车", "高铁", "动车", "车票", "列车", "train"),
    IntentType.ATTRACTION: ("景点", "玩什么", "打卡", "必去", "推荐去", "有什么好玩的", "attraction"),
    IntentType.RESTAURANT: ("餐厅", "美食", "吃饭", "好吃", "推荐吃", "餐馆", "restaurant"),
    IntentType.MAP: ("地图", "在哪", "位置", "怎么走", "路线", "map"),
    IntentType.PLAN: ("计划", "规划", "安排", "制定", "学习计划", "项目计划", "plan"),
    IntentType.WEATHER: ("天气", "气温", "下雨", "晴天", "冷不冷", "weather"),
    IntentType.CHAT: ("你好", "嗨", "hello", "hi", "在吗", "怎么样"),
    IntentType.HELP: ("怎么用", "帮助", "功能", "能做什么", "使用方法", "help"),
    IntentType.UNKNOWN: (),
}

# Equal keyword counts resolve to the intent listed first here
INTENT_TIE_BREAK_ORDER: tuple[IntentType, ...] = tuple(IntentType)

# Ordered: the first action whose keywords match wins (not a score)
ACTION_KEYWORDS: tuple[tuple[ActionType, tuple[str, ...]], ...] = (
    (ActionType.SEARCH, ("搜索", "查", "找", "看", "有没有", "多少")),
    (ActionType.MODIFY, ("换", "改", "修改", "更换", "不要这个", "重新")),
    (ActionType.VIEW, ("显示", "展示", "看看", "查看")),
    (ActionType.CREATE, ("创建", "制定", "生成", "规划", "安排")),
    (ActionType.CANCEL, ("取消", "不要", "算了", "放弃")),
    (ActionType.CONFIRM, ("确认", "确定", "好的", "可以", "没问题")),
    (ActionType.ASK, ("什么", "怎么", "如何", "为什么", "哪")),
    (ActionType.NAVIGATE, ("去", "跳转", "打开", "进入")),
)

# ============================================================================
# PROMPTS
# ============================================================================

SYSTEM_PROMPT = "你是一个意图识别专家，只返回 JSON 格式的结果，不要有任何其他输出。"

INTENT_RECOGNITION_PROMPT = """你是一个专业的意图识别助手，负责分析用户输入并提取结构化信息。

## 任务
分析用户的输入，识别意图、动作和实体，返回 JSON 格式的结果。

## 意图类型
- travel: 旅行规划（想去某地、旅游、度假）
- hotel: 酒店相关（住宿、宾馆、民宿）
- flight: 航班相关（机票、飞机）
- train: 火车票相关（高铁、动车、火车）
- attraction: 景点查询（景点、游玩、打卡）
- restaurant: 餐厅推荐（美食、吃饭、餐厅）
- map: 地图查看（地图、位置、在哪）
- plan: 通用计划（学习计划、项目计划、活动筹备、生活目标）
- weather: 天气查询（天气、气温、下雨）
- chat: 闲聊（打招呼、聊天、问候）
- help: 帮助（怎么用、功能、帮助）
- unknown: 无法识别

## 动作类型
search, modify, view, create, cancel, confirm, ask, navigate

## 实体类型
- destination: 目的地（城市、景点名）
- origin: 出发地
- dates: 日期范围 {"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}
- date: 单个日期
- travelers: 人数
- budget: 预算（数字，单位元）
- transport_mode: 交通方式 (flight/train/car/bus)
- accommodation_type: 住宿类型
- keywords: 关键词数组
- domain: 计划领域 (travel/study/project/event/life/other)
- goal: 目标描述
- subject / project_name / event_type / habit_name 等: 对应计划领域的信息

## 当前上下文
{CONTEXT}

## 用户输入
{USER_INPUT}

## 输出格式（严格 JSON）
{
    "intent": "意图类型",
    "action": "动作类型",
    "confidence": 0.95,
    "entities": {"destination": "三亚", "budget": 10000},
    "sub_intents": ["hotel", "attraction"],
    "reasoning": "识别理由",
    "suggested_response": "建议的回复内容",
    "needs_clarification": false,
    "clarification_question": "如需澄清，填写澄清问题"
}"""

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Keys the model sometimes uses for slots under another name
ENTITY_KEY_ALIASES: dict[str, str] = {
    "plan_domain": Slot.DOMAIN.value,
    "transport": Slot.TRANSPORT_MODE.value,
    "traveler_count": Slot.TRAVELERS.value,
}


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced {...} span in text, or None.

    Braces inside JSON string literals (including escaped quotes) are ignored,
    so prose before or after the object does not confuse the scan.

    Example:
        >>> extract_json_object('结果如下: {"intent": "travel", "note": "a}b"} 完毕')
        '{"intent": "travel", "note": "a}b"}'
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    return None


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _payload_field(payload: dict[str, Any], name: str) -> Any:
    """Read a snake_case field, accepting its camelCase spelling too."""
    if name in payload:
        return payload[name]
    head, *rest = name.split("_")
    return payload.get(head + "".join(part.capitalize() for part in rest))


def normalize_entities(raw: Any) -> dict[str, Any]:
    """Keep only known, filled slots from a model-provided entity object."""
    if not isinstance(raw, dict):
        return {}

    entities: dict[str, Any] = {}
    for raw_key, value in raw.items():
        key = _snake_case(str(raw_key))
        key = ENTITY_KEY_ALIASES.get(key, key)
        if key not in SLOT_NAMES or not is_filled(value):
            continue
        if key == Slot.DOMAIN.value and as_plan_domain(value) is None:
            continue
        if key == Slot.DATES.value and not (
            isinstance(value, dict) and is_filled(value.get("start")) and is_filled(value.get("end"))
        ):
            continue
        entities[key] = value
    return entities


def suggest_response(intent: IntentType, entities: dict[str, Any]) -> str:
    """Fixed per-intent reply used when a handler has nothing more specific."""
    destination = entities.get(Slot.DESTINATION.value)
    origin = entities.get(Slot.ORIGIN.value)
    from_origin = f"从{origin}" if origin else ""

    responses = {
        IntentType.TRAVEL: f"好的，我来帮您规划{f'去{destination}' if destination else ''}的旅行。",
        IntentType.HOTEL: f"正在为您查找{destination or ''}的酒店信息。",
        IntentType.FLIGHT: f"正在搜索{from_origin}到{destination or '目的地'}的航班。",
        IntentType.TRAIN: f"正在查询{from_origin}到{destination or '目的地'}的高铁。",
        IntentType.ATTRACTION: f"{destination or '这里'}有很多值得去的地方，让我为您推荐。",
        IntentType.RESTAURANT: f"正在为您寻找{destination or '附近'}的美食。",
        IntentType.MAP: f"正在加载{destination or '目的地'}的地图。",
        IntentType.PLAN: "好的，让我帮您制定计划。",
        IntentType.WEATHER: f"正在查询{destination or ''}的天气情况。",
        IntentType.CHAT: "您好！有什么我可以帮助您的吗？",
        IntentType.HELP: "我可以帮您规划旅行、搜索酒店、查询航班高铁、推荐景点美食，也能制定学习、项目、活动和生活计划。您想做什么？",
        IntentType.UNKNOWN: "抱歉，我不太理解您的意思。您可以告诉我您想去哪里旅游，或者需要什么帮助？",
    }
    return responses[intent]


class IntentRecognizer:
    """
    Per-session intent recognizer.

    Owns the session's ConversationContext. One instance per session id;
    instances are created and held by the SessionStore.
    """

    def __init__(self, session_id: str = "default", settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._context = ConversationContext(session_id=session_id)

    @property
    def session_id(self) -> str:
        return self._context.session_id

    async def recognize(self, text: str) -> IntentResult:
        """
        Recognize intent for one user turn.

        Uses the remote model when configured and falls back to local rules on
        any remote failure. The returned entities are the session's collected
        entities with this turn's values merged on top (new values win).

        Never raises for ordinary input.
        """
        start_time = time.time()
        result: IntentResult | None = None

        if is_llm_configured(self._settings):
            result = await self._recognize_with_llm(text)

        if result is None:
            result = self.recognize_locally(text)

        result = self._fill_pending_slot(text, result)

        merged = merge_entities(self._context.current_state.collected_entities, result.entities)
        updates: dict[str, Any] = {"entities": merged}
        if result.source == "local":
            updates["suggested_response"] = suggest_response(result.intent, merged)
        result = replace(result, **updates)

        latency_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Intent recognized: {result.intent.value} | action={result.action.value} | "
            f"confidence={result.confidence:.2f} | path={result.source} | latency={latency_ms:.0f}ms",
            extra={"session_id": self.session_id, "intent": result.intent.value},
        )
        return result

    def recognize_locally(self, text: str) -> IntentResult:
        """
        Deterministic keyword-based recognition.

        Pure: depends only on `text` and the static keyword tables. Entities
        are this turn's extraction only.
        """
        text = text or ""

        scores = {
            intent: sum(1 for keyword in keywords if contains_keyword(text, keyword))
            for intent, keywords in INTENT_KEYWORDS.items()
        }
        best_score = max(scores.values())
        if best_score == 0:
            intent = IntentType.UNKNOWN
        else:
            intent = next(i for i in INTENT_TIE_BREAK_ORDER if scores[i] == best_score)

        action = ActionType.SEARCH
        for candidate, keywords in ACTION_KEYWORDS:
            if any(contains_keyword(text, keyword) for keyword in keywords):
                action = candidate
                break

        entities = extract_entities(text)
        plan_domain = extract_plan_domain(text)
        if plan_domain is not None:
            entities[Slot.DOMAIN.value] = plan_domain.value

        needs_clarification = intent == IntentType.UNKNOWN

        return IntentResult(
            intent=intent,
            action=action,
            confidence=LOCAL_CONFIDENCE,
            entities=entities,
            needs_clarification=needs_clarification,
            clarification_question=CLARIFICATION_QUESTION if needs_clarification else None,
            suggested_response=suggest_response(intent, entities),
            source="local",
        )

    async def _recognize_with_llm(self, text: str) -> IntentResult | None:
        """Remote classification. Returns None on any failure."""
        prompt = (
            INTENT_RECOGNITION_PROMPT
            .replace("{CONTEXT}", self._build_context_summary())
            .replace("{USER_INPUT}", text)
        )
        messages = [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]

        try:
            response = await call_llm(
                messages,
                temperature=self._settings.INTENT_TEMPERATURE,
                settings=self._settings,
            )
        except (asyncio.CancelledError, Exception) as e:
            logger.warning(
                f"Remote intent recognition interrupted, using local rules: {type(e).__name__}",
                extra={"session_id": self.session_id},
            )
            return None

        if not response.success:
            logger.warning(
                f"Remote intent recognition failed, using local rules: {response.error}",
                extra={"session_id": self.session_id},
            )
            return None

        raw_json = extract_json_object(response.content)
        if raw_json is None:
            logger.warning(
                "Remote intent response has no JSON object, using local rules",
                extra={"session_id": self.session_id},
            )
            return None

        try:
            payload = json.loads(raw_json)
        except json.JSONDecodeError as e:
            logger.warning(
                f"Remote intent response is not valid JSON, using local rules: {e}",
                extra={"session_id": self.session_id},
            )
            return None

        if not isinstance(payload, dict):
            logger.warning(
                "Remote intent response is not a JSON object, using local rules",
                extra={"session_id": self.session_id},
            )
            return None

        return self._normalize(payload)

    def _fill_pending_slot(self, text: str, result: IntentResult) -> IntentResult:
        """
        Read a bare answer as the value of the slot the assistant just asked for.

        Only unrecognized turns are reinterpreted. A single place answering an
        origin question becomes the origin instead of a new destination; a
        short answer with nothing else extracted (and no confirm/cancel/question
        wording) fills a free-text slot as is.
        """
        pending = self._context.current_state.pending_slot
        if pending is None or result.intent != IntentType.UNKNOWN or is_filled(result.entities.get(pending.value)):
            return result

        entities = dict(result.entities)
        destination = entities.get(Slot.DESTINATION.value)
        answer = (text or "").strip()

        if pending == Slot.ORIGIN and is_filled(destination):
            entities[Slot.ORIGIN.value] = entities.pop(Slot.DESTINATION.value)
        elif (
            pending in FREE_TEXT_SLOTS
            and not entities
            and result.action == ActionType.SEARCH
            and len(answer) <= FREE_TEXT_MAX_CHARS
            and re.search(r"\w", answer)
        ):
            entities[pending.value] = answer
        else:
            return result

        logger.info(
            f"Bare answer assigned to pending slot: {pending.value}",
            extra={"session_id": self.session_id, "intent": result.intent.value},
        )
        return replace(result, entities=entities)

    def _normalize(self, payload: dict[str, Any]) -> IntentResult:
        """Fill defaults and drop anything outside the closed vocabularies."""
        try:
            intent = IntentType(payload.get("intent"))
        except ValueError:
            intent = IntentType.UNKNOWN

        try:
            action = ActionType(payload.get("action"))
        except ValueError:
            action = ActionType.SEARCH

        confidence = payload.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or math.isnan(confidence):
            confidence = DEFAULT_REMOTE_CONFIDENCE
        confidence = min(1.0, max(0.0, float(confidence)))

        sub_intents: list[IntentType] = []
        raw_sub_intents = _payload_field(payload, "sub_intents")
        if isinstance(raw_sub_intents, list):
            for value in raw_sub_intents:
                try:
                    sub_intent = IntentType(value)
                except ValueError:
                    continue
                if sub_intent not in sub_intents:
                    sub_intents.append(sub_intent)

        needs_clarification = intent == IntentType.UNKNOWN or _payload_field(payload, "needs_clarification") is True

        question = _payload_field(payload, "clarification_question")
        question = question if isinstance(question, str) and question.strip() else None
        if needs_clarification and question is None:
            question = CLARIFICATION_QUESTION

        suggested = _payload_field(payload, "suggested_response")
        reasoning = payload.get("reasoning")

        return IntentResult(
            intent=intent,
            action=action,
            confidence=confidence,
            entities=normalize_entities(payload.get("entities")),
            sub_intents=tuple(sub_intents),
            needs_clarification=needs_clarification,
            clarification_question=question if needs_clarification else None,
            suggested_response=suggested if isinstance(suggested, str) and suggested.strip() else None,
            reasoning=reasoning if isinstance(reasoning, str) else None,
            source="llm",
        )

    def _build_context_summary(self) -> str:
        """Bounded context block for the classification prompt."""
        state = self._context.current_state
        lines: list[str] = []

        if state.active_intent:
            lines.append(f"当前活跃意图: {state.active_intent.value}")
        if state.collected_entities:
            lines.append(
                f"已收集实体: {json.dumps(state.collected_entities, ensure_ascii=False, default=str)}"
            )
        if state.plan_domain:
            lines.append(f"计划领域: {state.plan_domain.value}")
        if state.pending_slot:
            lines.append(f"等待用户回答: {state.pending_slot.value}")

        recent = self._context.recent_history(self._settings.HISTORY_WINDOW)
        if recent:
            lines.append("最近对话:")
            for entry in recent:
                speaker = "用户" if entry.role == "user" else "助手"
                lines.append(f"  {speaker}: {entry.content[:HISTORY_SNIPPET_CHARS]}")

        return "\n".join(lines) if lines else "无上下文信息"

    def update_context(
        self,
        role: Role,
        text: str,
        intent: IntentType | None = None,
        entities: dict[str, Any] | None = None,
    ) -> None:
        """Record a turn and fold its intent/entities into the session state."""
        self._context.history.append(
            HistoryEntry(role=role, content=text, intent=intent, entities=dict(entities) if entities else None)
        )

        state = self._context.current_state
        if intent is not None:
            state.active_intent = intent

        if entities:
            self.add_entities(entities)

    def add_entities(self, entities: dict[str, Any]) -> None:
        """Fold structured entity updates (e.g. from a widget) into the state without a history entry."""
        state = self._context.current_state
        state.collected_entities = merge_entities(state.collected_entities, entities)
        domain = as_plan_domain(entities.get(Slot.DOMAIN.value))
        if domain is not None:
            state.plan_domain = domain

    @property
    def pending_slot(self) -> Slot | None:
        return self._context.current_state.pending_slot

    def set_pending(self, slot: Slot | None, action: ActionType | None = None) -> None:
        """Remember which slot the assistant is waiting for (None clears it)."""
        state = self._context.current_state
        state.pending_slot = slot
        state.pending_action = action if slot is not None else None

    def get_context(self) -> ConversationContext:
        """Snapshot of the conversation context."""
        return copy.deepcopy(self._context)

    def clear_context(self) -> None:
        """Forget history and collected state; the session id is kept."""
        self._context = ConversationContext(session_id=self._context.session_id)
        logger.info("Conversation context cleared", extra={"session_id": self.session_id})
