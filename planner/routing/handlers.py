"""
Built-in intent handlers.

Every handler follows the same slot-filling contract:
1. Read the entities it needs (this turn's values first, then collected ones)
2. If a required precursor slot is missing, ask for it (optionally with an
   input widget requesting exactly that value)
3. Otherwise narrate the action and attach a widget directive describing the
   search or view the UI should show

Handlers never perform searches. Returning None means "declined": the router
falls back to the default handler.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from planner.nlu.models import IntentResult, IntentType, PlanDomain, Slot, is_filled
from planner.routing.models import NextAction, NextActionType, RouteContext, RouteResult
from planner.widgets import WidgetDirective, WidgetType
from shared.config import get_settings

RouteHandler = Callable[[IntentResult, RouteContext], Awaitable[RouteResult | None]]

NOT_UNDERSTOOD_RESPONSE = "抱歉，我不太理解您的意思。您可以告诉我您想去哪里旅游，或者需要什么帮助？"

GREETINGS: tuple[str, ...] = (
    "你好！有什么我可以帮助您的吗？😊",
    "嗨！我是 Aether Plan，您的智能规划助手。有什么想规划的吗？",
    "您好！我可以帮您规划旅行、搜索酒店、查询航班高铁等。您想做什么？",
)

HELP_RESPONSE = """我可以帮您做很多事情：

🌍 **旅行规划**
- 搜索机票、高铁
- 查找酒店
- 推荐景点和美食

📝 **计划制定**
- 学习计划
- 项目规划
- 活动筹备
- 生活目标

您可以这样问我：
- "我想去三亚旅游"
- "帮我查北京到上海的机票"
- "推荐一下成都的美食"
- "制定一个英语学习计划\""""

DOMAIN_OPTIONS: tuple[dict[str, str], ...] = (
    {"value": PlanDomain.TRAVEL.value, "label": "旅行计划", "description": "目的地、交通、住宿和行程"},
    {"value": PlanDomain.STUDY.value, "label": "学习计划", "description": "学习目标、进度和资源"},
    {"value": PlanDomain.PROJECT.value, "label": "项目计划", "description": "团队、里程碑和交付物"},
    {"value": PlanDomain.EVENT.value, "label": "活动筹备", "description": "活动信息、人数、预算和场地"},
    {"value": PlanDomain.LIFE.value, "label": "生活目标", "description": "习惯养成和生活节奏"},
)

DOMAIN_LABELS: dict[str, str] = {option["value"]: option["label"] for option in DOMAIN_OPTIONS}


def _entity(result: IntentResult, context: RouteContext, slot: Slot) -> Any:
    """Slot value from this turn, falling back to the collected pool."""
    value = result.entities.get(slot.value)
    if is_filled(value):
        return value
    value = context.collected_entities.get(slot.value)
    return value if is_filled(value) else None


def _today() -> str:
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date().isoformat()


def _ask(response: str, widget: WidgetDirective | None = None) -> RouteResult:
    return RouteResult(
        success=True,
        response=response,
        widget=widget,
        next_action=NextAction(type=NextActionType.WIDGET if widget else NextActionType.ASK),
    )


def _city_input(label: str, placeholder: str, slot: Slot) -> WidgetDirective:
    return WidgetDirective(
        type=WidgetType.TEXT_INPUT,
        payload={"label": label, "placeholder": placeholder, "icon": "location", "slot": slot.value},
    )


def default_handler(result: IntentResult) -> RouteResult:
    """Clarification question, else suggested response, else a fixed fallback."""
    if result.needs_clarification and result.clarification_question:
        return RouteResult(
            success=True,
            response=result.clarification_question,
            next_action=NextAction(
                type=NextActionType.ASK,
                data={"question": result.clarification_question},
            ),
        )

    if result.suggested_response:
        return RouteResult(success=True, response=result.suggested_response)

    return RouteResult(success=False, response=NOT_UNDERSTOOD_RESPONSE)


async def handle_travel(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)

    if destination:
        return RouteResult(
            success=True,
            response=f"太棒了！**{destination}** 是个令人向往的目的地。🌍\n\n请告诉我，您将从哪里出发？",
            widget=_city_input("出发城市", "输入出发城市...", Slot.ORIGIN),
            next_action=NextAction(type=NextActionType.WIDGET),
            updated_entities={Slot.DESTINATION.value: destination},
        )

    return _ask(
        "🌍 世界很大，你想去哪里探索？\n\n你可以告诉我任何城市，比如：\n"
        "• 国内：北京、成都、丽江、拉萨...\n• 国际：东京、巴黎、纽约、悉尼...",
        _city_input("目的地", "输入想去的城市...", Slot.DESTINATION),
    )


async def handle_hotel(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)
    if not destination:
        return _ask(
            "请问您想查询**哪个城市**的酒店？🏨",
            _city_input("入住城市", "输入城市...", Slot.DESTINATION),
        )

    payload: dict[str, Any] = {"city": destination}
    dates = _entity(result, context, Slot.DATES)
    travelers = _entity(result, context, Slot.TRAVELERS)
    if dates:
        payload["dates"] = dates
    if travelers:
        payload["travelers"] = travelers

    return RouteResult(
        success=True,
        response=f"让我们为您在 **{destination}** 找一家合适的酒店吧！",
        widget=WidgetDirective(type=WidgetType.HOTEL_SEARCH, payload=payload),
        next_action=NextAction(type=NextActionType.WIDGET),
    )


def _make_transport_handler(
    search_widget: WidgetType, verb: str, searching: str
) -> RouteHandler:
    """Flight and train share the origin → destination → dates sequence."""

    async def handler(result: IntentResult, context: RouteContext) -> RouteResult:
        origin = _entity(result, context, Slot.ORIGIN)
        destination = _entity(result, context, Slot.DESTINATION)
        dates = _entity(result, context, Slot.DATES)

        if not origin:
            return _ask(
                "请问您将**从哪里出发**？",
                _city_input("出发城市", "输入出发城市...", Slot.ORIGIN),
            )

        if not destination:
            return _ask(
                "请问您想**去哪里**？",
                _city_input("目的地", "输入目的地城市...", Slot.DESTINATION),
            )

        if not dates:
            return _ask(
                f"了解，从 **{origin}** {verb} **{destination}**。🗓️\n\n请选择您的**出行日期**。",
                WidgetDirective(
                    type=WidgetType.DATE_RANGE,
                    payload={"minDate": _today(), "slot": Slot.DATES.value},
                ),
            )

        payload: dict[str, Any] = {
            "origin": origin,
            "destination": destination,
            "date": dates.get("start") if isinstance(dates, dict) else dates,
        }
        travelers = _entity(result, context, Slot.TRAVELERS)
        if travelers:
            payload["travelers"] = travelers

        return RouteResult(
            success=True,
            response=searching.format(origin=origin, destination=destination),
            widget=WidgetDirective(type=search_widget, payload=payload),
            next_action=NextAction(type=NextActionType.WIDGET),
        )

    return handler


handle_flight = _make_transport_handler(
    WidgetType.FLIGHT_SEARCH, "飞", "正在搜索 {origin} → {destination} 的航班..."
)
handle_train = _make_transport_handler(
    WidgetType.TRAIN_SEARCH, "去", "正在为您查询从 {origin} 到 {destination} 的列车... 🚄"
)


async def handle_attraction(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)
    if not destination:
        return _ask("请问您想查看**哪个城市**的景点？🏞️")

    return RouteResult(
        success=True,
        response=f"{destination} 有这些必去的地方：",
        widget=WidgetDirective(
            type=WidgetType.ATTRACTION_CARDS,
            payload={"city": destination, "title": f"{destination} 景点"},
        ),
        next_action=NextAction(type=NextActionType.WIDGET),
    )


async def handle_restaurant(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)
    if not destination:
        return _ask("请问您想找**哪个城市**的美食？🍜")

    return RouteResult(
        success=True,
        response=f"为您推荐 {destination} 的人气美食：",
        widget=WidgetDirective(
            type=WidgetType.PLACE_CARDS,
            payload={"city": destination, "category": "restaurant", "title": f"{destination} 美食"},
        ),
        next_action=NextAction(type=NextActionType.WIDGET),
    )


async def handle_map(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)
    if not destination:
        return _ask("请问您想查看**哪个城市**的地图？🗺️")

    return RouteResult(
        success=True,
        response=f"正在加载 {destination} 的地图...",
        widget=WidgetDirective(
            type=WidgetType.MAP_VIEW,
            payload={"city": destination, "zoom": 12, "title": f"{destination} 地图"},
        ),
        next_action=NextAction(type=NextActionType.WIDGET),
    )


async def handle_weather(result: IntentResult, context: RouteContext) -> RouteResult:
    destination = _entity(result, context, Slot.DESTINATION)
    if not destination:
        return _ask("请问您想查询**哪个城市**的天气？🌤️")

    dates = _entity(result, context, Slot.DATES)
    when = f"{dates.get('start')} 至 {dates.get('end')}" if isinstance(dates, dict) else "近期"
    return RouteResult(success=True, response=f"正在查询 {destination} {when}的天气情况...")


async def handle_plan(result: IntentResult, context: RouteContext) -> RouteResult:
    domain = _entity(result, context, Slot.DOMAIN)

    if not isinstance(domain, str) or domain not in DOMAIN_LABELS:
        return _ask(
            "好的，让我帮您制定计划。📝\n\n请问您想制定**哪一类**计划？",
            WidgetDirective(
                type=WidgetType.RADIO_CARDS,
                payload={"slot": Slot.DOMAIN.value, "options": [dict(option) for option in DOMAIN_OPTIONS]},
            ),
        )

    return RouteResult(
        success=True,
        response=f"好的，我们来制定您的**{DOMAIN_LABELS[domain]}**。我会一步步收集需要的信息。",
        updated_entities={Slot.DOMAIN.value: domain},
    )


async def handle_chat(result: IntentResult, context: RouteContext) -> RouteResult:
    # Rotates with conversation length so repeated greetings vary
    return RouteResult(success=True, response=GREETINGS[len(context.history) % len(GREETINGS)])


async def handle_help(result: IntentResult, context: RouteContext) -> RouteResult:
    return RouteResult(success=True, response=HELP_RESPONSE)


# Total over IntentType; None routes straight to default_handler
DEFAULT_HANDLERS: dict[IntentType, RouteHandler | None] = {
    IntentType.TRAVEL: handle_travel,
    IntentType.HOTEL: handle_hotel,
    IntentType.FLIGHT: handle_flight,
    IntentType.TRAIN: handle_train,
    IntentType.ATTRACTION: handle_attraction,
    IntentType.RESTAURANT: handle_restaurant,
    IntentType.MAP: handle_map,
    IntentType.PLAN: handle_plan,
    IntentType.WEATHER: handle_weather,
    IntentType.CHAT: handle_chat,
    IntentType.HELP: handle_help,
    IntentType.UNKNOWN: None,
}
