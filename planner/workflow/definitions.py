"""
Domain workflow definitions and their plan generators.

Each domain (travel, study, project, event, life) gets a linear phase graph
and a generator that renders collected entities into a PlanOutput through
fixed Jinja2 templates. Generators perform no I/O: searches are requested as
widget directives.

Also holds the two static lookup tables used by the engine:
- SLOT_WIDGETS: Slot → input widget type (None = no widget)
- INTENT_DOMAIN: IntentType → PlanDomain
"""

from datetime import date
from typing import Any

from jinja2 import Template

from planner.nlu.models import IntentType, PlanDomain, Slot
from planner.widgets import WidgetDirective, WidgetType
from planner.workflow.models import (
    PlanOutput,
    PlanSection,
    WorkflowDefinition,
    WorkflowPhase,
)

DEFAULT_TRIP_DAYS = 3
PENDING = "待定"

# ============================================================================
# LOOKUP TABLES
# ============================================================================

SLOT_WIDGETS: dict[Slot, WidgetType | None] = {
    # Travel
    Slot.DESTINATION: WidgetType.TEXT_INPUT,
    Slot.ORIGIN: WidgetType.TEXT_INPUT,
    Slot.DATES: WidgetType.DATE_RANGE,
    Slot.DATE: WidgetType.DATE_PICKER,
    Slot.TRAVELERS: WidgetType.NUMBER_INPUT,
    Slot.BUDGET: WidgetType.BUDGET_SLIDER,
    Slot.TRANSPORT_MODE: WidgetType.RADIO_CARDS,
    Slot.ACCOMMODATION_TYPE: WidgetType.RADIO_CARDS,
    Slot.HOTEL_STAR: WidgetType.RADIO_CARDS,
    Slot.PREFERENCES: WidgetType.MULTI_SELECT,
    Slot.KEYWORDS: None,
    # General
    Slot.DOMAIN: WidgetType.RADIO_CARDS,
    Slot.GOAL: WidgetType.TEXT_INPUT,
    # Study
    Slot.SUBJECT: WidgetType.TEXT_INPUT,
    Slot.CURRENT_LEVEL: WidgetType.RADIO_CARDS,
    Slot.TARGET_LEVEL: WidgetType.RADIO_CARDS,
    Slot.STUDY_DURATION: WidgetType.TEXT_INPUT,
    Slot.AVAILABLE_TIME_PER_DAY: WidgetType.NUMBER_INPUT,
    Slot.DEADLINE: WidgetType.DATE_PICKER,
    Slot.LEARNING_STYLE: WidgetType.RADIO_CARDS,
    # Project
    Slot.PROJECT_NAME: WidgetType.TEXT_INPUT,
    Slot.PROJECT_TYPE: WidgetType.RADIO_CARDS,
    Slot.PROJECT_BUDGET: WidgetType.BUDGET_SLIDER,
    Slot.TEAM_SIZE: WidgetType.NUMBER_INPUT,
    Slot.ROLES: WidgetType.TEXTAREA,
    Slot.DEADLINE_DATE: WidgetType.DATE_PICKER,
    Slot.MILESTONES: WidgetType.TEXTAREA,
    Slot.DELIVERABLES: WidgetType.TEXTAREA,
    # Event
    Slot.EVENT_NAME: WidgetType.TEXT_INPUT,
    Slot.EVENT_TYPE: WidgetType.RADIO_CARDS,
    Slot.EVENT_DATE: WidgetType.DATE_PICKER,
    Slot.EXPECTED_ATTENDEES: WidgetType.NUMBER_INPUT,
    Slot.EVENT_BUDGET: WidgetType.BUDGET_SLIDER,
    Slot.VENUE_REQUIREMENTS: WidgetType.MULTI_SELECT,
    Slot.CATERING: WidgetType.RADIO_CARDS,
    # Life
    Slot.HABIT_NAME: WidgetType.TEXT_INPUT,
    Slot.HABIT_CATEGORY: WidgetType.RADIO_CARDS,
    Slot.FREQUENCY: WidgetType.RADIO_CARDS,
    Slot.TRIGGER: WidgetType.TEXT_INPUT,
    Slot.REWARD: WidgetType.TEXT_INPUT,
    Slot.DURATION: WidgetType.TEXT_INPUT,
}

SLOT_LABELS: dict[Slot, str] = {
    Slot.DESTINATION: "目的地",
    Slot.ORIGIN: "出发城市",
    Slot.DATES: "出行日期",
    Slot.DATE: "日期",
    Slot.TRAVELERS: "出行人数",
    Slot.BUDGET: "旅行预算",
    Slot.TRANSPORT_MODE: "交通方式",
    Slot.ACCOMMODATION_TYPE: "住宿类型",
    Slot.HOTEL_STAR: "酒店星级",
    Slot.PREFERENCES: "旅行偏好",
    Slot.KEYWORDS: "关键词",
    Slot.DOMAIN: "计划类型",
    Slot.GOAL: "目标",
    Slot.SUBJECT: "学习科目",
    Slot.CURRENT_LEVEL: "当前水平",
    Slot.TARGET_LEVEL: "目标水平",
    Slot.STUDY_DURATION: "学习时长",
    Slot.AVAILABLE_TIME_PER_DAY: "每天可用时间（小时）",
    Slot.DEADLINE: "截止日期",
    Slot.LEARNING_STYLE: "学习方式",
    Slot.PROJECT_NAME: "项目名称",
    Slot.PROJECT_TYPE: "项目类型",
    Slot.PROJECT_BUDGET: "项目预算",
    Slot.TEAM_SIZE: "团队规模",
    Slot.ROLES: "角色分工",
    Slot.DEADLINE_DATE: "截止日期",
    Slot.MILESTONES: "里程碑",
    Slot.DELIVERABLES: "交付物",
    Slot.EVENT_NAME: "活动名称",
    Slot.EVENT_TYPE: "活动类型",
    Slot.EVENT_DATE: "活动日期",
    Slot.EXPECTED_ATTENDEES: "预计人数",
    Slot.EVENT_BUDGET: "活动预算",
    Slot.VENUE_REQUIREMENTS: "场地需求",
    Slot.CATERING: "餐饮安排",
    Slot.HABIT_NAME: "习惯名称",
    Slot.HABIT_CATEGORY: "习惯类别",
    Slot.FREQUENCY: "执行频率",
    Slot.TRIGGER: "触发条件",
    Slot.REWARD: "奖励机制",
    Slot.DURATION: "持续时间",
}

INTENT_DOMAIN: dict[IntentType, PlanDomain] = {
    IntentType.TRAVEL: PlanDomain.TRAVEL,
    IntentType.HOTEL: PlanDomain.TRAVEL,
    IntentType.FLIGHT: PlanDomain.TRAVEL,
    IntentType.TRAIN: PlanDomain.TRAVEL,
    IntentType.ATTRACTION: PlanDomain.TRAVEL,
    IntentType.RESTAURANT: PlanDomain.TRAVEL,
    IntentType.MAP: PlanDomain.TRAVEL,
    IntentType.WEATHER: PlanDomain.TRAVEL,
    IntentType.PLAN: PlanDomain.OTHER,
    IntentType.CHAT: PlanDomain.OTHER,
    IntentType.HELP: PlanDomain.OTHER,
    IntentType.UNKNOWN: PlanDomain.OTHER,
}

TRANSPORT_LABELS: dict[str, str] = {"flight": "飞机", "train": "高铁/火车", "car": "自驾", "bus": "大巴"}

# ============================================================================
# TEMPLATES
# ============================================================================

TRAVEL_OVERVIEW = Template(
    """目的地：{{ destination }}
{% if origin %}出发地：{{ origin }}
{% endif %}出行日期：{{ start or '待定' }} - {{ end or '待定' }}
出行人数：{{ travelers or '待定' }}人
交通方式：{{ transport or '待定' }}
预算：{{ budget or '待定' }}元"""
)

TRAVEL_BUDGET = Template(
    """{% if budget and travelers %}人均预算约 {{ (budget / travelers) | round | int }} 元，每人每天约 {{ (budget / travelers / days) | round | int }} 元。{% elif budget %}总预算 {{ budget }} 元，每天约 {{ (budget / days) | round | int }} 元。{% else %}预算待定，建议提前确定大致范围。{% endif %}"""
)

STUDY_GOAL = Template(
    """学习科目：{{ subject }}
目标水平：{{ target_level or '待定' }}
当前水平：{{ current_level or '待定' }}"""
)

STUDY_TIMELINE = Template(
    """学习时长：{{ study_duration or '待定' }}
每天学习：{{ available_time_per_day or '待定' }}小时
截止日期：{{ deadline or '灵活' }}"""
)

PROJECT_OVERVIEW = Template(
    """项目名称：{{ project_name }}
项目类型：{{ project_type or '待定' }}
团队规模：{{ team_size or '待定' }}人{% if roles %}
角色分工：{{ roles if roles is string else roles | join('、') }}{% endif %}"""
)

EVENT_INFO = Template(
    """活动名称：{{ event_name }}
活动类型：{{ event_type or '待定' }}
活动时间：{{ event_date or '待定' }}
参与人数：{{ expected_attendees or '待定' }}人"""
)

LIFE_GOAL = Template(
    """习惯名称：{{ habit_name }}
类别：{{ habit_category or '待定' }}
频率：{{ frequency or '待定' }}"""
)

LIFE_STRATEGY = Template(
    """触发条件：{{ trigger or '待设定' }}
持续时间：{{ duration or '长期' }}
奖励机制：{{ reward or '自我激励' }}"""
)


def _as_items(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(line.strip() for line in value.splitlines() if line.strip())
    return tuple(str(item) for item in value)


def trip_days(dates: Any) -> int:
    """Inclusive number of days in a {start, end} range; DEFAULT_TRIP_DAYS when unknown."""
    if not isinstance(dates, dict):
        return DEFAULT_TRIP_DAYS
    try:
        start = date.fromisoformat(str(dates.get("start")))
        end = date.fromisoformat(str(dates.get("end")))
    except ValueError:
        return DEFAULT_TRIP_DAYS
    days = (end - start).days + 1
    return days if days > 0 else DEFAULT_TRIP_DAYS


# ============================================================================
# PLAN GENERATORS
# ============================================================================


def generate_travel_plan(entities: dict[str, Any]) -> PlanOutput:
    destination = entities.get(Slot.DESTINATION.value) or "目的地"
    origin = entities.get(Slot.ORIGIN.value)
    dates = entities.get(Slot.DATES.value) if isinstance(entities.get(Slot.DATES.value), dict) else {}
    travelers = entities.get(Slot.TRAVELERS.value)
    budget = entities.get(Slot.BUDGET.value)
    transport_mode = entities.get(Slot.TRANSPORT_MODE.value)
    days = trip_days(dates)

    overview = TRAVEL_OVERVIEW.render(
        destination=destination,
        origin=origin,
        start=dates.get("start"),
        end=dates.get("end"),
        travelers=travelers,
        transport=TRANSPORT_LABELS.get(transport_mode, transport_mode),
        budget=budget,
    )

    itinerary = [f"第1天：抵达{destination}，入住酒店并熟悉周边"]
    for day in range(2, days):
        itinerary.append(f"第{day}天：探索{destination}的景点与美食")
    if days > 1:
        itinerary.append(f"第{days}天：整理行程，{f'返回{origin}' if origin else '返程'}")

    numeric_budget = budget if isinstance(budget, (int, float)) else None
    numeric_travelers = travelers if isinstance(travelers, int) and travelers > 0 else None
    budget_text = TRAVEL_BUDGET.render(budget=numeric_budget, travelers=numeric_travelers, days=days)

    widgets: list[WidgetDirective] = []
    if transport_mode in ("flight", "train"):
        search_payload: dict[str, Any] = {"origin": origin, "destination": destination}
        if dates.get("start"):
            search_payload["date"] = dates["start"]
        if numeric_travelers:
            search_payload["travelers"] = numeric_travelers
        search_type = WidgetType.FLIGHT_SEARCH if transport_mode == "flight" else WidgetType.TRAIN_SEARCH
        widgets.append(WidgetDirective(type=search_type, payload=search_payload))

    hotel_payload: dict[str, Any] = {"city": destination}
    if dates:
        hotel_payload["dates"] = dict(dates)
    if numeric_travelers:
        hotel_payload["travelers"] = numeric_travelers
    widgets.append(WidgetDirective(type=WidgetType.HOTEL_SEARCH, payload=hotel_payload))
    widgets.append(
        WidgetDirective(
            type=WidgetType.ATTRACTION_CARDS,
            payload={"city": destination, "title": f"{destination} 景点"},
        )
    )
    widgets.append(
        WidgetDirective(
            type=WidgetType.MAP_VIEW,
            payload={"city": destination, "zoom": 12, "title": f"{destination} 地图"},
        )
    )

    return PlanOutput(
        title=f"{destination} 旅行计划",
        summary=f"为期 {days} 天的 {destination} 之旅",
        sections=(
            PlanSection(title="行程概览", content=overview),
            PlanSection(title="每日安排", content=f"共 {days} 天", items=tuple(itinerary)),
            PlanSection(title="预算建议", content=budget_text),
        ),
        widgets=tuple(widgets),
        recommendations=(
            "出发前确认证件和天气情况",
            "热门景点建议提前预约",
            "预留一定的机动时间和预算",
        ),
    )


def generate_study_plan(entities: dict[str, Any]) -> PlanOutput:
    subject = entities.get(Slot.SUBJECT.value) or "学习"
    study_duration = entities.get(Slot.STUDY_DURATION.value)
    learning_style = entities.get(Slot.LEARNING_STYLE.value)
    values = {slot.value: entities.get(slot.value) for slot in Slot}
    values[Slot.SUBJECT.value] = subject

    return PlanOutput(
        title=f"{subject} 学习计划",
        summary=f"在 {study_duration or PENDING} 内达到 {entities.get(Slot.TARGET_LEVEL.value) or PENDING} 水平",
        sections=(
            PlanSection(title="学习目标", content=STUDY_GOAL.render(**values)),
            PlanSection(title="时间规划", content=STUDY_TIMELINE.render(**values)),
            PlanSection(
                title="学习建议",
                content=f"推荐学习方式：{learning_style}" if learning_style else "建议结合多种学习方式",
                items=("制定阶段性小目标", "定期复习巩固", "实践应用加深理解"),
            ),
        ),
        widgets=(
            WidgetDirective(type=WidgetType.TIMELINE, payload={"subject": subject, "duration": study_duration}),
            WidgetDirective(type=WidgetType.CHECKLIST, payload={"title": "学习任务清单"}),
        ),
    )


def generate_project_plan(entities: dict[str, Any]) -> PlanOutput:
    values = {slot.value: entities.get(slot.value) for slot in Slot}
    project_name = values[Slot.PROJECT_NAME.value] or "项目"
    values[Slot.PROJECT_NAME.value] = project_name
    deadline_date = values[Slot.DEADLINE_DATE.value]
    deliverables = _as_items(values[Slot.DELIVERABLES.value])
    milestones = _as_items(values[Slot.MILESTONES.value])

    return PlanOutput(
        title=f"{project_name} 项目计划",
        summary=(
            f"项目类型：{values[Slot.PROJECT_TYPE.value] or PENDING} | "
            f"团队规模：{values[Slot.TEAM_SIZE.value] or PENDING}人 | "
            f"预算：{values[Slot.PROJECT_BUDGET.value] or PENDING}元"
        ),
        sections=(
            PlanSection(title="项目概述", content=PROJECT_OVERVIEW.render(**values)),
            PlanSection(title="时间线", content=f"截止日期：{deadline_date or PENDING}", items=milestones),
            PlanSection(title="交付物", content="" if deliverables else "待定义", items=deliverables),
        ),
        widgets=(
            WidgetDirective(type=WidgetType.TIMELINE, payload={"projectName": project_name, "deadline": deadline_date}),
            WidgetDirective(type=WidgetType.CHECKLIST, payload={"title": "项目任务清单"}),
        ),
    )


def generate_event_plan(entities: dict[str, Any]) -> PlanOutput:
    values = {slot.value: entities.get(slot.value) for slot in Slot}
    event_name = values[Slot.EVENT_NAME.value] or "活动"
    values[Slot.EVENT_NAME.value] = event_name
    event_budget = values[Slot.EVENT_BUDGET.value]

    return PlanOutput(
        title=f"{event_name} 活动计划",
        summary=(
            f"{values[Slot.EVENT_TYPE.value] or PENDING} | "
            f"{values[Slot.EXPECTED_ATTENDEES.value] or PENDING}人 | 预算{event_budget or PENDING}元"
        ),
        sections=(
            PlanSection(title="活动信息", content=EVENT_INFO.render(**values)),
            PlanSection(title="预算分配", content=f"总预算：{event_budget or PENDING}元"),
            PlanSection(
                title="场地与餐饮",
                content=f"餐饮安排：{values[Slot.CATERING.value] or PENDING}",
                items=_as_items(values[Slot.VENUE_REQUIREMENTS.value]),
            ),
        ),
        widgets=(WidgetDirective(type=WidgetType.CHECKLIST, payload={"title": "活动筹备清单"}),),
    )


def generate_life_plan(entities: dict[str, Any]) -> PlanOutput:
    values = {slot.value: entities.get(slot.value) for slot in Slot}
    habit_name = values[Slot.HABIT_NAME.value] or "新习惯"
    values[Slot.HABIT_NAME.value] = habit_name

    return PlanOutput(
        title=f"{habit_name} 习惯养成计划",
        summary=(
            f"目标类别：{values[Slot.HABIT_CATEGORY.value] or PENDING} | "
            f"频率：{values[Slot.FREQUENCY.value] or PENDING}"
        ),
        sections=(
            PlanSection(title="目标信息", content=LIFE_GOAL.render(**values)),
            PlanSection(title="执行策略", content=LIFE_STRATEGY.render(**values)),
        ),
        widgets=(WidgetDirective(type=WidgetType.CHECKLIST, payload={"title": "每日打卡"}),),
    )


# ============================================================================
# DEFINITIONS
# ============================================================================


def _phase(
    phase_id: str,
    name: str,
    description: str,
    required: tuple[Slot, ...] = (),
    optional: tuple[Slot, ...] = (),
    next_phase: str | None = None,
) -> WorkflowPhase:
    widgets = tuple(
        widget for widget in (SLOT_WIDGETS[slot] for slot in required) if widget is not None
    )
    return WorkflowPhase(
        id=phase_id,
        name=name,
        description=description,
        required_slots=required,
        optional_slots=optional,
        widgets=widgets,
        next_phase=next_phase,
    )


def _definition(
    domain: PlanDomain,
    name: str,
    description: str,
    phases: list[WorkflowPhase],
    generate_plan,
) -> WorkflowDefinition:
    return WorkflowDefinition(
        domain=domain,
        name=name,
        description=description,
        start_phase=phases[0].id,
        phases={phase.id: phase for phase in phases},
        generate_plan=generate_plan,
    )


def create_travel_workflow() -> WorkflowDefinition:
    return _definition(
        PlanDomain.TRAVEL,
        "旅行规划工作流",
        "完整的旅行规划流程，从目的地选择到行程生成",
        [
            _phase("destination", "确定目的地", "了解用户的旅行目的地",
                   (Slot.DESTINATION,), (Slot.PREFERENCES,), "dates"),
            _phase("dates", "确定出行日期", "确定出发日期和返程日期",
                   (Slot.DATES,), (Slot.DATE,), "travelers"),
            _phase("travelers", "确定出行人员", "确定旅行人数",
                   (Slot.TRAVELERS,), (), "transport"),
            _phase("transport", "选择交通方式", "选择航班、高铁或其他交通方式",
                   (Slot.TRANSPORT_MODE,), (Slot.ORIGIN,), "budget"),
            _phase("budget", "设定预算", "确定旅行预算范围",
                   (Slot.BUDGET,), (), "accommodation"),
            _phase("accommodation", "选择住宿", "选择酒店类型和星级",
                   (), (Slot.HOTEL_STAR, Slot.ACCOMMODATION_TYPE), "complete"),
            _phase("complete", "生成行程", "生成完整的旅行计划"),
        ],
        generate_travel_plan,
    )


def create_study_workflow() -> WorkflowDefinition:
    return _definition(
        PlanDomain.STUDY,
        "学习规划工作流",
        "从学习目标设定到学习路径规划",
        [
            _phase("goal", "确定学习目标", "了解用户想要学习的内容",
                   (Slot.SUBJECT,), (Slot.TARGET_LEVEL,), "current"),
            _phase("current", "了解当前水平", "了解用户当前的知识水平",
                   (Slot.CURRENT_LEVEL,), (Slot.LEARNING_STYLE,), "timeline"),
            _phase("timeline", "确定学习时间", "确定学习时长和截止日期",
                   (Slot.STUDY_DURATION,), (Slot.DEADLINE, Slot.AVAILABLE_TIME_PER_DAY), "resources"),
            _phase("resources", "准备学习资源", "确定可用的学习资源",
                   (), (Slot.PREFERENCES,), "complete"),
            _phase("complete", "生成学习计划", "生成完整的学习计划"),
        ],
        generate_study_plan,
    )


def create_project_workflow() -> WorkflowDefinition:
    return _definition(
        PlanDomain.PROJECT,
        "项目管理规划工作流",
        "从项目启动到里程碑规划",
        [
            _phase("overview", "项目概述", "了解项目基本信息",
                   (Slot.PROJECT_NAME, Slot.PROJECT_TYPE), (Slot.PROJECT_BUDGET,), "team"),
            _phase("team", "团队配置", "确定团队规模和角色分工",
                   (Slot.TEAM_SIZE,), (Slot.ROLES,), "timeline"),
            _phase("timeline", "时间规划", "确定项目截止日期和阶段",
                   (Slot.DEADLINE_DATE,), (Slot.MILESTONES,), "deliverables"),
            _phase("deliverables", "交付物定义", "明确项目的交付物",
                   (Slot.DELIVERABLES,), (), "complete"),
            _phase("complete", "生成项目计划", "生成完整的项目计划"),
        ],
        generate_project_plan,
    )


def create_event_workflow() -> WorkflowDefinition:
    return _definition(
        PlanDomain.EVENT,
        "活动筹备工作流",
        "从活动规划到执行清单",
        [
            _phase("event_info", "活动信息", "了解活动基本信息",
                   (Slot.EVENT_TYPE, Slot.EVENT_NAME), (Slot.EVENT_DATE,), "attendees"),
            _phase("attendees", "参与人数", "确定预期参与人数",
                   (Slot.EXPECTED_ATTENDEES,), (Slot.VENUE_REQUIREMENTS,), "budget"),
            _phase("budget", "预算规划", "确定活动预算",
                   (Slot.EVENT_BUDGET,), (Slot.CATERING,), "venue"),
            _phase("venue", "场地安排", "确定场地需求",
                   (), (Slot.VENUE_REQUIREMENTS,), "complete"),
            _phase("complete", "生成活动计划", "生成完整的活动筹备计划"),
        ],
        generate_event_plan,
    )


def create_life_workflow() -> WorkflowDefinition:
    return _definition(
        PlanDomain.LIFE,
        "生活目标工作流",
        "习惯养成和目标追踪",
        [
            _phase("goal", "确定目标", "了解用户想要达成的目标",
                   (Slot.HABIT_NAME, Slot.HABIT_CATEGORY), (), "frequency"),
            _phase("frequency", "确定频率", "确定习惯执行频率",
                   (Slot.FREQUENCY,), (Slot.TRIGGER, Slot.DURATION, Slot.REWARD), "complete"),
            _phase("complete", "生成计划", "生成习惯养成计划"),
        ],
        generate_life_plan,
    )


def build_default_workflows() -> dict[PlanDomain, WorkflowDefinition]:
    """One definition per plannable domain. OTHER has none."""
    return {
        PlanDomain.TRAVEL: create_travel_workflow(),
        PlanDomain.STUDY: create_study_workflow(),
        PlanDomain.PROJECT: create_project_workflow(),
        PlanDomain.EVENT: create_event_workflow(),
        PlanDomain.LIFE: create_life_workflow(),
    }
