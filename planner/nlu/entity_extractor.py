"""
Entity Extractor - Pure pattern-matching helpers for the planning assistant.

Pulls structured values (destination, origin, dates, budget, traveler count,
transport mode, plan domain, study subject) out of free text. Used by the
local recognition path and usable on its own.

Every function here is pure: no state, no I/O, never raises, returns None
when nothing is found.
"""

import re
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from planner.nlu.models import DateRange, PlanDomain, Slot
from shared.config import get_settings

# ============================================================================
# GAZETTEER
# ============================================================================
# Allow-listed place names. Chinese names are matched as substrings, English
# names case-insensitively on word boundaries. The canonical spelling is returned.

CN_PLACES: tuple[str, ...] = (
    "北京", "上海", "广州", "深圳", "杭州", "成都", "重庆", "西安", "南京", "苏州",
    "厦门", "青岛", "大连", "三亚", "丽江", "大理", "桂林", "长沙", "武汉", "天津",
    "昆明", "拉萨", "哈尔滨", "香港", "澳门", "台北", "张家界", "黄山", "九寨沟", "乌鲁木齐",
    "东京", "大阪", "京都", "巴黎", "纽约", "伦敦", "首尔", "曼谷", "新加坡", "悉尼",
    "罗马", "巴塞罗那", "迪拜", "清迈", "普吉岛", "巴厘岛",
)

EN_PLACES: tuple[str, ...] = (
    "Beijing", "Shanghai", "Guangzhou", "Shenzhen", "Hangzhou", "Chengdu", "Chongqing",
    "Xi'an", "Nanjing", "Suzhou", "Xiamen", "Qingdao", "Dalian", "Sanya", "Lijiang",
    "Dali", "Guilin", "Changsha", "Wuhan", "Tianjin", "Kunming", "Lhasa", "Hong Kong",
    "Macau", "Taipei", "Tokyo", "Osaka", "Kyoto", "Paris", "New York", "London", "Seoul",
    "Bangkok", "Singapore", "Sydney", "Rome", "Barcelona", "Dubai", "Bali", "Phuket",
)

# Phrases that contain a place name but do not name a place to go to.
# A gazetteer hit inside one of these phrases is rejected.
GAZETTEER_DENY_PHRASES: tuple[str, ...] = (
    "北京时间", "北京烤鸭", "上海话", "成都话", "重庆话", "天津包子", "重庆火锅", "长沙臭豆腐",
    "new york times", "paris hilton", "london fog",
)

# Generic / planning vocabulary. A free-form destination candidate containing
# any of these is rejected (deny-list wins over a positive pattern match).
DESTINATION_DENY_TERMS: tuple[str, ...] = (
    "帮我", "为我生成", "帮我生成", "生成", "制作", "写一个",
    "规划", "计划", "行程", "草案", "行程草案", "计划草案", "攻略", "安排",
    "景点", "推荐", "看看", "这个", "那个", "几天", "怎么", "什么",
    "你好", "谢谢", "再见", "没有", "是的", "不是", "好的", "收到", "可以", "不行", "这就", "开始",
    "活动", "会议", "派对", "聚会", "婚礼", "生日", "庆祝",
    "酒店", "住宿", "宾馆", "民宿", "旅馆", "住哪", "住那",
    "我", "想", "旅",
    "plan", "help", "hotel", "trip", "somewhere",
)

_DESTINATION_MARKERS = re.compile(r"(去|到|前往|飞往|飞|\bto\b|\bvisit(?:ing)?\b)", re.IGNORECASE)
_ORIGIN_PREFIX_MARKERS = re.compile(r"(从|\bdeparting from\b|\bdeparting\b|\bfrom\b)", re.IGNORECASE)
_ORIGIN_SUFFIX_MARKER = "出发"
_ROUTE_SEPARATOR = re.compile(r"\s*(?:到|飞|去|至|→|->|-|—|\bto\b)\s*", re.IGNORECASE)

_DESTINATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"去(.{2,10}?)(?:旅行|旅游|玩|转转|看看|游玩)"),
    re.compile(r"想去(?:到)?(.{2,10})$"),
    re.compile(r"([一-龥]{2,6})(?:之旅|游|行程)"),
    re.compile(r"目的地(?:是)?[:：]?\s*(.{2,10})"),
    re.compile(r"^(?:去|到)\s*(.{2,10})$"),
    re.compile(r"\b(?:go|going|travel|travelling|traveling|trip|fly|flying)\s+to\s+([A-Z][a-zA-Z]+(?:\s[A-Z][a-zA-Z]+)?)"),
)

_CANDIDATE_STRIP = re.compile(r"[，。！？、,.!?\s]")

# ============================================================================
# NUMBERS
# ============================================================================

_CN_DIGITS: dict[str, int] = {
    "零": 0, "一": 1, "二": 2, "两": 2, "三": 3, "四": 4,
    "五": 5, "六": 6, "七": 7, "八": 8, "九": 9,
}
_CN_NUMERAL = "[一二两三四五六七八九十]+"

_BUDGET_MULTIPLIERS: dict[str, int] = {
    "万": 10000, "w": 10000,
    "千": 1000, "k": 1000,
    "块": 1, "元": 1, "rmb": 1, "yuan": 1,
}
_BUDGET_UNITS = r"(万|w(?![a-z])|千|k(?![a-z])|块|元|rmb|yuan)"

_BUDGET_PREFIX = re.compile(
    rf"(?:预算|budget)[^\d一二两三四五六七八九十]{{0,4}}(\d+(?:\.\d+)?|{_CN_NUMERAL})\s*{_BUDGET_UNITS}?"
)
_BUDGET_SUFFIX_DIGITS = re.compile(rf"(\d+(?:\.\d+)?)\s*{_BUDGET_UNITS}")
# Chinese numerals only with large units ("一块去" means "together", not 1 yuan)
_BUDGET_SUFFIX_CN = re.compile(rf"({_CN_NUMERAL})\s*(万|千)")
_BUDGET_CURRENCY_PREFIX = re.compile(r"[¥￥]\s*(\d+(?:\.\d+)?)")

_TRAVELER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"一家(\d+|{_CN_NUMERAL})口"),
    re.compile(rf"(\d+|{_CN_NUMERAL})\s*个?\s*(?:人|位)(?!民币)"),
    re.compile(r"(\d+)\s*(?:people|persons|travell?ers|adults|pax)\b", re.IGNORECASE),
)

# ============================================================================
# DATES
# ============================================================================

_RANGE_SEPARATOR = r"\s*(?:-|~|–|—|到|至|\bto\b|\buntil\b)\s*"

_DATE_RANGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        rf"(\d{{1,2}})月(\d{{1,2}})[日号]?{_RANGE_SEPARATOR}(\d{{1,2}})月(\d{{1,2}})[日号]?",
        re.IGNORECASE,
    ),
    re.compile(
        rf"(\d{{1,2}})/(\d{{1,2}}){_RANGE_SEPARATOR}(\d{{1,2}})/(\d{{1,2}})",
        re.IGNORECASE,
    ),
    # "12.25-12.28", but not decimal amounts such as "预算1.5-2.5万"
    re.compile(
        rf"(?<![\d.])(?<!预算)(\d{{1,2}})\.(\d{{1,2}}){_RANGE_SEPARATOR}(\d{{1,2}})\.(\d{{1,2}})"
        r"(?![\d.]|\s*(?:万|千|w(?![a-z])|k(?![a-z])|块|元|rmb|yuan))",
        re.IGNORECASE,
    ),
)
# "3月5日到8日": end month omitted, same month as start
_SAME_MONTH_RANGE = re.compile(
    rf"(\d{{1,2}})月(\d{{1,2}})[日号]?{_RANGE_SEPARATOR}(\d{{1,2}})[日号]",
    re.IGNORECASE,
)
_SINGLE_DATE = re.compile(r"(\d{1,2})月(\d{1,2})[日号]?")

# ============================================================================
# KEYWORD FAMILIES
# ============================================================================

TRANSPORT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("flight", ("飞机", "航班", "机票", "坐飞", "flight", "plane", "fly")),
    ("train", ("高铁", "火车", "动车", "列车", "train", "rail")),
    ("car", ("自驾", "开车", "租车", "drive", "car")),
    ("bus", ("大巴", "巴士", "长途车", "bus", "coach")),
)

# Checked in order: the first family with a hit wins
DOMAIN_KEYWORDS: tuple[tuple[PlanDomain, tuple[str, ...]], ...] = (
    (PlanDomain.STUDY, ("学习", "备考", "课程", "复习", "考试", "刷题", "学习计划", "study", "learn")),
    (PlanDomain.PROJECT, ("项目", "开发", "构建", "搭建", "交付", "里程碑", "roadmap", "project")),
    (PlanDomain.EVENT, (
        "活动", "会议", "发布会", "婚礼", "聚会", "派对", "生日", "庆祝", "周年", "团建",
        "年会", "晚会", "酒会", "沙龙", "论坛", "展会", "聚餐", "event", "conference", "party",
    )),
    (PlanDomain.LIFE, ("生活", "习惯", "健身", "饮食", "作息", "人生", "life plan", "habit")),
    (PlanDomain.TRAVEL, (
        "旅行", "旅游", "行程", "景点", "酒店", "机票", "航班", "高铁", "火车", "自驾", "trip", "travel",
    )),
)

_SUBJECT_SEPARATORS: tuple[str, ...] = ("一个", "一份", "制定", "做个", "帮我", "的", "个", "份")
_SUBJECT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:学习|备考|学)([一-龥A-Za-z]{2,8}?)(?:计划|的|，|。|！|,|\.|!|$)"),
    re.compile(
        r"\b(?:learn|learning|study|studying)\s+([A-Za-z][A-Za-z ]{1,20}?)(?:\s+(?:in|for|within|by)\b|[.,!?]|$)",
        re.IGNORECASE,
    ),
)


def contains_keyword(text: str, keyword: str) -> bool:
    """
    Keyword containment with word boundaries for ASCII keywords.

    Chinese keywords are plain substrings; ASCII keywords must stand alone
    so that "hi" does not match "this".
    """
    if keyword.isascii():
        return re.search(rf"(?<![a-z0-9]){re.escape(keyword.lower())}(?![a-z0-9])", text.lower()) is not None
    return keyword in text


def _cn_to_int(token: str) -> int | None:
    """Convert digits or a small Chinese numeral (up to 99) to int."""
    if token.isdigit():
        return int(token)
    if not token:
        return None
    if "十" in token:
        tens_part, _, units_part = token.partition("十")
        tens = _CN_DIGITS.get(tens_part, 0) if tens_part else 1
        units = _CN_DIGITS.get(units_part, 0) if units_part else 0
        if (tens_part and tens_part not in _CN_DIGITS) or (units_part and units_part not in _CN_DIGITS):
            return None
        return tens * 10 + units
    if len(token) == 1 and token in _CN_DIGITS:
        return _CN_DIGITS[token]
    return None


def _to_number(token: str) -> float | None:
    try:
        return float(token)
    except ValueError:
        value = _cn_to_int(token)
        return float(value) if value is not None else None


def _reference_date(reference: date | datetime | None) -> date:
    # No reference: today in the configured timezone decides "this year"
    if reference is None:
        return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()
    if isinstance(reference, datetime):
        return reference.date()
    return reference


# ============================================================================
# PLACES
# ============================================================================


def _gazetteer_hits(text: str, start: int = 0) -> list[tuple[int, str]]:
    """All (position, canonical name) gazetteer hits at or after `start`, deny-filtered."""
    lowered = text.lower()
    hits: list[tuple[int, str]] = []

    for place in CN_PLACES:
        pos = lowered.find(place, start)
        while pos != -1:
            hits.append((pos, place))
            pos = lowered.find(place, pos + 1)

    for place in EN_PLACES:
        for match in re.finditer(rf"(?<![a-z0-9]){re.escape(place.lower())}(?![a-z0-9])", lowered[start:]):
            hits.append((start + match.start(), place))

    accepted = []
    for pos, place in hits:
        end = pos + len(place)
        denied = False
        for phrase in GAZETTEER_DENY_PHRASES:
            if place.lower() not in phrase:
                continue
            phrase_pos = lowered.find(phrase)
            while phrase_pos != -1:
                if phrase_pos <= pos and end <= phrase_pos + len(phrase):
                    denied = True
                    break
                phrase_pos = lowered.find(phrase, phrase_pos + 1)
            if denied:
                break
        if not denied:
            accepted.append((pos, place))

    # Earliest position first, longest name first at the same position
    accepted.sort(key=lambda hit: (hit[0], -len(hit[1])))
    return accepted


def _first_gazetteer_hit(text: str, start: int = 0) -> str | None:
    hits = _gazetteer_hits(text, start)
    return hits[0][1] if hits else None


def _is_valid_candidate(candidate: str) -> bool:
    if not 2 <= len(candidate) <= 10:
        return False
    if candidate.isdigit():
        return False
    lowered = candidate.lower()
    return not any(term in lowered for term in DESTINATION_DENY_TERMS)


def extract_destination(text: str) -> str | None:
    """
    Extract the destination place from text.

    Resolution order:
    1. First gazetteer place after a destination marker ("去", "到", "to", ...)
    2. First gazetteer place anywhere in the text
    3. Free-form phrase patterns ("去X玩", "X之旅", "目的地是X", "go to X"),
       accepted only when the candidate has no deny-listed vocabulary

    Examples:
        >>> extract_destination("我想去三亚玩")
        '三亚'
        >>> extract_destination("从北京出发去上海")
        '上海'
        >>> extract_destination("帮我做个计划") is None
        True
    """
    if not text:
        return None

    for marker in _DESTINATION_MARKERS.finditer(text):
        hit = _first_gazetteer_hit(text, marker.end())
        if hit:
            return hit

    hit = _first_gazetteer_hit(text)
    if hit:
        return hit

    stripped = text.strip()
    for pattern in _DESTINATION_PATTERNS:
        match = pattern.search(stripped)
        if match:
            candidate = _CANDIDATE_STRIP.sub("", match.group(1)) if not match.group(1).isascii() \
                else match.group(1).strip()
            if _is_valid_candidate(candidate):
                return candidate

    return None


def extract_origin(text: str) -> str | None:
    """
    Extract the departure place from text.

    Looks for an origin marker ("从", "from", "departing") and takes the first
    gazetteer place after it; then "<place>出发"; then a "<place>到<place>" route.

    Examples:
        >>> extract_origin("从北京出发去上海")
        '北京'
        >>> extract_origin("上海到成都的高铁")
        '上海'
    """
    if not text:
        return None

    for marker in _ORIGIN_PREFIX_MARKERS.finditer(text):
        hit = _first_gazetteer_hit(text, marker.end())
        if hit:
            return hit

    lowered = text.lower()
    hits = _gazetteer_hits(text)

    suffix_pos = lowered.find(_ORIGIN_SUFFIX_MARKER)
    while suffix_pos != -1:
        for pos, place in reversed(hits):
            if pos + len(place) <= suffix_pos and not lowered[pos + len(place):suffix_pos].strip():
                return place
        suffix_pos = lowered.find(_ORIGIN_SUFFIX_MARKER, suffix_pos + 1)

    for index, (pos, place) in enumerate(hits[:-1]):
        next_pos, _ = hits[index + 1]
        between = lowered[pos + len(place):next_pos]
        if between and _ROUTE_SEPARATOR.fullmatch(between):
            return place

    return None


# ============================================================================
# DATES
# ============================================================================


def _build_range(
    year: int, start_month: int, start_day: int, end_month: int, end_day: int
) -> DateRange | None:
    # End before start (month/day) means the trip crosses into next year
    crosses_year = (end_month, end_day) < (start_month, start_day)
    end_year = year + 1 if crosses_year else year
    try:
        start = date(year, start_month, start_day)
        end = date(end_year, end_month, end_day)
    except ValueError:
        return None
    return {"start": start.isoformat(), "end": end.isoformat()}


def extract_date_range(text: str, reference: date | datetime | None = None) -> DateRange | None:
    """
    Extract a date range such as "12月25日 to 1月2日" or "3/15-3/20".

    The year comes from `reference` (today in the configured TIMEZONE by default). When
    the end month/day precedes the start, the end falls in the following year.

    Examples:
        >>> extract_date_range("12月25日 to 1月2日", reference=date(2025, 6, 1))
        {'start': '2025-12-25', 'end': '2026-01-02'}
    """
    if not text:
        return None

    year = _reference_date(reference).year

    for pattern in _DATE_RANGE_PATTERNS:
        match = pattern.search(text)
        if match:
            start_month, start_day, end_month, end_day = (int(g) for g in match.groups())
            return _build_range(year, start_month, start_day, end_month, end_day)

    match = _SAME_MONTH_RANGE.search(text)
    if match:
        month, start_day, end_day = (int(g) for g in match.groups())
        return _build_range(year, month, start_day, month, end_day)

    return None


def extract_date(text: str, reference: date | datetime | None = None) -> str | None:
    """Extract a single "<m>月<d>" date as ISO string. None when a range is present."""
    if not text or extract_date_range(text, reference):
        return None

    match = _SINGLE_DATE.search(text)
    if not match:
        return None

    year = _reference_date(reference).year
    try:
        return date(year, int(match.group(1)), int(match.group(2))).isoformat()
    except ValueError:
        return None


# ============================================================================
# NUMBERS
# ============================================================================


def extract_budget(text: str) -> int | None:
    """
    Extract a budget amount.

    Accepts a number followed by an allow-listed unit (万/w, 千/k, 块/元/rmb/yuan),
    a number after "预算"/"budget", or a "¥" prefix.

    Examples:
        >>> extract_budget("预算1万")
        10000
        >>> extract_budget("大概5000块")
        5000
    """
    if not text:
        return None

    lowered = text.lower()

    for pattern in (_BUDGET_PREFIX, _BUDGET_SUFFIX_DIGITS, _BUDGET_SUFFIX_CN):
        match = pattern.search(lowered)
        if match:
            amount = _to_number(match.group(1))
            if amount is None:
                continue
            unit = match.group(2) if match.lastindex and match.lastindex >= 2 else None
            multiplier = _BUDGET_MULTIPLIERS.get(unit or "", 1)
            return int(round(amount * multiplier))

    match = _BUDGET_CURRENCY_PREFIX.search(lowered)
    if match:
        return int(round(float(match.group(1))))

    return None


def extract_traveler_count(text: str) -> int | None:
    """
    Extract the number of travelers ("3人", "两个人", "一家三口", "4 people").

    Examples:
        >>> extract_traveler_count("一家三口去三亚")
        3
    """
    if not text:
        return None

    for pattern in _TRAVELER_PATTERNS:
        match = pattern.search(text)
        if match:
            count = _cn_to_int(match.group(1))
            if count and count > 0:
                return count
    return None


def extract_transport_mode(text: str) -> str | None:
    """Extract transport mode: flight, train, car or bus."""
    if not text:
        return None

    for mode, keywords in TRANSPORT_KEYWORDS:
        if any(contains_keyword(text, keyword) for keyword in keywords):
            return mode
    return None


# ============================================================================
# PLANNING
# ============================================================================


def extract_plan_domain(text: str) -> PlanDomain | None:
    """Detect the planning domain (study > project > event > life > travel)."""
    if not text:
        return None

    for domain, keywords in DOMAIN_KEYWORDS:
        if any(contains_keyword(text, keyword) for keyword in keywords):
            return domain

    if extract_transport_mode(text):
        return PlanDomain.TRAVEL
    return None


def extract_subject(text: str) -> str | None:
    """
    Extract the study subject ("英语学习计划" -> "英语", "learn Spanish" -> "Spanish").
    """
    if not text:
        return None

    index = text.find("学习计划")
    if index > 0:
        head = text[:index]
        cut = 0
        for separator in _SUBJECT_SEPARATORS:
            pos = head.rfind(separator)
            if pos != -1:
                cut = max(cut, pos + len(separator))
        candidate = _CANDIDATE_STRIP.sub("", head[cut:])
        if 1 <= len(candidate) <= 10 and _is_valid_candidate(candidate * 2 if len(candidate) == 1 else candidate):
            return candidate

    for pattern in _SUBJECT_PATTERNS:
        match = pattern.search(text)
        if match:
            candidate = match.group(1).strip()
            if candidate and "计划" not in candidate:
                return candidate

    return None


def extract_entities(text: str, reference: date | datetime | None = None) -> dict[str, Any]:
    """
    Run every extractor and return only the slots that were found.

    Examples:
        >>> extract_entities("我想去三亚玩，预算1万")
        {'destination': '三亚', 'budget': 10000}
    """
    found: dict[str, Any] = {
        Slot.DESTINATION.value: extract_destination(text),
        Slot.ORIGIN.value: extract_origin(text),
        Slot.DATES.value: extract_date_range(text, reference),
        Slot.DATE.value: extract_date(text, reference),
        Slot.BUDGET.value: extract_budget(text),
        Slot.TRAVELERS.value: extract_traveler_count(text),
        Slot.TRANSPORT_MODE.value: extract_transport_mode(text),
        Slot.SUBJECT.value: extract_subject(text),
    }

    # A place that is the origin is not also the destination
    if found[Slot.ORIGIN.value] and found[Slot.ORIGIN.value] == found[Slot.DESTINATION.value]:
        found[Slot.DESTINATION.value] = None

    return {key: value for key, value in found.items() if value is not None}
