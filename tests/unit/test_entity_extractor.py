"""
Tests for the entity extractor.

Coverage:
- Destination / origin extraction (gazetteer, markers, deny lists)
- Date ranges including year rollover and invalid dates
- Budget units and Chinese numerals
- Traveler counts, transport mode, plan domain, study subject
- extract_entities() aggregation
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from planner.nlu import entity_extractor
from planner.nlu.entity_extractor import (
    contains_keyword,
    extract_budget,
    extract_date,
    extract_date_range,
    extract_destination,
    extract_entities,
    extract_origin,
    extract_plan_domain,
    extract_subject,
    extract_transport_mode,
    extract_traveler_count,
)
from planner.nlu.models import PlanDomain
from shared.config import get_settings

REFERENCE = date(2025, 6, 1)


class TestContainsKeyword:
    """ASCII keywords need word boundaries, Chinese keywords do not."""

    def test_ascii_keyword_not_matched_inside_word(self):
        assert contains_keyword("this is fine", "hi") is False

    def test_ascii_keyword_matched_standalone(self):
        assert contains_keyword("Hi there", "hi") is True

    def test_ascii_keyword_next_to_chinese(self):
        assert contains_keyword("hello你好", "hello") is True

    def test_chinese_keyword_is_substring(self):
        assert contains_keyword("我想去三亚旅游", "旅游") is True


class TestDestination:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("我想去三亚玩", "三亚"),
            ("从北京出发去上海", "上海"),
            ("上海到成都的高铁", "成都"),
            ("I want to travel to Tokyo", "Tokyo"),
            ("去大理转转", "大理"),
        ],
    )
    def test_known_places(self, text, expected):
        assert extract_destination(text) == expected

    def test_free_form_place_after_marker(self):
        assert extract_destination("想去莫干山") == "莫干山"

    def test_planning_vocabulary_is_not_a_destination(self):
        assert extract_destination("帮我做个计划") is None

    def test_deny_phrase_rejects_place(self):
        assert extract_destination("现在北京时间几点") is None

    def test_food_name_is_not_a_destination(self):
        assert extract_destination("北京烤鸭好吃吗") is None

    def test_empty_text(self):
        assert extract_destination("") is None


class TestOrigin:
    def test_from_marker(self):
        assert extract_origin("从北京出发去上海") == "北京"

    def test_departure_suffix(self):
        assert extract_origin("杭州出发，去厦门") == "杭州"

    def test_route_form(self):
        assert extract_origin("上海到成都的高铁") == "上海"

    def test_english_from(self):
        assert extract_origin("flights from Shanghai to Tokyo") == "Shanghai"

    def test_no_origin(self):
        assert extract_origin("我想去三亚玩") is None


class TestDateRange:
    def test_range_crossing_new_year(self):
        result = extract_date_range("12月25日 to 1月2日", reference=REFERENCE)
        assert result == {"start": "2025-12-25", "end": "2026-01-02"}

    def test_range_same_year(self):
        result = extract_date_range("3月15日到3月20日", reference=REFERENCE)
        assert result == {"start": "2025-03-15", "end": "2025-03-20"}

    def test_slash_range(self):
        result = extract_date_range("3/15-3/20", reference=REFERENCE)
        assert result == {"start": "2025-03-15", "end": "2025-03-20"}

    def test_end_month_omitted(self):
        result = extract_date_range("3月5日到8日", reference=REFERENCE)
        assert result == {"start": "2025-03-05", "end": "2025-03-08"}

    def test_invalid_calendar_date(self):
        assert extract_date_range("2月30日到3月2日", reference=REFERENCE) is None

    def test_no_range(self):
        assert extract_date_range("下周去三亚", reference=REFERENCE) is None

    def test_dotted_range(self):
        result = extract_date_range("12.25-12.28去三亚", reference=REFERENCE)
        assert result == {"start": "2025-12-25", "end": "2025-12-28"}

    @pytest.mark.parametrize("text", ["预算1.5-2.5万", "1.5-2.5万左右", "3.5-4.5k"])
    def test_decimal_amounts_are_not_dates(self, text):
        assert extract_date_range(text, reference=REFERENCE) is None


# 2025-12-31 20:00 UTC is already 2026 in Shanghai but still 2025 in New York
NEW_YEAR_EVE_UTC = datetime(2025, 12, 31, 20, 0, tzinfo=ZoneInfo("UTC"))


class FrozenDatetime(datetime):
    @classmethod
    def now(cls, tz=None):
        return NEW_YEAR_EVE_UTC.astimezone(tz)


class TestConfiguredTimezone:
    """Without a reference date, "this year" follows the TIMEZONE setting."""

    @pytest.fixture(autouse=True)
    def frozen_clock(self, monkeypatch):
        monkeypatch.setattr(entity_extractor, "datetime", FrozenDatetime)

    @pytest.mark.parametrize(
        "timezone,expected",
        [
            ("Asia/Shanghai", {"start": "2026-12-31", "end": "2027-01-02"}),
            ("America/New_York", {"start": "2025-12-31", "end": "2026-01-02"}),
        ],
    )
    def test_range_year_follows_timezone(self, monkeypatch, timezone, expected):
        monkeypatch.setenv("TIMEZONE", timezone)
        get_settings.cache_clear()

        assert extract_date_range("12月31日到1月2日") == expected

    def test_single_date_year_follows_timezone(self, monkeypatch):
        monkeypatch.setenv("TIMEZONE", "America/New_York")
        get_settings.cache_clear()

        assert extract_date("1月2日出发") == "2025-01-02"


class TestSingleDate:
    def test_single_date(self):
        assert extract_date("5月1日出发", reference=REFERENCE) == "2025-05-01"

    def test_range_suppresses_single_date(self):
        assert extract_date("5月1日到5月3日", reference=REFERENCE) is None


class TestBudget:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("预算1万", 10000),
            ("预算1.5万", 15000),
            ("预算两万", 20000),
            ("大概5000块", 5000),
            ("3k左右", 3000),
            ("budget 800 yuan", 800),
            ("¥800", 800),
            ("三千元以内", 3000),
        ],
    )
    def test_amounts(self, text, expected):
        assert extract_budget(text) == expected

    def test_together_is_not_one_yuan(self):
        assert extract_budget("我们一块去") is None

    def test_plain_number_without_unit(self):
        assert extract_budget("我们3个人") is None


class TestTravelerCount:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("3人出行", 3),
            ("两个人", 2),
            ("一家三口去三亚", 3),
            ("4 people", 4),
            ("十个人的团", 10),
        ],
    )
    def test_counts(self, text, expected):
        assert extract_traveler_count(text) == expected

    def test_renminbi_is_not_a_count(self):
        assert extract_traveler_count("5000人民币") is None


class TestTransportAndDomain:
    def test_transport_modes(self):
        assert extract_transport_mode("坐高铁去") == "train"
        assert extract_transport_mode("订机票") == "flight"
        assert extract_transport_mode("自驾游") == "car"
        assert extract_transport_mode("随便走走") is None

    def test_domain_priority_study_over_travel(self):
        assert extract_plan_domain("学习旅行英语") == PlanDomain.STUDY

    def test_domain_event(self):
        assert extract_plan_domain("筹备公司年会") == PlanDomain.EVENT

    def test_transport_implies_travel(self):
        assert extract_plan_domain("坐大巴") == PlanDomain.TRAVEL

    def test_no_domain(self):
        assert extract_plan_domain("你好") is None


class TestSubject:
    def test_chinese_subject(self):
        assert extract_subject("帮我制定一个英语学习计划") == "英语"

    def test_english_subject(self):
        assert extract_subject("I want to learn Spanish") == "Spanish"

    def test_no_subject(self):
        assert extract_subject("去三亚玩") is None


class TestExtractEntities:
    def test_only_found_slots_are_returned(self):
        assert extract_entities("我想去三亚玩，预算1万") == {"destination": "三亚", "budget": 10000}

    def test_origin_and_destination(self):
        entities = extract_entities("从北京出发去上海，2个人，坐高铁")
        assert entities["origin"] == "北京"
        assert entities["destination"] == "上海"
        assert entities["travelers"] == 2
        assert entities["transport_mode"] == "train"

    def test_dates_use_reference(self):
        entities = extract_entities("12月25日 to 1月2日去东京", reference=REFERENCE)
        assert entities["dates"] == {"start": "2025-12-25", "end": "2026-01-02"}
        assert "date" not in entities

    def test_nothing_found(self):
        assert extract_entities("嗯") == {}
