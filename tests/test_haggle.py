"""
Tests for discount evaluation and coupon issuing.
"""

import re

import pytest

from clerk.agents.haggle import (
    DECLINE_NEGATIVE, DECLINE_NEUTRAL, PERSISTENCE_FAILED, DiscountEvaluator, code_prefix, detect_occasion,
    detect_reason, generate_coupon_code, is_negative
)
from clerk.tools.llm import extract_json, is_rate_limit_error

from conftest import FakeLLM


class RefusingCouponStore:
    def __init__(self, error=None):
        self.error = error

    async def create(self, code, discount_type, discount_value, reason, valid_days=30):
        if self.error:
            raise self.error
        return False

    async def get_by_code(self, code):
        return None


class TestCouponCodes:
    def test_code_format(self):
        assert re.match(r'^BDAY-15[A-Z0-9]{4}$', generate_coupon_code("birthday", 15))

    def test_codes_are_random(self):
        codes = {generate_coupon_code("student", 10) for _ in range(20)}
        assert len(codes) > 1

    def test_prefixes(self):
        assert code_prefix("wedding") == "WEDDING"
        assert code_prefix("first purchase") == "WELCOME"
        assert code_prefix("valentines") == "LOVE"
        assert code_prefix("loyal customer") == "LOYCUS"
        assert code_prefix("anniversary") == "ANN"
        assert code_prefix("a big day") == "SPECIAL"
        assert code_prefix("") == "SPECIAL"


class TestReasonDetection:
    def test_allow_listed_reasons(self):
        assert detect_reason("It's my bday!") == "birthday"
        assert detect_reason("we're getting married in june") == "wedding"
        assert detect_reason("I'm a college student") == "student"
        assert detect_reason("this is my first order here") == "first purchase"
        assert detect_reason("nothing special") is None

    def test_extra_occasions(self):
        assert detect_occasion("it's our anniversary") == "anniversary"
        assert detect_occasion("birthday and anniversary") == "birthday"
        assert detect_occasion("just browsing") is None

    def test_negative_lexicon(self):
        assert is_negative("this is a total rip-off")
        assert is_negative("Your prices are RIDICULOUS")
        assert not is_negative("it's my birthday, any chance of a discount?")


class TestAllowListEvaluation:
    @pytest.mark.asyncio
    async def test_student(self, coupons):
        analysis = await DiscountEvaluator(coupons).evaluate("I'm a student, any discount?")
        assert analysis.eligible
        assert analysis.discount_percent == 10
        assert analysis.reason == "student"

    @pytest.mark.asyncio
    async def test_rudeness_beats_reason(self, coupons):
        analysis = await DiscountEvaluator(coupons).evaluate("it's my birthday, give me a discount you idiot")
        assert not analysis.eligible
        assert analysis.sentiment == "negative"
        assert analysis.discount_percent == 0

    @pytest.mark.asyncio
    async def test_no_reason(self, coupons):
        analysis = await DiscountEvaluator(coupons).evaluate("can I have a discount")
        assert not analysis.eligible
        assert analysis.sentiment == "neutral"


class TestModelEvaluation:
    @pytest.mark.asyncio
    async def test_negative_sentiment_is_never_eligible(self, coupons):
        llm = FakeLLM(json_reply={"eligible": True, "discountPercent": 15, "reason": "birthday",
                                  "sentiment": "negative"})
        analysis = await DiscountEvaluator(coupons, llm).evaluate("birthday discount now")
        assert not analysis.eligible
        assert analysis.discount_percent == 0

    @pytest.mark.asyncio
    async def test_allow_listed_reason_uses_table_percent(self, coupons):
        llm = FakeLLM(json_reply={"eligible": True, "discountPercent": 20, "reason": "It's their birthday",
                                  "sentiment": "positive"})
        analysis = await DiscountEvaluator(coupons, llm).evaluate("it's my birthday!")
        assert analysis.reason == "birthday"
        assert analysis.discount_percent == 15

    @pytest.mark.asyncio
    async def test_unknown_reason_is_clamped(self, coupons):
        llm = FakeLLM(json_reply={"eligible": True, "discountPercent": 40, "reason": "Job promotion",
                                  "sentiment": "positive"})
        result = await DiscountEvaluator(coupons, llm).process("I just got promoted, any discount?")
        assert result.success
        assert result.discount == 20
        assert result.coupon_code.startswith("PRO-20")
        assert result.message.startswith("Here's a special 20% discount for you!")

    @pytest.mark.asyncio
    async def test_unknown_reason_gets_at_least_five_percent(self, coupons):
        llm = FakeLLM(json_reply={"eligible": True, "discountPercent": 2, "reason": "rainy day",
                                  "sentiment": "positive"})
        analysis = await DiscountEvaluator(coupons, llm).evaluate("it's raining, cheer me up with a discount")
        assert analysis.eligible
        assert analysis.discount_percent == 5

    @pytest.mark.asyncio
    async def test_unparseable_reply_uses_allow_list(self, coupons):
        analysis = await DiscountEvaluator(coupons, FakeLLM(json_reply=None)).evaluate("it's my birthday")
        assert analysis.eligible
        assert analysis.discount_percent == 15

    @pytest.mark.asyncio
    async def test_model_error_uses_allow_list(self, coupons):
        llm = FakeLLM(error=RuntimeError("connection reset"))
        analysis = await DiscountEvaluator(coupons, llm).evaluate("we're getting married!")
        assert analysis.reason == "wedding"
        assert analysis.discount_percent == 20


class TestProcess:
    @pytest.mark.asyncio
    async def test_issued_coupon_is_stored(self, coupons):
        result = await DiscountEvaluator(coupons).process("It's my birthday! Any discount?")

        assert result.success
        assert result.discount == 15
        assert f"Your code: **{result.coupon_code}**" in result.message
        assert result.message.endswith("Use it at checkout!")
        stored = await coupons.get_by_code(result.coupon_code)
        assert stored.discount_value == 15
        assert stored.reason == "birthday"
        assert stored.usage_limit == 1

    @pytest.mark.asyncio
    async def test_declines(self, coupons):
        evaluator = DiscountEvaluator(coupons)
        assert (await evaluator.process("give me a discount")).message == DECLINE_NEUTRAL
        assert (await evaluator.process("this place is a scam, discount please")).message == DECLINE_NEGATIVE
        assert coupons.coupons == {}

    @pytest.mark.asyncio
    async def test_store_refusal(self):
        result = await DiscountEvaluator(RefusingCouponStore()).process("it's my birthday")
        assert not result.success
        assert result.message == PERSISTENCE_FAILED
        assert result.coupon_code is None

    @pytest.mark.asyncio
    async def test_store_error(self):
        result = await DiscountEvaluator(RefusingCouponStore(RuntimeError("db down"))).process("it's my birthday")
        assert not result.success
        assert result.message == PERSISTENCE_FAILED


class TestModelReplyParsing:
    def test_json_inside_prose(self):
        assert extract_json('Sure!\n```json\n{"eligible": true, "reason": "student"}\n```') == {
            "eligible": True, "reason": "student"
        }

    def test_no_json(self):
        assert extract_json("I can't help with that") is None
        assert extract_json("{not json}") is None
        assert extract_json("") is None

    def test_rate_limit_detection(self):
        assert is_rate_limit_error(RuntimeError("429 Too Many Requests"))
        assert is_rate_limit_error(RuntimeError("RESOURCE_EXHAUSTED: quota exceeded"))
        assert not is_rate_limit_error(RuntimeError("connection reset"))
