"""
Discount haggling.
Decides whether a shopper's discount request deserves a coupon, mints a
single-use code and persists it through the coupon store.
"""

import re
import secrets
import string
from typing import Optional

from langchain_core.prompts import PromptTemplate

from clerk.config import Config
from clerk.models.schemas import HaggleAnalysis, HaggleResult, IssuedCoupon
from clerk.tools.coupons import CouponStore
from clerk.tools.llm import LLMClient
from clerk.utils.logger import get_logger

logger = get_logger(__name__)

# Reasons we always honor, with their discount
DISCOUNT_ALLOW_LIST = {
    'birthday': 15,
    'wedding': 20,
    'student': 10,
    'first purchase': 10,
    'bulk': 12,
    'valentines': 10,
    'loyal customer': 10,
}

REASON_PATTERNS = [
    ('birthday', re.compile(r"\b(birthday|bday|b-day)\b")),
    ('wedding', re.compile(r"\b(wedding|getting married|honeymoon)\b")),
    ('student', re.compile(r"\b(student|college|university)\b")),
    ('first purchase', re.compile(r"\b(first (purchase|time|order)|new customer)\b")),
    ('bulk', re.compile(r"\b(bulk|multiple items|several items|buying (a lot|many))\b")),
    ('valentines', re.compile(r"\bvalentine'?s?\b")),
    ('loyal customer', re.compile(r"\b(loyal|regular customer|long[- ]time customer)\b")),
]

# Occasions worth a haggle conversation even when we have no fixed discount for them
EXTRA_OCCASIONS = re.compile(r"\b(anniversary|graduation|graduated)\b")

CODE_PREFIXES = {
    'birthday': 'BDAY',
    'wedding': 'WEDDING',
    'student': 'STUDENT',
    'first purchase': 'WELCOME',
    'bulk': 'BULK',
    'valentines': 'LOVE',
}

CODE_ALPHABET = string.ascii_uppercase + string.digits

NEGATIVE_WORDS = re.compile(
    r"\b(stupid|ridiculous|rip-?off|scam|overpriced|terrible|awful|hate|useless|idiot|dumb|"
    r"garbage|trash|crap|damn|pathetic|or else|worst)\b"
)

REASON_MESSAGES = {
    'birthday': "Happy Birthday! 🎂 Here's a special {discount}% discount just for you!",
    'wedding': "Congratulations on your wedding! 💍 Here's {discount}% off to celebrate!",
    'student': "Student discount activated! 📚 Here's {discount}% off for you.",
    'first purchase': "Welcome to TrendZone! 🎉 Here's {discount}% off your first order!",
    'bulk': "Thanks for the bulk order! Here's {discount}% off for buying multiple items.",
    'valentines': "Spreading the love! 💝 Here's {discount}% off for Valentine's!",
    'loyal customer': "Thanks for being a loyal customer! 🌟 Here's {discount}% off!",
}
GENERIC_MESSAGE = "Here's a special {discount}% discount for you!"

DECLINE_NEGATIVE = ("I appreciate your interest, but I'm not able to offer a discount at this time. "
                    "Is there anything else I can help you with?")
DECLINE_NEUTRAL = ("I understand your request, but I'm not able to offer a discount for this purchase. "
                   "However, I'd be happy to help you find great products within your budget!")
PERSISTENCE_FAILED = "I tried to create a discount for you, but encountered an issue. Please try again later."


def detect_reason(text: str) -> Optional[str]:
    """Map free text to an allow-listed discount reason"""
    text = (text or "").lower()
    for reason, pattern in REASON_PATTERNS:
        if pattern.search(text):
            return reason
    return None


def detect_occasion(text: str) -> Optional[str]:
    reason = detect_reason(text)
    if reason:
        return reason
    match = EXTRA_OCCASIONS.search((text or "").lower())
    return match.group(1) if match else None


def is_negative(text: str) -> bool:
    return NEGATIVE_WORDS.search((text or "").lower()) is not None


def code_prefix(reason: str) -> str:
    reason = (reason or "").lower().strip()
    if reason in CODE_PREFIXES:
        return CODE_PREFIXES[reason]
    words = [re.sub(r'[^a-z0-9]', '', w) for w in reason.split()]
    words = [w for w in words if len(w) > 3][:2]
    if words:
        return "".join(w[:3].upper() for w in words)
    return "SPECIAL"


def generate_coupon_code(reason: str, percent: int) -> str:
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(4))
    return f"{code_prefix(reason)}-{percent}{suffix}"


class DiscountEvaluator:
    """Evaluate haggle requests and issue persisted coupons"""

    def __init__(self, coupons: CouponStore, llm: Optional[LLMClient] = None):
        self.coupons = coupons
        self.llm = llm

        self.analysis_prompt = PromptTemplate.from_template("""
Analyze this customer request for a discount and determine:
1. Is the request reasonable and polite? (true/false)
2. What discount percentage should be offered? (5, 10, 15, or 20)
3. What is the reason given? (one of: birthday, wedding, student, first purchase, bulk, valentines, loyal customer, or a short phrase)
4. What is the sentiment? (positive, neutral, or negative)

Customer message: "{message}"

Respond in JSON format only:
{{
  "eligible": true/false,
  "discountPercent": number (5-20),
  "reason": "extracted reason",
  "sentiment": "positive" | "neutral" | "negative"
}}
""")

    async def evaluate(self, message: str) -> HaggleAnalysis:
        analysis = None
        if self.llm:
            analysis = await self._evaluate_with_llm(message)
        if analysis is None:
            analysis = self._evaluate_with_allow_list(message)

        # Rude requests never qualify, whatever the reason
        if analysis.sentiment == "negative" or is_negative(message):
            return HaggleAnalysis(eligible=False, discount_percent=0,
                                  reason=analysis.reason or "Request not eligible", sentiment="negative")
        if not analysis.eligible:
            return analysis.model_copy(update={'discount_percent': 0})
        return analysis

    async def _evaluate_with_llm(self, message: str) -> Optional[HaggleAnalysis]:
        try:
            data = await self.llm.analyze_json(self.analysis_prompt.format(message=message))
        except Exception as e:
            logger.warning(f"⚠️ Haggle analysis failed, using allow-list: {e}")
            return None
        if not data:
            return None

        sentiment = str(data.get('sentiment', 'neutral')).lower()
        if sentiment not in ('positive', 'neutral', 'negative'):
            sentiment = 'neutral'
        raw_reason = str(data.get('reason') or "")
        reason = detect_reason(raw_reason) or detect_reason(message) or raw_reason.strip().lower()

        if reason in DISCOUNT_ALLOW_LIST:
            percent = DISCOUNT_ALLOW_LIST[reason]
        else:
            try:
                percent = int(data.get('discountPercent') or 0)
            except (TypeError, ValueError):
                percent = 0
            percent = max(5, min(percent, 20))

        return HaggleAnalysis(
            eligible=bool(data.get('eligible')) and bool(reason),
            discount_percent=percent,
            reason=reason,
            sentiment=sentiment,
        )

    def _evaluate_with_allow_list(self, message: str) -> HaggleAnalysis:
        reason = detect_reason(message)
        if is_negative(message):
            return HaggleAnalysis(eligible=False, reason=reason or "", sentiment="negative")
        if reason:
            return HaggleAnalysis(eligible=True, discount_percent=DISCOUNT_ALLOW_LIST[reason],
                                  reason=reason, sentiment="positive")
        return HaggleAnalysis(eligible=False, reason="Request not eligible", sentiment="neutral")

    async def issue(self, reason: str, percent: int) -> IssuedCoupon:
        code = generate_coupon_code(reason, percent)
        try:
            persisted = await self.coupons.create(code, "percentage", percent, reason, Config.COUPON_VALID_DAYS)
        except Exception as e:
            logger.error(f"❌ Coupon store raised while saving {code}: {e}")
            persisted = False
        return IssuedCoupon(code=code, persisted=persisted)

    async def process(self, message: str) -> HaggleResult:
        analysis = await self.evaluate(message)
        logger.info(f"🏷️ Haggle analysis: eligible={analysis.eligible} reason='{analysis.reason}' "
                    f"sentiment={analysis.sentiment}")

        if not analysis.eligible:
            declined = DECLINE_NEGATIVE if analysis.sentiment == "negative" else DECLINE_NEUTRAL
            return HaggleResult(success=False, message=declined, reason=analysis.reason, analysis=analysis)

        coupon = await self.issue(analysis.reason, analysis.discount_percent)
        if not coupon.persisted:
            return HaggleResult(success=False, message=PERSISTENCE_FAILED, reason=analysis.reason, analysis=analysis)

        template = REASON_MESSAGES.get(analysis.reason, GENERIC_MESSAGE)
        message = (f"{template.format(discount=analysis.discount_percent)}\n\n"
                   f"Your code: **{coupon.code}**\n\nUse it at checkout!")
        return HaggleResult(
            success=True,
            discount=analysis.discount_percent,
            message=message,
            coupon_code=coupon.code,
            reason=analysis.reason,
            analysis=analysis,
        )
