from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol

import psycopg2

from clerk.config import Config
from clerk.models.schemas import DiscountCoupon
from clerk.tools.database_tool import DatabaseTool
from clerk.utils.logger import get_logger

logger = get_logger(__name__)


class CouponStore(Protocol):
    async def create(self, code: str, discount_type: str, discount_value: float,
                     reason: str, valid_days: int = 30) -> bool: ...

    async def get_by_code(self, code: str) -> Optional[DiscountCoupon]: ...


def build_coupon(code: str, discount_type: str, discount_value: float, reason: str,
                 valid_days: int = None, now: Optional[datetime] = None) -> DiscountCoupon:
    """Single-use agent coupon valid from `now` for `valid_days` days"""
    now = now or datetime.now()
    valid_days = valid_days if valid_days is not None else Config.COUPON_VALID_DAYS
    return DiscountCoupon(
        code=code.upper(),
        discount_type=discount_type,
        discount_value=discount_value,
        valid_from=now,
        valid_until=now + timedelta(days=valid_days),
        usage_limit=1,
        used_count=0,
        reason=reason,
        created_by_agent=True,
    )


class InMemoryCouponStore:
    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.coupons: Dict[str, DiscountCoupon] = {}
        self.clock = clock

    async def create(self, code: str, discount_type: str, discount_value: float,
                     reason: str, valid_days: int = 30) -> bool:
        coupon = build_coupon(code, discount_type, discount_value, reason, valid_days, now=self.clock())
        if coupon.code in self.coupons:
            logger.warning(f"⚠️ Coupon {coupon.code} already exists")
            return False
        self.coupons[coupon.code] = coupon
        return True

    async def get_by_code(self, code: str) -> Optional[DiscountCoupon]:
        coupon = self.coupons.get(code.upper())
        if coupon and coupon.is_redeemable(self.clock()):
            return coupon
        return None


class PostgresCouponStore:
    """Coupons in the `coupons` table"""

    def __init__(self, db: Optional[DatabaseTool] = None):
        self.db = db or DatabaseTool()

    async def create(self, code: str, discount_type: str, discount_value: float,
                     reason: str, valid_days: int = 30) -> bool:
        coupon = build_coupon(code, discount_type, discount_value, reason, valid_days)
        try:
            await self.db.execute(
                """
                INSERT INTO coupons (code, discount_type, discount_value, valid_from, valid_until,
                                     usage_limit, used_count, created_by_agent, reason)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                [coupon.code, coupon.discount_type, coupon.discount_value, coupon.valid_from,
                 coupon.valid_until, coupon.usage_limit, coupon.used_count,
                 coupon.created_by_agent, coupon.reason]
            )
            return True
        except psycopg2.Error as e:
            logger.error(f"❌ Error creating coupon {coupon.code}: {e}")
            return False

    async def get_by_code(self, code: str) -> Optional[DiscountCoupon]:
        try:
            row = await self.db.fetch_one(
                """
                SELECT code, discount_type, discount_value, valid_from, valid_until,
                       usage_limit, used_count, reason, created_by_agent
                FROM coupons
                WHERE code = %s
                  AND valid_from <= NOW() AND valid_until >= NOW()
                  AND (usage_limit IS NULL OR used_count < usage_limit)
                """,
                [code.upper()]
            )
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Coupon lookup failed for {code}: {e}")
            return None
        if not row:
            return None
        row['discount_value'] = float(row['discount_value'])
        return DiscountCoupon(**row)
