"""
Shopper activity log.
Records product views and cart adds per session so recommendations can lean
on what the shopper already looked at.
"""

from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Protocol

import psycopg2

from clerk.models.schemas import Activity, ActivityType
from clerk.tools.database_tool import DatabaseTool
from clerk.utils.logger import get_logger

logger = get_logger(__name__)


class ActivityLog(Protocol):
    async def record(self, session_id: str, product_id: str, activity_type: ActivityType) -> None: ...

    async def recent(self, session_id: str, limit: int = 10) -> List[Activity]: ...


class InMemoryActivityLog:
    """Bounded per-session log, newest entries last"""

    def __init__(self, max_log_size: int = 100):
        self.max_log_size = max_log_size
        self.entries: Dict[str, Deque[Activity]] = defaultdict(lambda: deque(maxlen=self.max_log_size))

    async def record(self, session_id: str, product_id: str, activity_type: ActivityType) -> None:
        self.entries[session_id].append(
            Activity(session_id=session_id, product_id=product_id, activity_type=activity_type)
        )

    async def recent(self, session_id: str, limit: int = 10) -> List[Activity]:
        if session_id not in self.entries:
            return []
        return list(reversed(self.entries[session_id]))[:limit]


class PostgresActivityLog:
    """Activity rows in `user_activity`"""

    def __init__(self, db: Optional[DatabaseTool] = None):
        self.db = db or DatabaseTool()

    async def record(self, session_id: str, product_id: str, activity_type: ActivityType) -> None:
        try:
            await self.db.execute(
                "INSERT INTO user_activity (session_id, product_id, activity_type) VALUES (%s, %s, %s)",
                [session_id, product_id, ActivityType(activity_type).value]
            )
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Failed to record activity for {session_id}: {e}")

    async def recent(self, session_id: str, limit: int = 10) -> List[Activity]:
        try:
            rows = await self.db.fetch_all(
                """
                SELECT session_id, product_id, activity_type, created_at
                FROM user_activity
                WHERE session_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                [session_id, limit]
            )
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Failed to load activity for {session_id}: {e}")
            return []
        return [Activity(**{**row, 'product_id': str(row['product_id'])}) for row in rows]
