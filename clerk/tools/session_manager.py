from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import redis

from clerk.models.schemas import ConversationTurn, SessionData
from clerk.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SESSION_MESSAGES = 20
SESSION_TTL = timedelta(days=7)


class SessionManager:
    """Stores chat sessions (turns + conversation state) in Redis or in memory"""

    def __init__(self, redis_url: str = None):
        self.use_redis = False
        self.redis = None
        self.memory: Dict[str, SessionData] = {}

        if redis_url:
            try:
                # rediss:// URLs get TLS from redis-py automatically
                self.redis = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=redis_url.startswith('rediss://')
                )
                self.redis.ping()
                self.use_redis = True
                logger.info("✅ Connected to Redis for session management")
            except redis.RedisError as e:
                logger.warning(f"⚠️ Redis connection failed, using in-memory storage: {e}")
                self.redis = None
        else:
            logger.info("💾 Using in-memory session storage (no Redis URL provided)")

    def _key(self, session_id: str) -> str:
        return f"session:{session_id}"

    def get_session(self, session_id: str) -> SessionData:
        """Get or create session data"""
        if self.use_redis:
            try:
                data = self.redis.get(self._key(session_id))
                if data:
                    return SessionData.model_validate_json(data)
            except redis.RedisError as e:
                logger.warning(f"⚠️ Session retrieval error: {e}")
                if session_id in self.memory:
                    return self.memory[session_id]
        elif session_id in self.memory:
            return self.memory[session_id]

        return SessionData(session_id=session_id)

    def save_session(self, session: SessionData):
        session.updated_at = datetime.now()
        if len(session.messages) > MAX_SESSION_MESSAGES:
            session.messages = session.messages[-MAX_SESSION_MESSAGES:]

        if self.use_redis:
            try:
                self.redis.setex(self._key(session.session_id), SESSION_TTL, session.model_dump_json())
                return
            except redis.RedisError as e:
                logger.warning(f"⚠️ Session save error, keeping {session.session_id} in memory: {e}")
        self.memory[session.session_id] = session

    def get_history(self, session_id: str, limit: Optional[int] = None) -> List[ConversationTurn]:
        messages = self.get_session(session_id).messages
        return messages[-limit:] if limit else list(messages)

    def clear_session(self, session_id: str) -> bool:
        existed = session_id in self.memory
        self.memory.pop(session_id, None)
        if self.use_redis:
            try:
                existed = bool(self.redis.delete(self._key(session_id))) or existed
            except redis.RedisError as e:
                logger.warning(f"⚠️ Session clear error: {e}")
        return existed

    def get_session_stats(self) -> Dict[str, Any]:
        if self.use_redis:
            try:
                info = self.redis.info('memory')
                return {
                    "storage_type": "redis",
                    "connected": True,
                    "memory_usage": info.get('used_memory_human', 'unknown'),
                    "total_keys": self.redis.dbsize()
                }
            except redis.RedisError as e:
                return {"storage_type": "redis", "connected": False, "error": str(e)}
        return {
            "storage_type": "in_memory",
            "connected": True,
            "active_sessions": len(self.memory),
            "total_messages": sum(len(s.messages) for s in self.memory.values())
        }
