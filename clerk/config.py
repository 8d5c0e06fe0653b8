import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # API Keys
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

    # Database
    NEON_HOST = os.getenv("NEON_HOST")
    NEON_DB = os.getenv("NEON_DB")
    NEON_USER = os.getenv("NEON_USER")
    NEON_PASSWORD = os.getenv("NEON_PASSWORD")

    # Cache
    REDIS_URL = os.getenv("REDIS_URL")
    INVENTORY_CACHE_SECONDS = int(os.getenv("INVENTORY_CACHE_SECONDS", "300"))

    # LLM Settings
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    MAX_CONTEXT_MESSAGES = 10

    # Search Settings
    MAX_SEARCH_RESULTS = 6
    MAX_FILTER_RESULTS = 5

    # Coupons
    COUPON_VALID_DAYS = int(os.getenv("COUPON_VALID_DAYS", "30"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def database_configured(cls) -> bool:
        return all([cls.NEON_HOST, cls.NEON_DB, cls.NEON_USER, cls.NEON_PASSWORD])

    @classmethod
    def llm_configured(cls) -> bool:
        return bool(cls.GEMINI_API_KEY)

    @classmethod
    def connection_params(cls) -> dict:
        return {
            'host': cls.NEON_HOST,
            'dbname': cls.NEON_DB,
            'user': cls.NEON_USER,
            'password': cls.NEON_PASSWORD,
            'sslmode': 'require'
        }


# Nothing is strictly required: without a database or an API key the
# clerk runs on the bundled catalog and rule-based intents.
optional_vars = ["GEMINI_API_KEY", "NEON_HOST", "NEON_DB", "NEON_USER", "NEON_PASSWORD", "REDIS_URL"]
missing_vars = [var for var in optional_vars if not getattr(Config, var)]


def validate_db_connection() -> bool:
    if not Config.database_configured():
        return False
    try:
        import psycopg2
        conn = psycopg2.connect(connect_timeout=5, **Config.connection_params())
        conn.close()
        return True
    except Exception as e:
        from clerk.utils.logger import get_logger
        get_logger(__name__).warning(f"❌ Database connection failed: {e}")
        return False
