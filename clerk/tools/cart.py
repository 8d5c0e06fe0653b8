from typing import Dict, List, Any, Optional, Protocol

import psycopg2

from clerk.tools.database_tool import DatabaseTool
from clerk.utils.logger import get_logger

logger = get_logger(__name__)


class Cart(Protocol):
    async def add_item(self, product_id: str, size: str, quantity: int = 1) -> bool: ...


class InMemoryCart:
    """Cart lines for one session; same product + size bumps the quantity"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.items: List[Dict[str, Any]] = []

    async def add_item(self, product_id: str, size: str, quantity: int = 1) -> bool:
        for item in self.items:
            if item['product_id'] == product_id and item['size'] == size:
                item['quantity'] += quantity
                return True
        self.items.append({'product_id': product_id, 'size': size, 'quantity': quantity})
        return True

    @property
    def total_quantity(self) -> int:
        return sum(item['quantity'] for item in self.items)


class InMemoryCartStore:
    def __init__(self):
        self.carts: Dict[str, InMemoryCart] = {}

    def for_session(self, session_id: str) -> InMemoryCart:
        if session_id not in self.carts:
            self.carts[session_id] = InMemoryCart(session_id)
        return self.carts[session_id]


class PostgresCart:
    """Cart rows in `cart_items`, keyed by session"""

    def __init__(self, db: DatabaseTool, session_id: str):
        self.db = db
        self.session_id = session_id

    async def add_item(self, product_id: str, size: str, quantity: int = 1) -> bool:
        try:
            existing = await self.db.fetch_one(
                "SELECT id, quantity FROM cart_items WHERE session_id = %s AND product_id = %s AND size = %s",
                [self.session_id, product_id, size]
            )
            if existing:
                await self.db.execute(
                    "UPDATE cart_items SET quantity = %s WHERE id = %s",
                    [existing['quantity'] + quantity, existing['id']]
                )
            else:
                await self.db.execute(
                    "INSERT INTO cart_items (session_id, product_id, size, quantity) VALUES (%s, %s, %s, %s)",
                    [self.session_id, product_id, size, quantity]
                )
            return True
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Cart add failed for session {self.session_id}: {e}")
            return False


class PostgresCartStore:
    def __init__(self, db: Optional[DatabaseTool] = None):
        self.db = db or DatabaseTool()

    def for_session(self, session_id: str) -> PostgresCart:
        return PostgresCart(self.db, session_id)
