import asyncio
from typing import List, Dict, Any, Optional, Sequence

import psycopg2
import psycopg2.extras

from clerk.config import Config
from clerk.models.schemas import Product


PRODUCT_COLUMNS = "id, name, price, category, description, sizes, colors, stock, tags, image_url, created_at"


class DatabaseTool:
    """Thin psycopg2 wrapper; every call opens its own connection and runs in a worker thread."""

    def __init__(self, connection_params: Optional[Dict[str, Any]] = None):
        self.connection_params = connection_params or Config.connection_params()

    def _run(self, query: str, params: Sequence[Any], fetch: bool):
        conn = psycopg2.connect(connect_timeout=5, **self.connection_params)
        try:
            # the connection context manager commits on success, rolls back on error
            with conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    if fetch:
                        return [dict(row) for row in cur.fetchall()]
                    return cur.rowcount
        finally:
            conn.close()

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._run, query, tuple(params), True)

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(query, params)
        return rows[0] if rows else None

    async def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        return await asyncio.to_thread(self._run, query, tuple(params), False)


def product_from_row(row: Dict[str, Any]) -> Product:
    """Convert a `products` row to a Product"""
    return Product(
        id=str(row['id']),
        name=row['name'],
        price=float(row['price']) if row.get('price') is not None else 0.0,
        category=row.get('category') or "",
        description=row.get('description') or "",
        sizes=list(row.get('sizes') or []),
        colors=list(row.get('colors') or []),
        stock=int(row['stock']) if row.get('stock') else 0,
        tags=list(row.get('tags') or []),
        image_url=row.get('image_url'),
        created_at=row.get('created_at')
    )
