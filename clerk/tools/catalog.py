"""
Product catalog adapters.

`LocalCatalog` serves the bundled product list from memory, `PostgresCatalog`
reads the Neon `products` table and drops back to the bundled list whenever
the database can't be reached.
"""

import json
from pathlib import Path
from typing import List, Optional, Protocol

import psycopg2

from clerk.models.schemas import Product, ProductFilters, ProductSort
from clerk.tools.database_tool import DatabaseTool, PRODUCT_COLUMNS, product_from_row
from clerk.utils.logger import get_logger

logger = get_logger(__name__)

DATA_FILE = Path(__file__).resolve().parent.parent / "data" / "products.json"


class Catalog(Protocol):
    async def list_products(self, filters: Optional[ProductFilters] = None,
                            sort: Optional[ProductSort] = None) -> List[Product]: ...

    async def get_by_id(self, product_id: str) -> Optional[Product]: ...

    async def text_search(self, terms: List[str]) -> List[Product]: ...


def load_bundled_products(path: Path = DATA_FILE) -> List[Product]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return [Product(**item) for item in data]


def apply_filters(products: List[Product], filters: Optional[ProductFilters]) -> List[Product]:
    if not filters:
        return list(products)

    result = []
    for product in products:
        if filters.category and product.category.lower() != filters.category.lower():
            continue
        if filters.min_price is not None and product.price < filters.min_price:
            continue
        if filters.max_price is not None and product.price > filters.max_price:
            continue
        if filters.in_stock and product.stock <= 0:
            continue
        if filters.tags and not set(t.lower() for t in filters.tags) & set(t.lower() for t in product.tags):
            continue
        result.append(product)
    return result


def apply_sort(products: List[Product], sort: Optional[ProductSort]) -> List[Product]:
    sort = sort or ProductSort()
    if sort.field == "price":
        key = lambda p: p.price
    elif sort.field == "name":
        key = lambda p: p.name.lower()
    else:
        # undated products keep their listing order
        key = lambda p: p.created_at.timestamp() if p.created_at else 0.0
    return sorted(products, key=key, reverse=(sort.order == "desc"))


def search_stem(term: str) -> str:
    """'sneakers' -> 'sneaker' so plurals match singular mentions"""
    term = term.lower().strip()
    if len(term) > 3 and term.endswith('s') and not term.endswith('ss'):
        return term[:-1]
    return term


class LocalCatalog:
    """In-memory catalog over the bundled product list"""

    def __init__(self, products: Optional[List[Product]] = None):
        self.products = list(products) if products is not None else load_bundled_products()
        logger.debug(f"📦 Local catalog loaded with {len(self.products)} products")

    async def list_products(self, filters: Optional[ProductFilters] = None,
                            sort: Optional[ProductSort] = None) -> List[Product]:
        return apply_sort(apply_filters(self.products, filters), sort)

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        for product in self.products:
            if product.id == str(product_id):
                return product
        return None

    async def text_search(self, terms: List[str]) -> List[Product]:
        stems = [search_stem(t) for t in terms if t and t.strip()]
        if not stems:
            return []
        return [p for p in self.products if any(stem in p.search_text() for stem in stems)]


class PostgresCatalog:
    """Catalog backed by the `products` table"""

    def __init__(self, db: Optional[DatabaseTool] = None, fallback: Optional[LocalCatalog] = None):
        self.db = db or DatabaseTool()
        self.fallback = fallback or LocalCatalog()

    async def list_products(self, filters: Optional[ProductFilters] = None,
                            sort: Optional[ProductSort] = None) -> List[Product]:
        sort = sort or ProductSort()
        clauses, params = [], []

        if filters:
            if filters.category:
                clauses.append("LOWER(category) = LOWER(%s)")
                params.append(filters.category)
            if filters.min_price is not None:
                clauses.append("price >= %s")
                params.append(filters.min_price)
            if filters.max_price is not None:
                clauses.append("price <= %s")
                params.append(filters.max_price)
            if filters.in_stock:
                clauses.append("stock > 0")
            if filters.tags:
                clauses.append("tags && %s")
                params.append(list(filters.tags))

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        # field and order are constrained by ProductSort's literals
        query = f"SELECT {PRODUCT_COLUMNS} FROM products{where} ORDER BY {sort.field} {sort.order.upper()}"

        try:
            rows = await self.db.fetch_all(query, params)
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Catalog query failed, using bundled products: {e}")
            return await self.fallback.list_products(filters, sort)

        products = [product_from_row(row) for row in rows]
        if not products and not clauses:
            logger.warning("⚠️ Products table is empty, using bundled products")
            return await self.fallback.list_products(filters, sort)
        return products

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        try:
            row = await self.db.fetch_one(
                f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = %s", [str(product_id)]
            )
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Product lookup failed for {product_id}: {e}")
            return await self.fallback.get_by_id(product_id)
        return product_from_row(row) if row else None

    async def text_search(self, terms: List[str]) -> List[Product]:
        stems = [search_stem(t) for t in terms if t and t.strip()]
        if not stems:
            return []

        # OR across terms, each term against name, description and tags
        clauses, params = [], []
        for stem in stems:
            pattern = f"%{stem}%"
            clauses.append(
                "(name ILIKE %s OR description ILIKE %s OR category ILIKE %s "
                "OR array_to_string(tags, ' ') ILIKE %s OR array_to_string(colors, ' ') ILIKE %s)"
            )
            params.extend([pattern] * 5)

        query = f"SELECT {PRODUCT_COLUMNS} FROM products WHERE {' OR '.join(clauses)} ORDER BY created_at DESC"
        try:
            rows = await self.db.fetch_all(query, params)
        except psycopg2.Error as e:
            logger.warning(f"⚠️ Text search failed, using bundled products: {e}")
            return await self.fallback.text_search(terms)
        return [product_from_row(row) for row in rows]
