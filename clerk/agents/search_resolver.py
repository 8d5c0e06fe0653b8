import re
from typing import List, Optional

from clerk.config import Config
from clerk.models.schemas import Product, ProductFilters, SearchResult
from clerk.tools.catalog import Catalog
from clerk.utils.logger import get_logger
from clerk.utils.query_parser import get_parser

logger = get_logger(__name__)


def mentions_color(product: Product, color: str) -> bool:
    if color in (c.lower() for c in product.colors):
        return True
    text = " ".join([product.name, product.description, " ".join(product.tags)]).lower()
    return re.search(r'\b' + re.escape(color) + r'\b', text) is not None


class ProductSearchResolver:
    """Turns a free-text shopping query into a ranked, capped product list"""

    def __init__(self, catalog: Catalog, parser=None):
        self.catalog = catalog
        self.parser = parser or get_parser()

    async def search(self, query: str, limit: Optional[int] = None,
                     category: Optional[str] = None) -> SearchResult:
        limit = limit or Config.MAX_SEARCH_RESULTS
        normalized = self.parser.normalize(query)
        color = normalized.color

        terms = list(normalized.keywords)
        if color and not terms:
            terms = [color]
        search_keyword = terms[0] if terms else normalized.corrected_query.strip()

        if normalized.corrected_query != query.lower():
            logger.info(f"✏️ Corrected query: '{query}' → '{normalized.corrected_query}'")

        products = await self._text_search(terms, category)

        # Color may be the only thing that failed to match
        if not products and color and color in terms:
            remaining = [t for t in terms if t != color]
            if remaining:
                logger.info(f"🎨 No '{color}' matches, retrying without color")
                products = await self._text_search(remaining, category)

        if not products:
            fallback_category = category or self._category_for(normalized.product_keywords)
            if fallback_category:
                logger.info(f"📂 Falling back to category '{fallback_category}'")
                products = await self.catalog.list_products(ProductFilters(category=fallback_category))

        if products and color:
            colored = [p for p in products if mentions_color(p, color)]
            if colored:
                products = colored

        products = products[:limit]
        logger.info(f"🔍 Search '{query}' → {len(products)} products")

        return SearchResult(
            products=products,
            corrected_query=normalized.corrected_query or None,
            extracted_color=color,
            no_match=not products,
            search_keyword=search_keyword,
            category=category,
        )

    async def _text_search(self, terms: List[str], category: Optional[str]) -> List[Product]:
        if not terms:
            return []
        products = await self.catalog.text_search(terms)
        if category:
            products = [p for p in products if p.category.lower() == category.lower()]
        return products

    def _category_for(self, keywords: List[str]) -> Optional[str]:
        for keyword in keywords:
            category = self.parser.category_for_keyword(keyword)
            if category:
                return category
        return None
