"""
Tests for the product search pipeline: correction, color handling and fallbacks.
"""

import pytest

from clerk.agents.search_resolver import ProductSearchResolver, mentions_color


def ids(products):
    return [p.id for p in products]


@pytest.fixture
def resolver(catalog):
    return ProductSearchResolver(catalog)


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_category_restricts_results(self, resolver):
        result = await resolver.search("show me shoes", category="Shoes")
        assert set(ids(result.products)) == {"2", "9", "12"}
        assert result.category == "Shoes"
        assert not result.no_match

    @pytest.mark.asyncio
    async def test_misspelling_is_corrected(self, resolver):
        result = await resolver.search("sneekers")
        assert result.corrected_query == "sneakers"
        assert result.search_keyword == "sneakers"
        assert ids(result.products) == ["2", "12"]

    @pytest.mark.asyncio
    async def test_limit_caps_results(self, resolver):
        result = await resolver.search("shoes", limit=2)
        assert len(result.products) == 2


class TestColorHandling:
    @pytest.mark.asyncio
    async def test_color_narrows_matches(self, resolver):
        result = await resolver.search("gray sneakers")
        assert ids(result.products) == ["12"]
        assert result.extracted_color == "gray"

    @pytest.mark.asyncio
    async def test_missing_color_keeps_unfiltered_matches(self, resolver):
        result = await resolver.search("purple sneakers")
        assert ids(result.products) == ["2", "12"]
        assert result.extracted_color == "purple"
        assert not result.no_match

    @pytest.mark.asyncio
    async def test_color_only_query_without_matches(self, resolver):
        result = await resolver.search("purple")
        assert result.no_match
        assert result.products == []

    def test_mentions_color_uses_colors_and_text(self, products):
        assert mentions_color(products["12"], "gray")
        assert not mentions_color(products["12"], "white")
        assert mentions_color(products["2"], "white")


class TestFallbacks:
    @pytest.mark.asyncio
    async def test_unknown_product_falls_back_to_category(self, resolver):
        # no loafers in stock, but they are shoes
        result = await resolver.search("loafers")
        assert ids(result.products) == ["2", "9", "12"]
        assert not result.no_match

    @pytest.mark.asyncio
    async def test_nothing_matches(self, resolver):
        result = await resolver.search("spaceship")
        assert result.no_match
        assert result.products == []
        assert result.search_keyword == "spaceship"
