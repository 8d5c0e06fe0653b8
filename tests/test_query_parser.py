"""
Unit tests for spell correction and attribute extraction.
"""

from clerk.utils.query_parser import extract_category, get_parser, levenshtein_distance, normalize

parser = get_parser()


class TestLevenshteinDistance:
    def test_identical_strings(self):
        assert levenshtein_distance("sneakers", "sneakers") == 0

    def test_classic_example(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_empty_strings(self):
        assert levenshtein_distance("", "") == 0
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("", "abc") == 3


class TestNormalize:
    """Spell correction, colors and product keywords."""

    def test_table_misspelling(self):
        result = normalize("sneekers")
        assert "sneakers" in result.corrected_query
        assert result.product_keywords == ["sneakers"]

    def test_fuzzy_correction_shares_prefix(self):
        # not in the table, one edit from "sneekers"
        assert normalize("white sneekerz").corrected_query == "white sneakers"

    def test_common_words_left_alone(self):
        assert normalize("show me boots").corrected_query == "show me boots"
        assert normalize("anything below 100").corrected_query == "anything below 100"

    def test_empty_query(self):
        result = normalize("")
        assert result.corrected_query == ""
        assert result.color is None
        assert result.product_keywords == []
        assert result.generic_keywords == []

    def test_first_color_wins(self):
        assert normalize("red sneakers").color == "red"
        assert normalize("a black and white bag").color == "white"  # vocabulary order

    def test_color_must_be_whole_word(self):
        assert normalize("i'm tired of looking").color is None

    def test_product_keywords_in_vocabulary_order(self):
        assert normalize("a bag and some sneakers").product_keywords == ["sneakers", "bag"]

    def test_keyword_not_matched_inside_word(self):
        assert normalize("that one").product_keywords == []

    def test_generic_keywords_without_product_match(self):
        result = normalize("linen stuff")
        assert result.product_keywords == []
        assert result.generic_keywords == ["linen", "stuff"]
        assert result.keywords == ["linen", "stuff"]


class TestSizes:
    def test_exact_sizes(self):
        assert parser.parse_exact_size("42") == "42"
        assert parser.parse_exact_size("Size: M") == "m"
        assert parser.parse_exact_size("m.") == "m"
        assert parser.parse_exact_size("medium") == "medium"

    def test_not_exact_sizes(self):
        assert parser.parse_exact_size("42 please") is None
        assert parser.parse_exact_size("50") is None
        assert parser.parse_exact_size("shoes") is None

    def test_canonical_size(self):
        assert parser.canonical_size("small") == "S"
        assert parser.canonical_size("42") == "42"
        assert parser.canonical_size("xl") == "XL"
        assert parser.canonical_size("size: l") == "L"

    def test_size_in_sentence(self):
        assert parser.extract_size("add the blazer in size M") == "m"
        assert parser.extract_size("the boots in 42 please") == "42"

    def test_prices_are_not_sizes(self):
        assert parser.extract_size("something under $45") is None

    def test_quantity(self):
        assert parser.extract_quantity("add 2 of them") == 2
        assert parser.extract_quantity("add it") == 1


class TestPriceAndSort:
    def test_max_price(self):
        assert parser.extract_price("bags under $150") == {"max_price": 150.0}

    def test_price_range(self):
        assert parser.extract_price("between 50 and 100") == {"min_price": 50.0, "max_price": 100.0}

    def test_no_price(self):
        assert parser.extract_price("show me shoes") is None

    def test_sort_direction(self):
        assert parser.detect_sort("show me cheaper options") == "asc"
        assert parser.detect_sort("your most expensive coat") == "desc"
        assert parser.detect_sort("hello there") is None


class TestCategory:
    def test_category_from_product_word(self):
        assert extract_category("show me shoes") == "Shoes"
        assert extract_category("a canvas tote") == "Bags"
        assert extract_category("I need a scarf") == "Accessories"

    def test_no_category(self):
        assert extract_category("hello") is None
