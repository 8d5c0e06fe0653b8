"""
Deterministic Query Parser
Spell-corrects fashion vocabulary, extracts colors, product keywords, sizes,
prices and sort direction from free-text chat messages.
Everything here is regex/table driven so the clerk behaves the same with or
without an LLM.
"""

import re
from typing import Dict, Any, List, Optional

from clerk.models.schemas import NormalizedQuery


# Common misspellings -> canonical form
MISSPELLINGS = {
    'sneekers': 'sneakers', 'snekers': 'sneakers', 'sneakres': 'sneakers', 'sneeker': 'sneaker',
    'snicker': 'sneaker', 'snickers': 'sneakers',
    'shooes': 'shoes', 'shoos': 'shoes', 'shoez': 'shoes',
    'bots': 'boots', 'bootz': 'boots', 'botts': 'boots',
    'loafrs': 'loafers', 'lofers': 'loafers',
    'sandles': 'sandals', 'sandels': 'sandals',
    'chelsae': 'chelsea', 'chelsey': 'chelsea',
    'jaket': 'jacket', 'jackit': 'jacket', 'jacet': 'jacket', 'jakcet': 'jacket',
    'blazzer': 'blazer', 'blaser': 'blazer', 'blazor': 'blazer',
    'sweeter': 'sweater', 'swetter': 'sweater', 'sweatr': 'sweater',
    'trowsers': 'trousers', 'trousres': 'trousers', 'trousrs': 'trousers', 'trausers': 'trousers',
    'overcaot': 'overcoat', 'ovrcoat': 'overcoat',
    'jeens': 'jeans', 'jenas': 'jeans',
    'shrit': 'shirt', 'shirtt': 'shirt', 'tshirt': 't-shirt',
    'hodie': 'hoodie', 'hoody': 'hoodie',
    'dres': 'dress', 'dresss': 'dress',
    'totte': 'tote', 'tot': 'tote',
    'crosbody': 'crossbody', 'crossbdy': 'crossbody',
    'backpak': 'backpack', 'bakpack': 'backpack',
    'handbg': 'handbag', 'hanbag': 'handbag',
    'bagg': 'bag', 'bgas': 'bags',
    'beltt': 'belt', 'blet': 'belt',
    'scarff': 'scarf', 'scraf': 'scarf', 'scarve': 'scarf',
    'sunglases': 'sunglasses', 'sunglasess': 'sunglasses',
    'acessories': 'accessories', 'accesories': 'accessories', 'accessorys': 'accessories',
    'clotes': 'clothes', 'cloths': 'clothes',
    'blak': 'black', 'balck': 'black', 'whit': 'white', 'whte': 'white',
    'grey': 'gray', 'beig': 'beige', 'brwn': 'brown', 'nvy': 'navy',
}

# Words that must never be "corrected" by the fuzzy pass
COMMON_WORDS = {
    'show', 'shows', 'shown', 'shop', 'shops', 'shopping', 'short', 'should', 'shoot',
    'sure', 'some', 'sweet', 'white', 'black', 'where', 'there', 'these', 'those',
    'what', 'which', 'with', 'want', 'would', 'could', 'have', 'like', 'looking',
    'find', 'first', 'last', 'give', 'please', 'thanks', 'thank', 'hello', 'total',
    'bought', 'both', 'blank', 'brown', 'cloth', 'dresser', 'boat', 'while', 'whole',
    'dream', 'drew', 'close', 'closed', 'closer', 'below', 'being', 'hands', 'handle',
    'book', 'books', 'great', 'greet', 'shore',
}

COLORS = [
    'white', 'black', 'navy', 'blue', 'red', 'green', 'gray', 'beige', 'brown', 'tan',
    'cream', 'pink', 'purple', 'yellow', 'orange', 'olive', 'burgundy', 'camel', 'khaki',
]

# Order matters: first entry found is reported first
PRODUCT_KEYWORDS = [
    'sneakers', 'sneaker', 'boots', 'boot', 'loafers', 'loafer', 'sandals', 'sandal', 'heels',
    'shoes', 'shoe',
    'blazer', 'jacket', 'overcoat', 'coat', 'sweater', 'hoodie', 'trousers', 'pants', 'jeans',
    't-shirt', 'shirt', 'dress', 'skirt',
    'tote', 'crossbody', 'backpack', 'handbag', 'purse', 'bags', 'bag',
    'belt', 'scarf', 'sunglasses', 'hat', 'watch', 'wallet',
]

CATEGORY_KEYWORDS = {
    'Shoes': ['shoe', 'shoes', 'sneaker', 'sneakers', 'boot', 'boots', 'loafer', 'loafers',
              'sandal', 'sandals', 'heels', 'footwear'],
    'Clothes': ['clothes', 'clothing', 'blazer', 'jacket', 'jackets', 'overcoat', 'coat', 'sweater',
                'hoodie', 'trouser', 'trousers', 'pant', 'pants', 'jeans', 'shirt', 't-shirt',
                'dress', 'skirt', 'outfit'],
    'Bags': ['bag', 'bags', 'tote', 'crossbody', 'backpack', 'handbag', 'purse'],
    'Accessories': ['accessory', 'accessories', 'belt', 'scarf', 'sunglasses', 'hat', 'watch',
                    'wallet', 'jewelry'],
}

SIZE_WORDS = {
    'extra small': 'XS', 'extra large': 'XL', 'small': 'S', 'medium': 'M', 'large': 'L',
    'xs': 'XS', 's': 'S', 'm': 'M', 'l': 'L', 'xl': 'XL', 'xxl': 'XXL',
    'one size': 'One Size',
}

SIZE_TOKEN = r'(?:3[6-9]|4[0-9]|xxl|xl|xs|s|m|l|extra small|extra large|small|medium|large|one size)'

# Exactly a size, optionally "size 42" / "size: M"
EXACT_SIZE_PATTERN = re.compile(r'^(?:size\s*:?\s*)?(' + SIZE_TOKEN + r')$')

# A size mentioned inside a longer sentence
SIZE_IN_TEXT_PATTERNS = [
    re.compile(r'\bsize\s*:?\s*(' + SIZE_TOKEN + r'|\w+)\b'),
    re.compile(r'\bin (?:a |an )?(xxl|xl|xs|extra small|extra large|small|medium|large|s|m|l)\b'),
    re.compile(r'(?<!\$)\b(3[6-9]|4[0-9])\b(?!\s*(?:%|\$|dollars?|bucks?|percent))'),
    re.compile(r'\b(xxl|xl|xs)\b'),
]

QUANTITY_WORDS = {'one': 1, 'two': 2, 'three': 3, 'four': 4, 'five': 5, 'a couple': 2, 'a pair': 1}


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert / delete / substitute)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


class QueryParser:
    """Parse chat messages into structured search parameters deterministically"""

    def __init__(self):
        self.misspellings = dict(MISSPELLINGS)
        self.colors = list(COLORS)
        self.product_keywords = list(PRODUCT_KEYWORDS)
        self.category_keywords = {k: list(v) for k, v in CATEGORY_KEYWORDS.items()}

        # Keys bucketed by 3-char prefix so the fuzzy pass only scans plausible candidates
        self._prefix_index: Dict[str, List[str]] = {}
        for key in self.misspellings:
            self._prefix_index.setdefault(key[:3], []).append(key)

        self._known_words = (
            COMMON_WORDS | set(self.misspellings.values()) | set(self.product_keywords) | set(self.colors)
        )

        # Price patterns - ordered by specificity
        self.price_patterns = [
            (r'(?:from|between)\s*\$?\s*(\d+(?:\.\d+)?)\s*(?:to|and|-)\s*\$?\s*(\d+(?:\.\d+)?)', 'range'),
            (r'\$?\s*(\d+(?:\.\d+)?)\s*-\s*\$?\s*(\d+(?:\.\d+)?)\s*(?:dollars?|bucks?|\$)', 'range'),
            (r'(?:under|below|less\s+than|cheaper\s+than|max(?:imum)?|up\s+to)\s*\$?\s*(\d+(?:\.\d+)?)', 'max'),
            (r'(?:over|above|more\s+than|greater\s+than|at\s+least)\s*\$?\s*(\d+(?:\.\d+)?)', 'min'),
        ]

        # Sorting keywords
        self.sort_keywords = {
            'cheapest': 'asc',
            'cheaper': 'asc',
            'cheap': 'asc',
            'affordable': 'asc',
            'budget': 'asc',
            'lowest price': 'asc',
            'low price': 'asc',
            'low to high': 'asc',
            'inexpensive': 'asc',
            'most expensive': 'desc',
            'expensive': 'desc',
            'pricier': 'desc',
            'premium': 'desc',
            'luxury': 'desc',
            'high end': 'desc',
            'high-end': 'desc',
            'highest price': 'desc',
            'high to low': 'desc',
        }

    # ------------------------------------------------------------------
    # Spell / attribute normalization
    # ------------------------------------------------------------------

    def normalize(self, query: str) -> NormalizedQuery:
        """
        Correct misspellings and extract color + product keywords.

        Returns:
            NormalizedQuery with corrected_query, color, product_keywords and
            generic_keywords (words longer than 2 chars, used when no product
            keyword matched).
        """
        if not query or not query.strip():
            return NormalizedQuery(original_query=query or "", corrected_query=query or "")

        tokens = query.lower().split()
        corrected = " ".join(self.correct_token(t) for t in tokens)

        color = self.extract_color(corrected)
        product_keywords = self.extract_product_keywords(corrected)
        generic_keywords = []
        if not product_keywords:
            generic_keywords = [w for w in (re.sub(r'[^a-z0-9\-]', '', t) for t in corrected.split())
                                if len(w) > 2 and w not in FILLER_WORDS]

        return NormalizedQuery(
            original_query=query,
            corrected_query=corrected,
            color=color,
            product_keywords=product_keywords,
            generic_keywords=generic_keywords,
        )

    def correct_token(self, token: str) -> str:
        """Exact table hit first, then edit distance <= 2 against same-prefix keys."""
        match = re.match(r'^([a-z0-9\-]+)(\W*)$', token)
        if not match:
            return token
        word, trailing = match.groups()

        if word in self.misspellings:
            return self.misspellings[word] + trailing
        if len(word) <= 3 or word in self._known_words:
            return token

        best, best_distance = None, 3
        for key in self._prefix_index.get(word[:3], []):
            if abs(len(key) - len(word)) > 1:
                continue
            distance = levenshtein_distance(word, key)
            if distance < best_distance:
                best, best_distance = key, distance
        if best is not None:
            return self.misspellings[best] + trailing
        return token

    def extract_color(self, text: str) -> Optional[str]:
        """First color in vocabulary order that appears as a whole word."""
        text = text.lower()
        for color in self.colors:
            if re.search(r'\b' + re.escape(color) + r'\b', text):
                return color
        return None

    def extract_product_keywords(self, text: str) -> List[str]:
        text = text.lower()
        return [kw for kw in self.product_keywords
                if re.search(r'(?<![\w-])' + re.escape(kw) + r'(?![\w-])', text)]

    def extract_category(self, text: str) -> Optional[str]:
        """Map the first product word found to its store category."""
        words = re.findall(r'[a-z][a-z\-]*', text.lower())
        for word in words:
            for category, keywords in self.category_keywords.items():
                if word in keywords:
                    return category
        return None

    def category_for_keyword(self, keyword: str) -> Optional[str]:
        for category, keywords in self.category_keywords.items():
            if keyword.lower() in keywords:
                return category
        return None

    # ------------------------------------------------------------------
    # Sizes / quantities
    # ------------------------------------------------------------------

    def parse_exact_size(self, message: str) -> Optional[str]:
        """Return the size token if the whole message is a size answer."""
        cleaned = re.sub(r'[.!?]+$', '', message.strip().lower()).strip()
        match = EXACT_SIZE_PATTERN.match(cleaned)
        return match.group(1) if match else None

    def extract_size(self, message: str) -> Optional[str]:
        text = message.lower()
        for pattern in SIZE_IN_TEXT_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)
        return None

    def canonical_size(self, size: str) -> str:
        """small -> S, 'size: 42' -> 42, etc."""
        cleaned = re.sub(r'^size\s*:?\s*', '', size.strip().lower())
        return SIZE_WORDS.get(cleaned, cleaned.upper())

    def extract_quantity(self, message: str) -> int:
        text = message.lower()
        match = re.search(r'\b(\d{1,2})\s*(?:x\b|pieces?|pairs?|items?|units?|of\s+(?:them|these|those|it|the))', text)
        if match:
            return max(1, int(match.group(1)))
        for word, qty in QUANTITY_WORDS.items():
            if re.search(r'\b' + word + r'\s+(?:of\s+(?:them|these|those)|pairs?|pieces?)\b', text):
                return qty
        return 1

    # ------------------------------------------------------------------
    # Price / sort
    # ------------------------------------------------------------------

    def extract_price(self, query: str) -> Optional[Dict[str, Any]]:
        """Extract price range from query"""
        for pattern, pattern_type in self.price_patterns:
            match = re.search(pattern, query, re.IGNORECASE)
            if match:
                if pattern_type == 'range':
                    return {'min_price': float(match.group(1)), 'max_price': float(match.group(2))}
                elif pattern_type == 'max':
                    return {'max_price': float(match.group(1))}
                elif pattern_type == 'min':
                    return {'min_price': float(match.group(1))}
        return None

    def detect_sort(self, query: str) -> Optional[str]:
        """Detect price sort direction; longest keyword wins ('most expensive' over 'expensive')."""
        query = query.lower()
        for keyword in sorted(self.sort_keywords, key=len, reverse=True):
            if re.search(r'\b' + re.escape(keyword) + r'\b', query):
                return self.sort_keywords[keyword]
        if re.search(r'\bsort\b', query):
            return 'desc' if re.search(r'\b(high|highest|desc|descending)\b', query) else 'asc'
        return None


FILLER_WORDS = {
    'the', 'and', 'for', 'you', 'your', 'can', 'show', 'find', 'looking', 'want', 'need',
    'some', 'something', 'please', 'have', 'any', 'got', 'with', 'what', 'are', 'there',
    'search', 'get', 'like', 'would', 'could', 'this', 'that', 'our', 'its', "it's",
}


# Singleton instance
_parser = QueryParser()


def normalize(query: str) -> NormalizedQuery:
    """Spell-correct a query and extract color / product keywords"""
    return _parser.normalize(query)


def extract_category(query: str) -> Optional[str]:
    """Extract store category (Shoes, Clothes, Bags, Accessories) from query"""
    return _parser.extract_category(query)


def get_parser() -> QueryParser:
    """Get the singleton parser instance"""
    return _parser
