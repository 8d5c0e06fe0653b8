"""
Rule-based intent classifier.

Rules are tried in INTENT_RULES order and the first one that returns an
Intent wins, so a pending size question always beats keyword matches and
cart references beat searches.
"""

import re
from typing import Callable, List, Optional, Tuple

from clerk.agents.haggle import detect_occasion
from clerk.models.schemas import ConversationState, Intent, IntentType, Product
from clerk.tools.catalog import search_stem
from clerk.utils.logger import get_logger
from clerk.utils.query_parser import COLORS, CATEGORY_KEYWORDS, PRODUCT_KEYWORDS, get_parser

logger = get_logger(__name__)

parser = get_parser()

AFFIRMATIVES = {
    'add it', 'buy it', 'yes', 'yeah', 'yep', 'yup', 'ok', 'okay', 'sure', 'add to cart',
    'add to my cart', 'take it', 'get it', "i'll take it", 'ill take it', 'i will take it',
    'yes please', 'sounds good', 'perfect', 'do it', "let's do it", 'i want it', 'i want that',
}

ADD_VERB = re.compile(r'\b(add|buy|get|take|want|grab|purchase|order)\b')
PRONOUN_REFERENCE = re.compile(r'\b(add|buy|get|take|grab|purchase|order)\s+(it|this|that|these|those|them)\b')
STRONG_ADD_VERB = re.compile(r'\b(add|buy|purchase|grab)\b')
CART_WORD = re.compile(r'\b(cart|basket)\b')
# "where is my cart", "I want to see my basket": about the cart, not adding to it
CART_QUESTION = re.compile(r"\b(where|how|see|view|check|show|open|go to|get to|what's in|whats in)\b")

ORDINALS = {
    'first': 0, '1st': 0, 'second': 1, '2nd': 1, 'third': 2, '3rd': 2,
    'fourth': 3, '4th': 3, 'fifth': 4, '5th': 4, 'sixth': 5, '6th': 5, 'last': -1,
}
ORDINAL_PATTERN = re.compile(
    r'\b(?:the\s+)?(' + '|'.join(ORDINALS) + r')(?:\s+(?:one|item|product|pair))?\b'
    r'(?!\s+(?:time|purchase|order))'
)

DISCOUNT_PATTERN = re.compile(
    r'\b(discount|discounts|deal|deals|coupon|coupons|promo|haggle|negotiate|bargain|cheaper price)\b'
    r'|\bcan you give\b|\d+\s*%\s*off|%\s*off|\bpercent off\b'
)
SEARCH_PHRASING = re.compile(
    r'\b(show me|looking for|find|search|do you have|i need|need a|need some|outfit|wear|suggest|recommend)\b'
)

SEARCH_VERBS = re.compile(
    r'\b(find|show me|show|looking for|look for|search|do you have|got any|i need|i want|browse|see some|see your)\b'
)
STYLE_WORDS = re.compile(
    r'\b(winter|summer|spring|autumn|fall|casual|formal|party|office|work|outfit|beach|vacation|'
    r'travel|elegant|gift|cozy|sport|running|date night|interview)\b'
)
PRODUCT_NOUNS = sorted(
    set(PRODUCT_KEYWORDS) | {kw for kws in CATEGORY_KEYWORDS.values() for kw in kws},
    key=len, reverse=True
)
PRODUCT_NOUN_PATTERN = re.compile(r'(?<![\w-])(' + '|'.join(re.escape(n) for n in PRODUCT_NOUNS) + r')(?![\w-])')

AVAILABILITY_PATTERN = re.compile(
    r'\b(available|availability|in stock|out of stock|sold out|still have|do you carry)\b'
)
RECOMMEND_PATTERN = re.compile(r'\b(recommend|recommendation|recommendations|suggest|suggestion|trending|popular|surprise me)\b')

# Words in product names too generic to identify a single product
GENERIC_NAME_WORDS = set(PRODUCT_KEYWORDS) | set(COLORS) | {
    kw for kws in CATEGORY_KEYWORDS.values() for kw in kws
}


def clean_message(message: str) -> str:
    return re.sub(r'\s+', ' ', message.strip().lower())


def strip_punctuation(text: str) -> str:
    return re.sub(r"[^\w\s']", '', text).strip()


def match_product_name(text: str, names: List[str]) -> Optional[str]:
    """Full product name first, then a distinctive word from the name"""
    for name in names:
        if name.lower() in text:
            return name
    for name in names:
        for word in re.findall(r'[a-z][a-z\-]*', name.lower()):
            if len(word) > 3 and word not in GENERIC_NAME_WORDS and re.search(r'\b' + re.escape(word) + r'\b', text):
                return name
    return None


def mentions_shown_product(text: str, products: List[Product]) -> bool:
    words = {search_stem(w) for w in re.findall(r'[a-z][a-z\-]*', text) if len(w) > 3}
    for product in products:
        if words & {search_stem(w) for w in re.findall(r'[a-z][a-z\-]*', product.name.lower())}:
            return True
    return False


def _intent(intent_type: IntentType, rule: str, message: str, **fields) -> Intent:
    return Intent(type=intent_type, rule=rule, message=message, **fields)


# ----------------------------------------------------------------------
# Rules, in priority order
# ----------------------------------------------------------------------

def size_response_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    if state.pending_size_selection is None:
        return None
    size = parser.parse_exact_size(text)
    if size is None:
        return None
    return _intent(IntentType.SIZE_RESPONSE, 'size_response', message, size=size)


def confirmation_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    if not (state.last_shown_products or state.pending_size_selection):
        return None
    if strip_punctuation(text) not in AFFIRMATIVES:
        return None
    return _intent(IntentType.ADD_TO_CART, 'confirmation', message, affirmative=True)


def referential_add_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    if not ADD_VERB.search(text):
        return None

    fields = {'size': parser.extract_size(text), 'quantity': parser.extract_quantity(text)}

    ordinal = ORDINAL_PATTERN.search(text)
    if ordinal and state.last_shown_products:
        return _intent(IntentType.ADD_TO_CART, 'ordinal_reference', message,
                       product_index=ORDINALS[ordinal.group(1)], **fields)

    name = match_product_name(text, state.last_mentioned_products)
    if name:
        return _intent(IntentType.ADD_TO_CART, 'named_reference', message, product_name=name, **fields)

    if PRONOUN_REFERENCE.search(text) and (state.last_shown_products or state.pending_size_selection):
        # "buy it" points at the pending or first shown product, like a "yes"
        return _intent(IntentType.ADD_TO_CART, 'pronoun_reference', message, affirmative=True, **fields)

    if STRONG_ADD_VERB.search(text) and mentions_shown_product(text, state.last_shown_products):
        return _intent(IntentType.ADD_TO_CART, 'shown_reference', message, **fields)

    if CART_WORD.search(text) and not CART_QUESTION.search(text):
        corrected = parser.normalize(text).corrected_query
        if PRODUCT_NOUN_PATTERN.search(corrected) or PRONOUN_REFERENCE.search(text):
            return _intent(IntentType.ADD_TO_CART, 'cart_request', message, **fields)
    return None


def haggle_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    occasion = detect_occasion(text)
    if DISCOUNT_PATTERN.search(text):
        return _intent(IntentType.HAGGLE, 'discount_request', message, occasion=occasion)
    if occasion and not SEARCH_PHRASING.search(text):
        return _intent(IntentType.HAGGLE, 'occasion', message, occasion=occasion)
    return None


def filter_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    sort_order = parser.detect_sort(text)
    price = parser.extract_price(text) or {}
    if not sort_order and not price:
        return None
    return _intent(IntentType.FILTER, 'sort_or_price', message, sort_order=sort_order,
                   category=parser.extract_category(text), min_price=price.get('min_price'),
                   max_price=price.get('max_price'))


def search_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    # Availability questions name products too; leave them to inventory_check
    if AVAILABILITY_PATTERN.search(text):
        return None
    corrected = parser.normalize(text).corrected_query
    # "show me my cart" is a cart question, not a product search
    if CART_WORD.search(text) and not PRODUCT_NOUN_PATTERN.search(corrected):
        return None
    if SEARCH_VERBS.search(text) or PRODUCT_NOUN_PATTERN.search(corrected) or STYLE_WORDS.search(text):
        return _intent(IntentType.SEARCH, 'search', message, category=parser.extract_category(corrected))
    return None


def inventory_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    if not AVAILABILITY_PATTERN.search(text):
        return None
    return _intent(IntentType.INVENTORY_CHECK, 'availability', message, size=parser.extract_size(text),
                   product_name=match_product_name(text, state.last_mentioned_products))


def recommendations_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    if RECOMMEND_PATTERN.search(text):
        return _intent(IntentType.RECOMMENDATIONS, 'recommend', message)
    return None


def general_rule(message: str, text: str, state: ConversationState) -> Optional[Intent]:
    return _intent(IntentType.GENERAL, 'general', message,
                   affirmative=strip_punctuation(text) in AFFIRMATIVES)


Rule = Callable[[str, str, ConversationState], Optional[Intent]]

INTENT_RULES: List[Tuple[str, Rule]] = [
    ('size_response', size_response_rule),
    ('confirmation', confirmation_rule),
    ('referential_add', referential_add_rule),
    ('haggle', haggle_rule),
    ('filter', filter_rule),
    ('search', search_rule),
    ('inventory_check', inventory_rule),
    ('recommendations', recommendations_rule),
    ('general', general_rule),
]


class IntentClassifier:
    def __init__(self, rules: Optional[List[Tuple[str, Rule]]] = None):
        self.rules = rules or INTENT_RULES

    def classify(self, message: str, state: ConversationState) -> Intent:
        text = clean_message(message or "")
        for name, rule in self.rules:
            intent = rule(message, text, state)
            if intent is not None:
                logger.debug(f"🧭 Rule '{name}' matched → {intent.type.value}")
                return intent
        return general_rule(message, text, state)
