"""
Tests for the ordered intent rules.
"""

import pytest

from clerk.agents.intent_classifier import INTENT_RULES, IntentClassifier, match_product_name
from clerk.models.schemas import ConversationState, IntentType

classifier = IntentClassifier()


@pytest.fixture
def shoes_state(products):
    state = ConversationState()
    state.show_products([products["2"], products["9"], products["12"]])
    return state


@pytest.fixture
def pending_state(products):
    return ConversationState(pending_size_selection=products["1"])


class TestRuleOrder:
    def test_rules_run_in_priority_order(self):
        assert [name for name, _ in INTENT_RULES] == [
            'size_response', 'confirmation', 'referential_add', 'haggle', 'filter',
            'search', 'inventory_check', 'recommendations', 'general',
        ]

    def test_custom_rules_fall_back_to_general(self):
        intent = IntentClassifier(rules=[('never', lambda m, t, s: None)]).classify("show me shoes",
                                                                                    ConversationState())
        assert intent.type == IntentType.GENERAL


class TestSizeResponse:
    def test_bare_size_answers_pending_question(self, pending_state):
        intent = classifier.classify("M", pending_state)
        assert intent.type == IntentType.SIZE_RESPONSE
        assert intent.size == "m"

    def test_size_with_prefix(self, pending_state):
        intent = classifier.classify("size: L", pending_state)
        assert intent.type == IntentType.SIZE_RESPONSE
        assert intent.size == "l"

    def test_bare_size_without_pending_is_general(self):
        assert classifier.classify("42", ConversationState()).type == IntentType.GENERAL

    def test_new_search_beats_pending_size(self, pending_state):
        assert classifier.classify("show me bags", pending_state).type == IntentType.SEARCH


class TestAddToCart:
    def test_affirmative_after_products_shown(self, shoes_state):
        intent = classifier.classify("Yes please!", shoes_state)
        assert intent.type == IntentType.ADD_TO_CART
        assert intent.rule == 'confirmation'
        assert intent.affirmative

    def test_affirmative_without_context_is_general(self):
        intent = classifier.classify("yes", ConversationState())
        assert intent.type == IntentType.GENERAL
        assert intent.affirmative

    def test_ordinal_reference(self, shoes_state):
        intent = classifier.classify("add the first one", shoes_state)
        assert intent.rule == 'ordinal_reference'
        assert intent.product_index == 0

    def test_last_ordinal(self, shoes_state):
        intent = classifier.classify("I'll take the last one", shoes_state)
        assert intent.rule == 'ordinal_reference'
        assert intent.product_index == -1

    def test_named_reference_with_size(self, shoes_state):
        intent = classifier.classify("add the chelsea boots in 42", shoes_state)
        assert intent.type == IntentType.ADD_TO_CART
        assert intent.rule == 'named_reference'
        assert intent.product_name == "Chelsea Boots"
        assert intent.size == "42"

    def test_pronoun_reference(self, shoes_state):
        intent = classifier.classify("I'll buy it", shoes_state)
        assert intent.rule == 'pronoun_reference'

    def test_shown_product_word(self, shoes_state):
        intent = classifier.classify("please add the sneakers", shoes_state)
        assert intent.rule == 'shown_reference'

    def test_cart_mention_without_context(self):
        intent = classifier.classify("add a hat to my cart", ConversationState())
        assert intent.type == IntentType.ADD_TO_CART
        assert intent.rule == 'cart_request'

    def test_cart_questions_are_not_adds(self, shoes_state):
        for message in ["how do I get to my cart?", "I want to see my cart", "where is my basket", "show me my cart"]:
            intent = classifier.classify(message, shoes_state)
            assert intent.type == IntentType.GENERAL, message

    def test_pronoun_into_cart(self, shoes_state):
        intent = classifier.classify("add it to my basket", shoes_state)
        assert intent.rule == 'pronoun_reference'
        assert intent.affirmative

    def test_quantity_is_extracted(self, shoes_state):
        intent = classifier.classify("add 2 of the first one", shoes_state)
        assert intent.product_index == 0
        assert intent.quantity == 2


class TestHaggle:
    def test_discount_request(self, shoes_state):
        intent = classifier.classify("can I get a discount?", shoes_state)
        assert intent.type == IntentType.HAGGLE
        assert intent.rule == 'discount_request'
        assert intent.occasion is None

    def test_discount_request_with_occasion(self):
        intent = classifier.classify("it's my birthday, can I get a discount", ConversationState())
        assert intent.type == IntentType.HAGGLE
        assert intent.occasion == "birthday"

    def test_occasion_alone(self):
        intent = classifier.classify("It's my birthday today!", ConversationState())
        assert intent.rule == 'occasion'
        assert intent.occasion == "birthday"

    def test_occasion_while_shopping_is_a_search(self):
        assert classifier.classify("I need an outfit for a wedding", ConversationState()).type == IntentType.SEARCH


class TestFilterAndSearch:
    def test_sort_request(self):
        intent = classifier.classify("show me cheaper options", ConversationState())
        assert intent.type == IntentType.FILTER
        assert intent.sort_order == "asc"

    def test_price_cap_with_category(self):
        intent = classifier.classify("bags under $150", ConversationState())
        assert intent.type == IntentType.FILTER
        assert intent.max_price == 150
        assert intent.category == "Bags"
        assert intent.sort_order is None

    def test_product_search(self):
        intent = classifier.classify("show me shoes", ConversationState())
        assert intent.type == IntentType.SEARCH
        assert intent.category == "Shoes"

    def test_misspelled_product_is_a_search(self):
        intent = classifier.classify("sneekers", ConversationState())
        assert intent.type == IntentType.SEARCH
        assert intent.category == "Shoes"

    def test_style_search(self):
        intent = classifier.classify("do you have any winter stuff", ConversationState())
        assert intent.type == IntentType.SEARCH
        assert intent.category is None


class TestOtherIntents:
    def test_availability_question(self):
        intent = classifier.classify("is the silk scarf in stock?", ConversationState())
        assert intent.type == IntentType.INVENTORY_CHECK
        assert intent.size is None

    def test_availability_with_size(self):
        intent = classifier.classify("are the boots available in 42", ConversationState())
        assert intent.type == IntentType.INVENTORY_CHECK
        assert intent.size == "42"

    def test_recommendations(self):
        assert classifier.classify("what do you recommend?", ConversationState()).type == IntentType.RECOMMENDATIONS

    def test_greeting_is_general(self):
        intent = classifier.classify("hello", ConversationState())
        assert intent.type == IntentType.GENERAL
        assert not intent.affirmative


class TestMatchProductName:
    def test_full_name(self):
        assert match_product_name("i love the linen blazer", ["Linen Blazer"]) == "Linen Blazer"

    def test_distinctive_word(self):
        assert match_product_name("the chelsea ones", ["Classic Sneakers", "Chelsea Boots"]) == "Chelsea Boots"

    def test_generic_word_is_not_enough(self):
        assert match_product_name("the sneakers", ["Classic Sneakers", "Running Sneakers"]) is None
