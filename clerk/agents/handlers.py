"""
Intent handlers.

One coroutine per intent type. Each reads and updates the session's
ConversationState and returns a ClerkResponse; none of them raise for
ordinary "not found" or "invalid size" situations.
"""

import re
from typing import List, Optional

from langchain_core.prompts import PromptTemplate

from clerk.agents.haggle import DiscountEvaluator
from clerk.agents.intent_classifier import AFFIRMATIVES, match_product_name, strip_punctuation
from clerk.agents.search_resolver import ProductSearchResolver
from clerk.config import Config
from clerk.models.schemas import (
    ActivityType, AddToCartAction, AddToCartPayload, ClerkResponse, ConversationState,
    ConversationTurn, CouponPayload, FilterAction, FilterPayload, Intent, IntentType, Product,
    ProductFilters, ProductSort
)
from clerk.tools.activity_log import ActivityLog
from clerk.tools.cache_manager import InventoryCache
from clerk.tools.cart import Cart
from clerk.tools.catalog import Catalog, load_bundled_products, search_stem
from clerk.tools.llm import LLMClient, is_rate_limit_error
from clerk.utils.logger import get_logger
from clerk.utils.query_parser import get_parser

logger = get_logger(__name__)

parser = get_parser()

POPULAR_LIMIT = 4

GREETING_PATTERN = re.compile(r"^(hi|hello|hey|hiya|howdy|yo|good (morning|afternoon|evening))\b")
THANKS_PATTERN = re.compile(r"\b(thanks|thank you|thx|ty|bye|goodbye|see you|cheers)\b")
CART_QUESTION_PATTERN = re.compile(r"\b(cart|basket|checkout|check out)\b")

# Words that never identify a product on their own
NON_PRODUCT_WORDS = {
    'add', 'buy', 'get', 'take', 'want', 'grab', 'purchase', 'order', 'please', 'cart', 'size',
    'this', 'that', 'these', 'those', 'them', 'with', 'into', 'my', 'the', 'one', 'pair', 'some',
    'like', 'would', 'could', 'also', 'just', 'really', 'love',
}

GREETING_MESSAGE = ("Hey there! Welcome to TrendZone! 👋 I'm The Clerk, your personal shopping buddy. "
                    "Looking for anything specific today? Shoes, clothes, bags - or maybe you want me "
                    "to surprise you with some recommendations?")
THANKS_MESSAGE = "You're welcome! It was great helping you today. Come back anytime - I'll be here! Happy shopping! 🛍️"
CART_MESSAGE = ("You can check your cart by clicking the cart icon in the top right! Ready to checkout? "
                "Everything's waiting for you there. 🛒")
CAPABILITY_MESSAGE = ("Hey! I'm here to help you find the perfect stuff. Here are some of our popular items - "
                      "or just tell me what you're looking for! I can help with shoes, clothes, bags, "
                      "accessories... and I might even have some discounts for you! 😉")
BUSY_MESSAGE = "I'm a bit busy right now! Let me show you some of our popular items while things calm down."
DISCOUNT_MENU = ("I'd love to help with a discount! We offer special codes for:\n\n"
                 "• 🎂 Birthdays - 15% off\n• 💍 Weddings - 20% off\n• 📚 Students - 10% off\n"
                 "• 🆕 First order - 10% off\n\nJust let me know your occasion!")

CHAT_PROMPT = PromptTemplate.from_template("""You are "The Clerk" - a friendly, knowledgeable personal shopper at TrendZone, a modern fashion store.

Be warm and conversational, keep replies to 2-4 sentences and use the occasional emoji.
Only talk about products from the inventory below - never make up products.
Before anything goes into the cart the customer must pick a size.
Discounts exist for birthdays (15%), weddings (20%), students (10%), first orders (10%) and bulk orders (12%).

CURRENT STORE INVENTORY ({count} products):
{inventory}
""")


def format_inventory(products: List[Product]) -> str:
    return "\n".join(
        f'{i}. "{p.name}" | ${p.price:g} | Category: {p.category} | Sizes: {", ".join(p.sizes) or "One Size"} | '
        f'Stock: {"In Stock" if p.stock > 0 else "Out of Stock"} | ID: {p.id}'
        for i, p in enumerate(products, 1)
    )


def match_size(product: Product, size: str) -> Optional[str]:
    """The product's own spelling of `size`, or None if it isn't offered"""
    canonical = parser.canonical_size(size)
    for option in product.sizes:
        if option.lower() == canonical.lower() or option.lower() == size.strip().lower():
            return option
    return None


def default_size(product: Product) -> str:
    return product.sizes[0] if product.sizes else "One Size"


class IntentHandlers:
    """Executes classified intents against the store collaborators"""

    def __init__(self, session_id: str, catalog: Catalog, cart: Cart, resolver: ProductSearchResolver,
                 evaluator: DiscountEvaluator, inventory: InventoryCache,
                 activity: Optional[ActivityLog] = None, llm: Optional[LLMClient] = None):
        self.session_id = session_id
        self.catalog = catalog
        self.cart = cart
        self.resolver = resolver
        self.evaluator = evaluator
        self.inventory = inventory
        self.activity = activity
        self.llm = llm

        self.routes = {
            IntentType.SEARCH: self.handle_search,
            IntentType.ADD_TO_CART: self.handle_add_to_cart,
            IntentType.SIZE_RESPONSE: self.handle_size_response,
            IntentType.FILTER: self.handle_filter,
            IntentType.INVENTORY_CHECK: self.handle_inventory_check,
            IntentType.HAGGLE: self.handle_haggle,
            IntentType.RECOMMENDATIONS: self.handle_recommendations,
        }

    async def dispatch(self, intent: Intent, state: ConversationState,
                       history: Optional[List[ConversationTurn]] = None) -> ClerkResponse:
        if intent.type == IntentType.GENERAL:
            return await self.handle_general(intent, state, history)
        return await self.routes[intent.type](intent, state)

    # ------------------------------------------------------------------
    # Search / browse
    # ------------------------------------------------------------------

    async def handle_search(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        category = intent.category or parser.extract_category(intent.message)
        result = await self.resolver.search(intent.message, Config.MAX_SEARCH_RESULTS, category)
        state.last_search_query = result.corrected_query or intent.message

        if result.no_match:
            fallback = await self.recommended_products()
            state.show_products(fallback)
            wanted = result.search_keyword or intent.message
            return ClerkResponse(
                message=(f"Sorry, I couldn't find anything matching \"{wanted}\" right now. "
                         f"Here are a few pieces you might like instead!"),
                products=fallback or None,
            )

        state.show_products(result.products)
        if category:
            state.last_category = category
            payload = FilterPayload(filter_type="filter_by_category", value=category)
        else:
            payload = FilterPayload(filter_type="search", value=result.search_keyword or intent.message)

        return ClerkResponse(
            message=self._search_message(result.products, category, result.extracted_color),
            products=result.products,
            action=FilterAction(payload=payload),
        )

    def _search_message(self, products: List[Product], category: Optional[str], color: Optional[str]) -> str:
        if category == "Shoes":
            opener = "Let me show you our shoe collection! We've got some great options - from casual sneakers to classic boots."
        elif category == "Clothes":
            opener = "Here's our clothing collection! We've got everything from cozy sweaters to sharp blazers."
        elif category == "Bags":
            opener = "Check out our bag collection! Perfect for work, travel, or everyday use."
        else:
            opener = f"I found {len(products)} {'piece' if len(products) == 1 else 'pieces'} you might like!"

        if color and not any(color in (c.lower() for c in p.colors) for p in products):
            opener += f" I couldn't find these in {color}, but here's the closest match."
        return f"{opener} Let me know if you'd like to add any of them to your cart."

    async def handle_filter(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        order = intent.sort_order or "asc"
        filters = ProductFilters(category=intent.category, min_price=intent.min_price, max_price=intent.max_price)
        products = await self.catalog.list_products(filters, ProductSort(field="price", order=order))
        products = products[:Config.MAX_FILTER_RESULTS]

        if intent.sort_order or not intent.category:
            payload = FilterPayload(filter_type="sort_by_price", value=order)
        else:
            payload = FilterPayload(filter_type="filter_by_category", value=intent.category)
        if intent.category:
            state.last_category = intent.category

        if not products:
            return ClerkResponse(
                message="I couldn't find anything in that price range. Want me to show you our most affordable pieces instead?",
                action=FilterAction(payload=payload),
            )

        state.show_products(products)
        if intent.max_price is not None and intent.min_price is not None:
            message = f"Here's what we have between ${intent.min_price:g} and ${intent.max_price:g}!"
        elif intent.max_price is not None:
            message = f"Here's what we have under ${intent.max_price:g}!"
        elif intent.min_price is not None:
            message = f"Here's what we have over ${intent.min_price:g}!"
        elif order == "asc":
            message = ("Looking for something budget-friendly? Here are our most affordable options - "
                       "great quality without breaking the bank!")
        else:
            message = ("Looking for something special? Here are our premium picks - "
                       "top quality pieces that make a statement!")

        return ClerkResponse(message=message, products=products, action=FilterAction(payload=payload))

    async def handle_recommendations(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        products = await self.recommended_products()
        state.show_products(products)
        return ClerkResponse(
            message="Here are a few picks I think you'll love! Want to see more of any style?",
            products=products or None,
        )

    async def recommended_products(self, limit: int = POPULAR_LIMIT) -> List[Product]:
        """Activity-based picks, else newest products, else the bundled list"""
        inventory = await self.inventory.get_inventory()

        if self.activity:
            recent = await self.activity.recent(self.session_id, 10)
            seen_ids = {a.product_id for a in recent}
            categories = {p.category for p in inventory if p.id in seen_ids}
            picks = [p for p in inventory if p.category in categories and p.id not in seen_ids]
            if picks:
                return picks[:limit]

        if inventory:
            return inventory[:limit]
        return load_bundled_products()[:limit]

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    async def handle_add_to_cart(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        product = await self.resolve_product(intent, state)
        if product is None:
            products = await self.recommended_products()
            state.show_products(products)
            return ClerkResponse(
                message="I'm not sure which item you mean. Let me show you what we have - just tell me which one you'd like!",
                products=products or None,
            )
        if product.stock <= 0:
            return await self._out_of_stock(product)

        if intent.size:
            size = match_size(product, intent.size)
            if size is None:
                return self._invalid_size(product, intent.size)
        elif product.needs_size:
            state.pending_size_selection = product
            await self._record(product, ActivityType.VIEW)
            return ClerkResponse(
                message=(f"Great choice! **{product.name}** comes in {', '.join(product.sizes)}. "
                         f"Which size would you like?"),
                products=[product],
            )
        else:
            size = default_size(product)

        return await self._complete_add(product, size, intent.quantity, state)

    async def handle_size_response(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        product = state.pending_size_selection
        if product is None and state.last_shown_products:
            product = state.last_shown_products[0]
        if product is None:
            return ClerkResponse(message="Which item would you like that size in? Tell me the product and I'll add it.")
        if product.stock <= 0:
            return await self._out_of_stock(product)

        size = match_size(product, intent.size or intent.message)
        if size is None:
            return self._invalid_size(product, intent.size or intent.message)
        return await self._complete_add(product, size, intent.quantity, state)

    async def resolve_product(self, intent: Intent, state: ConversationState) -> Optional[Product]:
        text = intent.message.lower()
        shown = state.last_shown_products

        # (a) explicit product reference
        if intent.product_index is not None and shown:
            index = intent.product_index
            if -len(shown) <= index < len(shown):
                return shown[index]
        if intent.product_name:
            for product in shown:
                if product.name.lower() == intent.product_name.lower():
                    return product
        named = match_product_name(text, [p.name for p in shown])
        if named:
            return next(p for p in shown if p.name == named)

        # (b) word overlap with what was just shown
        words = self._content_words(text)
        if words:
            for product in shown:
                name_words = {search_stem(w) for w in re.findall(r'[a-z][a-z\-]*', product.name.lower())}
                if set(words) & name_words:
                    return product

        # (c) "yes" / "add it"
        if intent.affirmative or strip_punctuation(text) in AFFIRMATIVES:
            if state.pending_size_selection:
                return state.pending_size_selection
            if shown:
                return shown[0]

        # (d) anything in the catalog whose name mentions one of the words
        inventory = await self.inventory.get_inventory(force_refresh=True)
        if intent.product_name:
            for product in inventory:
                if product.name.lower() == intent.product_name.lower():
                    return product
        for word in words:
            for product in inventory:
                if word in product.name.lower():
                    return product
        return None

    def _content_words(self, text: str) -> List[str]:
        words = []
        for word in re.findall(r'[a-z][a-z\-]*', text):
            if len(word) > 3 and word not in NON_PRODUCT_WORDS and search_stem(word) not in words:
                words.append(search_stem(word))
        return words

    def _invalid_size(self, product: Product, size: str) -> ClerkResponse:
        return ClerkResponse(
            message=(f"Hmm, size \"{size.strip()}\" isn't available for {product.name}. "
                     f"We have: {', '.join(product.sizes)}. Which one would you like?"),
            products=[product],
        )

    async def _out_of_stock(self, product: Product) -> ClerkResponse:
        """Nothing is added and the conversation state is left as it was"""
        inventory = await self.inventory.get_inventory()
        available = [p for p in inventory if p.stock > 0 and p.id != product.id]
        similar = [p for p in available if p.category == product.category] or available
        similar = similar[:POPULAR_LIMIT]
        logger.info(f"🚫 {product.name} is out of stock, offering {len(similar)} alternatives")
        return ClerkResponse(
            message=(f"Sorry, **{product.name}** is currently out of stock, so I can't add it to your cart. "
                     f"Here's what we have available instead!"),
            products=similar or None,
        )

    async def _complete_add(self, product: Product, size: str, quantity: int,
                            state: ConversationState) -> ClerkResponse:
        state.clear_pending()
        try:
            added = await self.cart.add_item(product.id, size, quantity)
        except Exception as e:
            logger.warning(f"⚠️ Cart add raised for {product.id}: {e}")
            added = False
        if not added:
            logger.warning(f"⚠️ Cart did not confirm {product.name} ({size}); the page will sync it")

        await self._record(product, ActivityType.ADD_TO_CART)
        logger.info(f"🛒 Added {quantity} x {product.name} (size {size})")

        item = f"**{product.name}**" if quantity == 1 else f"{quantity} x **{product.name}**"
        return ClerkResponse(
            message=f"Perfect! I've added {item} (size {size}) to your cart! 🛒 Ready to checkout, or would you like to keep browsing?",
            products=[product],
            action=AddToCartAction(payload=AddToCartPayload(product_id=product.id, size=size, quantity=quantity)),
        )

    async def _record(self, product: Product, activity_type: ActivityType):
        if self.activity:
            await self.activity.record(self.session_id, product.id, activity_type)

    # ------------------------------------------------------------------
    # Inventory / haggle / general
    # ------------------------------------------------------------------

    async def handle_inventory_check(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        inventory = await self.inventory.get_inventory()
        text = intent.message.lower()

        matches = []
        name = intent.product_name or match_product_name(text, [p.name for p in inventory])
        if name:
            matches = [p for p in inventory if p.name.lower() == name.lower()]
        if not matches:
            matches = (await self.resolver.search(intent.message, 3)).products

        if not matches:
            return ClerkResponse(
                message=f"I don't see \"{intent.message.strip()}\" in our current inventory. Would you like me to show you similar items?"
            )

        product = matches[0]
        availability = "in stock" if product.stock > 0 else "currently out of stock"
        message = f"**{product.name}** is {availability}!"
        sizes = ", ".join(product.sizes) or "One Size"
        if intent.size and match_size(product, intent.size):
            message += f" Size {match_size(product, intent.size)} is available."
        elif intent.size:
            message += f" We don't have size {intent.size.upper()}, but we do have: {sizes}"
        else:
            message += f" Available sizes: {sizes}"

        state.show_products(matches[:3])
        await self._record(product, ActivityType.VIEW)
        return ClerkResponse(message=message, products=matches[:3])

    async def handle_haggle(self, intent: Intent, state: ConversationState) -> ClerkResponse:
        result = await self.evaluator.process(intent.message)
        if result.success:
            return ClerkResponse(
                message=result.message,
                action=FilterAction(payload=CouponPayload(coupon_code=result.coupon_code)),
            )
        if intent.occasion is None and result.analysis and result.analysis.sentiment != "negative":
            return ClerkResponse(message=DISCOUNT_MENU)
        return ClerkResponse(message=result.message)

    async def handle_general(self, intent: Intent, state: ConversationState,
                             history: Optional[List[ConversationTurn]] = None) -> ClerkResponse:
        text = intent.message.strip().lower()

        if intent.affirmative and state.last_shown_products:
            return await self.handle_add_to_cart(intent, state)
        if GREETING_PATTERN.search(text):
            return ClerkResponse(message=GREETING_MESSAGE)
        if THANKS_PATTERN.search(text):
            return ClerkResponse(message=THANKS_MESSAGE)
        if CART_QUESTION_PATTERN.search(text):
            return ClerkResponse(message=CART_MESSAGE)

        inventory = await self.inventory.get_inventory()
        popular = inventory[:POPULAR_LIMIT] or load_bundled_products()[:POPULAR_LIMIT]

        if self.llm:
            try:
                prompt = CHAT_PROMPT.format(count=len(inventory), inventory=format_inventory(inventory))
                turns = list(history or []) + [ConversationTurn(role="user", content=intent.message)]
                reply = await self.llm.complete(prompt, turns)
                if reply:
                    return ClerkResponse(message=reply)
            except Exception as e:
                if is_rate_limit_error(e):
                    logger.warning(f"⏳ LLM rate limited: {e}")
                    state.show_products(popular)
                    return ClerkResponse(message=BUSY_MESSAGE, products=popular)
                logger.warning(f"⚠️ LLM reply failed, using canned menu: {e}")

        state.show_products(popular)
        return ClerkResponse(message=CAPABILITY_MESSAGE, products=popular)
