from typing import List, Optional

from clerk.agents.haggle import DiscountEvaluator
from clerk.agents.handlers import IntentHandlers
from clerk.agents.intent_classifier import IntentClassifier
from clerk.agents.search_resolver import ProductSearchResolver
from clerk.models.schemas import (
    ClerkResponse, ConversationState, ConversationTurn, Intent, IntentType, MessageRole
)
from clerk.tools.activity_log import ActivityLog
from clerk.tools.cache_manager import InventoryCache
from clerk.tools.cart import Cart
from clerk.tools.catalog import Catalog
from clerk.tools.coupons import CouponStore
from clerk.tools.llm import LLMClient
from clerk.utils.logger import get_logger

logger = get_logger(__name__)

APOLOGY_MESSAGE = "Sorry, I ran into a problem handling that. Could you try again?"

# Intents that move the conversation on and abandon an unanswered size question
SUPERSEDING_INTENTS = {
    IntentType.SEARCH, IntentType.FILTER, IntentType.HAGGLE, IntentType.INVENTORY_CHECK, IntentType.RECOMMENDATIONS
}


class ClerkAgent:
    """One shopper's conversation: classify each message, run its handler, remember the result"""

    def __init__(self, session_id: str, catalog: Catalog, cart: Cart, coupons: CouponStore,
                 inventory: Optional[InventoryCache] = None, activity: Optional[ActivityLog] = None,
                 llm: Optional[LLMClient] = None, state: Optional[ConversationState] = None,
                 history: Optional[List[ConversationTurn]] = None):
        self.session_id = session_id
        self.state = state if state is not None else ConversationState()
        self.history: List[ConversationTurn] = history if history is not None else []
        self.last_intent: Optional[Intent] = None

        self.classifier = IntentClassifier()
        self.inventory = inventory or InventoryCache(catalog)
        self.handlers = IntentHandlers(
            session_id=session_id,
            catalog=catalog,
            cart=cart,
            resolver=ProductSearchResolver(catalog),
            evaluator=DiscountEvaluator(coupons, llm),
            inventory=self.inventory,
            activity=activity,
            llm=llm,
        )
        logger.debug(f"🤖 Clerk ready for session {session_id}")

    async def chat(self, message: str) -> ClerkResponse:
        logger.info(f"💬 [{self.session_id}] User: {message}")
        snapshot = self.state.model_copy(deep=True)

        try:
            intent = self.classifier.classify(message, self.state)
            self.last_intent = intent
            logger.info(f"🧭 [{self.session_id}] Intent: {intent.type.value} (rule: {intent.rule})")

            if intent.type in SUPERSEDING_INTENTS and self.state.pending_size_selection:
                logger.debug(f"↪️ Dropping pending size question for {self.state.pending_size_selection.name}")
                self.state.clear_pending()

            response = await self.handlers.dispatch(intent, self.state, self.history)
            self.state.push_topic(f"{intent.type.value}: {message.strip()[:60]}")
        except Exception:
            logger.exception(f"❌ [{self.session_id}] Turn failed, restoring conversation state")
            self._restore(snapshot)
            self.last_intent = None
            response = ClerkResponse(message=APOLOGY_MESSAGE)

        self.history.append(ConversationTurn(role=MessageRole.USER, content=message))
        self.history.append(ConversationTurn(
            role=MessageRole.ASSISTANT, content=response.message,
            products=response.products, action=response.action
        ))
        return response

    def _restore(self, snapshot: ConversationState):
        # in place, so callers holding a reference to self.state see the rollback
        for field in type(snapshot).model_fields:
            setattr(self.state, field, getattr(snapshot, field))
