from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, List, Optional, Dict, Any, Union, Literal
from datetime import datetime
from enum import Enum

CATEGORIES = ("Clothes", "Shoes", "Bags", "Accessories")
TOPIC_HISTORY_LIMIT = 5


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Product(BaseModel):
    id: str
    name: str
    price: float = Field(ge=0)
    category: str
    description: str = ""
    sizes: List[str] = []  # empty means "one size"
    colors: List[str] = []
    stock: int = Field(default=0, ge=0)
    tags: List[str] = []
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def needs_size(self) -> bool:
        """True when the shopper has to pick between several sizes."""
        return len(self.sizes) > 1

    def search_text(self) -> str:
        return " ".join([
            self.name, self.description, self.category,
            " ".join(self.tags), " ".join(self.colors)
        ]).lower()


class ProductFilters(BaseModel):
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    tags: Optional[List[str]] = None


class ProductSort(BaseModel):
    field: Literal["price", "name", "created_at"] = "created_at"
    order: Literal["asc", "desc"] = "desc"


# --- UI actions -------------------------------------------------------------

class ActionPayload(BaseModel):
    """Payloads serialize in camelCase for the shop page (productId, couponCode...)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilterPayload(ActionPayload):
    filter_type: Literal["filter_by_category", "sort_by_price", "search"]
    value: str


class CouponPayload(ActionPayload):
    action: Literal["apply_coupon"] = "apply_coupon"
    coupon_code: str


class AddToCartPayload(ActionPayload):
    product_id: str
    size: str
    quantity: int = Field(default=1, ge=1)


class NavigatePayload(ActionPayload):
    path: str


class FilterAction(BaseModel):
    type: Literal["filter"] = "filter"
    payload: Union[FilterPayload, CouponPayload]


class AddToCartAction(BaseModel):
    type: Literal["add_to_cart"] = "add_to_cart"
    payload: AddToCartPayload


class NavigateAction(BaseModel):
    type: Literal["navigate"] = "navigate"
    payload: NavigatePayload


ClerkAction = Annotated[
    Union[FilterAction, AddToCartAction, NavigateAction],
    Field(discriminator="type"),
]


class ClerkResponse(BaseModel):
    message: str
    products: Optional[List[Product]] = None
    action: Optional[ClerkAction] = None


# --- Conversation -----------------------------------------------------------

class ConversationTurn(BaseModel):
    role: MessageRole
    content: str
    products: Optional[List[Product]] = None
    action: Optional[ClerkAction] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ConversationState(BaseModel):
    """Per-session memory read by the classifier and written by the handlers."""
    pending_size_selection: Optional[Product] = None
    last_shown_products: List[Product] = []
    last_search_query: Optional[str] = None
    last_category: Optional[str] = None
    last_mentioned_products: List[str] = []
    topic_history: List[str] = []

    def show_products(self, products: List[Product]):
        """Replace the shown list; empty results leave the previous list in place."""
        if products:
            self.last_shown_products = list(products)
            self.last_mentioned_products = [p.name for p in products]

    def push_topic(self, topic: str):
        self.topic_history.append(topic)
        if len(self.topic_history) > TOPIC_HISTORY_LIMIT:
            self.topic_history = self.topic_history[-TOPIC_HISTORY_LIMIT:]

    def clear_pending(self):
        self.pending_size_selection = None


class SessionData(BaseModel):
    session_id: str
    messages: List[ConversationTurn] = []
    state: ConversationState = Field(default_factory=ConversationState)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


# --- Intents ----------------------------------------------------------------

class IntentType(str, Enum):
    SIZE_RESPONSE = "size_response"
    ADD_TO_CART = "add_to_cart"
    HAGGLE = "haggle"
    FILTER = "filter"
    SEARCH = "search"
    INVENTORY_CHECK = "inventory_check"
    RECOMMENDATIONS = "recommendations"
    GENERAL = "general"


class Intent(BaseModel):
    type: IntentType
    rule: str  # name of the classifier rule that fired
    message: str
    size: Optional[str] = None
    quantity: int = 1
    product_index: Optional[int] = None
    product_name: Optional[str] = None
    affirmative: bool = False
    sort_order: Optional[Literal["asc", "desc"]] = None
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    occasion: Optional[str] = None


# --- Search -----------------------------------------------------------------

class NormalizedQuery(BaseModel):
    original_query: str
    corrected_query: str
    color: Optional[str] = None
    product_keywords: List[str] = []
    generic_keywords: List[str] = []

    @property
    def keywords(self) -> List[str]:
        return self.product_keywords or self.generic_keywords


class SearchResult(BaseModel):
    products: List[Product]
    corrected_query: Optional[str] = None
    extracted_color: Optional[str] = None
    no_match: bool = False
    search_keyword: str = ""
    category: Optional[str] = None


# --- Discounts --------------------------------------------------------------

class DiscountCoupon(BaseModel):
    code: str
    discount_type: Literal["percentage", "fixed"] = "percentage"
    discount_value: float
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int] = 1
    used_count: int = 0
    reason: Optional[str] = None
    created_by_agent: bool = True

    def is_redeemable(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        if not (self.valid_from <= now <= self.valid_until):
            return False
        return not self.usage_limit or self.used_count < self.usage_limit


class HaggleAnalysis(BaseModel):
    eligible: bool
    discount_percent: int = 0
    reason: str = ""
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"


class IssuedCoupon(BaseModel):
    code: str
    persisted: bool


class HaggleResult(BaseModel):
    success: bool
    discount: int = 0
    message: str
    coupon_code: Optional[str] = None
    reason: Optional[str] = None
    analysis: Optional[HaggleAnalysis] = None


# --- Activity ---------------------------------------------------------------

class ActivityType(str, Enum):
    VIEW = "view"
    ADD_TO_CART = "add_to_cart"
    PURCHASE = "purchase"


class Activity(BaseModel):
    session_id: str
    product_id: str
    activity_type: ActivityType
    created_at: datetime = Field(default_factory=datetime.now)


def to_json_dict(model: BaseModel) -> Dict[str, Any]:
    """JSON-ready dict with camelCase action payloads."""
    return model.model_dump(mode="json", by_alias=True)
