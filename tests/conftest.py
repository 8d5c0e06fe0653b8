"""Shared fixtures: isolated in-memory collaborators for every test."""

import pytest

from clerk.agents.clerk_agent import ClerkAgent
from clerk.agents.haggle import DiscountEvaluator
from clerk.agents.handlers import IntentHandlers
from clerk.agents.search_resolver import ProductSearchResolver
from clerk.tools.activity_log import InMemoryActivityLog
from clerk.tools.cache_manager import InventoryCache
from clerk.tools.catalog import LocalCatalog
from clerk.tools.coupons import InMemoryCouponStore

SESSION_ID = "test-session"


class RecordingCart:
    """Cart double that remembers every add call."""

    def __init__(self, result=True):
        self.calls = []
        self.result = result

    async def add_item(self, product_id, size, quantity=1):
        self.calls.append((product_id, size, quantity))
        return self.result


class FakeLLM:
    """LLM double with canned replies, or an error to raise."""

    def __init__(self, json_reply=None, text_reply="", error=None):
        self.json_reply = json_reply
        self.text_reply = text_reply
        self.error = error
        self.prompts = []

    async def complete(self, prompt, history=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text_reply

    async def analyze_json(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.json_reply


@pytest.fixture
def catalog():
    return LocalCatalog()


@pytest.fixture
def products(catalog):
    return {p.id: p for p in catalog.products}


@pytest.fixture
def cart():
    return RecordingCart()


@pytest.fixture
def coupons():
    return InMemoryCouponStore()


@pytest.fixture
def activity():
    return InMemoryActivityLog()


@pytest.fixture
def inventory(catalog):
    return InventoryCache(catalog, ttl_seconds=300)


@pytest.fixture
def handlers(catalog, cart, coupons, inventory, activity):
    return IntentHandlers(
        session_id=SESSION_ID,
        catalog=catalog,
        cart=cart,
        resolver=ProductSearchResolver(catalog),
        evaluator=DiscountEvaluator(coupons),
        inventory=inventory,
        activity=activity,
    )


@pytest.fixture
def agent(catalog, cart, coupons, inventory, activity):
    return ClerkAgent(SESSION_ID, catalog, cart, coupons, inventory=inventory, activity=activity)
