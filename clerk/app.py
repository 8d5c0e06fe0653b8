import asyncio
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from clerk.agents.clerk_agent import APOLOGY_MESSAGE, ClerkAgent
from clerk.agents.intent_classifier import IntentClassifier
from clerk.agents.search_resolver import ProductSearchResolver
from clerk.config import Config, missing_vars, validate_db_connection
from clerk.models.schemas import (
    ClerkAction, ConversationState, DiscountCoupon, Product, SearchResult, to_json_dict
)
from clerk.tools.activity_log import ActivityLog, InMemoryActivityLog, PostgresActivityLog
from clerk.tools.cache_manager import InventoryCache
from clerk.tools.cart import InMemoryCartStore, PostgresCartStore
from clerk.tools.catalog import Catalog, LocalCatalog, PostgresCatalog
from clerk.tools.coupons import CouponStore, InMemoryCouponStore, PostgresCouponStore
from clerk.tools.llm import LLMClient, build_llm_client
from clerk.tools.session_manager import SessionManager
from clerk.utils.logger import configure_logging, get_logger
from clerk.utils.query_parser import get_parser

configure_logging()
logger = get_logger(__name__)

# Initialize FastAPI
app = FastAPI(
    title="TrendZone Clerk API",
    description="Conversational shopping assistant for the TrendZone store",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure as needed
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ClerkServices:
    """Collaborators shared by every session"""

    def __init__(self, catalog: Catalog, cart_store, coupons: CouponStore, activity: ActivityLog,
                 sessions: SessionManager, llm: Optional[LLMClient] = None,
                 inventory: Optional[InventoryCache] = None):
        self.catalog = catalog
        self.cart_store = cart_store
        self.coupons = coupons
        self.activity = activity
        self.sessions = sessions
        self.llm = llm
        self.inventory = inventory or InventoryCache(catalog)

    def agent_for(self, session) -> ClerkAgent:
        return ClerkAgent(
            session_id=session.session_id,
            catalog=self.catalog,
            cart=self.cart_store.for_session(session.session_id),
            coupons=self.coupons,
            inventory=self.inventory,
            activity=self.activity,
            llm=self.llm,
            state=session.state,
            history=session.messages,
        )


def build_services(config=Config) -> ClerkServices:
    if config.database_configured():
        logger.info("🗄️ Using Postgres catalog, cart, coupons and activity log")
        catalog = PostgresCatalog()
        cart_store, coupons, activity = PostgresCartStore(), PostgresCouponStore(), PostgresActivityLog()
    else:
        logger.info("📦 No database configured, using the bundled catalog and in-memory stores")
        catalog = LocalCatalog()
        cart_store, coupons, activity = InMemoryCartStore(), InMemoryCouponStore(), InMemoryActivityLog()

    if missing_vars:
        logger.info(f"💡 Optional settings not provided: {', '.join(missing_vars)}")

    return ClerkServices(
        catalog=catalog,
        cart_store=cart_store,
        coupons=coupons,
        activity=activity,
        sessions=SessionManager(config.REDIS_URL),
        llm=build_llm_client(config),
    )


_services: Optional[ClerkServices] = None


def get_services() -> ClerkServices:
    global _services
    if _services is None:
        _services = build_services()
    return _services


# Pydantic models
class ChatMessage(BaseModel):
    message: str
    session_id: str


class ChatResponse(BaseModel):
    message: str
    products: Optional[List[Product]] = None
    action: Optional[ClerkAction] = None
    intent: Optional[str] = None
    session_id: str


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(default=Config.MAX_SEARCH_RESULTS, ge=1, le=50)


class ClassifyRequest(BaseModel):
    message: str
    session_id: Optional[str] = None


# Health check
@app.get("/health")
async def health_check(services: ClerkServices = Depends(get_services)):
    if Config.database_configured():
        database = "connected" if await asyncio.to_thread(validate_db_connection) else "unreachable"
    else:
        database = "not_configured"
    return {
        "status": "healthy",
        "service": "trendzone-clerk",
        "version": "1.0",
        "database": database,
        "llm": "enabled" if services.llm else "disabled",
        "sessions": services.sessions.get_session_stats(),
    }


# Main chat endpoint
@app.post("/chat", response_model=ChatResponse)
async def chat_endpoint(request: ChatMessage, services: ClerkServices = Depends(get_services)):
    try:
        session = services.sessions.get_session(request.session_id)
        agent = services.agent_for(session)

        response = await agent.chat(request.message)

        session.messages = agent.history
        session.state = agent.state
        services.sessions.save_session(session)

        return ChatResponse(
            message=response.message,
            products=response.products,
            action=response.action,
            intent=agent.last_intent.type.value if agent.last_intent else None,
            session_id=request.session_id,
        )
    except Exception:
        logger.exception(f"❌ Chat endpoint error for session {request.session_id}")
        return ChatResponse(message=APOLOGY_MESSAGE, session_id=request.session_id)


# Session management
@app.get("/session/{session_id}/history")
async def get_session_history(session_id: str, limit: Optional[int] = Query(default=None, ge=1),
                              services: ClerkServices = Depends(get_services)):
    session = services.sessions.get_session(session_id)
    return {
        "session_id": session_id,
        "messages": [to_json_dict(msg) for msg in services.sessions.get_history(session_id, limit)],
        "state": {
            "pending_size_selection": session.state.pending_size_selection.name
            if session.state.pending_size_selection else None,
            "last_search_query": session.state.last_search_query,
            "last_category": session.state.last_category,
            "last_mentioned_products": session.state.last_mentioned_products,
            "topic_history": session.state.topic_history,
        },
    }


@app.delete("/session/{session_id}")
async def clear_session(session_id: str, services: ClerkServices = Depends(get_services)):
    services.sessions.clear_session(session_id)
    return {"message": f"Session {session_id} cleared"}


# Direct product search
@app.post("/search", response_model=SearchResult)
async def search_products(body: SearchRequest, services: ClerkServices = Depends(get_services)):
    resolver = ProductSearchResolver(services.catalog)
    return await resolver.search(body.query, body.limit)


@app.get("/coupons/{code}", response_model=DiscountCoupon)
async def get_coupon(code: str, services: ClerkServices = Depends(get_services)):
    coupon = await services.coupons.get_by_code(code)
    if coupon is None:
        raise HTTPException(status_code=404, detail=f"Coupon {code.upper()} is not valid")
    return coupon


# DEBUG ENDPOINT
@app.post("/debug/classify")
async def debug_classify(body: ClassifyRequest, services: ClerkServices = Depends(get_services)) -> Dict[str, Any]:
    """
    Classify a message against a session's current state without running it.
    Useful for checking which rule fires for a given phrasing.
    """
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    if body.session_id:
        state = services.sessions.get_session(body.session_id).state
    else:
        state = ConversationState()

    intent = IntentClassifier().classify(body.message, state)
    normalized = get_parser().normalize(body.message)
    return {
        "message": body.message,
        "intent": to_json_dict(intent),
        "normalized": to_json_dict(normalized),
        "status": "success",
    }


if __name__ == "__main__":
    uvicorn.run(
        "clerk.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
