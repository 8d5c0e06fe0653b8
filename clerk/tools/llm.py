import json
import re
from typing import Any, Dict, List, Optional, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from clerk.config import Config
from clerk.models.schemas import ConversationTurn, MessageRole
from clerk.utils.logger import get_logger

logger = get_logger(__name__)

JSON_BLOCK = re.compile(r'\{[\s\S]*\}')


class LLMClient(Protocol):
    async def complete(self, prompt: str, history: Optional[List[ConversationTurn]] = None) -> str: ...

    async def analyze_json(self, prompt: str) -> Optional[Dict[str, Any]]: ...


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """First {...} block of a model reply as a dict, or None"""
    match = JSON_BLOCK.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def is_rate_limit_error(error: Exception) -> bool:
    text = str(error).lower()
    return "429" in text or "quota" in text or "resource_exhausted" in text or "rate limit" in text


def _message_text(response: Any) -> str:
    content = response.content if hasattr(response, 'content') else str(response)
    if isinstance(content, list):
        # multi-part replies come back as a list of strings / {"text": ...} blocks
        content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
    return content.strip()


class GeminiClient:
    """Gemini chat model behind the clerk's LLM contract"""

    def __init__(self, api_key: str = None, model: str = None, temperature: float = 0.4):
        self.llm = ChatGoogleGenerativeAI(
            model=model or Config.GEMINI_MODEL,
            google_api_key=api_key or Config.GEMINI_API_KEY,
            temperature=temperature
        )

    async def complete(self, prompt: str, history: Optional[List[ConversationTurn]] = None) -> str:
        messages: List[BaseMessage] = [SystemMessage(content=prompt)]
        for turn in (history or [])[-Config.MAX_CONTEXT_MESSAGES:]:
            if turn.role == MessageRole.USER:
                messages.append(HumanMessage(content=turn.content))
            elif turn.role == MessageRole.ASSISTANT:
                messages.append(AIMessage(content=turn.content))
        if len(messages) == 1:
            messages.append(HumanMessage(content="Hello"))

        response = await self.llm.ainvoke(messages)
        return _message_text(response)

    async def analyze_json(self, prompt: str) -> Optional[Dict[str, Any]]:
        response = await self.llm.ainvoke(prompt)
        result = extract_json(_message_text(response))
        if result is None:
            logger.warning("⚠️ Could not parse JSON from model reply")
        return result


def build_llm_client(config=Config) -> Optional[GeminiClient]:
    if not config.GEMINI_API_KEY:
        logger.info("💡 GEMINI_API_KEY not set, running with rule-based replies only")
        return None
    return GeminiClient(api_key=config.GEMINI_API_KEY, model=config.GEMINI_MODEL)
