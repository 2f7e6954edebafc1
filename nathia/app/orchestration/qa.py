from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional, Tuple

import httpx

from ..config import Settings, get_settings
from ..core.errors import ProviderConfigError, ProviderHTTPError, ProviderUnavailableError, RateLimitExceeded, ValidationError
from ..core.resilience import breaker_for, call_with_resilience, live_policy
from ..models.chat import QAResponse
from ..safety.classifier import validate_message

logger = logging.getLogger(__name__)

PROVIDER_NAME = "qa"
MAX_SOURCES = 4


class AnswerCache:
    """Small in-process TTL cache keyed by the normalised question."""

    def __init__(self, ttl_s: float, clock=time.monotonic):
        self.ttl_s = ttl_s
        self.clock = clock
        self._items: Dict[str, Tuple[float, QAResponse]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(question: str) -> str:
        return " ".join(question.lower().split())

    def get(self, question: str) -> Optional[QAResponse]:
        k = self.key(question)
        with self._lock:
            item = self._items.get(k)
            if item is None:
                return None
            stored_at, value = item
            if self.clock() - stored_at > self.ttl_s:
                del self._items[k]
                return None
            return value

    def put(self, question: str, value: QAResponse) -> None:
        with self._lock:
            self._items[self.key(question)] = (self.clock(), value)


class QAClient:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[AnswerCache] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.cache = cache or AnswerCache(self.settings.QA_CACHE_TTL_S)

    def _url(self) -> str:
        url = (self.settings.QA_API_URL or "").strip()
        if not url:
            raise ProviderConfigError("QA_API_URL not configured")
        return url

    async def _post(self, question: str, user_id: str) -> QAResponse:
        url = self._url()
        headers = {"Content-Type": "application/json"}
        if self.settings.QA_API_KEY:
            headers["Authorization"] = f"Bearer {self.settings.QA_API_KEY}"

        try:
            async with httpx.AsyncClient(timeout=self.settings.AI_TIMEOUT_S, transport=self.transport) as client:
                resp = await client.post(url, json={"question": question, "userId": user_id}, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError("Q&A provider timeout") from e
        except httpx.TransportError as e:
            raise ProviderUnavailableError(f"Q&A transport error: {e}") from e

        if resp.status_code == 429:
            raise RateLimitExceeded()
        if resp.status_code >= 400:
            raise ProviderHTTPError(resp.status_code, resp.text[:300] or resp.reason_phrase)

        data = resp.json()
        answer = (data.get("answer") or "").strip()
        if not answer:
            raise ProviderUnavailableError("Q&A provider returned empty answer")
        sources = [s for s in (data.get("sources") or []) if isinstance(s, dict)][:MAX_SOURCES]
        return QAResponse(answer=answer, sources=sources, cached=bool(data.get("cached", False)))

    async def ask(self, question: str, user_id: str) -> QAResponse:
        validate_message(question, self.settings.MAX_MESSAGE_LENGTH)
        if not user_id:
            raise ValidationError("user_id é obrigatório")

        hit = self.cache.get(question)
        if hit is not None:
            logger.info("qa_cache_hit", extra={"user_id": user_id})
            return hit.model_copy(update={"cached": True})

        self._url()
        result = await call_with_resilience(
            lambda: self._post(question, user_id),
            breaker_for(PROVIDER_NAME, self.settings),
            live_policy(settings=self.settings),
        )
        self.cache.put(question, result)
        return result
