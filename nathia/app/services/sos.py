"""SOS side effects backed by the database and the moderation webhook."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..core.errors import ProviderHTTPError
from ..core.resilience import breaker_for
from ..db.base import SessionLocal
from ..models.sql_models import SosEvent
from ..safety.triage import TriageEngine, log_moderation_notice

logger = logging.getLogger(__name__)

WEBHOOK_BREAKER = "moderation_webhook"


async def record_sos_event(user_id: str, context: Dict[str, Any]) -> None:
    risk = context.get("risk_assessment")
    db = SessionLocal()
    try:
        db.add(
            SosEvent(
                user_id=user_id,
                session_id=context.get("session_id"),
                risk_level=getattr(getattr(risk, "level", None), "value", None),
                signals=list(getattr(risk, "signals", []) or []),
                created_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
    finally:
        db.close()
        SessionLocal.remove()


class ModerationWebhook:
    """Posts a high-priority notice to the moderation channel.

    Without a configured URL the notice only goes to the log.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.transport = transport

    async def _post(self, payload: Dict[str, Any]) -> None:
        async with httpx.AsyncClient(timeout=self.settings.AI_TIMEOUT_S, transport=self.transport) as client:
            resp = await client.post(self.settings.MODERATION_WEBHOOK_URL, json=payload)
        if resp.status_code >= 400:
            raise ProviderHTTPError(resp.status_code, resp.text[:300] or resp.reason_phrase)

    async def __call__(self, user_id: str, context: Dict[str, Any]) -> None:
        if not self.settings.MODERATION_WEBHOOK_URL:
            await log_moderation_notice(user_id, context)
            return
        risk = context.get("risk_assessment")
        payload = {
            "type": "sos",
            "priority": "HIGH",
            "userId": user_id,
            "sessionId": context.get("session_id"),
            "riskLevel": getattr(getattr(risk, "level", None), "value", None),
            "signals": list(getattr(risk, "signals", []) or []),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        # Single attempt: the SOS reply must not wait on backoff
        await breaker_for(WEBHOOK_BREAKER, self.settings).call(lambda: self._post(payload))
        logger.info("sos_webhook_sent", extra={"user_id": user_id})


def build_triage_engine(settings: Optional[Settings] = None) -> TriageEngine:
    return TriageEngine(recorder=record_sos_event, notifier=ModerationWebhook(settings))
