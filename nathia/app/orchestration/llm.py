from typing import Any, Dict, List, Optional
import logging

import httpx

from ..config import Settings, get_settings
from ..core.errors import ProviderConfigError, ProviderHTTPError, ProviderUnavailableError
from ..core.resilience import breaker_for, call_with_resilience, live_policy
from ..safety.moderation import ModerationEngine

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"

SYSTEM_POLICY = """
Você é a NathIA, uma assistente virtual acolhedora e empática especializada em maternidade e gravidez,
no app "Nossa Maternidade", um refúgio sem julgamento para mães e gestantes.

Características:
- Empática e acolhedora, sempre com tom gentil e encorajador
- Prática e objetiva, mas nunca fria; linguagem simples
- Nunca julga ou critica escolhas da mãe
- Reconhece quando algo precisa de atendimento profissional

Diretrizes:
- Até 3 parágrafos curtos; use bullet points quando apropriado
- Valide os sentimentos da mãe antes de dar conselhos
- Para questões médicas sérias, sugira consultar um profissional
- Sempre sugira um próximo passo concreto
"""

REWRITE_POLICY = """
Reescreva a mensagem a seguir de forma gentil e construtiva, sem julgamento, comparação entre mães
ou tom prescritivo. Preserve a intenção de ajudar. Responda apenas com a mensagem reescrita.
"""


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    content = (candidates[0] or {}).get("content") or {}
    parts = content.get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


class GeminiClient:
    """Thin async client for the Gemini ``generateContent`` REST endpoint.

    HTTP errors surface as ``ProviderHTTPError`` (status kept for retry
    classification); transport failures and timeouts as
    ``ProviderUnavailableError``.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.transport = transport

    def _api_key(self) -> str:
        api_key = (self.settings.GEMINI_API_KEY or "").strip()
        if not api_key:
            raise ProviderConfigError("GEMINI_API_KEY missing for generator")
        return api_key

    async def generate(self, prompt: str, system: str = SYSTEM_POLICY, history: Optional[List[dict]] = None) -> str:
        api_key = self._api_key()

        contents = [
            {"role": "model" if m.get("role") == "assistant" else "user", "parts": [{"text": m.get("content", "")}]}
            for m in (history or [])
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        payload = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": contents,
            "generationConfig": {
                "temperature": self.settings.TEMPERATURE,
                "maxOutputTokens": self.settings.MAX_OUTPUT_TOKENS,
            },
        }
        url = f"{self.settings.GEMINI_BASE_URL}/models/{self.settings.GEMINI_MODEL}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.settings.AI_TIMEOUT_S, transport=self.transport) as client:
                resp = await client.post(url, params={"key": api_key}, json=payload)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(f"Gemini timeout after {self.settings.AI_TIMEOUT_S}s") from e
        except httpx.TransportError as e:
            raise ProviderUnavailableError(f"Gemini transport error: {e}") from e

        if resp.status_code >= 400:
            body = resp.text[:300]
            logger.error("Gemini HTTP %s body=%s", resp.status_code, body)
            raise ProviderHTTPError(resp.status_code, body or resp.reason_phrase)

        text = _extract_text(resp.json())
        if not text:
            raise ProviderUnavailableError("Gemini returned empty content")
        return text

    async def generate_resilient(self, prompt: str, system: str = SYSTEM_POLICY, history: Optional[List[dict]] = None) -> str:
        # Missing key raises here, before the breaker sees the call
        self._api_key()
        return await call_with_resilience(
            lambda: self.generate(prompt, system=system, history=history),
            breaker_for(PROVIDER_NAME, self.settings),
            live_policy(settings=self.settings),
        )

    async def rewrite(self, text: str) -> str:
        return await self.generate_resilient(f'Mensagem original: "{text}"', system=REWRITE_POLICY)


def build_moderation_engine(settings: Settings, generator: Optional[Any] = None) -> ModerationEngine:
    """Rule-based engine; rewrites go through the generator when a key is configured."""
    rewriter = None
    if (settings.GEMINI_API_KEY or "").strip():
        rewriter = getattr(generator or GeminiClient(settings), "rewrite", None)
    return ModerationEngine(rewriter=rewriter)
