from typing import List

from ..models.chat import SuggestedAction
from ..models.safety import ModerationAnalysis, SOSActionResult


def sos_reply(sos: SOSActionResult) -> str:
    """Safety-only reply for a risk turn. Never produced by the generator."""
    lines = [
        "Obrigada por confiar em mim e compartilhar isso. Sinto muito que você esteja passando por esse momento, "
        "e a sua vida importa muito.",
        "Você não precisa enfrentar isso sozinha. Por favor, fale agora com alguém que pode te ajudar:",
    ]
    for c in sos.support_contacts:
        lines.append(f"- {c.name}: ligue {c.phone} ({c.description})")
    lines.append("Se você estiver em perigo imediato, ligue 192 ou vá ao pronto-socorro mais próximo.")
    return "\n".join(lines)


def sos_actions() -> List[SuggestedAction]:
    return [
        SuggestedAction(type="support", label="Ligar para o CVV (188)", action="call_phone", params={"phone": "188"}),
        SuggestedAction(type="support", label="Ver recursos de apoio", action="show_support_resources"),
    ]


def rewrite_reply(analysis: ModerationAnalysis) -> str:
    """Reply for a shared message that failed moderation."""
    lines = ["Antes de publicar, que tal revisar sua mensagem? Ela pode soar como julgamento para outras mães."]
    if analysis.concerns:
        lines.append("Pontos de atenção: " + ", ".join(analysis.concerns) + ".")
    if analysis.suggested_rewrite:
        lines.append(f"Sugestão: {analysis.suggested_rewrite}")
    return "\n".join(lines)
