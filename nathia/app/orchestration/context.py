from typing import List

from ..models.chat import ChatContext, SuggestedAction

RECENT_TURNS = 3
FIRST_INTERACTION = "Primeira interação com a usuária"
DEFAULT_NEXT_STEP = "Como posso te ajudar agora?"

TOPICS = (
    "gravidez",
    "parto",
    "amamentacao",
    "sono",
    "desenvolvimento",
    "saude_mental",
    "saude_fisica",
    "relacionamentos",
    "trabalho",
    "financas",
    "alimentacao",
    "atividade_fisica",
)

# (needles, next-step hint); first match wins
NEXT_STEPS = (
    (("medo", "preocupada", "ansiosa"), "Que tal explorar alguns exercícios de respiração e mindfulness?"),
    (("cansada", "exausta", "dormir"), "Vou te mostrar dicas sobre sono e descanso para mães."),
    (("não sei", "como faço"), "Posso te mostrar conteúdos que explicam isso de forma simples."),
    (("sozinha", "ninguém"), "Vamos encontrar outras mães que estão passando por situações parecidas?"),
)


def _has_any(text: str, needles) -> bool:
    return any(n in text for n in needles)


def build_conversation_context(ctx: ChatContext) -> str:
    """Readable context block: profile, mood and the last few turns."""
    parts: List[str] = []
    profile = ctx.user_profile
    if profile:
        if profile.stage:
            parts.append(f"Momento: {profile.stage}")
        if profile.concerns:
            parts.append(f"Preocupações: {', '.join(profile.concerns)}")
        if profile.goals:
            parts.append(f"Objetivos: {', '.join(profile.goals)}")
    if ctx.current_mood:
        parts.append(f"Humor detectado: {ctx.current_mood}")
    if ctx.conversation_history:
        recent = "\n".join(f"{m.role.value}: {m.content}" for m in ctx.conversation_history[-RECENT_TURNS:])
        parts.append(f"\nHistórico recente:\n{recent}")
    return "\n".join(parts) or FIRST_INTERACTION


def build_chat_prompt(message: str, conversation_context: str) -> str:
    return (
        f"CONTEXTO DA CONVERSA:\n{conversation_context}\n\n"
        f"MENSAGEM ATUAL DA MÃE:\n{message}\n\n"
        "Responda de forma empática, prática e acolhedora. Sempre sugira um próximo passo concreto."
    )


def extract_topic(message: str) -> str:
    lower = message.lower()
    for topic in TOPICS:
        if topic.replace("_", " ") in lower:
            return topic
    return "geral"


def infer_suggested_actions(message: str, ctx: ChatContext) -> List[SuggestedAction]:
    lower = message.lower()
    actions: List[SuggestedAction] = []
    if _has_any(lower, ("como", "quando", "o que")):
        actions.append(
            SuggestedAction(
                type="content",
                label="Ver artigos relacionados",
                action="navigate_to_content",
                params={"topic": extract_topic(message)},
            )
        )
    if _has_any(lower, ("sozinha", "alguém", "outras mães")):
        stage = ctx.user_profile.stage if ctx.user_profile else None
        actions.append(
            SuggestedAction(type="group", label="Encontrar grupo de apoio", action="browse_circles", params={"stage": stage})
        )
    if _has_any(lower, ("quero", "preciso", "começar")):
        actions.append(SuggestedAction(type="habit", label="Criar um objetivo", action="create_habit"))
    if _has_any(lower, ("ajuda", "não aguento", "emergência")):
        actions.append(SuggestedAction(type="support", label="Ver recursos de apoio", action="show_support_resources"))
    return actions


def infer_next_step(message: str) -> str:
    lower = message.lower()
    for needles, hint in NEXT_STEPS:
        if _has_any(lower, needles):
            return hint
    return DEFAULT_NEXT_STEP
