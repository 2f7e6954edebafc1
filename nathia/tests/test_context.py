from nathia.app.models.chat import ChatContext, UserProfile
from nathia.app.orchestration.context import (
    DEFAULT_NEXT_STEP,
    FIRST_INTERACTION,
    build_conversation_context,
    extract_topic,
    infer_next_step,
    infer_suggested_actions,
)


def test_empty_context_reads_as_first_interaction():
    assert build_conversation_context(ChatContext(user_id="u1")) == FIRST_INTERACTION


def test_profile_lines():
    ctx = ChatContext(
        user_id="u1",
        user_profile=UserProfile(stage="postpartum", concerns=["sono", "amamentação"], goals=["descansar"]),
    )
    text = build_conversation_context(ctx)
    assert text.splitlines() == [
        "Momento: postpartum",
        "Preocupações: sono, amamentação",
        "Objetivos: descansar",
    ]


def test_actions_from_message_cues():
    ctx = ChatContext(user_id="u1", user_profile=UserProfile(stage="gestante"))
    actions = infer_suggested_actions("Como lidar? Me sinto sozinha, preciso de ajuda", ctx)
    assert [a.type for a in actions] == ["content", "group", "habit", "support"]
    assert actions[1].params == {"stage": "gestante"}


def test_topic_and_next_step():
    assert extract_topic("dúvidas sobre saude mental") == "saude_mental"
    assert extract_topic("qualquer coisa") == "geral"
    assert infer_next_step("tenho medo do parto") == "Que tal explorar alguns exercícios de respiração e mindfulness?"
    assert infer_next_step("oi") == DEFAULT_NEXT_STEP
