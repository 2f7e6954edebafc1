import pytest

from nathia.app.core.errors import ValidationError
from nathia.app.models.safety import Valence
from nathia.app.safety.classifier import (
    KeywordClassifier,
    RiskSignals,
    estimate_intensity,
    match_keywords,
    validate_message,
)

clf = KeywordClassifier()


def test_match_keywords_is_case_insensitive_and_keeps_list_order():
    hits = match_keywords("Estou EXAUSTA e me sinto sozinha", ["sozinha", "exausta", "triste"])
    assert hits == ["sozinha", "exausta"]


def test_validate_message_rejects_empty_and_oversized():
    with pytest.raises(ValidationError):
        validate_message("   ")
    with pytest.raises(ValidationError):
        validate_message("a" * 5001)
    assert validate_message("a" * 5000)


def test_risk_confidence_ladder():
    assert RiskSignals().confidence == 0.1
    assert RiskSignals(watch=["exausta"]).confidence == 0.4
    assert RiskSignals(watch=["exausta", "sozinha"]).confidence == 0.6
    assert RiskSignals(watch=["a", "b", "c", "d", "e"]).confidence == 0.7
    assert RiskSignals(high=["quero morrer"]).confidence == 0.6
    assert RiskSignals(high=["a", "b"]).confidence == 0.75
    assert RiskSignals(high=["a", "b", "c", "d"]).confidence == 0.9


def test_judgement_scores_comparison_and_shouted_should():
    score = clf.judgement_score("Você DEVERIA amamentar, mães de verdade fazem isso")
    assert score == pytest.approx(0.65)


def test_judgement_is_zero_for_supportive_text():
    assert clf.judgement_score("Que lindo, parabéns pelo seu bebê") == 0.0


def test_judgement_is_capped_at_one():
    text = "Você deve, deve, deve sempre e nunca, mães de verdade e boas mães, isso é errado"
    assert clf.judgement_score(text) == 1.0


def test_toxicity_counts_offensive_words_and_caps():
    assert clf.toxicity_score("Você é uma idiota") == pytest.approx(0.3)
    assert clf.toxicity_score("QUE COISA MAIS RIDICULA ESSA") == pytest.approx(0.2)
    assert clf.toxicity_score("Obrigada pelo carinho") == 0.0


def test_sentiment_reads_first_emotion_and_valence():
    s = clf.sentiment("Estou muito triste e com medo!!")
    assert s.sentiment == "tristeza"
    assert s.valence == Valence.NEGATIVE
    assert s.keywords == ["triste", "medo"]
    # 2 keywords * 2 + intensifier 2 + two exclamations
    assert s.intensity == 8


def test_intensity_is_bounded():
    assert estimate_intensity("???", []) == 1
    assert estimate_intensity("muito!!!!", ["a", "b", "c", "d", "e"]) == 10
