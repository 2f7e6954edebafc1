from nathia.app.orchestration.metadata import normalize_meta


def test_normalize_meta_fills_defaults():
    md = normalize_meta({})
    assert md["path"] == "generated"
    assert md["risk_level"] == "ok"
    assert md["risk_confidence"] == 0.0
    assert md["requires_human_review"] is False
    assert md["moderation_decision"] is None
    assert md["fallback_reason"] is None


def test_normalize_meta_coerces_types_and_keeps_values():
    md = normalize_meta({"path": "sos", "risk_confidence": "0.75", "requires_human_review": 1, "extra": "x"})
    assert md["path"] == "sos"
    assert md["risk_confidence"] == 0.75
    assert md["requires_human_review"] is True
    assert md["extra"] == "x"

    assert normalize_meta({"risk_confidence": "n/a"})["risk_confidence"] == 0.0
