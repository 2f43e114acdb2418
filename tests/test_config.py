import logging

import config


def test_choice_accepts_known_values(monkeypatch):
    monkeypatch.setenv("DONATION_RESPONSE_POLICY", " Best_Effort ")
    assert config._choice("DONATION_RESPONSE_POLICY", config.RESPONSE_POLICIES, "all_or_nothing") == "best_effort"


def test_choice_unset_uses_default_quietly(monkeypatch, caplog):
    monkeypatch.delenv("DONATION_VALIDATION", raising=False)
    with caplog.at_level(logging.WARNING, logger="config"):
        assert config._choice("DONATION_VALIDATION", config.VALIDATION_POLICIES, "strict") == "strict"
    assert caplog.records == []


def test_choice_warns_on_typo(monkeypatch, caplog):
    monkeypatch.setenv("DONATION_RESPONSE_POLICY", "best-effort")
    with caplog.at_level(logging.WARNING, logger="config"):
        value = config._choice("DONATION_RESPONSE_POLICY", config.RESPONSE_POLICIES, "all_or_nothing")

    assert value == "all_or_nothing"
    assert "DONATION_RESPONSE_POLICY" in caplog.text
    assert "best-effort" in caplog.text
