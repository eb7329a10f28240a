import logging

from collab_curation.config import load_settings
from collab_curation.logging_config import setup_logging


def test_load_settings(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "abc123")
    monkeypatch.delenv("CURATION_SLOT_BUDGET", raising=False)
    s = load_settings()
    assert s.supabase_key == "abc123"
    assert s.use_supabase
    assert s.data_path == "curation_data.json"
    assert s.slot_budget == 20

    # empty url falls back to the JSON backend
    monkeypatch.setenv("SUPABASE_URL", "")
    s2 = load_settings()
    assert not s2.use_supabase


def test_slot_budget_from_env(monkeypatch):
    monkeypatch.setenv("CURATION_SLOT_BUDGET", "12")
    assert load_settings().slot_budget == 12
    monkeypatch.setenv("CURATION_SLOT_BUDGET", "lots")
    assert load_settings().slot_budget == 20
    monkeypatch.setenv("CURATION_SLOT_BUDGET", "-1")
    assert load_settings().slot_budget == 20


def test_setup_logging_idempotent():
    logger1 = setup_logging(logging.DEBUG)
    logger2 = setup_logging(logging.DEBUG)
    assert logger1 is logger2
    assert logger1.handlers  # at least one handler installed
