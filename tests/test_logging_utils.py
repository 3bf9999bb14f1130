import logging

from plugin_studio.logging_utils import LOG_LEVEL_ENV, level_for, verbosity_from_env


def test_level_for_verbosity():
    assert level_for(-1) == logging.WARNING
    assert level_for(0) == logging.WARNING
    assert level_for(1) == logging.INFO
    assert level_for(5) == logging.DEBUG


def test_verbosity_from_env(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    assert verbosity_from_env() == 1

    monkeypatch.setenv(LOG_LEVEL_ENV, "2")
    assert verbosity_from_env() == 2

    monkeypatch.setenv(LOG_LEVEL_ENV, "Debug")
    assert verbosity_from_env() == 2

    monkeypatch.setenv(LOG_LEVEL_ENV, "loud")
    assert verbosity_from_env() == 1
