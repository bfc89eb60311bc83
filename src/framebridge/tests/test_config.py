import logging

import pytest

from framebridge.config import BridgeConfig, load_bridge_config


def test_defaults_have_no_timeout(monkeypatch):
    monkeypatch.delenv("FRAMEBRIDGE_REQUEST_TIMEOUT", raising=False)
    monkeypatch.delenv("FRAMEBRIDGE_LOG_LEVEL", raising=False)
    config = load_bridge_config()
    assert config.request_timeout_seconds is None
    assert config.log_level == logging.INFO


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FRAMEBRIDGE_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("FRAMEBRIDGE_LOG_LEVEL", "debug")
    config = load_bridge_config()
    assert config == BridgeConfig(request_timeout_seconds=2.5, log_level=logging.DEBUG)


def test_non_positive_timeout_disables_it(monkeypatch):
    monkeypatch.setenv("FRAMEBRIDGE_REQUEST_TIMEOUT", "0")
    assert load_bridge_config().request_timeout_seconds is None


def test_invalid_timeout_is_rejected(monkeypatch):
    monkeypatch.setenv("FRAMEBRIDGE_REQUEST_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        load_bridge_config()
