from __future__ import annotations

import logging

from certinspector.config import Settings, load_settings
from certinspector.version import user_agent


def test_defaults_without_environment():
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.port == 3000
    assert settings.tls_timeout == 5.0
    assert settings.verify_trust is False
    assert settings.hsts_verify_tls is True
    assert settings.user_agent == user_agent()


def test_environment_values_are_parsed():
    settings = load_settings(
        environ={
            "CERTINSPECTOR_HOST": " 0.0.0.0 ",
            "CERTINSPECTOR_PORT": "8080",
            "CERTINSPECTOR_TLS_TIMEOUT": "2.5",
            "CERTINSPECTOR_HSTS_TIMEOUT": "3",
            "CERTINSPECTOR_VERIFY_TRUST": "yes",
            "CERTINSPECTOR_NAV_TIMEOUT": "45",
            "CERTINSPECTOR_SETTLE_TIME": "0.5",
            "CERTINSPECTOR_WORKERS": "4",
            "CERTINSPECTOR_USER_AGENT": "probe/1",
            "CERTINSPECTOR_LOG_LEVEL": "debug",
        }
    )
    assert settings.host == "0.0.0.0"
    assert settings.port == 8080
    assert settings.tls_timeout == 2.5
    assert settings.hsts_timeout == 3.0
    assert settings.verify_trust is True
    assert settings.navigation_timeout == 45.0
    assert settings.settle_time == 0.5
    assert settings.workers == 4
    assert settings.user_agent == "probe/1"
    assert settings.log_level == "DEBUG"


def test_plain_port_variable_is_a_fallback():
    assert load_settings(environ={"PORT": "4000"}).port == 4000
    assert load_settings(environ={"PORT": "4000", "CERTINSPECTOR_PORT": "5000"}).port == 5000


def test_invalid_values_fall_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="certinspector"):
        settings = load_settings(
            environ={
                "CERTINSPECTOR_PORT": "http",
                "CERTINSPECTOR_TLS_TIMEOUT": "-1",
                "CERTINSPECTOR_WORKERS": "0",
                "CERTINSPECTOR_VERIFY_TRUST": "maybe",
            }
        )
    assert settings.port == 3000
    assert settings.tls_timeout == 5.0
    assert settings.workers == 1
    assert settings.verify_trust is False
    assert len([record for record in caplog.records if record.levelno == logging.WARNING]) == 4


def test_overrides_win_and_none_is_ignored():
    settings = load_settings(environ={"CERTINSPECTOR_PORT": "8080"}, port=9000, workers=None)
    assert settings.port == 9000
    assert settings.workers == 1


def test_merged_returns_new_instance_only_when_needed():
    base = Settings()
    assert base.merged() is base
    assert base.merged(tls_timeout=None) is base
    changed = base.merged(tls_timeout=1.5)
    assert changed.tls_timeout == 1.5
    assert base.tls_timeout == 5.0
