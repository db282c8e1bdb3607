import logging

import pytest

import config


def test_get_log_level():
    assert config.get_log_level("debug") == logging.DEBUG
    assert config.get_log_level("INFO") == logging.INFO
    assert config.get_log_level("CHATTY") == logging.WARNING


def test_get_timezone():
    assert str(config.get_timezone()) == config.DEFAULT_TIMEZONE
    assert str(config.get_timezone("Europe/London")) == "Europe/London"
    with pytest.raises(ValueError):
        config.get_timezone("Not/AZone")
