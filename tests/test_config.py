"""Test configuration settings."""
import pytest
from config.settings import Settings


def test_settings_load():
    """Test that settings can be loaded without an env file."""
    settings = Settings(_env_file=None)
    assert settings is not None
    assert settings.DEFAULT_SYMBOL == "MEME"


def test_default_values():
    """Test default configuration values."""
    settings = Settings(_env_file=None)
    assert settings.MIN_BOUNCE_PERCENT == 5.0
    assert settings.TIME_WINDOW_MS == 300_000
    assert settings.VOLUME_THRESHOLD == 1.5
    assert settings.CONFIDENCE_THRESHOLD == 0.70
    assert settings.LEARNING_RATE == 0.01
    assert settings.INITIAL_BALANCE == 10_000.0
    assert settings.COMMISSION_RATE == 0.001
    assert settings.SLIPPAGE_RATE == 0.002


def test_environment_override(monkeypatch):
    """Test that environment variables override defaults."""
    monkeypatch.setenv("MIN_BOUNCE_PERCENT", "7.5")
    monkeypatch.setenv("COMMISSION_RATE", "0.0025")

    settings = Settings(_env_file=None)

    assert settings.MIN_BOUNCE_PERCENT == 7.5
    assert settings.COMMISSION_RATE == 0.0025


def test_invalid_value_rejected(monkeypatch):
    """Test that unparseable numbers fail validation."""
    monkeypatch.setenv("TIME_WINDOW_MS", "five minutes")

    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_out_of_range_value_rejected(monkeypatch):
    """Test that rates outside their bounds fail validation."""
    monkeypatch.setenv("COMMISSION_RATE", "-0.01")

    with pytest.raises(ValueError):
        Settings(_env_file=None)
