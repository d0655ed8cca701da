import importlib

import pytest

settings_mod = importlib.import_module("src.config.settings")


@pytest.mark.parametrize(
    "address, expected",
    [
        (":9966", ("", 9966)),
        ("0.0.0.0:80", ("0.0.0.0", 80)),
        ("localhost:0", ("localhost", 0)),
        ("[::1]:9966", ("::1", 9966)),
    ],
)
def test_parse_listen_address(address, expected):
    assert settings_mod.parse_listen_address(address) == expected


@pytest.mark.parametrize("address", ["9966", "host:", "host:abc", "host:70000", ""])
def test_parse_listen_address_invalid(address):
    with pytest.raises(ValueError):
        settings_mod.parse_listen_address(address)


def test_validate_settings_defaults_and_missing_keys():
    """Chaves ausentes recebem os valores padrão."""
    s = settings_mod.validate_settings({})
    assert s == settings_mod.ExporterSettings()
    assert s.host == ""
    assert s.port == 9966
    assert s.pm2_timeout == 30.0


def test_validate_settings_normalizes_log_level():
    s = settings_mod.validate_settings({"log_level": "warning"})
    assert s.log_level == "WARNING"


@pytest.mark.parametrize(
    "options",
    [
        {"scrape_interval": 0},
        {"scrape_interval": 2.5},
        {"scrape_interval": "abc"},
        {"pm2_timeout": -1},
        {"telemetry_path": "/health"},
        {"telemetry_path": "/exporter/metrics"},
        {"log_format": "yaml"},
    ],
)
def test_validate_settings_rejects_invalid(options):
    with pytest.raises(ValueError):
        settings_mod.validate_settings(options)


def test_validate_settings_rejects_non_dict():
    with pytest.raises(TypeError):
        settings_mod.validate_settings(["not", "a", "dict"])
