import json

import pytest

from x32_reflector.config import Configuration, load_configuration, parse_configuration
from x32_reflector.errors import ConfigurationError

VALID = {
    "udp": {"bind": "0.0.0.0"},
    "http": {"bind": "127.0.0.1", "port": 8081},
    "devices": [{"name": "Primary", "address": "10.1.10.20", "port": 10023}],
    "timeout": 1,
}


def write_json(path, content):
    path.write_text(json.dumps(content), encoding="utf-8")
    return path


def test_valid_configuration():
    config = parse_configuration(VALID)

    assert config.udp.bind == "0.0.0.0"
    assert config.http.port == 8081
    assert config.devices[0].name == "Primary"
    assert config.ttl_seconds == 60
    assert config.keepalive_interval == 9
    assert config.site_root == "/"


def test_legacy_keys_are_accepted():
    config = parse_configuration({
        "udp": {"bind": "0.0.0.0"},
        "http": {"bind": "0.0.0.0", "port": 8080},
        "x32": {"name": "Primary", "ip": "10.1.10.20", "port": 10023},
        "timeout": 5,
        "siteRoot": "/reflector/",
    })

    assert len(config.devices) == 1
    assert config.devices[0].address == "10.1.10.20"
    assert config.site_root == "/reflector/"


def test_duplicate_device_names_rejected():
    content = dict(VALID, devices=[
        {"name": "Primary", "address": "10.1.10.20", "port": 10023},
        {"name": "Primary", "address": "10.1.10.21", "port": 10023},
    ])

    with pytest.raises(ConfigurationError, match="duplicate device names"):
        parse_configuration(content)


@pytest.mark.parametrize("change", [
    {"udp": {"bind": "not-an-address"}},
    {"udp": {"bind": "::1"}},
    {"devices": [{"name": "Bad Name", "address": "10.1.10.20", "port": 10023}]},
    {"devices": [{"name": "Primary", "address": "10.1.10.20", "port": 70000}]},
    {"timeout": 0},
    {"site_root": "/reflector"},
])
def test_invalid_configuration(change):
    with pytest.raises(ConfigurationError):
        parse_configuration(dict(VALID, **change))


def test_missing_devices_rejected():
    content = {key: value for key, value in VALID.items() if key != "devices"}

    with pytest.raises(ConfigurationError):
        parse_configuration(content)


def test_load_uses_first_valid_file(tmp_path):
    missing = tmp_path / "missing.json"
    broken = tmp_path / "broken.json"
    broken.write_text("{ not json", encoding="utf-8")
    invalid = write_json(tmp_path / "invalid.json", {"timeout": 1})
    valid = write_json(tmp_path / "valid.json", VALID)
    other = write_json(tmp_path / "other.json", dict(VALID, timeout=99))

    config = load_configuration([missing, broken, invalid, valid, other])

    assert isinstance(config, Configuration)
    assert config.timeout == 1


def test_load_without_valid_file_fails(tmp_path):
    with pytest.raises(ConfigurationError, match="No valid configuration found"):
        load_configuration([tmp_path / "missing.json"])


def test_load_honours_environment_variable(tmp_path, monkeypatch):
    path = write_json(tmp_path / "env.json", dict(VALID, timeout=3))
    monkeypatch.setenv("X32_REFLECTOR_CONFIG", str(path))

    assert load_configuration().timeout == 3
