"""
Tests for configuration loading.
"""

import pytest

from media_remote import config as config_module
from media_remote.config import DEFAULT_CONFIG, Config, deep_merge, load_config


class TestDeepMerge:
    def test_nested_values_merged(self):
        base = {"server": {"port": 1, "host": "a"}, "x": 1}
        merged = deep_merge(base, {"server": {"port": 2}})

        assert merged == {"server": {"port": 2, "host": "a"}, "x": 1}
        assert base["server"]["port"] == 1

    def test_non_dict_replaces(self):
        assert deep_merge({"a": {"b": 1}}, {"a": 5}) == {"a": 5}


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self, tmp_path):
        loaded = load_config(tmp_path / "missing.yaml")

        assert loaded == DEFAULT_CONFIG
        assert loaded is not DEFAULT_CONFIG

    def test_yaml_file_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "server:\n"
            "  port: 9090\n"
            "commands:\n"
            "  text_max_length: 200\n"
            "keys:\n"
            "  overrides:\n"
            "    mute: XF86AudioMute\n"
        )

        config = Config(path)

        assert config.port == 9090
        assert config.host == "0.0.0.0"
        assert config.text_max_length == 200
        assert config.dispatch_timeout == 30.0
        assert config.key_overrides == {"mute": "XF86AudioMute"}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config(path).port == 8080

    def test_broken_yaml_falls_back(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server: [unclosed\n")

        assert load_config(path) == DEFAULT_CONFIG

    def test_defaults_not_mutated(self, tmp_path):
        config = Config(tmp_path / "missing.yaml")
        config.override("server", "port", 1234)

        assert DEFAULT_CONFIG["server"]["port"] == 8080


class TestConfig:
    """Tests for the Config wrapper."""

    def test_override_ignores_none(self):
        config = Config(data={})
        config.override("server", "port", None)
        config.override("server", "http_port", 0)

        assert config.port == 8080
        assert config.http_port == 0

    def test_auto_host(self, monkeypatch):
        monkeypatch.setattr(config_module, "get_local_ip", lambda: "192.168.1.50")

        assert Config(data={"server": {"host": "auto"}}).host == "192.168.1.50"

    def test_workers_at_least_one(self):
        assert Config(data={"commands": {"workers": 0}}).workers == 1

    def test_to_dict_is_copy(self):
        config = Config(data={})
        data = config.to_dict()
        data["server"]["port"] = 1

        assert config.port == 8080


class TestLocalIp:
    def test_route_ip_used(self, monkeypatch):
        monkeypatch.setattr(config_module, "_route_ip", lambda: "10.0.0.7")

        assert config_module.get_local_ip() == "10.0.0.7"

    def test_interface_fallback(self, monkeypatch):
        monkeypatch.setattr(config_module, "_route_ip", lambda: None)
        monkeypatch.setattr(config_module.netifaces, "interfaces", lambda: ["lo", "wlan0"])
        addresses = {
            "lo": {config_module.netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
            "wlan0": {config_module.netifaces.AF_INET: [{"addr": "192.168.0.9"}]},
        }
        monkeypatch.setattr(config_module.netifaces, "ifaddresses", addresses.__getitem__)

        assert config_module.get_local_ip() == "192.168.0.9"

    def test_loopback_last_resort(self, monkeypatch):
        monkeypatch.setattr(config_module, "_route_ip", lambda: None)
        monkeypatch.setattr(config_module.netifaces, "interfaces", lambda: ["lo"])
        monkeypatch.setattr(
            config_module.netifaces,
            "ifaddresses",
            lambda iface: {config_module.netifaces.AF_INET: [{"addr": "127.0.0.1"}]},
        )

        assert config_module.get_local_ip() == "127.0.0.1"


@pytest.mark.parametrize("name", ["dispatch_timeout", "text_min_interval", "native_timeout"])
def test_float_settings(name):
    assert isinstance(getattr(Config(data={}), name), float)
