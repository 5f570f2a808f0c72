"""
Configuration loader for Media Remote.
Supports YAML config files with sensible defaults.
"""

import copy
import logging
import os
import socket
from pathlib import Path
from typing import Any, Dict, Optional

import netifaces
import yaml

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_CONFIG = {
    "server": {
        "port": 8080,
        "host": "0.0.0.0",
        "http_port": 8081,
        "ping_interval": 20,
        "ping_timeout": 20,
        "max_message_size": 1024 * 1024,
    },
    "commands": {
        "dispatch_timeout": 30.0,
        "text_max_length": 1000,
        "text_min_interval": 0.1,
        "workers": 4,
        "native_timeout": 5.0,
    },
    "keys": {
        "overrides": {},
        "media": {},
    },
    "display": {
        "output": "eDP-1",
    },
    "frontend": {
        "port": 3000,
    },
    "logging": {
        "verbose": False,
        "file": None,
    },
}


def get_config_paths() -> list[Path]:
    """Get list of possible config file locations (in priority order)."""
    paths = []

    # 1. Current directory
    paths.append(Path.cwd() / "config.yaml")

    # 2. XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        paths.append(Path(xdg_config) / "media-remote" / "config.yaml")

    # 3. ~/.config/media-remote/
    paths.append(Path.home() / ".config" / "media-remote" / "config.yaml")

    # 4. ~/.media-remote.yaml
    paths.append(Path.home() / ".media-remote.yaml")

    return paths


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file.

    Args:
        config_path: Explicit config file path. If None, searches default locations.

    Returns:
        Configuration dictionary with defaults filled in.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        paths = [Path(config_path)]
    else:
        paths = get_config_paths()

    for path in paths:
        if path.exists():
            try:
                with open(path, "r") as f:
                    file_config = yaml.safe_load(f) or {}
                config = deep_merge(config, file_config)
                logger.debug(f"Loaded config from {path}")
                break
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {path}: {e}")

    return config


def _route_ip() -> Optional[str]:
    # No packets are sent; connect() only picks the outbound interface
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
    except OSError:
        return None
    if ip and not ip.startswith("127.") and ip != "0.0.0.0":
        return ip
    return None


def get_local_ip() -> str:
    """
    Get the local network IP address.

    Returns:
        Local IP address string (e.g., "192.168.1.100")
    """
    ip = _route_ip()
    if ip:
        return ip

    interfaces = netifaces.interfaces()

    # Priority order for interface names
    priority = ["eth", "enp", "wlan", "wlp", "eno", "ens", "en"]

    candidates = []
    for prefix in priority:
        candidates.extend(i for i in interfaces if i.startswith(prefix) and i not in candidates)
    candidates.extend(i for i in interfaces if i != "lo" and i not in candidates)

    for iface in candidates:
        try:
            addrs = netifaces.ifaddresses(iface)
        except ValueError:
            continue
        for addr in addrs.get(netifaces.AF_INET, []):
            ip = addr.get("addr", "")
            if ip and not ip.startswith("127."):
                return ip

    # Final fallback
    return "127.0.0.1"


class Config:
    """Configuration wrapper with easy access to settings."""

    def __init__(self, config_path: Optional[Path] = None, data: Optional[Dict[str, Any]] = None):
        if data is not None:
            self._config = deep_merge(copy.deepcopy(DEFAULT_CONFIG), data)
        else:
            self._config = load_config(config_path)

        # Resolve "auto" host
        if self._config["server"]["host"] == "auto":
            self._config["server"]["host"] = get_local_ip()

    def override(self, section: str, key: str, value: Any) -> None:
        """Set a single value, ignoring None (unset CLI flags)."""
        if value is not None:
            self._config[section][key] = value

    @property
    def host(self) -> str:
        return self._config["server"]["host"]

    @property
    def port(self) -> int:
        return self._config["server"]["port"]

    @property
    def http_port(self) -> int:
        return self._config["server"]["http_port"]

    @property
    def ping_interval(self) -> Optional[float]:
        return self._config["server"]["ping_interval"]

    @property
    def ping_timeout(self) -> Optional[float]:
        return self._config["server"]["ping_timeout"]

    @property
    def max_message_size(self) -> int:
        return self._config["server"]["max_message_size"]

    @property
    def dispatch_timeout(self) -> float:
        return float(self._config["commands"]["dispatch_timeout"])

    @property
    def text_max_length(self) -> int:
        return self._config["commands"]["text_max_length"]

    @property
    def text_min_interval(self) -> float:
        return float(self._config["commands"]["text_min_interval"])

    @property
    def workers(self) -> int:
        return max(1, self._config["commands"]["workers"])

    @property
    def native_timeout(self) -> float:
        return float(self._config["commands"]["native_timeout"])

    @property
    def key_overrides(self) -> Dict[str, str]:
        return self._config["keys"].get("overrides") or {}

    @property
    def media_keys(self) -> Dict[str, str]:
        return self._config["keys"].get("media") or {}

    @property
    def display_output(self) -> str:
        return self._config["display"]["output"]

    @property
    def frontend_port(self) -> int:
        return self._config["frontend"]["port"]

    @property
    def verbose(self) -> bool:
        return bool(self._config["logging"]["verbose"])

    @property
    def log_file(self) -> Optional[str]:
        return self._config["logging"]["file"]

    def to_dict(self) -> Dict[str, Any]:
        """Return config as dictionary."""
        return copy.deepcopy(self._config)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = Config(config_path)
    return _config
