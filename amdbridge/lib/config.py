# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Shared configuration loader for the AMD Bridge daemon and client.

Loads a single JSON config file.  Search order:
  1. $AMDBRIDGE_CONFIG              (explicit override)
  2. /etc/amdbridge/config.json     (system install)
  3. config.json                    (CWD — handy for local dev)
  4. ../../config/default.json      (repo fallback)

Secrets (Apple Music developer/user tokens) stay in environment variables.

Usage:
    from amdbridge.lib.config import cfg

    port      = cfg("server", "port", default=9992)
    interval  = cfg("broadcast", "interval", default=1.0)
    resolver  = cfg("resolver")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_RESOLVER_TYPES = ("library", "apple_music")


def _search_paths() -> list[str]:
    paths = [
        "/etc/amdbridge/config.json",
        "config.json",
        os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
    ]
    override = os.getenv("AMDBRIDGE_CONFIG")
    if override:
        paths.insert(0, override)
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    server = config.get("server") or {}
    port = server.get("port", 9992)
    if not isinstance(port, int) or not 0 < port < 65536:
        logger.warning("Config %s: server.port %r is not a valid TCP port", path, port)
    interval = (config.get("broadcast") or {}).get("interval", 1.0)
    if not isinstance(interval, (int, float)) or interval <= 0:
        logger.warning("Config %s: broadcast.interval %r must be a positive number", path, interval)
    resolver = config.get("resolver") or {}
    res_type = resolver.get("type", "library")
    if res_type not in _RESOLVER_TYPES:
        logger.warning("Config %s: unknown resolver.type '%s'", path, res_type)
    if res_type == "apple_music" and not os.getenv("APPLE_MUSIC_DEVELOPER_TOKEN"):
        logger.error("Config %s: resolver.type is apple_music but "
                     "APPLE_MUSIC_DEVELOPER_TOKEN is not set — every lookup will miss", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("log_level")                    → config["log_level"]
    cfg("server", "port")               → config["server"]["port"]
    cfg("client", "reconnect_delay", default=2)  → value or 2
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
