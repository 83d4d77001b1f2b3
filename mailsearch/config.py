"""
Configuration loading.

Settings live in an INI file (config.ini by default); a missing file or
missing keys fall back to the defaults below.
"""

import configparser
import logging
import os
from typing import Dict, Any, List, Optional

from .errors import ConfigurationError
from .providers.microsoft import GRAPH_BASE_URL, DEFAULT_MAX_PAGES, DEFAULT_SCOPES, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_PATH = "config.ini"
DEFAULT_TOKEN_CACHE = ".mail_search_token.json"

DEFAULTS = {
    "graph": {
        "base_url": GRAPH_BASE_URL,
        "timeout": str(DEFAULT_TIMEOUT),
        "page_size": "",
        "max_pages": str(DEFAULT_MAX_PAGES),
        "include_hidden_folders": "false",
    },
    "auth": {
        "client_id": "",
        "tenant_id": "common",
        "token_cache": DEFAULT_TOKEN_CACHE,
        "method": "interactive",
        "scopes": ",".join(DEFAULT_SCOPES),
    },
    "system": {
        "log_level": "INFO",
    },
}


def load_config(config_path: str = None) -> configparser.ConfigParser:
    """Load configuration from file, layered over the defaults."""
    if config_path is None:
        config_path = CONFIG_PATH
    cfg = configparser.ConfigParser(inline_comment_prefixes=(";", "#"))
    cfg.read_dict(DEFAULTS)
    if os.path.exists(config_path):
        try:
            cfg.read(config_path)
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e
        logger.debug(f"Loaded configuration from {config_path}")
    else:
        logger.debug(f"Configuration file {config_path} not found, using defaults")
    return cfg


def _optional_int(value: str) -> Optional[int]:
    value = value.strip()
    return int(value) if value else None


def _split_scopes(value: str) -> List[str]:
    return [s.strip() for s in value.replace(" ", ",").split(",") if s.strip()]


def graph_settings(cfg: configparser.ConfigParser) -> Dict[str, Any]:
    """Typed [graph] settings."""
    section = cfg["graph"]
    try:
        return {
            "base_url": section.get("base_url").rstrip("/"),
            "timeout": section.getfloat("timeout"),
            "page_size": _optional_int(section.get("page_size")),
            "max_pages": _optional_int(section.get("max_pages")) or None,
            "include_hidden_folders": section.getboolean("include_hidden_folders"),
        }
    except ValueError as e:
        raise ConfigurationError(f"Invalid value in [graph]: {e}") from e


def auth_settings(cfg: configparser.ConfigParser) -> Dict[str, Any]:
    """Typed [auth] settings; MAIL_SEARCH_CLIENT_ID / MAIL_SEARCH_TENANT_ID take precedence."""
    section = cfg["auth"]
    token_cache = section.get("token_cache").strip()
    return {
        "client_id": os.getenv("MAIL_SEARCH_CLIENT_ID") or section.get("client_id").strip(),
        "tenant_id": os.getenv("MAIL_SEARCH_TENANT_ID") or section.get("tenant_id").strip() or "common",
        "token_cache": os.path.expanduser(token_cache) if token_cache else None,
        "method": section.get("method").strip().lower(),
        "scopes": _split_scopes(section.get("scopes")) or list(DEFAULT_SCOPES),
    }
