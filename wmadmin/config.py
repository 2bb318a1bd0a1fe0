"""
WMAdmin Configuration Management
================================
Loads the YAML config, applies env-var overrides and resolves platform paths.
Configuration is resolved once at startup and passed explicitly to the
components that need it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from platformdirs import user_config_dir, user_data_dir

from wmadmin.core.lifecycle import LaunchOptions

APP_NAME = "wmadmin"

# ── paths ────────────────────────────────────────────────────────────────────

CONFIG_DIR = Path(user_config_dir(APP_NAME))
DATA_DIR = Path(user_data_dir(APP_NAME))
LOGS_DIR = DATA_DIR / "logs"
CONFIG_FILE = CONFIG_DIR / "config.yaml"

MiB = 1024 * 1024


def ensure_dirs() -> None:
    """Create all required directories."""
    for d in (CONFIG_DIR, DATA_DIR, LOGS_DIR):
        d.mkdir(parents=True, exist_ok=True)


# ── default config ───────────────────────────────────────────────────────────

DEFAULT_CONFIG: Dict[str, Any] = {
    "wiremock": {
        "base_url": "http://localhost:8080",
        "timeout": 30.0,
        "max_response_bytes": 10 * MiB,
        "embedded": {
            "enabled": True,
            "java": "java",
            "jar": "",
            "jvm_args": [],
            "options": {
                "port": "8080",
                "root-dir": "./wiremock",
                "verbose": "false",
            },
        },
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8090,
        "api_prefix": "/api",
        "admin_wait": 15.0,
    },
    "logging": {
        "level": "INFO",
        "to_file": True,
    },
}

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class EmbeddedConfig:
    enabled: bool = True
    java: str = "java"
    jar: str = ""
    jvm_args: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(
        default_factory=lambda: dict(DEFAULT_CONFIG["wiremock"]["embedded"]["options"])
    )

    def launch_options(self) -> LaunchOptions:
        """Freeze the option map into the engine's launch options."""
        return LaunchOptions.from_mapping(self.options)


@dataclass
class WireMockConfig:
    base_url: str = "http://localhost:8080"
    timeout: float = 30.0
    max_response_bytes: int = 10 * MiB
    embedded: EmbeddedConfig = field(default_factory=EmbeddedConfig)


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8090
    api_prefix: str = "/api"
    admin_wait: float = 15.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    to_file: bool = True


@dataclass
class WMAdminConfig:
    wiremock: WireMockConfig = field(default_factory=WireMockConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[Path] = None) -> WMAdminConfig:
    """Load configuration from disk, env vars, and defaults."""
    config_file = Path(path) if path else CONFIG_FILE
    if path is None:
        ensure_dirs()
    raw: Dict[str, Any] = {}

    if config_file.exists():
        with open(config_file) as f:
            raw = yaml.safe_load(f) or {}

    # Merge with defaults
    merged = _deep_merge(DEFAULT_CONFIG, raw)
    wm = merged["wiremock"]
    embedded = wm["embedded"]

    # Env-var overrides
    if os.environ.get("WMADMIN_BASE_URL"):
        wm["base_url"] = os.environ["WMADMIN_BASE_URL"]
    if os.environ.get("WMADMIN_EMBEDDED_ENABLED"):
        embedded["enabled"] = os.environ["WMADMIN_EMBEDDED_ENABLED"].strip().lower() in _TRUTHY
    if os.environ.get("WMADMIN_WIREMOCK_JAR"):
        embedded["jar"] = os.environ["WMADMIN_WIREMOCK_JAR"]
    if os.environ.get("WMADMIN_WIREMOCK_PORT"):
        embedded["options"]["port"] = os.environ["WMADMIN_WIREMOCK_PORT"]
    if os.environ.get("WMADMIN_ROOT_DIR"):
        embedded["options"]["root-dir"] = os.environ["WMADMIN_ROOT_DIR"]
    if os.environ.get("WMADMIN_HOST"):
        merged["server"]["host"] = os.environ["WMADMIN_HOST"]
    if os.environ.get("WMADMIN_PORT"):
        merged["server"]["port"] = int(os.environ["WMADMIN_PORT"])
    if os.environ.get("WMADMIN_LOG_LEVEL"):
        merged["logging"]["level"] = os.environ["WMADMIN_LOG_LEVEL"].upper()

    cfg = WMAdminConfig(
        wiremock=WireMockConfig(
            base_url=wm["base_url"],
            timeout=float(wm["timeout"]),
            max_response_bytes=int(wm["max_response_bytes"]),
            embedded=EmbeddedConfig(**embedded),
        ),
        server=ServerConfig(**merged.get("server", {})),
        logging=LoggingConfig(**merged.get("logging", {})),
    )
    return cfg


def save_config(cfg: WMAdminConfig, path: Optional[Path] = None) -> None:
    """Persist current configuration to disk."""
    config_file = Path(path) if path else CONFIG_FILE
    if path is None:
        ensure_dirs()
    data = {
        "wiremock": {
            "base_url": cfg.wiremock.base_url,
            "timeout": cfg.wiremock.timeout,
            "max_response_bytes": cfg.wiremock.max_response_bytes,
            "embedded": {
                "enabled": cfg.wiremock.embedded.enabled,
                "java": cfg.wiremock.embedded.java,
                "jar": cfg.wiremock.embedded.jar,
                "jvm_args": list(cfg.wiremock.embedded.jvm_args),
                "options": dict(cfg.wiremock.embedded.options),
            },
        },
        "server": {
            "host": cfg.server.host,
            "port": cfg.server.port,
            "api_prefix": cfg.server.api_prefix,
            "admin_wait": cfg.server.admin_wait,
        },
        "logging": {
            "level": cfg.logging.level,
            "to_file": cfg.logging.to_file,
        },
    }
    with open(config_file, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = {}
    for k, v in base.items():
        result[k] = _deep_merge(v, {}) if isinstance(v, dict) else v
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result
