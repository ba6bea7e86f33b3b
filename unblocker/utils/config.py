"""
Configuration management for Unblocker.
Loads and validates settings from YAML files and environment variables.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field


class GeneralConfig(BaseModel):
    """General configuration."""

    project_name: str = "unblocker"
    version: str = "0.1.0"
    log_level: str = "INFO"
    log_json: bool = True
    logs_dir: str | None = None  # None = stderr only


class BrowserConfig(BaseModel):
    """Browser process configuration.

    A single Chromium process is shared by all requests. Launch flags relax
    the sandbox for containerized execution.
    """

    headless: bool = True
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
        ]
    )
    use_stealth_args: bool = True
    executable_path: str | None = None


class NavigationConfig(BaseModel):
    """Navigation wait policy.

    networkidle waits for zero open connections, which is stricter than
    Puppeteer's networkidle2. Use load for sites that hold connections open.
    """

    model_config = ConfigDict(extra="forbid")

    # Playwright lifecycle event: load, domcontentloaded, networkidle, commit
    wait_until: str = "networkidle"
    timeout_seconds: float = Field(default=60.0, gt=0)


class BrandConfig(BaseModel):
    """Single client-hint brand entry."""

    brand: str
    version: str


class IdentityConfig(BaseModel):
    """Identity profile presented to visited pages.

    Defaults describe a common consumer gaming laptop (Windows, NVIDIA GPU),
    based on the Steam hardware survey of June 2025.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
    )
    brands: list[BrandConfig] = Field(
        default_factory=lambda: [
            BrandConfig(brand="Not.A\\Brand", version="8"),
            BrandConfig(brand="Chromium", version="108"),
            BrandConfig(brand="Google Chrome", version="108"),
        ]
    )
    mobile: bool = False
    ua_platform: str = "Windows"
    architecture: str = "x86"
    model: str = ""
    platform_version: str = "15.0.0"
    bitness: str = "64"
    wow64: bool = False
    platform: str = "Win32"
    gpu_vendor: str = "NVIDIA Corporation"
    gpu_renderer: str = "NVIDIA GeForce RTX 4060 Laptop GPU"
    viewport_width: int = 1920
    viewport_height: int = 1080
    locale: str = "en-US,en"
    timezone: str = "America/New_York"


class RequestFilterConfig(BaseModel):
    """Outgoing request filter rules."""

    # PerimeterX app ID path, e.g. /58Asv359/init.js
    antibot_script_pattern: str = r"/[A-Z0-9]+/init\.js"
    blocked_tracking_domains: list[str] = Field(
        default_factory=lambda: [
            "google-analytics.com",
            "googletagmanager.com",
            "doubleclick.net",
            "facebook.net",
            "twitter.com",
            "analytics.yahoo.com",
            "adservice.google.com",
        ]
    )
    challenge_marker: str = "px-captcha"


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000


class Settings(BaseModel):
    """Main settings container."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    request_filter: RequestFilterConfig = Field(default_factory=RequestFilterConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary.

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_local_overrides(config_dir: Path) -> dict[str, Any]:
    """Load local.yaml overrides.

    Top-level keys correspond to config file names (without .yaml extension).

    Example local.yaml:
        settings:
          navigation:
            timeout_seconds: 30
    """
    local_path = config_dir / "local.yaml"
    if not local_path.exists():
        return {}
    with open(local_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load settings.yaml with local.yaml overrides (settings section).

    Args:
        config_dir: Configuration directory path.

    Returns:
        Merged configuration dictionary.
    """
    config: dict[str, Any] = {}

    base_path = config_dir / "settings.yaml"
    if base_path.exists():
        with open(base_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    local_overrides = _load_local_overrides(config_dir)
    if "settings" in local_overrides:
        config = _deep_merge(config, local_overrides["settings"])

    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables should be prefixed with UNBLOCKER_ and use
    double underscores for nested keys.

    Example:
        UNBLOCKER_NAVIGATION__TIMEOUT_SECONDS=30

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with environment overrides.
    """
    prefix = "UNBLOCKER_"

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        key_path = key[len(prefix) :].lower().split("__")
        # UNBLOCKER_CONFIG_DIR and similar single-level keys are not settings
        if len(key_path) < 2:
            continue

        current = config
        for part in key_path[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]

        final_key = key_path[-1]
        try:
            if value.lower() in ("true", "false"):
                current[final_key] = value.lower() == "true"
            elif "." in value:
                current[final_key] = float(value)
            else:
                current[final_key] = int(value)
        except ValueError:
            current[final_key] = value

    return config


def get_config_dir() -> Path:
    """Get the configuration directory (UNBLOCKER_CONFIG_DIR or ./config)."""
    return Path(os.environ.get("UNBLOCKER_CONFIG_DIR", "config"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings.

    Settings are loaded from:
    1. Default values
    2. YAML configuration files
    3. Environment variables (highest priority)

    Returns:
        Settings instance.
    """
    config = _load_yaml_config(get_config_dir())
    config = _apply_env_overrides(config)
    return Settings(**config)


def get_project_root() -> Path:
    """Get the project root directory."""
    # Assuming this file is at unblocker/utils/config.py
    return Path(__file__).parent.parent.parent
