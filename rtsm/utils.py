"""
Utility functions: config loading, logging setup, and diagnostics.

Principles implemented:
  Adaptive Timeouts        : timeout_multiplier loaded from config
  Diagnostic Completeness  : capture_diagnostics() never raises
  Explicit Configuration   : load_config() builds one dict that callers pass around
"""

import os
import re
import logging
import yaml
from datetime import datetime
from dotenv import dotenv_values

from rtsm.errors import ConfigError


ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_DIR = os.path.join(ROOT_DIR, "logs")
SCREENSHOT_DIR = os.path.join(LOG_DIR, "screenshots")
HTMLDUMP_DIR   = os.path.join(LOG_DIR, "htmldumps")

LOGGER_NAME = "rtsm_e2e"

DEFAULT_BASE_URL = "https://staging.rtsm.mavenclinical.com"

# Environment variable → config key
_ENV_KEYS = {
    "TEST_BASE_URL": "base_url",
    "TEST_EMAIL": "email",
    "TEST_PASSWORD": "password",
    "TEST_DEVICE_KEY": "device_key",
    "TEST_TIMEOUT": "timeout",
    "TEST_HEADLESS": "headless",
    "TIMEOUT_MULTIPLIER": "timeout_multiplier",
}

_REQUIRED_CREDENTIALS = [
    ("email", "TEST_EMAIL"),
    ("password", "TEST_PASSWORD"),
    ("device_key", "TEST_DEVICE_KEY"),
]


def setup_logging() -> logging.Logger:
    """Configure and return the project logger."""
    os.makedirs(LOG_DIR, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(LOG_DIR, f"run_{timestamp}.log")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    ch_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
    ch.setFormatter(ch_fmt)

    # File handler
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh_fmt = logging.Formatter("[%(asctime)s] %(levelname)-8s %(name)s: %(message)s")
    fh.setFormatter(fh_fmt)

    logger.addHandler(ch)
    logger.addHandler(fh)

    logger.info(f"Log file: {log_file}")
    return logger


# ── Configuration ────────────────────────────────────────────────────────

def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("0", "false", "no", "off", "")


def load_config(config_path: str = None, env_file: str = None,
                require_credentials: bool = True) -> dict:
    """
    Build the run configuration, applying safe defaults for every key.

    Precedence (lowest first): defaults → config.yaml → .env → process env.
    Both files are optional.  Missing credentials raise ConfigError
    listing every missing key, before any browser is launched.
    """
    if config_path is None:
        config_path = os.path.join(ROOT_DIR, "config.yaml")
    if env_file is None:
        env_file = os.path.join(ROOT_DIR, ".env")

    config: dict = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")
        config.update(loaded)

    # .env first, then the real environment on top of it
    env_layers = []
    if os.path.exists(env_file):
        env_layers.append(dotenv_values(env_file))
    env_layers.append(os.environ)
    for layer in env_layers:
        for env_key, config_key in _ENV_KEYS.items():
            value = layer.get(env_key)
            if value not in (None, ""):
                config[config_key] = value

    # Defaults
    config.setdefault("base_url", DEFAULT_BASE_URL)
    config.setdefault("email", "")
    config.setdefault("password", "")
    config.setdefault("device_key", "")
    config.setdefault("device_cookie_name", "cream:auth:device:key:staging")
    config.setdefault("study_pattern", r"RTSM_JK\w*")
    config.setdefault("protocol_link_text", "RTSM_JK_MVN")
    config["headless"] = _parse_bool(config.get("headless", True))

    try:
        config["timeout"] = int(config.get("timeout", 30_000))
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be an integer (ms), got: {config.get('timeout')!r}")
    if config["timeout"] <= 0:
        raise ConfigError(f"timeout must be positive, got: {config['timeout']}")

    try:
        multiplier = float(config.get("timeout_multiplier", 1.0))
    except (TypeError, ValueError):
        multiplier = None
    if multiplier is None or multiplier < 0.1:
        raise ConfigError(
            f"timeout_multiplier must be a number >= 0.1, got: {config.get('timeout_multiplier')!r}"
        )
    config["timeout_multiplier"] = multiplier

    config["base_url"] = str(config["base_url"]).rstrip("/")

    if require_credentials:
        validate_credentials(config)

    return config


def validate_credentials(config: dict) -> None:
    """Raise ConfigError naming every missing credential variable."""
    missing = [env for key, env in _REQUIRED_CREDENTIALS if not config.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Create a .env file (see .env.example) or export them."
        )
    logging.getLogger(LOGGER_NAME).info("✅ All required configuration values are set.")


# ── Adaptive Timeouts ────────────────────────────────────────────────────

def adaptive_timeout(base_ms: int, config: dict) -> int:
    """
    Scale a timeout by the configured timeout_multiplier.

    Returns:
        int — timeout in milliseconds, rounded up to the nearest 100ms.

    Examples:
        adaptive_timeout(15_000, cfg)                     → 15_000ms
        adaptive_timeout(15_000, cfg with multiplier=2.0) → 30_000ms
    """
    multiplier = config.get("timeout_multiplier", 1.0)
    scaled = int(base_ms * multiplier)
    return ((scaled + 99) // 100) * 100


# ── Diagnostic Completeness ──────────────────────────────────────────────

def page_text(page) -> str:
    """Rendered body text (innerText), or "" while the page is navigating/detached."""
    try:
        return page.inner_text("body") or ""
    except Exception:
        return ""


def describe_page(page, excerpt: int = 300) -> dict:
    """URL, title and a text excerpt for soft-failure logs."""
    try:
        url = page.url
    except Exception:
        url = "<unavailable>"
    try:
        title = page.title()
    except Exception:
        title = "<unavailable>"
    return {"url": url, "title": title, "text": page_text(page)[:excerpt]}


def capture_diagnostics(page, label: str = "error") -> str | None:
    """
    Capture maximum diagnostic data even when the page is broken.

    Chain:
      1. Always log page.url, page.title() and a text excerpt
      2. page.screenshot() with a hard 5s timeout
      3. On failure → page.content() → save as .html dump

    Returns the file path of the saved screenshot or HTML dump, or None.
    """
    logger = logging.getLogger(LOGGER_NAME)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_label = re.sub(r"[^\w\-]", "_", label)[:80]

    info = describe_page(page)
    logger.debug(f"[diag] url={info['url']}  title={info['title']}")
    logger.debug(f"[diag] text={info['text']!r}")

    try:
        os.makedirs(SCREENSHOT_DIR, exist_ok=True)
        filepath = os.path.join(SCREENSHOT_DIR, f"{timestamp}_{safe_label}.png")
        page.screenshot(path=filepath, full_page=True, timeout=5_000)
        logger.info(f"📸 Screenshot saved: {filepath}")
        return filepath
    except Exception as ss_err:
        logger.debug(f"Screenshot failed ({ss_err}), falling back to HTML dump")

    try:
        os.makedirs(HTMLDUMP_DIR, exist_ok=True)
        html_filepath = os.path.join(HTMLDUMP_DIR, f"{timestamp}_{safe_label}.html")
        html_content = page.content()
        with open(html_filepath, "w", encoding="utf-8") as f:
            f.write(html_content)
        logger.info(f"📄 HTML dump saved: {html_filepath}")
        return html_filepath
    except Exception as html_err:
        logger.warning(f"HTML dump also failed: {html_err}")
        return None


def get_session_path() -> str:
    """Return the path to the session storage file."""
    return os.path.join(ROOT_DIR, "session.json")
