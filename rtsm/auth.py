"""
Authentication module: device-key cookie, credential login, login
verification, logout and session persistence.
"""

import logging
import re
from urllib.parse import urlparse
from playwright.sync_api import Page, BrowserContext

from rtsm.errors import CookieError, FlowError, LoginError
from rtsm.poller import page_sleeper, poll
from rtsm.popups import handle_duplicate_login_popup
from rtsm.probes import click_first_visible, fill_first_visible, wait_for_any_selector
from rtsm.readiness import wait_for_page_load
from rtsm.utils import capture_diagnostics, describe_page, get_session_path

logger = logging.getLogger("rtsm_e2e")

LOGIN_URL_RE = re.compile(r"login|sign-in", re.I)

EMAIL_SELECTORS = ('input[name="email"]', 'input[type="email"]', "#email")
PASSWORD_SELECTORS = ('input[name="password"]', 'input[type="password"]', "#password")
SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("로그인")',
    'button:has-text("Login")',
    'button:has-text("Sign In")',
)
POST_LOGIN_SELECTORS = (
    '[data-testid="user-menu"]',
    ".user-menu",
    "text=Dashboard",
    "text=대시보드",
    "text=Home",
    "text=Study",
)
USER_MENU_SELECTORS = (
    '[data-testid="user-menu"]',
    ".user-menu",
    ".css-unzqs5 button.GrButton:has(.GrIcon)",
    "header button.GrButton:has(.GrButton-content)",
)
LOGOUT_SELECTORS = (
    "text=로그아웃",
    "text=Logout",
    "text=Sign Out",
    'button:has-text("로그아웃")',
    'button:has-text("Logout")',
    'a:has-text("로그아웃")',
    'a:has-text("Logout")',
    '[role="menuitem"]:has-text("로그아웃")',
    '[role="menuitem"]:has-text("Logout")',
)
LOGIN_FORM_SELECTOR = 'input[type="email"], input[name="email"]'

# Extra wait after a dismissed duplicate-login popup before the app redirects.
POST_POPUP_WAIT_MS = 2_000
REDIRECT_POLL_INTERVAL_MS = 250


# ── Cookies ──────────────────────────────────────────────────────────────

def set_device_authentication_key(page: Page, config: dict) -> None:
    """
    Write the device-key cookie through document.cookie so it lands on the
    page's real domain, then read it back.  Raises CookieError if missing.
    """
    name = config["device_cookie_name"]
    page.evaluate(
        "([name, key]) => { document.cookie = `${name}=${key}; path=/; secure; samesite=lax`; }",
        [name, config["device_key"]],
    )
    is_set = page.evaluate("(name) => document.cookie.includes(name)", name)
    if not is_set:
        raise CookieError(f"Device key cookie '{name}' was not stored by the browser")
    logger.info("✅ Device authentication key set.")


def get_cookie(context: BrowserContext, name: str) -> str | None:
    for cookie in context.cookies():
        if cookie.get("name") == name:
            return cookie.get("value")
    return None


def set_cookie(context: BrowserContext, page: Page, name: str, value: str, domain: str = None) -> None:
    """Session-scoped cookie on *domain* (default: the current page's host)."""
    context.add_cookies([{
        "name": name,
        "value": value,
        "domain": domain or urlparse(page.url).hostname,
        "path": "/",
    }])


# ── Login / logout ───────────────────────────────────────────────────────

def perform_login(page: Page, config: dict) -> bool:
    """
    Fill credentials, submit, and clear the duplicate-login popup if it shows.

    Returns True when a popup was present and dismissed.  A popup that could
    not be dismissed is logged and left for verify_login_success() to judge.
    """
    timeout = config["timeout"]
    try:
        page.wait_for_selector(", ".join(EMAIL_SELECTORS), state="visible", timeout=timeout)
    except Exception as e:
        capture_diagnostics(page, "login_form_missing")
        raise LoginError(f"Login form did not appear within {timeout}ms") from e

    if not fill_first_visible(page, EMAIL_SELECTORS, config["email"], label="email"):
        capture_diagnostics(page, "email_input_missing")
        raise LoginError("Email input is not fillable")
    if not fill_first_visible(page, PASSWORD_SELECTORS, config["password"], label="password"):
        capture_diagnostics(page, "password_input_missing")
        raise LoginError("Password input not found")

    if not click_first_visible(page, SUBMIT_SELECTORS, label="login submit"):
        capture_diagnostics(page, "login_button_missing")
        raise LoginError("Login button not found")
    logger.info(f"Login form submitted for {config['email']}")

    popup = handle_duplicate_login_popup(page)
    if popup.present and not popup.dismissed:
        logger.warning("Duplicate-login popup could not be dismissed; continuing.")
    if popup.dismissed:
        page.wait_for_timeout(POST_POPUP_WAIT_MS)
    return popup.dismissed


def verify_login_success(page: Page, timeout_ms: int = 30_000) -> None:
    """
    Raise LoginError unless the page leaves the login screen within
    *timeout_ms*.  The SPA may still be redirecting after network idle.

    Any post-login marker is proof.  Without one, a non-login URL is
    accepted with a warning.
    """
    try:
        wait_for_page_load(page, timeout_ms)
    except Exception as e:
        logger.debug(f"  load state not reached: {e}")

    left_login = poll(lambda: not LOGIN_URL_RE.search(page.url), timeout_ms,
                      REDIRECT_POLL_INTERVAL_MS, sleep=page_sleeper(page),
                      label="login redirect")
    if not left_login:
        capture_diagnostics(page, "still_on_login_page")
        raise LoginError(f"Still on login page after submit: {page.url}")

    marker = wait_for_any_selector(page, POST_LOGIN_SELECTORS, timeout_ms=10_000)
    if marker.found:
        logger.info(f"✅ Login verified ({marker.selector})")
        return

    info = describe_page(page)
    logger.warning("⚠️ No post-login marker found; accepting non-login URL.")
    logger.warning(f"  url={info['url']} title={info['title']}")
    logger.warning(f"  text={info['text']!r}")
    if LOGIN_URL_RE.search(info["url"]):
        raise LoginError(f"Redirected back to login page: {info['url']}")


def click_user_menu(page: Page) -> None:
    result = click_first_visible(page, USER_MENU_SELECTORS, label="user menu")
    if not result:
        capture_diagnostics(page, "user_menu_missing")
        raise FlowError("User menu button not found")
    logger.info(f"User menu opened via {result.selector!r}")


def click_logout_button(page: Page) -> None:
    result = click_first_visible(page, LOGOUT_SELECTORS, label="logout")
    if not result:
        info = describe_page(page)
        logger.error(f"Logout button not found. Page text: {info['text']!r}")
        capture_diagnostics(page, "logout_button_missing")
        raise FlowError("Logout button not found")


def perform_logout(page: Page, timeout_ms: int = 10_000) -> None:
    """User menu → Logout → back on the login form.  Every step is mandatory."""
    click_user_menu(page)
    page.wait_for_timeout(1_000)  # dropdown animation
    click_logout_button(page)
    try:
        page.wait_for_selector(LOGIN_FORM_SELECTOR, state="visible", timeout=timeout_ms)
    except Exception as e:
        capture_diagnostics(page, "logout_redirect_failed")
        raise FlowError(f"Login form did not reappear within {timeout_ms}ms after logout") from e
    logger.info("✅ Logged out, login page shown.")


def save_session(context: BrowserContext, path: str = None) -> str:
    """Save browser session (cookies + localStorage) to session.json."""
    session_path = path or get_session_path()
    context.storage_state(path=session_path)
    logger.info(f"Session saved to: {session_path}")
    return session_path
