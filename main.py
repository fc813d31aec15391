"""
RTSM Login & Study Smoke Run — Entry Point

Usage:
    python main.py
    python main.py --config path/to/config.yaml --headed
"""

import argparse
import sys
from datetime import datetime

from playwright.sync_api import sync_playwright

from rtsm.auth import perform_login, save_session, set_device_authentication_key, verify_login_success
from rtsm.errors import ConfigError, RtsmError
from rtsm.navigator import (
    click_menu_if_visible,
    count_study_users,
    open_base_url,
    open_first_study,
    verify_dashboard_functionality,
)
from rtsm.popups import handle_version_release_popup
from rtsm.utils import capture_diagnostics, load_config, setup_logging


USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36 PlaywrightTest"
)


def run_smoke(page, config: dict, logger) -> dict:
    """
    Log in, read the study list, open the first study and count its users.
    Returns a result dict; mandatory-step failures raise.
    """
    result = {
        "success": False,
        "study_list_found": False,
        "first_study": None,
        "user_count": None,
    }

    logger.info("1️⃣ Opening site...")
    open_base_url(page, config)

    logger.info("2️⃣ Setting device key...")
    set_device_authentication_key(page, config)

    logger.info("3️⃣ Logging in...")
    perform_login(page, config)
    verify_login_success(page, config["timeout"])
    handle_version_release_popup(page)

    logger.info("4️⃣ Checking study list...")
    summary = verify_dashboard_functionality(page, config)
    result["study_list_found"] = summary["studies"] > 0
    if not result["study_list_found"]:
        logger.warning("❌ No studies listed for this account.")
        return result

    logger.info("5️⃣ Opening first study...")
    result["first_study"] = open_first_study(page, config)

    logger.info("6️⃣ Counting users...")
    if not click_menu_if_visible(page, "Manage User"):
        logger.warning("❌ 'Manage User' menu not found.")
        return result
    result["user_count"] = count_study_users(page)
    logger.info(f"✅ {result['user_count']} user(s) in {result['first_study']}")

    result["success"] = True
    return result


def _print_summary(result: dict) -> None:
    print("=" * 50)
    print("📊 Result:")
    print(f"  - Success:          {'✅' if result['success'] else '❌'}")
    print(f"  - Study list found: {'✅' if result['study_list_found'] else '❌'}")
    if result.get("first_study"):
        print(f"  - First study:      {result['first_study']}")
    if result.get("user_count") is not None:
        print(f"  - Users:            {result['user_count']}")
    if result.get("error"):
        print(f"  - Error:            {result['error']}")
    print(f"  - Finished at:      {result['timestamp']}")
    print("=" * 50)


def main(argv=None) -> int:
    # ── Parse arguments ──────────────────────────────────────────────
    parser = argparse.ArgumentParser(
        description="Log in to RTSM and smoke-test the study list"
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to config.yaml (default: ./config.yaml; env vars override)"
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window"
    )
    parser.add_argument(
        "--save-session",
        action="store_true",
        help="Write cookies and localStorage to session.json after a successful run"
    )
    args = parser.parse_args(argv)

    # ── Setup ────────────────────────────────────────────────────────
    logger = setup_logging()
    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 1
    if args.headed:
        config["headless"] = False

    logger.info("Configuration loaded:")
    logger.info(f"  Base URL:   {config['base_url']}")
    logger.info(f"  Email:      {config['email']}")
    logger.info(f"  Timeout:    {config['timeout']}ms (x{config['timeout_multiplier']})")
    logger.info(f"  Headless:   {config['headless']}")

    # ── Launch browser ───────────────────────────────────────────────
    result = {"success": False, "study_list_found": False}
    with sync_playwright() as p:
        browser = p.chromium.launch(
            headless=config["headless"],
            slow_mo=0 if config["headless"] else 300,
            args=["--disable-blink-features=AutomationControlled"],
        )
        page = None
        try:
            context = browser.new_context(
                viewport={"width": 1280, "height": 720},
                ignore_https_errors=True,
                user_agent=USER_AGENT,
            )
            page = context.new_page()
            result = run_smoke(page, config, logger)
            if result["success"] and args.save_session:
                save_session(context)
        except RtsmError as e:
            logger.error(f"❌ Smoke run failed: {e}")
            result["error"] = str(e)
            if page is not None:
                capture_diagnostics(page, "smoke_run_failed")
        except Exception as e:
            logger.error(f"❌ Unexpected error: {e.__class__.__name__}: {e}")
            result["error"] = str(e)
            if page is not None:
                capture_diagnostics(page, "smoke_run_error")
        finally:
            logger.info("Closing browser...")
            browser.close()

    result["timestamp"] = datetime.now().isoformat(timespec="seconds")
    _print_summary(result)
    return 0 if result["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
