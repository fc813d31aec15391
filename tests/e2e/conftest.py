"""
Fixtures for live runs against the staging application.

Every test here is marked `e2e` and skipped unless TEST_EMAIL,
TEST_PASSWORD and TEST_DEVICE_KEY are configured (env or .env).
"""

import pytest

from rtsm.auth import perform_login, set_device_authentication_key, verify_login_success
from rtsm.errors import ConfigError
from rtsm.navigator import open_base_url
from rtsm.utils import capture_diagnostics, load_config, setup_logging


def _load():
    try:
        return load_config(), None
    except ConfigError as e:
        return None, str(e)


def pytest_collection_modifyitems(config, items):
    # Skip before pytest-playwright's session browser is ever launched.
    _, reason = _load()
    for item in items:
        if item.get_closest_marker("e2e") is None:
            continue
        if reason:
            item.add_marker(pytest.mark.skip(reason=reason))


@pytest.fixture(autouse=True)
def diagnostics_dirs():
    """Live runs keep their screenshots and HTML dumps under logs/."""
    return None


@pytest.fixture(scope="session")
def rtsm_config():
    setup_logging()
    config, reason = _load()
    if config is None:
        pytest.skip(reason)
    return config


@pytest.fixture(scope="session")
def browser_context_args(browser_context_args):
    return {
        **browser_context_args,
        "viewport": {"width": 1280, "height": 720},
        "ignore_https_errors": True,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 PlaywrightTest"
        ),
    }


@pytest.fixture
def logged_in_page(page, rtsm_config, request):
    """A page past login with the device key set (no verification code step)."""
    page.set_default_timeout(rtsm_config["timeout"])
    open_base_url(page, rtsm_config)
    set_device_authentication_key(page, rtsm_config)
    perform_login(page, rtsm_config)
    verify_login_success(page, rtsm_config["timeout"])
    yield page
    rep = getattr(request.node, "rep_call", None)
    if rep is not None and rep.failed:
        capture_diagnostics(page, f"{request.node.name}_failure")


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)
