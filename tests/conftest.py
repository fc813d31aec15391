"""
Shared fixtures: an in-memory stand-in for a Playwright page.

FakePage answers only what the package asks of a page.  Visibility and body
text may be callables of the elapsed time, which lets tests stage a popup
that renders late or a table that finishes loading after a few ticks.
"""

import time

import pytest

import rtsm.utils


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    def nth(self, index):
        return self

    def is_visible(self):
        if self.selector in self.page.broken:
            raise RuntimeError(f"locator {self.selector} detached")
        return bool(self.page.resolve(self.page.visible.get(self.selector, False)))

    def count(self):
        return 1 if self.is_visible() else 0

    def text_content(self):
        return self.page.texts.get(self.selector, self.selector)

    def click(self):
        if self.selector in self.page.unclickable:
            raise RuntimeError(f"click on {self.selector} intercepted")
        self.page.clicks.append(self.selector)
        self.page.visible.update(self.page.on_click.get(self.selector, {}))

    def fill(self, value):
        if self.selector in self.page.unfillable:
            raise RuntimeError(f"{self.selector} is read-only")
        self.page.fills[self.selector] = value

    def wait_for(self, state="visible", timeout=None):
        if (state == "visible") != self.is_visible():
            raise TimeoutError(f"{self.selector} not {state}")


class FakePage:
    def __init__(self, visible=None, body_text="", url="https://rtsm.test/", evaluate=None,
                 hidden_text=""):
        self.visible = dict(visible or {})
        self.body_text = body_text
        # Present in the DOM but not rendered: textContent sees it, innerText does not.
        self.hidden_text = hidden_text
        self.url = url
        self.evaluate_fn = evaluate
        self.texts = {}
        self.broken = set()
        self.unclickable = set()
        self.unfillable = set()
        self.on_click = {}
        self.clicks = []
        self.fills = {}
        self.waits = []
        self.load_states = []
        self._start = time.monotonic()

    @property
    def elapsed_ms(self):
        return (time.monotonic() - self._start) * 1000

    def resolve(self, value):
        return value(self.elapsed_ms) if callable(value) else value

    def locator(self, selector):
        return FakeLocator(self, selector)

    def text_content(self, selector):
        return self.resolve(self.body_text) + self.hidden_text

    def inner_text(self, selector):
        return self.resolve(self.body_text)

    def title(self):
        return "Maven RTSM"

    def wait_for_timeout(self, ms):
        self.waits.append(ms)
        time.sleep(ms / 1000)

    def wait_for_load_state(self, state="load", timeout=None):
        self.load_states.append(state)

    def wait_for_selector(self, selector, state="visible", timeout=None):
        # Comma lists match if any member is visible.
        parts = [s.strip() for s in selector.split(",")]
        if not any(FakeLocator(self, p).is_visible() for p in parts):
            raise TimeoutError(f"{selector} not visible")

    def evaluate(self, script, arg=None):
        if self.evaluate_fn is None:
            raise RuntimeError("evaluate not scripted")
        return self.evaluate_fn(script, arg)

    def screenshot(self, **kwargs):
        raise RuntimeError("no screenshots from a fake page")

    def content(self):
        return "<html><body>fake</body></html>"


@pytest.fixture
def fake_page():
    return FakePage


@pytest.fixture(autouse=True)
def diagnostics_dirs(tmp_path, monkeypatch):
    """Keep screenshots and HTML dumps out of the repository."""
    monkeypatch.setattr(rtsm.utils, "SCREENSHOT_DIR", str(tmp_path / "screenshots"))
    monkeypatch.setattr(rtsm.utils, "HTMLDUMP_DIR", str(tmp_path / "htmldumps"))
    return tmp_path
