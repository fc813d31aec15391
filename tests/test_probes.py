from rtsm.probes import (
    ProbeStatus,
    click_first_visible,
    fill_first_visible,
    first_visible,
    wait_for_any_selector,
)


def test_first_visible_prefers_earlier_candidates(fake_page):
    page = fake_page(visible={"#b": True, "#c": True})

    result = first_visible(page, ["#a", "#b", "#c"])

    assert result.status is ProbeStatus.FOUND
    assert result.selector == "#b"


def test_first_visible_reports_absence(fake_page):
    result = first_visible(fake_page(), ["#a", "#b"])

    assert result.status is ProbeStatus.NOT_FOUND
    assert not result


def test_first_visible_distinguishes_broken_probes(fake_page):
    page = fake_page(visible={"#b": False})
    page.broken = {"#a", "#b"}

    result = first_visible(page, ["#a", "#b"])

    assert result.status is ProbeStatus.ERROR
    assert [sel for sel, _ in result.errors] == ["#a", "#b"]


def test_first_visible_skips_a_broken_probe(fake_page):
    page = fake_page(visible={"#b": True})
    page.broken = {"#a"}

    result = first_visible(page, ["#a", "#b"])

    assert result.found
    assert result.selector == "#b"
    assert len(result.errors) == 1


def test_click_first_visible_falls_through_failed_clicks(fake_page):
    page = fake_page(visible={"#a": True, "#b": True})
    page.unclickable = {"#a"}

    result = click_first_visible(page, ["#a", "#b"])

    assert result.selector == "#b"
    assert page.clicks == ["#b"]


def test_click_first_visible_with_nothing_visible(fake_page):
    page = fake_page()

    result = click_first_visible(page, ["#a", "#b"])

    assert result.status is ProbeStatus.NOT_FOUND
    assert page.clicks == []


def test_fill_first_visible(fake_page):
    page = fake_page(visible={"#email": True})

    assert fill_first_visible(page, ["input[name=email]", "#email"], "qa@example.com")
    assert page.fills == {"#email": "qa@example.com"}


def test_wait_for_any_selector_sees_late_element(fake_page):
    page = fake_page(visible={"text=Study": lambda ms: ms > 200})

    result = wait_for_any_selector(page, ["text=Dashboard", "text=Study"], timeout_ms=2_000, interval_ms=50)

    assert result.selector == "text=Study"


def test_wait_for_any_selector_times_out(fake_page):
    result = wait_for_any_selector(fake_page(), ["text=Dashboard"], timeout_ms=200, interval_ms=50)

    assert result.status is ProbeStatus.NOT_FOUND
