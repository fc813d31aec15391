"""
The snapshot script run against real markup in Chromium.  Content is set
inline, so no network or credentials are needed.
"""

from rtsm.readiness import ViewState, read_table_state, take_snapshot

HEADERS = ("Study Name", "Protocol No.", "DB Status")


def study_list(headers=HEADERS, rows=(), extra=""):
    head = "".join(f"<th>{h}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>" for row in rows
    )
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>{extra}"


EMPTY = '<p>No data is available</p>'


def test_headers_and_empty_marker_read_as_loaded_empty(page):
    page.set_content(study_list(extra=EMPTY))

    verdict = read_table_state(page)

    assert verdict.snapshot.header_count == 3
    assert verdict.state is ViewState.LOADED_EMPTY


def test_tagged_study_rows_read_as_loaded_with_data(page):
    page.set_content(study_list(rows=[("RTSM_JK_MVN_01", "MVN-01", "SANDBOX")]))

    verdict = read_table_state(page)

    assert verdict.snapshot.row_count > 0
    assert verdict.snapshot.tag_count == 1
    assert verdict.state is ViewState.LOADED_WITH_DATA


def test_loading_text_reads_as_loading(page):
    page.set_content(study_list(extra=EMPTY + "<div>Loading...</div>"))

    assert read_table_state(page).state is ViewState.LOADING


def test_two_of_three_headers_is_not_ready(page):
    page.set_content(study_list(headers=HEADERS[:2], extra=EMPTY))

    verdict = read_table_state(page)

    assert verdict.snapshot.header_count == 2
    assert not verdict.ready


def test_rows_without_tags_are_not_ready(page):
    page.set_content(study_list(rows=[("RTSM_JK_MVN_01", "MVN-01", "Unlocked")]))

    verdict = read_table_state(page)

    assert verdict.snapshot.row_count > 0
    assert verdict.snapshot.tag_count == 0
    assert not verdict.ready


def test_long_text_mentioning_a_study_is_not_a_row(page):
    sentence = "Protocol RTSM_JK_MVN_01 was archived by the sponsor after the final visit."
    page.set_content(study_list(extra=f"<p>{sentence}</p>"))

    assert take_snapshot(page).row_count == 0


def test_hidden_loading_node_is_ignored(page):
    page.set_content(study_list(extra=EMPTY + '<div style="display:none">Loading</div>'))

    verdict = read_table_state(page)

    assert not verdict.loading_signal
    assert verdict.state is ViewState.LOADED_EMPTY
