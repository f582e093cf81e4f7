# tests/test_identity.py
"""
Unit tests for identity reconciliation against the identity of record.
"""

from datetime import datetime

from models import Snapshot
from reconciler.identity import (
    FUTURE_TERMINATION,
    NOT_FOUND_IN_SOURCE,
    TERMINATED_BUT_ACTIVE,
    parse_term_date,
    reconcile_identity,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def identity_source(rows, headers=("User ID", "Status", "Termination Date")):
    return Snapshot(name="workday.csv", headers=list(headers), rows=rows)


def app_users(*user_ids):
    return Snapshot(name="app.csv", headers=["Username", "Role"],
                    rows=[{"Username": u, "Role": "Viewer"} for u in user_ids])


def test_terminated_user_active_in_app():
    identity = identity_source([{"User ID": "jdoe", "Status": "Terminated", "Termination Date": "2023-01-01"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=NOW)
    assert len(issues) == 1
    assert issues[0].user_id == "jdoe"
    assert issues[0].issue_type == TERMINATED_BUT_ACTIVE
    assert issues[0].identity_status == "Terminated"
    assert issues[0].identity_term_date == "2023-01-01"


def test_user_missing_from_identity_source():
    identity = identity_source([{"User ID": "jdoe", "Status": "Active", "Termination Date": ""}])
    issues = reconcile_identity(identity, app_users("asmith"), now=NOW)
    assert len(issues) == 1
    assert issues[0].issue_type == NOT_FOUND_IN_SOURCE
    assert issues[0].identity_status == "N/A"
    assert issues[0].identity_term_date == "N/A"


def test_keys_match_after_trim_and_case_fold():
    identity = identity_source([{"User ID": "  JDoe ", "Status": "Active", "Termination Date": ""}])
    assert reconcile_identity(identity, app_users("jdoe"), now=NOW) == []


def test_past_date_overrides_active_status():
    identity = identity_source([{"User ID": "jdoe", "Status": "Active", "Termination Date": "2024-12-31"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=NOW)
    assert [i.issue_type for i in issues] == [TERMINATED_BUT_ACTIVE]


def test_missing_status_with_past_date_is_terminated_not_future():
    identity = identity_source([{"User ID": "jdoe", "Termination Date": "2025-01-15"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=NOW)
    assert [i.issue_type for i in issues] == [TERMINATED_BUT_ACTIVE]


def test_future_termination_date():
    identity = identity_source([{"User ID": "jdoe", "Status": "Active", "Termination Date": "2025-09-30"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=NOW)
    assert [i.issue_type for i in issues] == [FUTURE_TERMINATION]


def test_terminated_status_beats_future_date():
    identity = identity_source([{"User ID": "jdoe", "Status": "Inactive", "Termination Date": "2025-09-30"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=NOW)
    assert [i.issue_type for i in issues] == [TERMINATED_BUT_ACTIVE]


def test_unparseable_date_is_ignored():
    identity = identity_source([{"User ID": "jdoe", "Status": "Active", "Termination Date": "not a date"}])
    assert reconcile_identity(identity, app_users("jdoe"), now=NOW) == []


def test_no_status_or_date_columns_is_always_clean():
    identity = identity_source([{"User ID": "jdoe", "Dept": "Ops"}], headers=("User ID", "Dept"))
    assert reconcile_identity(identity, app_users("jdoe"), now=NOW) == []


def test_empty_app_keys_are_skipped():
    issues = reconcile_identity(identity_source([]), app_users("", "  x"), now=NOW)
    assert [(i.user_id, i.issue_type) for i in issues] == [("  x", NOT_FOUND_IN_SOURCE)]


def test_reconcile_is_repeatable_and_does_not_mutate_inputs():
    identity = identity_source([
        {"User ID": "jdoe", "Status": "Terminated", "Termination Date": ""},
        {"User ID": "kim", "Status": "Active", "Termination Date": "2026-01-01"},
    ])
    users = app_users("jdoe", "kim", "ghost")
    rows_before = [dict(r) for r in users.rows]
    first = reconcile_identity(identity, users, now=NOW)
    second = reconcile_identity(identity, users, now=NOW)
    assert first == second
    assert [i.issue_type for i in first] == [TERMINATED_BUT_ACTIVE, FUTURE_TERMINATION, NOT_FOUND_IN_SOURCE]
    assert users.rows == rows_before


def test_parse_term_date():
    assert parse_term_date("2023-01-01") == datetime(2023, 1, 1)
    assert parse_term_date("") is None
    assert parse_term_date("   ") is None
    assert parse_term_date("2023-01-01T00:00:00+00:00").tzinfo is None


def test_term_date_equal_to_now_is_terminated():
    midnight = datetime(2025, 6, 1)
    identity = identity_source([{"User ID": "jdoe", "Status": "Active", "Termination Date": "2025-06-01"}])
    issues = reconcile_identity(identity, app_users("jdoe"), now=midnight)
    assert [i.issue_type for i in issues] == [TERMINATED_BUT_ACTIVE]


def test_partial_dates_are_completed_from_now():
    assert parse_term_date("Sept", default=NOW) == datetime(2025, 9, 1)
    assert parse_term_date("12", default=NOW) == datetime(2025, 6, 12)

    identity = identity_source([
        {"User ID": "jdoe", "Status": "Active", "Termination Date": "1"},
        {"User ID": "kim", "Status": "Active", "Termination Date": "Sept"},
    ])
    issues = reconcile_identity(identity, app_users("jdoe", "kim"), now=NOW)
    assert [(i.user_id, i.issue_type) for i in issues] == [
        ("jdoe", TERMINATED_BUT_ACTIVE),
        ("kim", FUTURE_TERMINATION),
    ]
