# tests/test_diff.py
"""
Unit tests for key-column inference and snapshot comparison.
"""

from models import Snapshot
from reconciler.diff import compare_snapshots
from reconciler.keys import detect_id_column, find_column


def snap(headers, rows, name="users.csv"):
    return Snapshot(name=name, headers=headers, rows=rows)


def test_detect_id_column_is_case_insensitive():
    assert detect_id_column(["Name", "username", "Role"]) == "username"


def test_detect_id_column_prefers_first_matching_header():
    assert detect_id_column(["Email", "User ID"]) == "Email"


def test_detect_id_column_falls_back_to_first_header():
    assert detect_id_column(["Name", "Role"]) == "Name"


def test_find_column_returns_none_without_match():
    assert find_column(["Name", "Role"], ["Status"]) is None
    assert find_column(["name", "WORKER STATUS"], ["Worker Status"]) == "WORKER STATUS"


def test_diff_of_snapshot_with_itself_is_all_matches():
    a = snap(["User ID", "Role"], [
        {"User ID": "u1", "Role": "Admin"},
        {"User ID": "u2", "Role": "Viewer"},
        {"User ID": "", "Role": "Orphan"},
        {"User ID": "u2", "Role": "Viewer"},
    ])
    result = compare_snapshots(a, a)
    assert result.added == []
    assert result.removed == []
    assert result.modified == []
    assert result.match_count == 2
    assert result.total_records == 4


def test_diff_with_disjoint_keys():
    a = snap(["User ID", "Role"], [{"User ID": "u1", "Role": "Admin"}, {"User ID": "u2", "Role": "Viewer"}])
    b = snap(["User ID", "Role"], [{"User ID": "u3", "Role": "Admin"}])
    result = compare_snapshots(a, b)
    assert result.removed == a.rows
    assert result.added == b.rows
    assert result.match_count == 0


def test_diff_records_each_changed_field_in_header_order():
    a = snap(["User ID", "Role", "Dept", "Manager"], [
        {"User ID": "u1", "Role": "Viewer", "Dept": "Ops", "Manager": "kim"},
    ])
    b = snap(["User ID", "Role", "Dept", "Manager"], [
        {"User ID": "u1", "Role": "Admin", "Dept": "Ops", "Manager": "lee"},
    ])
    result = compare_snapshots(a, b)
    assert len(result.modified) == 1
    modified = result.modified[0]
    assert modified.user == "u1"
    assert [(c.field, c.old_value, c.new_value) for c in modified.changes] == [
        ("Role", "Viewer", "Admin"),
        ("Manager", "kim", "lee"),
    ]
    assert result.match_count == 0


def test_diff_treats_missing_as_empty():
    a = snap(["User ID", "Dept"], [{"User ID": "u1"}, {"User ID": "u2", "Dept": "HR"}])
    b = snap(["User ID", "Dept"], [{"User ID": "u1", "Dept": ""}, {"User ID": "u2"}])
    result = compare_snapshots(a, b)
    assert result.match_count == 1
    assert [(c.field, c.old_value, c.new_value) for c in result.modified[0].changes] == [("Dept", "HR", "")]


def test_diff_ignores_columns_only_in_target():
    a = snap(["User ID", "Role"], [{"User ID": "u1", "Role": "Viewer"}])
    b = snap(["User ID", "Role", "Location"], [{"User ID": "u1", "Role": "Viewer", "Location": "Dublin"}])
    result = compare_snapshots(a, b)
    assert result.modified == []
    assert result.match_count == 1


def test_diff_last_duplicate_wins():
    a = snap(["User ID", "Role"], [
        {"User ID": "u1", "Role": "Viewer"},
        {"User ID": "u1", "Role": "Admin"},
    ])
    b = snap(["User ID", "Role"], [{"User ID": "u1", "Role": "Admin"}])
    result = compare_snapshots(a, b)
    assert result.modified == []
    assert result.match_count == 1


def test_diff_infers_key_per_snapshot():
    a = snap(["Name", "Email"], [{"Name": "Jo", "Email": "jo@example.com"}])
    b = snap(["Email", "Name"], [{"Email": "jo@example.com", "Name": "Joanna"}])
    result = compare_snapshots(a, b)
    assert result.added == [] and result.removed == []
    assert result.modified[0].user == "jo@example.com"
    assert result.modified[0].changes[0].field == "Name"


def test_diff_records_key_column_of_each_side():
    a = snap(["Username", "Role"], [{"Username": "u1", "Role": "Viewer"}])
    b = snap(["Role", "Login"], [{"Role": "Viewer", "Login": "u1"}])
    result = compare_snapshots(a, b)
    assert (result.baseline_key, result.target_key) == ("Username", "Login")
    assert result.match_count == 1
