# tests/test_risk.py
"""
Unit tests for role risk scoring and privileged access analysis.
"""

import pytest

from models import Snapshot
from reconciler.risk import analyze_privileged_access, calculate_risk_score, role_columns


def test_admin_role_score():
    score = calculate_risk_score("Global Admin")
    assert (score.criticality, score.sensitivity, score.privilege, score.sod) == (100, 90, 100, 40)
    assert score.total == 88
    assert score.level == "High"


def test_viewer_role_score():
    score = calculate_risk_score("Viewer")
    assert (score.criticality, score.sensitivity, score.privilege, score.sod) == (20, 30, 10, 10)
    assert score.total == 19
    assert score.level == "Low"


def test_finance_role_rounds_half_up():
    score = calculate_risk_score("Finance Approver")
    assert (score.criticality, score.sensitivity, score.privilege, score.sod) == (50, 100, 50, 60)
    assert score.total == 67
    assert score.level == "Medium"


def test_default_role_score():
    score = calculate_risk_score("Contributor")
    assert (score.criticality, score.sensitivity, score.privilege, score.sod) == (50, 50, 50, 10)
    assert score.total == 44
    assert score.level == "Low"


@pytest.mark.parametrize("role", ["SUPERUSER", "hr admin", "Admin Read Only"])
def test_admin_bucket_wins_over_later_buckets(role):
    assert calculate_risk_score(role).criticality == 100


def test_read_bucket_wins_over_finance():
    assert calculate_risk_score("Finance Reader").sensitivity == 30


def test_role_columns_match_by_substring():
    headers = ["User ID", "Primary Role", "Security Group", "Dept", "permissions"]
    assert role_columns(headers) == ["Primary Role", "Security Group", "permissions"]


def test_analyze_privileged_access_flags_and_scores_rows():
    roles = Snapshot(name="roles.csv", headers=["User ID", "Role"], rows=[
        {"User ID": "u1", "Role": "System Admin"},
        {"User ID": "u2", "Role": "Viewer"},
        {"User ID": "u3", "Role": "Integration Account"},
        {"User ID": "", "Role": "Power User"},
    ])
    issues = analyze_privileged_access(roles)
    assert [(i.user_id, i.role) for i in issues] == [
        ("u1", "System Admin"),
        ("u3", "Integration Account"),
        ("Unknown", "Power User"),
    ]
    assert issues[0].risk_score.level == "High"
    assert issues[1].risk_score.level == "Low"
    assert issues[0].record == roles.rows[0]


def test_last_matching_role_column_wins():
    roles = Snapshot(name="roles.csv", headers=["User ID", "Role", "Group"], rows=[
        {"User ID": "u1", "Role": "Super User", "Group": "Security Readers"},
        {"User ID": "u2", "Role": "Domain Admin", "Group": "Staff"},
    ])
    issues = analyze_privileged_access(roles)
    assert [(i.user_id, i.role) for i in issues] == [("u1", "Security Readers"), ("u2", "Domain Admin")]
    assert issues[0].risk_score.level == "Low"


def test_rows_without_role_columns_are_never_flagged():
    snapshot = Snapshot(name="users.csv", headers=["User ID", "Title"], rows=[
        {"User ID": "u1", "Title": "Admin Assistant"},
    ])
    assert analyze_privileged_access(snapshot) == []
