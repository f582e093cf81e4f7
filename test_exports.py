# tests/test_exports.py
"""
Tests for the Excel audit manifest and the zip evidence package.
"""

import csv
import io
import os
import zipfile
from datetime import date

import openpyxl
import pytest

from exports import MANIFEST_SHEETS, build_audit_manifest, build_evidence_package, manifest_file_name
from models import Snapshot
from reconciler import session


@pytest.fixture
def reviewed_state():
    s = session.start_audit("Access Review", "FY25", "Q1", "Dana", "dana@example.com")
    s = session.set_identity_source(s, Snapshot(name="hr.csv", headers=["User ID", "Status"], rows=[
        {"User ID": "jdoe", "Status": "Terminated"},
        {"User ID": "kim", "Status": "Active"},
    ]), extraction_method="Workday report")
    s = session.add_app(s, "Payroll", active_recon=True, rr_recon=True)
    app_id = s.apps[0].id
    s = session.upload_file(s, app_id, Snapshot(name="users.csv", headers=["User ID", "Role"], file_type="user_list",
                                                 rows=[{"User ID": "jdoe", "Role": "Viewer"},
                                                       {"User ID": "kim", "Role": "Domain Admin"}]))
    s = session.upload_file(s, app_id, Snapshot(name="after.csv", headers=["User ID", "Role"],
                                                 file_type="remediation",
                                                 rows=[{"User ID": "kim", "Role": "Viewer"}]))
    s = session.run_identity_recon(s, app_id)
    s = session.run_privileged_recon(s, app_id)
    s = session.run_diff(s, app_id)
    s = session.run_exception_generation(s, app_id, today=date(2025, 6, 1))
    s = session.post_comment(s, app_id, "Sent to business owner")
    return s


def test_manifest_has_every_sheet(tmp_path, reviewed_state):
    path = build_audit_manifest(reviewed_state, str(tmp_path / manifest_file_name(reviewed_state)))
    assert os.path.basename(path).startswith("Audit_Manifest_FY25_UAR_")
    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames == MANIFEST_SHEETS

    governance = list(wb["Audit Governance"].iter_rows(values_only=True))
    assert governance[0][0] == "Audit ID"
    assert governance[1][1] == "Access Review"
    assert governance[1][11] == "hr.csv"
    assert governance[1][13] == "Workday report"

    scope = list(wb["Applications Scope"].iter_rows(values_only=True))
    assert scope[1][:5] == ("Payroll", "Active R&R", "In Progress", "No", 2)

    exceptions = list(wb["Exception Register"].iter_rows(values_only=True))
    assert [(row[2], row[3]) for row in exceptions[1:]] == [
        ("jdoe", "Terminated User Active"),
        ("kim", "High Risk Role: Domain Admin"),
    ]

    evidence = list(wb["Evidence Inventory"].iter_rows(values_only=True))
    assert [row[1] for row in evidence[1:]] == ["users.csv", "after.csv"]
    assert list(wb["Collaboration Log"].iter_rows(values_only=True))[1][4] == "Sent to business owner"


def test_evidence_package_layout(tmp_path, reviewed_state):
    app = reviewed_state.apps[0]
    zip_path = build_evidence_package(reviewed_state, app, str(tmp_path))
    assert os.path.basename(zip_path) == "FY25_Q1_Payroll_Audit_Package.zip"

    with zipfile.ZipFile(zip_path) as zf:
        names = set(zf.namelist())
        assert names == {
            "Payroll/Evidence/user_list_users.csv",
            "Payroll/Evidence/remediation_after.csv",
            "Payroll/Exception_Register.csv",
            "Payroll/Identity_Reconciliation.csv",
            "Payroll/Privileged_Access.csv",
            "Payroll/Diff_1.csv",
        }
        users = list(csv.DictReader(io.StringIO(zf.read("Payroll/Evidence/user_list_users.csv").decode("utf-8"))))
        register = list(csv.DictReader(io.StringIO(zf.read("Payroll/Exception_Register.csv").decode("utf-8"))))
        diff = list(csv.DictReader(io.StringIO(zf.read("Payroll/Diff_1.csv").decode("utf-8"))))

    assert users == [{"User ID": "jdoe", "Role": "Viewer"}, {"User ID": "kim", "Role": "Domain Admin"}]
    assert [r["status"] for r in register] == ["Open", "Open"]
    assert register[0]["target_date"] == "2025-06-08"
    assert [(r["change"], r["user"]) for r in diff] == [("Removed", "jdoe"), ("Modified", "kim")]


def test_evidence_package_without_findings_holds_only_evidence(tmp_path):
    s = session.start_audit("Access Review", "FY25", "Q1", "Dana", "dana@example.com")
    s = session.add_app(s, "Badges")
    s = session.upload_file(s, s.apps[0].id, Snapshot(name="badges.csv", headers=["User ID"],
                                                       file_type="user_list", rows=[{"User ID": "u1"}]))
    zip_path = build_evidence_package(s, s.apps[0], str(tmp_path))
    with zipfile.ZipFile(zip_path) as zf:
        assert zf.namelist() == ["Badges/Evidence/user_list_badges.csv"]


def test_evidence_package_names_are_path_safe(tmp_path):
    s = session.start_audit("Access Review", "FY25", "Q1", "Dana", "dana@example.com")
    s = session.add_app(s, "HR/Payroll  Core")
    app_id = s.apps[0].id
    s = session.upload_file(s, app_id, Snapshot(name="before.csv", headers=["Login", "Role"], file_type="user_list",
                                                 rows=[{"Login": "u1", "Role": "Viewer"}]))
    s = session.upload_file(s, app_id, Snapshot(name="after.csv", headers=["Login", "Role"], file_type="remediation",
                                                 rows=[{"Login": "u2", "Role": "Viewer"}]))
    s = session.run_diff(s, app_id)
    zip_path = build_evidence_package(s, s.apps[0], str(tmp_path))
    assert os.path.basename(zip_path) == "FY25_Q1_HR_Payroll_Core_Audit_Package.zip"

    with zipfile.ZipFile(zip_path) as zf:
        assert all(name.startswith("HR_Payroll_Core/") for name in zf.namelist())
        diff = list(csv.DictReader(io.StringIO(zf.read("HR_Payroll_Core/Diff_1.csv").decode("utf-8"))))
    assert [(r["change"], r["user"]) for r in diff] == [("Removed", "u1"), ("Added", "u2")]
