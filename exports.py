# exports.py
"""
Audit deliverables: the Excel audit manifest and the per-application evidence package.

- The manifest has one sheet per category (governance, scope, evidence, findings,
  exceptions, change history, comments) across every application in the audit.
- The evidence package is a zip holding the app's source files, its exception
  register and its reconciliation outputs as CSV.
"""

import csv
import io
import json
import logging
import os
import re
import zipfile
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from models import AppScope, AuditState, Row, Snapshot, cell
from reconciler.keys import detect_id_column

logger = logging.getLogger(__name__)

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill("solid", fgColor="D04A02")
CENTER = Alignment(horizontal="center")

MANIFEST_SHEETS = [
    "Audit Governance",
    "Applications Scope",
    "Evidence Inventory",
    "Identity Findings",
    "Privileged Access",
    "Exception Register",
    "Change History",
    "Collaboration Log",
]


def _format_epoch(value: Optional[float], fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    if value is None:
        return "N/A"
    return datetime.fromtimestamp(value).strftime(fmt)


def _write_sheet(ws, headers: List[str], rows: List[List[object]]) -> None:
    ws.append(headers)
    for col_idx, _ in enumerate(headers, start=1):
        header_cell = ws.cell(row=1, column=col_idx)
        header_cell.font = HEADER_FONT
        header_cell.fill = HEADER_FILL
        header_cell.alignment = CENTER
        ws.column_dimensions[get_column_letter(col_idx)].width = 22
    for row in rows:
        ws.append(row)


def manifest_file_name(state: AuditState) -> str:
    return f"Audit_Manifest_{state.metadata.financial_year}_{state.metadata.audit_id}.xlsx"


def build_audit_manifest(state: AuditState, path: str) -> str:
    """
    Write the audit manifest workbook to path and return it.
    """
    meta = state.metadata
    source = state.identity_source
    wb = openpyxl.Workbook()

    ws = wb.active
    ws.title = "Audit Governance"
    _write_sheet(ws, [
        "Audit ID", "Audit Name", "Financial Year", "Quarter", "Reviewer Name",
        "Reviewer Email", "Reviewer Source", "Start Time", "Export Time", "Total Apps",
        "Status", "Global Identity Source", "Identity Evidence", "Extraction Method",
    ], [[
        meta.audit_id, meta.audit_name, meta.financial_year, meta.quarter,
        meta.user.display_name, meta.user.email, meta.user.source, meta.start_time,
        datetime.now().strftime("%Y-%m-%d %H:%M:%S"), len(state.apps), meta.status,
        source.file.name if source else "N/A",
        source.evidence.name if source and source.evidence else "N/A",
        (source.extraction_method if source else None) or "N/A",
    ]])

    _write_sheet(wb.create_sheet("Applications Scope"), [
        "App Name", "Config", "Status", "Locked", "Exceptions Open", "SLA Started",
    ], [[
        app.name,
        " ".join(label for flag, label in ((app.config.active_recon, "Active"), (app.config.rr_recon, "R&R")) if flag),
        app.status,
        "Yes" if app.is_locked else "No",
        sum(1 for e in app.exceptions if e.status == "Open"),
        _format_epoch(app.started_at, "%Y-%m-%d"),
    ] for app in state.apps])

    _write_sheet(wb.create_sheet("Evidence Inventory"), [
        "App", "File Name", "Type", "Uploaded By", "Upload Timestamp", "Records",
    ], [[
        app.name, f.name, f.file_type or "", f.uploaded_by or meta.user.display_name,
        _format_epoch(f.timestamp), len(f.rows),
    ] for app in state.apps for f in app.files])

    _write_sheet(wb.create_sheet("Identity Findings"), [
        "App", "User", "Issue", "Identity Status", "Termination Date",
    ], [[
        app.name, i.user_id, i.issue_type, i.identity_status, i.identity_term_date,
    ] for app in state.apps for i in app.identity_issues or []])

    _write_sheet(wb.create_sheet("Privileged Access"), [
        "App", "User", "Role", "Risk Score", "Risk Level", "Criticality", "Sensitivity", "Privilege", "SoD",
    ], [[
        app.name, p.user_id, p.role, p.risk_score.total, p.risk_score.level, p.risk_score.criticality,
        p.risk_score.sensitivity, p.risk_score.privilege, p.risk_score.sod,
    ] for app in state.apps for p in app.privileged_issues or []])

    _write_sheet(wb.create_sheet("Exception Register"), [
        "Exception ID", "App", "User", "Type", "Risk", "Justification", "Owner", "Target Date", "Status",
    ], [[
        e.id, app.name, e.user_id, e.type, e.risk_level, e.justification, e.owner, e.target_date, e.status,
    ] for app in state.apps for e in app.exceptions])

    _write_sheet(wb.create_sheet("Change History"), [
        "App", "Timestamp", "Section", "Action", "Old Value", "New Value", "Actor", "Reason",
    ], [[
        app.name, c.timestamp, c.section, c.action, c.old_value, c.new_value, c.actor, c.justification or "",
    ] for app in state.apps for c in app.change_log])

    _write_sheet(wb.create_sheet("Collaboration Log"), [
        "App", "Timestamp", "Author", "Role", "Comment",
    ], [[
        app.name, c.timestamp, c.author, c.role, c.text,
    ] for app in state.apps for c in app.comments])

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    wb.save(path)
    logger.info("Wrote audit manifest to %s", path)
    return path


def rows_to_csv(headers: List[str], rows: List[Row]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: row.get(h, "") for h in headers})
    return buffer.getvalue()


def _records_to_csv(records: List[Dict[str, object]]) -> str:
    headers: List[str] = []
    for record in records:
        for key in record:
            if key not in headers:
                headers.append(key)
    return rows_to_csv(headers, [{k: "" if v is None else str(v) for k, v in r.items()} for r in records])


def snapshot_to_csv(snapshot: Snapshot) -> str:
    return rows_to_csv(snapshot.headers, snapshot.rows)


def _row_key(row: Row, key_column: str) -> str:
    # diffs saved before key columns were recorded fall back to inference
    return cell(row, key_column or detect_id_column(list(row)))


def safe_name(name: str) -> str:
    """
    Collapse whitespace and path separators so an app name can be used as a file or folder name.
    """
    return "_".join(re.split(r"[\s\\/:]+", name.strip())).strip("_") or "app"


def package_file_name(state: AuditState, app: AppScope) -> str:
    meta = state.metadata
    return f"{meta.financial_year}_{meta.quarter}_{safe_name(app.name)}_Audit_Package.zip"


def build_evidence_package(state: AuditState, app: AppScope, out_dir: str) -> str:
    """
    Zip the app's evidence and registers under a folder named after the app.

    Layout:
      {app}/Evidence/{type}_{file name}
      {app}/Exception_Register.csv        (when exceptions exist)
      {app}/Identity_Reconciliation.csv   (when identity recon has run)
      {app}/Privileged_Access.csv         (when privileged analysis has run)
      {app}/Diff_{n}.csv                  (one per stored diff)
    """
    os.makedirs(out_dir, exist_ok=True)
    zip_path = os.path.join(out_dir, package_file_name(state, app))
    folder = safe_name(app.name)

    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in app.files:
            zf.writestr(f"{folder}/Evidence/{f.file_type}_{f.name}", snapshot_to_csv(f))

        if app.exceptions:
            zf.writestr(f"{folder}/Exception_Register.csv",
                        _records_to_csv([asdict(e) for e in app.exceptions]))

        if app.identity_issues:
            zf.writestr(f"{folder}/Identity_Reconciliation.csv", _records_to_csv([
                {
                    "user_id": i.user_id,
                    "issue_type": i.issue_type,
                    "identity_status": i.identity_status,
                    "identity_term_date": i.identity_term_date,
                }
                for i in app.identity_issues
            ]))

        if app.privileged_issues:
            zf.writestr(f"{folder}/Privileged_Access.csv", _records_to_csv([
                dict(user_id=p.user_id, role=p.role, **asdict(p.risk_score))
                for p in app.privileged_issues
            ]))

        for n, diff in enumerate(app.diffs, start=1):
            records: List[Dict[str, object]] = []
            records.extend(
                {"change": "Removed", "user": _row_key(r, diff.baseline_key), "details": json.dumps(r)}
                for r in diff.removed
            )
            records.extend(
                {"change": "Added", "user": _row_key(r, diff.target_key), "details": json.dumps(r)}
                for r in diff.added
            )
            records.extend(
                {
                    "change": "Modified",
                    "user": m.user,
                    "details": "; ".join(f"{c.field}: {c.old_value} -> {c.new_value}" for c in m.changes),
                }
                for m in diff.modified
            )
            zf.writestr(f"{folder}/Diff_{n}.csv", _records_to_csv(records) if records else "change,user,details\n")

    logger.info("Wrote evidence package to %s", zip_path)
    return zip_path
