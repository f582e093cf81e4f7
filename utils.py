# utils.py
"""
Utility helpers: CSV and JSON loading, audit state persistence, report generation, and console output.

- CSV files become Snapshots with string values only; no type coercion.
- The whole audit session is saved and restored as one JSON document.
- Uses Rich for colorful, wrapped tables in the terminal.
- Saves JSON, CSV, and HTML reports.
"""

import csv
import html
import json
import logging
import os
from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from json import JSONDecodeError
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from models import AuditState, Finding, Snapshot

logger = logging.getLogger(__name__)
_console = Console()


def load_json_file(path: str) -> dict:
    """
    Load JSON from a file and return a Python dict.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input JSON file not found: {path}.")
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno} column {e.colno})") from e


def load_snapshot_csv(path: str, file_type: Optional[str] = None, uploaded_by: Optional[str] = None) -> Snapshot:
    """
    Parse a delimited file with a header row into a Snapshot.

    - Blank lines are skipped.
    - Short rows simply omit the missing columns; surplus cells are dropped.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input CSV file not found: {path}.")
    with open(path, "r", encoding="utf-8-sig", newline="") as fh:
        reader = csv.DictReader(fh)
        headers = list(reader.fieldnames or [])
        if not headers:
            raise ValueError(f"CSV file has no header row: {path}")
        rows = []
        for raw in reader:
            row = {k: v for k, v in raw.items() if k is not None and v is not None}
            if not any(v.strip() for v in row.values()):
                continue
            rows.append(row)
    logger.info("Loaded %d records from %s", len(rows), path)
    return Snapshot(
        name=os.path.basename(path),
        headers=headers,
        rows=rows,
        file_type=file_type,
        uploaded_by=uploaded_by or "IT Owner",
    )


def ensure_reports_dir(path: str = "reports") -> str:
    os.makedirs(path, exist_ok=True)
    return path


# --- Audit state persistence ----------------------------------------------

def state_file_name(state: AuditState) -> str:
    meta = state.metadata
    return f"Audit_State_{meta.financial_year}_{meta.quarter}_{meta.audit_id}.json"


def save_state(state: AuditState, path: str) -> str:
    """
    Write the full audit session to a JSON file and return the path.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(state.to_dict(), fh, indent=2)
    logger.info("Saved audit state to %s", path)
    return path


def load_state(path: str) -> AuditState:
    """
    Restore an audit session saved by save_state.

    Files without metadata or an apps list are rejected; fields added in later
    versions fall back to their defaults.
    """
    data = load_json_file(path)
    if not isinstance(data, dict) or not data.get("metadata") or not isinstance(data.get("apps"), list):
        raise ValueError(
            f"Invalid audit state file {path}: it does not contain the required audit metadata "
            "or application structure."
        )
    try:
        return AuditState.from_dict(data)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid audit state file {path}: {e}") from e


# --- Reports ---------------------------------------------------------------

def summarize_findings(findings: List[Finding]) -> Dict[str, object]:
    return {
        "findings_count": len(findings),
        "by_issue": dict(Counter(f.issue for f in findings)),
    }


def save_report(findings: List[Finding], mode: str, extra: dict = None, out_dir: str = "reports") -> Dict[str, str]:
    """
    Save JSON, CSV, and HTML reports and return their paths.
    """
    out_dir = ensure_reports_dir(out_dir)
    now = datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"
    report = {
        "scan_time": now,
        "mode": mode,
        "summary": summarize_findings(findings),
        "findings": [asdict(f) for f in findings],
    }
    if extra:
        report["extra"] = extra

    base_ts = now.replace(":", "-")
    json_path = os.path.join(out_dir, f"uar-{base_ts}-{mode}.json")
    csv_path = os.path.join(out_dir, f"uar-{base_ts}-{mode}.csv")
    html_path = os.path.join(out_dir, f"uar-{base_ts}-{mode}.html")

    # JSON
    with open(json_path, "w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2)

    # CSV
    fieldnames = ["resource", "issue", "severity", "details"]
    with open(csv_path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=fieldnames)
        writer.writeheader()
        for f in report["findings"]:
            writer.writerow({k: f.get(k, "") for k in fieldnames})

    # HTML
    esc = html.escape
    html_rows: List[str] = []
    html_rows.append("<!doctype html>")
    html_rows.append("<html><head><meta charset='utf-8'><title>User Access Review Report</title>")
    html_rows.append("<style>body{font-family:Arial,Helvetica,sans-serif;margin:20px}table{border-collapse:collapse;width:100%}th,td{border:1px solid #ddd;padding:8px}th{background:#f2f2f2;text-align:left}tr:nth-child(even){background:#fafafa}pre{white-space:pre-wrap;word-wrap:break-word}</style>")
    html_rows.append("</head><body>")
    html_rows.append(f"<h2>User Access Review Report - {now} - mode: {esc(mode)}</h2>")
    html_rows.append(f"<p>Total findings: {len(report['findings'])}</p>")
    if extra:
        html_rows.append("<div><strong>Metadata:</strong><ul>")
        for k, v in extra.items():
            html_rows.append(f"<li>{esc(str(k))}: {esc(str(v))}</li>")
        html_rows.append("</ul></div>")
    html_rows.append("<table><thead><tr><th>Resource</th><th>Issue</th><th>Severity</th><th>Details</th></tr></thead><tbody>")
    for f in report["findings"]:
        resource = esc(str(f.get("resource", "")))
        issue = esc(str(f.get("issue", "")))
        severity = esc(str(f.get("severity", "")))
        details = esc(str(f.get("details", "")))
        html_rows.append(f"<tr><td>{resource}</td><td>{issue}</td><td>{severity}</td><td><pre>{details}</pre></td></tr>")
    html_rows.append("</tbody></table></body></html>")
    with open(html_path, "w", encoding="utf-8") as fh:
        fh.write("\n".join(html_rows))

    return {"json": json_path, "csv": csv_path, "html": html_path}


# --- Console printing with color/wrapping ------------------------------------

def _rich_severity_text(sev: int) -> Text:
    """
    Return a Rich Text object styled by severity.
    """
    if sev >= 8:
        return Text(str(sev), style="bold red")
    if sev >= 5:
        return Text(str(sev), style="bold yellow")
    return Text(str(sev), style="green")


def print_summary_and_report_path(findings: List[Finding], report_paths: Dict[str, str], show_top: int = 5,
                                  print_full_table: bool = False, console: Optional[Console] = None):
    """
    Print a compact summary and a colorful table of findings.
    """
    console = console or _console
    total = len(findings)
    console.print("\nReview summary:")
    console.print(f"- Total findings: {total}")
    for issue, count in summarize_findings(findings)["by_issue"].items():
        console.print(f"  - {issue}: {count}")
    if total:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Resource", style="cyan", overflow="fold")
        table.add_column("Issue", style="magenta")
        table.add_column("Severity", justify="right")
        table.add_column("Details", overflow="fold")
        for f in (findings if print_full_table else findings[:show_top]):
            table.add_row(Text(f.resource), Text(f.issue), _rich_severity_text(f.severity), Text(f.details))
        console.print(table)
    console.print("\nSaved reports:")
    for kind, path in report_paths.items():
        console.print(f"- {kind.upper()}: {path}")
    console.print()
