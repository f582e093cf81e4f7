# main.py
"""
CLI entrypoint for the reconciler.

- Supports four modes:
  * diff: compare a baseline CSV against a target CSV
  * identity: reconcile an application user list against the identity source
  * privileged: flag and score privileged role assignments
  * audit: run the full review for one application and export the audit deliverables
- Produces JSON, CSV, and HTML reports and prints a colorful summary table.
"""

import argparse
import logging
import os

from config import DEFAULT_REPORT_DIR, REPORT_DIR_ENV
from exports import build_audit_manifest, build_evidence_package, manifest_file_name
from reconciler import session
from reconciler.diff import compare_snapshots
from reconciler.findings import diff_findings, identity_findings, privileged_findings
from reconciler.identity import reconcile_identity
from reconciler.risk import analyze_privileged_access
from utils import (
    load_snapshot_csv,
    load_state,
    print_summary_and_report_path,
    save_report,
    save_state,
    state_file_name,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uar_reconciler")


def run_diff(baseline_path: str, target_path: str, report_dir: str = "reports", print_table: bool = False):
    """
    Compare two snapshots of the same application and report the changes.
    """
    logger.info("Comparing %s -> %s", baseline_path, target_path)
    baseline = load_snapshot_csv(baseline_path)
    target = load_snapshot_csv(target_path)
    diff = compare_snapshots(baseline, target)
    app_name = os.path.splitext(baseline.name)[0]
    findings = diff_findings(app_name, diff, baseline.headers, target.headers)
    report_paths = save_report(
        findings,
        mode="diff",
        extra={
            "baseline": baseline_path,
            "target": target_path,
            "unchanged": diff.match_count,
            "target_records": diff.total_records,
        },
        out_dir=report_dir,
    )
    print_summary_and_report_path(findings, report_paths, print_full_table=print_table)
    return diff


def run_identity(identity_path: str, users_path: str, app_name: str = None,
                 report_dir: str = "reports", print_table: bool = False):
    """
    Reconcile one application's user list against the identity of record.
    """
    logger.info("Reconciling %s against identity source %s", users_path, identity_path)
    identity = load_snapshot_csv(identity_path)
    users = load_snapshot_csv(users_path, file_type="user_list")
    issues = reconcile_identity(identity, users)
    findings = identity_findings(app_name or os.path.splitext(users.name)[0], issues)
    report_paths = save_report(
        findings,
        mode="identity",
        extra={"identity_source": identity_path, "user_list": users_path},
        out_dir=report_dir,
    )
    print_summary_and_report_path(findings, report_paths, print_full_table=print_table)
    return issues


def run_privileged(roles_path: str, app_name: str = None, report_dir: str = "reports", print_table: bool = False):
    """
    Score every privileged role assignment in a roles report.
    """
    logger.info("Analyzing privileged access in %s", roles_path)
    roles = load_snapshot_csv(roles_path, file_type="roles_report")
    issues = analyze_privileged_access(roles)
    findings = privileged_findings(app_name or os.path.splitext(roles.name)[0], issues)
    report_paths = save_report(
        findings,
        mode="privileged",
        extra={"roles_report": roles_path},
        out_dir=report_dir,
    )
    print_summary_and_report_path(findings, report_paths, print_full_table=print_table)
    return issues


def run_audit(args, report_dir: str = "reports"):
    """
    Full review of one application:
    identity recon, privileged analysis, optional remediation diff, exception
    generation, then state, manifest, evidence package and findings report.
    """
    if args.state:
        state = load_state(args.state)
        logger.info("Resuming audit %s from %s", state.metadata.audit_id, args.state)
    else:
        state = session.start_audit(
            audit_name=args.audit_name,
            financial_year=args.fy,
            quarter=args.quarter,
            user_name=args.reviewer,
            user_email=args.email,
        )

    if args.identity:
        identity = load_snapshot_csv(args.identity)
        state = session.set_identity_source(state, identity, extraction_method=args.extraction_method)

    state = session.add_app(state, args.app_name, active_recon=bool(args.users), rr_recon=bool(args.roles))
    app_id = state.apps[-1].id
    uploader = state.metadata.user.display_name
    for path, file_type in ((args.users, "user_list"), (args.roles, "roles_report"), (args.remediation, "remediation")):
        if path:
            state = session.upload_file(state, app_id, load_snapshot_csv(path, file_type=file_type, uploaded_by=uploader))

    if args.users and state.identity_source is not None:
        state = session.run_identity_recon(state, app_id)
    if args.users or args.roles:
        state = session.run_privileged_recon(state, app_id)
    if args.users and args.remediation:
        state = session.run_diff(state, app_id, baseline_type="user_list", target_type="remediation")
    state = session.run_exception_generation(state, app_id)

    app = session.get_app(state, app_id)
    findings = identity_findings(app.name, app.identity_issues or [])
    findings += privileged_findings(app.name, app.privileged_issues or [])
    if app.diffs:
        findings += diff_findings(app.name, app.diffs[-1], app.file_of_type("user_list").headers,
                                  app.file_of_type("remediation").headers)

    report_paths = save_report(
        findings,
        mode="audit",
        extra={
            "audit_id": state.metadata.audit_id,
            "app": app.name,
            "exceptions": len(app.exceptions),
            "sla": session.sla_status(app)["label"],
        },
        out_dir=report_dir,
    )
    report_paths["state"] = save_state(state, os.path.join(report_dir, state_file_name(state)))
    report_paths["manifest"] = build_audit_manifest(state, os.path.join(report_dir, manifest_file_name(state)))
    report_paths["package"] = build_evidence_package(state, app, report_dir)
    print_summary_and_report_path(findings, report_paths, print_full_table=args.print_table)
    return state


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="User Access Review reconciler: diffs, identity reconciliation and privileged access scoring."
    )
    p.add_argument(
        "--mode",
        choices=["diff", "identity", "privileged", "audit"],
        required=True,
        help="Run mode",
    )
    p.add_argument("--baseline", help="Baseline CSV (diff mode)")
    p.add_argument("--target", help="Target CSV (diff mode)")
    p.add_argument("--identity", help="Identity-of-record CSV (identity and audit modes)")
    p.add_argument("--users", help="Application user list CSV (identity and audit modes)")
    p.add_argument("--roles", help="Roles report CSV (privileged and audit modes)")
    p.add_argument("--remediation", help="Post-remediation user list CSV compared against --users (audit mode)")
    p.add_argument("--app-name", help="Application name used in reports")
    p.add_argument("--state", help="Saved audit state JSON to resume (audit mode)")
    p.add_argument("--audit-name", help="Audit name for a new audit (audit mode)")
    p.add_argument("--fy", default="FY25", help="Financial year label (default: FY25)")
    p.add_argument("--quarter", default="Q1", help="Quarter label (default: Q1)")
    p.add_argument("--reviewer", help="Reviewer display name (audit mode)")
    p.add_argument("--email", help="Reviewer email (audit mode)")
    p.add_argument("--extraction-method", help="How the identity source was extracted")
    p.add_argument(
        "--report-dir",
        help=f"Directory to save reports (default: ${REPORT_DIR_ENV} or {DEFAULT_REPORT_DIR})",
    )
    p.add_argument(
        "--print-table",
        action="store_true",
        help="Print full findings table to stdout",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    # Resolve report dir: CLI -> env -> config default
    report_dir = args.report_dir or os.environ.get(REPORT_DIR_ENV) or DEFAULT_REPORT_DIR

    if args.mode == "diff":
        if not args.baseline or not args.target:
            raise SystemExit("diff mode requires --baseline and --target")
        run_diff(args.baseline, args.target, report_dir=report_dir, print_table=args.print_table)
    elif args.mode == "identity":
        if not args.identity or not args.users:
            raise SystemExit("identity mode requires --identity and --users")
        run_identity(args.identity, args.users, app_name=args.app_name,
                     report_dir=report_dir, print_table=args.print_table)
    elif args.mode == "privileged":
        if not args.roles:
            raise SystemExit("privileged mode requires --roles")
        run_privileged(args.roles, app_name=args.app_name, report_dir=report_dir, print_table=args.print_table)
    else:
        if not args.app_name:
            raise SystemExit("audit mode requires --app-name")
        if not args.users and not args.roles:
            raise SystemExit("audit mode requires --users and/or --roles")
        if not args.state and not (args.audit_name and args.reviewer and args.email):
            raise SystemExit("audit mode requires --state, or --audit-name, --reviewer and --email for a new audit")
        run_audit(args, report_dir=report_dir)


if __name__ == "__main__":
    main()
