# reconciler/findings.py
"""
Flatten reconciliation results into report Findings.

Resources are "app://{app}/{user}"; each finding carries a rule id in its metadata.
"""

from typing import List

from config import (
    SEVERITY_ACCESS_ADDED,
    SEVERITY_ACCESS_MODIFIED,
    SEVERITY_ACCESS_REMOVED,
    SEVERITY_BY_RISK_LEVEL,
    SEVERITY_FUTURE_TERMINATION,
    SEVERITY_NOT_FOUND,
    SEVERITY_TERMINATED_ACTIVE,
)
from models import DiffResult, Finding, IdentityIssue, PrivilegedIssue, cell
from reconciler.identity import FUTURE_TERMINATION, NOT_FOUND_IN_SOURCE, TERMINATED_BUT_ACTIVE
from reconciler.keys import detect_id_column

IDENTITY_RULES = {
    TERMINATED_BUT_ACTIVE: ("UAR-ID-001", SEVERITY_TERMINATED_ACTIVE),
    NOT_FOUND_IN_SOURCE: ("UAR-ID-002", SEVERITY_NOT_FOUND),
    FUTURE_TERMINATION: ("UAR-ID-003", SEVERITY_FUTURE_TERMINATION),
}


def _resource(app_name: str, user_id: str) -> str:
    return f"app://{app_name}/{user_id}"


def identity_findings(app_name: str, issues: List[IdentityIssue]) -> List[Finding]:
    findings: List[Finding] = []
    for issue in issues:
        rule_id, severity = IDENTITY_RULES[issue.issue_type]
        findings.append(Finding(
            resource=_resource(app_name, issue.user_id),
            issue=issue.issue_type,
            severity=severity,
            details=f"Identity status: {issue.identity_status}; termination date: {issue.identity_term_date}",
            metadata={"rule_id": rule_id, "app": app_name},
        ))
    return findings


def privileged_findings(app_name: str, issues: List[PrivilegedIssue]) -> List[Finding]:
    findings: List[Finding] = []
    for issue in issues:
        score = issue.risk_score
        findings.append(Finding(
            resource=_resource(app_name, issue.user_id),
            issue=f"Privileged Role ({score.level})",
            severity=SEVERITY_BY_RISK_LEVEL[score.level],
            details=(
                f"Role: {issue.role}; risk {score.total} (criticality {score.criticality}, "
                f"sensitivity {score.sensitivity}, privilege {score.privilege}, SoD {score.sod})"
            ),
            metadata={"rule_id": "UAR-PRIV-001", "app": app_name, "risk_level": score.level},
        ))
    return findings


def diff_findings(app_name: str, diff: DiffResult, baseline_headers: List[str],
                  target_headers: List[str]) -> List[Finding]:
    """
    One finding per removed, added or modified user.
    """
    baseline_key = detect_id_column(baseline_headers)
    target_key = detect_id_column(target_headers)
    findings: List[Finding] = []
    for row in diff.removed:
        findings.append(Finding(
            resource=_resource(app_name, cell(row, baseline_key)),
            issue="Access Removed",
            severity=SEVERITY_ACCESS_REMOVED,
            details="Present in baseline only",
            metadata={"rule_id": "UAR-DIFF-001", "app": app_name},
        ))
    for row in diff.added:
        findings.append(Finding(
            resource=_resource(app_name, cell(row, target_key)),
            issue="Access Added",
            severity=SEVERITY_ACCESS_ADDED,
            details="Present in target only",
            metadata={"rule_id": "UAR-DIFF-002", "app": app_name},
        ))
    for modified in diff.modified:
        changes = "; ".join(f"{c.field}: '{c.old_value}' -> '{c.new_value}'" for c in modified.changes)
        findings.append(Finding(
            resource=_resource(app_name, modified.user),
            issue="Access Modified",
            severity=SEVERITY_ACCESS_MODIFIED,
            details=changes,
            metadata={"rule_id": "UAR-DIFF-003", "app": app_name},
        ))
    return findings
