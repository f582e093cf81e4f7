# reconciler/risk.py
"""
Privilege risk scoring.

- calculate_risk_score is a pure function of the role string (keyword rules from config).
- analyze_privileged_access flags rows whose role columns hold a privileged keyword.
"""

import math
from typing import List

from config import (
    PRIVILEGED_PATTERNS,
    RISK_HIGH_THRESHOLD,
    RISK_MEDIUM_THRESHOLD,
    RISK_WEIGHTS,
    ROLE_KEYS,
    ROLE_RISK_RULES,
)
from models import PrivilegedIssue, RiskScore, Snapshot, cell
from reconciler.keys import detect_id_column


def risk_level(total: float) -> str:
    if total >= RISK_HIGH_THRESHOLD:
        return "High"
    if total >= RISK_MEDIUM_THRESHOLD:
        return "Medium"
    return "Low"


def calculate_risk_score(role_name: str) -> RiskScore:
    """
    Score a role by keyword: the first rule in ROLE_RISK_RULES with a matching
    keyword supplies the component scores.

    Example: "Global Admin" -> 100/90/100/40, total 88, level High.
    """
    role_lower = role_name.lower()
    for keywords, criticality, sensitivity, privilege, sod in ROLE_RISK_RULES:
        if not keywords or any(k in role_lower for k in keywords):
            break

    weighted = (
        criticality * RISK_WEIGHTS["criticality"]
        + sensitivity * RISK_WEIGHTS["sensitivity"]
        + privilege * RISK_WEIGHTS["privilege"]
        + sod * RISK_WEIGHTS["sod"]
    )
    return RiskScore(
        # half-up, not banker's rounding
        total=int(math.floor(weighted + 0.5)),
        criticality=criticality,
        sensitivity=sensitivity,
        privilege=privilege,
        sod=sod,
        level=risk_level(weighted),
    )


def role_columns(headers: List[str]) -> List[str]:
    """
    Headers whose name contains any role label (case-insensitive).
    """
    labels = [k.lower() for k in ROLE_KEYS]
    return [h for h in headers if any(label in h.lower() for label in labels)]


def is_privileged_value(value: str) -> bool:
    lowered = value.lower()
    return any(pattern in lowered for pattern in PRIVILEGED_PATTERNS)


def analyze_privileged_access(snapshot: Snapshot) -> List[PrivilegedIssue]:
    """
    Flag rows holding a privileged role.

    When several role columns match, the later column in header order supplies
    the role that gets scored.
    """
    id_column = detect_id_column(snapshot.headers)
    columns = role_columns(snapshot.headers)

    issues: List[PrivilegedIssue] = []
    for row in snapshot.rows:
        found_role = None
        for column in columns:
            value = cell(row, column)
            if is_privileged_value(value):
                found_role = value
        if found_role is None:
            continue
        issues.append(PrivilegedIssue(
            user_id=cell(row, id_column) or "Unknown",
            role=found_role,
            risk_score=calculate_risk_score(found_role),
            record=row,
        ))
    return issues
