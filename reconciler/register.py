# reconciler/register.py
"""
Exception register: derive exceptions from findings and move them through Open -> Closed.

generate_exceptions does not look at exceptions already on the app, so repeated
calls with unchanged findings produce duplicate entries.
"""

import uuid
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional

from config import (
    HIGH_RISK_ROLE_EXCEPTION_OWNER,
    HIGH_RISK_ROLE_EXCEPTION_TYPE,
    HIGH_RISK_ROLE_JUSTIFICATION,
    REMEDIATION_DAYS,
    TERMINATED_EXCEPTION_OWNER,
    TERMINATED_EXCEPTION_TYPE,
)
from models import AppScope, ExceptionEntry
from reconciler.identity import TERMINATED_BUT_ACTIVE

OPEN = "Open"
CLOSED = "Closed"
RISK_LEVELS = ("High", "Medium", "Low")


class ExceptionTransitionError(ValueError):
    """Raised when an exception cannot move to the requested status."""


def remediation_target(today: Optional[date] = None) -> str:
    today = today or date.today()
    return (today + timedelta(days=REMEDIATION_DAYS)).isoformat()


def new_exception(app_id: str, user_id: str, type: str, risk_level: str,
                  owner: str, target_date: str, justification: str = "") -> ExceptionEntry:
    """
    Create an Open exception with a fresh id.
    """
    if risk_level not in RISK_LEVELS:
        raise ValueError(f"Unknown risk level: {risk_level}")
    return ExceptionEntry(
        id=str(uuid.uuid4()),
        app_id=app_id,
        user_id=user_id,
        type=type,
        risk_level=risk_level,
        justification=justification,
        owner=owner,
        target_date=target_date,
        status=OPEN,
    )


def generate_exceptions(app: AppScope, today: Optional[date] = None) -> List[ExceptionEntry]:
    """
    Turn the app's stored findings into new High-risk exceptions.

    - Every TERMINATED_BUT_ACTIVE identity issue -> "Terminated User Active", owner IT Ops.
    - Every High-level privileged issue -> "High Risk Role: {role}", owner Business Owner.
    Other findings never produce exceptions.
    """
    target_date = remediation_target(today)
    exceptions: List[ExceptionEntry] = []

    for issue in app.identity_issues or []:
        if issue.issue_type != TERMINATED_BUT_ACTIVE:
            continue
        exceptions.append(new_exception(
            app_id=app.id,
            user_id=issue.user_id,
            type=TERMINATED_EXCEPTION_TYPE,
            risk_level="High",
            owner=TERMINATED_EXCEPTION_OWNER,
            target_date=target_date,
        ))

    for issue in app.privileged_issues or []:
        if issue.risk_score.level != "High":
            continue
        exceptions.append(new_exception(
            app_id=app.id,
            user_id=issue.user_id,
            type=HIGH_RISK_ROLE_EXCEPTION_TYPE.format(role=issue.role),
            risk_level="High",
            owner=HIGH_RISK_ROLE_EXCEPTION_OWNER,
            target_date=target_date,
            justification=HIGH_RISK_ROLE_JUSTIFICATION,
        ))

    return exceptions


def close_exception(entry: ExceptionEntry, justification: str) -> ExceptionEntry:
    """
    Return a Closed copy of an Open exception. The justification is mandatory.
    """
    if entry.status != OPEN:
        raise ExceptionTransitionError(f"Exception {entry.id} is already {entry.status}")
    if not justification or not justification.strip():
        raise ExceptionTransitionError("Closing an exception requires a justification")
    return replace(entry, status=CLOSED, justification=justification.strip())
