# reconciler/session.py
"""
Audit session workflow.

Update functions take the current AuditState and return a new one; nothing is
mutated in place. Governance rules:
- In Auditor view, or once an app is locked, app data cannot change.
- Completing a checklist step locks the related action (upload, recon, exception generation).
- Reopening a step and unlocking an app both require a justification, and every
  change lands in the app's change log.
"""

import logging
import random
import time
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from config import (
    CHECKLIST_ITEMS,
    FILE_TYPES,
    FY_LAST_YEAR,
    GENERATE_EXCEPTIONS_STEP,
    IDENTITY_RECON_STEP,
    PRIVILEGED_RECON_STEP,
    SLA_DAYS,
    UPLOAD_STEP_BY_FILE_TYPE,
)
from models import (
    AppConfig,
    AppScope,
    AuditMetadata,
    AuditState,
    CalendarConfig,
    ChangeLogEntry,
    CommentEntry,
    EvidenceFile,
    IdentitySource,
    ReviewDecision,
    Snapshot,
    UserIdentity,
)
from reconciler.diff import compare_snapshots
from reconciler.identity import reconcile_identity
from reconciler.register import close_exception, generate_exceptions, new_exception, remediation_target
from reconciler.risk import analyze_privileged_access

logger = logging.getLogger(__name__)

AUDITOR = "Auditor"
IT_OWNER = "IT Owner"
REVIEW_DECISIONS = ("No Action", "Remove", "Add")
SECONDS_PER_DAY = 60 * 60 * 24


class GovernanceError(ValueError):
    """Raised when a change is blocked by the read-only view, an app lock or a completed step."""


class MissingInputError(ValueError):
    """Raised when an action needs a file or identity source that has not been provided."""


def _stamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


# --- Audit lifecycle -------------------------------------------------------

def start_audit(audit_name: str, financial_year: str, quarter: str, user_name: str, user_email: str,
                state: Optional[AuditState] = None, now: Optional[datetime] = None) -> AuditState:
    """
    Initialise the audit ledger: audit id, folder hierarchy and reviewer identity.

    Root folder layout: UAR/{FY}/{Quarter}/{AuditName}_{AuditId}
    """
    if not audit_name.strip() or not user_name.strip() or not user_email.strip():
        raise ValueError("Audit name, reviewer name and reviewer email are all required")
    now = now or datetime.now()
    state = state or AuditState()

    audit_id = f"UAR_{now:%Y%m%d}_{random.randint(0, 999)}"
    folder_name = "_".join(audit_name.split())
    metadata = AuditMetadata(
        audit_id=audit_id,
        audit_name=audit_name,
        financial_year=financial_year,
        quarter=quarter,
        user=UserIdentity(
            display_name=user_name,
            email=user_email,
            role=IT_OWNER,
            source="Local",
            upn=user_email,
            object_id=f"local-guid-{random.randint(0, 9999)}",
        ),
        start_time=_stamp(now),
        root_folder=f"UAR/{financial_year}/{quarter}/{folder_name}_{audit_id}",
        status="Open",
    )
    logger.info("Started audit %s (%s %s)", audit_id, financial_year, quarter)
    return replace(state, metadata=metadata)


def fy_options(calendar: CalendarConfig, today: Optional[date] = None) -> List[str]:
    """
    Financial-year labels from last year up to FY_LAST_YEAR in the configured convention.

    FYXX -> "FY25", FYXXXX -> "FY2025", otherwise "2024-2025".
    """
    today = today or date.today()
    options: List[str] = []
    for year in range(today.year - 1, FY_LAST_YEAR + 1):
        if calendar.naming_convention == "FYXX":
            options.append(f"FY{str(year + 1)[-2:]}")
        elif calendar.naming_convention == "FYXXXX":
            options.append(f"FY{year + 1}")
        else:
            options.append(f"{year}-{year + 1}")
    return options


def set_view_mode(state: AuditState, view_mode: str) -> AuditState:
    if view_mode not in (IT_OWNER, AUDITOR):
        raise ValueError(f"Unknown view mode: {view_mode}")
    return replace(state, view_mode=view_mode)


def set_identity_source(state: AuditState, snapshot: Snapshot, evidence: Optional[EvidenceFile] = None,
                        extraction_method: Optional[str] = None) -> AuditState:
    if state.view_mode == AUDITOR:
        raise GovernanceError("The identity source cannot be changed in Auditor view")
    source = IdentitySource(file=snapshot, evidence=evidence, extraction_method=extraction_method)
    logger.info("Identity source set to %s (%d records)", snapshot.name, len(snapshot.rows))
    return replace(state, identity_source=source)


# --- Application scope -----------------------------------------------------

def add_app(state: AuditState, name: str, active_recon: bool = True, rr_recon: bool = False,
            now: Optional[float] = None) -> AuditState:
    if not name.strip():
        raise ValueError("Application name is required")
    app = AppScope(
        id=str(uuid.uuid4()),
        name=name.strip(),
        config=AppConfig(active_recon=active_recon, rr_recon=rr_recon),
        started_at=now if now is not None else time.time(),
    )
    return replace(state, apps=state.apps + [app])


def delete_app(state: AuditState, app_id: str) -> AuditState:
    return replace(state, apps=[a for a in state.apps if a.id != app_id])


def get_app(state: AuditState, app_id: str) -> AppScope:
    for app in state.apps:
        if app.id == app_id:
            return app
    raise KeyError(f"Unknown application: {app_id}")


def update_app(state: AuditState, updated: AppScope) -> AuditState:
    return replace(state, apps=[updated if a.id == updated.id else a for a in state.apps])


def is_read_only(state: AuditState, app: AppScope) -> bool:
    return state.view_mode == AUDITOR or app.is_locked


def _edit_app(state: AuditState, app_id: str, change: Callable[[AppScope], AppScope]) -> AuditState:
    app = get_app(state, app_id)
    if is_read_only(state, app):
        raise GovernanceError(f"Application {app.name} is read-only")
    return update_app(state, change(app))


def _log(state: AuditState, app: AppScope, section: str, action: str, old_value: str, new_value: str,
         justification: Optional[str] = None, now: Optional[datetime] = None) -> List[ChangeLogEntry]:
    entry = ChangeLogEntry(
        timestamp=_stamp(now),
        section=section,
        action=action,
        old_value=old_value,
        new_value=new_value,
        actor=state.metadata.user.display_name,
        justification=justification or "Routine Update",
    )
    return app.change_log + [entry]


def _require_step_open(app: AppScope, step_id: str) -> None:
    if step_id in app.checklist:
        raise GovernanceError(f"Step '{step_id}' is completed; reopen it before repeating this action")


def upload_file(state: AuditState, app_id: str, snapshot: Snapshot, now: Optional[datetime] = None) -> AuditState:
    """
    Attach a parsed file to the app, replacing any earlier file of the same type.
    """
    if snapshot.file_type not in FILE_TYPES:
        raise ValueError(f"Unknown file type: {snapshot.file_type}")

    def change(app: AppScope) -> AppScope:
        step = UPLOAD_STEP_BY_FILE_TYPE.get(snapshot.file_type)
        if step:
            _require_step_open(app, step)
        files = [f for f in app.files if f.file_type != snapshot.file_type] + [snapshot]
        log = _log(state, app, "Inputs", "Upload File", "N/A", snapshot.name, now=now)
        return replace(app, files=files, status="In Progress", change_log=log)

    return _edit_app(state, app_id, change)


def set_extraction_time(state: AuditState, app_id: str, extraction_date: str, extraction_time: str,
                        now: Optional[datetime] = None) -> AuditState:
    def change(app: AppScope) -> AppScope:
        old = f"{app.extraction_date or ''} {app.extraction_time or ''}".strip() or "N/A"
        log = _log(state, app, "Inputs", "Set Extraction Time", old, f"{extraction_date} {extraction_time}", now=now)
        return replace(app, extraction_date=extraction_date, extraction_time=extraction_time, change_log=log)

    return _edit_app(state, app_id, change)


# --- Checklist -------------------------------------------------------------

def visible_checklist(app: AppScope) -> List[Dict[str, str]]:
    """
    Checklist items that apply to the app's configuration.
    """
    enabled = {"all"}
    if app.config.active_recon:
        enabled.add("active_recon")
    if app.config.rr_recon:
        enabled.add("rr_recon")
    return [item for item in CHECKLIST_ITEMS if item["req"] in enabled]


def toggle_step(state: AuditState, app_id: str, step_id: str, justification: Optional[str] = None,
                now: Optional[datetime] = None) -> AuditState:
    """
    Complete an open step, or reopen a completed one (justification required).
    """
    labels = {item["id"]: item["label"] for item in CHECKLIST_ITEMS}
    if step_id not in labels:
        raise ValueError(f"Unknown checklist step: {step_id}")
    label = labels[step_id]

    def change(app: AppScope) -> AppScope:
        if step_id in app.checklist:
            if not justification or not justification.strip():
                raise GovernanceError(f"Reopening '{label}' requires a documented justification")
            log = _log(state, app, "Checklist", f"Reopened Step: {label}", "Completed", "Incomplete",
                       justification.strip(), now)
            return replace(app, checklist=[s for s in app.checklist if s != step_id], change_log=log)
        log = _log(state, app, "Checklist", f"Completed Step: {label}", "Incomplete", "Completed", now=now)
        return replace(app, checklist=app.checklist + [step_id], change_log=log)

    return _edit_app(state, app_id, change)


# --- Analysis --------------------------------------------------------------

def run_identity_recon(state: AuditState, app_id: str, now: Optional[datetime] = None) -> AuditState:
    if state.identity_source is None:
        raise MissingInputError("Global identity source is not configured")

    def change(app: AppScope) -> AppScope:
        _require_step_open(app, IDENTITY_RECON_STEP)
        baseline = app.file_of_type("user_list")
        if baseline is None:
            raise MissingInputError(f"No user list uploaded for {app.name}")
        issues = reconcile_identity(state.identity_source.file, baseline, now=now)
        logger.info("Identity reconciliation for %s: %d issues", app.name, len(issues))
        return replace(app, identity_issues=issues)

    return _edit_app(state, app_id, change)


def run_privileged_recon(state: AuditState, app_id: str) -> AuditState:
    def change(app: AppScope) -> AppScope:
        _require_step_open(app, PRIVILEGED_RECON_STEP)
        roles_file = app.file_of_type("roles_report") or app.file_of_type("user_list")
        if roles_file is None:
            raise MissingInputError(f"No roles report or user list uploaded for {app.name}")
        issues = analyze_privileged_access(roles_file)
        logger.info("Privileged access analysis for %s: %d issues", app.name, len(issues))
        return replace(app, privileged_issues=issues)

    return _edit_app(state, app_id, change)


def run_diff(state: AuditState, app_id: str, baseline_type: str = "user_list",
             target_type: str = "remediation") -> AuditState:
    """
    Compare two of the app's files (by type) and append the result to its diffs.
    """
    def change(app: AppScope) -> AppScope:
        baseline = app.file_of_type(baseline_type)
        target = app.file_of_type(target_type)
        if baseline is None or target is None:
            raise MissingInputError(f"{app.name} needs both a {baseline_type} and a {target_type} file")
        return replace(app, diffs=app.diffs + [compare_snapshots(baseline, target)])

    return _edit_app(state, app_id, change)


# --- Exceptions, reviews and comments --------------------------------------

def run_exception_generation(state: AuditState, app_id: str, today: Optional[date] = None) -> AuditState:
    """
    Append exceptions generated from the app's current findings.
    """
    def change(app: AppScope) -> AppScope:
        _require_step_open(app, GENERATE_EXCEPTIONS_STEP)
        generated = generate_exceptions(app, today)
        logger.info("Generated %d exceptions for %s", len(generated), app.name)
        return replace(app, exceptions=app.exceptions + generated)

    return _edit_app(state, app_id, change)


def add_exception(state: AuditState, app_id: str, user_id: str, type: str, risk_level: str, owner: str,
                  justification: str = "", target_date: Optional[str] = None, today: Optional[date] = None,
                  now: Optional[datetime] = None) -> AuditState:
    """
    Record a reviewer-raised exception. It starts Open with a fresh id; the target
    date defaults to the remediation window from today.
    """
    def change(app: AppScope) -> AppScope:
        entry = new_exception(app.id, user_id, type, risk_level, owner,
                              target_date or remediation_target(today), justification)
        log = _log(state, app, "Exceptions", "Add Exception", "N/A", f"{entry.type} ({entry.user_id})",
                   justification, now)
        return replace(app, exceptions=app.exceptions + [entry], change_log=log)

    return _edit_app(state, app_id, change)


def close_app_exception(state: AuditState, app_id: str, exception_id: str, justification: str,
                        now: Optional[datetime] = None) -> AuditState:
    def change(app: AppScope) -> AppScope:
        exceptions = []
        closed = None
        for entry in app.exceptions:
            if entry.id == exception_id:
                closed = close_exception(entry, justification)
                entry = closed
            exceptions.append(entry)
        if closed is None:
            raise KeyError(f"Unknown exception: {exception_id}")
        log = _log(state, app, "Exceptions", f"Closed Exception: {closed.type}", "Open", "Closed",
                   closed.justification, now)
        return replace(app, exceptions=exceptions, change_log=log)

    return _edit_app(state, app_id, change)


def record_review(state: AuditState, app_id: str, user_id: str, decision: str, comments: str = "",
                  ticket_number: Optional[str] = None, now: Optional[datetime] = None) -> AuditState:
    if decision not in REVIEW_DECISIONS:
        raise ValueError(f"Unknown review decision: {decision}")

    def change(app: AppScope) -> AppScope:
        review = ReviewDecision(user_id=user_id, decision=decision, comments=comments,
                                timestamp=_stamp(now), ticket_number=ticket_number)
        return replace(app, reviews=app.reviews + [review])

    return _edit_app(state, app_id, change)


def post_comment(state: AuditState, app_id: str, text: str, now: Optional[datetime] = None) -> AuditState:
    """
    Add a collaboration comment. Allowed in any view, including on locked apps.
    """
    if not text.strip():
        raise ValueError("Comment text is required")
    app = get_app(state, app_id)
    comment = CommentEntry(
        id=str(uuid.uuid4()),
        text=text,
        author=state.metadata.user.display_name,
        role=state.metadata.user.role,
        timestamp=_stamp(now),
    )
    return update_app(state, replace(app, comments=app.comments + [comment]))


# --- Governance lock -------------------------------------------------------

def lock_app(state: AuditState, app_id: str, now: Optional[datetime] = None) -> AuditState:
    """
    Mark the app Completed and lock it against further changes.
    """
    def change(app: AppScope) -> AppScope:
        log = _log(state, app, "Governance", "Complete Audit", app.status, "Completed", now=now)
        return replace(app, is_locked=True, status="Completed", change_log=log)

    return _edit_app(state, app_id, change)


def unlock_app(state: AuditState, app_id: str, justification: str, now: Optional[datetime] = None) -> AuditState:
    app = get_app(state, app_id)
    if state.view_mode == AUDITOR:
        raise GovernanceError("Applications cannot be unlocked in Auditor view")
    if not app.is_locked:
        raise GovernanceError(f"Application {app.name} is not locked")
    if not justification or not justification.strip():
        raise GovernanceError("Unlocking a completed application requires a justification")
    log = _log(state, app, "Governance", "Unlock Audit", "Locked", "Open", justification.strip(), now)
    return update_app(state, replace(app, is_locked=False, status="In Progress", change_log=log))


def sla_status(app: AppScope, now: Optional[float] = None) -> Dict[str, object]:
    """
    Ageing of an app since it was added: On Track, At Risk (past remediation SLA)
    or Breach (past closure SLA).
    """
    if app.started_at is None:
        return {"days_open": None, "label": "Not Started"}
    now = now if now is not None else time.time()
    days_open = int((now - app.started_at) // SECONDS_PER_DAY)
    if days_open > SLA_DAYS["closure"]:
        label = "Breach"
    elif days_open > SLA_DAYS["remediation"]:
        label = "At Risk"
    else:
        label = "On Track"
    return {"days_open": days_open, "label": label}
