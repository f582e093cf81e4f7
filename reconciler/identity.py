# reconciler/identity.py
"""
Identity reconciliation: check every application user against the identity of record.

Classification per user, in priority order:
  NOT_FOUND_IN_SOURCE > TERMINATED_BUT_ACTIVE > FUTURE_TERMINATION > clean (omitted)
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from dateutil import parser as date_parser

from config import (
    DEFAULT_IDENTITY_STATUS,
    NOT_APPLICABLE,
    STATUS_KEYS,
    TERM_DATE_KEYS,
    TERMINATED_STATUS_MARKERS,
)
from models import IdentityIssue, Row, Snapshot, cell
from reconciler.keys import detect_id_column, find_column

logger = logging.getLogger(__name__)

TERMINATED_BUT_ACTIVE = "TERMINATED_BUT_ACTIVE"
NOT_FOUND_IN_SOURCE = "NOT_FOUND_IN_SOURCE"
FUTURE_TERMINATION = "FUTURE_TERMINATION"


def normalize_key(value: str) -> str:
    return value.strip().casefold()


def parse_term_date(value: Optional[str], default: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a termination date leniently. Returns None for empty or unparseable text.

    Parts missing from a partial date ("Sept", "12") are taken from default, at midnight.

    Timezone-aware values are converted to naive local time so they compare with now.
    """
    if not value or not value.strip():
        return None
    base = (default or datetime.now()).replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        parsed = date_parser.parse(value, default=base)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def status_is_terminated(status: str) -> bool:
    lowered = status.lower()
    return any(marker in lowered for marker in TERMINATED_STATUS_MARKERS)


def index_identities(identity: Snapshot) -> Dict[str, Row]:
    key_column = detect_id_column(identity.headers)
    indexed: Dict[str, Row] = {}
    for row in identity.rows:
        key = cell(row, key_column)
        if key:
            indexed[normalize_key(key)] = row
    return indexed


def reconcile_identity(identity: Snapshot, app_baseline: Snapshot, now: Optional[datetime] = None) -> List[IdentityIssue]:
    """
    Classify each application user against the identity source.

    - Users absent from the identity source are NOT_FOUND_IN_SOURCE.
    - Users whose status reads inactive/terminated, or whose termination date
      is on or before now, are TERMINATED_BUT_ACTIVE.
    - Users with a termination date strictly in the future are FUTURE_TERMINATION.
    - Clean users and rows with an empty key are omitted.
    """
    now = now or datetime.now()
    app_key = detect_id_column(app_baseline.headers)
    status_column = find_column(identity.headers, STATUS_KEYS)
    term_date_column = find_column(identity.headers, TERM_DATE_KEYS)
    identities = index_identities(identity)

    issues: List[IdentityIssue] = []
    for app_user in app_baseline.rows:
        user_id = cell(app_user, app_key)
        if not user_id:
            continue
        identity_user = identities.get(normalize_key(user_id))
        if identity_user is None:
            issues.append(IdentityIssue(
                user_id=user_id,
                issue_type=NOT_FOUND_IN_SOURCE,
                identity_status=NOT_APPLICABLE,
                identity_term_date=NOT_APPLICABLE,
                app_record=app_user,
            ))
            continue

        status = cell(identity_user, status_column) if status_column else DEFAULT_IDENTITY_STATUS
        term_date_text = cell(identity_user, term_date_column) if term_date_column else ""

        terminated = status_is_terminated(status)
        future_terminated = False
        term_date = parse_term_date(term_date_text, default=now)
        if term_date is not None:
            if term_date <= now:
                terminated = True
            elif not terminated:
                future_terminated = True

        if terminated:
            issue_type = TERMINATED_BUT_ACTIVE
        elif future_terminated:
            issue_type = FUTURE_TERMINATION
        else:
            continue
        issues.append(IdentityIssue(
            user_id=user_id,
            issue_type=issue_type,
            identity_status=status,
            identity_term_date=term_date_text or NOT_APPLICABLE,
            app_record=app_user,
        ))

    logger.debug("Reconciled %d app users from %s: %d issues", len(app_baseline.rows), app_baseline.name, len(issues))
    return issues
