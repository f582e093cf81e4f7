# models.py
"""
Data models used by the reconciler.

- Keep simple, serializable dataclasses for snapshots, results and session state.
- Every model converts to plain dicts (asdict) and back (from_dict) so the whole
  audit session round-trips through JSON.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from config import DEFAULT_FY_START_MONTH, DEFAULT_NAMING_CONVENTION

Row = Dict[str, str]


def cell(row: Row, header: str) -> str:
    """
    Read a value from a row; absent or None values read as empty string.
    """
    value = row.get(header)
    return value if value is not None else ""


@dataclass
class Finding:
    """
    Represents a single report finding.

    Fields:
    - resource: canonical identifier (e.g., "app://Payroll/jdoe")
    - issue: short human-readable description (e.g., "TERMINATED_BUT_ACTIVE")
    - severity: numeric severity (0-10)
    - details: free-text details useful for triage
    - metadata: optional structured metadata (rule id, app, etc.)
    """
    resource: str
    issue: str
    severity: int
    details: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class Snapshot:
    """
    One parsed point-in-time tabular file: ordered headers plus ordered rows.

    Rows may omit headers; use cell() to read them.
    """
    name: str
    headers: List[str]
    rows: List[Row]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    file_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    validated: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            name=data.get("name", ""),
            headers=list(data.get("headers", [])),
            rows=[dict(r) for r in data.get("rows", [])],
            id=data.get("id") or str(uuid.uuid4()),
            timestamp=data.get("timestamp", 0.0),
            file_type=data.get("file_type"),
            uploaded_by=data.get("uploaded_by"),
            validated=data.get("validated", False),
        )


@dataclass
class FieldChange:
    field: str
    old_value: str
    new_value: str


@dataclass
class ModifiedRecord:
    user: str
    changes: List[FieldChange]


@dataclass
class DiffResult:
    """
    Outcome of comparing a baseline snapshot against a target snapshot.

    total_records is the number of rows in the target snapshot. baseline_key and
    target_key name the key column each side was matched on.
    """
    added: List[Row] = field(default_factory=list)
    removed: List[Row] = field(default_factory=list)
    modified: List[ModifiedRecord] = field(default_factory=list)
    total_records: int = 0
    match_count: int = 0
    baseline_key: str = ""
    target_key: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiffResult":
        return cls(
            added=[dict(r) for r in data.get("added", [])],
            removed=[dict(r) for r in data.get("removed", [])],
            modified=[
                ModifiedRecord(
                    user=m["user"],
                    changes=[FieldChange(**c) for c in m.get("changes", [])],
                )
                for m in data.get("modified", [])
            ],
            total_records=data.get("total_records", 0),
            match_count=data.get("match_count", 0),
            baseline_key=data.get("baseline_key", ""),
            target_key=data.get("target_key", ""),
        )


@dataclass
class IdentityIssue:
    user_id: str
    issue_type: str
    identity_status: str
    identity_term_date: str
    app_record: Row = field(default_factory=dict)


@dataclass
class RiskScore:
    total: int
    criticality: int
    sensitivity: int
    privilege: int
    sod: int
    level: str


@dataclass
class PrivilegedIssue:
    user_id: str
    role: str
    risk_score: RiskScore
    record: Row = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrivilegedIssue":
        return cls(
            user_id=data["user_id"],
            role=data["role"],
            risk_score=RiskScore(**data["risk_score"]),
            record=dict(data.get("record", {})),
        )


@dataclass
class ExceptionEntry:
    """
    A tracked remediation item. Status moves Open -> Closed only, with a justification.
    """
    id: str
    app_id: str
    user_id: str
    type: str
    risk_level: str
    justification: str
    owner: str
    target_date: str
    status: str = "Open"


@dataclass
class ChangeLogEntry:
    timestamp: str
    section: str
    action: str
    old_value: str
    new_value: str
    actor: str
    justification: Optional[str] = None


@dataclass
class CommentEntry:
    id: str
    text: str
    author: str
    role: str
    timestamp: str


@dataclass
class ReviewDecision:
    user_id: str
    decision: str
    comments: str
    timestamp: str
    ticket_number: Optional[str] = None


@dataclass
class AppConfig:
    active_recon: bool = True
    rr_recon: bool = False


@dataclass
class AppScope:
    """
    One application under review and everything recorded against it.
    """
    id: str
    name: str
    config: AppConfig = field(default_factory=AppConfig)
    status: str = "Not Started"
    is_locked: bool = False
    started_at: Optional[float] = None
    files: List[Snapshot] = field(default_factory=list)
    extraction_date: Optional[str] = None
    extraction_time: Optional[str] = None
    diffs: List[DiffResult] = field(default_factory=list)
    identity_issues: Optional[List[IdentityIssue]] = None
    privileged_issues: Optional[List[PrivilegedIssue]] = None
    exceptions: List[ExceptionEntry] = field(default_factory=list)
    checklist: List[str] = field(default_factory=list)
    reviews: List[ReviewDecision] = field(default_factory=list)
    change_log: List[ChangeLogEntry] = field(default_factory=list)
    comments: List[CommentEntry] = field(default_factory=list)

    def file_of_type(self, file_type: str) -> Optional[Snapshot]:
        for f in self.files:
            if f.file_type == file_type:
                return f
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppScope":
        identity_issues = data.get("identity_issues")
        privileged_issues = data.get("privileged_issues")
        return cls(
            id=data["id"],
            name=data["name"],
            config=AppConfig(**data.get("config", {})),
            status=data.get("status", "Not Started"),
            # older saves predate the governance lock
            is_locked=data.get("is_locked", False),
            started_at=data.get("started_at"),
            files=[Snapshot.from_dict(f) for f in data.get("files", [])],
            extraction_date=data.get("extraction_date"),
            extraction_time=data.get("extraction_time"),
            diffs=[DiffResult.from_dict(d) for d in data.get("diffs", [])],
            identity_issues=(
                [IdentityIssue(**i) for i in identity_issues]
                if identity_issues is not None else None
            ),
            privileged_issues=(
                [PrivilegedIssue.from_dict(p) for p in privileged_issues]
                if privileged_issues is not None else None
            ),
            exceptions=[ExceptionEntry(**e) for e in data.get("exceptions", [])],
            checklist=list(data.get("checklist", [])),
            reviews=[ReviewDecision(**r) for r in data.get("reviews", [])],
            change_log=[ChangeLogEntry(**c) for c in data.get("change_log", [])],
            comments=[CommentEntry(**c) for c in data.get("comments") or []],
        )


@dataclass
class UserIdentity:
    display_name: str
    email: str
    role: str = "IT Owner"
    source: str = "Local"
    upn: Optional[str] = None
    object_id: Optional[str] = None
    tenant_id: Optional[str] = None


@dataclass
class AuditMetadata:
    audit_id: str = ""
    audit_name: str = ""
    financial_year: str = ""
    quarter: str = ""
    user: UserIdentity = field(default_factory=lambda: UserIdentity(display_name="", email=""))
    start_time: str = ""
    root_folder: str = ""
    status: str = "Open"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditMetadata":
        values = dict(data)
        values["user"] = UserIdentity(**data.get("user", {"display_name": "", "email": ""}))
        return cls(**values)


@dataclass
class EvidenceFile:
    name: str
    timestamp: float
    size: int


@dataclass
class IdentitySource:
    """
    The global identity-of-record export shared by every application in the audit.
    """
    file: Snapshot
    evidence: Optional[EvidenceFile] = None
    extraction_method: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentitySource":
        evidence = data.get("evidence")
        return cls(
            file=Snapshot.from_dict(data["file"]),
            evidence=EvidenceFile(**evidence) if evidence else None,
            extraction_method=data.get("extraction_method"),
        )


@dataclass
class CalendarConfig:
    fy_start_month: int = DEFAULT_FY_START_MONTH
    naming_convention: str = DEFAULT_NAMING_CONVENTION


@dataclass
class AuditState:
    """
    The single audit-session aggregate. Persisted as a whole via save_state/load_state.
    """
    metadata: AuditMetadata = field(default_factory=AuditMetadata)
    view_mode: str = "IT Owner"
    identity_source: Optional[IdentitySource] = None
    apps: List[AppScope] = field(default_factory=list)
    calendar_config: CalendarConfig = field(default_factory=CalendarConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditState":
        identity_source = data.get("identity_source")
        calendar = data.get("calendar_config")
        return cls(
            metadata=AuditMetadata.from_dict(data["metadata"]),
            view_mode=data.get("view_mode") or "IT Owner",
            identity_source=IdentitySource.from_dict(identity_source) if identity_source else None,
            apps=[AppScope.from_dict(a) for a in data["apps"]],
            calendar_config=CalendarConfig(**calendar) if calendar else CalendarConfig(),
        )
