"""
Central configuration and tunable constants.

- Keyword tables are ordered: earlier entries win when more than one matches.
- Report directory can be overridden by CLI args or the UAR_REPORT_DIR environment variable.
- Severity and risk thresholds are centralized for easy tuning.
"""

# Common labels used to identify the "User ID" column automatically
USER_ID_KEYS = [
    "User ID", "UserID", "Username", "User Name", "Email", "E-mail",
    "Login", "Employee ID", "Worker", "Account", "SamAccountName",
]

STATUS_KEYS = ["Status", "Worker Status", "Employment Status", "Active Status", "User_Status"]
TERM_DATE_KEYS = ["Termination Date", "Term Date", "End Date", "Last Day of Work"]
ROLE_KEYS = ["Role", "Profile", "Permission", "Role_Name", "Group"]

TERMINATED_STATUS_MARKERS = ["inactive", "terminated"]
DEFAULT_IDENTITY_STATUS = "Active"
NOT_APPLICABLE = "N/A"

PRIVILEGED_PATTERNS = [
    "admin", "super", "integration", "security", "power", "all_access", "read/write",
]

# Role risk rules: (keywords, criticality, sensitivity, privilege, sod).
# First rule with a matching keyword wins; the empty rule is the fallback.
ROLE_RISK_RULES = [
    (("admin", "super"), 100, 90, 100, 40),
    (("read", "viewer"), 20, 30, 10, 10),
    (("finance", "hr"), 50, 100, 50, 60),
    ((), 50, 50, 50, 10),
]

RISK_WEIGHTS = {
    "criticality": 0.30,
    "sensitivity": 0.30,
    "privilege": 0.25,
    "sod": 0.15,
}
RISK_HIGH_THRESHOLD = 80
RISK_MEDIUM_THRESHOLD = 50

# Exception register defaults
REMEDIATION_DAYS = 7
TERMINATED_EXCEPTION_TYPE = "Terminated User Active"
TERMINATED_EXCEPTION_OWNER = "IT Ops"
HIGH_RISK_ROLE_EXCEPTION_TYPE = "High Risk Role: {role}"
HIGH_RISK_ROLE_EXCEPTION_OWNER = "Business Owner"
HIGH_RISK_ROLE_JUSTIFICATION = "Requires Business Justification"

# Severity scale for report findings: 0 (info) to 10 (critical)
SEVERITY_TERMINATED_ACTIVE = 9
SEVERITY_NOT_FOUND = 6
SEVERITY_FUTURE_TERMINATION = 3
SEVERITY_BY_RISK_LEVEL = {"High": 8, "Medium": 5, "Low": 2}
SEVERITY_ACCESS_REMOVED = 2
SEVERITY_ACCESS_ADDED = 4
SEVERITY_ACCESS_MODIFIED = 3

# Days an application may stay open before the SLA is at risk / breached
SLA_DAYS = {
    "evidence": 3,
    "review": 5,
    "remediation": 7,
    "closure": 15,
}

# Checklist steps; "req" names the app config flag that enables the step
CHECKLIST_ITEMS = [
    {"id": "upload_users", "label": "Upload User List (Source)", "req": "active_recon"},
    {"id": "upload_roles", "label": "Upload Roles Report", "req": "rr_recon"},
    {"id": "evidence_extract", "label": "Upload Extraction Evidence", "req": "all"},
    {"id": "validate_time", "label": "Validate Extraction Date/Time", "req": "all"},
    {"id": "gen_priv_report", "label": "Generate Privileged & Risk Report", "req": "rr_recon"},
    {"id": "run_identity", "label": "Run Active User Reconciliation", "req": "active_recon"},
    {"id": "generate_exceptions", "label": "Generate Exception Register", "req": "all"},
    {"id": "send_bo", "label": "Send to Business Owner", "req": "all"},
    {"id": "capture_approval", "label": "Capture Business Owner Approval", "req": "all"},
    {"id": "gen_package", "label": "Generate Audit Package", "req": "all"},
]

FILE_TYPES = ["user_list", "roles_report", "evidence_extract", "evidence_bo", "remediation"]

DEFAULT_FY_START_MONTH = 4  # April
DEFAULT_NAMING_CONVENTION = "FYXX"
FY_LAST_YEAR = 2050

DEFAULT_REPORT_DIR = "reports"
REPORT_DIR_ENV = "UAR_REPORT_DIR"

# Completing these checklist steps locks the related action
UPLOAD_STEP_BY_FILE_TYPE = {"user_list": "upload_users", "roles_report": "upload_roles"}
IDENTITY_RECON_STEP = "run_identity"
PRIVILEGED_RECON_STEP = "gen_priv_report"
GENERATE_EXCEPTIONS_STEP = "generate_exceptions"
