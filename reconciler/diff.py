# reconciler/diff.py
"""
Snapshot comparison.

- Rows are matched on the inferred key column of each snapshot.
- Rows with an empty key are skipped; on duplicate keys the last row wins.
- Only the baseline's headers are compared, so columns that exist only in the
  target never produce a change.
"""

import logging
from typing import Dict, List

from models import DiffResult, FieldChange, ModifiedRecord, Row, Snapshot, cell
from reconciler.keys import detect_id_column

logger = logging.getLogger(__name__)


def index_rows(snapshot: Snapshot, key_column: str) -> Dict[str, Row]:
    """
    Map key value -> row, skipping rows whose key is empty.
    """
    indexed: Dict[str, Row] = {}
    for row in snapshot.rows:
        key = cell(row, key_column)
        if key:
            indexed[key] = row
    return indexed


def field_changes(baseline_headers: List[str], key_column: str, old: Row, new: Row) -> List[FieldChange]:
    changes: List[FieldChange] = []
    for header in baseline_headers:
        if header == key_column:
            continue
        old_value = cell(old, header)
        new_value = cell(new, header)
        if old_value != new_value:
            changes.append(FieldChange(field=header, old_value=old_value, new_value=new_value))
    return changes


def compare_snapshots(baseline: Snapshot, target: Snapshot) -> DiffResult:
    """
    Compute added, removed and modified rows between two snapshots.

    Removed rows keep baseline order; added and modified rows keep target order.
    """
    baseline_key = detect_id_column(baseline.headers)
    target_key = detect_id_column(target.headers)

    baseline_map = index_rows(baseline, baseline_key)
    target_map = index_rows(target, target_key)

    result = DiffResult(total_records=len(target.rows), baseline_key=baseline_key, target_key=target_key)
    for key, row in baseline_map.items():
        if key not in target_map:
            result.removed.append(row)

    for key, row in target_map.items():
        old = baseline_map.get(key)
        if old is None:
            result.added.append(row)
            continue
        changes = field_changes(baseline.headers, baseline_key, old, row)
        if changes:
            result.modified.append(ModifiedRecord(user=key, changes=changes))
        else:
            result.match_count += 1

    logger.debug(
        "Compared %s -> %s: %d added, %d removed, %d modified, %d unchanged",
        baseline.name, target.name, len(result.added), len(result.removed),
        len(result.modified), result.match_count,
    )
    return result
