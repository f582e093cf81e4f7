# reconciler/keys.py
"""
Column inference helpers.

Labels are matched case-insensitively and exactly against header names.
"""

from typing import List, Optional

from config import USER_ID_KEYS


def find_column(headers: List[str], labels: List[str]) -> Optional[str]:
    """
    Return the first header (in header order) matching any label, or None.
    """
    wanted = {label.lower() for label in labels}
    for header in headers:
        if header.lower() in wanted:
            return header
    return None


def detect_id_column(headers: List[str]) -> str:
    """
    Guess which header holds the unique user identifier.

    Falls back to the first header; an empty header list yields "".
    """
    match = find_column(headers, USER_ID_KEYS)
    if match is not None:
        return match
    return headers[0] if headers else ""
