"""
Firestore query helpers shared by the store and services.

NOTE: For firebase_admin SDK, we use positional arguments which still work.
The deprecation warning about FieldFilter is just a warning.
"""

from typing import Dict, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Usage:
        query = where_filter(collection, "status", "==", "live")
        query = where_filter(query, "category", "==", "roads")
    """
    return query.where(field_path, op_string, value)


def snapshot_to_dict(snapshot) -> Optional[Dict]:
    """Document snapshot -> dict with its id, or None if the document is missing."""
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data
