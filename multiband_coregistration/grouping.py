"""Grouping of band images into capture events and reference selection."""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from .dji_metadata import CaptureRecord

# Key of the group collecting records without a capture UUID. Real UUIDs are
# never empty, so this key cannot collide with one.
FALLBACK_GROUP_KEY = ""

# Offsets below this magnitude mark the band the others are aligned to
REFERENCE_TOLERANCE = 0.001


def group_label(key: str) -> str:
    """Human readable name of a group key."""
    return key if key != FALLBACK_GROUP_KEY else "unknown"


def group_by_capture(records: Iterable[CaptureRecord]) -> Dict[str, List[CaptureRecord]]:
    """
    Partition records by capture UUID.

    Records keep their input order inside a group. Groups are ordered by
    UUID, with the fallback group for records without a UUID last.

    Args:
        records: Parsed capture records

    Returns:
        Ordered mapping from group key to records
    """
    groups: Dict[str, List[CaptureRecord]] = {}
    for record in records:
        key = record.uuid if record.uuid else FALLBACK_GROUP_KEY
        groups.setdefault(key, []).append(record)

    ordered = OrderedDict()
    for key in sorted(k for k in groups if k != FALLBACK_GROUP_KEY):
        ordered[key] = groups[key]
    if FALLBACK_GROUP_KEY in groups:
        ordered[FALLBACK_GROUP_KEY] = groups[FALLBACK_GROUP_KEY]
    return ordered


def select_reference(
    group: List[CaptureRecord],
    tolerance: float = REFERENCE_TOLERANCE
) -> Optional[CaptureRecord]:
    """Return the first record reporting a (near) zero relative offset."""
    for record in group:
        rel_x, rel_y = record.relative_offset
        if abs(rel_x) < tolerance and abs(rel_y) < tolerance:
            return record
    return None
