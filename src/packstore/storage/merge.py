"""
Change merging for document updates.

Nested dicts merge key by key, everything else replaces. A key written as
``"-=<key>"`` removes ``<key>`` from the target instead of setting it.
"""

import copy
from typing import Any, Dict, Mapping

DELETION_PREFIX = "-="


def is_deletion_key(key: str) -> bool:
    return key.startswith(DELETION_PREFIX)


def deletion_key(key: str) -> str:
    """Build the patch key that removes ``key``."""
    return f"{DELETION_PREFIX}{key}"


def strip_deletion_prefix(key: str) -> str:
    return key[len(DELETION_PREFIX):] if is_deletion_key(key) else key


def merge_changes(original: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new dict with ``changes`` merged into a copy of ``original``."""
    result = copy.deepcopy(dict(original))
    _merge_into(result, changes)
    return result


def _merge_into(target: Dict[str, Any], changes: Mapping[str, Any]) -> None:
    for key, value in changes.items():
        if is_deletion_key(key):
            target.pop(strip_deletion_prefix(key), None)
            continue

        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)
