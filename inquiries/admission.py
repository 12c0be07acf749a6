# inquiries/admission.py
from typing import Optional, Sequence

from .models import ADMITTED_LEAD_STAGE, ADMITTED_SUB_STAGE


def _get(entry, name):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def is_admission_entry(entry) -> bool:
    return _get(entry, 'lead_stage') == ADMITTED_LEAD_STAGE and _get(entry, 'sub_stage') == ADMITTED_SUB_STAGE


def latest_follow_up(follow_ups: Sequence):
    """
    Latest entry by ``created_at``. Entries sharing a timestamp resolve to the
    one appearing later in ``follow_ups`` (insertion order).
    """
    latest = None
    for entry in follow_ups or []:
        created_at = _get(entry, 'created_at')
        if created_at is None:
            continue
        if latest is None or created_at >= _get(latest, 'created_at'):
            latest = entry
    return latest


def is_admitted(follow_ups: Sequence) -> bool:
    latest = latest_follow_up(follow_ups)
    return latest is not None and is_admission_entry(latest)


def admission_date(follow_ups: Sequence) -> Optional[object]:
    return _get(latest_follow_up([entry for entry in follow_ups or [] if is_admission_entry(entry)]), 'created_at')
