"""Leave-type labels and the balance buckets they draw from."""

from __future__ import annotations

import enum
from typing import Optional


class LeaveBucket(str, enum.Enum):
    """Closed set of balance buckets; values are balance column prefixes."""

    casual = "casual"
    rest_recreation = "rest_recreation"
    leave_not_due = "leave_not_due"
    study = "study"
    ex_pakistan = "ex_pakistan"
    extra_ordinary = "extra_ordinary"
    disability = "disability"
    lpr = "lpr"
    medical = "medical"
    maternity = "maternity"
    paternity = "paternity"
    iddat = "iddat"
    hajj = "hajj"
    fatal_medical_emergency = "fatal_medical_emergency"
    earned_encashable = "earned_encashable"
    earned_non_encashable = "earned_non_encashable"

    @property
    def available_field(self) -> str:
        return f"{self.value}_available"

    @property
    def approved_field(self) -> str:
        return f"{self.value}_approved"

    @property
    def label(self) -> str:
        return BUCKET_LABELS[self]


# Labels shown in the apply form, mapped to the bucket they consume
LEAVE_TYPE_BUCKETS: dict[str, LeaveBucket] = {
    "Casual Leave": LeaveBucket.casual,
    "Rest & Recreation (R&R) Leave": LeaveBucket.rest_recreation,
    "Leave Not Due (LND)": LeaveBucket.leave_not_due,
    "Study Leave": LeaveBucket.study,
    "Ex-Pakistan Leave": LeaveBucket.ex_pakistan,
    "Extra-Ordinary Leave (Leave Without Pay)": LeaveBucket.extra_ordinary,
    "Disability Leave": LeaveBucket.disability,
    "Leave Preparatory to Retirement (LPR)": LeaveBucket.lpr,
    "Medical Leave": LeaveBucket.medical,
    "Maternity Leave": LeaveBucket.maternity,
    "Paternity Leave": LeaveBucket.paternity,
    "Iddat Leave": LeaveBucket.iddat,
    "Hajj & Leave to Non-Muslims": LeaveBucket.hajj,
    "Fatal Medical Emergency Leave": LeaveBucket.fatal_medical_emergency,
    "Earned Leave (Encashable)": LeaveBucket.earned_encashable,
    "Earned Leave (Non-Encashable)": LeaveBucket.earned_non_encashable,
}

BUCKET_LABELS: dict[LeaveBucket, str] = {b: label for label, b in LEAVE_TYPE_BUCKETS.items()}

_CASEFOLDED: dict[str, LeaveBucket] = {
    label.casefold(): bucket for label, bucket in LEAVE_TYPE_BUCKETS.items()
}


def resolve_leave_type(label: Optional[str]) -> Optional[LeaveBucket]:
    """Map a leave-type label to its bucket, or ``None`` when unknown.

    Order: exact label, case/whitespace-insensitive label, bare
    "Earned Leave" (non-encashable), then substring rules for earned
    variants. Callers must treat ``None`` as an unknown type; there is
    no default bucket.
    """
    if not label:
        return None

    bucket = LEAVE_TYPE_BUCKETS.get(label)
    if bucket is not None:
        return bucket

    folded = label.strip().casefold()
    if not folded:
        return None
    bucket = _CASEFOLDED.get(folded)
    if bucket is not None:
        return bucket

    if folded == "earned leave":
        return LeaveBucket.earned_non_encashable

    if "non-encashable" in folded or "non encashable" in folded:
        return LeaveBucket.earned_non_encashable
    if "encashable" in folded:
        return LeaveBucket.earned_encashable
    if "earned" in folded:
        return LeaveBucket.earned_non_encashable

    return None
