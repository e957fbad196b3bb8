"""
Offline Enrollment Window State Machine

State Flow: Open → In Progress → Closed
            Open → Closed

The status is derived from the course's batches:
- Closed once any batch has reached its enrollment deadline or end date, or
  any batch is full. Closed is terminal.
- In Progress once the earliest batch has started.
- Open otherwise, including a course with no batches.

Each batch's own status (Upcoming → Active → Completed) follows its dates.
"""
from datetime import datetime
from typing import Iterable

from catalog.orm.batch import Batch, BatchStatus
from catalog.orm.course import EnrollmentWindowStatus


TRANSITIONS = {
    EnrollmentWindowStatus.OPEN: [EnrollmentWindowStatus.IN_PROGRESS, EnrollmentWindowStatus.CLOSED],
    EnrollmentWindowStatus.IN_PROGRESS: [EnrollmentWindowStatus.CLOSED],
    EnrollmentWindowStatus.CLOSED: [],
}


def _closes_window(batch: Batch, now: datetime) -> bool:
    if batch.is_full:
        return True
    if batch.enrollment_end_date and now >= batch.enrollment_end_date:
        return True
    if batch.end_date and now >= batch.end_date:
        return True
    return False


def derive_status(batches: Iterable[Batch], now: datetime) -> EnrollmentWindowStatus:
    """Status implied by batch data alone, ignoring the current status."""
    batches = list(batches)
    if not batches:
        return EnrollmentWindowStatus.OPEN

    if any(_closes_window(batch, now) for batch in batches):
        return EnrollmentWindowStatus.CLOSED

    first_start = min(batch.start_date for batch in batches)
    if now >= first_start:
        return EnrollmentWindowStatus.IN_PROGRESS
    return EnrollmentWindowStatus.OPEN


def next_status(
    current: EnrollmentWindowStatus,
    batches: Iterable[Batch],
    now: datetime
) -> EnrollmentWindowStatus:
    """
    Apply the derived status to the current one.

    Moves that are not in TRANSITIONS (anything out of Closed, going back to
    Open) leave the current status unchanged.
    """
    current = current or EnrollmentWindowStatus.OPEN
    derived = derive_status(batches, now)
    if derived == current or derived not in TRANSITIONS[current]:
        return current
    return derived


def derive_batch_status(batch: Batch, now: datetime) -> BatchStatus:
    """Upcoming until start_date, Active until end_date, then Completed."""
    if batch.end_date and now >= batch.end_date:
        return BatchStatus.COMPLETED
    if now >= batch.start_date:
        return BatchStatus.ACTIVE
    return BatchStatus.UPCOMING
