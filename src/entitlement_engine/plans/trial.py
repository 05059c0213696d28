"""Trial countdown arithmetic. Pure functions, no I/O."""

import math
from datetime import datetime, timedelta

from entitlement_engine.common.models import as_utc, utcnow
from entitlement_engine.plans.catalog import SubscriptionStatus, parse_subscription_status

_ONE_DAY = timedelta(days=1).total_seconds()


def days_left(trial_end_date: datetime | None, now: datetime | None = None) -> int:
    """Whole days until ``trial_end_date``, rounded up, never negative."""
    if trial_end_date is None:
        return 0
    now = as_utc(now) or utcnow()
    remaining = (as_utc(trial_end_date) - now).total_seconds()
    return max(0, math.ceil(remaining / _ONE_DAY))


def is_expired(
    status: str | SubscriptionStatus,
    trial_end_date: datetime | None,
    now: datetime | None = None,
) -> bool:
    """True iff the subscription is still in trial and the trial end has passed."""
    if parse_subscription_status(status) is not SubscriptionStatus.TRIAL:
        return False
    if trial_end_date is None:
        return False
    now = as_utc(now) or utcnow()
    return as_utc(trial_end_date) < now


def trial_end_from(start: datetime, trial_days: int) -> datetime:
    return as_utc(start) + timedelta(days=trial_days)
