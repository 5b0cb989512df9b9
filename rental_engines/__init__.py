"""
Module: rental_engines
Responsibility:
    Re-exports the pure calculation engines used by the reconciliation
    services: late fees, schedule planning, duplicate resolution planning
    and waterfall allocation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import
    rental_kernel.domain and rental_kernel.logging_config only.

Invariants enforced:
    - Engines never read the clock; "today" is a parameter.
    - Decimal-only money arithmetic.
    - Identical inputs always produce identical plans.
"""

from rental_engines.duplicates import (
    BucketResolution,
    DuplicateRemoval,
    DuplicateResolutionPlan,
    PaymentTransfer,
    plan_duplicate_resolution,
    priority_key,
)
from rental_engines.late_fee import (
    DEFAULT_DAILY_RATE,
    DEFAULT_FEE_CAP,
    days_late_for_payment,
    days_overdue,
    is_past_due,
    late_fee,
)
from rental_engines.schedule import (
    OverdueRefresh,
    ScheduleEntry,
    SchedulePlan,
    due_date_for_month,
    first_of_month,
    iter_months,
    plan_schedule,
)
from rental_engines.tracer import traced_engine
from rental_engines.waterfall import (
    AllocationLine,
    WaterfallResult,
    allocate_waterfall,
)

__all__ = [
    "BucketResolution",
    "DuplicateRemoval",
    "DuplicateResolutionPlan",
    "PaymentTransfer",
    "plan_duplicate_resolution",
    "priority_key",
    "DEFAULT_DAILY_RATE",
    "DEFAULT_FEE_CAP",
    "days_late_for_payment",
    "days_overdue",
    "is_past_due",
    "late_fee",
    "OverdueRefresh",
    "ScheduleEntry",
    "SchedulePlan",
    "due_date_for_month",
    "first_of_month",
    "iter_months",
    "plan_schedule",
    "traced_engine",
    "AllocationLine",
    "WaterfallResult",
    "allocate_waterfall",
]
