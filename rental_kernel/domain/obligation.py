"""
Obligation vocabulary -- statuses, types and lease status.

Responsibility:
    The single tagged enumeration for obligation status, with an explicit
    alias table for legacy spellings.  Historical rows were written with
    either ``paid`` or ``completed`` for a fully settled obligation; the
    canonical terminal value is ``paid`` and ``completed`` is accepted on
    read and produced only at the display boundary.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Shared by models, engines and
    services.
"""

from __future__ import annotations

from enum import Enum


class ObligationStatus(str, Enum):
    """Lifecycle status of a payment obligation.

    Contract: PENDING -> OVERDUE -> PARTIALLY_PAID -> PAID, or PENDING -> PAID.
    """

    PENDING = "pending"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"

    @classmethod
    def parse(cls, raw: str | ObligationStatus | None) -> ObligationStatus | None:
        """Map a stored status string to the enum, honoring legacy aliases.

        Returns None for unrecognised values; callers rank those last.
        """
        if raw is None:
            return None
        if isinstance(raw, ObligationStatus):
            return raw
        normalized = str(raw).strip().lower()
        alias = LEGACY_STATUS_ALIASES.get(normalized)
        if alias is not None:
            return alias
        try:
            return cls(normalized)
        except ValueError:
            return None

    @property
    def is_settled(self) -> bool:
        return self is ObligationStatus.PAID

    @property
    def is_outstanding(self) -> bool:
        return self in OUTSTANDING_STATUSES

    def display_value(self, legacy: bool = False, terminal_alias: str = "completed") -> str:
        """Render the status for an external consumer.

        With ``legacy=True`` the terminal status is rendered using the alias
        older screens and reports expect.
        """
        if legacy and self is ObligationStatus.PAID:
            return terminal_alias
        return self.value


# Legacy spellings accepted on read -> canonical status
LEGACY_STATUS_ALIASES: dict[str, ObligationStatus] = {
    "completed": ObligationStatus.PAID,
    "complete": ObligationStatus.PAID,
    "partial": ObligationStatus.PARTIALLY_PAID,
}

OUTSTANDING_STATUSES: frozenset[ObligationStatus] = frozenset({
    ObligationStatus.PENDING,
    ObligationStatus.PARTIALLY_PAID,
    ObligationStatus.OVERDUE,
})

# Lower rank wins when choosing which duplicate to keep
STATUS_PRIORITY: dict[ObligationStatus, int] = {
    ObligationStatus.PAID: 0,
    ObligationStatus.PARTIALLY_PAID: 1,
    ObligationStatus.OVERDUE: 2,
    ObligationStatus.PENDING: 3,
}
UNKNOWN_STATUS_PRIORITY = 4


def status_rank(status: ObligationStatus | None) -> int:
    """Priority rank of a status for duplicate resolution."""
    if status is None:
        return UNKNOWN_STATUS_PRIORITY
    return STATUS_PRIORITY.get(status, UNKNOWN_STATUS_PRIORITY)


class ObligationType(str, Enum):
    """What the obligation charges for."""

    RENT = "rent"
    ADDITIONAL_PAYMENT = "additional_payment"
    OVERPAYMENT = "overpayment"
    LATE_FEE = "late_fee"

    @classmethod
    def parse(cls, raw: str | ObligationType | None) -> ObligationType | None:
        """Map a stored type string to the enum.

        Missing types are treated as rent; legacy uppercase fee spellings
        are folded in.
        """
        if raw is None or raw == "":
            return ObligationType.RENT
        if isinstance(raw, ObligationType):
            return raw
        normalized = str(raw).strip().lower()
        if normalized in ("late_payment_fee", "late_fine"):
            return ObligationType.LATE_FEE
        try:
            return cls(normalized)
        except ValueError:
            return None


class LeaseStatus(str, Enum):
    """Lifecycle status of a lease, owned by agreement management."""

    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"
