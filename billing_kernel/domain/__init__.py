"""
Pure domain layer.

This module contains data transfer objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- The entity store
- I/O (SystemClock excepted)

All domain objects are immutable and deterministic.
"""

from billing_kernel.domain.aggregation import (
    MonthlySummary,
    month_window,
    monthly_summary,
    recent_activity,
    window_containing,
)
from billing_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
)
from billing_kernel.domain.dtos import (
    AppointmentInfo,
    ClientInfo,
    PaymentInfo,
    QuoteInfo,
    QuoteSnapshot,
)
from billing_kernel.domain.identity import (
    IdentityProvider,
    StaticIdentityProvider,
    require_account,
)
from billing_kernel.domain.statuses import (
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
    QuoteStatus,
    parse_status,
)
from billing_kernel.domain.transitions import (
    PaymentTransition,
    QuoteTransition,
    plan_payment_transition,
    plan_quote_transition,
)
from billing_kernel.domain.values import MoneyAccumulator

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Identity
    "IdentityProvider",
    "StaticIdentityProvider",
    "require_account",
    # Statuses
    "QuoteStatus",
    "PaymentStatus",
    "PaymentMethod",
    "AppointmentStatus",
    "parse_status",
    # DTOs
    "ClientInfo",
    "QuoteInfo",
    "QuoteSnapshot",
    "PaymentInfo",
    "AppointmentInfo",
    # Transitions
    "QuoteTransition",
    "PaymentTransition",
    "plan_quote_transition",
    "plan_payment_transition",
    # Aggregation
    "MonthlySummary",
    "MoneyAccumulator",
    "monthly_summary",
    "recent_activity",
    "month_window",
    "window_containing",
]
