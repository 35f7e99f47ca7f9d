"""
DashboardSelector -- the figures on the account's dashboard.

Loads the account's payments and quotes once per call and runs the pure
aggregation functions over them: the monthly summary (received, pending,
lost) and the recent-activity feed.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

from billing_kernel.domain.aggregation import (
    DEFAULT_RECENT_LIMIT,
    MonthlySummary,
    month_window,
    monthly_summary,
    recent_activity,
    window_containing,
)
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import PaymentInfo, QuoteInfo
from billing_kernel.logging_config import get_logger
from billing_kernel.selectors.base import BaseSelector
from billing_kernel.store.base import EntityStore, Table

logger = get_logger("selectors.dashboard")


class DashboardSelector(BaseSelector):
    """
    Read-only dashboard queries.

    Args (constructor):
        store: Account-scoped entity store.
        clock: Clock deciding which month is "current".
        timezone: Reporting timezone for month boundaries.
        recent_limit: Default size of the recent-activity feed.
    """

    def __init__(
        self,
        store: EntityStore,
        clock: Clock | None = None,
        timezone: str | ZoneInfo = "UTC",
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        super().__init__(store, clock)
        self.timezone = timezone if isinstance(timezone, ZoneInfo) else ZoneInfo(timezone)
        self.recent_limit = recent_limit

    @classmethod
    def from_config(cls, store: EntityStore, config, clock: Clock | None = None):
        """Build a selector using the reporting settings of a KernelConfig."""
        return cls(
            store,
            clock=clock,
            timezone=config.reporting_timezone,
            recent_limit=config.recent_activity_limit,
        )

    def _payments(self) -> list[PaymentInfo]:
        return [PaymentInfo.from_row(row) for row in self.store.list(Table.PAYMENTS)]

    def _quotes(self) -> list[QuoteInfo]:
        return [QuoteInfo.from_row(row) for row in self.store.list(Table.QUOTES)]

    def monthly_summary(self, year: int, month: int) -> MonthlySummary:
        """Summary for one calendar month in the reporting timezone."""
        start, end = month_window(year, month, self.timezone)
        summary = monthly_summary(self._payments(), self._quotes(), start, end)
        logger.debug(
            "monthly_summary_computed",
            extra={
                "window_start": summary.window_start,
                "received": summary.received,
                "pending": summary.pending,
                "lost_this_month": summary.lost_this_month,
            },
        )
        return summary

    def current_month_summary(self) -> MonthlySummary:
        """Summary for the month containing ``clock.now()``."""
        start, end = window_containing(self.clock.now(), self.timezone)
        return monthly_summary(self._payments(), self._quotes(), start, end)

    def recent_activity(self, limit: int | None = None) -> list[PaymentInfo]:
        """Most recently created payments, newest first (all time)."""
        return recent_activity(
            self._payments(), self.recent_limit if limit is None else limit
        )
