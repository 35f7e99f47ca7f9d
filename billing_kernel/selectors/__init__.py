"""Read-only selectors over the entity store."""

from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.dashboard_selector import DashboardSelector

__all__ = ["BaseSelector", "DashboardSelector"]
