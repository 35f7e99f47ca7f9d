"""ORM models for the billing kernel."""

from billing_kernel.models.appointment import Appointment
from billing_kernel.models.client import Client
from billing_kernel.models.payment import Payment
from billing_kernel.models.quote import Quote

__all__ = [
    "Appointment",
    "Client",
    "Payment",
    "Quote",
]
