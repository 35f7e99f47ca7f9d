"""
Kernel services -- the imperative shell over the entity store.

Services validate input, plan status transitions with the pure domain
functions, write through ``EntityStore`` and return frozen DTOs.
"""

from billing_kernel.services.appointment_service import AppointmentService
from billing_kernel.services.base import BaseService
from billing_kernel.services.client_service import ClientService
from billing_kernel.services.linkage_service import (
    LinkageOutcome,
    LinkageResult,
    LinkageService,
)
from billing_kernel.services.payment_service import PaymentService
from billing_kernel.services.quote_service import QuoteService

__all__ = [
    "AppointmentService",
    "BaseService",
    "ClientService",
    "LinkageOutcome",
    "LinkageResult",
    "LinkageService",
    "PaymentService",
    "QuoteService",
]
