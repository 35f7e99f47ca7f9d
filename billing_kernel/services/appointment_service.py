"""
Service layer for Appointment operations (the agenda).

Appointments are independent of the quote/payment link.  Besides CRUD the
service answers the agenda's questions: what is on a given day, how many
visits are still ahead, how many were completed.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from billing_kernel.domain.dtos import AppointmentInfo, ClientInfo
from billing_kernel.domain.statuses import AppointmentStatus, parse_status
from billing_kernel.domain.values import ensure_aware
from billing_kernel.exceptions import MissingFieldError
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import UNSET, BaseService, require_text
from billing_kernel.store.base import Table

logger = get_logger("services.appointment")


class AppointmentService(BaseService):
    """Service for managing appointments.  Returns AppointmentInfo DTOs."""

    def _client(self, client_id: UUID | None) -> ClientInfo:
        if client_id is None:
            raise MissingFieldError("appointment", "client_id")
        return ClientInfo.from_row(self.store.get(Table.CLIENTS, client_id))

    def get_appointment(self, appointment_id: UUID) -> AppointmentInfo:
        return AppointmentInfo.from_row(self.store.get(Table.APPOINTMENTS, appointment_id))

    def list_appointments(self) -> list[AppointmentInfo]:
        """All appointments, earliest date first."""
        appointments = [
            AppointmentInfo.from_row(row) for row in self.store.list(Table.APPOINTMENTS)
        ]
        appointments.sort(key=lambda a: (a.date, str(a.id)))
        return appointments

    def appointments_on(
        self, day: date, tz: str | ZoneInfo = "UTC"
    ) -> list[AppointmentInfo]:
        """Appointments whose date falls on ``day`` in timezone ``tz``."""
        zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
        return [
            a for a in self.list_appointments() if a.date.astimezone(zone).date() == day
        ]

    def upcoming_count(self, now: datetime | None = None) -> int:
        """Scheduled appointments strictly after ``now`` (default: clock)."""
        moment = ensure_aware(now) if now is not None else self.clock.now()
        return sum(
            1
            for a in self.list_appointments()
            if a.status == AppointmentStatus.SCHEDULED and a.date > moment
        )

    def completed_count(self) -> int:
        rows = self.store.list(
            Table.APPOINTMENTS, {"status": AppointmentStatus.COMPLETED.value}
        )
        return len(rows)

    def create_appointment(
        self,
        title: str,
        client_id: UUID,
        date: datetime,
        status: AppointmentStatus | str = AppointmentStatus.SCHEDULED,
        notes: str | None = None,
    ) -> AppointmentInfo:
        """
        Schedule an appointment for a client.

        Raises:
            MissingFieldError: If title, client_id or date is missing.
            UnknownStatusError: If status is not an appointment status.
            RowNotFoundError: If the client does not exist.
        """
        target = parse_status(AppointmentStatus, status, "appointment status")
        title = require_text("appointment", "title", title)
        if date is None:
            raise MissingFieldError("appointment", "date")
        client = self._client(client_id)

        row = self.store.insert(
            Table.APPOINTMENTS,
            {
                "title": title,
                "client_id": client.id,
                "client_name": client.name,
                "date": ensure_aware(date),
                "status": target.value,
                "notes": notes or None,
            },
        )
        appointment = AppointmentInfo.from_row(row)
        logger.info(
            "appointment_created",
            extra={"appointment_id": appointment.id, "date": appointment.date},
        )
        return appointment

    def update_appointment(
        self,
        appointment_id: UUID,
        *,
        title: str | None = None,
        client_id: UUID | None = None,
        date: datetime | None = None,
        status: AppointmentStatus | str | None = None,
        notes: Any = UNSET,
    ) -> AppointmentInfo:
        """Edit an appointment.  Omitted arguments keep their stored value."""
        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = require_text("appointment", "title", title)
        if client_id is not None:
            client = self._client(client_id)
            patch["client_id"] = client.id
            patch["client_name"] = client.name
        if date is not None:
            patch["date"] = ensure_aware(date)
        if status is not None:
            patch["status"] = parse_status(
                AppointmentStatus, status, "appointment status"
            ).value
        if notes is not UNSET:
            patch["notes"] = notes or None

        if patch:
            self.store.update(Table.APPOINTMENTS, appointment_id, patch)
        logger.info(
            "appointment_updated",
            extra={"appointment_id": appointment_id, "fields": sorted(patch)},
        )
        return self.get_appointment(appointment_id)

    def delete_appointment(self, appointment_id: UUID) -> None:
        self.store.delete(Table.APPOINTMENTS, appointment_id)
        logger.info("appointment_deleted", extra={"appointment_id": appointment_id})
