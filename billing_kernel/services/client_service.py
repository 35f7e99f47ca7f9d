"""
Service layer for Client operations.

Clients are the account's customers.  Quotes, payments and appointments
copy the client's name when they are saved; editing a client here never
rewrites those copies.  Deleting a client that anything still references
is refused by the store.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from billing_kernel.domain.dtos import ClientInfo
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import (
    UNSET,
    BaseService,
    matches_search,
    require_text,
)
from billing_kernel.store.base import Table

logger = get_logger("services.client")


class ClientService(BaseService):
    """Service for managing clients.  Returns ClientInfo DTOs."""

    def get_client(self, client_id: UUID) -> ClientInfo:
        """
        Get client by ID.

        Raises:
            RowNotFoundError: If the client does not exist for this account.
        """
        return ClientInfo.from_row(self.store.get(Table.CLIENTS, client_id))

    def list_clients(self, search: str | None = None) -> list[ClientInfo]:
        """
        List clients sorted by name.

        Args:
            search: Optional case-insensitive filter on name or service type.
        """
        clients = [ClientInfo.from_row(row) for row in self.store.list(Table.CLIENTS)]
        clients.sort(key=lambda c: (c.name.lower(), str(c.id)))
        return [c for c in clients if matches_search(search, c.name, c.service_type)]

    def create_client(
        self,
        name: str,
        phone: str,
        service_type: str,
        notes: str | None = None,
    ) -> ClientInfo:
        """
        Create a client.

        Raises:
            MissingFieldError: If name, phone or service_type is blank.
        """
        row = self.store.insert(
            Table.CLIENTS,
            {
                "name": require_text("client", "name", name),
                "phone": require_text("client", "phone", phone),
                "service_type": require_text("client", "service_type", service_type),
                "notes": notes or None,
            },
        )
        client = ClientInfo.from_row(row)
        logger.info("client_created", extra={"client_id": client.id})
        return client

    def update_client(
        self,
        client_id: UUID,
        *,
        name: str | None = None,
        phone: str | None = None,
        service_type: str | None = None,
        notes: Any = UNSET,
    ) -> ClientInfo:
        """
        Edit a client.  Omitted arguments keep their stored value.

        Existing quotes and payments keep the name they were saved with.
        """
        patch: dict[str, Any] = {}
        if name is not None:
            patch["name"] = require_text("client", "name", name)
        if phone is not None:
            patch["phone"] = require_text("client", "phone", phone)
        if service_type is not None:
            patch["service_type"] = require_text("client", "service_type", service_type)
        if notes is not UNSET:
            patch["notes"] = notes or None

        if patch:
            self.store.update(Table.CLIENTS, client_id, patch)
        logger.info("client_updated", extra={"client_id": client_id, "fields": sorted(patch)})
        return self.get_client(client_id)

    def delete_client(self, client_id: UUID) -> None:
        """
        Delete a client.

        Raises:
            RowNotFoundError: If the client does not exist.
            ReferentialConflictError: If a quote, payment or appointment
                still references the client.
        """
        self.store.delete(Table.CLIENTS, client_id)
        logger.info("client_deleted", extra={"client_id": client_id})
