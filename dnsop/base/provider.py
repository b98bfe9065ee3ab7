"""DNS provider blueprint."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dnsop.model.endpoint import Changes, Endpoint, Zone


class ProviderBlueprint(ABC):
    """Abstract interface for a DNS backend hosting shared zones.

    Maps to AWS Route 53, GCP Cloud DNS and the in-memory provider.
    Implementations are synchronous; the reconciliation driver runs them
    in worker threads.
    """

    # --- Zone catalog ---

    @abstractmethod
    def list_zones(self) -> list[Zone]:
        """List every zone the credentials can manage.

        Domain names are returned lower case without a trailing dot.
        """

    # --- Record management ---

    @abstractmethod
    def list_records(self, zone_id: str) -> list[Endpoint]:
        """Return the full record snapshot of a zone, regardless of writer.

        Args:
            zone_id: Zone identifier as returned by :meth:`list_zones`.

        Raises:
            ZoneNotFoundError: If the zone does not exist.
        """

    def adjust_endpoints(self, endpoints: list[Endpoint]) -> list[Endpoint]:
        """Rewrite desired endpoints into the form the backend reads back.

        Called on desired endpoints before they are compared with
        :meth:`list_records` output. The default is the identity.
        """
        return list(endpoints)

    @abstractmethod
    def apply_changes(self, zone_id: str, changes: Changes) -> None:
        """Apply a change set to a zone as a single all-or-nothing operation.

        Args:
            zone_id: Zone identifier.
            changes: Records to create, replace (``update_old`` →
                ``update_new``, matched by position) and delete.

        Raises:
            RecordAlreadyExistsError: A created record already exists.
            RecordNotFoundError: An updated or deleted record is missing.
            TransientProviderError: Throttling or a server-side failure.
        """
