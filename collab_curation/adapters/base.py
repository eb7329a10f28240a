"""Interfaces of the externally owned storage the curation core consumes."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..core.models import City, Collaboration, ParticipationMode, SelectionSet, Template

CREATOR_SELECTIONS = "curator_creator_selections"
CAMPAIGN_SELECTIONS = "curator_campaign_selections"
COLLAB_SELECTIONS = "curator_collab_selections"
COMMUNICATION_SELECTIONS = "curator_communication_selections"

SELECTION_TABLES = (
    CREATOR_SELECTIONS,
    CAMPAIGN_SELECTIONS,
    COLLAB_SELECTIONS,
    COMMUNICATION_SELECTIONS,
)

DEFAULT_CITIES = (
    City(name="New York", state="NY"),
    City(name="Los Angeles", state="CA"),
    City(name="Chicago", state="IL"),
    City(name="San Francisco", state="CA"),
    City(name="Miami", state="FL"),
    City(name="Austin", state="TX"),
)


class LookupServiceError(Exception):
    """Raised when the backing service fails to answer a request."""


class LookupService(ABC):
    """Read and create access to templates, cities and collaborations."""

    @abstractmethod
    async def resolve_template(self, template_id: str) -> Template | None:
        """Return the template or ``None`` when it does not exist."""

    @abstractmethod
    async def find_existing_collaboration(
        self,
        template_id: str,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
    ) -> str | None:
        """Return the id of the collaboration for this key, if any."""

    @abstractmethod
    async def create_collaboration(
        self,
        template: Template,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
        *,
        title: str,
    ) -> str:
        """Create a collaboration row and return its identifier."""

    @abstractmethod
    async def get_collaboration(self, collab_id: str) -> Collaboration | None:
        """Return a collaboration row by id."""

    @abstractmethod
    async def list_templates(self, period_id: str) -> list[Template]:
        """Return the templates offered during ``period_id``."""

    @abstractmethod
    async def joined_collaborations(self, profile_id: str) -> list[Collaboration]:
        """Return the collaborations ``profile_id`` actively participates in."""

    @abstractmethod
    async def city_participant_counts(
        self, template_id: str, period_id: str
    ) -> dict[str, int]:
        """Return city -> active participants of the template's local rows."""

    @abstractmethod
    async def available_cities(self) -> list[City]:
        """Return the cities offered for local participation."""


class SelectionStore(ABC):
    """Delete/insert primitives for a curator's persisted selection."""

    @abstractmethod
    async def load_selection(self, curator_id: str, period_id: str) -> SelectionSet:
        """Return the persisted selection of the curator for the period."""

    @abstractmethod
    async def delete_rows(self, table: str, curator_id: str, period_id: str) -> None:
        """Delete every row of ``table`` for the curator and period."""

    @abstractmethod
    async def insert_row(self, table: str, row: dict) -> None:
        """Insert a single row into ``table``."""

    @abstractmethod
    async def insert_rows(self, table: str, rows: list[dict]) -> None:
        """Insert ``rows`` into ``table`` in one statement."""

    @abstractmethod
    async def replace_rows(
        self, table: str, curator_id: str, period_id: str, rows: list[dict]
    ) -> None:
        """Replace the curator's rows in ``table`` as one unit where possible."""
