"""Data models for the curation domain.

The models are implemented using :mod:`pydantic` so that they provide
runtime validation and convenient serialisation to and from the rows the
storage backends exchange.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

CollabType = Literal["chain", "theme", "narrative"]

COMMUNICATIONS_PAGE_ID = "communications-page"


class ParticipationMode(str, Enum):
    """How a curator participates in a collaboration template."""

    COMMUNITY = "community"
    LOCAL = "local"
    PRIVATE = "private"


class Category(str, Enum):
    """Content categories competing for magazine slots."""

    CONTRIBUTOR = "contributor"
    COLLABORATION = "collaboration"
    COMMUNICATION = "communication"
    AD = "ad"


class Template(BaseModel):
    """A reusable collaboration definition offered during a period.

    Attributes
    ----------
    id:
        Identifier of the template row.
    title:
        Display name shown to curators and used to title new collaborations.
    type:
        One of ``chain``, ``theme`` or ``narrative``.
    instructions, display_text, requirements:
        Descriptive text owned by whoever authored the template.

    """

    id: str
    title: str
    type: CollabType = "chain"
    instructions: str | None = None
    display_text: str | None = None
    requirements: str | None = None


class Collaboration(BaseModel):
    """A persisted collaboration row."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ""
    type: CollabType = "chain"
    participation_mode: ParticipationMode = ParticipationMode.COMMUNITY
    template_id: str | None = None
    period_id: str | None = None
    location: str | None = None
    description: str = ""
    participant_count: int = 0


class City(BaseModel):
    """A city offered for local participation."""

    name: str
    state: str | None = None
    participant_count: int = 0

    @property
    def label(self) -> str:
        return f"{self.name}, {self.state}" if self.state else self.name


class SelectionSet(BaseModel):
    """Ordered selections of a curator, one list per :class:`Category`."""

    contributors: list[str] = Field(default_factory=list)
    collaborations: list[str] = Field(default_factory=list)
    communications: list[str] = Field(default_factory=list)
    ads: list[str] = Field(default_factory=list)

    def entries(self, category: Category) -> list[str]:
        """Return the (mutable) list backing ``category``."""
        return getattr(self, _FIELDS[Category(category)])

    def is_empty(self) -> bool:
        return not any(self.entries(c) for c in Category)


_FIELDS = {
    Category.CONTRIBUTOR: "contributors",
    Category.COLLABORATION: "collaborations",
    Category.COMMUNICATION: "communications",
    Category.AD: "ads",
}


class CollabSelectionRow(BaseModel):
    """One persisted collaboration pick of a curator for a period.

    ``source_id`` keeps the identifier the curator originally selected,
    which may be a virtual identifier, so a later save can reuse it.
    """

    collab_id: str
    source_id: str
    participation_mode: ParticipationMode
    location: str | None = None
