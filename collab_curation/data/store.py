"""JSON file backend implementing the lookup and selection interfaces."""

from __future__ import annotations

import json
import os

from ..adapters.base import (
    CAMPAIGN_SELECTIONS,
    COLLAB_SELECTIONS,
    COMMUNICATION_SELECTIONS,
    CREATOR_SELECTIONS,
    DEFAULT_CITIES,
    SELECTION_TABLES,
    LookupService,
    LookupServiceError,
    SelectionStore,
)
from ..core.models import (
    COMMUNICATIONS_PAGE_ID,
    City,
    Collaboration,
    ParticipationMode,
    SelectionSet,
    Template,
)


def _same_city(a: str | None, b: str | None) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


class CurationStore(LookupService, SelectionStore):
    """Simple JSON based persistence layer.

    Used for local development and the test-suite in place of Supabase.
    Every mutation rewrites the file atomically.
    """

    def __init__(self, path: str = "curation_data.json") -> None:
        self.path = path
        self.templates: dict[str, Template] = {}
        self.period_templates: dict[str, list[str]] = {}
        self.collabs: dict[str, Collaboration] = {}
        self.participants: list[dict] = []
        self.cities: list[City] = []
        self.selections: dict[str, list[dict]] = {t: [] for t in SELECTION_TABLES}
        self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """Load store contents from ``self.path`` if it exists."""
        if not os.path.exists(self.path):
            return

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        self.templates = {
            t["id"]: Template.model_validate(t) for t in data.get("templates", [])
        }
        self.period_templates = {
            pid: list(tids) for pid, tids in data.get("period_templates", {}).items()
        }
        self.collabs = {
            c["id"]: Collaboration.model_validate(c) for c in data.get("collabs", [])
        }
        self.participants = list(data.get("participants", []))
        self.cities = [City.model_validate(c) for c in data.get("cities", [])]
        for table in SELECTION_TABLES:
            self.selections[table] = list(data.get("selections", {}).get(table, []))

    def _to_dict(self) -> dict:
        """Serialise the current state to a JSON-serialisable dict."""
        return {
            "templates": [t.model_dump(mode="json") for t in self.templates.values()],
            "period_templates": self.period_templates,
            "collabs": [
                c.model_dump(mode="json", exclude={"participant_count"})
                for c in self.collabs.values()
            ],
            "participants": self.participants,
            "cities": [c.model_dump(mode="json") for c in self.cities],
            "selections": self.selections,
        }

    def save(self) -> None:
        """Persist the current state atomically."""
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------
    def add_template(self, template: Template, period_id: str | None = None) -> None:
        self.templates[template.id] = template
        if period_id is not None:
            tids = self.period_templates.setdefault(period_id, [])
            if template.id not in tids:
                tids.append(template.id)
        self.save()

    def add_collaboration(self, collab: Collaboration) -> str:
        self.collabs[collab.id] = collab
        self.save()
        return collab.id

    def join_collaboration(
        self, collab_id: str, profile_id: str, status: str = "active"
    ) -> str | None:
        if collab_id not in self.collabs:
            return "Collaboration not found."
        self.participants.append(
            {"collab_id": collab_id, "profile_id": profile_id, "status": status}
        )
        self.save()
        return None

    def participant_count(self, collab_id: str) -> int:
        return sum(
            1
            for p in self.participants
            if p["collab_id"] == collab_id and p.get("status") == "active"
        )

    def _with_count(self, collab: Collaboration) -> Collaboration:
        return collab.model_copy(
            update={"participant_count": self.participant_count(collab.id)}
        )

    # ------------------------------------------------------------------
    # LookupService
    # ------------------------------------------------------------------
    async def resolve_template(self, template_id: str) -> Template | None:
        return self.templates.get(template_id)

    async def find_existing_collaboration(
        self,
        template_id: str,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
    ) -> str | None:
        for collab in self.collabs.values():
            if (
                collab.template_id == template_id
                and collab.participation_mode == mode
                and collab.period_id == period_id
                and (mode != ParticipationMode.LOCAL or _same_city(collab.location, city))
            ):
                return collab.id
        return None

    async def create_collaboration(
        self,
        template: Template,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
        *,
        title: str,
    ) -> str:
        collab = Collaboration(
            title=title,
            type=template.type,
            participation_mode=mode,
            template_id=template.id,
            period_id=period_id,
            location=city,
            description=template.display_text or "",
        )
        return self.add_collaboration(collab)

    async def get_collaboration(self, collab_id: str) -> Collaboration | None:
        collab = self.collabs.get(collab_id)
        return self._with_count(collab) if collab else None

    async def list_templates(self, period_id: str) -> list[Template]:
        return [
            self.templates[tid]
            for tid in self.period_templates.get(period_id, [])
            if tid in self.templates
        ]

    async def joined_collaborations(self, profile_id: str) -> list[Collaboration]:
        ids = dict.fromkeys(
            p["collab_id"]
            for p in self.participants
            if p["profile_id"] == profile_id and p.get("status") == "active"
        )
        return [self._with_count(self.collabs[cid]) for cid in ids if cid in self.collabs]

    async def city_participant_counts(
        self, template_id: str, period_id: str
    ) -> dict[str, int]:
        counts: dict[str, int] = {}
        for collab in self.collabs.values():
            if (
                collab.template_id == template_id
                and collab.period_id == period_id
                and collab.participation_mode == ParticipationMode.LOCAL
                and collab.location
            ):
                counts[collab.location] = counts.get(
                    collab.location, 0
                ) + self.participant_count(collab.id)
        return counts

    async def available_cities(self) -> list[City]:
        return [c.model_copy() for c in (self.cities or DEFAULT_CITIES)]

    # ------------------------------------------------------------------
    # SelectionStore
    # ------------------------------------------------------------------
    def _rows(self, table: str) -> list[dict]:
        if table not in self.selections:
            raise LookupServiceError(f"Unknown table {table}")
        return self.selections[table]

    def _matching(self, table: str, curator_id: str, period_id: str) -> list[dict]:
        return [
            r
            for r in self._rows(table)
            if r.get("curator_id") == curator_id and r.get("period_id") == period_id
        ]

    async def load_selection(self, curator_id: str, period_id: str) -> SelectionSet:
        collabs = [
            r.get("source_id") or r["collab_id"]
            for r in self._matching(COLLAB_SELECTIONS, curator_id, period_id)
        ]
        include_comms = any(
            r.get("include_communications")
            for r in self._matching(COMMUNICATION_SELECTIONS, curator_id, period_id)
        )
        return SelectionSet(
            contributors=[
                r["creator_id"]
                for r in self._matching(CREATOR_SELECTIONS, curator_id, period_id)
            ],
            collaborations=list(dict.fromkeys(collabs)),
            communications=[COMMUNICATIONS_PAGE_ID] if include_comms else [],
            ads=[
                r["campaign_id"]
                for r in self._matching(CAMPAIGN_SELECTIONS, curator_id, period_id)
            ],
        )

    async def delete_rows(self, table: str, curator_id: str, period_id: str) -> None:
        self.selections[table] = [
            r
            for r in self._rows(table)
            if not (r.get("curator_id") == curator_id and r.get("period_id") == period_id)
        ]
        self.save()

    async def insert_row(self, table: str, row: dict) -> None:
        self._rows(table).append(dict(row))
        self.save()

    async def insert_rows(self, table: str, rows: list[dict]) -> None:
        self._rows(table).extend(dict(r) for r in rows)
        self.save()

    async def replace_rows(
        self, table: str, curator_id: str, period_id: str, rows: list[dict]
    ) -> None:
        kept = [
            r
            for r in self._rows(table)
            if not (r.get("curator_id") == curator_id and r.get("period_id") == period_id)
        ]
        self.selections[table] = kept + [dict(r) for r in rows]
        self.save()
