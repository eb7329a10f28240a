"""Supabase adapter implementing the lookup and selection interfaces.

The adapter talks to Supabase's PostgREST endpoint with :mod:`httpx` so the
whole surface stays asynchronous.  Every transport or status failure is
raised as :class:`~collab_curation.adapters.base.LookupServiceError`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.models import (
    COMMUNICATIONS_PAGE_ID,
    City,
    Collaboration,
    ParticipationMode,
    SelectionSet,
    Template,
)
from .base import (
    CAMPAIGN_SELECTIONS,
    COLLAB_SELECTIONS,
    COMMUNICATION_SELECTIONS,
    CREATOR_SELECTIONS,
    DEFAULT_CITIES,
    LookupService,
    LookupServiceError,
    SelectionStore,
)

TEMPLATE_COLUMNS = "id,title,type,instructions,display_text,requirements"
COLLAB_COLUMNS = "id,title,type,participation_mode,location,template_id,period_id,metadata"

log = logging.getLogger("curation.supabase")


def _collaboration(row: dict[str, Any], participant_count: int = 0) -> Collaboration:
    metadata = row.get("metadata") or {}
    return Collaboration(
        id=str(row["id"]),
        title=row.get("title") or "",
        type=row.get("type") or "chain",
        participation_mode=row.get("participation_mode") or "community",
        template_id=row.get("template_id"),
        period_id=row.get("period_id"),
        location=row.get("location"),
        description=metadata.get("description") or "",
        participant_count=participant_count,
    )


def _template(row: dict[str, Any]) -> Template:
    return Template.model_validate(
        {**row, "title": row.get("title") or "", "type": row.get("type") or "chain"}
    )


class SupabaseAdapter(LookupService, SelectionStore):
    """Adapter that sends requests directly to the Supabase REST API."""

    def __init__(
        self, url: str, key: str, client: httpx.AsyncClient | None = None
    ) -> None:
        """Store the project ``url``, API ``key`` and optional HTTP ``client``."""
        self.api_base = url.rstrip("/") + "/rest/v1"
        self.key = key
        self.client = client or httpx.AsyncClient()

    # ------------------------------------------------------------------
    # Internal helpers
    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            **extra,
        }

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self.client.request(
                method,
                f"{self.api_base}/{table}",
                params=params,
                json=json,
                headers=self._headers(**(headers or {})),
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise LookupServiceError(f"{method} {table} failed: {exc}") from exc
        return response

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = await self._request("GET", table, params=params)
        data = response.json()
        if not isinstance(data, list):
            raise LookupServiceError(f"Unexpected response from {table}")
        return data

    async def participant_count(self, collab_id: str) -> int:
        """Return the number of active participants of ``collab_id``."""
        response = await self._request(
            "HEAD",
            "collab_participants",
            params={"collab_id": f"eq.{collab_id}", "status": "eq.active"},
            headers={"Prefer": "count=exact"},
        )
        # PostgREST answers with ``Content-Range: 0-9/42`` or ``*/0``.
        total = response.headers.get("content-range", "").rpartition("/")[2]
        return int(total) if total.isdigit() else 0

    # ------------------------------------------------------------------
    # LookupService
    async def resolve_template(self, template_id: str) -> Template | None:
        rows = await self._select(
            "collab_templates",
            {"id": f"eq.{template_id}", "select": TEMPLATE_COLUMNS},
        )
        return _template(rows[0]) if rows else None

    async def find_existing_collaboration(
        self,
        template_id: str,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
    ) -> str | None:
        params = {
            "template_id": f"eq.{template_id}",
            "participation_mode": f"eq.{ParticipationMode(mode).value}",
            "period_id": f"eq.{period_id}",
            "select": "id",
            "limit": "1",
        }
        if mode == ParticipationMode.LOCAL:
            params["location"] = f"ilike.{city}"
        rows = await self._select("collabs", params)
        return str(rows[0]["id"]) if rows else None

    async def create_collaboration(
        self,
        template: Template,
        mode: ParticipationMode,
        period_id: str,
        city: str | None = None,
        *,
        title: str,
    ) -> str:
        payload = {
            "title": title,
            "type": template.type,
            "participation_mode": ParticipationMode(mode).value,
            "template_id": template.id,
            "period_id": period_id,
            "location": city,
            "metadata": {"description": template.display_text or ""},
        }
        response = await self._request(
            "POST",
            "collabs",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        data = response.json()
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict) or "id" not in row:
            raise LookupServiceError("Collaboration insert returned no id")
        return str(row["id"])

    async def get_collaboration(self, collab_id: str) -> Collaboration | None:
        rows = await self._select(
            "collabs", {"id": f"eq.{collab_id}", "select": COLLAB_COLUMNS}
        )
        if not rows:
            return None
        return _collaboration(rows[0], await self.participant_count(collab_id))

    async def list_templates(self, period_id: str) -> list[Template]:
        rows = await self._select(
            "period_templates",
            {
                "period_id": f"eq.{period_id}",
                "select": f"template_id,collab_templates:template_id({TEMPLATE_COLUMNS})",
            },
        )
        templates: list[Template] = []
        for row in rows:
            nested = row.get("collab_templates") or []
            for item in nested if isinstance(nested, list) else [nested]:
                if item:
                    templates.append(_template(item))
        return templates

    async def joined_collaborations(self, profile_id: str) -> list[Collaboration]:
        rows = await self._select(
            "collab_participants",
            {
                "profile_id": f"eq.{profile_id}",
                "status": "eq.active",
                "select": f"collabs:collab_id({COLLAB_COLUMNS})",
            },
        )
        collabs: list[Collaboration] = []
        for row in rows:
            nested = row.get("collabs")
            if isinstance(nested, list):
                nested = nested[0] if nested else None
            if nested:
                collabs.append(
                    _collaboration(nested, await self.participant_count(nested["id"]))
                )
        return collabs

    async def city_participant_counts(
        self, template_id: str, period_id: str
    ) -> dict[str, int]:
        rows = await self._select(
            "collabs",
            {
                "template_id": f"eq.{template_id}",
                "period_id": f"eq.{period_id}",
                "participation_mode": "eq.local",
                "select": "id,location",
            },
        )
        counts: dict[str, int] = {}
        for row in rows:
            if row.get("location"):
                counts[row["location"]] = counts.get(
                    row["location"], 0
                ) + await self.participant_count(row["id"])
        return counts

    async def available_cities(self) -> list[City]:
        rows = await self._select("cities", {"select": "name,state"})
        cities = [City.model_validate(row) for row in rows]
        return cities or [c.model_copy() for c in DEFAULT_CITIES]

    # ------------------------------------------------------------------
    # SelectionStore
    async def load_selection(self, curator_id: str, period_id: str) -> SelectionSet:
        scope = {"curator_id": f"eq.{curator_id}", "period_id": f"eq.{period_id}"}
        creators = await self._select(CREATOR_SELECTIONS, {**scope, "select": "creator_id"})
        campaigns = await self._select(
            CAMPAIGN_SELECTIONS, {**scope, "select": "campaign_id"}
        )
        collabs = await self._select(
            COLLAB_SELECTIONS, {**scope, "select": "collab_id,source_id"}
        )
        comms = await self._select(
            COMMUNICATION_SELECTIONS, {**scope, "select": "include_communications"}
        )
        collab_ids = [r.get("source_id") or r.get("collab_id") for r in collabs]
        return SelectionSet(
            contributors=[r["creator_id"] for r in creators if r.get("creator_id")],
            collaborations=list(dict.fromkeys(c for c in collab_ids if c)),
            communications=(
                [COMMUNICATIONS_PAGE_ID]
                if any(r.get("include_communications") for r in comms)
                else []
            ),
            ads=[r["campaign_id"] for r in campaigns if r.get("campaign_id")],
        )

    async def delete_rows(self, table: str, curator_id: str, period_id: str) -> None:
        await self._request(
            "DELETE",
            table,
            params={"curator_id": f"eq.{curator_id}", "period_id": f"eq.{period_id}"},
        )

    async def insert_row(self, table: str, row: dict) -> None:
        await self._request("POST", table, json=row)

    async def insert_rows(self, table: str, rows: list[dict]) -> None:
        if rows:
            await self._request("POST", table, json=rows)

    async def replace_rows(
        self, table: str, curator_id: str, period_id: str, rows: list[dict]
    ) -> None:
        """Delete then insert; a failed insert writes the prior rows back.

        PostgREST has no multi-statement transaction, so the previous rows
        are read first and re-inserted when the new ones are rejected.
        """
        prior: list[dict[str, Any]] = []
        if rows:
            prior = await self._select(
                table,
                {
                    "curator_id": f"eq.{curator_id}",
                    "period_id": f"eq.{period_id}",
                    "select": "*",
                },
            )
        await self.delete_rows(table, curator_id, period_id)
        try:
            await self.insert_rows(table, rows)
        except LookupServiceError:
            if prior:
                try:
                    await self.insert_rows(table, prior)
                except LookupServiceError:
                    log.error("Could not restore %d rows of %s", len(prior), table)
                else:
                    log.warning("Restored %d rows of %s after failed insert", len(prior), table)
            raise

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
