"""Resolve a curator's selection against storage and persist it.

Virtual identifiers are turned into real collaboration rows (looking them
up or creating them), then each category of the curator's persisted
selection is replaced.  Every category is replaced on its own; there is no
transaction spanning categories, so a failure part way through leaves the
earlier categories saved and is reported by name.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from datetime import UTC
from enum import Enum

from pydantic import BaseModel, Field

from ..adapters.base import (
    CAMPAIGN_SELECTIONS,
    COLLAB_SELECTIONS,
    COMMUNICATION_SELECTIONS,
    CREATOR_SELECTIONS,
    SELECTION_TABLES,
    LookupService,
    LookupServiceError,
    SelectionStore,
)
from .identifiers import DecodedIdentifier, IdentifierDecodeError, decode
from .models import Category, CollabSelectionRow, ParticipationMode, SelectionSet

log = logging.getLogger("curation.engine")

# Failures of the external storage that are tolerated per entry or category.
BACKEND_ERRORS = (LookupServiceError, OSError)

_TABLE_CATEGORIES = {
    CREATOR_SELECTIONS: Category.CONTRIBUTOR,
    CAMPAIGN_SELECTIONS: Category.AD,
    COLLAB_SELECTIONS: Category.COLLABORATION,
    COMMUNICATION_SELECTIONS: Category.COMMUNICATION,
}


class EntryState(str, Enum):
    FOUND = "found"
    CREATED = "created"
    FAILED = "failed"
    DROPPED = "dropped"


class EntryOutcome(BaseModel):
    """Terminal state of one collaboration entry within a save."""

    source_id: str
    state: EntryState
    collab_id: str | None = None
    participation_mode: ParticipationMode | None = None
    location: str | None = None
    error: str | None = None

    @property
    def resolved(self) -> bool:
        return self.state in (EntryState.FOUND, EntryState.CREATED)

    def to_row(self) -> CollabSelectionRow:
        return CollabSelectionRow(
            collab_id=self.collab_id,
            source_id=self.source_id,
            participation_mode=self.participation_mode,
            location=self.location,
        )


class ReplaceError(Exception):
    """Raised when replacing one category's persisted rows fails."""

    def __init__(self, category: Category, reason: str) -> None:
        super().__init__(f"{category.value}: {reason}")
        self.category = category


class SaveReport(BaseModel):
    """Result of :meth:`ReconciliationEngine.save`."""

    outcomes: list[EntryOutcome] = Field(default_factory=list)
    persisted: list[CollabSelectionRow] = Field(default_factory=list)
    failed_entries: list[str] = Field(default_factory=list)
    failed_categories: list[Category] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_entries and not self.failed_categories

    @property
    def partial(self) -> bool:
        return not self.ok

    @property
    def message(self) -> str:
        if self.ok:
            return "Selections saved."
        parts = ["Selections partially saved."]
        if self.failed_categories:
            names = ", ".join(c.value for c in self.failed_categories)
            parts.append(f"Failed categories: {names}.")
        if self.failed_entries:
            parts.append(f"Unsaved collaborations: {', '.join(self.failed_entries)}.")
        return " ".join(parts)


def _now() -> str:
    return datetime.datetime.now(tz=UTC).isoformat()


class ReconciliationEngine:
    """Persist a :class:`SelectionSet` for a curator and period."""

    def __init__(self, lookup: LookupService, store: SelectionStore) -> None:
        self.lookup = lookup
        self.store = store

    # ------------------------------------------------------------------
    async def save(
        self, curator_id: str, period_id: str, selection: SelectionSet
    ) -> SaveReport:
        """Resolve and persist ``selection``; the input is never mutated.

        All lookups and creates finish before any persisted row is deleted.
        """
        selection = selection.model_copy(deep=True)
        sources = list(dict.fromkeys(selection.collaborations))
        outcomes = list(
            await asyncio.gather(*(self._resolve(s, period_id) for s in sources))
        )
        report = SaveReport(outcomes=outcomes)
        report.failed_entries.extend(
            o.source_id for o in outcomes if o.state is EntryState.FAILED
        )

        rows = _dedupe_rows(o.to_row() for o in outcomes if o.resolved)
        try:
            saved, unsaved = await self._replace_collaborations(
                curator_id, period_id, rows
            )
        except ReplaceError as exc:
            log.error("Failed to replace collaboration selections: %s", exc)
            report.failed_categories.append(exc.category)
        else:
            report.persisted = saved
            report.failed_entries.extend(unsaved)

        now = _now()
        simple = [
            (
                CREATOR_SELECTIONS,
                [
                    {"curator_id": curator_id, "period_id": period_id,
                     "creator_id": cid, "selected_at": now}
                    for cid in dict.fromkeys(selection.contributors)
                ],
            ),
            (
                CAMPAIGN_SELECTIONS,
                [
                    {"curator_id": curator_id, "period_id": period_id,
                     "campaign_id": aid, "selected_at": now}
                    for aid in dict.fromkeys(selection.ads)
                ],
            ),
            (
                COMMUNICATION_SELECTIONS,
                [
                    {"curator_id": curator_id, "period_id": period_id,
                     "include_communications": True, "selected_at": now}
                ]
                if selection.communications
                else [],
            ),
        ]
        for table, table_rows in simple:
            try:
                await self._replace_simple(table, curator_id, period_id, table_rows)
            except ReplaceError as exc:
                log.error("Failed to replace %s: %s", table, exc)
                report.failed_categories.append(exc.category)

        log.info(
            "Saved selection for curator %s period %s: %d collaborations, "
            "%d unsaved, failed categories %s",
            curator_id,
            period_id,
            len(report.persisted),
            len(report.failed_entries),
            [c.value for c in report.failed_categories] or "none",
        )
        return report

    async def clear(self, curator_id: str, period_id: str) -> list[Category]:
        """Delete every persisted selection row; return categories that failed."""
        failed: list[Category] = []
        for table in SELECTION_TABLES:
            try:
                await self.store.delete_rows(table, curator_id, period_id)
            except BACKEND_ERRORS:
                log.warning("Failed to clear %s for %s", table, curator_id, exc_info=True)
                failed.append(_TABLE_CATEGORIES[table])
        return failed

    # ------------------------------------------------------------------
    # Entry resolution
    async def _resolve(self, source_id: str, period_id: str) -> EntryOutcome:
        try:
            decoded = decode(source_id)
        except IdentifierDecodeError as exc:
            log.warning("Dropping entry: %s", exc)
            return EntryOutcome(
                source_id=source_id, state=EntryState.DROPPED, error=str(exc)
            )
        try:
            if decoded.kind == "real":
                return await self._resolve_real(decoded)
            return await self._resolve_virtual(decoded, period_id)
        except BACKEND_ERRORS as exc:
            log.warning("Failed to resolve %s: %s", source_id, exc)
            return EntryOutcome(
                source_id=source_id, state=EntryState.FAILED, error=str(exc)
            )

    async def _resolve_real(self, decoded: DecodedIdentifier) -> EntryOutcome:
        collab = await self.lookup.get_collaboration(decoded.value)
        if collab is None:
            return EntryOutcome(
                source_id=decoded.value,
                state=EntryState.FAILED,
                error="collaboration not found",
            )
        return EntryOutcome(
            source_id=decoded.value,
            state=EntryState.FOUND,
            collab_id=collab.id,
            participation_mode=collab.participation_mode,
            location=collab.location,
        )

    async def _resolve_virtual(
        self, decoded: DecodedIdentifier, period_id: str
    ) -> EntryOutcome:
        if decoded.kind == "local":
            mode, city = ParticipationMode.LOCAL, decoded.city
        else:
            mode, city = ParticipationMode.COMMUNITY, None

        existing = await self.lookup.find_existing_collaboration(
            decoded.template_id, mode, period_id, city
        )
        if existing:
            return EntryOutcome(
                source_id=decoded.value,
                state=EntryState.FOUND,
                collab_id=existing,
                participation_mode=mode,
                location=city,
            )

        template = await self.lookup.resolve_template(decoded.template_id)
        if template is None:
            return EntryOutcome(
                source_id=decoded.value,
                state=EntryState.FAILED,
                error=f"template {decoded.template_id} not found",
            )
        title = f"{template.title} - {city}" if city else template.title
        collab_id = await self.lookup.create_collaboration(
            template, mode, period_id, city, title=title
        )
        log.info("Created %s collaboration %s for %s", mode.value, collab_id, decoded.value)
        return EntryOutcome(
            source_id=decoded.value,
            state=EntryState.CREATED,
            collab_id=collab_id,
            participation_mode=mode,
            location=city,
        )

    # ------------------------------------------------------------------
    # Replacing persisted rows
    async def _replace_collaborations(
        self, curator_id: str, period_id: str, rows: list[CollabSelectionRow]
    ) -> tuple[list[CollabSelectionRow], list[str]]:
        """Delete then insert row by row; return saved rows and unsaved sources."""
        try:
            await self.store.delete_rows(COLLAB_SELECTIONS, curator_id, period_id)
        except BACKEND_ERRORS as exc:
            raise ReplaceError(Category.COLLABORATION, str(exc)) from exc

        now = _now()
        saved: list[CollabSelectionRow] = []
        unsaved: list[CollabSelectionRow] = []
        for row in rows:
            record = {
                "curator_id": curator_id,
                "period_id": period_id,
                "selected_at": now,
                **row.model_dump(mode="json"),
            }
            try:
                await self.store.insert_row(COLLAB_SELECTIONS, record)
            except BACKEND_ERRORS as exc:
                log.warning("Failed to insert selection %s: %s", row.source_id, exc)
                unsaved.append(row)
            else:
                saved.append(row)

        if rows and not saved:
            # Fall back to the columns every schema version has.
            reduced = [
                {"curator_id": curator_id, "period_id": period_id,
                 "collab_id": row.collab_id, "selected_at": now}
                for row in rows
            ]
            try:
                await self.store.insert_rows(COLLAB_SELECTIONS, reduced)
            except BACKEND_ERRORS as exc:
                raise ReplaceError(Category.COLLABORATION, str(exc)) from exc
            log.warning("Saved %d collaboration selections with reduced columns", len(rows))
            return list(rows), []
        return saved, [row.source_id for row in unsaved]

    async def _replace_simple(
        self, table: str, curator_id: str, period_id: str, rows: list[dict]
    ) -> None:
        try:
            await self.store.replace_rows(table, curator_id, period_id, rows)
        except BACKEND_ERRORS as exc:
            raise ReplaceError(_TABLE_CATEGORIES[table], str(exc)) from exc


def _dedupe_rows(rows) -> list[CollabSelectionRow]:
    """Keep one row per collaboration, preferring a virtual source id."""
    chosen: dict[str, CollabSelectionRow] = {}
    for row in rows:
        current = chosen.get(row.collab_id)
        if current is None or _row_rank(row) < _row_rank(current):
            chosen[row.collab_id] = row
    return list(chosen.values())


def _row_rank(row: CollabSelectionRow) -> tuple[bool, str]:
    return (not decode(row.source_id).is_virtual, row.source_id)
