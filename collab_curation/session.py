"""A curator's editing session for one period."""

from __future__ import annotations

import logging

from .adapters.base import LookupService, SelectionStore
from .core.models import Category, ParticipationMode, Template
from .core.reconcile import ReconciliationEngine, SaveReport
from .core.selection import SelectionSetManager
from .core.storage import LocalMirror

log = logging.getLogger("curation.session")


class CurationSession:
    """Own the single :class:`SelectionSetManager` of a curation page.

    UI components call :meth:`toggle` / :meth:`select_city` and subscribe to
    ``session.manager`` for re-render callbacks instead of keeping copies of
    the selection.
    """

    def __init__(
        self,
        curator_id: str,
        period_id: str,
        lookup: LookupService,
        store: SelectionStore,
        mirror: LocalMirror | None = None,
        slot_budget: int = 20,
    ) -> None:
        self.curator_id = curator_id
        self.period_id = period_id
        self.lookup = lookup
        self.store = store
        self.mirror = mirror
        self.manager = SelectionSetManager(slot_budget=slot_budget, mirror=mirror)
        self.engine = ReconciliationEngine(lookup, store)
        self.templates: list[Template] = []

    async def load(self) -> None:
        """Load the saved selection, falling back to the local mirror.

        The mirror is only consulted when the database holds nothing for
        this curator and period.
        """
        self.templates = await self.lookup.list_templates(self.period_id)
        self.manager.register_joined(
            await self.lookup.joined_collaborations(self.curator_id)
        )
        saved = await self.store.load_selection(self.curator_id, self.period_id)
        if not saved.is_empty():
            self.manager.load(saved)
            log.info("Loaded saved selection for %s", self.curator_id)
        elif self.manager.restore_from_mirror():
            log.info("Restored unsaved selection for %s from mirror", self.curator_id)

    def toggle(self, category: Category, identifier: str) -> bool:
        return self.manager.toggle(category, identifier)

    def select_city(self, template_id: str, city: str) -> bool:
        return self.manager.select_city(template_id, city)

    async def save(self) -> SaveReport:
        """Save a snapshot of the current selection.

        Toggles made while the save is in flight are not part of it and
        stay in the mirror for the next save.
        """
        snapshot = self.manager.set_for_save()
        report = await self.engine.save(self.curator_id, self.period_id, snapshot)
        if report.ok and self.mirror is not None:
            if self.manager.set_for_save() == snapshot:
                self.mirror.clear()
            else:
                log.info("Selection changed during save; keeping mirror")
        return report

    async def reset(self) -> None:
        """Clear the selection locally, then remove the saved rows."""
        self.manager.reset()
        failed = await self.engine.clear(self.curator_id, self.period_id)
        if failed:
            log.warning(
                "Reset left saved rows behind for %s",
                ", ".join(c.value for c in failed),
            )

    async def template_participant_count(self, template_id: str) -> int:
        """Community plus local participants of ``template_id`` this period."""
        total = sum(
            (await self.lookup.city_participant_counts(template_id, self.period_id)).values()
        )
        community_id = await self.lookup.find_existing_collaboration(
            template_id, ParticipationMode.COMMUNITY, self.period_id
        )
        if community_id:
            collab = await self.lookup.get_collaboration(community_id)
            if collab is not None:
                total += collab.participant_count
        return total
