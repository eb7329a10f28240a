"""In-memory selection state with slot-budget accounting.

:class:`SelectionSetManager` is the single owner of a curator's selections
during a session.  Every page composes it instead of keeping its own copy,
and it is the only component that writes to the :class:`LocalMirror`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .identifiers import IdentifierDecodeError, decode, encode_local
from .models import Category, Collaboration, SelectionSet
from .storage import LocalMirror

log = logging.getLogger("curation.selection")

SelectionObserver = Callable[[Category, SelectionSet], None]


class SelectionSetManager:
    """Ordered selection sets per category plus slot-budget arithmetic.

    Collaborations are budgeted per template: ``community_T`` and
    ``local_T_City`` together use one slot, while ``community_T1`` and
    ``community_T2`` use two.  The other categories use one slot per entry.
    """

    def __init__(
        self,
        slot_budget: int = 20,
        mirror: LocalMirror | None = None,
    ) -> None:
        self.slot_budget = slot_budget
        self._mirror = mirror
        self._selection = SelectionSet()
        # real collaboration id -> template id
        self._joined: dict[str, str] = {}
        self._preferred_cities: dict[str, str] = {}
        self._observers: list[SelectionObserver] = []
        self.authoritative = False

    # ------------------------------------------------------------------
    # Observers and lookup data
    def subscribe(self, observer: SelectionObserver) -> None:
        """Call ``observer`` with the category and a snapshot after changes."""
        self._observers.append(observer)

    def register_joined(self, collaborations: Iterable[Collaboration]) -> None:
        """Index joined collaborations so real ids map to their template."""
        for collab in collaborations:
            if collab.template_id:
                self._joined[collab.id] = collab.template_id

    # ------------------------------------------------------------------
    # Queries
    def selected(self, category: Category) -> list[str]:
        return list(self._selection.entries(category))

    def contains(self, category: Category, identifier: str) -> bool:
        return identifier in self._selection.entries(category)

    @property
    def selected_cities(self) -> dict[str, str]:
        """Template id -> chosen city, for the local entries in the set."""
        cities = dict(self._preferred_cities)
        for identifier in self._selection.collaborations:
            try:
                decoded = decode(identifier)
            except IdentifierDecodeError:
                continue
            if decoded.kind == "local":
                cities[decoded.template_id] = decoded.city
        return cities

    def template_for(self, identifier: str) -> str | None:
        """Return the template implied by ``identifier`` if it is known."""
        try:
            decoded = decode(identifier)
        except IdentifierDecodeError:
            return None
        if decoded.is_virtual:
            return decoded.template_id
        return self._joined.get(identifier)

    def any_version_selected(self, identifier: str) -> bool:
        """Whether another entry for the same template is already selected.

        Switching between a template's community, local and joined forms
        does not need a free slot.
        """
        template_id = self.template_for(identifier)
        if template_id is None:
            return False
        return any(
            other != identifier and self.template_for(other) == template_id
            for other in self._selection.collaborations
        )

    def used_slots(self) -> int:
        collab_keys = {
            self.template_for(e) or e for e in self._selection.collaborations
        }
        return (
            len(self._selection.contributors)
            + len(self._selection.ads)
            + len(self._selection.communications)
            + len(collab_keys)
        )

    def remaining_slots(self) -> int:
        return self.slot_budget - self.used_slots()

    # ------------------------------------------------------------------
    # Mutations
    def toggle(self, category: Category, identifier: str) -> bool:
        """Select or deselect ``identifier`` in ``category``.

        Deselection always succeeds.  Selection needs a free slot unless
        another version of the same template is already selected.  Returns
        ``True`` when the set changed.
        """
        category = Category(category)
        entries = self._selection.entries(category)
        if identifier in entries:
            entries.remove(identifier)
            if category is Category.COLLABORATION:
                self._forget_city(identifier)
            self._changed(category)
            return True

        if category is Category.COMMUNICATION:
            # single-valued: replacing the communications page is slot neutral
            if self.remaining_slots() <= 0 and not entries:
                return False
            entries[:] = [identifier]
            self._changed(category)
            return True

        if category is Category.COLLABORATION:
            allowed = self.remaining_slots() > 0 or self.any_version_selected(
                identifier
            )
        else:
            allowed = self.remaining_slots() > 0
        if not allowed:
            log.debug("No slot left for %s %s", category.value, identifier)
            return False
        entries.append(identifier)
        self._changed(category)
        return True

    def select_city(self, template_id: str, city: str) -> bool:
        """Choose ``city`` for local participation in ``template_id``.

        Any other local entry of the template is replaced.  Choosing the
        city that is already selected deselects it.
        """
        local_id = encode_local(template_id, city)
        entries = self._selection.collaborations
        if local_id in entries:
            entries.remove(local_id)
            self._preferred_cities.pop(template_id, None)
            self._changed(Category.COLLABORATION)
            return True

        if self.remaining_slots() <= 0 and not self.any_version_selected(local_id):
            return False
        entries[:] = [
            e
            for e in entries
            if not (self.template_for(e) == template_id and e.startswith("local_"))
        ]
        entries.append(local_id)
        self._preferred_cities[template_id] = city.strip()
        self._changed(Category.COLLABORATION)
        return True

    def set_for_save(self) -> SelectionSet:
        """Return a snapshot that later toggles do not affect."""
        return self._selection.model_copy(deep=True)

    def load(self, selection: SelectionSet) -> None:
        """Replace the state with the database-sourced ``selection``."""
        self._selection = selection.model_copy(deep=True)
        self.authoritative = True
        for category in Category:
            self._notify(category)

    def restore_from_mirror(self) -> bool:
        """Adopt the mirrored collaborations if nothing else is loaded yet.

        The mirror never overwrites an authoritative or non-empty state.
        Returns ``True`` when the mirror was applied.
        """
        if self._mirror is None:
            return False
        if self.authoritative or not self._selection.is_empty():
            log.debug("Skipping mirror restore, selection already loaded")
            return False
        restored = self._mirror.restore()
        if restored is None:
            return False
        self._selection.collaborations[:] = restored.collaborations
        self._preferred_cities = self._mirror.restore_cities()
        self._notify(Category.COLLABORATION)
        return True

    def reset(self) -> None:
        """Clear every category and the mirror."""
        self._selection = SelectionSet()
        self._preferred_cities = {}
        self.authoritative = False
        if self._mirror is not None:
            self._mirror.clear()
        for category in Category:
            self._notify(category)

    # ------------------------------------------------------------------
    # Internal helpers
    def _forget_city(self, identifier: str) -> None:
        """Drop the chosen city once the template has no local entry left."""
        try:
            decoded = decode(identifier)
        except IdentifierDecodeError:
            return
        if decoded.kind != "local":
            return
        for other in self._selection.collaborations:
            if other.startswith("local_") and self.template_for(other) == decoded.template_id:
                return
        self._preferred_cities.pop(decoded.template_id, None)

    def _changed(self, category: Category) -> None:
        if self._mirror is not None and category == Category.COLLABORATION:
            self._mirror.persist(self._selection, self.selected_cities)
        self._notify(category)

    def _notify(self, category: Category) -> None:
        snapshot = self.set_for_save()
        for observer in self._observers:
            observer(category, snapshot)
