"""End-to-end tests for :class:`CurationSession`."""

import asyncio
from pathlib import Path

from collab_curation.adapters.base import COLLAB_SELECTIONS, LookupServiceError
from collab_curation.core.models import (
    Category,
    Collaboration,
    ParticipationMode,
    SelectionSet,
    Template,
)
from collab_curation.core.storage import LocalMirror
from collab_curation.data.store import CurationStore
from collab_curation.session import CurationSession

COLLAB = Category.COLLABORATION


def make_session(tmp_path: Path, store: CurationStore | None = None) -> CurationSession:
    if store is None:
        store = CurationStore(path=str(tmp_path / "data.json"))
        store.add_template(Template(id="chain1", title="Urban Spaces"), "P1")
    return CurationSession(
        "curator",
        "P1",
        lookup=store,
        store=store,
        mirror=LocalMirror(tmp_path / "mirror.json"),
        slot_budget=20,
    )


def test_scenario_community_then_local(tmp_path):
    session = make_session(tmp_path)
    asyncio.run(session.load())
    assert [t.id for t in session.templates] == ["chain1"]

    session.toggle(COLLAB, "community_chain1")
    assert session.manager.remaining_slots() == 19
    session.toggle(COLLAB, "local_chain1_New_York")
    assert session.manager.remaining_slots() == 19
    session.toggle(COLLAB, "community_chain1")
    assert session.manager.remaining_slots() == 19

    report = asyncio.run(session.save())
    assert report.ok
    rows = session.store.selections[COLLAB_SELECTIONS]
    assert len(rows) == 1
    assert rows[0]["participation_mode"] == "local"
    assert rows[0]["location"] == "New York"
    collab = session.store.collabs[rows[0]["collab_id"]]
    assert collab.template_id == "chain1"
    # a successful save clears the mirror
    assert session.mirror.restore() is None


def test_unsaved_selection_survives_restart(tmp_path):
    session = make_session(tmp_path)
    asyncio.run(session.load())
    session.select_city("chain1", "Austin")

    again = make_session(tmp_path, store=session.store)
    asyncio.run(again.load())
    assert again.manager.selected(COLLAB) == ["local_chain1_Austin"]
    assert again.manager.selected_cities == {"chain1": "Austin"}


def test_saved_selection_wins_over_mirror(tmp_path):
    session = make_session(tmp_path)
    asyncio.run(session.load())
    session.toggle(COLLAB, "community_chain1")
    asyncio.run(session.save())

    LocalMirror(tmp_path / "mirror.json").persist(
        SelectionSet(collaborations=["local_chain1_Stale"])
    )
    again = make_session(tmp_path, store=session.store)
    asyncio.run(again.load())
    assert again.manager.selected(COLLAB) == ["community_chain1"]


def test_joined_collaboration_shares_template_slot(tmp_path):
    store = CurationStore(path=str(tmp_path / "data.json"))
    store.add_template(Template(id="chain1", title="Urban Spaces"), "P1")
    cid = store.add_collaboration(
        Collaboration(template_id="chain1", period_id="P1",
                      participation_mode=ParticipationMode.PRIVATE)
    )
    store.join_collaboration(cid, "curator")
    session = make_session(tmp_path, store=store)
    asyncio.run(session.load())

    session.toggle(COLLAB, cid)
    session.toggle(COLLAB, "community_chain1")
    assert session.manager.used_slots() == 1


def test_partial_save_keeps_mirror_and_retries(tmp_path):
    class Flaky(CurationStore):
        failing = True

        async def create_collaboration(self, template, mode, period_id, city=None, *, title):
            if self.failing:
                raise LookupServiceError("unavailable")
            return await super().create_collaboration(
                template, mode, period_id, city, title=title
            )

    store = Flaky(path=str(tmp_path / "data.json"))
    store.add_template(Template(id="chain1", title="Urban Spaces"), "P1")
    session = make_session(tmp_path, store=store)
    asyncio.run(session.load())
    session.toggle(COLLAB, "community_chain1")
    session.toggle(Category.CONTRIBUTOR, "creator1")

    report = asyncio.run(session.save())
    assert report.failed_entries == ["community_chain1"]
    assert session.mirror.restore().collaborations == ["community_chain1"]
    assert session.manager.selected(COLLAB) == ["community_chain1"]

    store.failing = False
    report = asyncio.run(session.save())
    assert report.ok
    assert len(store.selections[COLLAB_SELECTIONS]) == 1


def test_toggle_during_save_stays_in_mirror(tmp_path):
    class Slow(CurationStore):
        during_create = None

        async def create_collaboration(self, template, mode, period_id, city=None, *, title):
            if self.during_create is not None:
                self.during_create()
            await asyncio.sleep(0)
            return await super().create_collaboration(
                template, mode, period_id, city, title=title
            )

    store = Slow(path=str(tmp_path / "data.json"))
    store.add_template(Template(id="chain1", title="Urban Spaces"), "P1")
    store.add_template(Template(id="chain2", title="Local Legends"), "P1")
    session = make_session(tmp_path, store=store)
    asyncio.run(session.load())
    session.toggle(COLLAB, "community_chain1")
    store.during_create = lambda: session.toggle(COLLAB, "community_chain2")

    report = asyncio.run(session.save())
    assert report.ok
    assert [r["source_id"] for r in store.selections[COLLAB_SELECTIONS]] == [
        "community_chain1"
    ]
    assert session.manager.selected(COLLAB) == ["community_chain1", "community_chain2"]
    assert session.mirror.restore().collaborations == [
        "community_chain1",
        "community_chain2",
    ]

    store.during_create = None
    report = asyncio.run(session.save())
    assert report.ok
    assert session.mirror.restore() is None


def test_reset_clears_local_and_remote(tmp_path):
    session = make_session(tmp_path)
    asyncio.run(session.load())
    session.toggle(COLLAB, "community_chain1")
    session.toggle(Category.AD, "ad1")
    asyncio.run(session.save())
    session.toggle(COLLAB, "community_other")

    asyncio.run(session.reset())
    assert session.manager.used_slots() == 0
    assert session.mirror.restore() is None
    saved = asyncio.run(session.store.load_selection("curator", "P1"))
    assert saved.is_empty()


def test_template_participant_count(tmp_path):
    store = CurationStore(path=str(tmp_path / "data.json"))
    store.add_template(Template(id="chain1", title="Urban Spaces"), "P1")
    community = store.add_collaboration(
        Collaboration(template_id="chain1", period_id="P1")
    )
    local = store.add_collaboration(
        Collaboration(template_id="chain1", period_id="P1", location="Austin",
                      participation_mode=ParticipationMode.LOCAL)
    )
    store.join_collaboration(community, "a")
    store.join_collaboration(local, "b")
    store.join_collaboration(local, "c")

    session = make_session(tmp_path, store=store)
    assert asyncio.run(session.template_participant_count("chain1")) == 3
