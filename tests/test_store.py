import asyncio

from collab_curation.adapters.base import COLLAB_SELECTIONS, COMMUNICATION_SELECTIONS
from collab_curation.core.models import Collaboration, ParticipationMode, Template
from collab_curation.data.store import DEFAULT_CITIES, CurationStore


def make_store(tmp_path) -> CurationStore:
    store = CurationStore(path=str(tmp_path / "data.json"))
    store.add_template(Template(id="T", title="Morning Rituals", type="theme"), "P1")
    return store


def test_templates_for_period(tmp_path):
    store = make_store(tmp_path)
    store.add_template(Template(id="U", title="Elsewhere"), "P2")
    templates = asyncio.run(store.list_templates("P1"))
    assert [t.id for t in templates] == ["T"]
    assert asyncio.run(store.resolve_template("missing")) is None


def test_create_and_find_collaboration(tmp_path):
    store = make_store(tmp_path)
    template = asyncio.run(store.resolve_template("T"))
    cid = asyncio.run(
        store.create_collaboration(
            template, ParticipationMode.LOCAL, "P1", "Austin", title="Morning Rituals - Austin"
        )
    )

    found = asyncio.run(
        store.find_existing_collaboration("T", ParticipationMode.LOCAL, "P1", "austin")
    )
    assert found == cid
    assert (
        asyncio.run(
            store.find_existing_collaboration("T", ParticipationMode.LOCAL, "P1", "Miami")
        )
        is None
    )
    assert (
        asyncio.run(
            store.find_existing_collaboration("T", ParticipationMode.COMMUNITY, "P1")
        )
        is None
    )

    collab = asyncio.run(store.get_collaboration(cid))
    assert collab.title == "Morning Rituals - Austin"
    assert collab.type == "theme"
    assert collab.location == "Austin"


def test_participants_and_city_counts(tmp_path):
    store = make_store(tmp_path)
    austin = store.add_collaboration(
        Collaboration(template_id="T", period_id="P1",
                      participation_mode=ParticipationMode.LOCAL, location="Austin")
    )
    assert store.join_collaboration(austin, "u1") is None
    assert store.join_collaboration(austin, "u2") is None
    assert store.join_collaboration(austin, "u3", status="left") is None
    assert store.join_collaboration("missing", "u1") == "Collaboration not found."

    assert asyncio.run(store.city_participant_counts("T", "P1")) == {"Austin": 2}
    joined = asyncio.run(store.joined_collaborations("u1"))
    assert [c.id for c in joined] == [austin]
    assert joined[0].participant_count == 2


def test_default_cities(tmp_path):
    store = make_store(tmp_path)
    cities = asyncio.run(store.available_cities())
    assert [c.name for c in cities] == [c.name for c in DEFAULT_CITIES]
    assert cities[0].label == "New York, NY"


def test_selection_rows_round_trip(tmp_path):
    store = make_store(tmp_path)
    asyncio.run(
        store.insert_row(
            COLLAB_SELECTIONS,
            {"curator_id": "c", "period_id": "P1", "collab_id": "x1",
             "source_id": "community_T"},
        )
    )
    asyncio.run(
        store.insert_rows(
            COLLAB_SELECTIONS,
            [{"curator_id": "c", "period_id": "P1", "collab_id": "x2"}],
        )
    )
    asyncio.run(
        store.replace_rows(
            COMMUNICATION_SELECTIONS, "c", "P1",
            [{"curator_id": "c", "period_id": "P1", "include_communications": True}],
        )
    )

    reloaded = CurationStore(path=str(tmp_path / "data.json"))
    selection = asyncio.run(reloaded.load_selection("c", "P1"))
    assert selection.collaborations == ["community_T", "x2"]
    assert selection.communications == ["communications-page"]

    asyncio.run(reloaded.delete_rows(COLLAB_SELECTIONS, "c", "P1"))
    assert asyncio.run(reloaded.load_selection("c", "P1")).collaborations == []
