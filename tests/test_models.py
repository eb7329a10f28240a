"""Tests for core Pydantic models."""

from collab_curation.core.models import (
    Category,
    City,
    Collaboration,
    CollabSelectionRow,
    ParticipationMode,
    SelectionSet,
)


def test_collaboration_defaults() -> None:
    """Unspecified fields on ``Collaboration`` use sensible defaults."""
    collab = Collaboration()
    assert collab.participation_mode is ParticipationMode.COMMUNITY
    assert collab.location is None
    assert isinstance(collab.id, str)


def test_selection_set_entries() -> None:
    selection = SelectionSet()
    assert selection.is_empty()
    selection.entries(Category.AD).append("ad1")
    assert selection.ads == ["ad1"]
    assert not selection.is_empty()


def test_row_serialises_mode_as_string() -> None:
    row = CollabSelectionRow(
        collab_id="c1", source_id="local_T_Austin",
        participation_mode="local", location="Austin",
    )
    assert row.model_dump(mode="json")["participation_mode"] == "local"


def test_city_label() -> None:
    assert City(name="Austin", state="TX").label == "Austin, TX"
    assert City(name="Austin").label == "Austin"
