from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import make_uploaded
from creative_editor.models.session import (
    BoundingBox,
    EditItem,
    EditorSession,
    ItemProgress,
    SessionPhase,
)


def _session(n: int = 3) -> EditorSession:
    session = EditorSession()
    session.add_images([make_uploaded(f"{i}.png") for i in range(n)])
    return session


def test_first_upload_picks_master_and_selects_it():
    session = EditorSession()
    assert session.add_images([make_uploaded("a.png"), make_uploaded("b.png")]) is True
    assert session.master_index == 0
    assert session.selection == {0}

    # Later uploads keep the existing master
    assert session.add_images([make_uploaded("c.png")]) is False
    assert session.master_index == 0
    assert len(session.images) == 3


def test_master_cannot_be_deselected():
    session = _session()
    assert session.toggle_selection(0) is True
    assert session.toggle_selection(2) is True
    assert session.toggle_selection(2) is False
    assert session.selection == {0}


def test_selecting_master_adds_it_to_selection_and_drops_edits():
    session = _session()
    session.edit_items = [
        EditItem(id=0, original="A", modified="B", bounding_box=BoundingBox(x1=0, y1=0, x2=1, y2=1))
    ]
    assert session.select_master(2) is True
    assert session.master_index == 2
    assert 2 in session.selection
    assert session.edit_items == []


def test_master_change_during_batch_is_queued():
    session = _session()
    session.phase = SessionPhase.BATCH_RUNNING

    assert session.select_master(1) is False
    assert session.master_index == 0
    assert session.pending_master_index == 1
    assert session.apply_queued_master() is False

    session.phase = SessionPhase.IDLE
    assert session.apply_queued_master() is True
    assert session.master_index == 1
    assert session.pending_master_index is None


def test_out_of_range_index_is_rejected():
    session = _session(2)
    with pytest.raises(IndexError):
        session.select_master(5)
    with pytest.raises(IndexError):
        session.toggle_selection(-1)


def test_edit_item_original_is_immutable_and_activity_tracks_modified():
    item = EditItem(id=0, original="SALE", modified="SALE", bounding_box=BoundingBox(x1=0, y1=0, x2=1, y2=1))
    assert not item.is_active
    item.modified = "CLEARANCE"
    assert item.is_active
    with pytest.raises(ValidationError):
        item.original = "OTHER"


def test_update_edit_unknown_id():
    session = _session()
    with pytest.raises(KeyError):
        session.update_edit(42, "x")


def test_item_progress_terminal_states():
    assert not ItemProgress.loading().is_terminal
    assert ItemProgress.succeeded("data:image/png;base64,AA==").is_terminal
    failed = ItemProgress.failed("boom", "NoImageProduced")
    assert failed.is_terminal
    assert failed.error_type == "NoImageProduced"
