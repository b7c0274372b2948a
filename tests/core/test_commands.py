"""Tests for the pure session transitions."""

import pytest

from grabstudio.core.commands import (
    COMMANDS,
    Command,
    EngineCall,
    dispatch,
    on_pointer_down,
    on_pointer_move,
    on_pointer_up,
)
from grabstudio.models.session import (
    PointerButtons,
    SelectionMode,
    Session,
    TrimapLabel,
    ViewMode,
)


@pytest.fixture
def seeded():
    """A session after rect-seeding."""
    return Session(initialized=True, show_mask=True, rect_start=(10, 10), rect_end=(50, 50))


class TestRectGesture:
    """Pointer transitions before rect-seeding."""

    def test_primary_press_starts_rectangle(self):
        t = on_pointer_down(Session(), (10, 10), PointerButtons.PRIMARY)
        assert t.session.selection_mode == SelectionMode.RECT
        assert t.session.rect == (10, 10, 10, 10)
        assert t.calls == ()

    def test_secondary_press_is_ignored(self):
        session = Session()
        t = on_pointer_down(session, (10, 10), PointerButtons.SECONDARY)
        assert t.session == session
        assert t.calls == ()

    def test_move_updates_live_corner(self):
        session = on_pointer_down(Session(), (10, 10), PointerButtons.PRIMARY).session
        t = on_pointer_move(session, (30, 40))
        assert t.session.rect == (10, 10, 30, 40)
        assert t.session.stroke == ()

    def test_release_seeds_and_fits(self):
        session = on_pointer_down(Session(), (10, 10), PointerButtons.PRIMARY).session
        session = on_pointer_move(session, (50, 50)).session
        t = on_pointer_up(session, (50, 50))

        assert t.calls == (
            EngineCall("initialize", (10, 10, 50, 50)),
            EngineCall("fit_gmms"),
        )
        assert t.session.initialized
        assert t.session.show_mask
        assert t.session.selection_mode == SelectionMode.NONE

    def test_release_normalizes_reversed_drag(self):
        session = on_pointer_down(Session(), (50, 40), PointerButtons.PRIMARY).session
        t = on_pointer_up(session, (10, 5))
        assert t.calls[0] == EngineCall("initialize", (10, 5, 50, 40))

    def test_release_without_gesture_is_noop(self):
        session = Session()
        t = on_pointer_up(session, (5, 5))
        assert t.session == session
        assert t.calls == ()

    def test_move_without_gesture_is_noop(self):
        session = Session()
        assert on_pointer_move(session, (5, 5)).session == session


class TestPaintGesture:
    """Pointer transitions after rect-seeding."""

    def test_primary_paints_foreground(self, seeded):
        t = on_pointer_down(seeded, (20, 20), PointerButtons.PRIMARY)
        assert t.session.selection_mode == SelectionMode.PAINT_FOREGROUND
        assert t.session.stroke == ((20, 20),)

    def test_other_buttons_paint_background(self, seeded):
        t = on_pointer_down(seeded, (20, 20), PointerButtons.SECONDARY)
        assert t.session.selection_mode == SelectionMode.PAINT_BACKGROUND

    def test_press_clears_previous_stroke(self, seeded):
        painting = seeded.evolve(
            selection_mode=SelectionMode.PAINT_BACKGROUND,
            stroke=((1, 1), (2, 2)),
        )
        t = on_pointer_down(painting, (7, 7), PointerButtons.PRIMARY)
        assert t.session.stroke == ((7, 7),)

    def test_move_appends(self, seeded):
        session = on_pointer_down(seeded, (20, 20), PointerButtons.PRIMARY).session
        session = on_pointer_move(session, (21, 20)).session
        session = on_pointer_move(session, (22, 20)).session
        assert session.stroke == ((20, 20), (21, 20), (22, 20))

    def test_release_stamps_squares_then_refines(self, seeded):
        session = on_pointer_down(seeded, (20, 20), PointerButtons.PRIMARY).session
        t = on_pointer_up(session, (21, 21))

        assert t.calls == (
            EngineCall("set_trimap", (18, 18, 22, 22, TrimapLabel.FOREGROUND)),
            EngineCall("set_trimap", (19, 19, 23, 23, TrimapLabel.FOREGROUND)),
            EngineCall("refine_once"),
            EngineCall("build_images"),
        )
        assert t.session.selection_mode == SelectionMode.NONE
        assert t.session.stroke == ()

    def test_background_stroke_label(self, seeded):
        session = on_pointer_down(seeded, (5, 5), PointerButtons.SECONDARY).session
        t = on_pointer_up(session, (5, 5))
        labels = {call.args[4] for call in t.calls if call.name == "set_trimap"}
        assert labels == {TrimapLabel.BACKGROUND}

    def test_every_recorded_point_is_stamped(self, seeded):
        session = on_pointer_down(seeded, (0, 0), PointerButtons.PRIMARY).session
        for i in range(1, 5):
            session = on_pointer_move(session, (i, i)).session
        t = on_pointer_up(session, (5, 5))
        assert [c.name for c in t.calls].count("set_trimap") == 6


class TestCommands:
    """Discrete command transitions."""

    def test_table_covers_every_command(self):
        assert set(COMMANDS) == set(Command)

    def test_engine_commands_need_seeding(self):
        session = Session()
        for command in (Command.REFINE_ONCE, Command.FIT_GMMS, Command.REFINE):
            t = dispatch(session, command)
            assert t.session == session
            assert t.calls == ()

    def test_refine_once(self, seeded):
        t = dispatch(seeded, Command.REFINE_ONCE)
        assert t.calls == (EngineCall("refine_once"),)
        assert t.session == seeded

    def test_fit_gmms(self, seeded):
        assert dispatch(seeded, Command.FIT_GMMS).calls == (EngineCall("fit_gmms"),)

    def test_refine_flag(self, seeded):
        on = dispatch(seeded, Command.REFINE, True).session
        assert on.refining
        off = dispatch(on, Command.REFINE, False).session
        assert not off.refining

    def test_abort_clears_flag(self, seeded):
        session = seeded.evolve(refining=True)
        t = dispatch(session, Command.ABORT_REFINE)
        assert not t.session.refining
        assert t.calls == ()

    def test_show_mask(self, seeded):
        assert not dispatch(seeded, Command.SHOW_MASK, False).session.show_mask
        assert dispatch(Session(), Command.SHOW_MASK, True).session.show_mask

    def test_set_view_mode_has_no_engine_calls(self):
        t = dispatch(Session(), Command.SET_VIEW_MODE, ViewMode.TLINK_MASK)
        assert t.session.view_mode == ViewMode.TLINK_MASK
        assert t.calls == ()

    def test_set_view_mode_accepts_int(self):
        t = dispatch(Session(), Command.SET_VIEW_MODE, 2)
        assert t.session.view_mode == ViewMode.NLINK_MASK

    def test_engine_call_apply(self, recording_engine, sample_image):
        engine = recording_engine(sample_image)
        EngineCall("set_trimap", (1, 2, 3, 4, TrimapLabel.UNKNOWN)).apply(engine)
        assert engine.calls == [("set_trimap", (1, 2, 3, 4, TrimapLabel.UNKNOWN))]
