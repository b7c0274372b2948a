"""
Pure session transitions.

Pointer events and discrete commands map a Session to the next Session
plus the engine calls that go with it. Nothing here touches the engine;
the controller applies the calls in order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Tuple

from grabstudio.config import BRUSH_RADIUS
from grabstudio.models.session import (
    PointerButtons,
    SelectionMode,
    Session,
    TrimapLabel,
    ViewMode,
)
from grabstudio.utils.geometry import Point, square_around


@dataclass(frozen=True)
class EngineCall:
    """A deferred call on the segmentation engine."""
    name: str
    args: Tuple[Any, ...] = ()

    def apply(self, engine):
        return getattr(engine, self.name)(*self.args)

    def __str__(self):
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


@dataclass(frozen=True)
class Transition:
    """Next session and the engine calls to issue, in order."""
    session: Session
    calls: Tuple[EngineCall, ...] = ()


class Command(Enum):
    REFINE_ONCE = "refine_once"
    FIT_GMMS = "fit_gmms"
    REFINE = "refine"
    ABORT_REFINE = "abort_refine"
    SHOW_MASK = "show_mask"
    SET_VIEW_MODE = "set_view_mode"


# ============================================================================
# Pointer gestures
# ============================================================================

def on_pointer_down(session: Session, point: Point, buttons: PointerButtons) -> Transition:
    """
    Start a gesture.

    Before seeding, only the primary button starts a rectangle. After
    seeding, the primary button paints foreground and any other button
    paints background.
    """
    primary = bool(buttons & PointerButtons.PRIMARY)
    if session.initialized:
        mode = SelectionMode.PAINT_FOREGROUND if primary else SelectionMode.PAINT_BACKGROUND
        return Transition(session.evolve(selection_mode=mode, stroke=(point,)))
    if primary:
        return Transition(session.evolve(
            selection_mode=SelectionMode.RECT,
            rect_start=point,
            rect_end=point,
            stroke=(),
        ))
    return Transition(session)


def on_pointer_move(session: Session, point: Point) -> Transition:
    """Track the live rectangle corner or extend the stroke."""
    if session.selection_mode.is_painting:
        return Transition(session.evolve(stroke=session.stroke + (point,)))
    if session.selection_mode == SelectionMode.RECT:
        return Transition(session.evolve(rect_end=point))
    return Transition(session)


def on_pointer_up(session: Session, point: Point) -> Transition:
    """
    Finish the gesture.

    A rectangle seeds the engine and fits the color models. A stroke
    stamps a square of trimap labels on every recorded point, then runs
    one refinement step and rebuilds the diagnostic images.
    """
    if session.selection_mode.is_painting:
        stroke = session.stroke + (point,)
        label = (TrimapLabel.FOREGROUND
                 if session.selection_mode == SelectionMode.PAINT_FOREGROUND
                 else TrimapLabel.BACKGROUND)
        calls = tuple(
            EngineCall("set_trimap", square_around(p, BRUSH_RADIUS) + (label,))
            for p in stroke
        )
        calls += (EngineCall("refine_once"), EngineCall("build_images"))
        return Transition(session.cancel_gesture(), calls)

    if session.selection_mode == SelectionMode.RECT:
        finished = session.evolve(rect_end=point)
        calls = (
            EngineCall("initialize", finished.rect),
            EngineCall("fit_gmms"),
        )
        return Transition(
            finished.evolve(
                selection_mode=SelectionMode.NONE,
                initialized=True,
                show_mask=True,
            ),
            calls,
        )

    return Transition(session)


# ============================================================================
# Discrete commands
# ============================================================================

def _refine_once(session: Session, _argument=None) -> Transition:
    if not session.initialized:
        return Transition(session)
    return Transition(session, (EngineCall("refine_once"),))


def _fit_gmms(session: Session, _argument=None) -> Transition:
    if not session.initialized:
        return Transition(session)
    return Transition(session, (EngineCall("fit_gmms"),))


def _refine(session: Session, enabled=True) -> Transition:
    if not session.initialized:
        return Transition(session)
    return Transition(session.evolve(refining=bool(enabled)))


def _abort_refine(session: Session, _argument=None) -> Transition:
    return Transition(session.evolve(refining=False))


def _show_mask(session: Session, visible=True) -> Transition:
    return Transition(session.evolve(show_mask=bool(visible)))


def _set_view_mode(session: Session, view_mode) -> Transition:
    return Transition(session.evolve(view_mode=ViewMode(view_mode)))


COMMANDS: Dict[Command, Callable[..., Transition]] = {
    Command.REFINE_ONCE: _refine_once,
    Command.FIT_GMMS: _fit_gmms,
    Command.REFINE: _refine,
    Command.ABORT_REFINE: _abort_refine,
    Command.SHOW_MASK: _show_mask,
    Command.SET_VIEW_MODE: _set_view_mode,
}


def dispatch(session: Session, command: Command, argument=None) -> Transition:
    """Look up and run the transition for a command."""
    handler = COMMANDS[Command(command)]
    if argument is None:
        return handler(session)
    return handler(session, argument)
