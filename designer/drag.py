"""Pointer-driven element dragging on the badge canvas."""

import logging
import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from config import DRAG_THRESHOLD_PX
from models.badge_template import Position, Template
from utils.units import badge_pixel_size

if TYPE_CHECKING:
    from designer.session import DesignerSession

logger = logging.getLogger("OnsiteAtlas.designer.drag")

IDLE = "idle"
DRAGGING = "dragging"


@dataclass
class DragOutcome:
    """Result of a completed gesture.

    ``moved`` is False for a plain click (the pointer never left the
    threshold); ``committed`` is True when a history entry was pushed.
    """
    element_id: str
    moved: bool
    committed: bool


def clamp_position(template: Template, element_id: str, x: float, y: float) -> Position:
    """Keep an element fully inside the badge, rounded to whole pixels.

    The upper bound is floored so a fractional badge size (cm, mm, 3.375in)
    never lets rounding push the element past the edge.
    """
    el = template.find_element(element_id)
    badge_w, badge_h = badge_pixel_size(template.size.width, template.size.height,
                                        template.unit)
    el_w = el.width if el else 0
    el_h = el.height if el else 0
    max_x = max(0, math.floor(badge_w - el_w))
    max_y = max(0, math.floor(badge_h - el_h))
    x = max(0, min(int(round(x)), max_x))
    y = max(0, min(int(round(y)), max_y))
    return Position(x, y)


class DragController:
    """Idle -> Dragging -> Idle.

    Move events update the session template directly and are kept out of the
    history; releasing the pointer commits one entry if the element actually
    changed position.
    """

    def __init__(self, session: "DesignerSession", threshold: float = DRAG_THRESHOLD_PX):
        self.session = session
        self.threshold = threshold
        self.state = IDLE
        self.element_id: Optional[str] = None
        self._start_pointer = (0.0, 0.0)
        self._start_element = (0.0, 0.0)
        self._scale = 1.0
        self._moved = False

    @property
    def is_dragging(self) -> bool:
        return self.state == DRAGGING

    def pointer_down(self, element_id: str, pointer_x: float, pointer_y: float,
                     scale: float = 1.0) -> bool:
        """Start a drag; ignored while another drag is in progress."""
        if self.is_dragging:
            return False
        el = self.session.template.find_element(element_id)
        if el is None or el.position is None:
            return False
        self.state = DRAGGING
        self.element_id = element_id
        self._start_pointer = (pointer_x, pointer_y)
        self._start_element = (el.position.x, el.position.y)
        self._scale = scale or 1.0
        self._moved = False
        self.session.select(element_id)
        return True

    def pointer_move(self, pointer_x: float, pointer_y: float) -> Optional[Position]:
        if not self.is_dragging:
            return None
        dx = pointer_x - self._start_pointer[0]
        dy = pointer_y - self._start_pointer[1]
        if not self._moved:
            if max(abs(dx), abs(dy)) <= self.threshold:
                return None
            self._moved = True

        new_x = self._start_element[0] + dx / self._scale
        new_y = self._start_element[1] + dy / self._scale
        position = clamp_position(self.session.template, self.element_id, new_x, new_y)
        self._set_position(position)
        return position

    def pointer_up(self) -> Optional[DragOutcome]:
        if not self.is_dragging:
            return None
        element_id = self.element_id
        el = self.session.template.find_element(element_id)
        changed = (
            el is not None and el.position is not None
            and (el.position.x, el.position.y) != self._start_element
        )
        if changed:
            self.session.history.push(self.session.template)
            logger.debug("Drag of %s committed at (%s, %s)",
                         element_id, el.position.x, el.position.y)
        outcome = DragOutcome(element_id, self._moved, changed)
        self._reset()
        return outcome

    def cancel(self) -> None:
        """Abort the drag and put the element back where it started."""
        if not self.is_dragging:
            return
        if self.session.template.find_element(self.element_id) is not None:
            self._set_position(Position(*self._start_element))
        self._reset()

    def _set_position(self, position: Position) -> None:
        template = self.session.template
        elements = [replace(el, position=position) if el.id == self.element_id else el
                    for el in template.elements]
        self.session.template = replace(template, elements=elements)

    def _reset(self) -> None:
        self.state = IDLE
        self.element_id = None
        self._moved = False
