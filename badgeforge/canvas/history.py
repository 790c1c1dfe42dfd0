from __future__ import annotations

import copy
import logging
from collections import deque
from typing import TYPE_CHECKING, Optional

from badgeforge.core.state import HISTORY_LIMIT

if TYPE_CHECKING:
    from badgeforge.canvas.object import Field
    from badgeforge.canvas.template import Template

logger = logging.getLogger(__name__)


class HistoryManager:
    """Undo/redo over a template's field list.

    Callers ``push()`` before a mutation; the snapshot is a deep copy of the
    fields at that moment. Background and print offset are not tracked.
    """

    def __init__(self, template: "Template", limit: Optional[int] = HISTORY_LIMIT) -> None:
        self.template = template
        self.undo_stack: deque[list["Field"]] = deque(maxlen=limit)
        self.redo_stack: list[list["Field"]] = []

    def _snapshot(self) -> list["Field"]:
        return copy.deepcopy(self.template.fields)

    def push(self) -> None:
        self.undo_stack.append(self._snapshot())
        self.redo_stack.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self) -> bool:
        if not self.undo_stack:
            return False
        self.redo_stack.append(self._snapshot())
        self.template.replace_fields(self.undo_stack.pop())
        logger.debug("Undo (%d left)", len(self.undo_stack))
        return True

    def redo(self) -> bool:
        if not self.redo_stack:
            return False
        self.undo_stack.append(self._snapshot())
        self.template.replace_fields(self.redo_stack.pop())
        logger.debug("Redo (%d left)", len(self.redo_stack))
        return True

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()
