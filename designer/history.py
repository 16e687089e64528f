"""Linear undo/redo history of full template snapshots."""

import copy
from typing import List, Optional

from models.badge_template import Template


class HistoryStack:
    """Snapshots are deep copies and never change once pushed.

    ``cursor`` points at the entry matching the current template, or -1
    while the stack is empty. Pushing after an undo prunes the redo branch.
    """

    def __init__(self):
        self.entries: List[Template] = []
        self.cursor: int = -1

    def push(self, template: Template) -> None:
        del self.entries[self.cursor + 1:]
        self.entries.append(copy.deepcopy(template))
        self.cursor = len(self.entries) - 1

    def undo(self) -> Optional[Template]:
        """Step back one entry; None when there is nothing to undo."""
        if not self.can_undo:
            return None
        self.cursor -= 1
        return copy.deepcopy(self.entries[self.cursor])

    def redo(self) -> Optional[Template]:
        if not self.can_redo:
            return None
        self.cursor += 1
        return copy.deepcopy(self.entries[self.cursor])

    def reset(self, template: Template) -> None:
        """Start a fresh history whose only entry is ``template``."""
        self.entries = []
        self.cursor = -1
        self.push(template)

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.entries) - 1

    @property
    def current(self) -> Optional[Template]:
        if self.cursor < 0:
            return None
        return copy.deepcopy(self.entries[self.cursor])

    def __len__(self) -> int:
        return len(self.entries)
