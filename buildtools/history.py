from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from buildtools.model import BuildSetup

class History:
    """Undo/redo for a single BuildSetup.

    Every mutation is preceded by record(), which snapshots the whole setup; undo swaps the
    current state for the newest snapshot and keeps the current state for redo. A setup is
    small enough that whole snapshots are simpler than per-field inverse operations.
    """

    def __init__(self, setup: BuildSetup, limit: int = 100):
        self.setup = setup
        self.limit = limit
        self.undo_stack: List[Tuple[str, Dict]] = []
        self.redo_stack: List[Tuple[str, Dict]] = []
        self.dirty = False

    def record(self, label: str) -> None:
        self.undo_stack.append((label, self.setup.to_dict()))
        if len(self.undo_stack) > self.limit:
            del self.undo_stack[0]
        self.redo_stack = []
        self.dirty = True

    def can_undo(self) -> bool:
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        return len(self.redo_stack) > 0

    def undo(self) -> Optional[str]:
        if not self.undo_stack:
            return None

        label, snapshot = self.undo_stack.pop()
        self.redo_stack.append((label, self.setup.to_dict()))
        self.setup.restore(snapshot)
        self.dirty = True
        return label

    def redo(self) -> Optional[str]:
        if not self.redo_stack:
            return None

        label, snapshot = self.redo_stack.pop()
        self.undo_stack.append((label, self.setup.to_dict()))
        self.setup.restore(snapshot)
        self.dirty = True
        return label

    def mark_clean(self) -> None:
        self.dirty = False
