from typing import List, Optional


class HistoryStack:
    """
    Snapshot-based undo over one store's serialized state.

    The last entry is always the current state. Undo discards it and hands back
    the new last entry for the owner to restore. The stack lives only as long as
    the process.
    """

    def __init__(self):
        self._snapshots: List[str] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, snapshot: str) -> None:
        self._snapshots.append(snapshot)

    @property
    def can_undo(self) -> bool:
        return len(self._snapshots) > 1

    @property
    def current(self) -> Optional[str]:
        return self._snapshots[-1] if self._snapshots else None

    def undo(self) -> Optional[str]:
        """Pop the current snapshot; return the one to restore, or None when nothing to undo."""
        if not self.can_undo:
            return None
        self._snapshots.pop()
        return self._snapshots[-1]

    def clear(self) -> None:
        self._snapshots.clear()
